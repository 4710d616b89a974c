"""
Configuration management for the Para trip-planning engine
"""

import json
import os
from typing import Dict, Optional

from .models.graph_models import NodeKind, VehicleType

# Average speeds (km/h) used to turn distance into ride/walk time.
DEFAULT_VEHICLE_SPEEDS_KMPH: Dict[str, float] = {
    'jeepney': 18.0,
    'bus': 25.0,
    'e-jeep': 20.0,
    'tricycle': 15.0,
    'walk': 5.0,
}


def _optional_float(value: Optional[str]) -> Optional[float]:
    if value is None or not value.strip():
        return None
    return float(value)


def _optional_kind(value: Optional[str]) -> Optional[NodeKind]:
    if not value:
        return None
    return NodeKind(value.strip().lower())


class Config:
    """Configuration class for the Para engine"""

    def __init__(self):
        # Transit data
        self.data_dir: str = os.getenv('DATA_DIR', 'data')
        self.data_api_url: Optional[str] = os.getenv('DATA_API_URL')
        self.data_api_key: Optional[str] = os.getenv('DATA_API_KEY')

        # Directions providers
        self.mapbox_token: Optional[str] = os.getenv('MAPBOX_TOKEN')
        self.ors_api_key: Optional[str] = os.getenv('ORS_API_KEY')
        self.directions_timeout_s: float = float(os.getenv('DIRECTIONS_TIMEOUT_S', '10'))

        # Graph building parameters
        self.vehicle_speeds_kmph: Dict[str, float] = dict(DEFAULT_VEHICLE_SPEEDS_KMPH)
        overrides = os.getenv('VEHICLE_SPEEDS_KMPH')
        if overrides:
            self.vehicle_speeds_kmph.update({k: float(v) for k, v in json.loads(overrides).items()})
        self.transfer_radius_km: float = float(os.getenv('TRANSFER_RADIUS_KM', '0.1'))
        self.transfer_penalty_min: float = float(os.getenv('TRANSFER_PENALTY_MIN', '5.0'))

        # Zone fares
        self.zone_road_factor: float = float(os.getenv('ZONE_ROAD_FACTOR', '1.3'))
        self.zone_speed_kmph: float = float(os.getenv('ZONE_SPEED_KMPH', '15.0'))

        # Trip stitching
        self.max_access_distance_km: Optional[float] = _optional_float(os.getenv('MAX_ACCESS_DISTANCE_KM'))
        self.origin_node_kind: Optional[NodeKind] = _optional_kind(os.getenv('ORIGIN_NODE_KIND'))
        self.destination_node_kind: Optional[NodeKind] = _optional_kind(os.getenv('DESTINATION_NODE_KIND'))
        self.discount_rate: float = float(os.getenv('DISCOUNT_RATE', '0.20'))

        # Live tracking
        self.waypoint_threshold_m: float = float(os.getenv('WAYPOINT_THRESHOLD_M', '50'))
        self.off_route_threshold_m: float = float(os.getenv('OFF_ROUTE_THRESHOLD_M', '200'))
        self.tracking_throttle_ms: int = int(os.getenv('TRACKING_THROTTLE_MS', '3000'))

        # API configuration
        self.host: str = os.getenv('HOST', '0.0.0.0')
        self.port: int = int(os.getenv('PORT', '5000'))
        self.debug: bool = os.getenv('DEBUG', 'False').lower() == 'true'

        # Logging
        self.log_level: str = os.getenv('LOG_LEVEL', 'INFO')
        self.log_file: Optional[str] = os.getenv('LOG_FILE')

    def validate(self):
        """Validate configuration"""
        for vehicle, speed in self.vehicle_speeds_kmph.items():
            if speed <= 0:
                raise ValueError(f"Average speed for {vehicle} must be positive")
        missing = {v.value for v in VehicleType} - set(self.vehicle_speeds_kmph)
        if missing:
            raise ValueError(f"No average speed configured for: {', '.join(sorted(missing))}")
        if 'walk' not in self.vehicle_speeds_kmph:
            raise ValueError("No walking speed configured")

        if self.transfer_radius_km < 0 or self.transfer_penalty_min < 0:
            raise ValueError("Transfer radius and penalty must not be negative")

        if self.zone_road_factor <= 0 or self.zone_speed_kmph <= 0:
            raise ValueError("Zone road factor and speed must be positive")

        if self.max_access_distance_km is not None and self.max_access_distance_km <= 0:
            raise ValueError("Max access distance must be positive")

        if not 0 <= self.discount_rate < 1:
            raise ValueError("Discount rate must be in [0, 1)")

        if self.waypoint_threshold_m <= 0 or self.off_route_threshold_m <= 0:
            raise ValueError("Tracking thresholds must be positive")

        if self.tracking_throttle_ms < 0:
            raise ValueError("Tracking throttle must not be negative")

    def get_graph_builder_config(self) -> dict:
        """Get configuration for the graph builder"""
        return {
            'vehicle_speeds_kmph': dict(self.vehicle_speeds_kmph),
            'transfer_radius_km': self.transfer_radius_km,
            'transfer_penalty_min': self.transfer_penalty_min,
        }

    def get_zone_config(self) -> dict:
        """Get configuration for ZoneFareResolver"""
        return {
            'road_factor': self.zone_road_factor,
            'speed_kmph': self.zone_speed_kmph,
            'discount_rate': self.discount_rate,
        }

    def get_stitcher_config(self) -> dict:
        """Get configuration for RouteStitcher"""
        return {
            'max_access_distance_km': self.max_access_distance_km,
            'origin_node_kind': self.origin_node_kind,
            'destination_node_kind': self.destination_node_kind,
            'discount_rate': self.discount_rate,
        }

    def get_tracker_config(self) -> dict:
        """Get configuration for NavigationTracker"""
        return {
            'waypoint_threshold_m': self.waypoint_threshold_m,
            'off_route_threshold_m': self.off_route_threshold_m,
            'throttle_ms': self.tracking_throttle_ms,
            'discount_rate': self.discount_rate,
        }

    def get_api_config(self) -> dict:
        """Get configuration for Flask API"""
        return {
            'host': self.host,
            'port': self.port,
            'debug': self.debug
        }


# Global configuration instance
config = Config()
