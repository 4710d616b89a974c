"""
Flat-fare zone shortcut (e.g. a tricycle franchise area).

When origin and destination fall inside the same zone the trip is priced
directly from the zone tariff instead of searching the graph.  The result is
a heuristic: distance is the straight line stretched by a road factor, and the
geometry is an indicative straight line, not something to give turn-by-turn
guidance from.
"""

import logging
from typing import Iterable, Optional

from ..models.graph_models import FareZone, Ride
from ..models.route_segments import CalculatedRoute, Location, RouteSegment, RouteTag
from ..utils.fare_utils import calculate_zone_fare
from ..utils.geo_utils import haversine_distance

logger = logging.getLogger(__name__)

DEFAULT_ROAD_FACTOR = 1.3
DEFAULT_ZONE_SPEED_KMPH = 15.0


class ZoneFareResolver:

    def __init__(self, road_factor: float = DEFAULT_ROAD_FACTOR, speed_kmph: float = DEFAULT_ZONE_SPEED_KMPH,
                 discount_rate: float = 0.0):
        self.road_factor = road_factor
        self.speed_kmph = speed_kmph
        self.discount_rate = discount_rate

    def same_zone(self, origin: Location, destination: Location, zones: Iterable[FareZone]) -> Optional[FareZone]:
        """Return the first zone (in source order) that contains both endpoints, boundary included."""
        for zone in zones:
            if zone.contains(origin.lat, origin.lng) and zone.contains(destination.lat, destination.lng):
                return zone
        return None

    def build_direct_trip(self, origin: Location, destination: Location, zone: FareZone,
                          route_id: str) -> CalculatedRoute:
        """Single-segment ride priced from the zone tariff, tagged FASTEST."""
        straight_km = haversine_distance(origin.lat, origin.lng, destination.lat, destination.lng)
        distance_km = straight_km * self.road_factor
        fare = calculate_zone_fare(zone.base_fare, zone.per_km, distance_km)
        vehicle = zone.vehicle_type.value

        segment = RouteSegment(
            mode=Ride(zone.vehicle_type),
            start=origin,
            end=destination,
            distance_km=distance_km,
            duration_min=distance_km / self.speed_kmph * 60.0,
            fare=fare,
            geometry=[origin.lnglat, destination.lnglat],
            instructions=[
                f"Ride a {vehicle} within {zone.name} to {destination.name or 'your destination'}",
                "Estimated zone fare; route shown as a straight line",
            ],
            route_id=f"zone:{zone.id}",
        )
        logger.info(f"Same-zone trip in {zone.name}: {distance_km:.3f} km, fare {fare:.2f}")
        return CalculatedRoute.from_segments(route_id, RouteTag.FASTEST, [segment], self.discount_rate)
