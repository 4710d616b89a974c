"""
Walking-directions providers.

A provider turns two (lng, lat) points into a WalkingLeg or raises
DirectionsAPIError.  Timeouts are handed to the HTTP client; retrying is left
to whoever owns the provider.
"""

import logging
import time
from typing import List, Optional, Sequence, Tuple

import polyline
import requests

from ..exceptions import DirectionsAPIError
from ..logger import logger as metrics
from ..models.route_segments import WalkingLeg
from ..utils.geo_utils import haversine_distance

logger = logging.getLogger(__name__)

LngLat = Tuple[float, float]

WALK_SPEED_KMPH = 5.0


class DirectionsProvider:
    """Interface for walking-directions collaborators"""

    def walking_route(self, from_lnglat: LngLat, to_lnglat: LngLat) -> WalkingLeg:
        raise NotImplementedError


class MapboxWalkingDirections(DirectionsProvider):
    """Mapbox Directions API v5, walking profile."""

    BASE_URL = "https://api.mapbox.com/directions/v5/mapbox/walking"

    def __init__(self, token: Optional[str], timeout: float = 10.0, session: Optional[requests.Session] = None):
        self.token = token
        self.timeout = timeout
        self.session = session or requests.Session()

    def walking_route(self, from_lnglat: LngLat, to_lnglat: LngLat) -> WalkingLeg:
        return self.walking_route_with_waypoints([from_lnglat, to_lnglat])

    def walking_route_with_waypoints(self, coordinates: Sequence[LngLat]) -> WalkingLeg:
        """Walk through every coordinate in order (start, waypoints..., end)."""
        if not self.token:
            raise DirectionsAPIError("MAPBOX_TOKEN is missing")
        if len(coordinates) < 2:
            raise DirectionsAPIError("At least two coordinates are required")

        waypoints = ";".join(f"{lng},{lat}" for lng, lat in coordinates)
        started = time.time()
        try:
            resp = self.session.get(f"{self.BASE_URL}/{waypoints}", params={
                'geometries': 'polyline6',
                'overview': 'full',
                'steps': 'true',
                'access_token': self.token,
            }, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            metrics.log_api_call("mapbox_walking", (time.time() - started) * 1000, False)
            raise DirectionsAPIError(f"Mapbox request failed: {e}") from e
        metrics.log_api_call("mapbox_walking", (time.time() - started) * 1000, True)

        routes = data.get('routes')
        if data.get('code') != 'Ok' or not routes:
            raise DirectionsAPIError(f"Mapbox returned no route: {data.get('message', data.get('code'))}")

        route = routes[0]
        # decode returns (lat, lon)
        geometry = [(lng, lat) for lat, lng in polyline.decode(route.get('geometry', ''), 6)]
        instructions = [
            step.get('maneuver', {}).get('instruction', '')
            for leg in route.get('legs', [])
            for step in leg.get('steps', [])
        ]
        return WalkingLeg(
            geometry=geometry or [tuple(coordinates[0]), tuple(coordinates[-1])],
            distance_m=float(route.get('distance', 0.0)),
            duration_s=float(route.get('duration', 0.0)),
            instructions=[i for i in instructions if i],
        )


class OrsWalkingDirections(DirectionsProvider):
    """OpenRouteService foot-walking directions."""

    def __init__(self, api_key: str, timeout: float = 10.0):
        import openrouteservice  # Lazy import, not required if ORS is not configured
        from openrouteservice import exceptions as ors_exceptions
        self._errors = (ors_exceptions.ApiError, ors_exceptions.HTTPError,
                        ors_exceptions.Timeout, requests.RequestException)
        self.client = openrouteservice.Client(key=api_key, timeout=timeout)

    def walking_route(self, from_lnglat: LngLat, to_lnglat: LngLat) -> WalkingLeg:
        started = time.time()
        try:
            geojson = self.client.directions([list(from_lnglat), list(to_lnglat)], profile='foot-walking',
                                             format='geojson', instructions=True)
        except self._errors as e:
            metrics.log_api_call("ors_walking", (time.time() - started) * 1000, False)
            raise DirectionsAPIError(f"ORS request failed: {e}") from e
        metrics.log_api_call("ors_walking", (time.time() - started) * 1000, True)

        features = geojson.get('features') or []
        if not features:
            raise DirectionsAPIError("ORS returned no route")
        feature = features[0]
        props = feature.get('properties', {})
        summary = props.get('summary', {})
        # ORS returns [lon, lat]
        geometry = [(lon, lat) for lon, lat in feature['geometry']['coordinates']]
        instructions = [
            step.get('instruction', '')
            for segment in props.get('segments', [])
            for step in segment.get('steps', [])
        ]
        return WalkingLeg(
            geometry=geometry,
            distance_m=float(summary.get('distance', 0.0)),
            duration_s=float(summary.get('duration', 0.0)),
            instructions=[i for i in instructions if i],
        )


class StraightLineDirections(DirectionsProvider):
    """Offline provider: a straight line walked at a constant pace."""

    def __init__(self, speed_kmph: float = WALK_SPEED_KMPH):
        self.speed_kmph = speed_kmph

    def walking_route(self, from_lnglat: LngLat, to_lnglat: LngLat) -> WalkingLeg:
        km = haversine_distance(from_lnglat[1], from_lnglat[0], to_lnglat[1], to_lnglat[0])
        return WalkingLeg(
            geometry=[tuple(from_lnglat), tuple(to_lnglat)],
            distance_m=km * 1000.0,
            duration_s=km / self.speed_kmph * 3600.0,
            instructions=[f"Walk {int(round(km * 1000))} m"],
        )


def directions_from_config(cfg) -> DirectionsProvider:
    """Mapbox when a token is configured, then ORS, then straight lines."""
    if cfg.mapbox_token:
        return MapboxWalkingDirections(cfg.mapbox_token, timeout=cfg.directions_timeout_s)
    if cfg.ors_api_key:
        return OrsWalkingDirections(cfg.ors_api_key, timeout=cfg.directions_timeout_s)
    logger.warning("No directions API configured, walking legs will be straight lines")
    return StraightLineDirections(cfg.vehicle_speeds_kmph.get('walk', WALK_SPEED_KMPH))


def leg_instructions(leg: WalkingLeg, fallback: str) -> List[str]:
    return list(leg.instructions) or [fallback]
