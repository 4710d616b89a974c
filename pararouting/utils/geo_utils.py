import math
from typing import Sequence, Tuple

import numpy as np
from shapely.geometry import LineString, Point

EARTH_RADIUS_KM = 6371.0


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate haversine distance between two points in kilometers"""
    lat1_rad = math.radians(lat1)
    lon1_rad = math.radians(lon1)
    lat2_rad = math.radians(lat2)
    lon2_rad = math.radians(lon2)
    dlat = lat2_rad - lat1_rad
    dlon = lon2_rad - lon1_rad
    a = (math.sin(dlat/2)**2 +
         math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon/2)**2)
    c = 2 * math.asin(min(1.0, math.sqrt(a)))
    return EARTH_RADIUS_KM * c


def vectorized_haversine(lat1, lon1, lat2, lon2):
    """Vectorized haversine distance in kilometers using numpy"""
    lat1, lon1, lat2, lon2 = map(np.radians, [lat1, lon1, lat2, lon2])

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    a = np.sin(dlat/2)**2 + np.cos(lat1) * np.cos(lat2) * np.sin(dlon/2)**2
    c = 2 * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))

    return EARTH_RADIUS_KM * c


def _project(coords: Sequence[Tuple[float, float]], lat0: float, lng0: float) -> np.ndarray:
    """Equirectangular projection of (lng, lat) pairs to km offsets around (lat0, lng0)."""
    arr = np.asarray(coords, dtype=float).reshape(-1, 2)
    k = math.pi / 180.0 * EARTH_RADIUS_KM
    x = (arr[:, 0] - lng0) * k * math.cos(math.radians(lat0))
    y = (arr[:, 1] - lat0) * k
    return np.column_stack([x, y])


def distance_to_polyline_km(coords: Sequence[Tuple[float, float]], lat: float, lng: float) -> float:
    """Distance from a point to the nearest point on a (lng, lat) polyline, in km.

    Uses a local flat projection centred on the point, accurate well beyond the
    few hundred metres the tracker cares about.
    """
    if not coords:
        return math.inf
    if len(coords) == 1:
        c_lng, c_lat = coords[0]
        return haversine_distance(lat, lng, c_lat, c_lng)
    projected = _project(coords, lat, lng)
    return LineString(projected).distance(Point(0.0, 0.0))


def nearest_vertex_index(coords: Sequence[Tuple[float, float]], lat: float, lng: float) -> int:
    """Index of the polyline vertex closest to the point (first one on ties)."""
    arr = np.asarray(coords, dtype=float).reshape(-1, 2)
    distances = vectorized_haversine(lat, lng, arr[:, 1], arr[:, 0])
    return int(np.argmin(distances))


def polyline_length_km(coords: Sequence[Tuple[float, float]]) -> float:
    if len(coords) < 2:
        return 0.0
    arr = np.asarray(coords, dtype=float)
    return float(np.sum(vectorized_haversine(arr[:-1, 1], arr[:-1, 0], arr[1:, 1], arr[1:, 0])))


def validate_coordinates(lat: float, lon: float) -> bool:
    """Validate coordinate bounds"""
    return -90 <= lat <= 90 and -180 <= lon <= 180
