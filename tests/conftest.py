"""Pytest configuration and fixtures."""

import math
import threading

import pytest

from pararouting.exceptions import DirectionsAPIError
from pararouting.models.graph_models import WALK, Ride, VehicleType
from pararouting.models.route_segments import CalculatedRoute, Location, RouteSegment, RouteTag
from pararouting.route_stitcher import RouteStitcher
from pararouting.sources.directions import DirectionsProvider, StraightLineDirections
from pararouting.sources.transit_data import InMemoryTransitDataSource
from pararouting.utils.geo_utils import EARTH_RADIUS_KM

M_PER_DEG_LAT = EARTH_RADIUS_KM * 1000.0 * math.pi / 180.0


def lat_offset(metres: float) -> float:
    """Degrees of latitude covering ``metres`` along a meridian."""
    return metres / M_PER_DEG_LAT


def lng_offset(metres: float, lat: float) -> float:
    return metres / (M_PER_DEG_LAT * math.cos(math.radians(lat)))


# One jeepney line running north: terminal A, three stops, terminal B (~556 m apart)
LINE_LNG = 120.98
LINE_STOPS = [
    {'id': 'A', 'lat': 14.600, 'lng': LINE_LNG, 'name': 'Terminal A', 'isTerminal': True},
    {'id': 'S1', 'lat': 14.605, 'lng': LINE_LNG, 'name': 'Stop 1'},
    {'id': 'S2', 'lat': 14.610, 'lng': LINE_LNG, 'name': 'Stop 2'},
    {'id': 'S3', 'lat': 14.615, 'lng': LINE_LNG, 'name': 'Stop 3'},
    {'id': 'B', 'lat': 14.620, 'lng': LINE_LNG, 'name': 'Terminal B', 'isTerminal': True},
]
LINE_ROUTES = [
    {'id': 'J1', 'vehicleType': 'jeepney', 'baseFare': 13.0, 'farePerKm': 1.8,
     'orderedStops': ['A', 'S1', 'S2', 'S3', 'B']},
]

# Two ways from P to Q: a direct bus and a cheaper jeepney dog-leg through M
CHOICE_STOPS = [
    {'id': 'P', 'lat': 14.50, 'lng': 121.05, 'name': 'Plaza', 'isTerminal': True},
    {'id': 'M', 'lat': 14.51, 'lng': 121.06, 'name': 'Market'},
    {'id': 'Q', 'lat': 14.52, 'lng': 121.05, 'name': 'Quay', 'isTerminal': True},
]
CHOICE_ROUTES = [
    {'id': 'BUS1', 'vehicleType': 'bus', 'baseFare': 15.0, 'farePerKm': 2.2, 'orderedStops': ['P', 'Q']},
    {'id': 'J2', 'vehicleType': 'jeepney', 'baseFare': 1.0, 'farePerKm': 1.0, 'orderedStops': ['P', 'M', 'Q']},
]

ZONE_CENTER = (14.55, 121.00)
ZONE = {
    'id': 'Z1',
    'name': 'Poblacion',
    'baseFare': 15.0,
    'perKm': 2.5,
    'polygon': [(14.52, 120.97), (14.58, 120.97), (14.58, 121.03), (14.52, 121.03), (14.52, 120.97)],
}


@pytest.fixture
def line_source() -> InMemoryTransitDataSource:
    return InMemoryTransitDataSource(stops=LINE_STOPS, routes=LINE_ROUTES)


@pytest.fixture
def choice_source() -> InMemoryTransitDataSource:
    return InMemoryTransitDataSource(stops=CHOICE_STOPS, routes=CHOICE_ROUTES)


@pytest.fixture
def walker() -> StraightLineDirections:
    return StraightLineDirections()


@pytest.fixture
def line_stitcher(line_source, walker) -> RouteStitcher:
    return RouteStitcher(line_source, walker, discount_rate=0.2, clock=lambda: 1700000000.0)


class FailingDirections(DirectionsProvider):

    def __init__(self):
        self.calls = 0

    def walking_route(self, from_lnglat, to_lnglat):
        self.calls += 1
        raise DirectionsAPIError("service down")


class BlockingDirections(StraightLineDirections):
    """Straight-line walks that wait until ``release`` is set."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def walking_route(self, from_lnglat, to_lnglat):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().walking_route(from_lnglat, to_lnglat)


@pytest.fixture
def failing_directions() -> FailingDirections:
    return FailingDirections()


@pytest.fixture
def blocking_directions() -> BlockingDirections:
    return BlockingDirections()


def _straight(points):
    return [(LINE_LNG, lat) for lat in points]


@pytest.fixture
def tracked_route() -> CalculatedRoute:
    """Walk 14.6000->14.6010, jeepney 14.6010->14.6100 (10 vertices), walk 14.6100->14.6105."""
    ride_lats = [round(14.601 + 0.001 * k, 6) for k in range(10)]
    walk_in = RouteSegment(
        mode=WALK,
        start=Location(14.600, LINE_LNG, 'Origin'),
        end=Location(14.601, LINE_LNG, 'Terminal A'),
        distance_km=0.111,
        duration_min=1.3,
        fare=0.0,
        geometry=_straight([14.600, 14.601]),
        instructions=['Walk to Terminal A'],
    )
    ride = RouteSegment(
        mode=Ride(VehicleType.JEEPNEY),
        start=Location(14.601, LINE_LNG, 'Terminal A'),
        end=Location(14.610, LINE_LNG, 'Terminal B'),
        distance_km=1.0,
        duration_min=3.3,
        fare=15.0,
        geometry=_straight(ride_lats),
        instructions=['Board at Terminal A', 'Pass Stop 2', 'Alight at Terminal B'],
        route_id='J1',
    )
    walk_out = RouteSegment(
        mode=WALK,
        start=Location(14.610, LINE_LNG, 'Terminal B'),
        end=Location(14.6105, LINE_LNG, 'Destination'),
        distance_km=0.056,
        duration_min=0.7,
        fare=0.0,
        geometry=_straight([14.610, 14.6105]),
        instructions=['Walk to Destination'],
    )
    return CalculatedRoute.from_segments('route-1-fastest', RouteTag.FASTEST, [walk_in, ride, walk_out])
