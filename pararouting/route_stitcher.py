"""
Route stitcher: walk -> ride(s) -> walk itineraries

1. Build a fresh graph snapshot from the transit data source
2. Short-circuit same-zone trips with a direct zone-fare ride
3. Snap origin and destination to their nearest graph nodes
4. Fetch first-mile and last-mile walks concurrently
5. Run the pathfinder once per criterion and stitch each result into a CalculatedRoute
6. Drop itineraries that repeat an earlier (duration, fare) pair
"""

import logging
import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Dict, List, Optional, Set, Tuple

from .config import config
from .exceptions import (
    CalculationInProgressError, InvalidCoordinatesError, NoNearbyNodeError, NoPathFoundError,
    ParaRoutingError, WalkingLegUnavailableError,
)
from .graph.graph_builder import build_graph_from_source
from .models.graph_models import GraphEdge, GraphNode, NodeKind, Ride, TransitGraph, WALK
from .models.route_segments import (
    CalculatedRoute, Location, RouteCalculationResult, RouteSegment, RouteTag, WalkingLeg,
)
from .routing.algorithms import Criterion, PathResult, find_nearest_node, shortest_path
from .routing.zone_fares import ZoneFareResolver
from .sources.directions import DirectionsProvider, directions_from_config, leg_instructions
from .sources.transit_data import TransitDataSource, source_from_config
from .utils.geo_utils import validate_coordinates

logger = logging.getLogger(__name__)

CRITERION_TAGS: Dict[Criterion, RouteTag] = {
    Criterion.TIME: RouteTag.FASTEST,
    Criterion.DISTANCE: RouteTag.SHORTEST,
    Criterion.FARE: RouteTag.CHEAPEST,
}

Pathfinder = Callable[[TransitGraph, str, str, Criterion], Optional[PathResult]]


def _node_location(node: GraphNode) -> Location:
    return Location(lat=node.lat, lng=node.lng, name=node.name)


class RouteStitcher:
    """
    Computes door-to-door itineraries for one origin/destination pair.

    Every call rebuilds its own graph, so concurrent calls for different trips
    share nothing mutable.  A second call for a trip that is still being
    calculated is rejected with an ALREADY_CALCULATING result.
    """

    def __init__(self, data_source: TransitDataSource, directions: DirectionsProvider,
                 pathfinder: Pathfinder = shortest_path, zone_resolver: Optional[ZoneFareResolver] = None,
                 graph_config: Optional[dict] = None, max_access_distance_km: Optional[float] = None,
                 origin_node_kind: Optional[NodeKind] = None, destination_node_kind: Optional[NodeKind] = None,
                 discount_rate: float = 0.0, clock: Callable[[], float] = time.time):
        self.data_source = data_source
        self.directions = directions
        self.pathfinder = pathfinder
        self.zone_resolver = zone_resolver or ZoneFareResolver(discount_rate=discount_rate)
        self.graph_config = graph_config or {}
        self.max_access_distance_km = max_access_distance_km
        self.origin_node_kind = origin_node_kind
        self.destination_node_kind = destination_node_kind
        self.discount_rate = discount_rate
        self._clock = clock
        self._lock = threading.Lock()
        self._in_flight: Set[Tuple[float, float, float, float]] = set()

    @classmethod
    def from_config(cls, cfg=None, data_source: Optional[TransitDataSource] = None,
                    directions: Optional[DirectionsProvider] = None) -> 'RouteStitcher':
        cfg = cfg or config
        cfg.validate()
        return cls(
            data_source or source_from_config(cfg),
            directions or directions_from_config(cfg),
            zone_resolver=ZoneFareResolver(**cfg.get_zone_config()),
            graph_config=cfg.get_graph_builder_config(),
            **cfg.get_stitcher_config(),
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def calculate_routes(self, origin: Location, destination: Location) -> RouteCalculationResult:
        """Return every distinct itinerary found, or an empty list plus an error."""
        key = (round(origin.lat, 6), round(origin.lng, 6), round(destination.lat, 6), round(destination.lng, 6))
        with self._lock:
            if key in self._in_flight:
                logger.warning(f"Rejecting duplicate request {origin.lnglat} -> {destination.lnglat}")
                return RouteCalculationResult(error="Route calculation already in progress for this trip",
                                              error_code=CalculationInProgressError.code)
            self._in_flight.add(key)

        try:
            return self._calculate(origin, destination)
        except ParaRoutingError as e:
            logger.warning(f"Route calculation {origin.lnglat} -> {destination.lnglat} failed: {e}")
            return RouteCalculationResult(error=str(e), error_code=e.code)
        except Exception:
            logger.exception(f"Unexpected failure calculating {origin} -> {destination}")
            raise
        finally:
            with self._lock:
                self._in_flight.discard(key)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _calculate(self, origin: Location, destination: Location) -> RouteCalculationResult:
        for label, point in (('origin', origin), ('destination', destination)):
            if not validate_coordinates(point.lat, point.lng):
                raise InvalidCoordinatesError(f"Invalid {label} coordinates: {point.lat}, {point.lng}")
        origin = Location(origin.lat, origin.lng, origin.name or 'Origin')
        destination = Location(destination.lat, destination.lng, destination.name or 'Destination')
        base_id = f"route-{int(self._clock() * 1000)}"

        graph = build_graph_from_source(self.data_source, **self.graph_config)

        zone = self.zone_resolver.same_zone(origin, destination, graph.zones)
        if zone is not None:
            route = self.zone_resolver.build_direct_trip(origin, destination, zone,
                                                         f"{base_id}-{RouteTag.FASTEST.value.lower()}")
            return RouteCalculationResult(routes=[route])

        start_node = self._nearest(graph, origin, self.origin_node_kind, 'origin')
        end_node = self._nearest(graph, destination, self.destination_node_kind, 'destination')
        logger.info(f"Nearest nodes: origin={start_node.id} ({start_node.name}), "
                    f"destination={end_node.id} ({end_node.name})")

        first_leg, last_leg = self._walking_legs(origin, start_node, end_node, destination)

        routes: List[CalculatedRoute] = []
        seen = set()
        for criterion, tag in CRITERION_TAGS.items():
            try:
                result = self.pathfinder(graph, start_node.id, end_node.id, criterion)
            except Exception:
                logger.exception(f"Pathfinding failed for {origin.lnglat} -> {destination.lnglat} "
                                 f"(criterion={criterion.value})")
                raise
            if result is None:
                logger.info(f"No {criterion.value} path between {start_node.id} and {end_node.id}")
                continue

            route = self._assemble(f"{base_id}-{tag.value.lower()}", tag, graph, result,
                                   origin, destination, start_node, end_node, first_leg, last_leg)
            # the same path can win under several criteria
            signature = (round(route.total_duration_min, 6), round(route.total_fare, 6))
            if signature in seen:
                logger.debug(f"Dropping {tag.value}: duplicates an earlier itinerary")
                continue
            seen.add(signature)
            routes.append(route)

        if not routes:
            raise NoPathFoundError(f"No public transport route found between {start_node.name} and {end_node.name}")
        return RouteCalculationResult(routes=routes)

    def _nearest(self, graph: TransitGraph, point: Location, kind: Optional[NodeKind], label: str) -> GraphNode:
        found = find_nearest_node(graph, point.lat, point.lng, kind=kind,
                                  max_distance_km=self.max_access_distance_km)
        if found is None:
            what = f"{kind.value}s" if kind else "terminals or stops"
            raise NoNearbyNodeError(f"No {what} found near {label}")
        return found[0]

    def _walking_legs(self, origin: Location, start_node: GraphNode, end_node: GraphNode,
                      destination: Location) -> Tuple[WalkingLeg, WalkingLeg]:
        """First-mile and last-mile walks, requested at the same time."""
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix='walking-leg') as pool:
            first = pool.submit(self.directions.walking_route, origin.lnglat, start_node.lnglat)
            last = pool.submit(self.directions.walking_route, end_node.lnglat, destination.lnglat)
            first_leg = self._leg_or_error(first, f"Could not calculate walking route to {start_node.name}")
            last_leg = self._leg_or_error(last, f"Could not calculate walking route from {end_node.name}")
        return first_leg, last_leg

    @staticmethod
    def _leg_or_error(future: Future, message: str) -> WalkingLeg:
        try:
            leg = future.result()
        except Exception as e:
            # provider failures of any kind surface as a trip error, not an exception
            logger.warning(f"{message}: {e}")
            raise WalkingLegUnavailableError(message) from e
        if leg is None:
            raise WalkingLegUnavailableError(message)
        return leg

    # ------------------------------------------------------------------
    # Assembly
    # ------------------------------------------------------------------

    def _assemble(self, route_id: str, tag: RouteTag, graph: TransitGraph, result: PathResult,
                  origin: Location, destination: Location, start_node: GraphNode, end_node: GraphNode,
                  first_leg: WalkingLeg, last_leg: WalkingLeg) -> CalculatedRoute:
        segments = [self._walk_segment(origin, _node_location(start_node), first_leg)]
        for edge in result.segments:
            segments.append(self._edge_segment(edge, graph.nodes[edge.from_id], graph.nodes[edge.to_id]))
        segments.append(self._walk_segment(_node_location(end_node), destination, last_leg))
        return CalculatedRoute.from_segments(route_id, tag, segments, self.discount_rate)

    @staticmethod
    def _walk_segment(start: Location, end: Location, leg: WalkingLeg) -> RouteSegment:
        return RouteSegment(
            mode=WALK,
            start=start,
            end=end,
            distance_km=leg.distance_m / 1000.0,
            duration_min=leg.duration_s / 60.0,
            fare=0.0,
            geometry=list(leg.geometry),
            instructions=leg_instructions(leg, f"Walk to {end.name}"),
        )

    @staticmethod
    def _edge_segment(edge: GraphEdge, a: GraphNode, b: GraphNode) -> RouteSegment:
        if isinstance(edge.mode, Ride):
            instructions = [f"Ride {edge.mode.vehicle_type.value} to {b.name}"]
        else:
            instructions = [f"Walk to {b.name} to transfer"]
        return RouteSegment(
            mode=edge.mode,
            start=_node_location(a),
            end=_node_location(b),
            distance_km=edge.weight_distance_km,
            duration_min=edge.weight_time_min,
            fare=edge.weight_fare_php,
            geometry=[a.lnglat, b.lnglat],
            instructions=instructions,
            route_id=edge.route_id,
        )
