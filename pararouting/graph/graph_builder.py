import logging
import math
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from pydantic import ValidationError
from rtree import index

from ..config import DEFAULT_VEHICLE_SPEEDS_KMPH
from ..models.graph_models import (
    WALK, FareZone, GraphEdge, GraphNode, NodeKind, Ride, TransitGraph, VehicleType,
)
from ..models.records import RouteRecord, StopRecord, ZoneRecord
from ..utils.fare_utils import calculate_fare
from ..utils.geo_utils import haversine_distance

logger = logging.getLogger(__name__)

DEFAULT_TRANSFER_RADIUS_KM = 0.1
DEFAULT_TRANSFER_PENALTY_MIN = 5.0
KM_PER_DEGREE_LAT = 111.0


def travel_time_min(distance_km: float, speed_kmph: float) -> float:
    return distance_km / speed_kmph * 60.0


def _validate(records: Iterable[Mapping[str, Any]], model, label: str) -> list:
    """Convert raw records into ``model`` instances, skipping the ones that fail validation."""
    valid = []
    for i, raw in enumerate(records or []):
        try:
            valid.append(model.model_validate(raw))
        except ValidationError as e:
            logger.warning(f"Skipping invalid {label} record #{i}: {e.errors()[0].get('msg')}")
    return valid


def _served_vehicle_types(stops: List[StopRecord], routes: List[RouteRecord]) -> Dict[str, Set[VehicleType]]:
    """Declared vehicle types per stop, falling back to the types of the routes serving it."""
    by_route: Dict[str, Set[VehicleType]] = {}
    for route in routes:
        for stop_id in route.ordered_stops:
            by_route.setdefault(stop_id, set()).add(route.vehicle_type)
    served = {}
    for stop in stops:
        declared = set(stop.vehicle_types)
        served[stop.id] = declared or by_route.get(stop.id, set())
    return served


def build_transit_graph(stops, routes, zones=(), vehicle_speeds_kmph: Optional[Dict[str, float]] = None,
                        transfer_radius_km: float = DEFAULT_TRANSFER_RADIUS_KM,
                        transfer_penalty_min: float = DEFAULT_TRANSFER_PENALTY_MIN) -> TransitGraph:
    """Build a routable snapshot from raw stop, route and zone records.

    * every valid stop becomes exactly one node;
    * consecutive stops of a route become one directed ride edge;
    * distinct nodes closer than ``transfer_radius_km`` get a walking edge pair.

    Pure function of its inputs: nothing is cached between calls.
    """
    speeds = dict(DEFAULT_VEHICLE_SPEEDS_KMPH)
    speeds.update(vehicle_speeds_kmph or {})

    stop_records = _validate(stops, StopRecord, 'stop')
    route_records = _validate(routes, RouteRecord, 'route')
    zone_records = _validate(zones, ZoneRecord, 'zone')

    graph = TransitGraph()
    served = _served_vehicle_types(stop_records, route_records)

    for stop in stop_records:
        if stop.id in graph.nodes:
            logger.warning(f"Duplicate stop id {stop.id}, keeping the first record")
            continue
        vehicle_types = frozenset(served.get(stop.id, ()))
        if not vehicle_types:
            logger.warning(f"Stop {stop.id} ({stop.name}) is not served by any vehicle type")
        graph.add_node(GraphNode(
            id=stop.id,
            kind=NodeKind.TERMINAL if stop.is_terminal else NodeKind.STOP,
            lat=stop.lat,
            lng=stop.lng,
            name=stop.name,
            vehicle_types=vehicle_types,
        ))

    ride_edges = _add_ride_edges(graph, route_records, speeds)
    walk_edges = _add_transfer_edges(graph, transfer_radius_km, speeds['walk'], transfer_penalty_min)

    for record in zone_records:
        graph.zones.append(FareZone(
            id=record.id,
            name=record.name,
            base_fare=record.base_fare,
            per_km=record.per_km,
            polygon=[tuple(p) for p in record.polygon],
            vehicle_type=record.vehicle_type,
        ))

    mode_counter = Counter(edge.mode.label for edge in graph.edges)
    logger.info(f"Transit graph built: {len(graph.nodes)} nodes, {len(graph.edges)} edges, {len(graph.zones)} zones")
    logger.info(f"Created {ride_edges} ride edges and {walk_edges} walking transfer edges")
    logger.debug(f"Edge counts by mode: {dict(mode_counter)}")
    return graph


def _add_ride_edges(graph: TransitGraph, routes: List[RouteRecord], speeds: Dict[str, float]) -> int:
    added = 0
    for route_index, route in enumerate(routes):
        route_id = route.id or f"route_{route_index + 1}"
        speed = speeds[route.vehicle_type.value]
        for current_id, next_id in zip(route.ordered_stops, route.ordered_stops[1:]):
            if current_id not in graph.nodes or next_id not in graph.nodes:
                missing = current_id if current_id not in graph.nodes else next_id
                logger.warning(f"Stop {missing} not found for route {route_id}")
                continue
            if current_id == next_id:
                continue
            current_stop = graph.nodes[current_id]
            next_stop = graph.nodes[next_id]
            distance = haversine_distance(current_stop.lat, current_stop.lng, next_stop.lat, next_stop.lng)
            graph.add_edge(GraphEdge(
                from_id=current_id,
                to_id=next_id,
                weight_distance_km=distance,
                weight_time_min=travel_time_min(distance, speed),
                weight_fare_php=calculate_fare(route.base_fare, route.fare_per_km, distance),
                mode=Ride(route.vehicle_type),
                route_id=route_id,
            ))
            added += 1
    return added


def _add_transfer_edges(graph: TransitGraph, radius_km: float, walk_speed_kmph: float,
                        penalty_min: float) -> int:
    """Walking edge pairs between distinct nodes closer than ``radius_km``."""
    if radius_km <= 0 or len(graph.nodes) < 2:
        return 0

    node_ids = list(graph.nodes)
    # R-tree over (lng, lat) points; the stored id is the position in node_ids
    idx = index.Index()
    for i, node_id in enumerate(node_ids):
        node = graph.nodes[node_id]
        idx.insert(i, (node.lng, node.lat, node.lng, node.lat))

    added = 0
    for i, node_id in enumerate(node_ids):
        node = graph.nodes[node_id]
        lat_deg = radius_km / KM_PER_DEGREE_LAT
        lng_deg = lat_deg / max(math.cos(math.radians(node.lat)), 1e-6)
        bounds = (node.lng - lng_deg, node.lat - lat_deg, node.lng + lng_deg, node.lat + lat_deg)

        for j in sorted(idx.intersection(bounds)):
            # Avoid self-loops and processing pairs twice
            if i >= j:
                continue
            neighbor = graph.nodes[node_ids[j]]
            distance = haversine_distance(node.lat, node.lng, neighbor.lat, neighbor.lng)
            if distance >= radius_km:
                continue
            minutes = travel_time_min(distance, walk_speed_kmph) + penalty_min
            for a, b in ((node, neighbor), (neighbor, node)):
                graph.add_edge(GraphEdge(
                    from_id=a.id,
                    to_id=b.id,
                    weight_distance_km=distance,
                    weight_time_min=minutes,
                    weight_fare_php=0.0,
                    mode=WALK,
                ))
                added += 1
    return added


def build_graph_from_source(source, **builder_config) -> TransitGraph:
    """Load records from a transit data source and build a fresh graph.

    Source failures degrade to an empty graph; callers treat an empty graph as
    "no route possible".  Zones are optional, so a zone failure only drops the
    zones.
    """
    try:
        stops = source.load_stops()
        routes = source.load_routes()
    except Exception as e:
        logger.warning(f"Transit data unavailable, using empty graph: {e}")
        return TransitGraph()
    try:
        zones = source.load_zones()
    except Exception as e:
        logger.warning(f"Fare zones unavailable, building graph without zones: {e}")
        zones = []
    if not stops:
        logger.warning("Transit data source returned no stops")
    return build_transit_graph(stops, routes, zones, **builder_config)
