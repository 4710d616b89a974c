import itertools
import logging
import math
from dataclasses import dataclass
from enum import Enum
from heapq import heappop, heappush
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..models.graph_models import GraphEdge, GraphNode, NodeKind, TransitGraph, VehicleType
from ..utils.geo_utils import vectorized_haversine

logger = logging.getLogger(__name__)


class Criterion(str, Enum):
    TIME = 'time'
    DISTANCE = 'distance'
    FARE = 'fare'

    def weight(self, edge: GraphEdge) -> float:
        if self is Criterion.TIME:
            return edge.weight_time_min
        if self is Criterion.DISTANCE:
            return edge.weight_distance_km
        return edge.weight_fare_php


@dataclass(frozen=True)
class PathTotals:
    distance_km: float
    time_min: float
    fare_php: float


@dataclass(frozen=True)
class PathResult:
    criterion: Criterion
    path: List[str]
    segments: List[GraphEdge]
    totals: PathTotals

    @property
    def cost(self) -> float:
        return sum(self.criterion.weight(e) for e in self.segments)


def shortest_path(graph: TransitGraph, start_id: str, end_id: str,
                  criterion: Criterion = Criterion.TIME) -> Optional[PathResult]:
    """Dijkstra over ``graph`` minimising ``criterion``.

    Returns None when either node is missing or ``end_id`` is unreachable.
    Parallel edges are handled by relaxation, so the cheapest one wins; equal
    costs are settled in insertion order via a monotonic counter.
    """
    criterion = Criterion(criterion)
    if start_id not in graph.nodes or end_id not in graph.nodes:
        logger.warning(f"Start {start_id} or end {end_id} not in graph")
        return None

    dist: Dict[str, float] = {start_id: 0.0}
    previous: Dict[str, Tuple[str, GraphEdge]] = {}
    finalized = set()
    counter = itertools.count()
    heap = [(0.0, next(counter), start_id)]

    while heap:
        cost, _, node_id = heappop(heap)
        if node_id in finalized:
            continue
        finalized.add(node_id)
        if node_id == end_id:
            break
        for edge in graph.out_edges(node_id):
            if edge.to_id in finalized:
                continue
            new_cost = cost + criterion.weight(edge)
            if new_cost < dist.get(edge.to_id, math.inf):
                dist[edge.to_id] = new_cost
                previous[edge.to_id] = (node_id, edge)
                heappush(heap, (new_cost, next(counter), edge.to_id))

    if end_id not in finalized:
        logger.debug(f"No {criterion.value} path between {start_id} and {end_id}")
        return None

    # Walk predecessors back from the end node, then reverse
    path = [end_id]
    segments: List[GraphEdge] = []
    current = end_id
    while current != start_id:
        current, edge = previous[current]
        segments.append(edge)
        path.append(current)
    path.reverse()
    segments.reverse()

    totals = PathTotals(
        distance_km=sum(e.weight_distance_km for e in segments),
        time_min=sum(e.weight_time_min for e in segments),
        fare_php=sum(e.weight_fare_php for e in segments),
    )
    logger.debug(f"{criterion.value} path found: {len(path)} nodes, cost={dist[end_id]:.3f}")
    return PathResult(criterion=criterion, path=path, segments=segments, totals=totals)


def find_nearest_node(graph: TransitGraph, lat: float, lng: float, kind: Optional[NodeKind] = None,
                      vehicle_type: Optional[VehicleType] = None,
                      max_distance_km: Optional[float] = None) -> Optional[Tuple[GraphNode, float]]:
    """Return the closest node and its straight-line distance (km), or None.

    Candidates can be narrowed by node kind and by served vehicle type; with
    ``max_distance_km`` a node farther than that is treated as not found.
    """
    candidates = [
        node for node in graph.nodes.values()
        if (kind is None or node.kind is kind)
        and (vehicle_type is None or node.serves(vehicle_type))
    ]
    if not candidates:
        return None

    lats = np.array([n.lat for n in candidates])
    lngs = np.array([n.lng for n in candidates])
    distances = vectorized_haversine(lat, lng, lats, lngs)
    best = int(np.argmin(distances))
    distance_km = float(distances[best])
    if max_distance_km is not None and distance_km > max_distance_km:
        return None
    return candidates[best], distance_km
