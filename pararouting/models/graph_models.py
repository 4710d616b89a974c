"""Typed graph snapshot used by the pathfinder and the zone resolver."""

from dataclasses import dataclass, field
from enum import Enum
from typing import ClassVar, Dict, Iterator, List, Optional, Set, Tuple, Union

import networkx as nx
from shapely.geometry import Point, Polygon


class VehicleType(str, Enum):
    JEEPNEY = 'jeepney'
    TRICYCLE = 'tricycle'
    E_JEEP = 'e-jeep'
    BUS = 'bus'


class NodeKind(str, Enum):
    TERMINAL = 'terminal'
    STOP = 'stop'
    VIRTUAL = 'virtual'


@dataclass(frozen=True)
class Walk:
    """Travel on foot (first/last mile or a transfer between nearby nodes)."""
    kind: ClassVar[str] = 'walk'

    @property
    def label(self) -> str:
        return 'walk'


@dataclass(frozen=True)
class Ride:
    """Travel aboard a single vehicle type."""
    vehicle_type: VehicleType
    kind: ClassVar[str] = 'ride'

    @property
    def label(self) -> str:
        return self.vehicle_type.value


TravelMode = Union[Walk, Ride]
WALK = Walk()


@dataclass(frozen=True)
class GraphNode:
    id: str
    kind: NodeKind
    lat: float
    lng: float
    name: str
    vehicle_types: frozenset = frozenset()

    @property
    def lnglat(self) -> Tuple[float, float]:
        return (self.lng, self.lat)

    def serves(self, vehicle_type: VehicleType) -> bool:
        return vehicle_type in self.vehicle_types


@dataclass(frozen=True)
class GraphEdge:
    """Directed edge; all three weights are non-negative by construction."""
    from_id: str
    to_id: str
    weight_distance_km: float
    weight_time_min: float
    weight_fare_php: float
    mode: TravelMode
    route_id: Optional[str] = None

    def __post_init__(self):
        if min(self.weight_distance_km, self.weight_time_min, self.weight_fare_php) < 0:
            raise ValueError(f"Negative edge weight on {self.from_id}->{self.to_id}")

    @property
    def is_walk(self) -> bool:
        return isinstance(self.mode, Walk)


@dataclass
class FareZone:
    """Flat-fare area; ``polygon`` is a closed ring of (lat, lng) pairs.

    Membership is boundary-inclusive: a point on the ring belongs to the zone.
    """
    id: str
    name: str
    base_fare: float
    per_km: float
    polygon: List[Tuple[float, float]]
    vehicle_type: VehicleType = VehicleType.TRICYCLE
    _shape: Polygon = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        # shapely works in (x, y) == (lng, lat)
        self._shape = Polygon([(lng, lat) for lat, lng in self.polygon])

    def contains(self, lat: float, lng: float) -> bool:
        return self._shape.covers(Point(lng, lat))


@dataclass
class TransitGraph:
    """One routable snapshot: nodes, directed (possibly parallel) edges and fare zones."""
    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    edges: List[GraphEdge] = field(default_factory=list)
    zones: List[FareZone] = field(default_factory=list)
    digraph: nx.MultiDiGraph = field(default_factory=nx.MultiDiGraph, repr=False)

    def add_node(self, node: GraphNode):
        if node.id in self.nodes:
            raise ValueError(f"Duplicate node id {node.id}")
        self.nodes[node.id] = node
        self.digraph.add_node(node.id)

    def add_edge(self, edge: GraphEdge):
        self.edges.append(edge)
        self.digraph.add_edge(edge.from_id, edge.to_id, edge=edge)

    def out_edges(self, node_id: str) -> Iterator[GraphEdge]:
        """Outgoing edges of ``node_id`` in insertion order."""
        for _, _, edge in self.digraph.out_edges(node_id, data='edge'):
            yield edge

    def vehicle_types(self) -> Set[VehicleType]:
        return {e.mode.vehicle_type for e in self.edges if isinstance(e.mode, Ride)}

    @property
    def is_empty(self) -> bool:
        return not self.nodes
