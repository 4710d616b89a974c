from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from ..utils.fare_utils import apply_discount
from .graph_models import Ride, TravelMode, VehicleType, Walk

LngLat = Tuple[float, float]


class RouteTag(str, Enum):
    FASTEST = 'FASTEST'
    CHEAPEST = 'CHEAPEST'
    SHORTEST = 'SHORTEST'


@dataclass(frozen=True)
class Location:
    lat: float
    lng: float
    name: str = ''

    @property
    def lnglat(self) -> LngLat:
        return (self.lng, self.lat)

    def to_dict(self) -> Dict[str, Any]:
        return {'lat': self.lat, 'lng': self.lng, 'name': self.name}


@dataclass(frozen=True)
class WalkingLeg:
    """What a directions provider returns for two points."""
    geometry: List[LngLat]
    distance_m: float
    duration_s: float
    instructions: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RouteSegment:
    """One contiguous leg of an itinerary, walked or ridden on a single vehicle."""
    mode: TravelMode
    start: Location
    end: Location
    distance_km: float
    duration_min: float
    geometry: List[LngLat]
    fare: Optional[float] = None
    instructions: List[str] = field(default_factory=list)
    route_id: Optional[str] = None

    @property
    def kind(self) -> str:
        return self.mode.kind

    @property
    def vehicle_type(self) -> Optional[VehicleType]:
        return self.mode.vehicle_type if isinstance(self.mode, Ride) else None

    @property
    def is_walk(self) -> bool:
        return isinstance(self.mode, Walk)

    def to_dict(self) -> Dict[str, Any]:
        out = {
            'type': self.kind,
            'start': self.start.to_dict(),
            'end': self.end.to_dict(),
            'distance_km': self.distance_km,
            'duration_mins': self.duration_min,
            'geometry': {'type': 'LineString', 'coordinates': [list(c) for c in self.geometry]},
            'instructions': list(self.instructions),
        }
        if self.vehicle_type is not None:
            out['vehicleType'] = self.vehicle_type.value
        if self.fare is not None:
            out['fare'] = self.fare
        return out


def count_transfers(segments: List[RouteSegment]) -> int:
    """Boardings minus one.

    A boarding starts whenever a ride follows a walk, or follows a ride on a
    different route.
    """
    boardings = 0
    previous: Optional[RouteSegment] = None
    for seg in segments:
        if not seg.is_walk:
            if previous is None or previous.is_walk or previous.route_id != seg.route_id:
                boardings += 1
        previous = seg
    return max(0, boardings - 1)


@dataclass(frozen=True)
class CalculatedRoute:
    id: str
    tag: RouteTag
    segments: List[RouteSegment]
    total_distance_km: float
    total_duration_min: float
    total_fare: float
    vehicle_types: frozenset
    transfer_count: int
    total_fare_discounted: Optional[float] = None

    @classmethod
    def from_segments(cls, route_id: str, tag: RouteTag, segments: List[RouteSegment],
                      discount_rate: float = 0.0) -> 'CalculatedRoute':
        """Build a route whose totals are the sums over ``segments``."""
        if not segments:
            raise ValueError("A route needs at least one segment")
        total_fare = sum(s.fare or 0.0 for s in segments)
        return cls(
            id=route_id,
            tag=tag,
            segments=list(segments),
            total_distance_km=sum(s.distance_km for s in segments),
            total_duration_min=sum(s.duration_min for s in segments),
            total_fare=total_fare,
            vehicle_types=frozenset(s.vehicle_type for s in segments if s.vehicle_type is not None),
            transfer_count=count_transfers(segments),
            total_fare_discounted=apply_discount(total_fare, discount_rate),
        )

    @property
    def coordinates(self) -> List[LngLat]:
        """All segment coordinates concatenated in order."""
        return [c for seg in self.segments for c in seg.geometry]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'tag': self.tag.value,
            'segments': [s.to_dict() for s in self.segments],
            'totalDistance_km': self.total_distance_km,
            'totalDuration_mins': self.total_duration_min,
            'totalFare': self.total_fare,
            'totalFareDiscounted': self.total_fare_discounted,
            'vehicleTypes': sorted(v.value for v in self.vehicle_types),
            'transferCount': self.transfer_count,
        }


@dataclass
class RouteCalculationResult:
    routes: List[CalculatedRoute] = field(default_factory=list)
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'routes': [r.to_dict() for r in self.routes],
            'error': self.error,
            'error_code': self.error_code,
        }
