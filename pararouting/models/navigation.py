from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from .route_segments import CalculatedRoute, LngLat


class NavigationStatus(str, Enum):
    INACTIVE = 'inactive'
    TRACKING = 'tracking'
    COMPLETED = 'completed'


@dataclass(frozen=True)
class PositionFix:
    lat: float
    lng: float
    timestamp_ms: int


@dataclass(frozen=True)
class ActiveNavigationState:
    route: Optional[CalculatedRoute] = None
    current_segment_index: int = 0
    current_step_index: int = 0
    traveled_path: Optional[List[LngLat]] = None
    remaining_route: Optional[CalculatedRoute] = None
    status: NavigationStatus = NavigationStatus.INACTIVE
    session_id: int = 0
    last_update_ms: Optional[int] = None
    last_fix_timestamp_ms: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.status is NavigationStatus.TRACKING


INACTIVE_STATE = ActiveNavigationState()
