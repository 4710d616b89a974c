"""
Live tracking of a selected itinerary.

``advance_navigation`` is a pure transition: it takes the current state and
one GPS fix and returns the next state (or the same object when the fix is
dropped).  ``NavigationTracker`` owns the state for one traveller, supplies
the clock and makes sure a computation started for a superseded session is
never committed.
"""

import itertools
import logging
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable, List, Optional, Tuple

from ..config import config
from ..models.navigation import INACTIVE_STATE, ActiveNavigationState, NavigationStatus, PositionFix
from ..models.route_segments import CalculatedRoute, LngLat, Location, RouteSegment
from ..utils.geo_utils import (
    distance_to_polyline_km, haversine_distance, nearest_vertex_index, polyline_length_km,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrackerSettings:
    waypoint_threshold_m: float = 50.0
    off_route_threshold_m: float = 200.0
    throttle_ms: int = 3000
    discount_rate: float = 0.0


def locate_segment(segments: List[RouteSegment], vertex_index: int) -> Tuple[int, int]:
    """Map an index into the concatenated polyline to (segment index, offset inside it)."""
    start = 0
    for i, seg in enumerate(segments):
        count = len(seg.geometry)
        if vertex_index < start + count:
            return i, vertex_index - start
        start += count
    last = len(segments) - 1
    return last, max(0, len(segments[last].geometry) - 1)


def step_for_offset(segment: RouteSegment, offset: int) -> int:
    """Instruction index matching how far along the segment's coordinates we are."""
    steps = len(segment.instructions)
    points = len(segment.geometry)
    if steps == 0 or points == 0:
        return 0
    return max(0, min(steps - 1, int(offset / points * steps)))


def trim_route(route: CalculatedRoute, segment_index: int, offset: int, position: LngLat,
               discount_rate: float = 0.0) -> CalculatedRoute:
    """The part of ``route`` still ahead of ``position``.

    The current segment is cut at the nearest vertex and prefixed with the
    position; its distance and duration shrink by the share of polyline left.
    """
    current = route.segments[segment_index]
    ahead = list(current.geometry[offset:])
    full_km = polyline_length_km(current.geometry)
    if full_km > 0:
        ratio = polyline_length_km(ahead) / full_km
    else:
        ratio = 1.0 if offset == 0 else 0.0

    trimmed = replace(
        current,
        start=Location(lat=position[1], lng=position[0], name='Current location'),
        geometry=[position] + ahead,
        distance_km=current.distance_km * ratio,
        duration_min=current.duration_min * ratio,
        instructions=list(current.instructions[step_for_offset(current, offset):]),
    )
    segments = [trimmed] + list(route.segments[segment_index + 1:])
    return CalculatedRoute.from_segments(route.id, route.tag, segments, discount_rate)


def start_navigation(route: CalculatedRoute, session_id: int) -> ActiveNavigationState:
    return ActiveNavigationState(
        route=route,
        traveled_path=[],
        remaining_route=route,
        status=NavigationStatus.TRACKING,
        session_id=session_id,
    )


def advance_navigation(state: ActiveNavigationState, fix: PositionFix, settings: TrackerSettings,
                       now_ms: int) -> ActiveNavigationState:
    """Apply one GPS fix.

    The unchanged ``state`` comes back when tracking is not active, the
    throttle window has not elapsed, the fix is older than the last accepted
    one, or the fix is more than ``off_route_threshold_m`` from the polyline
    and not yet within ``waypoint_threshold_m`` of the destination.  None of
    these are errors.
    """
    if not state.is_active or state.route is None:
        return state
    if state.last_update_ms is not None and now_ms - state.last_update_ms < settings.throttle_ms:
        return state
    if state.last_fix_timestamp_ms is not None and fix.timestamp_ms < state.last_fix_timestamp_ms:
        logger.debug(f"Dropping out-of-order fix at {fix.timestamp_ms}")
        return state

    route = state.route
    coords = route.coordinates
    if not coords:
        return state

    final_lng, final_lat = coords[-1]
    arrived = haversine_distance(fix.lat, fix.lng, final_lat, final_lng) * 1000.0 < settings.waypoint_threshold_m

    off_route_m = distance_to_polyline_km(coords, fix.lat, fix.lng) * 1000.0
    if off_route_m > settings.off_route_threshold_m and not arrived:
        logger.debug(f"Fix {fix.lat:.6f},{fix.lng:.6f} is {off_route_m:.0f} m off route, ignoring")
        return state

    position = (fix.lng, fix.lat)
    nearest = nearest_vertex_index(coords, fix.lat, fix.lng)
    segment_index, offset = locate_segment(route.segments, nearest)

    if arrived:
        logger.info(f"Arrived at destination of {route.id}")

    return replace(
        state,
        current_segment_index=len(route.segments) - 1 if arrived else segment_index,
        current_step_index=step_for_offset(route.segments[segment_index], offset),
        traveled_path=list(coords[:nearest + 1]) + [position],
        remaining_route=trim_route(route, segment_index, offset, position, settings.discount_rate),
        status=NavigationStatus.COMPLETED if arrived else NavigationStatus.TRACKING,
        last_update_ms=now_ms,
        last_fix_timestamp_ms=fix.timestamp_ms,
    )


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class NavigationTracker:
    """Holds the navigation state of one traveller."""

    def __init__(self, settings: Optional[TrackerSettings] = None,
                 clock: Callable[[], int] = _wall_clock_ms):
        self.settings = settings or TrackerSettings()
        self._clock = clock
        self._lock = threading.Lock()
        self._sessions = itertools.count(1)
        self._state = INACTIVE_STATE

    @classmethod
    def from_config(cls, cfg=None, clock: Callable[[], int] = _wall_clock_ms) -> 'NavigationTracker':
        cfg = cfg or config
        return cls(TrackerSettings(**cfg.get_tracker_config()), clock=clock)

    @property
    def state(self) -> ActiveNavigationState:
        return self._state

    def begin_navigation(self, route: CalculatedRoute) -> ActiveNavigationState:
        with self._lock:
            self._state = start_navigation(route, next(self._sessions))
            logger.info(f"Navigation started on {route.id} (session {self._state.session_id})")
            return self._state

    def on_position_update(self, fix: PositionFix) -> ActiveNavigationState:
        with self._lock:
            snapshot = self._state
        updated = advance_navigation(snapshot, fix, self.settings, self._clock())
        with self._lock:
            if self._state is not snapshot:
                # cancelled, restarted or already advanced while we computed
                logger.debug(f"Discarding update computed for session {snapshot.session_id}")
                return self._state
            self._state = updated
            return updated

    def end_navigation(self) -> ActiveNavigationState:
        with self._lock:
            self._state = replace(INACTIVE_STATE, session_id=next(self._sessions))
            return self._state
