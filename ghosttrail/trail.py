"""Trail progress state machine.

Holds the ordered waypoint list, the index of the current target and a visited
flag per waypoint. Create one TrailProgress per game, call start() once, then
evaluate() on every position fix:

    trail = TrailProgress(waypoints)
    trail.start()

    # Inside the position loop:
    result = trail.evaluate(fix)
    if result.advanced:
        ...

All mutation goes through evaluate(), start() and reset().
"""

from typing import Optional, Sequence

from .config import CONFIG
from .geo import haversine_distance, validate_coordinate
from .models import (
    EvaluationResult,
    EvaluationStatus,
    PositionFix,
    ProgressSummary,
    TrailSnapshot,
    Waypoint,
)


class TrailProgress:
    """Progress of one player through an ordered list of waypoints"""

    def __init__(self, waypoints: Sequence[Waypoint], radius: Optional[float] = None):
        if not waypoints:
            raise ValueError("A trail needs at least one waypoint")
        self._waypoints: tuple[Waypoint, ...] = tuple(waypoints)
        self._radius = CONFIG["proximity_radius"] if radius is None else radius
        self._init_state()

    def _init_state(self):
        self._visited: list[bool] = [False] * len(self._waypoints)
        self._current_index = 0
        self._started = False
        self._completed = False

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self):
        """Begin the hunt. Calling it again has no effect."""
        self._started = True

    def reset(self):
        """Discard all progress and return to the construction-time state"""
        self._init_state()

    def evaluate(self, fix: PositionFix) -> EvaluationResult:
        """Check a position fix against the current target and advance on arrival.

        Does nothing before start() or after completion. Out-of-range
        coordinates raise InvalidCoordinate before any state is touched.
        """
        if not self._started or self._completed:
            return EvaluationResult.no_change(completed=self._completed)

        validate_coordinate(fix.latitude, fix.longitude)

        target = self._waypoints[self._current_index]
        distance = haversine_distance(
            fix.latitude, fix.longitude, target.latitude, target.longitude
        )
        if distance > self._radius:
            return EvaluationResult.no_change(distance=distance)

        self._visited[self._current_index] = True
        if self._current_index == len(self._waypoints) - 1:
            self._completed = True
        else:
            self._current_index += 1

        return EvaluationResult(
            status=EvaluationStatus.ADVANCED,
            waypoint=target,
            completed=self._completed,
            distance=distance,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    @property
    def waypoints(self) -> tuple[Waypoint, ...]:
        return self._waypoints

    @property
    def visited(self) -> tuple[bool, ...]:
        return tuple(self._visited)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def started(self) -> bool:
        return self._started

    @property
    def completed(self) -> bool:
        return self._completed

    @property
    def radius(self) -> float:
        return self._radius

    @property
    def current_target(self) -> Optional[Waypoint]:
        if self._completed:
            return None
        return self._waypoints[self._current_index]

    def progress_summary(self) -> ProgressSummary:
        target = self.current_target
        return ProgressSummary(
            visited_count=sum(self._visited),
            total=len(self._waypoints),
            current_target_name=target.name if target else None,
        )

    def snapshot(self) -> TrailSnapshot:
        return TrailSnapshot(
            waypoints=self._waypoints,
            visited=tuple(self._visited),
            current_index=self._current_index,
            started=self._started,
            completed=self._completed,
        )

    def waypoint_state(self, index: int) -> str:
        return self.snapshot().waypoint_state(index)
