"""Data classes and errors for Ghost Trail."""

from dataclasses import dataclass, asdict
from enum import Enum
from typing import Optional


class GhostTrailError(Exception):
    """Base class for Ghost Trail errors"""


class PositionUnavailable(GhostTrailError):
    """The position source cannot produce a fix (denied, no sensor, timeout)"""


class HeadingUnavailable(GhostTrailError):
    """The heading source is unsupported or its authorization was denied"""


class InvalidCoordinate(GhostTrailError, ValueError):
    """A latitude/longitude outside the valid ranges"""


@dataclass(frozen=True)
class Waypoint:
    """A fixed real-world target on the trail"""
    name: str
    latitude: float
    longitude: float

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "Waypoint":
        return cls(
            name=str(d["name"]),
            latitude=float(d["latitude"]),
            longitude=float(d["longitude"]),
        )


@dataclass
class PositionFix:
    latitude: float
    longitude: float
    accuracy: Optional[float] = None  # meters
    timestamp: Optional[float] = None  # epoch seconds

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "PositionFix":
        return cls(**d)


@dataclass
class HeadingSample:
    heading: float  # degrees clockwise from north, [0, 360)
    accuracy: Optional[float] = None

    @classmethod
    def create(cls, heading: float, accuracy: Optional[float] = None) -> "HeadingSample":
        """Build a sample with the heading wrapped into [0, 360)"""
        heading = float(heading) % 360
        if heading >= 360:
            heading = 0.0
        return cls(heading=heading, accuracy=accuracy)


class EvaluationStatus(Enum):
    NO_CHANGE = "no_change"
    ADVANCED = "advanced"


@dataclass(frozen=True)
class EvaluationResult:
    """Returned by TrailProgress.evaluate() for every position fix."""
    status: EvaluationStatus
    waypoint: Optional[Waypoint] = None   # waypoint just reached
    completed: bool = False
    distance: Optional[float] = None      # meters to the target that was checked

    @property
    def advanced(self) -> bool:
        return self.status is EvaluationStatus.ADVANCED

    @classmethod
    def no_change(cls, distance: Optional[float] = None,
                  completed: bool = False) -> "EvaluationResult":
        return cls(status=EvaluationStatus.NO_CHANGE, completed=completed, distance=distance)


@dataclass(frozen=True)
class ProgressSummary:
    visited_count: int
    total: int
    current_target_name: Optional[str]

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TrailSnapshot:
    """Read-only copy of the trail state for presentation"""
    waypoints: tuple[Waypoint, ...]
    visited: tuple[bool, ...]
    current_index: int
    started: bool
    completed: bool

    def waypoint_state(self, index: int) -> str:
        """Overview styling for a waypoint: visited, current or pending"""
        if self.visited[index]:
            return "visited"
        if index == self.current_index and not self.completed:
            return "current"
        return "pending"

    def to_dict(self) -> dict:
        return {
            "waypoints": [w.to_dict() for w in self.waypoints],
            "visited": list(self.visited),
            "current_index": self.current_index,
            "started": self.started,
            "completed": self.completed,
        }
