"""Ghost Trail - GPS scavenger hunt along an ordered trail of waypoints."""

from .config import CONFIG, DEFAULT_WAYPOINTS, load_waypoints, save_waypoints
from .models import (
    Waypoint,
    PositionFix,
    HeadingSample,
    EvaluationStatus,
    EvaluationResult,
    ProgressSummary,
    TrailSnapshot,
    GhostTrailError,
    PositionUnavailable,
    HeadingUnavailable,
    InvalidCoordinate,
)
from .geo import (
    haversine_distance,
    bearing_between,
    is_within_radius,
    validate_coordinate,
    bearing_to_compass,
    relative_direction,
    retry_with_backoff,
)
from .trail import TrailProgress
from .stream import Dispatcher, SensorStream
from .logger import Logger
from .gps import GPS, FixedPosition, GPSRecorder, GPSPlayback
from .compass import Authorization, TermuxCompass, FixedHeading, WebSocketHeading
from .guidance import BearingSmoother, Guidance, compute_guidance
from .audio import Audio
from .debug_gui import DebugServer, WebSocketGPS
from .app import Game

__all__ = [
    "CONFIG",
    "DEFAULT_WAYPOINTS",
    "load_waypoints",
    "save_waypoints",
    "Waypoint",
    "PositionFix",
    "HeadingSample",
    "EvaluationStatus",
    "EvaluationResult",
    "ProgressSummary",
    "TrailSnapshot",
    "GhostTrailError",
    "PositionUnavailable",
    "HeadingUnavailable",
    "InvalidCoordinate",
    "haversine_distance",
    "bearing_between",
    "is_within_radius",
    "validate_coordinate",
    "bearing_to_compass",
    "relative_direction",
    "retry_with_backoff",
    "TrailProgress",
    "Dispatcher",
    "SensorStream",
    "Logger",
    "GPS",
    "FixedPosition",
    "GPSRecorder",
    "GPSPlayback",
    "Authorization",
    "TermuxCompass",
    "FixedHeading",
    "WebSocketHeading",
    "BearingSmoother",
    "Guidance",
    "compute_guidance",
    "Audio",
    "DebugServer",
    "WebSocketGPS",
    "Game",
]
