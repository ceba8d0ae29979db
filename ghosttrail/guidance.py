"""Directional guidance shown to the player.

Everything here is presentation: the trail engine never sees headings or
smoothed bearings.
"""

from dataclasses import dataclass, asdict
from typing import Optional

from .config import CONFIG
from .geo import (
    bearing_between,
    bearing_to_compass,
    haversine_distance,
    normalize_angle,
    relative_direction,
    signed_angle,
)
from .models import PositionFix, ProgressSummary, TrailSnapshot, Waypoint


class BearingSmoother:
    """Exponential blending of the arrow angle across frames.

    factor 1.0 shows the raw angle, smaller values damp compass jitter. The
    blend always takes the short way round the 0/360 boundary.
    """

    def __init__(self, factor: Optional[float] = None):
        factor = CONFIG["bearing_smoothing"] if factor is None else factor
        if not 0 < factor <= 1:
            raise ValueError(f"Smoothing factor must be in (0, 1], got {factor}")
        self.factor = factor
        self.value: Optional[float] = None

    def update(self, angle: float) -> float:
        if self.value is None:
            self.value = normalize_angle(angle)
        else:
            diff = signed_angle(angle - self.value)
            self.value = normalize_angle(self.value + diff * self.factor)
        return self.value

    def reset(self):
        self.value = None


@dataclass
class Guidance:
    distance: float  # meters to the target
    bearing: float  # degrees from north to the target
    heading: float  # device heading used
    relative: float  # arrow rotation, bearing minus heading (smoothed)
    compass: str
    direction: str
    footsteps: int

    def to_dict(self) -> dict:
        return asdict(self)


def footstep_count(distance: float) -> int:
    """Number of footsteps drawn towards the target"""
    steps = int(distance // CONFIG["footstep_spacing"])
    return max(0, min(steps, CONFIG["max_footsteps"]))


def compute_guidance(fix: PositionFix, target: Waypoint, heading: Optional[float] = None,
                     smoother: Optional[BearingSmoother] = None) -> Guidance:
    """Distance and arrow direction from the player's fix to the target"""
    if heading is None:
        heading = CONFIG["default_heading"]
    distance = haversine_distance(fix.latitude, fix.longitude, target.latitude, target.longitude)
    bearing = bearing_between(fix.latitude, fix.longitude, target.latitude, target.longitude)
    relative = normalize_angle(bearing - heading)
    if smoother:
        relative = smoother.update(relative)
    return Guidance(
        distance=distance,
        bearing=bearing,
        heading=heading,
        relative=relative,
        compass=bearing_to_compass(bearing),
        direction=relative_direction(heading, bearing),
        footsteps=footstep_count(distance),
    )


def progress_fraction(summary: ProgressSummary) -> float:
    if not summary.total:
        return 0.0
    return summary.visited_count / summary.total


def format_status(summary: ProgressSummary, guidance: Optional[Guidance] = None,
                  fix: Optional[PositionFix] = None) -> str:
    """One status line: next destination, locations found, distance, GPS accuracy"""
    if summary.current_target_name is None:
        parts = [f"Trail complete, {summary.visited_count}/{summary.total} found"]
    else:
        parts = [f"Next: {summary.current_target_name}",
                 f"{summary.visited_count}/{summary.total} found"]
    if guidance and summary.current_target_name is not None:
        parts.append(f"{guidance.distance:.0f}m {guidance.compass} ({guidance.direction})")
    if fix and fix.accuracy is not None:
        parts.append(f"GPS ±{fix.accuracy:.0f}m")
    return " | ".join(parts)


def trail_overview(snapshot: TrailSnapshot) -> list[dict]:
    """Per-waypoint entries for the overview: name, coordinates and state"""
    return [
        {
            "index": i,
            "name": waypoint.name,
            "lat": waypoint.latitude,
            "lon": waypoint.longitude,
            "state": snapshot.waypoint_state(i),
        }
        for i, waypoint in enumerate(snapshot.waypoints)
    ]
