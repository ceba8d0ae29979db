"""Configuration settings for Ghost Trail."""

import json
from typing import Optional

from .geo import validate_coordinate
from .models import Waypoint, InvalidCoordinate

CONFIG = {
    "proximity_radius": 25,  # meters - reaching a waypoint within this distance advances the trail
    "gps_poll_interval": 2,  # seconds
    "gps_timeout": 15,  # seconds per termux-location call
    "heading_poll_interval": 0.5,  # seconds
    "heading_sensor": "orientation",  # termux-sensor name, first value is azimuth
    "heading_permission_timeout": 5,  # seconds; the browser normally answers before sending start
    "default_heading": 0,  # degrees - used when no compass is available
    "bearing_smoothing": 0.3,  # 0..1 blend per frame, 1.0 = raw bearing
    "max_consecutive_failures": 3,  # failed reads before a source is reported unavailable
    "position_retry_interval": 30,  # seconds before the console restarts a failed position source
    "initial_fix_max_wait": 30,  # seconds of retry/backoff for the first fix
    "log_interval": 10,  # seconds between state log entries
    "footstep_spacing": 10,  # meters per footstep in the guidance trail
    "max_footsteps": 8,
    "speech_rate": 150,  # words per minute for announcements
    # Debug GUI (localhost only)
    "debug_http_port": 8080,
    "debug_ws_port": 8765,
}

DEFAULT_WAYPOINTS = (
    Waypoint("Taluut", 51.95864, 4.48900),
    Waypoint("Speeltuin", 51.95943, 4.48643),
    Waypoint("Langs het water", 51.96000, 4.48902),
    Waypoint("Trappetje", 51.95953, 4.49010),
)


def parse_waypoints(data) -> tuple[Waypoint, ...]:
    """Build a validated waypoint tuple from decoded JSON.

    Accepts either {"waypoints": [...]} or a bare list of
    {"name", "latitude", "longitude"} records.
    """
    if isinstance(data, dict):
        data = data.get("waypoints")
    if not isinstance(data, list) or not data:
        raise ValueError("Waypoint file must contain a non-empty list of waypoints")

    waypoints = []
    for i, entry in enumerate(data):
        try:
            waypoint = Waypoint.from_dict(entry)
        except (KeyError, TypeError) as e:
            raise ValueError(f"Waypoint {i} is malformed: {e}") from e
        try:
            validate_coordinate(waypoint.latitude, waypoint.longitude)
        except InvalidCoordinate as e:
            raise InvalidCoordinate(f"Waypoint {i} ({waypoint.name}): {e}") from e
        waypoints.append(waypoint)
    return tuple(waypoints)


def load_waypoints(path: Optional[str] = None) -> tuple[Waypoint, ...]:
    """Load the trail from a JSON file, or the built-in trail if no path is given"""
    if not path:
        return DEFAULT_WAYPOINTS
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    return parse_waypoints(data)


def save_waypoints(waypoints, path: str):
    """Write waypoints in the format load_waypoints() reads"""
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"waypoints": [w.to_dict() for w in waypoints]}, f,
                  ensure_ascii=False, indent=2)
