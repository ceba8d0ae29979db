"""Geographic utility functions."""

import math
import time

from .models import InvalidCoordinate

EARTH_RADIUS = 6371000  # meters (mean radius)


def validate_coordinate(lat: float, lon: float):
    """Raise InvalidCoordinate unless lat is in [-90, 90] and lon in [-180, 180]"""
    try:
        lat = float(lat)
        lon = float(lon)
    except (TypeError, ValueError):
        raise InvalidCoordinate(f"Not a coordinate: ({lat!r}, {lon!r})")
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidCoordinate(f"Non-finite coordinate: ({lat}, {lon})")
    if abs(lat) > 90:
        raise InvalidCoordinate(f"Latitude out of range: {lat}")
    if abs(lon) > 180:
        raise InvalidCoordinate(f"Longitude out of range: {lon}")


def normalize_angle(degrees: float) -> float:
    """Wrap an angle into [0, 360)"""
    angle = degrees % 360
    # -1e-15 % 360 rounds to 360.0
    if angle >= 360:
        angle = 0.0
    return angle + 0.0  # drop negative zero


def signed_angle(degrees: float) -> float:
    """Wrap an angle into [-180, 180)"""
    return (degrees + 180) % 360 - 180


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points in meters using Haversine formula"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    # Rounding can push a a hair past 1 for antipodal points
    a = min(1.0, a)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return EARTH_RADIUS * c


def bearing_between(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate initial bearing from point 1 to point 2 in degrees [0, 360), 0=North.

    Identical points have no defined bearing; atan2(0, 0) gives 0.0, which is
    returned as-is.
    """
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)

    x = math.sin(delta_lambda) * math.cos(phi2)
    y = (math.cos(phi1) * math.sin(phi2) -
         math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda))

    return normalize_angle(math.degrees(math.atan2(x, y)))


def is_within_radius(lat1: float, lon1: float, lat2: float, lon2: float,
                     radius: float) -> bool:
    """True if the two points are at most radius meters apart"""
    return haversine_distance(lat1, lon1, lat2, lon2) <= radius


def retry_with_backoff(func, max_time: float = 30.0, initial_delay: float = 1.0,
                       max_delay: float = 8.0, description: str = "operation",
                       sleep=time.sleep, clock=time.time):
    """Retry a function with exponential backoff.

    Args:
        func: Function that returns a truthy value on success, falsy on failure
        max_time: Maximum total time to retry (seconds)
        initial_delay: Initial delay between retries (seconds)
        max_delay: Maximum delay between retries (seconds)
        description: Description for logging
        sleep, clock: Injectable for tests

    Returns:
        The result of func() on success, or None if all retries failed
    """
    start_time = clock()
    delay = initial_delay
    attempt = 1

    while True:
        result = func()
        if result:
            return result

        elapsed = clock() - start_time
        if elapsed >= max_time:
            print(f"Failed to complete {description} after {elapsed:.1f}s ({attempt} attempts)")
            return None

        remaining = max_time - elapsed
        sleep_time = min(delay, remaining, max_delay)
        if sleep_time > 0:
            print(f"Retrying {description} in {sleep_time:.1f}s (attempt {attempt})...")
            sleep(sleep_time)

        delay = min(delay * 2, max_delay)
        attempt += 1


def bearing_to_compass(bearing: float) -> str:
    """Convert bearing to compass direction"""
    directions = ["north", "northeast", "east", "southeast",
                  "south", "southwest", "west", "northwest"]
    index = round(bearing / 45) % 8
    return directions[index]


def relative_direction(from_bearing: float, to_bearing: float) -> str:
    """Get relative direction (left, right, straight, etc.)"""
    diff = (to_bearing - from_bearing + 360) % 360

    if diff < 30 or diff > 330:
        return "straight"
    elif 30 <= diff < 60:
        return "slight right"
    elif 60 <= diff < 120:
        return "right"
    elif 120 <= diff < 150:
        return "sharp right"
    elif 150 <= diff < 210:
        return "turn around"
    elif 210 <= diff < 240:
        return "sharp left"
    elif 240 <= diff < 300:
        return "left"
    else:
        return "slight left"
