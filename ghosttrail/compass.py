"""Heading sources: device compass, fixed heading and browser orientation.

Every source answers the same capability questions so the game never has to
know which platform it runs on:

    is_supported()          can this source produce headings at all
    needs_authorization()   does the user have to grant access first
    request_authorization() ask for access, returns True when granted
"""

import json
import queue
import subprocess
from enum import Enum
from typing import Optional

from .config import CONFIG
from .models import HeadingSample


class Authorization(Enum):
    UNKNOWN = "unknown"
    NOT_REQUIRED = "not_required"
    GRANTED = "granted"
    DENIED = "denied"


class TermuxCompass:
    """Compass heading via termux-sensor"""

    def __init__(self, sensor: Optional[str] = None, timeout: int = 5):
        self.sensor = sensor or CONFIG["heading_sensor"]
        self.timeout = timeout
        self.authorization = Authorization.NOT_REQUIRED
        self.consecutive_failures = 0
        self.last_sample: Optional[HeadingSample] = None
        self._supported: Optional[bool] = None

    def is_supported(self) -> bool:
        if self._supported is None:
            self._supported = self.read() is not None
        return self._supported

    def needs_authorization(self) -> bool:
        return False

    def request_authorization(self) -> bool:
        return self.is_supported()

    def read(self) -> Optional[HeadingSample]:
        try:
            result = subprocess.run(
                ["termux-sensor", "-s", self.sensor, "-n", "1"],
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except (subprocess.TimeoutExpired, FileNotFoundError):
            self.consecutive_failures += 1
            return None

        if result.returncode != 0 or not result.stdout.strip():
            self.consecutive_failures += 1
            return None

        try:
            data = json.loads(result.stdout)
            # {"<sensor name>": {"values": [azimuth, pitch, roll]}}
            reading = next(iter(data.values()))
            sample = HeadingSample.create(reading["values"][0])
        except (json.JSONDecodeError, StopIteration, KeyError, IndexError,
                TypeError, AttributeError, ValueError):
            self.consecutive_failures += 1
            return None

        self.last_sample = sample
        self.consecutive_failures = 0
        return sample

    def stop(self):
        # termux-sensor -n 1 releases the sensor itself; make sure nothing lingers
        try:
            subprocess.run(["termux-sensor", "-c"], capture_output=True, timeout=self.timeout)
        except (subprocess.TimeoutExpired, FileNotFoundError):
            pass

    def get_status(self) -> str:
        if self.consecutive_failures == 0:
            return "Compass OK"
        return f"Compass: {self.consecutive_failures} consecutive failures"


class FixedHeading:
    """Constant heading, used when no compass is available"""

    def __init__(self, heading: Optional[float] = None):
        if heading is None:
            heading = CONFIG["default_heading"]
        self.sample = HeadingSample.create(heading, accuracy=0)
        self.authorization = Authorization.NOT_REQUIRED

    def is_supported(self) -> bool:
        return True

    def needs_authorization(self) -> bool:
        return False

    def request_authorization(self) -> bool:
        return True

    def read(self) -> HeadingSample:
        return self.sample

    def get_status(self) -> str:
        return f"Fixed heading {self.sample.heading:.0f}°"


class WebSocketHeading:
    """Heading from the debug GUI: browser device orientation or the manual dial.

    Browsers on some phones only deliver orientation events after the user
    grants access, so this source always asks before producing samples.
    """

    def __init__(self, debug_server, timeout: Optional[float] = None):
        self.server = debug_server
        self.timeout = timeout or CONFIG["heading_permission_timeout"]
        self.authorization = Authorization.UNKNOWN
        self.last_sample: Optional[HeadingSample] = None

    def is_supported(self) -> bool:
        return self.server is not None

    def needs_authorization(self) -> bool:
        return self.authorization not in (Authorization.GRANTED, Authorization.NOT_REQUIRED)

    def request_authorization(self) -> bool:
        """Use the answer the browser sent with its start command, or ask and wait"""
        granted = self.server.pending_heading_permission()
        if granted is None:
            self.server.request_heading_permission()
            granted = self.server.get_heading_permission(timeout=self.timeout)
        self.authorization = Authorization.GRANTED if granted else Authorization.DENIED
        if granted and self.last_sample is None:
            self.last_sample = HeadingSample.create(CONFIG["default_heading"])
        return bool(granted)

    def read(self) -> Optional[HeadingSample]:
        if self.authorization is not Authorization.GRANTED:
            return None
        try:
            sample = self.server.heading_queue.get_nowait()
        except queue.Empty:
            # No new event since last read; keep the latest heading
            return self.last_sample
        self.last_sample = sample
        return sample

    def get_status(self) -> str:
        return f"Browser heading ({self.authorization.value})"
