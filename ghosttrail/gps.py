"""Position sources: device GPS, recording/playback and a fixed position."""

import json
import subprocess
import time
from datetime import datetime
from typing import Optional

from .config import CONFIG
from .models import PositionFix


class GPS:
    """GPS access via Termux API"""

    def __init__(self, timeout: Optional[int] = None):
        self.timeout = timeout or CONFIG["gps_timeout"]
        self.last_fix: Optional[PositionFix] = None
        self.consecutive_failures = 0
        self.last_error: Optional[str] = None

    def _fail(self, error: str) -> None:
        self.consecutive_failures += 1
        self.last_error = error
        return None

    def read(self) -> Optional[PositionFix]:
        """Get current position using termux-location"""
        try:
            result = subprocess.run(
                ["termux-location", "-p", "gps", "-r", "once"],
                capture_output=True,
                text=True,
                timeout=self.timeout
            )
        except subprocess.TimeoutExpired:
            return self._fail("timeout")
        except FileNotFoundError:
            return self._fail("termux-location not installed")

        if result.returncode != 0:
            return self._fail(result.stderr.strip() if result.stderr else "unknown error")

        if not result.stdout or not result.stdout.strip():
            return self._fail("no output")

        try:
            data = json.loads(result.stdout)
            fix = PositionFix(
                latitude=data["latitude"],
                longitude=data["longitude"],
                accuracy=data.get("accuracy"),
                timestamp=time.time()
            )
        except (json.JSONDecodeError, KeyError, TypeError):
            return self._fail("unreadable location output")

        self.last_fix = fix
        self.consecutive_failures = 0
        self.last_error = None
        return fix

    def get_status(self) -> str:
        """Get GPS status string"""
        if self.consecutive_failures == 0:
            acc = f", accuracy {self.last_fix.accuracy:.0f}m" if self.last_fix and self.last_fix.accuracy else ""
            return f"GPS OK{acc}"
        reason = f" ({self.last_error})" if self.last_error else ""
        return f"GPS: {self.consecutive_failures} consecutive failures{reason}"


class FixedPosition:
    """Always reports the same position (testing without GPS)"""

    def __init__(self, latitude: float, longitude: float, accuracy: float = 0):
        self.latitude = latitude
        self.longitude = longitude
        self.accuracy = accuracy

    def read(self) -> PositionFix:
        return PositionFix(self.latitude, self.longitude, self.accuracy, time.time())

    def move_to(self, latitude: float, longitude: float):
        self.latitude = latitude
        self.longitude = longitude

    def get_status(self) -> str:
        return f"Fixed position {self.latitude:.5f}, {self.longitude:.5f}"


class GPSRecorder:
    """Records every position read (including failures) to a JSON trace"""

    def __init__(self, source, record_path: str):
        self.source = source
        self.record_path = record_path
        self.trace: list[dict] = []
        self.start_time = time.time()

    def read(self) -> Optional[PositionFix]:
        fix = self.source.read()

        entry = {
            "elapsed": time.time() - self.start_time,
            "timestamp": time.time(),
            "location": fix.to_dict() if fix else None,
            "status": self.get_status()
        }
        self.trace.append(entry)

        return fix

    def get_status(self) -> str:
        return self.source.get_status()

    def save(self):
        """Save trace to file"""
        with open(self.record_path, "w") as f:
            json.dump({
                "recorded_at": datetime.now().isoformat(),
                "trace": self.trace
            }, f, indent=2)
        print(f"GPS trace saved to {self.record_path} ({len(self.trace)} entries)")


def load_trace(trace_path: str) -> list[dict]:
    """Load the entries of a recorded GPS trace"""
    with open(trace_path) as f:
        data = json.load(f)
    return data["trace"]


class GPSPlayback:
    """Plays back a recorded GPS trace"""

    def __init__(self, playback_path: str, speed: float = 1.0):
        self.playback_path = playback_path
        self.speed = speed
        self.trace: list[dict] = load_trace(playback_path)
        self.index = 0
        self.last_fix: Optional[PositionFix] = None
        self.consecutive_failures = 0
        print(f"Loaded GPS trace from {playback_path} ({len(self.trace)} entries)")

    def read(self) -> Optional[PositionFix]:
        """Get next fix from trace sequentially"""
        if self.index >= len(self.trace):
            return None

        entry = self.trace[self.index]
        self.index += 1

        if entry["location"]:
            fix = PositionFix.from_dict(entry["location"])
            self.last_fix = fix
            self.consecutive_failures = 0
            return fix
        self.consecutive_failures += 1
        return None

    def get_poll_interval(self) -> float:
        """Get the interval to wait between reads based on trace timing and speed"""
        if self.index <= 0 or self.index >= len(self.trace):
            return CONFIG["gps_poll_interval"] / self.speed

        prev_elapsed = self.trace[self.index - 1].get("elapsed", 0)
        curr_elapsed = self.trace[self.index].get("elapsed", 0)
        delta = curr_elapsed - prev_elapsed

        # Clamp to a reasonable range
        interval = delta / self.speed
        return max(0.1, min(interval, 5.0))

    def is_finished(self) -> bool:
        return self.index >= len(self.trace)

    def get_status(self) -> str:
        progress = f"{self.index}/{len(self.trace)}"
        if self.consecutive_failures == 0:
            return f"Playback OK ({progress})"
        return f"Playback: {self.consecutive_failures} failures ({progress})"
