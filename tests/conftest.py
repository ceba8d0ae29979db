"""Shared pytest fixtures for Ghost Trail tests.

The default trail (four waypoints around Kralingen, Rotterdam) is used
throughout. Neighbouring waypoints are roughly 90-200 m apart, far outside
the 25 m proximity radius.
"""

import pytest

from ghosttrail.config import DEFAULT_WAYPOINTS
from ghosttrail.logger import Logger
from ghosttrail.models import PositionFix
from ghosttrail.trail import TrailProgress


def fix_at(waypoint, timestamp=None, accuracy=5.0, dlat=0.0, dlon=0.0) -> PositionFix:
    """Position fix on (or offset from) a waypoint"""
    return PositionFix(
        latitude=waypoint.latitude + dlat,
        longitude=waypoint.longitude + dlon,
        accuracy=accuracy,
        timestamp=timestamp,
    )


class FakeAudio:
    """Collects announcements instead of speaking them"""

    def __init__(self):
        self.spoken: list[str] = []

    def speak(self, text: str):
        self.spoken.append(text)


class ListReader:
    """Reader returning queued items, then None"""

    def __init__(self, items, status="fake OK"):
        self.items = list(items)
        self.status = status
        self.stopped = False

    def read(self):
        if not self.items:
            return None
        return self.items.pop(0)

    def is_finished(self):
        return not self.items

    def get_status(self):
        return self.status

    def stop(self):
        self.stopped = True


@pytest.fixture
def waypoints():
    return DEFAULT_WAYPOINTS


@pytest.fixture
def trail(waypoints) -> TrailProgress:
    return TrailProgress(waypoints)


@pytest.fixture
def started_trail(trail) -> TrailProgress:
    trail.start()
    return trail


@pytest.fixture
def quiet_logger(tmp_path):
    logger = Logger(str(tmp_path / "game.log"), echo=False)
    yield logger
    logger.close()


@pytest.fixture
def fake_audio():
    return FakeAudio()
