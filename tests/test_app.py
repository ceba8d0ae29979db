"""Tests for the game: trail, streams and announcements wired together."""

import json
import time

import pytest

from conftest import ListReader, fix_at
from ghosttrail.app import Game
from ghosttrail.compass import Authorization, FixedHeading, WebSocketHeading
from ghosttrail.debug_gui import DebugServer
from ghosttrail.gps import FixedPosition
from ghosttrail.models import (
    EvaluationStatus,
    HeadingSample,
    HeadingUnavailable,
    PositionFix,
    PositionUnavailable,
)


class AskingHeading:
    """Heading source that needs the user's permission every time"""

    def __init__(self, grant=False):
        self.grant = grant
        self.requests = 0

    def is_supported(self):
        return True

    def needs_authorization(self):
        return True

    def request_authorization(self):
        self.requests += 1
        return self.grant

    def read(self):
        return HeadingSample.create(90) if self.grant else None


@pytest.fixture
def make_game(waypoints, quiet_logger, fake_audio):
    games = []

    def _make(position=None, heading=None, trail=None, debug_server=None):
        position = position or FixedPosition(51.96, 4.50)
        game = Game(trail or waypoints, position, heading or FixedHeading(),
                    debug_server=debug_server, logger=quiet_logger, audio=fake_audio)
        games.append(game)
        return game

    yield _make
    for game in games:
        game.stop_streams()


def log_text(game) -> str:
    with open(game.logger.log_path, encoding="utf-8") as f:
        return f.read()


class TestStartAndReset:

    def test_start_announces_first_target(self, make_game, fake_audio) -> None:
        game = make_game()
        game.start()

        assert game.trail.started
        assert fake_audio.spoken == ["The hunt begins. Find Taluut"]
        assert "Game started" in log_text(game)

    def test_start_twice_is_harmless(self, make_game, fake_audio) -> None:
        game = make_game()
        game.start()
        game.start()
        assert len(fake_audio.spoken) == 1

    def test_fixes_before_start_do_not_count(self, make_game, waypoints) -> None:
        game = make_game()
        result = game.handle_fix(fix_at(waypoints[0]))

        assert result.status is EvaluationStatus.NO_CHANGE
        assert game.trail.visited == (False, False, False, False)
        assert game.current_fix is not None

    def test_start_while_standing_on_first_waypoint(self, make_game, waypoints,
                                                    fake_audio) -> None:
        game = make_game()
        game.handle_fix(fix_at(waypoints[0]))
        game.start()

        assert game.trail.visited[0]
        assert fake_audio.spoken[-1].startswith("Location found: Taluut. Next, Speeltuin")

    def test_reset_keeps_streams_and_clears_progress(self, make_game, waypoints) -> None:
        game = make_game()
        game.start()
        game.handle_fix(fix_at(waypoints[0]))
        game.reset()

        assert not game.trail.started
        assert game.trail.visited == (False, False, False, False)
        assert game.heading_stream.is_running
        assert "Game reset" in log_text(game)


class TestWalkingTheTrail:

    def test_announces_each_arrival_and_completion(self, make_game, waypoints,
                                                   fake_audio) -> None:
        game = make_game()
        game.start()

        for i, waypoint in enumerate(waypoints):
            result = game.handle_fix(fix_at(waypoint, timestamp=float(i)))
            assert result.advanced

        assert game.trail.completed
        assert fake_audio.spoken[1].startswith("Location found: Taluut. Next, Speeltuin, ")
        assert fake_audio.spoken[1].endswith("meters northwest")
        assert fake_audio.spoken[-1] == "Mystery solved. You found every location"
        assert game.is_finished()
        assert game.guidance() is None

        text = log_text(game)
        assert text.count("Waypoint reached") == 3
        assert "Trail complete" in text

    def test_skipping_ahead_does_not_count(self, make_game, waypoints) -> None:
        game = make_game()
        game.start()
        result = game.handle_fix(fix_at(waypoints[2]))

        assert result.status is EvaluationStatus.NO_CHANGE
        assert game.trail.current_index == 0

    def test_invalid_fix_is_dropped(self, make_game, waypoints) -> None:
        game = make_game()
        game.start()
        game.handle_fix(fix_at(waypoints[0]))
        before = game.current_fix

        assert game.handle_fix(PositionFix(latitude=123.0, longitude=4.4)) is None
        assert game.current_fix is before
        assert game.trail.current_index == 1
        assert "Invalid fix dropped" in log_text(game)

    def test_out_of_order_fix_is_logged_and_still_evaluated(self, make_game,
                                                            waypoints) -> None:
        game = make_game()
        game.start()
        game.handle_fix(fix_at(waypoints[1], timestamp=10.0))
        result = game.handle_fix(fix_at(waypoints[0], timestamp=5.0))

        assert result.advanced
        assert "Out-of-order fix" in log_text(game)


class TestSensorEvents:

    def test_heading_updates_guidance(self, make_game, waypoints) -> None:
        game = make_game()
        game.start()
        game.handle_fix(fix_at(waypoints[0]))
        bearing = game.guidance().bearing

        game.handle_heading(HeadingSample.create(bearing))
        assert game.heading_available
        assert game.guidance().direction == "straight"

    def test_denied_compass_falls_back_to_default_heading(self, make_game) -> None:
        game = make_game(heading=AskingHeading(grant=False))
        game.start()

        assert game.trail.started
        assert not game.heading_available
        assert game.heading == 0
        assert not game.heading_stream.is_running
        assert "Heading unavailable" in log_text(game)

    def test_heading_error_resets_heading(self, make_game) -> None:
        game = make_game()
        game.handle_heading(HeadingSample.create(120))
        game.handle_heading_error(HeadingUnavailable("Compass: 3 consecutive failures"))

        assert game.heading == 0
        assert not game.heading_available

    def test_position_error_shows_until_next_fix(self, make_game, waypoints) -> None:
        game = make_game()
        game.handle_position_error(PositionUnavailable("GPS: 3 consecutive failures"))
        assert game.get_state()["position_status"] == "GPS: 3 consecutive failures"

        game.handle_fix(fix_at(waypoints[0]))
        assert game.position_error is None

    def test_commands(self, make_game) -> None:
        game = make_game()
        game.handle_command("start")
        assert game.trail.started
        game.handle_command("reset")
        assert not game.trail.started
        game.handle_command("dance")
        assert "Unknown command" in log_text(game)

    def test_commands_arrive_through_dispatcher(self, make_game) -> None:
        game = make_game()
        game.dispatcher.publish("command", "start")
        game.dispatcher.dispatch_pending()
        assert game.trail.started


class TestRetry:

    def test_retry_restarts_failed_position_source(self, make_game, waypoints) -> None:
        reader = ListReader([], status="GPS: no fix")
        game = make_game(position=reader)
        for _ in range(3):
            game.position_stream.poll_once()
        game.dispatcher.dispatch_pending()
        assert game.position_error == "GPS: no fix"
        assert game.get_state()["position_error"] == "GPS: no fix"

        fix = fix_at(waypoints[0])
        reader.items.append(fix)
        game.handle_command("retry")

        assert game.position_error is None
        assert reader.stopped
        game.dispatcher.dispatch_pending(timeout=2.0)
        assert game.current_fix == fix
        assert game.position_stream.consecutive_failures == 0
        assert not game.position_stream.error_reported
        assert "Retrying position source" in log_text(game)

    def test_console_retries_on_a_timer(self, make_game, capsys) -> None:
        game = make_game(position=ListReader([], status="GPS: no fix"))
        game.handle_position_error(PositionUnavailable("GPS: no fix"))

        assert game.position_retry_at > time.time()
        assert "Retrying in" in capsys.readouterr().out

        game.position_retry_at = 0
        game.periodic_update()
        assert game.position_error is None
        assert game.position_retry_at is None
        assert "Retrying position source" in log_text(game)

    def test_retry_heading_after_denial(self, make_game) -> None:
        source = AskingHeading(grant=False)
        game = make_game(heading=source)
        game.start()
        assert game.get_state()["heading_error"] == "compass access denied"

        source.grant = True
        game.handle_command("retry_heading")

        assert source.requests == 2
        assert game.heading_error is None
        assert game.heading_stream.is_running
        game.dispatcher.dispatch_pending(timeout=2.0)
        assert game.heading_available
        assert game.heading == 90.0


class TestDebugGuiCommands:

    def test_start_uses_permission_sent_with_it(self, make_game) -> None:
        server = DebugServer(open_browser=False)
        source = WebSocketHeading(server)
        game = make_game(heading=source, debug_server=server)

        server.handle_message(json.dumps({"type": "heading_permission", "data": {"granted": True}}))
        server.handle_message(json.dumps({"type": "command", "data": {"command": "start"}}))
        started = time.monotonic()
        game.dispatcher.dispatch_pending()

        assert time.monotonic() - started < 1.0
        assert game.trail.started
        assert source.authorization is Authorization.GRANTED
        assert game.heading_stream.is_running

    def test_retry_button(self, make_game, capsys) -> None:
        server = DebugServer(open_browser=False)
        game = make_game(position=ListReader([], status="GPS: no fix"), debug_server=server)
        game.handle_position_error(PositionUnavailable("GPS: no fix"))
        assert "press Retry" in capsys.readouterr().out
        assert game.position_retry_at is None

        server.handle_message(json.dumps({"type": "command", "data": {"command": "retry"}}))
        game.dispatcher.dispatch_pending()
        assert game.position_error is None


class TestState:

    def test_state_shape(self, make_game, waypoints) -> None:
        game = make_game()
        game.start()
        game.handle_fix(fix_at(waypoints[0], accuracy=4.0))
        state = game.get_state()

        assert set(state) == {
            "trail", "summary", "overview", "radius", "status", "position_status",
            "position_error", "heading_error", "heading_status", "guidance", "location",
        }
        assert state["summary"] == {"visited_count": 1, "total": 4,
                                    "current_target_name": "Speeltuin"}
        assert [w["state"] for w in state["overview"]] == [
            "visited", "current", "pending", "pending"
        ]
        assert state["status"].startswith("Next: Speeltuin | 1/4 found | ")
        assert state["heading_status"] == "default 0°"
        assert state["location"]["accuracy"] == 4.0


class TestRun:

    def test_single_waypoint_trail_completes(self, make_game, waypoints) -> None:
        first = waypoints[0]
        game = make_game(position=FixedPosition(first.latitude, first.longitude),
                         trail=waypoints[:1])

        assert game.run() is True
        assert not game.position_stream.is_running
        assert not game.heading_stream.is_running
