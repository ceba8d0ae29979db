"""Tests for debug GUI message routing (servers are not started)."""

import json

import pytest

from ghosttrail.debug_gui import DEBUG_GUI_HTML, DebugServer, WebSocketGPS
from ghosttrail.models import PositionFix


@pytest.fixture
def server():
    return DebugServer(open_browser=False)


def message(msg_type, **data):
    return json.dumps({"type": msg_type, "data": data})


class TestHandleMessage:

    def test_location_click(self, server) -> None:
        server.handle_message(message("location", lat=51.95864, lon=4.489))
        fix = server.get_clicked_location(timeout=0.1)
        assert (fix.latitude, fix.longitude) == (51.95864, 4.489)

    def test_heading(self, server) -> None:
        server.handle_message(message("heading", heading=-45, accuracy=10))
        sample = server.heading_queue.get_nowait()
        assert sample.heading == 315.0
        assert sample.accuracy == 10

    def test_heading_permission(self, server) -> None:
        server.handle_message(message("heading_permission", granted=True))
        assert server.get_heading_permission(timeout=0.1) is True

    def test_pending_permission_takes_latest_answer(self, server) -> None:
        assert server.pending_heading_permission() is None
        server.handle_message(message("heading_permission", granted=False))
        server.handle_message(message("heading_permission", granted=True))
        assert server.pending_heading_permission() is True
        assert server.permission_queue.empty()

    def test_permission_timeout_counts_as_denied(self, server) -> None:
        assert server.get_heading_permission(timeout=0.05) is False

    def test_command(self, server) -> None:
        commands = []
        server.on_command = commands.append
        server.handle_message(message("command", command="reset"))
        assert commands == ["reset"]

    @pytest.mark.parametrize("raw", [
        "not json",
        message("location", lat="north", lon=4.4),
        message("heading"),
        message("something_else"),
    ])
    def test_bad_messages_are_ignored(self, server, raw) -> None:
        server.handle_message(raw)
        assert server.location_queue.empty()
        assert server.heading_queue.empty()

    def test_sending_without_clients_is_a_noop(self, server) -> None:
        server.send_state({"status": "x"})
        server.send_log("hello")
        server.send_audio("hello")


class TestWebSocketGPS:

    def test_click_then_stay(self, server) -> None:
        source = WebSocketGPS(server, timeout=0.05, start=PositionFix(51.9, 4.4, 0))
        assert source.read().latitude == 51.9

        server.handle_message(message("location", lat=52.0, lon=4.5))
        assert source.read().latitude == 52.0
        assert source.read().latitude == 52.0

    def test_no_position_yet(self, server) -> None:
        source = WebSocketGPS(server, timeout=0.05)
        assert source.read() is None
        assert source.consecutive_failures == 1


def test_page_has_websocket_placeholder() -> None:
    assert "{{WS_PORT}}" in DEBUG_GUI_HTML


def test_page_offers_retry_controls() -> None:
    assert "command: 'retry'" in DEBUG_GUI_HTML
    assert "command: 'retry_heading'" in DEBUG_GUI_HTML
    assert "state.position_error" in DEBUG_GUI_HTML


def test_page_asks_for_orientation_from_start_click() -> None:
    start_handler = DEBUG_GUI_HTML.split("getElementById('start-btn').addEventListener")[1]
    start_handler = start_handler.split("});\n\n")[0]
    assert "requestHeadingPermission(" in start_handler
    assert start_handler.index("requestHeadingPermission(") < start_handler.index("command: 'start'")
