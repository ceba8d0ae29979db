"""Tests for the event dispatcher and sensor streams."""

import threading
import time

from conftest import ListReader
from ghosttrail.models import HeadingUnavailable, PositionUnavailable
from ghosttrail.stream import HEADING, POSITION, Dispatcher, SensorStream, error_kind


class TestDispatcher:

    def test_delivers_in_publish_order(self) -> None:
        dispatcher = Dispatcher()
        received = []
        dispatcher.subscribe(POSITION, lambda item: received.append(("p", item)))
        dispatcher.subscribe(HEADING, lambda item: received.append(("h", item)))

        dispatcher.publish(POSITION, 1)
        dispatcher.publish(HEADING, 2)
        dispatcher.publish(POSITION, 3)

        assert dispatcher.dispatch_pending() == 3
        assert received == [("p", 1), ("h", 2), ("p", 3)]

    def test_runs_subscribers_on_consumer_thread(self) -> None:
        dispatcher = Dispatcher()
        threads = []
        dispatcher.subscribe(POSITION, lambda item: threads.append(threading.current_thread()))

        producer = threading.Thread(target=dispatcher.publish, args=(POSITION, "fix"))
        producer.start()
        producer.join()

        dispatcher.dispatch_pending(timeout=1.0)
        assert threads == [threading.current_thread()]

    def test_empty_queue(self) -> None:
        dispatcher = Dispatcher()
        assert dispatcher.dispatch_pending() == 0
        assert dispatcher.dispatch_pending(timeout=0.05) == 0

    def test_events_without_subscribers_are_dropped(self) -> None:
        dispatcher = Dispatcher()
        dispatcher.publish("unknown", 1)
        assert dispatcher.dispatch_pending() == 1


class TestSensorStream:

    def test_poll_once_publishes_item(self) -> None:
        dispatcher = Dispatcher()
        received = []
        dispatcher.subscribe(POSITION, received.append)
        stream = SensorStream(ListReader(["a", "b"]), dispatcher, POSITION, interval=1)

        assert stream.poll_once() == "a"
        dispatcher.dispatch_pending()
        assert received == ["a"]

    def test_reports_unavailable_once_after_max_failures(self) -> None:
        dispatcher = Dispatcher()
        errors = []
        dispatcher.subscribe(error_kind(POSITION), errors.append)
        stream = SensorStream(ListReader([], status="GPS: no fix"), dispatcher, POSITION,
                              interval=1, unavailable=PositionUnavailable, max_failures=3)

        for _ in range(5):
            stream.poll_once()
        dispatcher.dispatch_pending()

        assert len(errors) == 1
        assert isinstance(errors[0], PositionUnavailable)
        assert str(errors[0]) == "GPS: no fix"

    def test_failure_count_resets_after_success(self) -> None:
        dispatcher = Dispatcher()
        errors = []
        dispatcher.subscribe(error_kind(HEADING), errors.append)
        reader = ListReader([])
        stream = SensorStream(reader, dispatcher, HEADING, interval=1,
                              unavailable=HeadingUnavailable, max_failures=2)

        stream.poll_once()
        reader.items.append(42)
        stream.poll_once()
        stream.poll_once()
        dispatcher.dispatch_pending()

        assert stream.consecutive_failures == 1
        assert errors == []

    def test_background_thread_and_stop(self) -> None:
        dispatcher = Dispatcher()
        received = []
        dispatcher.subscribe(POSITION, received.append)
        reader = ListReader([1, 2, 3])
        stream = SensorStream(reader, dispatcher, POSITION, interval=0.01)

        stream.start()
        deadline = time.monotonic() + 2.0
        while len(received) < 3 and time.monotonic() < deadline:
            dispatcher.dispatch_pending(timeout=0.05)
        stream.stop()

        assert received == [1, 2, 3]
        assert not stream.is_running
        assert reader.stopped
        assert stream.is_finished()

    def test_stopping_one_stream_leaves_the_other_running(self) -> None:
        dispatcher = Dispatcher()
        position = SensorStream(ListReader([1] * 1000), dispatcher, POSITION, interval=0.01)
        heading = SensorStream(ListReader([2] * 1000), dispatcher, HEADING, interval=0.01)
        position.start()
        heading.start()
        try:
            position.stop()
            assert not position.is_running
            assert heading.is_running
        finally:
            heading.stop()

    def test_reset_failures_allows_a_new_report(self) -> None:
        dispatcher = Dispatcher()
        errors = []
        dispatcher.subscribe(error_kind(POSITION), errors.append)
        stream = SensorStream(ListReader([]), dispatcher, POSITION, interval=60,
                              unavailable=PositionUnavailable, max_failures=2)
        stream.poll_once()
        stream.poll_once()
        assert stream.error_reported

        stream.reset_failures()
        assert stream.consecutive_failures == 0
        assert not stream.error_reported

        stream.poll_once()
        stream.poll_once()
        dispatcher.dispatch_pending()
        assert len(errors) == 2

    def test_restart_polls_again(self) -> None:
        dispatcher = Dispatcher()
        received = []
        dispatcher.subscribe(POSITION, received.append)
        reader = ListReader([])
        stream = SensorStream(reader, dispatcher, POSITION, interval=60)
        stream.poll_once()

        reader.items.append("fix")
        stream.restart()
        dispatcher.dispatch_pending(timeout=2.0)
        stream.stop()

        assert reader.stopped
        assert received == ["fix"]
        assert stream.consecutive_failures == 0
