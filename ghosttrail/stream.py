"""Sensor streams and the single-threaded event dispatcher.

Position and heading sources each poll on their own background thread and
only enqueue what they read. The game loop drains the queue with
Dispatcher.dispatch_pending(), so subscribers run one event at a time on the
loop's thread.
"""

import queue
import threading
import time
from collections import defaultdict
from typing import Any, Callable, Optional

from .config import CONFIG
from .models import GhostTrailError


POSITION = "position"
HEADING = "heading"


def error_kind(kind: str) -> str:
    return f"{kind}_error"


class Dispatcher:
    """Queue of (kind, payload) events delivered to subscribers on the consumer's thread"""

    def __init__(self):
        self.events: queue.Queue = queue.Queue()
        self.subscribers: dict[str, list[Callable[[Any], None]]] = defaultdict(list)

    def subscribe(self, kind: str, callback: Callable[[Any], None]):
        self.subscribers[kind].append(callback)

    def publish(self, kind: str, payload: Any):
        """Enqueue an event. Safe to call from any thread."""
        self.events.put((kind, payload))

    def dispatch_pending(self, timeout: float = 0.0) -> int:
        """Deliver queued events in order. Returns the number delivered.

        Waits up to timeout seconds for the first event, then drains whatever
        else is already queued without waiting.
        """
        delivered = 0
        block = timeout > 0
        while True:
            try:
                if block and delivered == 0:
                    kind, payload = self.events.get(timeout=timeout)
                else:
                    kind, payload = self.events.get_nowait()
            except queue.Empty:
                return delivered
            for callback in list(self.subscribers.get(kind, ())):
                callback(payload)
            delivered += 1


class SensorStream:
    """Polls a reader on a background thread and publishes what it reads.

    A reader has read() -> item or None, and optionally get_status(),
    get_poll_interval(), is_finished() and stop()/close().
    """

    def __init__(self, reader, dispatcher: Dispatcher, kind: str,
                 interval: float, unavailable: type = GhostTrailError,
                 max_failures: Optional[int] = None):
        self.reader = reader
        self.dispatcher = dispatcher
        self.kind = kind
        self.interval = interval
        self.unavailable = unavailable
        self.max_failures = max_failures or CONFIG["max_consecutive_failures"]
        self.consecutive_failures = 0
        self.error_reported = False
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.is_running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._run, name=f"{self.kind}-stream", daemon=True
        )
        self._thread.start()

    def stop(self, join_timeout: float = 2.0):
        """Stop polling and release the reader. Other streams are unaffected."""
        self._stop_event.set()
        if self._thread and self._thread is not threading.current_thread():
            self._thread.join(timeout=join_timeout)
        self._thread = None
        for name in ("stop", "close"):
            release = getattr(self.reader, name, None)
            if callable(release):
                release()
                break

    def reset_failures(self):
        self.consecutive_failures = 0
        self.error_reported = False

    def restart(self):
        """Stop, forget earlier failures and poll again"""
        self.stop()
        self.reset_failures()
        self.start()

    def is_finished(self) -> bool:
        finished = getattr(self.reader, "is_finished", None)
        return bool(finished()) if callable(finished) else False

    def poll_once(self):
        """Read once and publish the item, or count a failure"""
        item = self.reader.read()
        if item is not None:
            self.reset_failures()
            self.dispatcher.publish(self.kind, item)
            return item

        self.consecutive_failures += 1
        if self.consecutive_failures >= self.max_failures and not self.error_reported:
            status = self.reader.get_status() if hasattr(self.reader, "get_status") else "unknown"
            self.error_reported = True
            self.dispatcher.publish(error_kind(self.kind), self.unavailable(status))
        return None

    def _next_interval(self) -> float:
        poll_interval = getattr(self.reader, "get_poll_interval", None)
        if callable(poll_interval):
            return poll_interval()
        return self.interval

    def _run(self):
        while not self._stop_event.is_set():
            if self.is_finished():
                break
            started = time.monotonic()
            self.poll_once()
            wait = self._next_interval() - (time.monotonic() - started)
            if wait > 0:
                self._stop_event.wait(wait)
