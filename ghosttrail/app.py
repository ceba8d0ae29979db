"""Main Ghost Trail application."""

import time
from typing import Optional, Sequence

from .audio import Audio
from .compass import FixedHeading
from .config import CONFIG
from .debug_gui import DebugServer
from .geo import retry_with_backoff, validate_coordinate
from .gps import GPSRecorder
from .guidance import BearingSmoother, Guidance, compute_guidance, format_status, trail_overview
from .logger import Logger
from .models import (
    EvaluationResult,
    HeadingSample,
    HeadingUnavailable,
    InvalidCoordinate,
    PositionFix,
    PositionUnavailable,
    Waypoint,
)
from .stream import HEADING, POSITION, Dispatcher, SensorStream, error_kind
from .trail import TrailProgress

COMMAND = "command"


class Game:
    """Owns one trail and feeds it from the position and heading streams"""

    def __init__(self, waypoints: Sequence[Waypoint], position_source, heading_source=None,
                 log_path: Optional[str] = None, radius: Optional[float] = None,
                 smoothing: Optional[float] = None,
                 debug_server: Optional[DebugServer] = None,
                 logger: Optional[Logger] = None, audio=None):
        self.trail = TrailProgress(waypoints, radius)
        self.dispatcher = Dispatcher()
        self.debug_server = debug_server
        self.audio = audio or Audio()

        if debug_server:
            self.audio.callback = debug_server.send_audio
            debug_server.on_command = lambda command: self.dispatcher.publish(COMMAND, command)

        log_callback = debug_server.send_log if debug_server else None
        self.logger = logger or Logger(log_path, callback=log_callback)

        self.position_source = position_source
        self.heading_source = heading_source or FixedHeading()
        self.position_stream = SensorStream(
            position_source, self.dispatcher, POSITION,
            CONFIG["gps_poll_interval"], unavailable=PositionUnavailable,
        )
        self.heading_stream = SensorStream(
            self.heading_source, self.dispatcher, HEADING,
            CONFIG["heading_poll_interval"], unavailable=HeadingUnavailable,
        )

        self.dispatcher.subscribe(POSITION, self.handle_fix)
        self.dispatcher.subscribe(HEADING, self.handle_heading)
        self.dispatcher.subscribe(error_kind(POSITION), self.handle_position_error)
        self.dispatcher.subscribe(error_kind(HEADING), self.handle_heading_error)
        self.dispatcher.subscribe(COMMAND, self.handle_command)

        self.smoother = BearingSmoother(smoothing)
        self.current_fix: Optional[PositionFix] = None
        self.heading: float = CONFIG["default_heading"]
        self.heading_available = False
        self.position_error: Optional[str] = None
        self.position_retry_at: Optional[float] = None
        self.heading_error: Optional[str] = None

        self.last_log_update = 0
        self.game_start_time = 0

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def start(self):
        """Begin the hunt: authorize the compass if needed, then start the trail"""
        if self.trail.started:
            return
        self._start_heading()
        self.trail.start()
        self.game_start_time = time.time()
        target = self.trail.current_target
        self.logger.log("Game started", {"waypoints": len(self.trail.waypoints),
                                         "target": target.name})
        self.audio.speak(f"The hunt begins. Find {target.name}")

        # The player may already be standing on the first waypoint
        if self.current_fix:
            self._evaluate(self.current_fix)
        self.publish_state()

    def reset(self):
        """Throw away progress. The position and heading sources keep running."""
        self.trail.reset()
        self.smoother.reset()
        self.game_start_time = 0
        self.logger.log("Game reset")
        self.publish_state()

    def retry_position(self):
        """Restart the position source after it was reported unavailable"""
        self.logger.log("Retrying position source")
        self.position_error = None
        self.position_retry_at = None
        self.position_stream.restart()
        self.publish_state()

    def retry_heading(self):
        """Ask for compass access again after a denial or failure"""
        self.logger.log("Retrying compass")
        self.heading_stream.stop()
        self.heading_stream.reset_failures()
        self.heading_error = None
        self._start_heading()
        self.publish_state()

    def _start_heading(self):
        source = self.heading_source
        if source.needs_authorization():
            self.logger.log("Requesting compass access")
            if not source.request_authorization():
                self.handle_heading_error(HeadingUnavailable("compass access denied"))
                return
        elif not source.is_supported():
            self.handle_heading_error(HeadingUnavailable("compass not supported"))
            return
        self.heading_stream.start()

    # ------------------------------------------------------------------
    # Event handlers (run on the game loop thread)
    # ------------------------------------------------------------------

    def handle_fix(self, fix: PositionFix) -> Optional[EvaluationResult]:
        previous = self.current_fix
        if (previous and previous.timestamp is not None and fix.timestamp is not None
                and fix.timestamp < previous.timestamp):
            self.logger.log("Out-of-order fix", {"timestamp": fix.timestamp,
                                                 "previous": previous.timestamp})
        try:
            validate_coordinate(fix.latitude, fix.longitude)
        except InvalidCoordinate as e:
            self.logger.log("Invalid fix dropped", {"error": str(e)})
            return None

        self.current_fix = fix
        if self.position_error:
            self.logger.log("Position available again")
            self.position_error = None
            self.position_retry_at = None

        result = self._evaluate(fix)
        self.publish_state()
        return result

    def _evaluate(self, fix: PositionFix) -> EvaluationResult:
        result = self.trail.evaluate(fix)
        if result.advanced:
            self._announce_arrival(result)
        return result

    def handle_heading(self, sample: HeadingSample):
        self.heading = sample.heading
        self.heading_error = None
        if not self.heading_available:
            self.heading_available = True
            self.logger.log("Compass available", {"heading": round(sample.heading)})

    def handle_position_error(self, error: PositionUnavailable):
        self.position_error = str(error)
        self.logger.log("Position unavailable", {"status": self.position_error})
        if self.debug_server:
            print("Location access required: enable location services, then press Retry.")
        else:
            # No retry control on the console; try again on a timer
            delay = CONFIG["position_retry_interval"]
            self.position_retry_at = time.time() + delay
            print(f"Location access required: enable location services. Retrying in {delay}s.")
        self.publish_state()

    def handle_heading_error(self, error: HeadingUnavailable):
        # Still playable on distance alone
        self.heading_available = False
        self.heading_error = str(error)
        self.heading = CONFIG["default_heading"]
        self.logger.log("Heading unavailable, using default heading",
                        {"reason": str(error), "heading": self.heading})
        self.publish_state()

    def handle_command(self, command: str):
        if command == "start":
            self.start()
        elif command == "reset":
            self.reset()
        elif command == "retry":
            self.retry_position()
        elif command == "retry_heading":
            self.retry_heading()
        else:
            self.logger.log("Unknown command", {"command": command})

    # ------------------------------------------------------------------
    # Presentation
    # ------------------------------------------------------------------

    def _announce_arrival(self, result: EvaluationResult):
        summary = self.trail.progress_summary()
        data = {"waypoint": result.waypoint.name,
                "found": summary.visited_count, "total": summary.total}
        if result.completed:
            self.logger.log("Trail complete", data)
            self.audio.speak("Mystery solved. You found every location")
            return
        self.logger.log("Waypoint reached", data)
        message = f"Location found: {result.waypoint.name}. Next, {summary.current_target_name}"
        guidance = self.guidance()
        if guidance:
            message += f", {int(guidance.distance)} meters {guidance.compass}"
        self.audio.speak(message)

    def guidance(self) -> Optional[Guidance]:
        target = self.trail.current_target
        if not self.current_fix or not target:
            return None
        return compute_guidance(self.current_fix, target, self.heading, self.smoother)

    def get_state(self) -> dict:
        """Get current state as dict for logging and the debug GUI"""
        snapshot = self.trail.snapshot()
        summary = self.trail.progress_summary()
        guidance = self.guidance()
        state = {
            "trail": snapshot.to_dict(),
            "summary": summary.to_dict(),
            "overview": trail_overview(snapshot),
            "radius": self.trail.radius,
            "status": format_status(summary, guidance, self.current_fix),
            "position_status": self.position_error or self.position_source.get_status(),
            "position_error": self.position_error,
            "heading_error": self.heading_error,
            "heading_status": (f"{self.heading:.0f}°" if self.heading_available
                               else f"default {self.heading:.0f}°"),
            "guidance": guidance.to_dict() if guidance else None,
            "location": self.current_fix.to_dict() if self.current_fix else None,
        }
        return state

    def publish_state(self):
        if self.debug_server:
            self.debug_server.send_state(self.get_state())

    def periodic_update(self):
        now = time.time()
        if self.position_retry_at is not None and now >= self.position_retry_at:
            self.retry_position()
        if now - self.last_log_update >= CONFIG["log_interval"]:
            state = self.get_state()
            self.logger.log("STATE", {
                "status": state["status"],
                "visited": state["trail"]["visited"],
                "current_index": state["trail"]["current_index"],
                "location": state["location"],
            })
            self.last_log_update = now

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def wait_for_fix(self) -> bool:
        """Wait (with backoff) for the first position fix"""
        print("Finding your location...")

        def try_fix():
            self.dispatcher.dispatch_pending(timeout=1.0)
            return self.current_fix

        fix = retry_with_backoff(
            try_fix,
            max_time=CONFIG["initial_fix_max_wait"],
            initial_delay=1.0,
            max_delay=8.0,
            description="position fix"
        )
        if not fix:
            self.logger.log("Could not get a position fix")
            self.audio.speak("Location access required")
            return False

        self.logger.log("Got position fix", {"lat": fix.latitude, "lon": fix.longitude,
                                             "accuracy": fix.accuracy})
        return True

    def is_finished(self) -> bool:
        if self.trail.completed and not self.debug_server:
            return True
        if self.position_stream.is_finished() and self.dispatcher.events.empty():
            self.logger.log("Playback finished")
            return True
        return False

    def stop_streams(self):
        self.position_stream.stop()
        self.heading_stream.stop()

    def run(self, auto_start: bool = True) -> bool:
        """Run the game until the trail is complete. Returns True on completion."""
        print("\n=== Ghost Trail ===")
        print(f"Waypoints: {', '.join(w.name for w in self.trail.waypoints)}")
        if auto_start:
            print("Press Ctrl+C to stop")
        else:
            print("Press 'Begin the Hunt' in the debug GUI, Ctrl+C to stop")
        print()

        self.position_stream.start()
        try:
            if not self.wait_for_fix():
                return False
            if auto_start:
                self.start()
            self.publish_state()

            while not self.is_finished():
                self.periodic_update()
                self.dispatcher.dispatch_pending(timeout=0.5)
        except KeyboardInterrupt:
            print("\nGame interrupted")
            self.logger.log("Game interrupted by user")
        finally:
            self.stop_streams()

            if isinstance(self.position_source, GPSRecorder):
                self.position_source.save()

            summary = self.trail.progress_summary()
            duration = time.time() - self.game_start_time if self.game_start_time else 0
            self.logger.log("Game summary", {
                "found": summary.visited_count,
                "total": summary.total,
                "completed": self.trail.completed,
                "duration": duration,
            })
            print("\nGame summary:")
            print(f"  Found: {summary.visited_count}/{summary.total}")
            print(f"  Duration: {duration/60:.1f} minutes")

            if self.debug_server:
                self.debug_server.stop()
            self.logger.close()

        return self.trail.completed
