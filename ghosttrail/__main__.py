#!/usr/bin/env python3
"""
Ghost Trail - GPS scavenger hunt

Usage:
    python -m ghosttrail [options]

Options:
    --waypoints FILE  Trail definition (JSON); default is the built-in trail
    --radius M        Proximity radius in meters (default: 25)
    --record FILE     Record GPS trace to JSON file for debugging
    --playback FILE   Playback GPS trace from JSON file
    --speed FACTOR    Playback speed multiplier (default: 1.0)
    --lat LAT         Fixed latitude (for testing without GPS)
    --lon LON         Fixed longitude (for testing without GPS)
    --heading DEG     Fixed compass heading instead of the device compass
    --no-compass      Play without a compass (heading defaults to north)
    --smoothing F     Compass arrow smoothing factor, 1.0 = raw (default: 0.3)
    --debug-gui       Run with web-based visual debugger (click map to move)
    --map FILE        Write the trail overview map to an HTML file and exit
    --mute            Do not speak announcements
"""

import argparse
import sys
from pathlib import Path

from .app import Game
from .audio import Audio
from .compass import FixedHeading, TermuxCompass, WebSocketHeading
from .config import CONFIG, load_waypoints
from .debug_gui import DebugServer, WebSocketGPS
from .gps import GPS, FixedPosition, GPSPlayback, GPSRecorder
from .logger import default_log_path
from .models import GhostTrailError, PositionFix


def main():
    parser = argparse.ArgumentParser(
        description="Ghost Trail - GPS scavenger hunt"
    )
    parser.add_argument("--waypoints", metavar="FILE",
                        help="Trail definition JSON file (default: built-in trail)")
    parser.add_argument("--radius", type=float, default=CONFIG["proximity_radius"],
                        help="Proximity radius in meters (default: %(default)s)")
    parser.add_argument("--record", metavar="FILE",
                        help="Record GPS trace to JSON file")
    parser.add_argument("--playback", metavar="FILE",
                        help="Playback GPS trace from JSON file")
    parser.add_argument("--speed", type=float, default=1.0,
                        help="Playback speed multiplier (default: 1.0)")
    parser.add_argument("--log", metavar="FILE",
                        help="Log file path (default: ghosttrail_TIMESTAMP.log)")
    parser.add_argument("--lat", type=float, metavar="LAT",
                        help="Fixed latitude (for testing without GPS)")
    parser.add_argument("--lon", type=float, metavar="LON",
                        help="Fixed longitude (for testing without GPS)")
    parser.add_argument("--heading", type=float, metavar="DEG",
                        help="Fixed compass heading in degrees")
    parser.add_argument("--no-compass", action="store_true",
                        help="Play without a compass")
    parser.add_argument("--smoothing", type=float, default=CONFIG["bearing_smoothing"],
                        help="Compass arrow smoothing factor, 1.0 = raw (default: %(default)s)")
    parser.add_argument("--debug-gui", action="store_true",
                        help="Run with web-based visual debugger")
    parser.add_argument("--map", metavar="FILE",
                        help="Write the trail overview map to an HTML file and exit")
    parser.add_argument("--mute", action="store_true",
                        help="Do not speak announcements")

    args = parser.parse_args()

    if (args.lat is None) != (args.lon is None):
        parser.error("--lat and --lon must be used together")
    if args.debug_gui and args.lat is None and not args.playback:
        parser.error("--debug-gui requires --lat and --lon")
    if args.playback and args.record:
        parser.error("--playback and --record cannot be combined")
    if args.radius <= 0:
        parser.error("--radius must be positive")
    if not 0 < args.smoothing <= 1:
        parser.error("--smoothing must be in (0, 1]")
    if args.heading is not None and args.no_compass:
        parser.error("--heading and --no-compass cannot be combined")

    try:
        waypoints = load_waypoints(args.waypoints)
    except (OSError, ValueError) as e:
        print(f"Could not load waypoints: {e}")
        sys.exit(1)

    # Map only: early exit
    if args.map:
        from .trail import TrailProgress
        from .trail_map import create_trail_map
        trail = TrailProgress(waypoints, args.radius)
        create_trail_map(trail.snapshot(), radius=trail.radius).save(args.map)
        print(f"Map saved to: {args.map}")
        return

    debug_server = None
    if args.debug_gui:
        debug_server = DebugServer()
        debug_server.start()

    # Position source
    if args.playback:
        if not Path(args.playback).exists():
            print(f"Playback file not found: {args.playback}")
            sys.exit(1)
        position_source = GPSPlayback(args.playback, args.speed)
    elif debug_server:
        start = PositionFix(args.lat, args.lon, 0) if args.lat is not None else None
        position_source = WebSocketGPS(debug_server, start=start)
    elif args.lat is not None:
        position_source = FixedPosition(args.lat, args.lon)
    else:
        position_source = GPS()
    if args.record:
        position_source = GPSRecorder(position_source, args.record)

    # Heading source
    if args.heading is not None:
        heading_source = FixedHeading(args.heading)
    elif args.no_compass:
        heading_source = FixedHeading()
    elif debug_server:
        heading_source = WebSocketHeading(debug_server)
    else:
        heading_source = TermuxCompass()

    try:
        game = Game(
            waypoints,
            position_source,
            heading_source,
            log_path=args.log or default_log_path(),
            radius=args.radius,
            smoothing=args.smoothing,
            debug_server=debug_server,
            audio=Audio(muted=args.mute),
        )
    except GhostTrailError as e:
        print(f"Could not start: {e}")
        sys.exit(1)

    completed = game.run(auto_start=not args.debug_gui)
    sys.exit(0 if completed else 1)


if __name__ == "__main__":
    main()
