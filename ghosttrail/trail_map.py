"""Trail overview map.

Usage:
    python -m ghosttrail.trail_map [--waypoints trail.json] [--trace trace.json] [--output map.html]
"""

import argparse
from pathlib import Path
from typing import Optional

import folium
from folium import plugins

from .config import load_waypoints
from .gps import load_trace
from .models import InvalidCoordinate, PositionFix, TrailSnapshot
from .trail import TrailProgress

STATE_COLORS = {
    "visited": "green",
    "current": "orange",
    "pending": "gray",
}

STATE_ICONS = {
    "visited": "ok",
    "current": "star",
    "pending": "flag",
}


def create_trail_map(
    snapshot: TrailSnapshot,
    fix: Optional[PositionFix] = None,
    trace: Optional[list[dict]] = None,
    radius: float = 25,
) -> folium.Map:
    """Map of all waypoints styled by state, plus the player and a recorded trace"""
    lats = [w.latitude for w in snapshot.waypoints]
    lons = [w.longitude for w in snapshot.waypoints]
    center_lat = sum(lats) / len(lats)
    center_lon = sum(lons) / len(lons)

    m = folium.Map(location=[center_lat, center_lon], zoom_start=17, tiles="CartoDB positron")
    folium.TileLayer("OpenStreetMap", name="OpenStreetMap").add_to(m)
    folium.TileLayer("CartoDB dark_matter", name="Dark Mode").add_to(m)

    waypoint_layer = folium.FeatureGroup(name="Waypoints", show=True)

    folium.PolyLine(
        [[w.latitude, w.longitude] for w in snapshot.waypoints],
        weight=3,
        color="#a855f7",
        opacity=0.7,
        dash_array="6 6",
    ).add_to(waypoint_layer)

    for i, waypoint in enumerate(snapshot.waypoints):
        state = snapshot.waypoint_state(i)
        popup_text = f"""
            <b>{i + 1}. {waypoint.name}</b><br>
            {waypoint.latitude:.5f}, {waypoint.longitude:.5f}<br>
            <i>{state}</i>
        """
        folium.Circle(
            [waypoint.latitude, waypoint.longitude],
            radius=radius,
            color=STATE_COLORS[state],
            weight=1,
            fill=True,
            fill_opacity=0.1,
        ).add_to(waypoint_layer)
        folium.Marker(
            [waypoint.latitude, waypoint.longitude],
            popup=folium.Popup(popup_text, max_width=200),
            tooltip=waypoint.name,
            icon=folium.Icon(color=STATE_COLORS[state], icon=STATE_ICONS[state]),
        ).add_to(waypoint_layer)

    waypoint_layer.add_to(m)

    if trace:
        path_coords = [
            [e["location"]["latitude"], e["location"]["longitude"]]
            for e in trace if e.get("location")
        ]
        if path_coords:
            trace_layer = folium.FeatureGroup(name="GPS trace", show=True)
            folium.PolyLine(
                path_coords,
                weight=4,
                color="blue",
                opacity=0.6,
                popup="GPS Trace"
            ).add_to(trace_layer)
            trace_layer.add_to(m)

    if fix:
        folium.Marker(
            [fix.latitude, fix.longitude],
            popup="You",
            icon=folium.Icon(color="red", icon="user"),
        ).add_to(m)
        if fix.accuracy:
            folium.Circle(
                [fix.latitude, fix.longitude],
                radius=fix.accuracy,
                color="red",
                weight=1,
                fill=True,
                fill_opacity=0.1,
            ).add_to(m)

    folium.LayerControl().add_to(m)

    visited_count = sum(snapshot.visited)
    legend_html = f"""
    <div style="
        position: fixed;
        bottom: 50px;
        left: 50px;
        z-index: 1000;
        background-color: white;
        padding: 10px;
        border-radius: 5px;
        border: 2px solid grey;
        font-family: Arial;
        font-size: 12px;
    ">
        <b>Ghost Trail</b><br>
        <hr style="margin: 5px 0">
        <span style="color: green;">&#9679;</span> Visited<br>
        <span style="color: orange;">&#9679;</span> Current target<br>
        <span style="color: gray;">&#9679;</span> Pending<br>
        <hr style="margin: 5px 0">
        Found: {visited_count}/{len(snapshot.waypoints)}
    </div>
    """
    m.get_root().html.add_child(folium.Element(legend_html))

    plugins.Fullscreen().add_to(m)

    return m


def main():
    parser = argparse.ArgumentParser(description="Render the trail overview map")
    parser.add_argument("--waypoints", metavar="FILE",
                        help="Waypoint JSON file (default: built-in trail)")
    parser.add_argument("--trace", metavar="FILE",
                        help="Recorded GPS trace to overlay and replay")
    parser.add_argument("--output", "-o", default="ghosttrail_map.html",
                        help="Output HTML file (default: ghosttrail_map.html)")
    args = parser.parse_args()

    trail = TrailProgress(load_waypoints(args.waypoints))
    trace = None
    last_fix = None
    if args.trace:
        if not Path(args.trace).exists():
            print(f"Trace file not found: {args.trace}")
            return 1
        trace = load_trace(args.trace)
        # Replay the trace so the markers show how far it got
        trail.start()
        for entry in trace:
            if entry.get("location"):
                fix = PositionFix.from_dict(entry["location"])
                try:
                    trail.evaluate(fix)
                except InvalidCoordinate as e:
                    print(f"Skipping fix: {e}")
                    continue
                last_fix = fix

    m = create_trail_map(trail.snapshot(), fix=last_fix, trace=trace, radius=trail.radius)
    m.save(args.output)
    print(f"Map saved to: {args.output}")
    print(f"Open in browser: file://{Path(args.output).absolute()}")
    return 0


if __name__ == "__main__":
    exit(main())
