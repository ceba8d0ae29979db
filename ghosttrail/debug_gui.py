"""Debug GUI server for Ghost Trail.

Serves a Leaflet page on localhost showing the trail overview, the player,
the compass arrow and the log. Clicking the map moves the player; the browser
can also supply a heading, either from device orientation or a manual dial.
"""

import asyncio
import http.server
import json
import queue
import socketserver
import threading
import time
import webbrowser
from functools import partial
from typing import Callable, Optional

from .config import CONFIG
from .models import HeadingSample, PositionFix


# HTML template for the debug GUI
DEBUG_GUI_HTML = '''<!DOCTYPE html>
<html>
<head>
    <title>Ghost Trail Debug GUI</title>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <link rel="stylesheet" href="https://unpkg.com/leaflet@1.9.4/dist/leaflet.css" />
    <script src="https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"></script>
    <style>
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body { font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif; height: 100vh; display: flex; flex-direction: column; }
        header { background: #1e1b2e; color: white; padding: 12px 20px; display: flex; justify-content: space-between; align-items: center; }
        header h1 { font-size: 18px; font-weight: 600; }
        .status-badge { background: #22c55e; padding: 4px 12px; border-radius: 12px; font-size: 12px; }
        .status-badge.disconnected { background: #ef4444; }
        .main-content { display: flex; flex: 1; overflow: hidden; }
        #map { flex: 1; min-width: 0; }
        .debug-panel { width: 380px; background: #f8fafc; display: flex; flex-direction: column; border-left: 1px solid #e2e8f0; }
        .panel-section { padding: 16px; border-bottom: 1px solid #e2e8f0; }
        .panel-section h2 { font-size: 12px; text-transform: uppercase; color: #64748b; margin-bottom: 12px; letter-spacing: 0.5px; }
        .state-grid { display: grid; grid-template-columns: 1fr 1fr; gap: 12px; }
        .state-item { background: white; padding: 10px; border-radius: 6px; border: 1px solid #e2e8f0; }
        .state-label { font-size: 11px; color: #64748b; margin-bottom: 4px; }
        .state-value { font-size: 16px; font-weight: 600; color: #1e293b; }
        .progress { margin-top: 12px; background: #e2e8f0; border-radius: 4px; height: 8px; }
        .progress-bar { background: linear-gradient(90deg, #a855f7, #22d3ee); height: 8px; border-radius: 4px; width: 0; transition: width 0.5s; }
        .compass { position: relative; width: 120px; height: 120px; margin: 0 auto; border: 4px solid #c4b5fd; border-radius: 50%; }
        .compass .cardinal { position: absolute; font-size: 11px; font-weight: bold; color: #7c3aed; }
        #arrow { position: absolute; left: 50%; top: 50%; width: 0; height: 0; border-left: 12px solid transparent; border-right: 12px solid transparent; border-bottom: 44px solid #06b6d4; transform-origin: 50% 70%; transition: transform 0.3s; }
        .controls { display: flex; gap: 8px; margin-top: 12px; }
        .controls button { flex: 1; padding: 8px; border: none; border-radius: 6px; background: #7c3aed; color: white; cursor: pointer; }
        .controls button.secondary { background: #475569; }
        .controls button.warning { background: #dc2626; }
        .logs-section { flex: 1; display: flex; flex-direction: column; min-height: 0; }
        .logs-container { flex: 1; overflow-y: auto; padding: 12px; background: #1e293b; font-family: "SF Mono", Monaco, monospace; font-size: 12px; }
        .log-entry { color: #94a3b8; margin-bottom: 6px; line-height: 1.4; }
        .log-entry .timestamp { color: #64748b; }
        .log-entry .message { color: #e2e8f0; }
        .log-entry .data { color: #38bdf8; }
        .audio-section { background: #fef3c7; padding: 16px; }
        .audio-section h2 { color: #92400e; }
        .audio-text { font-size: 14px; color: #78350f; font-weight: 500; min-height: 20px; }
        .click-hint { position: absolute; bottom: 20px; left: 50%; transform: translateX(-50%); background: rgba(0,0,0,0.8); color: white; padding: 8px 16px; border-radius: 20px; font-size: 13px; z-index: 1000; pointer-events: none; }
        .marker-player { background: #ef4444; border: 3px solid white; border-radius: 50%; width: 16px; height: 16px; box-shadow: 0 2px 6px rgba(0,0,0,0.3); }
    </style>
</head>
<body>
    <header>
        <h1>Ghost Trail Debug GUI</h1>
        <span id="connection-status" class="status-badge disconnected">Disconnected</span>
    </header>
    <div class="main-content">
        <div id="map">
            <div class="click-hint">Click on map to set GPS location</div>
        </div>
        <div class="debug-panel">
            <div class="panel-section">
                <h2>Trail</h2>
                <div class="state-grid">
                    <div class="state-item">
                        <div class="state-label">Next Destination</div>
                        <div class="state-value" id="target-name">-</div>
                    </div>
                    <div class="state-item">
                        <div class="state-label">Locations Found</div>
                        <div class="state-value" id="found">0/0</div>
                    </div>
                    <div class="state-item">
                        <div class="state-label">Distance</div>
                        <div class="state-value" id="distance">-</div>
                    </div>
                    <div class="state-item">
                        <div class="state-label">GPS Accuracy</div>
                        <div class="state-value" id="accuracy">-</div>
                    </div>
                    <div class="state-item">
                        <div class="state-label">Position</div>
                        <div class="state-value" id="position-status">-</div>
                    </div>
                    <div class="state-item">
                        <div class="state-label">Heading</div>
                        <div class="state-value" id="heading-status">-</div>
                    </div>
                </div>
                <div class="progress"><div class="progress-bar" id="progress-bar"></div></div>
                <div class="controls">
                    <button id="start-btn">Begin the Hunt</button>
                    <button id="reset-btn" class="secondary">Reset</button>
                    <button id="retry-btn" class="warning" style="display:none">Retry GPS</button>
                </div>
            </div>
            <div class="panel-section">
                <h2>Compass</h2>
                <div class="compass">
                    <span class="cardinal" style="top:2px;left:50%;transform:translateX(-50%)">N</span>
                    <span class="cardinal" style="right:4px;top:50%;transform:translateY(-50%)">E</span>
                    <span class="cardinal" style="bottom:2px;left:50%;transform:translateX(-50%)">S</span>
                    <span class="cardinal" style="left:4px;top:50%;transform:translateY(-50%)">W</span>
                    <div id="arrow"></div>
                </div>
                <div class="controls">
                    <input type="range" id="heading-dial" min="0" max="359" value="0" style="flex:1" disabled>
                    <span id="heading-value">0&deg;</span>
                </div>
                <div class="controls">
                    <button id="compass-retry-btn" class="warning" style="display:none">Retry Compass</button>
                </div>
            </div>
            <div class="panel-section audio-section">
                <h2>Audio Prompt</h2>
                <div class="audio-text" id="audio-text">-</div>
            </div>
            <div class="panel-section logs-section">
                <h2>Logs</h2>
                <div class="logs-container" id="logs"></div>
            </div>
        </div>
    </div>
    <script>
        var map = L.map('map').setView([51.9593, 4.4886], 17);
        L.tileLayer('https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png', {
            attribution: '&copy; OpenStreetMap contributors'
        }).addTo(map);

        var ws = null;
        var waypointLayer = L.layerGroup().addTo(map);
        var playerMarker = null;
        var accuracyCircle = null;
        var fitted = false;
        var headingGranted = false;
        var stateColors = {visited: '#22c55e', current: '#f97316', pending: '#9ca3af'};
        var playerIcon = L.divIcon({className: 'marker-player', iconSize: [16, 16], iconAnchor: [8, 8]});

        function send(type, data) {
            if (ws && ws.readyState === WebSocket.OPEN) {
                ws.send(JSON.stringify({type: type, data: data}));
            }
        }

        function connect() {
            ws = new WebSocket('ws://localhost:{{WS_PORT}}');

            ws.onopen = function() {
                document.getElementById('connection-status').textContent = 'Connected';
                document.getElementById('connection-status').classList.remove('disconnected');
                addLog('Connected to game');
            };

            ws.onclose = function() {
                document.getElementById('connection-status').textContent = 'Disconnected';
                document.getElementById('connection-status').classList.add('disconnected');
                addLog('Disconnected from game');
                setTimeout(connect, 2000);
            };

            ws.onerror = function(err) {
                addLog('WebSocket error');
            };

            ws.onmessage = function(event) {
                var msg = JSON.parse(event.data);
                switch(msg.type) {
                    case 'state':
                        updateState(msg.data);
                        break;
                    case 'log':
                        addLog(msg.data.message, msg.data.data);
                        break;
                    case 'audio':
                        document.getElementById('audio-text').textContent = msg.data.text;
                        break;
                    case 'request_heading_permission':
                        answerPermissionRequest();
                        break;
                }
            };
        }

        // iOS only shows the orientation prompt from a user gesture, so this
        // runs from the button click handlers and answers before the command.
        function requestHeadingPermission(done) {
            var DOE = window.DeviceOrientationEvent;
            var finish = function(granted) {
                headingGranted = granted;
                document.getElementById('heading-dial').disabled = !granted;
                send('heading_permission', {granted: granted});
                if (done) done();
            };
            if (DOE && typeof DOE.requestPermission === 'function') {
                DOE.requestPermission().then(function(result) {
                    if (result === 'granted') {
                        window.addEventListener('deviceorientation', onOrientation);
                    }
                    finish(result === 'granted');
                }).catch(function() {
                    finish(false);
                });
            } else {
                // No permission prompt on this platform; fall back to the manual dial
                if (DOE) {
                    window.addEventListener('deviceorientation', onOrientation);
                }
                finish(true);
            }
        }

        function answerPermissionRequest() {
            var DOE = window.DeviceOrientationEvent;
            if (headingGranted || !(DOE && typeof DOE.requestPermission === 'function')) {
                requestHeadingPermission();
            } else {
                addLog('Compass access needs a tap: press Retry Compass');
                send('heading_permission', {granted: false});
            }
        }

        function onOrientation(event) {
            var heading = event.webkitCompassHeading !== undefined ? event.webkitCompassHeading : event.alpha;
            if (heading === null || heading === undefined) return;
            document.getElementById('heading-dial').value = Math.round(heading);
            document.getElementById('heading-value').innerHTML = Math.round(heading) + '&deg;';
            send('heading', {heading: heading, accuracy: event.webkitCompassAccuracy || 15});
        }

        function updateState(state) {
            var summary = state.summary || {};
            document.getElementById('target-name').textContent = summary.current_target_name || (state.trail && state.trail.completed ? 'Done!' : '-');
            document.getElementById('found').textContent = (summary.visited_count || 0) + '/' + (summary.total || 0);
            document.getElementById('position-status').textContent = state.position_status || '-';
            document.getElementById('heading-status').textContent = state.heading_status || '-';
            document.getElementById('retry-btn').style.display = state.position_error ? '' : 'none';
            document.getElementById('compass-retry-btn').style.display = state.heading_error ? '' : 'none';
            if (summary.total) {
                document.getElementById('progress-bar').style.width = (100 * summary.visited_count / summary.total) + '%';
            }

            if (state.guidance) {
                document.getElementById('distance').textContent = Math.round(state.guidance.distance) + ' m';
                document.getElementById('arrow').style.transform = 'translate(-50%, -70%) rotate(' + state.guidance.relative + 'deg)';
            } else {
                document.getElementById('distance').textContent = '-';
            }

            if (state.location) {
                var pos = [state.location.latitude, state.location.longitude];
                document.getElementById('accuracy').textContent = state.location.accuracy !== null ? '\\u00b1' + Math.round(state.location.accuracy) + ' m' : '-';
                if (playerMarker) {
                    playerMarker.setLatLng(pos);
                } else {
                    playerMarker = L.marker(pos, {icon: playerIcon}).addTo(map).bindPopup('You');
                }
                if (accuracyCircle) {
                    accuracyCircle.setLatLng(pos).setRadius(state.location.accuracy || 0);
                } else {
                    accuracyCircle = L.circle(pos, {radius: state.location.accuracy || 0, weight: 1, fillOpacity: 0.1}).addTo(map);
                }
            }

            waypointLayer.clearLayers();
            var coords = [];
            (state.overview || []).forEach(function(wp) {
                coords.push([wp.lat, wp.lon]);
                L.circle([wp.lat, wp.lon], {radius: state.radius || 25, color: stateColors[wp.state], weight: 1, fillOpacity: 0.1}).addTo(waypointLayer);
                L.circleMarker([wp.lat, wp.lon], {
                    radius: wp.state === 'current' ? 10 : 7,
                    fillColor: stateColors[wp.state],
                    color: '#ffffff',
                    weight: 2,
                    fillOpacity: 1
                }).addTo(waypointLayer).bindPopup('<b>' + (wp.index + 1) + '. ' + wp.name + '</b><br>' + wp.state);
            });
            if (coords.length > 1) {
                L.polyline(coords, {color: '#a855f7', weight: 2, dashArray: '6 6'}).addTo(waypointLayer);
            }
            if (!fitted && coords.length > 0) {
                map.fitBounds(L.latLngBounds(coords), {padding: [50, 50]});
                fitted = true;
            }
        }

        function addLog(message, data) {
            var logs = document.getElementById('logs');
            var entry = document.createElement('div');
            entry.className = 'log-entry';

            var timestamp = new Date().toLocaleTimeString();
            var html = '<span class="timestamp">[' + timestamp + ']</span> <span class="message">' + message + '</span>';
            if (data) {
                html += ' <span class="data">' + JSON.stringify(data) + '</span>';
            }
            entry.innerHTML = html;

            logs.appendChild(entry);
            logs.scrollTop = logs.scrollHeight;

            while (logs.children.length > 100) {
                logs.removeChild(logs.firstChild);
            }
        }

        map.on('click', function(e) {
            send('location', {lat: e.latlng.lat, lon: e.latlng.lng});
            addLog('Clicked location: ' + e.latlng.lat.toFixed(5) + ', ' + e.latlng.lng.toFixed(5));
        });

        document.getElementById('heading-dial').addEventListener('input', function(e) {
            var heading = parseInt(e.target.value, 10);
            document.getElementById('heading-value').innerHTML = heading + '&deg;';
            send('heading', {heading: heading, accuracy: 0});
        });

        document.getElementById('start-btn').addEventListener('click', function() {
            requestHeadingPermission(function() {
                send('command', {command: 'start'});
            });
        });

        document.getElementById('retry-btn').addEventListener('click', function() {
            send('command', {command: 'retry'});
        });

        document.getElementById('compass-retry-btn').addEventListener('click', function() {
            requestHeadingPermission(function() {
                send('command', {command: 'retry_heading'});
            });
        });

        document.getElementById('reset-btn').addEventListener('click', function() {
            send('command', {command: 'reset'});
        });

        connect();
    </script>
</body>
</html>'''


class DebugServer:
    """HTTP and WebSocket server for debug GUI"""

    def __init__(self, http_port: Optional[int] = None, ws_port: Optional[int] = None,
                 open_browser: bool = True):
        self.http_port = http_port or CONFIG["debug_http_port"]
        self.ws_port = ws_port or CONFIG["debug_ws_port"]
        self.open_browser = open_browser
        self.location_queue: queue.Queue = queue.Queue()
        self.heading_queue: queue.Queue = queue.Queue()
        self.permission_queue: queue.Queue = queue.Queue()
        self.on_command: Optional[Callable[[str], None]] = None
        self.http_thread = None
        self.ws_thread = None
        self.ws_loop = None
        self.connected_clients: set = set()
        self._running = False

    def start(self):
        """Start HTTP and WebSocket servers in background threads"""
        self._running = True

        self.http_thread = threading.Thread(target=self._run_http_server, daemon=True)
        self.http_thread.start()

        self.ws_thread = threading.Thread(target=self._run_ws_server, daemon=True)
        self.ws_thread.start()

        # Give servers time to start
        time.sleep(0.5)

        url = f"http://localhost:{self.http_port}"
        print(f"Debug GUI available at: {url}")
        if self.open_browser:
            webbrowser.open(url)

    def _run_http_server(self):
        """Run the HTTP server for serving the GUI"""
        handler = partial(_DebugHTTPHandler, self.ws_port)
        socketserver.TCPServer.allow_reuse_address = True
        with socketserver.TCPServer(("localhost", self.http_port), handler) as httpd:
            httpd.timeout = 0.5
            while self._running:
                httpd.handle_request()

    def handle_message(self, message: str):
        """Route one message from the browser"""
        try:
            msg = json.loads(message)
        except json.JSONDecodeError:
            return
        msg_type = msg.get("type")
        data = msg.get("data") or {}
        try:
            if msg_type == "location":
                self.location_queue.put(PositionFix(
                    latitude=float(data["lat"]),
                    longitude=float(data["lon"]),
                    accuracy=0,
                    timestamp=time.time()
                ))
            elif msg_type == "heading":
                self.heading_queue.put(HeadingSample.create(
                    float(data["heading"]), data.get("accuracy")
                ))
            elif msg_type == "heading_permission":
                self.permission_queue.put(bool(data.get("granted")))
            elif msg_type == "command" and self.on_command:
                self.on_command(str(data.get("command")))
        except (KeyError, TypeError, ValueError):
            pass

    def _run_ws_server(self):
        """Run the WebSocket server"""
        self.ws_loop = asyncio.new_event_loop()
        asyncio.set_event_loop(self.ws_loop)

        async def handler(websocket):
            self.connected_clients.add(websocket)
            try:
                async for message in websocket:
                    self.handle_message(message)
            finally:
                self.connected_clients.discard(websocket)

        async def main():
            try:
                import websockets
                async with websockets.serve(handler, "localhost", self.ws_port):
                    while self._running:
                        await asyncio.sleep(0.1)
            except Exception as e:
                print(f"WebSocket server error: {e}")

        self.ws_loop.run_until_complete(main())

    def _send_message(self, msg_type: str, data: dict):
        """Send a message to all connected WebSocket clients"""
        if not self.connected_clients or not self.ws_loop:
            return

        message = json.dumps({"type": msg_type, "data": data}, default=str)

        async def send_to_all():
            for client in list(self.connected_clients):
                try:
                    await client.send(message)
                except Exception:
                    self.connected_clients.discard(client)

        try:
            asyncio.run_coroutine_threadsafe(send_to_all(), self.ws_loop)
        except RuntimeError:
            pass  # loop already closed

    def send_state(self, state: dict):
        self._send_message("state", state)

    def send_log(self, message: str, data: Optional[dict] = None):
        self._send_message("log", {"message": message, "data": data})

    def send_audio(self, text: str):
        self._send_message("audio", {"text": text})

    def request_heading_permission(self):
        """Ask the browser to request device-orientation access"""
        self._send_message("request_heading_permission", {})

    def pending_heading_permission(self) -> Optional[bool]:
        """Latest answer the browser sent on its own, or None"""
        answer = None
        while True:
            try:
                answer = self.permission_queue.get_nowait()
            except queue.Empty:
                return answer

    def get_heading_permission(self, timeout: float = 30) -> bool:
        """Block until the browser answers the permission request; no answer counts as denied"""
        try:
            return self.permission_queue.get(timeout=timeout)
        except queue.Empty:
            return False

    def get_clicked_location(self, timeout: float = 30) -> Optional[PositionFix]:
        """Block until user clicks on map, return the fix"""
        try:
            return self.location_queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def stop(self):
        self._running = False


class _DebugHTTPHandler(http.server.SimpleHTTPRequestHandler):
    """HTTP handler that serves the debug GUI"""

    def __init__(self, ws_port: int, *args, **kwargs):
        self.ws_port = ws_port
        super().__init__(*args, **kwargs)

    def do_GET(self):
        if self.path == '/' or self.path == '/index.html':
            self.send_response(200)
            self.send_header('Content-type', 'text/html')
            self.end_headers()
            html = DEBUG_GUI_HTML.replace('{{WS_PORT}}', str(self.ws_port))
            self.wfile.write(html.encode())
        else:
            self.send_error(404)

    def log_message(self, format, *args):
        pass  # Suppress HTTP log messages


class WebSocketGPS:
    """Position source fed by map clicks in the debug GUI"""

    def __init__(self, debug_server: DebugServer, timeout: Optional[float] = None,
                 start: Optional[PositionFix] = None):
        self.server = debug_server
        self.timeout = timeout or CONFIG["gps_timeout"]
        self.last_fix: Optional[PositionFix] = start
        self.consecutive_failures = 0

    def read(self) -> Optional[PositionFix]:
        """Wait for a click; without one the player stays where they were"""
        fix = self.server.get_clicked_location(timeout=self.timeout)
        if fix:
            self.last_fix = fix
            self.consecutive_failures = 0
            return fix
        if self.last_fix:
            return self.last_fix
        self.consecutive_failures += 1
        return None

    def get_status(self) -> str:
        return "Debug GUI (click map to set location)"
