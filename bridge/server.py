"""
Local HTTP server for browser extension communication.

The extension is the activity source and the hands of the controller:
it posts tab/window events here and polls for redirect and notification
commands. Only binds to localhost.

Endpoints:
    POST /events    {"type": "tabActivated" | "tabUpdated" | "windowFocus" | "tabRemoved",
                     "tabId": int, "url": str, "focused": bool}
    POST /tabs      {"tabs": [{"id": int, "url": str, "active": bool}, ...]}
    GET  /commands  pending [{"type": "redirect", ...}, {"type": "notify", ...}]
    GET  /status    status snapshot
    GET  /ping      "pong"
"""

import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Dict, List, Optional

import config
from bridge.tabs import BrowserTabs
from core.events import ActiveTabChanged, ActiveTabClosed, UrlChanged, WindowFocusChanged
from core.runner import ControllerRunner

logger = logging.getLogger(__name__)

# Largest request body accepted from the extension
_MAX_BODY_BYTES = 1024 * 1024


class BadRequest(ValueError):
    """Malformed payload from the extension."""


def _tab_id(payload: Dict[str, Any], key: str = "tabId") -> int:
    value = payload.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        raise BadRequest(f"'{key}' must be an integer")
    return value


def _url(payload: Dict[str, Any]) -> Optional[str]:
    value = payload.get("url")
    if value is not None and not isinstance(value, str):
        raise BadRequest("'url' must be a string")
    return value


class _BridgeHTTPServer(ThreadingHTTPServer):
    daemon_threads = True

    def __init__(self, address, tabs: BrowserTabs, runner: ControllerRunner):
        self.tabs = tabs
        self.runner = runner
        super().__init__(address, BridgeRequestHandler)


class BridgeRequestHandler(BaseHTTPRequestHandler):
    """HTTP request handler for extension communication."""

    server: _BridgeHTTPServer

    def log_message(self, format, *args):
        """Route access logs through logging at debug level."""
        logger.debug("%s - %s", self.address_string(), format % args)

    def _send_cors_headers(self) -> None:
        self.send_header('Access-Control-Allow-Origin', '*')
        self.send_header('Access-Control-Allow-Methods', 'GET, POST, OPTIONS')
        self.send_header('Access-Control-Allow-Headers', 'Content-Type')

    def _send_json(self, status: int, body: Any) -> None:
        payload = json.dumps(body).encode()
        self.send_response(status)
        self.send_header('Content-Type', 'application/json')
        self.send_header('Content-Length', str(len(payload)))
        self._send_cors_headers()
        self.end_headers()
        self.wfile.write(payload)

    def _read_json(self) -> Dict[str, Any]:
        try:
            length = int(self.headers.get('Content-Length', 0))
        except ValueError:
            raise BadRequest("invalid Content-Length")
        if length <= 0 or length > _MAX_BODY_BYTES:
            raise BadRequest("missing or oversized body")
        try:
            data = json.loads(self.rfile.read(length))
        except (json.JSONDecodeError, UnicodeDecodeError):
            raise BadRequest("body is not valid JSON")
        if not isinstance(data, dict):
            raise BadRequest("body must be a JSON object")
        return data

    def do_OPTIONS(self):
        """Handle preflight CORS requests."""
        self.send_response(204)
        self._send_cors_headers()
        self.end_headers()

    def do_GET(self):
        if self.path == '/ping':
            payload = b'pong'
            self.send_response(200)
            self.send_header('Content-Type', 'text/plain')
            self.send_header('Content-Length', str(len(payload)))
            self._send_cors_headers()
            self.end_headers()
            self.wfile.write(payload)
        elif self.path == '/commands':
            self._send_json(200, {"commands": self.server.tabs.drain_commands()})
        elif self.path == '/status':
            status = self.server.runner.query_status()
            if status is None:
                self._send_json(503, {"error": "controller not responding"})
            else:
                self._send_json(200, status.to_dict())
        else:
            self._send_json(404, {"error": "not found"})

    def do_POST(self):
        try:
            if self.path == '/events':
                self._handle_event(self._read_json())
            elif self.path == '/tabs':
                self._handle_snapshot(self._read_json())
            else:
                self._send_json(404, {"error": "not found"})
                return
        except BadRequest as e:
            self._send_json(400, {"error": str(e)})
            return
        self._send_json(202, {"ok": True})

    def _handle_event(self, payload: Dict[str, Any]) -> None:
        tabs = self.server.tabs
        runner = self.server.runner
        event_type = payload.get("type")

        if event_type == "tabActivated":
            tab_id = _tab_id(payload)
            url = _url(payload)
            tabs.set_active(tab_id)
            if url is not None:
                tabs.update_tab(tab_id, url)
            runner.submit(ActiveTabChanged(tab_id))
        elif event_type == "tabUpdated":
            tab_id = _tab_id(payload)
            url = _url(payload)
            if url is None:
                raise BadRequest("'url' is required for tabUpdated")
            tabs.update_tab(tab_id, url)
            runner.submit(UrlChanged(tab_id, url))
        elif event_type == "windowFocus":
            focused = payload.get("focused")
            if not isinstance(focused, bool):
                raise BadRequest("'focused' must be true or false")
            runner.submit(WindowFocusChanged(focused))
        elif event_type == "tabRemoved":
            tab_id = _tab_id(payload)
            if tabs.remove_tab(tab_id):
                runner.submit(ActiveTabClosed(tab_id))
        else:
            raise BadRequest(f"unknown event type: {event_type!r}")

    def _handle_snapshot(self, payload: Dict[str, Any]) -> None:
        entries = payload.get("tabs")
        if not isinstance(entries, list):
            raise BadRequest("'tabs' must be a list")

        snapshot: Dict[int, Optional[str]] = {}
        active: List[int] = []
        for entry in entries:
            if not isinstance(entry, dict):
                raise BadRequest("tab entries must be objects")
            tab_id = _tab_id(entry, "id")
            snapshot[tab_id] = _url(entry)
            if entry.get("active") is True:
                active.append(tab_id)

        self.server.tabs.replace_all(snapshot)
        if active:
            self.server.tabs.set_active(active[0])
            self.server.runner.submit(ActiveTabChanged(active[0]))


class BridgeServer:
    """
    Runs the bridge HTTP server on a background thread.

    Tries the configured port first, then the backup ports.
    """

    def __init__(self, tabs: BrowserTabs, runner: ControllerRunner,
                 host: str = config.BRIDGE_HOST, port: int = config.BRIDGE_PORT,
                 backup_ports: Optional[List[int]] = None):
        self.tabs = tabs
        self.runner = runner
        self.host = host
        self.port = port
        self.backup_ports = config.BRIDGE_BACKUP_PORTS if backup_ports is None else backup_ports
        self._server: Optional[_BridgeHTTPServer] = None
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._server is not None

    def start(self) -> bool:
        """
        Bind and start serving.

        Returns:
            True if the server is running.
        """
        if self._server is not None:
            return True

        for port in [self.port] + list(self.backup_ports):
            try:
                self._server = _BridgeHTTPServer((self.host, port), self.tabs, self.runner)
                break
            except OSError as e:
                logger.debug(f"Port {port} unavailable: {e}")
        else:
            logger.error("Could not start browser bridge - all ports in use")
            return False

        self.port = self._server.server_address[1]
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="scrollguard-bridge", daemon=True
        )
        self._thread.start()
        logger.info(f"Browser bridge listening on http://{self.host}:{self.port}")
        return True

    def stop(self) -> None:
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        if self._thread:
            self._thread.join(timeout=2.0)
        self._server = None
        self._thread = None
        logger.info("Browser bridge stopped")
