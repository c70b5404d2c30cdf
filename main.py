#!/usr/bin/env python3
"""
ScrollGuard - Main Entry Point

Tracks time spent on short-form video and social feeds and blocks them
once the configured limit is used up. Runs as a local service the
browser extension talks to; the other commands edit settings or show
status.

Usage:
    python main.py                         # Run the service (default)
    python main.py status                  # Show current status
    python main.py set --limit 10          # Change settings
    python main.py enable | disable        # Master switch
    python main.py reset                   # Restore defaults
"""

import argparse
import json
import logging
import sys
import threading
import urllib.error
import urllib.request
from typing import Dict, Optional

import config
from bridge import BridgeServer, BrowserTabs
from core import ControllerRunner, SessionController
from core.options import SettingsValidationError, reset_options, save_options, set_enabled
from instance_lock import ServiceLock, acquire_service_lock
from storage import JsonFileBackend, MemoryBackend, PersistedStore
from sync import SettingsSync
from tracking.formatting import format_block_end, format_countdown, format_remaining

# Configure logging
logging.basicConfig(
    level=getattr(logging, config.LOG_LEVEL.upper(), logging.INFO),
    format=config.LOG_FORMAT
)
logger = logging.getLogger(__name__)

# Suppress noisy third-party library logs (HTTP requests, etc.)
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)
logging.getLogger("hpack").setLevel(logging.WARNING)


def _build_store() -> PersistedStore:
    """File-backed store, mirrored to Supabase when credentials are set."""
    sync_client = None
    if config.SUPABASE_URL and config.SUPABASE_ANON_KEY:
        sync_client = SettingsSync()
    return PersistedStore.from_files(sync_client=sync_client)


def run_service(port: int) -> None:
    """Run the controller, tick thread and browser bridge until interrupted."""
    lock = acquire_service_lock()
    if lock is None:
        pid = ServiceLock().owner_pid()
        pid_info = f" (PID: {pid})" if pid else ""
        print(f"\nScrollGuard is already running{pid_info}.")
        print("Only one service can own the session state.\n")
        sys.exit(1)

    store = _build_store()
    tabs = BrowserTabs()
    controller = SessionController(store, tabs, tabs)
    controller.load()

    runner = ControllerRunner(controller)
    bridge = BridgeServer(tabs, runner, port=port)

    runner.start()
    if not bridge.start():
        runner.stop()
        print("\nCould not start the browser bridge - all ports in use.")
        sys.exit(1)

    print(f"\nScrollGuard running on http://{bridge.host}:{bridge.port}  (Ctrl+C to stop)")
    stop_event = threading.Event()
    try:
        while not stop_event.wait(1.0):
            pass
    except KeyboardInterrupt:
        print("\nStopping...")
    finally:
        bridge.stop()
        runner.stop()
        lock.release()


def _fetch_live_status() -> Optional[Dict]:
    """Ask a running service for its status over the bridge."""
    for port in [config.BRIDGE_PORT] + config.BRIDGE_BACKUP_PORTS:
        url = f"http://{config.BRIDGE_HOST}:{port}/status"
        try:
            with urllib.request.urlopen(url, timeout=1.0) as response:
                return json.loads(response.read())
        except (urllib.error.URLError, OSError, ValueError) as e:
            logger.debug(f"No service at {url}: {e}")
    return None


def _offline_status() -> Dict:
    """
    Compute status from the stored files without writing to them.

    Used when no service is running; the controller works on an
    in-memory copy so nothing on disk changes.
    """
    synced = JsonFileBackend(config.SETTINGS_FILE).read()
    state = JsonFileBackend(config.STATE_FILE).read()
    store = PersistedStore(MemoryBackend(synced), MemoryBackend(state))
    tabs = BrowserTabs()
    controller = SessionController(store, tabs, tabs)
    controller.load()
    return controller.status().to_dict()


def print_status(status: Dict, live: bool) -> None:
    """Render a status snapshot the way the popup does."""
    settings = status.get("settings") or {}
    if status.get("isBlocked"):
        print(f"BLOCKED  Social media sites blocked until {format_block_end(status['blockUntil'])}.")
    elif settings.get("enabled"):
        extreme = "Extreme mode ON" if settings.get("extremeModeEnabled") else "Extreme mode OFF"
        print(f"ON       Limit: {settings.get('timeLimitMinutes')} min · {extreme}")
    else:
        print("OFF      ScrollGuard is disabled.")

    remaining = status.get("remainingMs")
    if remaining is not None:
        label = "Current session remaining" if status.get("hasActiveSession") else "Remaining this cycle"
        print(f"{label}: {format_remaining(remaining)}")
        if settings.get("showDebugCountdown"):
            print(f"Countdown: {format_countdown(remaining)}")
    if not live:
        print("(service not running - showing stored state)")


def _on_off(value: str) -> bool:
    if value.lower() in ("on", "true", "yes", "1"):
        return True
    if value.lower() in ("off", "false", "no", "0"):
        return False
    raise argparse.ArgumentTypeError("expected on or off")


def _collect_updates(args: argparse.Namespace) -> Dict:
    updates = {}
    if args.limit is not None:
        updates["timeLimitMinutes"] = args.limit
    if args.extreme is not None:
        updates["extremeModeEnabled"] = args.extreme
    if args.duration is not None:
        updates["extremeDurationMinutes"] = args.duration
    if args.debug_countdown is not None:
        updates["showDebugCountdown"] = args.debug_countdown
    return updates


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="ScrollGuard - doomscrolling limiter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py                          Run the service
  python main.py status                   Show status
  python main.py set --limit 10 --extreme on --duration 30
  python main.py disable
        """
    )
    commands = parser.add_subparsers(dest="command")

    serve = commands.add_parser("serve", help="Run the service (default)")
    serve.add_argument("--port", type=int, default=config.BRIDGE_PORT,
                       help="Bridge port for the browser extension")

    commands.add_parser("status", help="Show current status")

    setter = commands.add_parser("set", help="Change settings")
    setter.add_argument("--limit", type=int, help="Time limit in minutes (>= 1)")
    setter.add_argument("--extreme", type=_on_off, help="Extreme mode on/off")
    setter.add_argument("--duration", type=int, help="Extreme block duration in minutes (>= 5)")
    setter.add_argument("--debug-countdown", type=_on_off, help="In-page countdown on/off")

    commands.add_parser("enable", help="Turn ScrollGuard on")
    commands.add_parser("disable", help="Turn ScrollGuard off")
    commands.add_parser("reset", help="Restore default settings")
    return parser


def main(argv=None):
    """Main entry point - parses arguments and runs the chosen command."""
    parser = build_parser()
    args = parser.parse_args(argv)
    command = args.command or "serve"

    if command == "serve":
        try:
            run_service(getattr(args, "port", config.BRIDGE_PORT))
        except Exception as e:
            logger.error(f"Fatal error: {e}", exc_info=True)
            print(f"\nFatal error: {e}")
            sys.exit(1)
        return

    if command == "status":
        live = _fetch_live_status()
        print_status(live if live is not None else _offline_status(), live is not None)
        return

    store = _build_store()
    try:
        if command == "set":
            updates = _collect_updates(args)
            if not updates:
                parser.error("set needs at least one option")
            synced = save_options(store, updates)
        elif command == "enable":
            synced = set_enabled(store, True)
        elif command == "disable":
            synced = set_enabled(store, False)
        else:
            synced = reset_options(store)
    except SettingsValidationError as e:
        print(f"Error: {e}")
        sys.exit(1)

    print("Settings saved.")
    if synced.emergency_used and command == "set" and args.extreme is False:
        print("Extreme mode is locked in and will stay on until settings are reset.")


if __name__ == "__main__":
    main()
