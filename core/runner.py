"""
Serialized event loop around the SessionController.

HTTP handler threads and the tick thread never touch the controller
directly: they put messages on one queue, and a single worker thread
applies them in order. Status queries travel the same queue as
StatusRequest messages and get their answer on a reply queue.
"""

import logging
import queue
import threading
import time
from typing import Optional, Union

import config
from core.controller import SessionController
from core.events import ActivityEvent, PeriodicTick, SettingsChanged, Status, StatusRequest
from storage.models import SyncedData

logger = logging.getLogger(__name__)

_STOP = object()

Message = Union[ActivityEvent, StatusRequest]


class ControllerRunner:
    """
    Owns the controller thread and the periodic tick.

    Usage:
        runner = ControllerRunner(controller)
        runner.start()
        runner.submit(ActiveTabChanged(tab_id=3))
        status = runner.query_status()
        runner.stop()
    """

    def __init__(
        self,
        controller: SessionController,
        tick_interval: float = config.TICK_INTERVAL_SECONDS,
        settings_poll_interval: float = config.SETTINGS_POLL_SECONDS,
    ) -> None:
        self.controller = controller
        self.tick_interval = tick_interval
        self.settings_poll_interval = settings_poll_interval

        self._queue: "queue.Queue" = queue.Queue()
        self._should_stop = threading.Event()
        self._worker: Optional[threading.Thread] = None
        self._ticker: Optional[threading.Thread] = None

        # In-process settings writes (lock-in corrections, sync pulls)
        controller.store.add_settings_listener(self._on_settings_written)

    @property
    def is_running(self) -> bool:
        return self._worker is not None and self._worker.is_alive()

    def start(self) -> None:
        """Start the controller and tick threads."""
        if self.is_running:
            return
        self._should_stop.clear()
        self._worker = threading.Thread(target=self._run, name="scrollguard-controller", daemon=True)
        self._worker.start()
        self._ticker = threading.Thread(target=self._tick_loop, name="scrollguard-tick", daemon=True)
        self._ticker.start()
        logger.info(f"Controller running (tick every {self.tick_interval}s)")

    def stop(self) -> None:
        """Stop both threads, letting queued events drain first."""
        self._should_stop.set()
        self._queue.put(_STOP)
        for thread in (self._worker, self._ticker):
            if thread and thread.is_alive():
                thread.join(timeout=2.0)
                if thread.is_alive():
                    logger.warning(f"{thread.name} did not stop within timeout")
        self._worker = None
        self._ticker = None

    def submit(self, event: ActivityEvent) -> None:
        """Queue an activity event for the controller thread."""
        self._queue.put(event)

    def query_status(self, timeout: float = config.STATUS_TIMEOUT_SECONDS) -> Optional[Status]:
        """
        Ask the controller thread for a status snapshot.

        Returns:
            The Status, or None if the controller did not answer in time.
        """
        request = StatusRequest()
        self._queue.put(request)
        try:
            return request.reply.get(timeout=timeout)
        except queue.Empty:
            logger.warning("Status query timed out")
            return None

    def _run(self) -> None:
        """Controller thread main loop."""
        while True:
            message = self._queue.get()
            if message is _STOP:
                break
            self._dispatch(message)

    def _dispatch(self, message: Message) -> None:
        if isinstance(message, StatusRequest):
            try:
                message.reply.put_nowait(self.controller.status())
            except Exception as e:
                logger.error(f"Status query failed: {e}", exc_info=True)
            return
        self.controller.handle(message)

    def _tick_loop(self) -> None:
        """Enqueue periodic ticks and watch for settings edited elsewhere."""
        next_tick = time.monotonic() + self.tick_interval
        while not self._should_stop.wait(self.settings_poll_interval):
            try:
                self.controller.store.poll_settings_changes()
            except Exception as e:
                logger.debug(f"Settings poll failed: {e}")
            if time.monotonic() >= next_tick:
                self.submit(PeriodicTick())
                next_tick = time.monotonic() + self.tick_interval

    def _on_settings_written(self, synced: SyncedData) -> None:
        self.submit(SettingsChanged(synced.settings, synced.emergency_used))
