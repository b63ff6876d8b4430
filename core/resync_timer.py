# core/resync_timer.py

import threading
from typing import Callable

from core.app_logger import get_logger

logger = get_logger(__name__)


class ResyncTimer:
    """
    Calls `on_tick` every `interval_seconds` on a daemon thread until stopped.

    The callback must only enqueue work; it runs off the session's draining thread.
    """

    def __init__(self, interval_seconds: float, on_tick: Callable[[], None]):
        if interval_seconds <= 0:
            raise ValueError("Resync interval must be greater than zero.")

        self.interval_seconds = interval_seconds
        self.on_tick = on_tick

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._worker,
            name="resync-timer",
            daemon=True,
        )
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)

        self._thread = None

    def _worker(self) -> None:
        while not self._stop_event.wait(self.interval_seconds):
            try:
                self.on_tick()
            except Exception:
                logger.exception("Resync timer callback failed.")
