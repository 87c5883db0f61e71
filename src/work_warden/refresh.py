"""Periodic recomputation for live views."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicRefresh:
    """Run ``callback`` every ``interval`` on a background thread.

    Once :meth:`stop` returns, the callback is guaranteed not to fire again.
    Use as a context manager to tie the refresh to a view's lifetime.
    """

    def __init__(self, name: str, interval: timedelta, callback: Callable[[], None]) -> None:
        if interval <= timedelta(0):
            raise ValueError("refresh interval must be positive")
        self.name = name
        self._interval = interval.total_seconds()
        self._callback = callback
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None

    def start(self) -> None:
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_loop,
                args=(stop_event,),
                name=f"refresh-{self.name}",
                daemon=True,
            )
            self._thread = thread
            self._stop_event = stop_event
            thread.start()
            logger.debug("Refresh %s started every %.1fs.", self.name, self._interval)

    def stop(self) -> None:
        thread: Optional[threading.Thread] = None
        with self._lock:
            if not self._thread or not self._stop_event:
                return
            self._stop_event.set()
            thread = self._thread
            self._thread = None
            self._stop_event = None
        if thread is not threading.current_thread():
            thread.join()
        logger.debug("Refresh %s stopped.", self.name)

    def is_running(self) -> bool:
        with self._lock:
            return bool(self._thread and self._thread.is_alive())

    def __enter__(self) -> "PeriodicRefresh":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()

    def _run_loop(self, stop_event: threading.Event) -> None:
        while not stop_event.is_set():
            try:
                self._callback()
            except Exception:
                logger.exception("Refresh %s failed; retrying next tick.", self.name)
            # Sleep in an interruptible manner.
            stop_event.wait(self._interval)
