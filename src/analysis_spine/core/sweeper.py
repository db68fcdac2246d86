"""Background sweeper — periodic housekeeping on an independent timer.

Stores that hold expiring state (cache entries, rate-limit windows) create a
``PeriodicSweeper`` at construction time and stop it in ``close()``. The
sweeper runs in a daemon thread and calls the store's ``sweep()`` method every
``interval_seconds``; the store's own lock keeps each pass from blocking a
concurrent ``get``/``check`` for longer than one lock acquisition.

Tests don't wait on the timer: they construct stores with
``sweep_interval_seconds=None`` and call ``sweep()`` directly.
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from analysis_spine.core.logging import get_logger

logger = get_logger(__name__)


class PeriodicSweeper:
    """Run ``sweep`` every ``interval_seconds`` until stopped."""

    def __init__(self, sweep: Callable[[], object], interval_seconds: float, *, name: str = "sweeper"):
        if interval_seconds <= 0:
            raise ValueError(f"Sweep interval must be positive, got {interval_seconds}")
        self._sweep = sweep
        self._interval = interval_seconds
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    @property
    def running(self) -> bool:
        return self._thread.is_alive()

    def start(self) -> PeriodicSweeper:
        self._thread.start()
        return self

    def stop(self, timeout: float | None = 5.0) -> None:
        self._stop.set()
        if self._thread.is_alive() and threading.current_thread() is not self._thread:
            self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stop.wait(self._interval):
            try:
                self._sweep()
            except Exception:
                # next pass retries
                logger.exception("sweep_failed", sweeper=self._thread.name)


__all__ = ["PeriodicSweeper"]
