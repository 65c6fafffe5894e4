"""
Millisecond clocks: wall time for live runs, a manual clock for replays and tests.
"""

from __future__ import annotations

import threading
import time


def wall_clock_ms() -> float:
    return time.time() * 1000.0


class ManualClock:
    """Callable clock that only moves when advanced."""

    def __init__(self, start_ms: float = 0.0) -> None:
        self._now = float(start_ms)
        self._lock = threading.Lock()

    def __call__(self) -> float:
        with self._lock:
            return self._now

    def advance(self, ms: float) -> float:
        if ms < 0:
            raise ValueError("clock cannot move backwards")
        with self._lock:
            self._now += ms
            return self._now

    def set(self, now_ms: float) -> None:
        with self._lock:
            if now_ms < self._now:
                raise ValueError("clock cannot move backwards")
            self._now = float(now_ms)
