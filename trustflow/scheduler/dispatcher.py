"""
Tick dispatcher: serializes every mutation of the shared simulation state.

Timer jobs (transaction, decay, layout, categorization) and external commands
all run their body inside one re-entrant critical section. Each tick is
therefore atomic with respect to the others; their relative order is not.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Iterator


class TickDispatcher:
    """Mutex-guarded critical section shared by every writer of the world."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._counts: dict[str, int] = {}

    @contextmanager
    def critical(self, kind: str | None = None) -> Iterator[None]:
        with self._lock:
            if kind is not None:
                self._counts[kind] = self._counts.get(kind, 0) + 1
            yield

    def tick_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._counts)
