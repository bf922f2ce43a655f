"""Windowed counters backing the rate limiter and the spam tracker."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, Protocol

Clock = Callable[[], float]


@dataclass
class WindowEntry:
    count: int
    window_start: float
    warnings: int = 0


class CounterStore(Protocol):
    def now(self) -> float: ...

    def get(self, key: str) -> WindowEntry | None: ...

    def increment(self, key: str, window: float) -> WindowEntry: ...

    def reset(self, key: str) -> None: ...

    def cleanup(self, window: float) -> int: ...


class InMemoryCounterStore:
    """Process-local counters. Entries are created lazily on first increment.

    Mutation is unlocked; concurrent increments can only undercount.
    """

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, WindowEntry] = {}

    def now(self) -> float:
        return self._clock()

    def get(self, key: str) -> WindowEntry | None:
        return self._entries.get(key)

    def increment(self, key: str, window: float) -> WindowEntry:
        """Count one event, opening a fresh window when the old one expired."""
        now = self._clock()
        entry = self._entries.get(key)
        if entry is None:
            entry = WindowEntry(count=1, window_start=now)
            self._entries[key] = entry
        elif now - entry.window_start > window:
            entry.count = 1
            entry.window_start = now
        else:
            entry.count += 1
        return entry

    def reset(self, key: str) -> None:
        self._entries.pop(key, None)

    def cleanup(self, window: float) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if now - e.window_start > window]
        for key in expired:
            del self._entries[key]
        return len(expired)
