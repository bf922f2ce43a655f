"""Per-sender rate limiting and per-chat spam tracking."""

from __future__ import annotations

from dataclasses import dataclass

from buddy.config import ModerationConfig, RateLimitConfig
from buddy.core.counters import CounterStore, InMemoryCounterStore
from buddy.utils.logging import get_logger

log = get_logger(__name__)


class RateLimiter:
    """Fixed window per key: ``max_messages`` within ``window_seconds``."""

    def __init__(
        self,
        config: RateLimitConfig,
        store: CounterStore | None = None,
    ) -> None:
        self._window = config.window_seconds
        self._max = config.max_messages
        self._store = store if store is not None else InMemoryCounterStore()

    def is_limited(self, key: str) -> bool:
        """Check without consuming quota."""
        entry = self._store.get(key)
        if entry is None:
            return False
        if self._store.now() - entry.window_start > self._window:
            self._store.reset(key)
            return False
        return entry.count >= self._max

    def record(self, key: str) -> None:
        self._store.increment(key, self._window)

    def remaining(self, key: str) -> int:
        entry = self._store.get(key)
        if entry is None or self._store.now() - entry.window_start > self._window:
            return self._max
        return max(0, self._max - entry.count)

    def reset_in(self, key: str) -> float | None:
        """Seconds until the key's window closes, or None when it has none."""
        entry = self._store.get(key)
        if entry is None:
            return None
        left = entry.window_start + self._window - self._store.now()
        return left if left > 0 else None

    def cleanup(self) -> int:
        return self._store.cleanup(self._window)


@dataclass(frozen=True)
class SpamCheck:
    is_spam: bool
    warnings: int


class SpamTracker:
    """Counts messages per (chat, sender) and escalates warnings past the threshold."""

    def __init__(
        self,
        config: ModerationConfig,
        store: CounterStore | None = None,
    ) -> None:
        self._window = config.spam_window_seconds
        self._threshold = config.spam_threshold
        self._store = store if store is not None else InMemoryCounterStore()

    def check(self, chat_jid: str, sender_jid: str) -> SpamCheck:
        entry = self._store.increment(f"{chat_jid}|{sender_jid}", self._window)
        if entry.count > self._threshold:
            entry.warnings += 1
            log.info("spam_threshold_exceeded", chat=chat_jid, sender=sender_jid,
                     warnings=entry.warnings)
            return SpamCheck(is_spam=True, warnings=entry.warnings)
        return SpamCheck(is_spam=False, warnings=entry.warnings)
