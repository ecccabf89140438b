"""
Fixed-window request throttling.

The limiter holds no global state: the entry store is passed in, so a
single-process deployment uses InMemoryRateLimitStore while a multi-instance
deployment can plug in a shared store implementing the same protocol.

Window semantics:
- First request for a key, or the first after its window elapsed, starts a
  new window with count = 1.
- Later requests in the window increment the count; the request is denied
  once the count exceeds the limit.
- Each check sweeps entries whose window started more than one window ago.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Protocol

from loguru import logger


@dataclass(frozen=True)
class RateLimitEntry:
    count: int
    window_start: float


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    remaining: int
    limit: int
    reset_at: float

    def headers(self) -> dict[str, str]:
        """X-RateLimit-* response headers for this decision."""
        reset = datetime.fromtimestamp(self.reset_at, tz=timezone.utc)
        return {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": reset.isoformat().replace("+00:00", "Z"),
        }


class RateLimitStore(Protocol):
    """Storage for per-key window entries."""

    def update(
        self,
        key: str,
        fn: Callable[[RateLimitEntry | None], RateLimitEntry],
    ) -> RateLimitEntry:
        """Atomically replace the entry for ``key`` with ``fn(current)``."""
        ...

    def sweep(self, cutoff: float) -> int:
        """Delete entries whose window started before ``cutoff``; return how many."""
        ...

    def __len__(self) -> int:
        ...


class InMemoryRateLimitStore:
    """Process-local store; a lock serializes read-modify-write per call."""

    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def update(
        self,
        key: str,
        fn: Callable[[RateLimitEntry | None], RateLimitEntry],
    ) -> RateLimitEntry:
        with self._lock:
            entry = fn(self._entries.get(key))
            self._entries[key] = entry
            return entry

    def sweep(self, cutoff: float) -> int:
        with self._lock:
            stale = [k for k, e in self._entries.items() if e.window_start < cutoff]
            for key in stale:
                del self._entries[key]
            return len(stale)

    def get(self, key: str) -> RateLimitEntry | None:
        with self._lock:
            return self._entries.get(key)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RateLimiter:
    """Per-key fixed-window limiter over an injected store."""

    def __init__(
        self,
        store: RateLimitStore,
        limit: int = 10,
        window_seconds: float = 60.0,
        namespace: str = "",
        clock: Callable[[], float] = time.time,
    ):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        self.store = store
        self.limit = limit
        self.window_seconds = window_seconds
        self.namespace = namespace
        self._clock = clock

    def _key(self, client_key: str) -> str:
        return f"{self.namespace}:{client_key}" if self.namespace else client_key

    def check(self, client_key: str) -> RateLimitDecision:
        """Count one request for ``client_key`` and decide whether it may proceed."""
        now = self._clock()

        swept = self.store.sweep(now - self.window_seconds)
        if swept:
            logger.debug(f"Rate limiter [{self.namespace}] swept {swept} stale entries")

        def advance(entry: RateLimitEntry | None) -> RateLimitEntry:
            if entry is None or now - entry.window_start > self.window_seconds:
                return RateLimitEntry(count=1, window_start=now)
            return RateLimitEntry(count=entry.count + 1, window_start=entry.window_start)

        entry = self.store.update(self._key(client_key), advance)

        allowed = entry.count <= self.limit
        decision = RateLimitDecision(
            allowed=allowed,
            remaining=max(0, self.limit - entry.count),
            limit=self.limit,
            reset_at=entry.window_start + self.window_seconds,
        )
        if not allowed:
            logger.warning(
                f"Rate limit exceeded for {self._key(client_key)} "
                f"({entry.count} requests in window)"
            )
        return decision
