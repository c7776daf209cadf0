"""
Bookineo Rate Limiter: Sliding-Window Request Throttling.

Counts requests per key (rule name + client address) inside a sliding
window. The table is process-local, guarded by a lock, and swept of idle
keys at a fixed interval so it cannot grow without bound.
"""
from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from typing import Callable
import math
import threading
import time


@dataclass(frozen=True)
class RateLimitRule:
    """Allow ``max_requests`` per ``window_seconds``."""
    name: str
    max_requests: int
    window_seconds: int


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of counting one request against a rule."""
    allowed: bool
    limit: int
    remaining: int
    retry_after: int = 0

    def to_dict(self) -> dict[str, int | bool]:
        return {
            "allowed": self.allowed,
            "limit": self.limit,
            "remaining": self.remaining,
            "retry_after": self.retry_after,
        }


class RateLimiter:
    """In-memory sliding-window limiter. Replace backing store for multi-process deployments."""

    def __init__(
        self,
        sweep_interval_seconds: int = 600,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._hits: dict[str, deque[float]] = {}
        self._windows: dict[str, int] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.sweep_interval = sweep_interval_seconds
        self._last_sweep = clock()

    @staticmethod
    def make_key(rule: RateLimitRule, client: str) -> str:
        return f"{rule.name}:{client}"

    def hit(self, rule: RateLimitRule, client: str) -> RateLimitDecision:
        """Record one request for ``client`` under ``rule`` and decide."""
        key = self.make_key(rule, client)
        now = self._clock()

        with self._lock:
            if now - self._last_sweep >= self.sweep_interval:
                self._sweep(now)

            hits = self._hits.setdefault(key, deque())
            self._windows[key] = rule.window_seconds
            cutoff = now - rule.window_seconds
            while hits and hits[0] <= cutoff:
                hits.popleft()

            if len(hits) >= rule.max_requests:
                retry_after = max(1, math.ceil(hits[0] + rule.window_seconds - now))
                return RateLimitDecision(
                    allowed=False,
                    limit=rule.max_requests,
                    remaining=0,
                    retry_after=retry_after,
                )

            hits.append(now)
            return RateLimitDecision(
                allowed=True,
                limit=rule.max_requests,
                remaining=rule.max_requests - len(hits),
            )

    def reset(self, client: str | None = None) -> int:
        """Forget recorded hits for one client (every rule) or for everyone.

        Returns count of keys removed.
        """
        with self._lock:
            if client is None:
                removed = len(self._hits)
                self._hits.clear()
                self._windows.clear()
                return removed
            keys = [k for k in self._hits if k.split(":", 1)[1] == client]
            for k in keys:
                del self._hits[k]
                self._windows.pop(k, None)
            return len(keys)

    def cleanup_expired(self) -> int:
        """Remove keys whose newest hit has left its window. Returns count removed."""
        with self._lock:
            return self._sweep(self._clock())

    def _sweep(self, now: float) -> int:
        expired = [
            k for k, hits in self._hits.items()
            if not hits or hits[-1] <= now - self._windows.get(k, 0)
        ]
        for k in expired:
            del self._hits[k]
            self._windows.pop(k, None)
        self._last_sweep = now
        return len(expired)

    @property
    def tracked_keys(self) -> int:
        return len(self._hits)
