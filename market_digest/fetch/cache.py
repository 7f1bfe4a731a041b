"""
Cache policies and an in-memory TTL cache for provider responses.

A fetch declares its policy explicitly: `FRESH` always hits upstream,
`CachePolicy.cacheable(ttl)` allows reuse of a response for `ttl` seconds.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
import time
from typing import Any


@dataclass(frozen=True)
class CachePolicy:
    """Whether a fetch may reuse a previous response.

    Attributes:
        ttl_seconds: Reuse window in seconds, or None for no caching
    """

    ttl_seconds: float | None = None

    @classmethod
    def fresh(cls) -> CachePolicy:
        return cls(ttl_seconds=None)

    @classmethod
    def cacheable(cls, ttl_seconds: float) -> CachePolicy:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be positive for a cacheable policy")
        return cls(ttl_seconds=ttl_seconds)

    @property
    def is_cacheable(self) -> bool:
        return self.ttl_seconds is not None


FRESH = CachePolicy.fresh()


class ResponseCache:
    """Process-local TTL cache keyed by endpoint and query parameters.

    A lookup only hits when the entry is younger than the TTL of the
    requesting policy.

    Attributes:
        max_entries: Oldest entries are evicted beyond this size
    """

    def __init__(self, max_entries: int = 256, clock: Callable[[], float] = time.monotonic):
        self.max_entries = max_entries
        self._clock = clock
        self._entries: dict[str, tuple[float, Any]] = {}

    @staticmethod
    def make_key(endpoint: str, params: dict[str, Any]) -> str:
        query = "&".join(f"{k}={params[k]}" for k in sorted(params))
        return f"{endpoint}?{query}"

    def get(self, key: str, policy: CachePolicy) -> Any | None:
        if not policy.is_cacheable:
            return None
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if self._clock() - stored_at > policy.ttl_seconds:
            self._entries.pop(key, None)
            return None
        return value

    def put(self, key: str, value: Any, policy: CachePolicy) -> None:
        if not policy.is_cacheable:
            return
        self._entries.pop(key, None)
        self._entries[key] = (self._clock(), value)
        while len(self._entries) > self.max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
