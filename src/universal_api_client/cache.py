"""In-memory TTL cache for GET responses."""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    timestamp: float
    ttl: float


def cache_key(url: str, params: Mapping[str, Any] | None = None) -> str:
    """Concatenate ``url`` with the compact JSON form of ``params``.

    Parameter order is kept as given, so ``{"a": 1, "b": 2}`` and
    ``{"b": 2, "a": 1}`` produce different keys.
    """
    if not params:
        return url
    return url + json.dumps(dict(params), separators=(",", ":"), default=str)


class ResponseCache:
    """Bounded FIFO store with lazily checked expiry.

    Entries are never swept in the background; an expired entry is removed
    by the read that finds it. When full, the oldest inserted entry is
    evicted regardless of how recently it was read.
    """

    def __init__(
        self,
        *,
        max_size: int = 100,
        ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self.max_size = max_size
        self.ttl = ttl
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() - entry.timestamp >= entry.ttl:
            self._entries.pop(key, None)
            return None
        return entry.value

    def set(self, key: str, value: Any, ttl: float | None = None) -> None:
        self._entries.pop(key, None)
        if len(self._entries) >= self.max_size:
            oldest = next(iter(self._entries), None)
            if oldest is not None:
                self._entries.pop(oldest, None)
        self._entries[key] = CacheEntry(
            value=value,
            timestamp=self._clock(),
            ttl=self.ttl if ttl is None else ttl,
        )

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict[str, Any]:
        return {"size": len(self._entries), "keys": list(self._entries)}
