"""
=============================================================================
CACHE STORE INTERFACE
=============================================================================

One interface, three interchangeable backends:

    ┌──────────────┬────────────────────────────────────────────────────────┐
    │ RedisCache   │ external key-value service, shared by every worker     │
    │ MemoryCache  │ dict guarded by a lock, per process                    │
    │ FileCache    │ one JSON file per key in a directory                   │
    └──────────────┴────────────────────────────────────────────────────────┘

The store backs four things: query results, the combined portfolio payload,
rate-limit counters and sessions.

=============================================================================
ENTRIES, TAGS, COUNTERS
=============================================================================

    set("q:ab12", rows, ttl=600, tags=["projects"])

        key        "q:ab12"
        value      rows (JSON-serializable)
        expires_at now + 600
        tags       {"projects"}

Expiry is checked lazily on read; nothing is evicted before its TTL.
``invalidate_pattern("projects")`` deletes every entry tagged "projects".
Running it twice has the same effect as running it once.

Counters are separate records with their own fixed window:

    increment("rl:1.2.3.4:auth", window=300) → CounterState(count, window_start)

The increment is atomic per backend (a lock, or INCR on redis). A counter
whose window has elapsed starts over at 1.

Backends raise CacheError on failure. Callers decide how to degrade.
=============================================================================
"""

import hashlib
import json
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Optional


Clock = Callable[[], float]


@dataclass(frozen=True)
class CounterState:
    """
    A rate-limit counter snapshot.

    Attributes:
        count: Requests recorded in the current window.
        window_start: Epoch seconds when the window opened.
        window: Window length in seconds.
    """
    count: int
    window_start: float
    window: int

    @property
    def reset_at(self) -> float:
        return self.window_start + self.window

    def expired(self, now: float) -> bool:
        return now - self.window_start >= self.window


def make_key(*parts: Any) -> str:
    """Deterministic hash of arbitrary JSON-able parts (sql, params, ...)."""
    raw = json.dumps(parts, sort_keys=True, default=str)
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


class CacheStore(ABC):
    """
    Abstract cache backend.

    Subclasses implement storage; the default TTL and the clock live here.
    """

    name = "base"

    def __init__(self, default_ttl: int = 3600, clock: Clock = time.time):
        self.default_ttl = default_ttl
        self._clock = clock

    def now(self) -> float:
        return self._clock()

    def _ttl(self, ttl: Optional[int]) -> int:
        return ttl if ttl and ttl > 0 else self.default_ttl

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Value for ``key``, or None when absent or expired."""

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None, tags: Iterable[str] = ()) -> None:
        """Store ``value`` for ``ttl`` seconds (default TTL when None)."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""

    @abstractmethod
    def invalidate_pattern(self, tag: str) -> int:
        """Delete every entry tagged ``tag``. Returns the number removed."""

    @abstractmethod
    def clear(self) -> None:
        """Remove every entry and counter owned by this store."""

    @abstractmethod
    def increment(self, key: str, window: int) -> CounterState:
        """Atomically count one hit in the fixed window for ``key``."""

    @abstractmethod
    def peek_counter(self, key: str, window: int) -> Optional[CounterState]:
        """Current counter for ``key`` without modifying it (None if absent)."""

    @abstractmethod
    def reset_counter(self, key: str) -> None:
        """Drop the counter for ``key``."""

    def stats(self) -> Dict[str, Any]:
        return {"backend": self.name, "default_ttl": self.default_ttl}

    def ping(self) -> bool:
        """Whether the backend is usable right now."""
        return True
