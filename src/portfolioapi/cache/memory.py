"""
In-process cache backend.

A dict of entries plus a tag index, all behind one lock. Values are copied
on the way in and out, so callers may mutate what they get back.
"""

import copy
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Optional, Set

from .base import CacheStore, Clock, CounterState


logger = logging.getLogger(__name__)


@dataclass
class _Entry:
    value: Any
    expires_at: float
    tags: Set[str] = field(default_factory=set)


class MemoryCache(CacheStore):
    """Thread-safe in-memory cache with tags and fixed-window counters."""

    name = "memory"

    def __init__(self, default_ttl: int = 3600, clock: Clock = time.time):
        super().__init__(default_ttl=default_ttl, clock=clock)
        self._entries: Dict[str, _Entry] = {}
        self._tags: Dict[str, Set[str]] = {}
        self._counters: Dict[str, CounterState] = {}
        self._lock = threading.Lock()
        self.hits = 0
        self.misses = 0

    def get(self, key: str) -> Optional[Any]:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.expires_at <= self.now():
                self._remove(key)
                self.misses += 1
                return None
            self.hits += 1
            return copy.deepcopy(entry.value)

    def set(self, key: str, value: Any, ttl: Optional[int] = None, tags: Iterable[str] = ()) -> None:
        expires_at = self.now() + self._ttl(ttl)
        with self._lock:
            self._remove(key)
            entry = _Entry(value=copy.deepcopy(value), expires_at=expires_at, tags=set(tags))
            self._entries[key] = entry
            for tag in entry.tags:
                self._tags.setdefault(tag, set()).add(key)

    def delete(self, key: str) -> None:
        with self._lock:
            self._remove(key)

    def invalidate_pattern(self, tag: str) -> int:
        with self._lock:
            keys = self._tags.pop(tag, set())
            for key in keys:
                self._remove(key)
        if keys:
            logger.debug(f"Invalidated {len(keys)} entries tagged {tag!r}")
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tags.clear()
            self._counters.clear()

    def increment(self, key: str, window: int) -> CounterState:
        now = self.now()
        with self._lock:
            current = self._counters.get(key)
            if current is None or current.expired(now):
                current = CounterState(count=1, window_start=now, window=window)
            else:
                current = CounterState(
                    count=current.count + 1,
                    window_start=current.window_start,
                    window=window,
                )
            self._counters[key] = current
            return current

    def peek_counter(self, key: str, window: int) -> Optional[CounterState]:
        with self._lock:
            return self._counters.get(key)

    def reset_counter(self, key: str) -> None:
        with self._lock:
            self._counters.pop(key, None)

    def stats(self):
        with self._lock:
            entries = len(self._entries)
            counters = len(self._counters)
        total = self.hits + self.misses
        return {
            **super().stats(),
            "entries": entries,
            "counters": counters,
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": round(self.hits / total * 100, 2) if total else 0.0,
        }

    def _remove(self, key: str) -> None:
        # caller holds the lock
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._tags.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tags[tag]
