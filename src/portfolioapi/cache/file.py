"""
=============================================================================
ON-DISK CACHE BACKEND
=============================================================================

Last-resort backend for hosts without redis: one JSON document per key.

    <cache_dir>/
        entries/<sha256(key)>.json     {"key", "value", "expires_at", "tags"}
        counters/<sha256(key)>.json    {"count", "window_start", "window"}

Writes go to a temporary file in the same directory followed by
os.replace(), so readers never see a half-written document. A thread lock
serializes read-modify-write sequences inside the process.

Tag invalidation has no index to consult: it scans the entries directory
and removes every document whose "tags" list contains the tag.
=============================================================================
"""

import hashlib
import json
import logging
import os
import tempfile
import threading
import time
from typing import Any, Dict, Iterable, Optional

from ..errors import CacheError
from .base import CacheStore, Clock, CounterState


logger = logging.getLogger(__name__)


class FileCache(CacheStore):
    """JSON-file cache rooted at ``directory``."""

    name = "file"

    def __init__(self, directory: str, default_ttl: int = 3600, clock: Clock = time.time):
        super().__init__(default_ttl=default_ttl, clock=clock)
        self.directory = directory
        self._entries_dir = os.path.join(directory, "entries")
        self._counters_dir = os.path.join(directory, "counters")
        self._lock = threading.Lock()

    # =========================================================================
    # FILESYSTEM HELPERS
    # =========================================================================

    def ensure_directories(self) -> None:
        try:
            os.makedirs(self._entries_dir, exist_ok=True)
            os.makedirs(self._counters_dir, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Cannot create cache directory {self.directory}: {e}")

    def ping(self) -> bool:
        try:
            self.ensure_directories()
        except CacheError:
            return False
        return os.access(self._entries_dir, os.W_OK) and os.access(self._counters_dir, os.W_OK)

    @staticmethod
    def _filename(key: str) -> str:
        return hashlib.sha256(key.encode("utf-8")).hexdigest() + ".json"

    def _entry_path(self, key: str) -> str:
        return os.path.join(self._entries_dir, self._filename(key))

    def _counter_path(self, key: str) -> str:
        return os.path.join(self._counters_dir, self._filename(key))

    def _read(self, path: str) -> Optional[Dict[str, Any]]:
        try:
            with open(path, "r", encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return None
        except ValueError:
            # corrupt document: drop it and treat as a miss
            logger.warning(f"Discarding unreadable cache file {path}")
            self._unlink(path)
            return None
        except OSError as e:
            raise CacheError(f"Cache read failed for {path}: {e}")

    def _write(self, path: str, document: Dict[str, Any]) -> None:
        self.ensure_directories()
        directory = os.path.dirname(path)
        try:
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, default=str)
            os.replace(tmp_path, path)
        except (OSError, TypeError) as e:
            raise CacheError(f"Cache write failed for {path}: {e}")

    @staticmethod
    def _unlink(path: str) -> bool:
        try:
            os.remove(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            raise CacheError(f"Cache delete failed for {path}: {e}")

    # =========================================================================
    # ENTRIES
    # =========================================================================

    def get(self, key: str) -> Optional[Any]:
        path = self._entry_path(key)
        with self._lock:
            document = self._read(path)
            if document is None:
                return None
            if document.get("expires_at", 0) <= self.now():
                self._unlink(path)
                return None
            return document.get("value")

    def set(self, key: str, value: Any, ttl: Optional[int] = None, tags: Iterable[str] = ()) -> None:
        document = {
            "key": key,
            "value": value,
            "expires_at": self.now() + self._ttl(ttl),
            "tags": sorted(set(tags)),
        }
        with self._lock:
            self._write(self._entry_path(key), document)

    def delete(self, key: str) -> None:
        with self._lock:
            self._unlink(self._entry_path(key))

    def invalidate_pattern(self, tag: str) -> int:
        removed = 0
        with self._lock:
            for path in self._list(self._entries_dir):
                document = self._read(path)
                if document and tag in document.get("tags", ()):
                    if self._unlink(path):
                        removed += 1
        if removed:
            logger.debug(f"Invalidated {removed} cache files tagged {tag!r}")
        return removed

    def clear(self) -> None:
        with self._lock:
            for directory in (self._entries_dir, self._counters_dir):
                for path in self._list(directory):
                    self._unlink(path)

    def _list(self, directory: str):
        try:
            names = os.listdir(directory)
        except FileNotFoundError:
            return []
        except OSError as e:
            raise CacheError(f"Cannot list cache directory {directory}: {e}")
        return [os.path.join(directory, name) for name in names if name.endswith(".json")]

    # =========================================================================
    # COUNTERS
    # =========================================================================

    def increment(self, key: str, window: int) -> CounterState:
        path = self._counter_path(key)
        now = self.now()
        with self._lock:
            current = self._to_counter(self._read(path))
            if current is None or current.expired(now):
                current = CounterState(count=1, window_start=now, window=window)
            else:
                current = CounterState(current.count + 1, current.window_start, window)
            self._write(path, {
                "count": current.count,
                "window_start": current.window_start,
                "window": current.window,
            })
            return current

    def peek_counter(self, key: str, window: int) -> Optional[CounterState]:
        with self._lock:
            return self._to_counter(self._read(self._counter_path(key)))

    def reset_counter(self, key: str) -> None:
        with self._lock:
            self._unlink(self._counter_path(key))

    @staticmethod
    def _to_counter(document: Optional[Dict[str, Any]]) -> Optional[CounterState]:
        if not document:
            return None
        return CounterState(
            count=int(document["count"]),
            window_start=float(document["window_start"]),
            window=int(document["window"]),
        )

    def stats(self):
        with self._lock:
            entries = len(self._list(self._entries_dir))
        return {**super().stats(), "directory": self.directory, "entries": entries}
