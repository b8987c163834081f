"""
Redis cache backend.

Key layout (``prefix`` defaults to "portfolio:"):

    portfolio:entry:<key>      JSON value, SETEX ttl
    portfolio:tag:<tag>        SET of entry keys carrying the tag
    portfolio:counter:<key>    integer, expires with its window

Counters use one MULTI transaction: ``SET NX EX`` opens the window, ``INCR``
counts, ``PTTL`` tells us when the window closes. Every worker process
sharing the redis server therefore sees the same counts.
"""

import json
import logging
import time
from typing import Any, Iterable, Optional

import redis

from ..errors import CacheError
from .base import CacheStore, Clock, CounterState


logger = logging.getLogger(__name__)


class RedisCache(CacheStore):
    """Cache backed by a redis server."""

    name = "redis"

    def __init__(
        self,
        url: Optional[str] = None,
        prefix: str = "portfolio:",
        default_ttl: int = 3600,
        client: Optional["redis.Redis"] = None,
        clock: Clock = time.time,
        socket_timeout: float = 2.0,
    ):
        super().__init__(default_ttl=default_ttl, clock=clock)
        if client is None:
            if not url:
                raise CacheError("RedisCache needs a url or a client")
            client = redis.from_url(
                url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
        self.client = client
        self.prefix = prefix
        self.url = url

    def _entry_key(self, key: str) -> str:
        return f"{self.prefix}entry:{key}"

    def _tag_key(self, tag: str) -> str:
        return f"{self.prefix}tag:{tag}"

    def _counter_key(self, key: str) -> str:
        return f"{self.prefix}counter:{key}"

    def ping(self) -> bool:
        try:
            return bool(self.client.ping())
        except redis.RedisError as e:
            logger.warning(f"Redis ping failed: {e}")
            return False

    def get(self, key: str) -> Optional[Any]:
        try:
            raw = self.client.get(self._entry_key(key))
        except redis.RedisError as e:
            raise CacheError(f"Redis get failed: {e}")
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable redis value for {key}")
            return None

    def set(self, key: str, value: Any, ttl: Optional[int] = None, tags: Iterable[str] = ()) -> None:
        ttl = self._ttl(ttl)
        entry_key = self._entry_key(key)
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.setex(entry_key, ttl, json.dumps(value, default=str))
            for tag in set(tags):
                # tag sets outlive the longest entry they may point to
                pipe.sadd(self._tag_key(tag), entry_key)
                pipe.expire(self._tag_key(tag), max(ttl, self.default_ttl))
            pipe.execute()
        except redis.RedisError as e:
            raise CacheError(f"Redis set failed: {e}")

    def delete(self, key: str) -> None:
        try:
            self.client.delete(self._entry_key(key))
        except redis.RedisError as e:
            raise CacheError(f"Redis delete failed: {e}")

    def invalidate_pattern(self, tag: str) -> int:
        tag_key = self._tag_key(tag)
        try:
            members = self.client.smembers(tag_key)
            removed = self.client.delete(*members) if members else 0
            self.client.delete(tag_key)
        except redis.RedisError as e:
            raise CacheError(f"Redis invalidation of {tag!r} failed: {e}")
        return int(removed)

    def clear(self) -> None:
        try:
            keys = list(self.client.scan_iter(match=f"{self.prefix}*"))
            if keys:
                self.client.delete(*keys)
        except redis.RedisError as e:
            raise CacheError(f"Redis clear failed: {e}")

    def increment(self, key: str, window: int) -> CounterState:
        counter_key = self._counter_key(key)
        now = self.now()
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.set(counter_key, 0, ex=window, nx=True)
            pipe.incr(counter_key)
            pipe.pttl(counter_key)
            _, count, pttl = pipe.execute()
        except redis.RedisError as e:
            raise CacheError(f"Redis increment failed: {e}")
        return self._state(int(count), pttl, window, now)

    def peek_counter(self, key: str, window: int) -> Optional[CounterState]:
        counter_key = self._counter_key(key)
        now = self.now()
        try:
            pipe = self.client.pipeline(transaction=True)
            pipe.get(counter_key)
            pipe.pttl(counter_key)
            raw, pttl = pipe.execute()
        except redis.RedisError as e:
            raise CacheError(f"Redis counter read failed: {e}")
        if raw is None:
            return None
        return self._state(int(raw), pttl, window, now)

    def reset_counter(self, key: str) -> None:
        try:
            self.client.delete(self._counter_key(key))
        except redis.RedisError as e:
            raise CacheError(f"Redis counter reset failed: {e}")

    @staticmethod
    def _state(count: int, pttl: int, window: int, now: float) -> CounterState:
        remaining = max(pttl, 0) / 1000.0
        return CounterState(count=count, window_start=now - (window - remaining), window=window)

    def stats(self):
        info = {**super().stats(), "url": self.url}
        try:
            server = self.client.info(section="memory")
            info["used_memory"] = server.get("used_memory_human")
        except redis.RedisError as e:
            info["error"] = str(e)
        return info
