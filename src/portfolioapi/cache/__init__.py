"""
Cache stores and backend selection.

    store = select_backend(config)

Backends are probed in ``config.cache_backends`` order (default redis →
memory → file) and the first one that answers is used for the lifetime of
the process.
"""

import logging
from typing import TYPE_CHECKING

from ..errors import CacheError, ConfigurationError
from .base import CacheStore, CounterState, make_key
from .file import FileCache
from .memory import MemoryCache
from .redis import RedisCache

if TYPE_CHECKING:
    from ..config import AppConfig


logger = logging.getLogger(__name__)


def _build(name: str, config: "AppConfig") -> CacheStore:
    if name == "redis":
        if not config.redis_url:
            raise CacheError("REDIS_URL is not set")
        return RedisCache(url=config.redis_url, prefix=config.cache_prefix, default_ttl=config.cache_ttl)
    if name == "memory":
        return MemoryCache(default_ttl=config.cache_ttl)
    if name == "file":
        return FileCache(config.cache_dir, default_ttl=config.cache_ttl)
    raise ConfigurationError(f"Unknown cache backend {name!r}")


def select_backend(config: "AppConfig") -> CacheStore:
    """
    Return the first available backend.

    Raises:
        ConfigurationError: If no configured backend is available.
    """
    for name in config.cache_backends:
        try:
            store = _build(name, config)
        except CacheError as e:
            logger.info(f"Cache backend {name} skipped: {e}")
            continue
        if store.ping():
            logger.info(f"Using {name} cache backend")
            return store
        logger.warning(f"Cache backend {name} is not available")
    raise ConfigurationError(f"No cache backend available among {config.cache_backends}")


__all__ = [
    "CacheStore",
    "CounterState",
    "make_key",
    "MemoryCache",
    "FileCache",
    "RedisCache",
    "select_backend",
]
