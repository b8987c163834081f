"""
=============================================================================
DATA ACCESS LAYER
=============================================================================

One Database object per process, built in create_app() and handed to the
repositories. It owns the SQLAlchemy engine (and its connection pool) and
the reference to the cache store used for cached reads.

=============================================================================
CACHED READS
=============================================================================

    cached_query(sql, params, ttl=600, tables=["projects"])
        │
        ├── key = "query:" + sha256(sql, params)
        │
        ├── cache.get(key) ── hit ──────────────────────────► rows
        │       │
        │       └── CacheError → logged, treated as a miss
        │
        ├── fetch_all(sql, params)                      (pool checkout)
        │
        └── cache.set(key, rows, ttl, tags=["projects"]) ──► rows

=============================================================================
WRITES
=============================================================================

    insert / update / delete run inside engine.begin() (one transaction)
    and then call invalidate(table): every cached read tagged with that
    table is dropped. Between the commit and the invalidation a reader may
    still get the old rows; that window is bounded by the invalidation call.

All SQLAlchemy failures surface as DataAccessError.
=============================================================================
"""

import logging
import os
import time
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Connection, Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from ..cache.base import CacheStore, make_key
from ..errors import CacheError, DataAccessError
from .schema import TABLES, metadata


logger = logging.getLogger(__name__)


def to_json_safe(value: Any) -> Any:
    """Convert driver values (dates, Decimals, bytes) to JSON-friendly ones."""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value


def row_to_dict(row) -> Dict[str, Any]:
    return {key: to_json_safe(value) for key, value in row._mapping.items()}


def build_engine(url: str, pool_size: int = 5, pool_timeout: float = 10.0,
                 connect_timeout: int = 5, echo: bool = False) -> Engine:
    """
    Create the SQLAlchemy engine for ``url``.

    SQLite is shared across worker threads (``check_same_thread=False``);
    an in-memory SQLite database must also live on a single connection
    (StaticPool), otherwise every checkout would see an empty database.
    """
    parsed = make_url(url)

    if parsed.get_backend_name() == "sqlite":
        database = parsed.database
        if not database or database == ":memory:":
            return create_engine(
                url,
                echo=echo,
                poolclass=StaticPool,
                connect_args={"check_same_thread": False},
            )
        directory = os.path.dirname(os.path.abspath(database))
        os.makedirs(directory, exist_ok=True)
        return create_engine(url, echo=echo, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        echo=echo,
        pool_size=pool_size,
        pool_timeout=pool_timeout,
        pool_pre_ping=True,
        pool_recycle=3600,
        connect_args={"connect_timeout": connect_timeout},
    )


class Database:
    """
    Engine + cache-aware query helpers.

    Args:
        engine: SQLAlchemy engine (see build_engine).
        cache: Cache store for cached reads; None disables caching.
        cache_enabled: Global switch for cached reads.
    """

    def __init__(self, engine: Engine, cache: Optional[CacheStore] = None, cache_enabled: bool = True):
        self.engine = engine
        self.cache = cache
        self.cache_enabled = cache_enabled and cache is not None
        self.queries_executed = 0

    @classmethod
    def from_config(cls, config, cache: Optional[CacheStore] = None) -> "Database":
        engine = build_engine(
            config.database_url,
            pool_size=config.db_pool_size,
            pool_timeout=config.db_pool_timeout,
            connect_timeout=config.db_connect_timeout,
        )
        return cls(engine, cache=cache, cache_enabled=config.cache_enabled)

    def create_schema(self) -> None:
        """Create every table that does not exist yet."""
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            raise DataAccessError(str(e))

    def dispose(self) -> None:
        self.engine.dispose()

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """A connection inside a transaction, committed on success."""
        try:
            with self.engine.begin() as conn:
                yield conn
        except SQLAlchemyError as e:
            raise DataAccessError(str(e))

    # =========================================================================
    # READS
    # =========================================================================

    def fetch_all(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        try:
            with self.engine.connect() as conn:
                result = conn.execute(text(sql), dict(params or {}))
                rows = [row_to_dict(row) for row in result]
        except SQLAlchemyError as e:
            raise DataAccessError(str(e))
        self.queries_executed += 1
        return rows

    def fetch_one(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> Optional[Dict[str, Any]]:
        rows = self.fetch_all(sql, params)
        return rows[0] if rows else None

    def scalar(self, sql: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        try:
            with self.engine.connect() as conn:
                value = conn.execute(text(sql), dict(params or {})).scalar()
        except SQLAlchemyError as e:
            raise DataAccessError(str(e))
        self.queries_executed += 1
        return to_json_safe(value)

    def cached_query(
        self,
        sql: str,
        params: Optional[Mapping[str, Any]] = None,
        ttl: Optional[int] = None,
        tables: Iterable[str] = (),
    ) -> List[Dict[str, Any]]:
        """
        ``fetch_all`` through the cache.

        Args:
            ttl: Entry lifetime in seconds (store default when None).
            tables: Tables the query reads; writes to any of them drop the entry.
        """
        key = "query:" + make_key(sql, dict(params or {}))
        return self.remember(key, lambda: self.fetch_all(sql, params), ttl=ttl, tables=tables)

    def remember(
        self,
        key: str,
        produce: Callable[[], Any],
        ttl: Optional[int] = None,
        tables: Iterable[str] = (),
    ) -> Any:
        """
        Cached value for ``key``, computed by ``produce()`` on a miss.

        Used directly for composite payloads built from several queries.
        """
        if not self.cache_enabled:
            return produce()

        try:
            cached = self.cache.get(key)
        except CacheError as e:
            logger.warning(f"Cache read failed, querying database: {e}")
            cached = None
        if cached is not None:
            return cached

        value = produce()
        try:
            self.cache.set(key, value, ttl=ttl, tags=tables)
        except CacheError as e:
            logger.warning(f"Cache write failed: {e}")
        return value

    # =========================================================================
    # WRITES
    # =========================================================================

    def _table(self, name: str):
        try:
            return TABLES[name]
        except KeyError:
            raise DataAccessError(f"Unknown table {name}")

    @staticmethod
    def _columns(table, values: Mapping[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in values.items() if k in table.c and k != "id"}

    def insert(self, table_name: str, values: Mapping[str, Any]) -> int:
        """Insert a row, return its primary key."""
        table = self._table(table_name)
        with self.transaction() as conn:
            result = conn.execute(table.insert().values(**self._columns(table, values)))
            row_id = int(result.inserted_primary_key[0])
        self.invalidate(table_name)
        return row_id

    def update(self, table_name: str, row_id: int, values: Mapping[str, Any]) -> bool:
        """Update one row by id. False when no such row exists."""
        table = self._table(table_name)
        with self.transaction() as conn:
            result = conn.execute(
                table.update().where(table.c.id == row_id).values(**self._columns(table, values))
            )
            found = result.rowcount > 0
        if found:
            self.invalidate(table_name)
        return found

    def delete(self, table_name: str, row_id: int) -> bool:
        """Delete one row by id. False when no such row exists."""
        table = self._table(table_name)
        with self.transaction() as conn:
            result = conn.execute(table.delete().where(table.c.id == row_id))
            found = result.rowcount > 0
        if found:
            self.invalidate(table_name)
        return found

    def invalidate(self, *tables: str) -> None:
        """Drop cached reads that depend on ``tables``. Failures are logged."""
        if not self.cache_enabled:
            return
        for table in tables:
            try:
                removed = self.cache.invalidate_pattern(table)
                logger.debug(f"Invalidated {removed} cached reads for {table}")
            except CacheError as e:
                logger.error(f"Cache invalidation failed for {table}: {e}")

    # =========================================================================
    # HEALTH
    # =========================================================================

    def status(self) -> Dict[str, Any]:
        """Connection check used by the health endpoints."""
        started = time.perf_counter()
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logger.error(f"Database health check failed: {e}")
            return {"connected": False, "error": "Database connection failed"}
        return {
            "connected": True,
            "dialect": self.engine.dialect.name,
            "response_time_ms": round((time.perf_counter() - started) * 1000, 2),
            "queries_executed": self.queries_executed,
        }
