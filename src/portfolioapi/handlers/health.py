"""
=============================================================================
HEALTH CHECK HANDLER
=============================================================================

    ┌──────────────────────┬──────────────────────────────────────────────┐
    │ Endpoint             │ Purpose                                      │
    ├──────────────────────┼──────────────────────────────────────────────┤
    │ /api/health          │ liveness: the process answers, no I/O        │
    │ /api/health/status   │ api + database + cache + process metrics     │
    │ /api/health/database │ readiness: 200 when the database answers,    │
    │                      │ 503 otherwise (take the instance out)        │
    └──────────────────────┴──────────────────────────────────────────────┘

Health responses are never cached (Cache-Control: no-store).
=============================================================================
"""

import logging
import os
import platform
import socket
import sys
import threading
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..cache.base import CacheStore
from ..config import AppConfig
from ..data.database import Database
from ..errors import CacheError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, error, success
from ..http.status_codes import HTTPStatus


logger = logging.getLogger(__name__)


NO_STORE = {"Cache-Control": "no-store"}


class HealthHandler:

    def __init__(self, database: Database, store: CacheStore, config: AppConfig,
                 started_at: Optional[float] = None):
        self.database = database
        self.store = store
        self.config = config
        self.started_at = started_at or time.time()

    def uptime(self) -> float:
        return round(time.time() - self.started_at, 2)

    def index(self, request: HTTPRequest) -> HTTPResponse:
        data = {
            "status": "healthy",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "api_version": self.config.app_version,
            "server": {
                "python_version": sys.version.split()[0],
                "platform": platform.platform(),
                "hostname": socket.gethostname(),
                "pid": os.getpid(),
            },
        }
        return success(data, "API is healthy", headers=NO_STORE)

    def status(self, request: HTTPRequest) -> HTTPResponse:
        data = {
            "api": {
                "status": "healthy",
                "version": self.config.app_version,
                "environment": self.config.environment,
            },
            "database": self.database.status(),
            "cache": self._cache_status(),
            "performance": self._performance(),
        }
        return success(data, "System status", headers=NO_STORE)

    def database_check(self, request: HTTPRequest) -> HTTPResponse:
        status = self.database.status()
        if status["connected"]:
            return success(status, "Database connection healthy", headers=NO_STORE)
        return error(
            "Database connection failed",
            status=HTTPStatus.SERVICE_UNAVAILABLE,
            errors={"database": status.get("error", "unreachable")},
            headers=NO_STORE,
        )

    # =========================================================================
    # HELPERS
    # =========================================================================

    def _cache_status(self) -> Dict[str, Any]:
        try:
            stats = self.store.stats()
        except CacheError as e:
            logger.warning(f"Cache stats unavailable: {e}")
            return {"backend": self.store.name, "available": False}
        stats["available"] = True
        stats["enabled"] = self.config.cache_enabled
        return stats

    def _performance(self) -> Dict[str, Any]:
        load = None
        if hasattr(os, "getloadavg"):
            one, five, fifteen = os.getloadavg()
            load = {"1min": one, "5min": five, "15min": fifteen}
        return {
            "uptime_seconds": self.uptime(),
            "threads": threading.active_count(),
            "load_average": load,
        }
