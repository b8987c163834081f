"""
=============================================================================
ACCESS LOG MIDDLEWARE
=============================================================================

Outermost global middleware. Assigns the request id, resolves the client
IP for everything downstream and writes one access-log line per request:

    text:  203.0.113.7 - - [18/Oct/2026:10:00:00 +0000] "GET /api/portfolio" 200 5120 3.41ms rid=4f9c2a1b
    json:  {"request_id": "4f9c2a1b", "method": "GET", "path": "/api/portfolio", ...}

The request id comes from the client's X-Request-ID header when present,
otherwise a new one is generated; either way it is echoed on the response.
=============================================================================
"""

import json
import logging
import time
import uuid
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse
from ..services.rate_limiter import resolve_client_ip


logger = logging.getLogger("portfolioapi.access")


@dataclass
class RequestLog:
    request_id: str
    method: str
    path: str
    query: str
    client_ip: str
    user_agent: str
    status_code: int
    content_length: int
    duration_ms: float
    timestamp: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data["duration_ms"] = round(self.duration_ms, 2)
        return data

    def to_text(self) -> str:
        """Apache-style line plus the request id."""
        return (
            f'{self.client_ip} - - [{self.timestamp}] '
            f'"{self.method} {self.path}" {self.status_code} '
            f'{self.content_length} {self.duration_ms:.2f}ms rid={self.request_id}'
        )


class AccessLogMiddleware(Middleware):
    """
    Args:
        log_format: "text" or "json".
        skip_paths: Paths that are served but not logged.
    """

    def __init__(self, log_format: str = "text", skip_paths: Optional[Iterable[str]] = None):
        self.log_format = log_format
        self.skip_paths = set(skip_paths or [])

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:8]
        request.context.request_id = request_id
        if not request.context.client_ip:
            request.context.client_ip = resolve_client_ip(request.headers, request.client_address[0])

        start_time = time.perf_counter()
        try:
            response = next(request)
        except Exception as e:
            duration_ms = (time.perf_counter() - start_time) * 1000
            logger.error(
                f"Request failed: {request.method} {request.path} "
                f"- {type(e).__name__}: {e} ({duration_ms:.2f}ms) rid={request_id}"
            )
            raise
        duration_ms = (time.perf_counter() - start_time) * 1000

        response.headers["X-Request-ID"] = request_id

        if request.path in self.skip_paths:
            return response

        entry = RequestLog(
            request_id=request_id,
            method=request.method,
            path=request.path,
            query="&".join(f"{k}={v}" for k, values in request.query_params.items() for v in values),
            client_ip=request.context.client_ip,
            user_agent=request.user_agent or "-",
            status_code=int(response.status),
            content_length=len(response.body),
            duration_ms=duration_ms,
            timestamp=time.strftime("%d/%b/%Y:%H:%M:%S %z"),
        )

        if self.log_format == "json":
            logger.info(json.dumps(entry.to_dict()))
        else:
            logger.info(entry.to_text())
        return response
