"""
=============================================================================
HTTP RESPONSE BUILDING
=============================================================================

Every JSON body the API sends uses one of two envelopes:

    SUCCESS                               FAILURE
    ───────                               ───────
    {                                     {
      "success": true,                      "error": true,
      "message": "Success",                 "message": "Validation failed",
      "data": {...}                         "errors": {"title": "..."}
    }                                     }

``success()`` and ``error()`` build them; ResponseBuilder covers the rest
(HTML and PDF bodies for the CV, CORS and rate-limit headers, cookies).

    Handler returns          to_bytes()              Connection sends
    HTTPResponse    ─────►   serializes    ─────►    raw bytes
=============================================================================
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import format_datetime
from typing import Any, Dict, Optional, Union

from .status_codes import HTTPStatus


JSON_CONTENT_TYPE = "application/json; charset=utf-8"


def format_http_date(dt: datetime) -> str:
    """Format a datetime as an RFC 7231 HTTP-date (always GMT)."""
    return format_datetime(dt.astimezone(timezone.utc), usegmt=True)


def dump_json(data: Any) -> bytes:
    """Serialize to UTF-8 JSON. Dates, Decimals and the like fall back to str()."""
    return json.dumps(data, ensure_ascii=False, default=str).encode("utf-8")


@dataclass
class HTTPResponse:
    """
    An HTTP response to be sent to the client.

    Content-Length, Date and Server are added at serialization time when
    the handler did not set them.
    """

    status: HTTPStatus = HTTPStatus.OK
    headers: Dict[str, str] = field(default_factory=dict)
    body: bytes = b""
    version: str = "HTTP/1.1"

    @property
    def status_line(self) -> str:
        return f"{self.version} {int(self.status)} {self.status.phrase}"

    @property
    def json(self) -> Any:
        """Decoded JSON body. Used by tests and the access log."""
        if not self.body:
            return None
        return json.loads(self.body.decode("utf-8"))

    def set_header(self, name: str, value: str) -> "HTTPResponse":
        self.headers[name] = value
        return self

    def to_bytes(self, server_name: str = "PortfolioAPI/1.0") -> bytes:
        """
        Serialize to wire format:

            HTTP/1.1 200 OK\\r\\n
            Content-Type: application/json; charset=utf-8\\r\\n
            Content-Length: 27\\r\\n
            Date: Sun, 18 Oct 2026 10:00:00 GMT\\r\\n
            Server: PortfolioAPI/1.0\\r\\n
            \\r\\n
            {"success": true, ...}
        """
        response_headers = dict(self.headers)
        response_headers.setdefault("Content-Length", str(len(self.body)))
        response_headers.setdefault("Date", format_http_date(datetime.now(timezone.utc)))
        response_headers.setdefault("Server", server_name)

        lines = [self.status_line]
        lines.extend(f"{name}: {value}" for name, value in response_headers.items())
        lines.append("")

        return "\r\n".join(lines).encode("utf-8") + b"\r\n" + self.body


class ResponseBuilder:
    """
    Fluent builder for HTTP responses.

        response = (ResponseBuilder()
            .status(HTTPStatus.OK)
            .html(document)
            .header("Content-Disposition", 'inline; filename="cv.html"')
            .cache(max_age=3600)
            .build())

    Every method except build() returns ``self``.
    """

    def __init__(self):
        self._status = HTTPStatus.OK
        self._headers: Dict[str, str] = {}
        self._body: bytes = b""

    def status(self, status: Union[HTTPStatus, int]) -> "ResponseBuilder":
        self._status = HTTPStatus(status)
        return self

    def header(self, name: str, value: str) -> "ResponseBuilder":
        self._headers[name] = value
        return self

    def headers(self, headers: Dict[str, str]) -> "ResponseBuilder":
        self._headers.update(headers)
        return self

    def content_type(self, content_type: str) -> "ResponseBuilder":
        return self.header("Content-Type", content_type)

    def body(self, body: Union[str, bytes]) -> "ResponseBuilder":
        self._body = body.encode("utf-8") if isinstance(body, str) else body
        return self

    def html(self, html: str) -> "ResponseBuilder":
        self._body = html.encode("utf-8")
        self._headers["Content-Type"] = "text/html; charset=utf-8"
        return self

    def json(self, data: Any) -> "ResponseBuilder":
        self._body = dump_json(data)
        self._headers["Content-Type"] = JSON_CONTENT_TYPE
        return self

    def attachment(self, content: bytes, filename: str, content_type: str,
                   inline: bool = False) -> "ResponseBuilder":
        """Binary body with a Content-Disposition filename (CV downloads)."""
        disposition = "inline" if inline else "attachment"
        self._body = content
        self._headers["Content-Type"] = content_type
        self._headers["Content-Disposition"] = f'{disposition}; filename="{filename}"'
        return self

    def cookie(self, name: str, value: str, max_age: int, path: str = "/",
               http_only: bool = True, same_site: str = "Lax",
               secure: bool = False) -> "ResponseBuilder":
        """
        Set a cookie. ``max_age=0`` tells the browser to drop it.

        Only one Set-Cookie header per response is supported; the API never
        needs more than the session cookie.
        """
        parts = [f"{name}={value}", f"Path={path}", f"Max-Age={max_age}"]
        if max_age == 0:
            parts.append("Expires=Thu, 01 Jan 1970 00:00:00 GMT")
        if http_only:
            parts.append("HttpOnly")
        if secure:
            parts.append("Secure")
        if same_site:
            parts.append(f"SameSite={same_site}")
        self._headers["Set-Cookie"] = "; ".join(parts)
        return self

    def cache(self, max_age: int = 3600, public: bool = True) -> "ResponseBuilder":
        visibility = "public" if public else "private"
        self._headers["Cache-Control"] = f"{visibility}, max-age={max_age}"
        return self

    def no_cache(self) -> "ResponseBuilder":
        self._headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
        return self

    def close_connection(self) -> "ResponseBuilder":
        self._headers["Connection"] = "close"
        return self

    def build(self) -> HTTPResponse:
        return HTTPResponse(
            status=self._status,
            headers=dict(self._headers),
            body=self._body,
        )


# =============================================================================
# ENVELOPE HELPERS
# =============================================================================

def success(
    data: Any = None,
    message: str = "Success",
    status: HTTPStatus = HTTPStatus.OK,
    headers: Optional[Dict[str, str]] = None,
) -> HTTPResponse:
    """Build a ``{"success": true, "message", "data"}`` response."""
    return (ResponseBuilder()
        .status(status)
        .json({"success": True, "message": message, "data": data})
        .headers(headers or {})
        .build())


def error(
    message: str,
    status: HTTPStatus = HTTPStatus.BAD_REQUEST,
    errors: Optional[Dict[str, Any]] = None,
    headers: Optional[Dict[str, str]] = None,
    debug: Optional[str] = None,
) -> HTTPResponse:
    """Build a ``{"error": true, "message", "errors"?}`` response."""
    payload: Dict[str, Any] = {"error": True, "message": message}
    if errors:
        payload["errors"] = errors
    if debug is not None:
        payload["debug"] = debug
    return (ResponseBuilder()
        .status(status)
        .json(payload)
        .headers(headers or {})
        .build())


def created(data: Any = None, message: str = "Created successfully") -> HTTPResponse:
    return success(data, message, status=HTTPStatus.CREATED)


def empty(status: HTTPStatus = HTTPStatus.OK) -> HTTPResponse:
    """Status-only response (CORS preflight)."""
    return ResponseBuilder().status(status).header("Content-Length", "0").build()
