"""
=============================================================================
HTTP REQUEST PARSING
=============================================================================

Turns the raw bytes read from a connection into an HTTPRequest.

    ┌──────────────────────────────────────────────────────────────────────┐
    │  Request Line    │  POST /api/contact/submit?x=1 HTTP/1.1            │
    ├──────────────────────────────────────────────────────────────────────┤
    │  Headers         │  Host: api.example.com                            │
    │                  │  Content-Type: application/json                   │
    │                  │  Cookie: PORTFOLIO_API_SESSION=abc                │
    │                  │  Content-Length: 42                               │
    ├──────────────────────────────────────────────────────────────────────┤
    │  (empty line)    │  \r\n                                             │
    ├──────────────────────────────────────────────────────────────────────┤
    │  Body            │  {"name": "Test User", ...}                       │
    └──────────────────────────────────────────────────────────────────────┘

Besides the wire fields, every request carries a RequestContext: the
request-scoped bag that middleware fill in (request id, resolved client IP,
authenticated user) and handlers read. Nothing about the current user is
ever stored globally.
=============================================================================
"""

import json
import re
from dataclasses import dataclass, field
from http.cookies import CookieError, SimpleCookie
from typing import Any, Dict, Optional
from urllib.parse import parse_qs, unquote, urlparse

from ..errors import ApiError


class HTTPParseError(ApiError):
    """
    Raised when a request cannot be parsed.

    Carries the HTTP status to answer with:

        400 Bad Request                 - malformed syntax or body
        405 Method Not Allowed          - unknown method
        413 Payload Too Large           - over max_request_size
        505 HTTP Version Not Supported  - not HTTP/1.0 or HTTP/1.1
    """

    status_code = 400
    default_message = "Bad request"

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message, status_code=status_code)


@dataclass
class RequestContext:
    """
    Per-request state shared between middleware and the handler.

    Attributes:
        request_id: Correlation id, echoed as X-Request-ID.
        client_ip: Client address after proxy-header resolution.
        user: Authenticated admin ({id, username, email, ...}) or None.
        session_token: Token of the session that authenticated the request.
    """
    request_id: str = ""
    client_ip: str = ""
    user: Optional[Dict[str, Any]] = None
    session_token: Optional[str] = None


@dataclass
class HTTPRequest:
    """
    A parsed HTTP request.

    Header names are lowercased at parse time (they are case-insensitive),
    query parameters keep every value (``?a=1&a=2`` → ``{"a": ["1", "2"]}``).
    ``path_params`` is filled by the router once a route matches.
    """

    method: str
    path: str
    version: str = "HTTP/1.1"

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, list] = field(default_factory=dict)
    body: bytes = b""

    path_params: Dict[str, str] = field(default_factory=dict)

    client_address: tuple = ("", 0)
    context: RequestContext = field(default_factory=RequestContext)

    _body_json: Optional[Any] = field(default=None, repr=False)
    _cookies: Optional[Dict[str, str]] = field(default=None, repr=False)

    @property
    def content_type(self) -> Optional[str]:
        """Content-Type without parameters, lowercased."""
        ct = self.headers.get("content-type", "")
        return ct.split(";")[0].strip().lower() or None

    @property
    def user_agent(self) -> str:
        return self.headers.get("user-agent", "")

    @property
    def is_json(self) -> bool:
        return self.content_type == "application/json"

    @property
    def json(self) -> Any:
        """
        The body parsed as JSON (lazy, cached).

        Raises:
            HTTPParseError: If the body is not valid JSON.
        """
        if self._body_json is None and self.body:
            try:
                self._body_json = json.loads(self.body.decode("utf-8"))
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise HTTPParseError(f"Invalid JSON body: {e}")
        return self._body_json

    @property
    def data(self) -> Dict[str, Any]:
        """
        Request input as a flat dict.

        JSON bodies must be objects. Form-encoded bodies are flattened to
        their first value per field. Anything else yields an empty dict.
        """
        if not self.body:
            return {}
        if self.content_type == "application/x-www-form-urlencoded":
            parsed = parse_qs(self.body.decode("utf-8", errors="replace"), keep_blank_values=True)
            return {key: values[0] for key, values in parsed.items()}
        payload = self.json
        if not isinstance(payload, dict):
            raise HTTPParseError("Request body must be a JSON object")
        return payload

    @property
    def cookies(self) -> Dict[str, str]:
        """Cookies sent in the Cookie header. Malformed headers yield {}."""
        if self._cookies is None:
            jar = SimpleCookie()
            try:
                jar.load(self.headers.get("cookie", ""))
            except CookieError:
                jar = SimpleCookie()
            self._cookies = {name: morsel.value for name, morsel in jar.items()}
        return self._cookies

    @property
    def is_keep_alive(self) -> bool:
        """
        HTTP/1.1 keeps the connection open unless told ``Connection: close``;
        HTTP/1.0 closes unless told ``Connection: keep-alive``.
        """
        connection = self.headers.get("connection", "").lower()
        if self.version == "HTTP/1.1":
            return connection != "close"
        return connection == "keep-alive"

    def get_header(self, name: str, default: str = "") -> str:
        """Case-insensitive header lookup."""
        return self.headers.get(name.lower(), default)

    def get_query(self, name: str, default: Optional[str] = None) -> Optional[str]:
        """First value of a query parameter."""
        values = self.query_params.get(name, [])
        return values[0] if values else default


class RequestParser:
    """
    Parses raw HTTP request bytes into HTTPRequest objects.

    Parsing steps:

        1. Size check                   → 413 when too large
        2. Split headers from body      → 400 when no \\r\\n\\r\\n
        3. Request line                 → 400 / 405 / 505
        4. Headers (lowercased names, duplicates joined with ", ")
        5. Body, exactly Content-Length bytes
    """

    VALID_METHODS = {"GET", "POST", "PUT", "DELETE", "PATCH", "HEAD", "OPTIONS"}

    REQUEST_LINE_PATTERN = re.compile(r"^([A-Z]+) ([^ ]+) (HTTP/\d\.\d)$")
    HEADER_PATTERN = re.compile(r"^([^:]+):\s*(.*)$")

    def __init__(self, max_request_size: int = 2 * 1024 * 1024):
        self.max_request_size = max_request_size

    def parse(self, data: bytes, client_address: tuple = ("", 0)) -> HTTPRequest:
        """
        Parse raw request bytes.

        Args:
            data: Complete request bytes as read by Connection.read_request().
            client_address: (ip, port) of the socket peer.

        Raises:
            HTTPParseError: If the request is malformed.
        """
        if len(data) > self.max_request_size:
            raise HTTPParseError(f"Request too large: {len(data)} bytes", status_code=413)

        header_end = data.find(b"\r\n\r\n")
        if header_end == -1:
            raise HTTPParseError("Incomplete request: no header terminator")

        header_section = data[:header_end].decode("utf-8", errors="replace")
        body = data[header_end + 4:]

        lines = header_section.split("\r\n")
        method, path, query_params, version = self._parse_request_line(lines[0])
        headers = self._parse_headers(lines[1:])

        try:
            content_length = int(headers.get("content-length", 0))
        except ValueError:
            raise HTTPParseError("Invalid Content-Length header")
        if content_length < 0:
            raise HTTPParseError("Invalid Content-Length header")
        if len(body) < content_length:
            raise HTTPParseError(
                f"Incomplete body: expected {content_length} bytes, got {len(body)}"
            )

        return HTTPRequest(
            method=method,
            path=path,
            version=version,
            headers=headers,
            query_params=query_params,
            body=body[:content_length],
            client_address=client_address,
        )

    def _parse_request_line(self, line: str) -> tuple:
        """
        Parse ``METHOD SP REQUEST-URI SP HTTP-VERSION``.

        Returns:
            (method, path, query_params, version)
        """
        match = self.REQUEST_LINE_PATTERN.match(line)
        if not match:
            raise HTTPParseError(f"Invalid request line: {line}")

        method, uri, version = match.groups()

        if method not in self.VALID_METHODS:
            raise HTTPParseError(f"Invalid method: {method}", status_code=405)

        if version not in ("HTTP/1.0", "HTTP/1.1"):
            raise HTTPParseError(f"Unsupported HTTP version: {version}", status_code=505)

        parsed = urlparse(uri)
        path = unquote(parsed.path) or "/"
        query_params = parse_qs(parsed.query, keep_blank_values=True)

        if ".." in path:
            raise HTTPParseError("Invalid path: contains ..")

        return method, path, query_params, version

    def _parse_headers(self, lines: list) -> Dict[str, str]:
        headers: Dict[str, str] = {}
        current_name = None

        for line in lines:
            if not line:
                continue

            # obsolete line folding: continuation of the previous header
            if line[0] in (" ", "\t"):
                if current_name is not None:
                    headers[current_name] += " " + line.strip()
                continue

            match = self.HEADER_PATTERN.match(line)
            if not match:
                continue

            name, value = match.groups()
            name = name.strip().lower()
            value = value.strip()
            current_name = name

            if name in headers:
                headers[name] += ", " + value
            else:
                headers[name] = value

        return headers
