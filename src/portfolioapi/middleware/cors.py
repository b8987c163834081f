"""
=============================================================================
CORS (Cross-Origin Resource Sharing) MIDDLEWARE
=============================================================================

The portfolio front end and the admin panel live on their own origins and
call this API with credentials (the admin session cookie). Browsers only
allow that when the API names the calling origin explicitly:

    ┌───────────────────────────────────────────────────────────────────┐
    │   Origin: https://admin.netanelk.com                             │
    │                                                                    │
    │   ✅ in allowed_origins → echoed back + Allow-Credentials: true    │
    │   ❌ not listed         → no Allow-Origin header, browser blocks   │
    │                                                                    │
    │   "*" cannot be combined with credentials, so it is never sent.   │
    └───────────────────────────────────────────────────────────────────┘

=============================================================================
PREFLIGHT
=============================================================================

    Browser                                API
       │  OPTIONS /api/admin/projects        │
       │  Origin: https://admin.netanelk.com │
       │ ───────────────────────────────────►│
       │                                     │ answered here: 200, empty
       │  Access-Control-Allow-* headers     │ body, no route lookup
       │ ◄───────────────────────────────────│
       │  PUT /api/admin/projects/3          │
       │ ───────────────────────────────────►│

Runs as a global middleware, before route lookup, so preflights succeed on
routes that require authentication.
=============================================================================
"""

from dataclasses import dataclass, field
from typing import List

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, empty
from ..http.status_codes import HTTPStatus


@dataclass
class CORSConfig:
    allow_origins: List[str] = field(default_factory=list)

    allow_methods: List[str] = field(
        default_factory=lambda: ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    )

    allow_headers: List[str] = field(
        default_factory=lambda: ["Content-Type", "Authorization", "X-Requested-With", "Accept"]
    )

    allow_credentials: bool = True

    max_age: int = 86400


class CORSMiddleware(Middleware):
    """
    Answers preflights and decorates every response with CORS headers.

        router.use(CORSMiddleware(CORSConfig(allow_origins=config.allowed_origins)))
    """

    def __init__(self, config: CORSConfig):
        self.config = config

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        origin = request.headers.get("origin", "")

        if request.method == "OPTIONS":
            response = empty(HTTPStatus.OK)
        else:
            response = next(request)

        self._add_cors_headers(response, origin)
        return response

    def _add_cors_headers(self, response: HTTPResponse, origin: str) -> None:
        if origin and origin in self.config.allow_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            vary = response.headers.get("Vary", "")
            if "Origin" not in vary:
                response.headers["Vary"] = f"{vary}, Origin".lstrip(", ")

        response.headers["Access-Control-Allow-Methods"] = ", ".join(self.config.allow_methods)
        response.headers["Access-Control-Allow-Headers"] = ", ".join(self.config.allow_headers)
        if self.config.allow_credentials:
            response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Max-Age"] = str(self.config.max_age)

    def is_origin_allowed(self, origin: str) -> bool:
        return origin in self.config.allow_origins
