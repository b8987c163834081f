"""
=============================================================================
ERROR TAXONOMY
=============================================================================

Every failure a client can observe maps to one exception class here. The
router's error boundary converts them into the standard failure envelope:

    {"error": true, "message": "...", "errors": {...}}

    ┌──────────────────────┬────────┬──────────────────────────────────────┐
    │ Exception            │ Status │ Client sees                          │
    ├──────────────────────┼────────┼──────────────────────────────────────┤
    │ ValidationError      │ 400/422│ message + field-level errors         │
    │ AuthError            │ 401    │ generic message, never detail        │
    │ NotFoundError        │ 404    │ resource or route absent             │
    │ RateLimitError       │ 429    │ message + Retry-After header         │
    │ DataAccessError      │ 500    │ "Internal server error"              │
    └──────────────────────┴────────┴──────────────────────────────────────┘

Two exceptions never reach a client:

    ConfigurationError  - raised at startup, the process cannot run
    CacheError          - raised by cache backends, callers degrade

=============================================================================
"""

from typing import Dict, Optional


class ApiError(Exception):
    """
    Base class for errors that become an HTTP error response.

    Attributes:
        status_code: HTTP status to send.
        message: Client-facing message.
        errors: Optional field → message mapping.
        headers: Extra response headers (e.g. Retry-After).
    """

    status_code: int = 500
    default_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        errors: Optional[Dict[str, str]] = None,
        status_code: Optional[int] = None,
        headers: Optional[Dict[str, str]] = None,
    ):
        self.message = message or self.default_message
        super().__init__(self.message)
        self.errors = errors
        self.headers = headers or {}
        if status_code is not None:
            self.status_code = int(status_code)


class ValidationError(ApiError):
    """Invalid client input. 400 on public endpoints, 422 on the admin surface."""

    status_code = 400
    default_message = "Validation failed"


class AuthError(ApiError):
    status_code = 401
    default_message = "Unauthorized"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Resource not found"


class RateLimitError(ApiError):
    """Too many requests; carries the number of seconds to wait."""

    status_code = 429
    default_message = "Too many requests. Please try again later."

    def __init__(self, retry_after: int, message: Optional[str] = None,
                 headers: Optional[Dict[str, str]] = None):
        headers = dict(headers or {})
        headers.setdefault("Retry-After", str(retry_after))
        super().__init__(message, headers=headers)
        self.retry_after = retry_after


class DataAccessError(ApiError):
    """
    The relational store failed.

    The client only ever sees the generic message; ``detail`` holds the
    driver error for the server log.
    """

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, detail: str = "", message: Optional[str] = None):
        super().__init__(message)
        self.detail = detail


class ConfigurationError(Exception):
    """Invalid configuration. Fatal at startup."""


class CacheError(Exception):
    """A cache backend operation failed."""
