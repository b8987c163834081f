"""
Application services: rate limiting, sessions, passwords, validation,
spam filtering and CV rendering.
"""

from .cv import CvRenderer, PdfUnavailable
from .passwords import PasswordHasher
from .rate_limiter import RateLimitDecision, RateLimiter, categorize, resolve_client_ip
from .sessions import SessionManager
from .spam import SpamFilter
from .validation import Validator, sanitize

__all__ = [
    "CvRenderer",
    "PdfUnavailable",
    "PasswordHasher",
    "RateLimitDecision",
    "RateLimiter",
    "categorize",
    "resolve_client_ip",
    "SessionManager",
    "SpamFilter",
    "Validator",
    "sanitize",
]
