"""
=============================================================================
MIDDLEWARE
=============================================================================

Two layers wrap every handler:

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    REQUEST PATH                                     │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   Incoming Request                                                   │
    │        │                                                             │
    │        ▼                                                             │
    │   ┌──────────────────────┐                                          │
    │   │ AccessLogMiddleware   │ ──► request id, client IP, timing       │
    │   └──────────┬───────────┘                                          │
    │              ▼                                                       │
    │   ┌──────────────────────┐                                          │
    │   │ CORSMiddleware        │ ──► preflight answered here             │
    │   └──────────┬───────────┘                                          │
    │              ▼              global, router.use()                    │
    │   ─ ─ ─ ─ route lookup + error boundary ─ ─ ─ ─ ─ ─ ─ ─ ─ ─ ─ ─    │
    │              ▼              per route, by name                      │
    │   ┌──────────────────────┐                                          │
    │   │ "rate_limit"          │ ──► 429 when over quota                 │
    │   └──────────┬───────────┘                                          │
    │              ▼                                                       │
    │   ┌──────────────────────┐                                          │
    │   │ "auth"                │ ──► 401 without a live session          │
    │   └──────────┬───────────┘                                          │
    │              ▼                                                       │
    │   ┌──────────────────────┐                                          │
    │   │   Handler             │                                          │
    │   └──────────────────────┘                                          │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Any middleware may return its own response instead of calling ``next``;
the layers above it still see (and may decorate) that response.
=============================================================================
"""

from .auth import AuthMiddleware
from .base import Middleware, MiddlewarePipeline, NextHandler
from .cors import CORSConfig, CORSMiddleware
from .logging import AccessLogMiddleware
from .rate_limit import RateLimitMiddleware

__all__ = [
    "Middleware",
    "MiddlewarePipeline",
    "NextHandler",
    "AuthMiddleware",
    "CORSConfig",
    "CORSMiddleware",
    "AccessLogMiddleware",
    "RateLimitMiddleware",
]
