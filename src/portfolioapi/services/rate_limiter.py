"""
=============================================================================
FIXED-WINDOW RATE LIMITER
=============================================================================

Every request is counted against (client IP, endpoint category). Each
category has its own limit and window:

    ┌────────────────┬───────┬────────┬──────────────────────────────────┐
    │ Category       │ Limit │ Window │ Matches                          │
    ├────────────────┼───────┼────────┼──────────────────────────────────┤
    │ contact_submit │     5 │    60s │ POST /api/contact/...            │
    │ auth           │     3 │   300s │ /api/auth/...                    │
    │ admin          │   100 │    60s │ /api/admin/...                   │
    │ cv_download    │    10 │    60s │ /api/cv/...                      │
    │ general_api    │    60 │    60s │ any other /api/... path          │
    │ other          │   100 │    60s │ everything else                  │
    └────────────────┴───────┴────────┴──────────────────────────────────┘

=============================================================================
HOW A WINDOW WORKS
=============================================================================

    t=0    first request  → counter opens: count=1, window_start=0
    t=10   request 2..5   → count=5  (all allowed, limit=5)
    t=20   request 6      → rejected, count stays 5, Retry-After: 40
    t=60   request 7      → window elapsed, counter restarts at 1

Counters live in the shared cache store, so every worker thread (and, with
redis, every process) sees the same numbers. A client can burst up to ~2x
the limit across a window boundary.

=============================================================================
"""

import ipaddress
import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Mapping, Optional, Tuple

from ..cache.base import CacheStore, CounterState
from ..errors import CacheError


logger = logging.getLogger(__name__)


# Proxy headers consulted for the client address, most trusted first.
PROXY_HEADERS = (
    "cf-connecting-ip",
    "x-forwarded-for",
    "x-forwarded",
    "x-cluster-client-ip",
    "forwarded-for",
    "forwarded",
    "client-ip",
)


def categorize(method: str, path: str) -> str:
    """Endpoint category used to pick the limit for a request."""
    if path.startswith("/api/contact") and method == "POST":
        return "contact_submit"
    if path.startswith("/api/auth"):
        return "auth"
    if path.startswith("/api/admin"):
        return "admin"
    if path.startswith("/api/cv"):
        return "cv_download"
    if path.startswith("/api/") or path == "/api":
        return "general_api"
    return "other"


def _is_public(candidate: str) -> bool:
    try:
        address = ipaddress.ip_address(candidate)
    except ValueError:
        return False
    return not (
        address.is_private
        or address.is_reserved
        or address.is_loopback
        or address.is_link_local
        or address.is_multicast
        or address.is_unspecified
    )


def _candidates(value: str) -> Iterable[str]:
    for part in value.split(","):
        part = part.strip()
        # RFC 7239 style: for="203.0.113.7"
        for token in part.split(";"):
            token = token.strip()
            if token.lower().startswith("for="):
                part = token[4:].strip('"')
                break
        yield part


def resolve_client_ip(headers: Mapping[str, str], remote_addr: str) -> str:
    """
    The client's address, looking through proxy headers.

    The first well-formed public address found in PROXY_HEADERS wins. When
    there is none the socket address is returned, even if it is private
    (local development, tests).
    """
    for header in PROXY_HEADERS:
        value = headers.get(header)
        if not value:
            continue
        for candidate in _candidates(value):
            if _is_public(candidate):
                return candidate
    return remote_addr or "0.0.0.0"


@dataclass(frozen=True)
class RateLimitRule:
    limit: int
    window: int


@dataclass(frozen=True)
class RateLimitDecision:
    """
    Outcome of a limiter check.

    Attributes:
        allowed: Whether the request may proceed.
        category: Endpoint category the request was counted against.
        limit: Requests allowed per window.
        count: Requests recorded in the current window (this one included
            when ``hit`` allowed it).
        reset_at: Epoch seconds when the window closes.
        retry_after: Seconds to wait before retrying (rejections only).
    """
    allowed: bool
    category: str
    limit: int
    count: int
    reset_at: float
    retry_after: int = 0

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.count)

    def headers(self) -> Dict[str, str]:
        """X-RateLimit-* headers (plus Retry-After when rejected)."""
        headers = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(0 if not self.allowed else self.remaining),
            "X-RateLimit-Reset": str(int(math.ceil(self.reset_at))),
        }
        if not self.allowed:
            headers["Retry-After"] = str(self.retry_after)
        return headers


class RateLimiter:
    """
    Fixed-window limiter over a CacheStore's counters.

    Args:
        store: Cache store holding the counters.
        rules: category → (limit, window). Unknown categories use "other".
        fail_open: Allow requests when the store fails (False rejects them).
        clock: Epoch seconds source; defaults to the store's clock.
    """

    def __init__(
        self,
        store: CacheStore,
        rules: Mapping[str, Tuple[int, int]],
        fail_open: bool = True,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.store = store
        self.rules = {name: RateLimitRule(*rule) for name, rule in rules.items()}
        self.fail_open = fail_open
        self._clock = clock or store.now

    def rule_for(self, category: str) -> RateLimitRule:
        return self.rules.get(category) or self.rules.get("other") or RateLimitRule(100, 60)

    @staticmethod
    def _key(ip: str, category: str) -> str:
        return f"rate_limit:{category}:{ip}"

    def _retry_after(self, state: CounterState, now: float) -> int:
        return max(1, int(math.ceil(state.reset_at - now)))

    def _degraded(self, category: str, rule: RateLimitRule, now: float, exc: Exception) -> RateLimitDecision:
        policy = "allowing" if self.fail_open else "rejecting"
        logger.error(f"Rate limiter backend failed for {category}, {policy} request: {exc}")
        if self.fail_open:
            return RateLimitDecision(True, category, rule.limit, 0, now + rule.window)
        return RateLimitDecision(False, category, rule.limit, rule.limit, now + rule.window, rule.window)

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def check_limit(self, ip: str, category: str) -> RateLimitDecision:
        """
        Would a request be allowed right now? Does not count anything.
        """
        rule = self.rule_for(category)
        now = self._clock()
        try:
            state = self.store.peek_counter(self._key(ip, category), rule.window)
        except CacheError as e:
            return self._degraded(category, rule, now, e)

        if state is None or state.expired(now):
            return RateLimitDecision(True, category, rule.limit, 0, now + rule.window)

        if state.count < rule.limit:
            return RateLimitDecision(True, category, rule.limit, state.count, state.reset_at)

        return RateLimitDecision(
            False, category, rule.limit, state.count, state.reset_at,
            self._retry_after(state, now),
        )

    def record_request(self, ip: str, category: str) -> CounterState:
        """
        Count one request, opening a new window at ``now`` when needed.

        Raises:
            CacheError: If the store fails.
        """
        rule = self.rule_for(category)
        return self.store.increment(self._key(ip, category), rule.window)

    def hit(self, ip: str, category: str) -> RateLimitDecision:
        """
        Count the request and decide.

        A request arriving in an exhausted window is rejected without being
        counted. Otherwise the atomic increment decides, so concurrent
        requests racing for the last slots never admit more than ``limit``.
        """
        rule = self.rule_for(category)
        key = self._key(ip, category)
        now = self._clock()
        try:
            current = self.store.peek_counter(key, rule.window)
            if current is not None and not current.expired(now) and current.count >= rule.limit:
                return RateLimitDecision(
                    False, category, rule.limit, current.count, current.reset_at,
                    self._retry_after(current, now),
                )
            state = self.store.increment(key, rule.window)
        except CacheError as e:
            return self._degraded(category, rule, now, e)

        if state.count <= rule.limit:
            return RateLimitDecision(True, category, rule.limit, state.count, state.reset_at)

        return RateLimitDecision(
            False, category, rule.limit, state.count, state.reset_at,
            self._retry_after(state, now),
        )

    def reset(self, ip: str, category: str) -> None:
        try:
            self.store.reset_counter(self._key(ip, category))
        except CacheError as e:
            logger.error(f"Could not reset rate limit for {ip}/{category}: {e}")
