"""
Unit tests for the fixed-window rate limiter.
"""

import threading
from unittest import mock

import pytest

from portfolioapi.errors import CacheError
from portfolioapi.services.rate_limiter import (
    RateLimitDecision,
    RateLimiter,
    categorize,
    resolve_client_ip,
)


RULES = {"contact_submit": (5, 60), "auth": (3, 300), "other": (100, 60)}


@pytest.fixture
def limiter(store):
    return RateLimiter(store, RULES)


class TestCategorize:
    """Tests for categorize."""

    @pytest.mark.parametrize("method, path, category", [
        ("POST", "/api/contact/submit", "contact_submit"),
        ("GET", "/api/contact", "general_api"),
        ("POST", "/api/auth/login", "auth"),
        ("PUT", "/api/admin/projects/1", "admin"),
        ("GET", "/api/cv/download", "cv_download"),
        ("GET", "/api/portfolio", "general_api"),
        ("GET", "/api", "general_api"),
        ("GET", "/favicon.ico", "other"),
    ])
    def test_categories(self, method, path, category):
        assert categorize(method, path) == category


class TestResolveClientIp:
    """Tests for resolve_client_ip."""

    def test_socket_address_without_headers(self):
        assert resolve_client_ip({}, "127.0.0.1") == "127.0.0.1"

    def test_first_public_forwarded_address(self):
        headers = {"x-forwarded-for": "10.0.0.5, 203.0.113.9, 198.51.100.1"}
        assert resolve_client_ip(headers, "10.0.0.1") == "203.0.113.9"

    def test_cloudflare_header_preferred(self):
        headers = {"cf-connecting-ip": "198.51.100.7", "x-forwarded-for": "203.0.113.9"}
        assert resolve_client_ip(headers, "10.0.0.1") == "198.51.100.7"

    def test_rfc7239_forwarded(self):
        headers = {"forwarded": 'for="203.0.113.60";proto=https'}
        assert resolve_client_ip(headers, "10.0.0.1") == "203.0.113.60"

    def test_private_and_garbage_ignored(self):
        headers = {"x-forwarded-for": "192.168.1.1, not-an-ip", "client-ip": "127.0.0.1"}
        assert resolve_client_ip(headers, "10.0.0.1") == "10.0.0.1"


class TestRateLimiter:
    """Tests for RateLimiter."""

    def test_sixth_request_rejected(self, limiter):
        """limit=5, window=60: requests 1-5 pass, the 6th is rejected."""
        decisions = [limiter.hit("1.2.3.4", "contact_submit") for _ in range(6)]

        assert [d.allowed for d in decisions] == [True] * 5 + [False]
        assert decisions[4].remaining == 0
        assert decisions[5].retry_after == 60

    def test_rejections_not_counted(self, limiter, store):
        for _ in range(8):
            limiter.hit("1.2.3.4", "contact_submit")
        assert store.peek_counter("rate_limit:contact_submit:1.2.3.4", 60).count == 5

    def test_concurrent_hits_admit_exactly_limit(self, limiter):
        """Threads racing for the last slots never get more than the limit."""
        results = []
        lock = threading.Lock()
        start = threading.Barrier(10)

        def worker():
            start.wait()
            for _ in range(5):
                decision = limiter.hit("1.2.3.4", "contact_submit")
                with lock:
                    results.append(decision.allowed)

        threads = [threading.Thread(target=worker) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert len(results) == 50
        assert results.count(True) == 5

    def test_allowed_after_window(self, limiter, clock):
        """The first request after the window is allowed again."""
        for _ in range(6):
            limiter.hit("1.2.3.4", "contact_submit")
        clock.advance(60)
        assert limiter.hit("1.2.3.4", "contact_submit").allowed

    def test_retry_after_shrinks(self, limiter, clock):
        for _ in range(5):
            limiter.hit("1.2.3.4", "contact_submit")
        clock.advance(45)
        assert limiter.hit("1.2.3.4", "contact_submit").retry_after == 15

    def test_ips_and_categories_are_separate(self, limiter):
        for _ in range(5):
            limiter.hit("1.2.3.4", "contact_submit")
        assert limiter.hit("5.6.7.8", "contact_submit").allowed
        assert limiter.hit("1.2.3.4", "auth").allowed

    def test_check_limit_does_not_count(self, limiter):
        for _ in range(10):
            assert limiter.check_limit("1.2.3.4", "auth").allowed
        assert limiter.hit("1.2.3.4", "auth").count == 1

    def test_check_then_record(self, limiter):
        for _ in range(3):
            limiter.record_request("1.2.3.4", "auth")
        decision = limiter.check_limit("1.2.3.4", "auth")
        assert not decision.allowed
        assert decision.retry_after == 300

    def test_unknown_category_uses_other(self, limiter):
        assert limiter.rule_for("admin").limit == 100

    def test_reset(self, limiter):
        for _ in range(3):
            limiter.hit("1.2.3.4", "auth")
        limiter.reset("1.2.3.4", "auth")
        assert limiter.hit("1.2.3.4", "auth").allowed

    def test_fail_open(self, store):
        """A failing store lets requests through by default."""
        limiter = RateLimiter(store, RULES)
        with mock.patch.object(store, "increment", side_effect=CacheError("down")):
            assert limiter.hit("1.2.3.4", "auth").allowed

    def test_fail_closed(self, store):
        limiter = RateLimiter(store, RULES, fail_open=False)
        with mock.patch.object(store, "increment", side_effect=CacheError("down")):
            decision = limiter.hit("1.2.3.4", "auth")
        assert not decision.allowed
        assert decision.retry_after == 300


class TestRateLimitDecision:
    """Tests for the response headers."""

    def test_allowed_headers(self):
        decision = RateLimitDecision(True, "auth", limit=3, count=1, reset_at=1060.2)
        assert decision.headers() == {
            "X-RateLimit-Limit": "3",
            "X-RateLimit-Remaining": "2",
            "X-RateLimit-Reset": "1061",
        }

    def test_rejected_headers(self):
        decision = RateLimitDecision(False, "auth", 3, 4, 1060.0, retry_after=12)
        headers = decision.headers()
        assert headers["X-RateLimit-Remaining"] == "0"
        assert headers["Retry-After"] == "12"
