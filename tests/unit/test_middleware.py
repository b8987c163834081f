"""
Unit tests for the middleware layer.
"""

import json
import logging

import pytest

from portfolioapi.data import AdminRepository
from portfolioapi.errors import RateLimitError
from portfolioapi.http.response import HTTPResponse, success
from portfolioapi.middleware import (
    AccessLogMiddleware,
    AuthMiddleware,
    CORSConfig,
    CORSMiddleware,
    Middleware,
    MiddlewarePipeline,
    RateLimitMiddleware,
)
from portfolioapi.services.passwords import PasswordHasher
from portfolioapi.services.rate_limiter import RateLimiter
from portfolioapi.services.sessions import SessionManager

from conftest import build_request


ORIGIN = "https://admin.example.com"


def ok_handler(request) -> HTTPResponse:
    return success({"user": getattr(request.context, "user", None)})


class TestMiddlewarePipeline:
    """Tests for MiddlewarePipeline."""

    def test_empty_pipeline_calls_handler(self):
        handler = MiddlewarePipeline().wrap(ok_handler)
        assert handler(build_request("GET", "/")).status == 200

    def test_order(self):
        calls = []

        class Recording(Middleware):
            def __init__(self, label):
                self.label = label

            def __call__(self, request, next):
                calls.append(self.label)
                return next(request)

        pipeline = MiddlewarePipeline().use(Recording("outer"), Recording("inner"))
        pipeline.wrap(ok_handler)(build_request("GET", "/"))
        assert calls == ["outer", "inner"]
        assert len(pipeline) == 2


class TestCORSMiddleware:
    """Tests for CORSMiddleware."""

    @pytest.fixture
    def cors(self):
        return CORSMiddleware(CORSConfig(allow_origins=[ORIGIN]))

    def test_preflight_short_circuits(self, cors):
        """OPTIONS is answered without reaching the handler."""
        def never(request):
            raise AssertionError("handler must not run")

        request = build_request("OPTIONS", "/api/admin/projects", headers={"Origin": ORIGIN})
        response = cors(request, never)

        assert response.status == 200
        assert response.body == b""
        assert response.headers["Access-Control-Allow-Origin"] == ORIGIN
        assert "PUT" in response.headers["Access-Control-Allow-Methods"]

    def test_allowed_origin_echoed(self, cors):
        response = cors(build_request("GET", "/api", headers={"Origin": ORIGIN}), ok_handler)
        assert response.headers["Access-Control-Allow-Origin"] == ORIGIN
        assert response.headers["Access-Control-Allow-Credentials"] == "true"
        assert response.headers["Vary"] == "Origin"

    def test_unknown_origin_not_echoed(self, cors):
        request = build_request("GET", "/api", headers={"Origin": "https://evil.example"})
        response = cors(request, ok_handler)
        assert "Access-Control-Allow-Origin" not in response.headers
        assert not cors.is_origin_allowed("https://evil.example")

    def test_never_wildcard(self, cors):
        response = cors(build_request("GET", "/api"), ok_handler)
        assert response.headers.get("Access-Control-Allow-Origin") != "*"


class TestAuthMiddleware:
    """Tests for AuthMiddleware."""

    @pytest.fixture
    def sessions(self, store, database):
        hasher = PasswordHasher(iterations=1000)
        admins = AdminRepository(database)
        admins.create_admin("admin", "admin@example.com", hasher.hash("s3cret-pass"))
        return SessionManager(store, admins, hasher)

    @pytest.fixture
    def token(self, sessions):
        return sessions.login("admin", "s3cret-pass")["token"]

    def test_no_session_is_401(self, sessions):
        response = AuthMiddleware(sessions)(build_request("GET", "/api/admin/dashboard"), ok_handler)
        assert response.status == 401
        assert response.json == {"error": True, "message": "Authentication required"}

    def test_cookie_session(self, sessions, token):
        request = build_request("GET", "/api/admin/dashboard",
                                headers={"Cookie": f"PORTFOLIO_API_SESSION={token}"})
        response = AuthMiddleware(sessions)(request, ok_handler)
        assert response.status == 200
        assert response.json["data"]["user"]["username"] == "admin"
        assert request.context.session_token == token

    def test_bearer_token(self, sessions, token):
        request = build_request("GET", "/api/admin/dashboard",
                                headers={"Authorization": f"Bearer {token}"})
        assert AuthMiddleware(sessions)(request, ok_handler).status == 200

    def test_invalid_token(self, sessions):
        request = build_request("GET", "/api/admin/dashboard",
                                headers={"Authorization": "Bearer forged"})
        assert AuthMiddleware(sessions)(request, ok_handler).status == 401


class TestRateLimitMiddleware:
    """Tests for RateLimitMiddleware."""

    @pytest.fixture
    def middleware(self, store):
        return RateLimitMiddleware(RateLimiter(store, {"contact_submit": (2, 60), "other": (100, 60)}))

    def test_headers_on_allowed(self, middleware):
        response = middleware(build_request("POST", "/api/contact/submit"), ok_handler)
        assert response.status == 200
        assert response.headers["X-RateLimit-Limit"] == "2"
        assert response.headers["X-RateLimit-Remaining"] == "1"

    def test_rejects_over_limit(self, middleware):
        for _ in range(2):
            middleware(build_request("POST", "/api/contact/submit"), ok_handler)
        with pytest.raises(RateLimitError) as exc_info:
            middleware(build_request("POST", "/api/contact/submit"), ok_handler)

        assert exc_info.value.status_code == 429
        assert exc_info.value.message == "Too many requests. Please try again later."
        assert exc_info.value.retry_after == 60
        assert exc_info.value.headers["Retry-After"] == "60"
        assert exc_info.value.headers["X-RateLimit-Remaining"] == "0"

    def test_limit_is_per_client(self, middleware):
        for _ in range(2):
            middleware(build_request("POST", "/api/contact/submit", client_ip="10.0.0.1"), ok_handler)
        request = build_request("POST", "/api/contact/submit", client_ip="10.0.0.2")
        assert middleware(request, ok_handler).status == 200

    def test_forwarded_client_counted(self, middleware):
        """Clients behind a proxy are told apart by X-Forwarded-For."""
        for _ in range(2):
            middleware(build_request("POST", "/api/contact/submit",
                                     headers={"X-Forwarded-For": "203.0.113.1"}), ok_handler)
        request = build_request("POST", "/api/contact/submit",
                                headers={"X-Forwarded-For": "203.0.113.2"})
        assert middleware(request, ok_handler).status == 200
        assert request.context.client_ip == "203.0.113.2"


class TestAccessLogMiddleware:
    """Tests for AccessLogMiddleware."""

    def test_request_id_generated(self):
        request = build_request("GET", "/api/health")
        response = AccessLogMiddleware()(request, ok_handler)
        assert len(response.headers["X-Request-ID"]) == 8
        assert request.context.request_id == response.headers["X-Request-ID"]

    def test_request_id_propagated(self):
        request = build_request("GET", "/api/health", headers={"X-Request-ID": "abc123"})
        assert AccessLogMiddleware()(request, ok_handler).headers["X-Request-ID"] == "abc123"

    def test_text_line(self, caplog):
        with caplog.at_level(logging.INFO, logger="portfolioapi.access"):
            AccessLogMiddleware()(build_request("GET", "/api/health?x=1"), ok_handler)
        line = caplog.records[-1].getMessage()
        assert line.startswith("127.0.0.1 - - [")
        assert '"GET /api/health" 200' in line

    def test_json_line(self, caplog):
        with caplog.at_level(logging.INFO, logger="portfolioapi.access"):
            AccessLogMiddleware(log_format="json")(build_request("GET", "/api/health?x=1"), ok_handler)
        entry = json.loads(caplog.records[-1].getMessage())
        assert entry["path"] == "/api/health"
        assert entry["query"] == "x=1"
        assert entry["status_code"] == 200

    def test_skip_paths(self, caplog):
        with caplog.at_level(logging.INFO, logger="portfolioapi.access"):
            AccessLogMiddleware(skip_paths=["/api/health"])(build_request("GET", "/api/health"), ok_handler)
        assert not [r for r in caplog.records if r.name == "portfolioapi.access"]

    def test_exception_logged_and_raised(self, caplog):
        def broken(request):
            raise RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="portfolioapi.access"):
            with pytest.raises(RuntimeError):
                AccessLogMiddleware()(build_request("GET", "/api/x"), broken)
        assert "RuntimeError: boom" in caplog.records[-1].getMessage()
