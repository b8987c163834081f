"""
Unit tests for the router.
"""

import pytest

from portfolioapi.errors import ConfigurationError, DataAccessError, NotFoundError, ValidationError
from portfolioapi.http.request import HTTPRequest
from portfolioapi.http.response import HTTPResponse, success
from portfolioapi.http.router import Router, compile_pattern, normalize_path
from portfolioapi.middleware.base import Middleware


def make_request(method: str, path: str) -> HTTPRequest:
    return HTTPRequest(method=method, path=path)


def echo_handler(request: HTTPRequest) -> HTTPResponse:
    return success({"path": request.path, "params": request.path_params})


class RecordingMiddleware(Middleware):
    def __init__(self, label: str, calls: list):
        self.label = label
        self.calls = calls

    def __call__(self, request, next):
        self.calls.append(self.label)
        response = next(request)
        response.headers[f"X-{self.label}"] = "1"
        return response


class BlockingMiddleware(Middleware):
    def __call__(self, request, next):
        raise NotFoundError("blocked")


class TestPatternCompilation:
    """Tests for compile_pattern and normalize_path."""

    def test_static_pattern(self):
        """Static segments match only themselves."""
        regex, params = compile_pattern("/api/health")
        assert params == ()
        assert regex.match("/api/health")
        assert not regex.match("/api/health/status")

    def test_parameter_pattern(self):
        """Placeholders capture exactly one segment."""
        regex, params = compile_pattern("/api/admin/messages/{id}/status")
        assert params == ("id",)
        assert regex.match("/api/admin/messages/42/status").group("id") == "42"
        assert not regex.match("/api/admin/messages/4/2/status")

    def test_duplicate_parameter_rejected(self):
        """A parameter name may appear once per pattern."""
        with pytest.raises(ConfigurationError):
            compile_pattern("/a/{id}/b/{id}")

    def test_normalize_path(self):
        """Trailing slashes are dropped, empty becomes root."""
        assert normalize_path("/api/health/") == "/api/health"
        assert normalize_path("") == "/"
        assert normalize_path("/") == "/"


class TestRouteRegistration:
    """Tests for Router.register."""

    def test_register_route(self):
        """Registered routes are listed in order."""
        router = Router()
        router.register("GET", "/api/health", echo_handler, name="Health")
        router.register("POST", "/api/contact/submit", echo_handler)

        routes = router.routes
        assert [(r.method, r.pattern) for r in routes] == [
            ("GET", "/api/health"),
            ("POST", "/api/contact/submit"),
        ]
        assert routes[0].name == "Health"

    def test_duplicate_route_rejected(self):
        """The same method and pattern cannot be registered twice."""
        router = Router()
        router.register("GET", "/api", echo_handler)
        with pytest.raises(ConfigurationError):
            router.register("GET", "/api/", echo_handler)

    def test_unsupported_method_rejected(self):
        """Only GET, POST, PUT and DELETE routes exist."""
        with pytest.raises(ConfigurationError):
            Router().register("PATCH", "/api", echo_handler)

    def test_unknown_middleware_rejected(self):
        """Middleware names must be in the registry."""
        with pytest.raises(ConfigurationError):
            Router().register("GET", "/api", echo_handler, middleware=["auth"])

    def test_decorator_registration(self):
        """router.get() registers the decorated function."""
        router = Router()

        @router.get("/api/ping")
        def ping(request):
            return success("pong")

        assert router.match("GET", "/api/ping").route.handler is ping


class TestRouteMatching:
    """Tests for Router.match."""

    def test_match_by_method(self):
        """Same path, different methods, different routes."""
        router = Router()
        router.register("GET", "/api/admin/projects", echo_handler)
        router.register("POST", "/api/admin/projects", echo_handler)

        assert router.match("GET", "/api/admin/projects").route.method == "GET"
        assert router.match("POST", "/api/admin/projects").route.method == "POST"
        assert router.match("DELETE", "/api/admin/projects") is None

    def test_match_extracts_params(self):
        """Parameters equal the substituted literals."""
        router = Router()
        router.register("PUT", "/api/admin/messages/{id}/status", echo_handler)

        match = router.match("PUT", "/api/admin/messages/17/status")
        assert match.params == {"id": "17"}

    def test_full_path_only(self):
        """A prefix of a registered path does not match it."""
        router = Router()
        router.register("GET", "/api/portfolio", echo_handler)

        assert router.match("GET", "/api/portfolio/projects") is None
        assert router.match("GET", "/api") is None

    def test_first_registered_wins(self):
        """Registration order is match priority."""
        router = Router()
        first = router.register("GET", "/api/admin/{section}", echo_handler)
        router.register("GET", "/api/admin/dashboard", echo_handler)

        assert router.match("GET", "/api/admin/dashboard").route is first

    def test_trailing_slash_matches(self):
        """Trailing slashes on the request path are ignored."""
        router = Router()
        router.register("GET", "/api/health", echo_handler)
        assert router.match("GET", "/api/health/") is not None


class TestDispatch:
    """Tests for Router.dispatch and the error boundary."""

    def test_dispatch_sets_path_params(self):
        """Handlers see the extracted parameters."""
        router = Router()
        router.register("DELETE", "/api/admin/messages/{id}", echo_handler)

        response = router.dispatch(make_request("DELETE", "/api/admin/messages/9"))
        assert response.status == 200
        assert response.json["data"]["params"] == {"id": "9"}

    def test_unmatched_path_is_404_envelope(self):
        """Unknown endpoints answer the standard failure envelope."""
        response = Router().dispatch(make_request("GET", "/api/nope"))
        assert response.status == 404
        assert response.json == {"error": True, "message": "Endpoint not found"}

    def test_api_error_becomes_envelope(self):
        """ApiError subclasses keep their status, message and field errors."""
        router = Router()

        def invalid(request):
            raise ValidationError("Validation failed", errors={"title": "required"}, status_code=422)

        router.register("POST", "/api/x", invalid)
        response = router.dispatch(make_request("POST", "/api/x"))
        assert response.status == 422
        assert response.json["errors"] == {"title": "required"}

    def test_unexpected_error_is_500(self):
        """Other exceptions become a generic 500 without details."""
        router = Router()

        def broken(request):
            raise RuntimeError("secret detail")

        router.register("GET", "/api/x", broken)
        response = router.dispatch(make_request("GET", "/api/x"))
        assert response.status == 500
        assert response.json == {"error": True, "message": "Internal server error"}

    def test_debug_includes_exception_text(self):
        """With debug on, the 500 body carries the exception text."""
        router = Router(debug=True)

        def broken(request):
            raise RuntimeError("secret detail")

        router.register("GET", "/api/x", broken)
        assert router.dispatch(make_request("GET", "/api/x")).json["debug"] == "secret detail"

    def test_data_access_error_hides_detail(self):
        """Driver errors are logged, never sent."""
        router = Router()

        def failing(request):
            raise DataAccessError("no such table: projects")

        router.register("GET", "/api/x", failing)
        body = router.dispatch(make_request("GET", "/api/x")).json
        assert body["message"] == "Internal server error"
        assert "debug" not in body

    def test_global_middleware_runs_for_unmatched(self):
        """Global middleware wraps even 404 responses."""
        calls = []
        router = Router()
        router.use(RecordingMiddleware("Global", calls))

        response = router.dispatch(make_request("GET", "/missing"))
        assert response.status == 404
        assert response.headers["X-Global"] == "1"
        assert calls == ["Global"]

    def test_route_middleware_order(self):
        """Route middleware runs in attachment order, inside global middleware."""
        calls = []
        router = Router(middleware_registry={
            "first": RecordingMiddleware("First", calls),
            "second": RecordingMiddleware("Second", calls),
        })
        router.use(RecordingMiddleware("Global", calls))
        router.register("GET", "/api/x", echo_handler, middleware=["first", "second"])

        router.dispatch(make_request("GET", "/api/x"))
        assert calls == ["Global", "First", "Second"]

    def test_route_middleware_errors_use_boundary(self):
        """Errors raised by route middleware become envelopes too."""
        router = Router(middleware_registry={"block": BlockingMiddleware()})
        router.register("GET", "/api/x", echo_handler, middleware=["block"])

        response = router.dispatch(make_request("GET", "/api/x"))
        assert response.status == 404
        assert response.json["message"] == "blocked"

    def test_route_middleware_sees_handler_errors(self):
        """Handler errors are already responses when route middleware gets them back."""
        calls = []
        router = Router(middleware_registry={"mark": RecordingMiddleware("Mark", calls)})

        def invalid(request):
            raise ValidationError("Validation failed", errors={"name": "required"})

        router.register("POST", "/api/x", invalid, middleware=["mark"])
        response = router.dispatch(make_request("POST", "/api/x"))

        assert response.status == 400
        assert response.headers["X-Mark"] == "1"
        assert calls == ["Mark"]
