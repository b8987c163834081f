"""
=============================================================================
ROUTER
=============================================================================

Maps (method, path) to a handler and runs the middleware around it.

    router.register("PUT", "/api/admin/projects/{id}", admin.update_project,
                    middleware=["auth"])

=============================================================================
PATTERN COMPILATION
=============================================================================

    Input:  "/api/admin/messages/{id}/status"

    Segments            Regex
    ────────            ─────
    api                 /api
    admin               /admin
    messages            /messages
    {id}                /(?P<id>[^/]+)        one segment, no slashes
    status              /status

    Anchored: ^/api/admin/messages/(?P<id>[^/]+)/status$

Full-path matching only: "/api/portfolio" never matches
"/api/portfolio/projects".

=============================================================================
DISPATCH
=============================================================================

    dispatch(request)
        │
        ▼
    global middleware (access log, CORS)   ← runs even when no route matches
        │
        ▼
    outer error boundary ────────────────────────────────────────────┐
        │                                                             │
        ├── first route with same method + matching path              │
        │       none → NotFoundError("Endpoint not found")  → 404     │
        │                                                             │
        ├── request.path_params = {"id": "42"}                        │
        │                                                             │
        └── route middleware in order (errors they raise) ────────────┤
                │                                                     │
                ▼                                                     │
            handler boundary                                          │
                ApiError   → failure envelope with its status         │
                Exception  → 500 "Internal server error" (+debug)     │
                                                                      │
            ApiError → envelope, Exception → 500 ◄────────────────────┘

Handler errors become responses inside the route's middleware chain, so
route middleware (rate-limit headers) still decorates failure responses.
Registration order is match priority. Each route's middleware chain is
built once, when the route is registered.
=============================================================================
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..errors import ApiError, ConfigurationError, DataAccessError, NotFoundError
from .request import HTTPRequest
from .response import HTTPResponse, error
from .status_codes import HTTPStatus


logger = logging.getLogger(__name__)


Handler = Callable[[HTTPRequest], HTTPResponse]

SUPPORTED_METHODS = ("GET", "POST", "PUT", "DELETE")

_PARAM_SEGMENT = re.compile(r"^\{([A-Za-z_][A-Za-z0-9_]*)\}$")


@dataclass(frozen=True)
class Route:
    """
    A registered route. Immutable once registered.

    Attributes:
        method: GET, POST, PUT or DELETE.
        pattern: Path pattern with ``{name}`` placeholders.
        handler: The handler callable.
        middleware: Names of the route middleware, in execution order.
        name: Optional descriptive name (shown in the API index).
    """
    method: str
    pattern: str
    handler: Handler
    middleware: Tuple[str, ...] = ()
    name: Optional[str] = None

    regex: "re.Pattern" = field(default=None, repr=False, compare=False)
    param_names: Tuple[str, ...] = field(default=(), repr=False, compare=False)
    endpoint: Handler = field(default=None, repr=False, compare=False)


@dataclass
class RouteMatch:
    route: Route
    params: Dict[str, str]


def compile_pattern(pattern: str) -> Tuple["re.Pattern", Tuple[str, ...]]:
    """
    Compile a ``{name}`` pattern into an anchored regex.

    Returns:
        (compiled regex, parameter names left to right)

    Raises:
        ConfigurationError: If a parameter name repeats.
    """
    param_names: List[str] = []
    regex_parts = ["^"]

    for segment in pattern.strip("/").split("/"):
        if not segment:
            continue
        regex_parts.append("/")
        param = _PARAM_SEGMENT.match(segment)
        if param:
            name = param.group(1)
            if name in param_names:
                raise ConfigurationError(f"Duplicate parameter {name!r} in {pattern}")
            param_names.append(name)
            regex_parts.append(f"(?P<{name}>[^/]+)")
        else:
            regex_parts.append(re.escape(segment))

    if len(regex_parts) == 1:
        regex_parts.append("/")
    regex_parts.append("$")
    return re.compile("".join(regex_parts)), tuple(param_names)


def normalize_path(path: str) -> str:
    """``/api/health/`` → ``/api/health``; ``""`` → ``/``."""
    stripped = path.strip("/")
    return "/" + stripped if stripped else "/"


class Router:
    """
    Route table plus the two middleware layers.

    Args:
        middleware_registry: Name → middleware instance, used to resolve the
            names routes attach.
        debug: Include exception text in 500 responses.
    """

    def __init__(self, middleware_registry: Optional[Dict[str, Any]] = None, debug: bool = False):
        # imported here: middleware.base imports the http package
        from ..middleware.base import MiddlewarePipeline

        self._pipeline_cls = MiddlewarePipeline
        self._routes: List[Route] = []
        self._registry: Dict[str, Any] = dict(middleware_registry or {})
        self._global = MiddlewarePipeline()
        self._entry: Optional[Handler] = None
        self.debug = debug

    # =========================================================================
    # REGISTRATION
    # =========================================================================

    def use(self, middleware) -> "Router":
        """Add a global middleware (runs for every request, in order added)."""
        self._global.add(middleware)
        self._entry = None
        return self

    def register(
        self,
        method: str,
        pattern: str,
        handler: Handler,
        middleware: Iterable[str] = (),
        name: Optional[str] = None,
    ) -> Route:
        """
        Append a route. Earlier routes win when several match.

        Raises:
            ConfigurationError: Unsupported method, duplicate (method, pattern),
                or an unknown middleware name.
        """
        method = method.upper()
        if method not in SUPPORTED_METHODS:
            raise ConfigurationError(f"Unsupported method {method} for {pattern}")

        pattern = normalize_path(pattern)
        for existing in self._routes:
            if existing.method == method and existing.pattern == pattern:
                raise ConfigurationError(f"Route already registered: {method} {pattern}")

        names = tuple(middleware)
        try:
            chain = [self._registry[mw_name] for mw_name in names]
        except KeyError as e:
            raise ConfigurationError(f"Unknown middleware {e.args[0]!r} on {method} {pattern}")

        regex, param_names = compile_pattern(pattern)
        route = Route(
            method=method,
            pattern=pattern,
            handler=handler,
            middleware=names,
            name=name,
            regex=regex,
            param_names=param_names,
            endpoint=self._pipeline_cls(chain).wrap(self._guard(handler)),
        )
        self._routes.append(route)
        logger.debug(f"Registered {method} {pattern} {list(names) or ''}")
        return route

    def get(self, pattern: str, **kwargs):
        return self._decorator("GET", pattern, **kwargs)

    def post(self, pattern: str, **kwargs):
        return self._decorator("POST", pattern, **kwargs)

    def put(self, pattern: str, **kwargs):
        return self._decorator("PUT", pattern, **kwargs)

    def delete(self, pattern: str, **kwargs):
        return self._decorator("DELETE", pattern, **kwargs)

    def _decorator(self, method: str, pattern: str, **kwargs):
        def decorator(handler: Handler) -> Handler:
            self.register(method, pattern, handler, **kwargs)
            return handler
        return decorator

    @property
    def routes(self) -> List[Route]:
        return list(self._routes)

    # =========================================================================
    # MATCHING
    # =========================================================================

    def match(self, method: str, path: str) -> Optional[RouteMatch]:
        """First route with this method whose pattern matches the whole path."""
        path = normalize_path(path)
        for route in self._routes:
            if route.method != method:
                continue
            found = route.regex.match(path)
            if found:
                params = {name: found.group(name) for name in route.param_names}
                return RouteMatch(route=route, params=params)
        return None

    # =========================================================================
    # DISPATCH
    # =========================================================================

    def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        """Run global middleware, then the matched route. Never raises."""
        if self._entry is None:
            self._entry = self._global.wrap(self._guard(self._route))
        return self._entry(request)

    def _route(self, request: HTTPRequest) -> HTTPResponse:
        match = self.match(request.method, request.path)
        if match is None:
            raise NotFoundError("Endpoint not found")
        request.path_params = match.params
        return match.route.endpoint(request)

    def _guard(self, handler: Handler) -> Handler:
        """Wrap ``handler`` so that any exception it raises becomes a response."""
        def guarded(request: HTTPRequest) -> HTTPResponse:
            try:
                return handler(request)

            except ApiError as e:
                return self._api_error_response(request, e)

            except Exception as e:
                logger.exception(f"Unhandled error in {request.method} {request.path}: {e}")
                return error(
                    "Internal server error",
                    status=HTTPStatus.INTERNAL_SERVER_ERROR,
                    debug=str(e) if self.debug else None,
                )
        return guarded

    def _api_error_response(self, request: HTTPRequest, exc: ApiError) -> HTTPResponse:
        debug = None
        if isinstance(exc, DataAccessError):
            logger.error(f"Data access failed in {request.method} {request.path}: {exc.detail}")
            if self.debug:
                debug = exc.detail
        return error(
            exc.message,
            status=HTTPStatus(exc.status_code),
            errors=exc.errors,
            headers=exc.headers,
            debug=debug,
        )
