"""
=============================================================================
MIDDLEWARE BASE
=============================================================================

A middleware is a callable that sits between the router and a handler:

    def __call__(self, request, next) -> HTTPResponse

It may inspect or annotate the request, call ``next(request)`` and decorate
the response, or return its own response without calling ``next`` at all
(short-circuit). The portfolio API uses two layers of middleware:

    GLOBAL (every request, before route lookup)
        AccessLogMiddleware → CORSMiddleware

    PER ROUTE (attached by name in routes.py, in attachment order)
        "rate_limit" → RateLimitMiddleware
        "auth"       → AuthMiddleware

Both layers are assembled with MiddlewarePipeline.wrap():

            ┌─────────────────────────────────────────────────────────┐
            │  AccessLogMiddleware                                    │
            │  ┌───────────────────────────────────────────────────┐  │
            │  │  CORSMiddleware                                   │  │
            │  │  ┌─────────────────────────────────────────────┐  │  │
            │  │  │  router error boundary + route lookup       │  │  │
            │  │  │  ┌─────────────────────────────────────┐    │  │  │
            │  │  │  │ RateLimit → Auth → handler          │    │  │  │
            │  │  │  └─────────────────────────────────────┘    │  │  │
            │  │  └─────────────────────────────────────────────┘  │  │
            │  └───────────────────────────────────────────────────┘  │
            └─────────────────────────────────────────────────────────┘
=============================================================================
"""

import logging
from abc import ABC, abstractmethod
from functools import partial, reduce
from typing import Callable, Iterable, List

from ..http.request import HTTPRequest
from ..http.response import HTTPResponse


logger = logging.getLogger(__name__)


NextHandler = Callable[[HTTPRequest], HTTPResponse]


class Middleware(ABC):
    """
    Abstract base class for middleware.

    Implementations either return ``next(request)`` (possibly decorated) or
    a response of their own to stop the chain.
    """

    @abstractmethod
    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        """Process the request; call ``next`` to continue the chain."""

    @property
    def name(self) -> str:
        return self.__class__.__name__


class MiddlewarePipeline:
    """
    An ordered middleware list that can be folded around a handler.
    The first middleware added is the outermost layer.
    """

    def __init__(self, middleware: Iterable[Middleware] = ()):
        self._layers: List[Middleware] = list(middleware)

    def __len__(self) -> int:
        return len(self._layers)

    @property
    def middleware(self) -> List[Middleware]:
        return list(self._layers)

    def add(self, middleware: Middleware) -> "MiddlewarePipeline":
        self._layers.append(middleware)
        logger.debug(f"Middleware registered: {middleware.name}")
        return self

    def use(self, *middleware: Middleware) -> "MiddlewarePipeline":
        for layer in middleware:
            self.add(layer)
        return self

    def wrap(self, handler: NextHandler) -> NextHandler:
        """
        Fold the layers around ``handler``, innermost first.

        With layers [A, B] the result calls A(request, B-wrapped handler),
        so requests flow A → B → handler and responses return B → A.
        """
        return reduce(
            lambda inner, layer: partial(layer, next=inner),
            reversed(self._layers),
            handler,
        )
