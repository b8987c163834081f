"""
HTTP protocol layer: request parsing, response building, routing.
"""

from .status_codes import HTTPStatus
from .request import HTTPRequest, HTTPParseError, RequestContext, RequestParser
from .response import (
    HTTPResponse,
    ResponseBuilder,
    success,
    error,
    created,
    empty,
)
from .router import Router, Route, RouteMatch

__all__ = [
    "HTTPStatus",
    "HTTPRequest",
    "HTTPParseError",
    "RequestContext",
    "RequestParser",
    "HTTPResponse",
    "ResponseBuilder",
    "success",
    "error",
    "created",
    "empty",
    "Router",
    "Route",
    "RouteMatch",
]
