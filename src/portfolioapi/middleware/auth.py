"""
Route middleware ``auth``: admin session check.

Reads the session token from the session cookie, or from an
``Authorization: Bearer <token>`` header for non-browser clients. A valid
session puts the admin on ``request.context.user``; anything else stops the
chain with 401.
"""

import logging
from typing import Optional

from .base import Middleware, NextHandler
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, error
from ..http.status_codes import HTTPStatus
from ..services.sessions import SessionManager


logger = logging.getLogger(__name__)


class AuthMiddleware(Middleware):

    def __init__(self, sessions: SessionManager):
        self.sessions = sessions

    def token_from(self, request: HTTPRequest) -> Optional[str]:
        token = request.cookies.get(self.sessions.cookie_name)
        if token:
            return token
        authorization = request.headers.get("authorization", "")
        scheme, _, value = authorization.partition(" ")
        if scheme.lower() == "bearer" and value.strip():
            return value.strip()
        return None

    def __call__(self, request: HTTPRequest, next: NextHandler) -> HTTPResponse:
        token = self.token_from(request)
        user = self.sessions.get_user(token)
        if user is None:
            logger.debug(f"Unauthenticated request to {request.method} {request.path}")
            return error("Authentication required", status=HTTPStatus.UNAUTHORIZED)

        request.context.user = user
        request.context.session_token = token
        return next(request)
