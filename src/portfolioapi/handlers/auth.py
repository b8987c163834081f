"""
Admin login, logout and session verification.
"""

import logging

from ..data.repositories import AdminRepository
from ..errors import AuthError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, ResponseBuilder, success
from ..http.status_codes import HTTPStatus
from ..services.sessions import SessionManager


logger = logging.getLogger(__name__)


def _envelope(data, message: str) -> dict:
    return {"success": True, "message": message, "data": data}


class AuthHandler:

    def __init__(self, sessions: SessionManager, admins: AdminRepository):
        self.sessions = sessions
        self.admins = admins

    def login(self, request: HTTPRequest) -> HTTPResponse:
        data = request.data
        username = str(data.get("username") or "").strip()
        password = str(data.get("password") or "")
        ip = request.context.client_ip or request.client_address[0]

        result = self.sessions.login(username, password, client_ip=ip)
        user = result["user"]
        self.admins.log_action(user["id"], "login", {}, ip, request.user_agent)

        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json(_envelope({"user": user}, "Login successful"))
            .cookie(**self.sessions.cookie_args(result["token"]))
            .no_cache()
            .build())

    def logout(self, request: HTTPRequest) -> HTTPResponse:
        user = request.context.user or {}
        self.sessions.logout(request.context.session_token)
        if user:
            ip = request.context.client_ip or request.client_address[0]
            self.admins.log_action(user.get("id"), "logout", {}, ip, request.user_agent)
            logger.info(f"Admin {user.get('username')} logged out")

        return (ResponseBuilder()
            .status(HTTPStatus.OK)
            .json(_envelope(None, "Logout successful"))
            .cookie(**self.sessions.expired_cookie_args())
            .no_cache()
            .build())

    def verify(self, request: HTTPRequest) -> HTTPResponse:
        session_user = request.context.user or {}
        user = self.admins.find_by_id(session_user.get("id"))
        if user is None:
            # account removed while the session was alive
            self.sessions.logout(request.context.session_token)
            raise AuthError("Authentication required")
        return success({"user": user}, "Session is valid")
