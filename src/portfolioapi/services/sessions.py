"""
=============================================================================
ADMIN SESSIONS
=============================================================================

    Anonymous ──login()──► Authenticated ──logout() / idle timeout──► Anonymous

A session is a cache store record keyed by a random token; the token is the
only thing the browser holds (HttpOnly cookie):

    session:<token> = {
        "user": {"id": 1, "username": "admin", "email": "..."},
        "created_at": 1760000000.0,
        "last_activity": 1760000600.0,
    }

Expiration slides: every authenticated request moves ``last_activity``
forward. A session idle for longer than ``lifetime`` seconds is deleted on
the next lookup. Concurrent requests race on ``last_activity``; the last
write wins, which is harmless since both values are "now".

=============================================================================
"""

import logging
import secrets
from typing import Any, Callable, Dict, Optional

from ..cache.base import CacheStore
from ..data.repositories import AdminRepository
from ..errors import AuthError, CacheError, ValidationError
from .passwords import PasswordHasher


logger = logging.getLogger(__name__)


class SessionManager:
    """
    Login, logout and session lookup.

    Args:
        store: Cache store holding session records.
        admins: Admin account repository.
        hasher: Password hasher.
        lifetime: Idle timeout in seconds.
        cookie_name: Session cookie name.
        secure: Mark the cookie Secure.
        clock: Epoch seconds source; defaults to the store's clock.
    """

    def __init__(
        self,
        store: CacheStore,
        admins: AdminRepository,
        hasher: PasswordHasher,
        lifetime: int = 3600,
        cookie_name: str = "PORTFOLIO_API_SESSION",
        secure: bool = False,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.store = store
        self.admins = admins
        self.hasher = hasher
        self.lifetime = lifetime
        self.cookie_name = cookie_name
        self.secure = secure
        self._clock = clock or store.now

    @staticmethod
    def _key(token: str) -> str:
        return f"session:{token}"

    def _save(self, token: str, record: Dict[str, Any]) -> None:
        # the store TTL is a backstop; idle expiry is checked on lookup
        self.store.set(self._key(token), record, ttl=self.lifetime)

    # =========================================================================
    # LOGIN / LOGOUT
    # =========================================================================

    def login(self, username: str, password: str, client_ip: str = "") -> Dict[str, Any]:
        """
        Check credentials and open a session.

        Returns:
            {"token": ..., "user": {id, username, email}}

        Raises:
            ValidationError: Username or password missing.
            AuthError: Unknown user or wrong password (same message for both).
        """
        if not username or not password:
            raise ValidationError("Username and password are required")

        admin = self.admins.find_by_username(username)
        if admin is None:
            self.hasher.dummy_verify(password)
            logger.warning(f"Failed login attempt for {username!r} from {client_ip}")
            raise AuthError("Invalid credentials")

        if not self.hasher.verify(password, admin["password_hash"]):
            logger.warning(f"Failed login attempt for {username!r} from {client_ip}")
            raise AuthError("Invalid credentials")

        user = {"id": admin["id"], "username": admin["username"], "email": admin["email"]}
        token = self.authenticate(user)
        logger.info(f"Admin {username} logged in from {client_ip}")
        return {"token": token, "user": user}

    def authenticate(self, user: Dict[str, Any]) -> str:
        """
        Open a session for an already verified user and return its token.

        Raises:
            AuthError: If the session could not be stored.
        """
        token = secrets.token_urlsafe(32)
        now = self._clock()
        self.admins.touch_last_login(user["id"])
        try:
            self._save(token, {"user": user, "created_at": now, "last_activity": now})
        except CacheError as e:
            logger.error(f"Could not store session: {e}")
            raise AuthError("Login failed")
        return token

    def logout(self, token: Optional[str]) -> None:
        if not token:
            return
        try:
            self.store.delete(self._key(token))
        except CacheError as e:
            logger.error(f"Could not delete session: {e}")

    # =========================================================================
    # LOOKUP
    # =========================================================================

    def get_session(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        """
        The live session for ``token``, refreshing its activity stamp.

        Returns None for a missing, expired or unreadable session. An idle
        session is deleted as a side effect.
        """
        if not token:
            return None
        try:
            record = self.store.get(self._key(token))
        except CacheError as e:
            logger.error(f"Session lookup failed: {e}")
            return None
        if not record:
            return None

        now = self._clock()
        if now - record.get("last_activity", 0) > self.lifetime:
            logger.info(f"Session for {record.get('user', {}).get('username')} expired")
            self.logout(token)
            return None

        record["last_activity"] = now
        try:
            self._save(token, record)
        except CacheError as e:
            logger.warning(f"Could not refresh session: {e}")
        return record

    def is_authenticated(self, token: Optional[str]) -> bool:
        return self.get_session(token) is not None

    def get_user(self, token: Optional[str]) -> Optional[Dict[str, Any]]:
        session = self.get_session(token)
        return session["user"] if session else None

    # =========================================================================
    # COOKIES
    # =========================================================================

    def cookie_args(self, token: str) -> Dict[str, Any]:
        """Arguments for ResponseBuilder.cookie() to set the session cookie."""
        return {
            "name": self.cookie_name,
            "value": token,
            "max_age": self.lifetime,
            "secure": self.secure,
        }

    def expired_cookie_args(self) -> Dict[str, Any]:
        return {"name": self.cookie_name, "value": "", "max_age": 0, "secure": self.secure}
