"""
=============================================================================
APPLICATION FACTORY
=============================================================================

Builds every long-lived object once and wires them together:

    AppConfig
        │
        ├── select_backend() ───────────► CacheStore ──────┐
        │                                                   │
        ├── Database.from_config() ◄────────────────────────┤
        │       └── create_schema()                         │
        │                                                   │
        ├── PortfolioRepository, AdminRepository            │
        │                                                   │
        ├── RateLimiter ◄───────────────────────────────────┤
        ├── SessionManager ◄────────────────────────────────┘
        │
        └── Router
              ├── global:   AccessLogMiddleware → CORSMiddleware
              ├── by name:  "rate_limit", "auth"
              └── routes:   register_routes(...)

Nothing here is module-level state: two apps built from two configs share
nothing, which is what the tests rely on.
=============================================================================
"""

import logging
import time
from typing import Optional

from .cache import CacheStore, select_backend
from .config import AppConfig
from .data import AdminRepository, Database, PortfolioRepository
from .handlers import (
    CONTENT_ENTITIES,
    AdminHandler,
    AuthHandler,
    ContactHandler,
    ContentAdminHandler,
    CvHandler,
    DocsHandler,
    HealthHandler,
    PortfolioHandler,
)
from .http.request import HTTPRequest
from .http.response import HTTPResponse
from .http.router import Router
from .middleware import (
    AccessLogMiddleware,
    AuthMiddleware,
    CORSConfig,
    CORSMiddleware,
    RateLimitMiddleware,
)
from .routes import register_routes
from .services import (
    CvRenderer,
    PasswordHasher,
    RateLimiter,
    SessionManager,
    SpamFilter,
    Validator,
)


logger = logging.getLogger(__name__)


class PortfolioApp:
    """
    The wired application. ``handle(request)`` is the whole API as a
    function; HTTPServer calls it once per parsed request.

    Attributes:
        config: Effective configuration.
        store: Cache store (query cache, sessions, rate-limit counters).
        database: Relational store.
        router: Route table with both middleware layers.
    """

    def __init__(self, config: AppConfig, store: CacheStore, database: Database, router: Router,
                 sessions: SessionManager, limiter: RateLimiter, hasher: PasswordHasher,
                 portfolio: PortfolioRepository, admins: AdminRepository):
        self.config = config
        self.store = store
        self.database = database
        self.router = router
        self.sessions = sessions
        self.limiter = limiter
        self.hasher = hasher
        self.portfolio = portfolio
        self.admins = admins

    def handle(self, request: HTTPRequest) -> HTTPResponse:
        return self.router.dispatch(request)

    __call__ = handle

    def close(self) -> None:
        self.database.dispose()


def create_app(
    config: Optional[AppConfig] = None,
    store: Optional[CacheStore] = None,
    database: Optional[Database] = None,
    create_schema: bool = True,
) -> PortfolioApp:
    """
    Build the application.

    Args:
        config: Configuration; AppConfig.from_env() when None.
        store: Cache store to use instead of probing the configured backends.
        database: Database to use instead of building one from the config.
        create_schema: Create missing tables on startup.

    Raises:
        ConfigurationError: Invalid configuration or no usable cache backend.
        DataAccessError: The schema could not be created.
    """
    config = config or AppConfig.from_env()
    config.validate()

    store = store or select_backend(config)
    database = database or Database.from_config(config, cache=store)
    if create_schema:
        database.create_schema()

    portfolio = PortfolioRepository(database)
    admins = AdminRepository(database)

    hasher = PasswordHasher(iterations=config.password_iterations)
    validator = Validator()
    limiter = RateLimiter(store, config.rate_limits, fail_open=config.rate_limit_fail_open)
    sessions = SessionManager(
        store,
        admins,
        hasher,
        lifetime=config.session_lifetime,
        cookie_name=config.session_name,
        secure=config.session_secure,
    )

    router = Router(
        middleware_registry={
            "rate_limit": RateLimitMiddleware(limiter),
            "auth": AuthMiddleware(sessions),
        },
        debug=config.debug,
    )
    router.use(AccessLogMiddleware(log_format=config.log_format))
    router.use(CORSMiddleware(CORSConfig(allow_origins=list(config.allowed_origins))))

    register_routes(
        router,
        docs=DocsHandler(router, config),
        health=HealthHandler(database, store, config, started_at=time.time()),
        portfolio=PortfolioHandler(portfolio, database, config),
        cv=CvHandler(portfolio, CvRenderer(config.cv_pdf_command), store),
        contact=ContactHandler(portfolio, validator, SpamFilter()),
        auth=AuthHandler(sessions, admins),
        admin=AdminHandler(portfolio, admins, validator, config, store_name=store.name),
        content=[ContentAdminHandler(entity, portfolio, admins, validator) for entity in CONTENT_ENTITIES],
    )

    logger.info(
        f"{config.app_name} {config.app_version} ready "
        f"({len(router.routes)} routes, {store.name} cache, env={config.environment})"
    )

    return PortfolioApp(
        config=config,
        store=store,
        database=database,
        router=router,
        sessions=sessions,
        limiter=limiter,
        hasher=hasher,
        portfolio=portfolio,
        admins=admins,
    )
