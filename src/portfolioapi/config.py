"""
=============================================================================
APPLICATION CONFIGURATION
=============================================================================

Centralized configuration for the portfolio API.

Everything the process needs from its environment lives in one dataclass:
where to listen, which database to use, which cache backend to prefer, who
may call us cross-origin, how hard to rate limit, how long sessions last.

    ┌─────────────────────────────────────────────────────────────────────┐
    │                    CONFIGURATION HIERARCHY                          │
    ├─────────────────────────────────────────────────────────────────────┤
    │                                                                      │
    │   1. Command-line arguments                                         │
    │      └── python -m portfolioapi serve --port 3000                  │
    │                                                                      │
    │   2. Environment variables                                          │
    │      └── APP_PORT=3000 python -m portfolioapi serve                │
    │                                                                      │
    │   3. Default values (in this dataclass)                            │
    │                                                                      │
    └─────────────────────────────────────────────────────────────────────┘

Configuration is validated eagerly: ``validate()`` raises
ConfigurationError before a socket is opened or a table touched.
=============================================================================
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple
from urllib.parse import quote_plus

from .errors import ConfigurationError


DEFAULT_ALLOWED_ORIGINS = [
    "https://netanelk.com",
    "https://admin.netanelk.com",
    "http://localhost:3000",
]

# (limit, window_seconds) per endpoint category
DEFAULT_RATE_LIMITS: Dict[str, Tuple[int, int]] = {
    "contact_submit": (5, 60),
    "auth": (3, 300),
    "admin": (100, 60),
    "cv_download": (10, 60),
    "general_api": (60, 60),
    "other": (100, 60),
}

KNOWN_CACHE_BACKENDS = ("redis", "memory", "file")


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: List[str]) -> List[str]:
    value = os.getenv(name)
    if value is None:
        return list(default)
    return [item.strip() for item in value.split(",") if item.strip()]


def parse_rate(value: str) -> Tuple[int, int]:
    """
    Parse a ``limit/window`` rate string.

        >>> parse_rate("5/60")
        (5, 60)

    Raises:
        ConfigurationError: If the string is not two positive integers.
    """
    try:
        limit_text, window_text = value.split("/", 1)
        limit, window = int(limit_text), int(window_text)
    except ValueError:
        raise ConfigurationError(f"Invalid rate limit {value!r}, expected 'limit/window'")
    if limit < 1 or window < 1:
        raise ConfigurationError(f"Invalid rate limit {value!r}, values must be >= 1")
    return limit, window


@dataclass
class AppConfig:
    """
    Configuration for the portfolio API process.

    =========================================================================
    CONFIGURATION GROUPS
    =========================================================================

    NETWORK      host, port, backlog, buffer_size, timeout, keep-alive
    THREADING    min_workers, max_workers
    APPLICATION  app_name, app_version, environment, debug
    DATABASE     database_url, pool settings
    CACHE        cache_enabled, cache_ttl, backend order, redis, directory
    SECURITY     allowed_origins, rate limits, sessions
    LOGGING      log_level, log_format, log_file
    CV           cv_pdf_command

    =========================================================================
    """

    # ─────────────────────────────────────────────────────────────────────
    # NETWORK SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    host: str = "127.0.0.1"
    """Address to bind. Use 0.0.0.0 inside containers."""

    port: int = 8080

    backlog: int = 128
    """Maximum number of queued connections."""

    buffer_size: int = 8192
    """Bytes read per recv() call."""

    timeout: Optional[float] = 30.0
    """
    Socket timeout in seconds. Bounds how long a worker can block on a
    slow or vanished client.
    """

    keep_alive: bool = True

    keep_alive_timeout: float = 5.0

    max_request_size: int = 2 * 1024 * 1024
    """Largest accepted request (headers + body). JSON payloads only."""

    # ─────────────────────────────────────────────────────────────────────
    # THREAD POOL SETTINGS
    # ─────────────────────────────────────────────────────────────────────

    min_workers: int = 4

    max_workers: int = 16

    # ─────────────────────────────────────────────────────────────────────
    # APPLICATION
    # ─────────────────────────────────────────────────────────────────────

    app_name: str = "Portfolio API"

    app_version: str = "1.0.0"

    environment: str = "production"

    debug: bool = False
    """
    When True, 500 responses include the exception text under "debug".
    Never enable in production.
    """

    server_name: str = "PortfolioAPI/1.0"
    """Value of the Server response header."""

    # ─────────────────────────────────────────────────────────────────────
    # DATABASE
    # ─────────────────────────────────────────────────────────────────────

    database_url: str = "sqlite:///storage/portfolio.db"
    """SQLAlchemy URL. MySQL deployments use mysql+pymysql://..."""

    db_pool_size: int = 5

    db_pool_timeout: float = 10.0
    """Seconds to wait for a pooled connection before failing the query."""

    db_connect_timeout: int = 5

    # ─────────────────────────────────────────────────────────────────────
    # CACHE
    # ─────────────────────────────────────────────────────────────────────

    cache_enabled: bool = True
    """Query/response caching. Sessions and rate limits always use the store."""

    cache_ttl: int = 3600
    """Default TTL in seconds when a caller does not pass one."""

    cache_backends: List[str] = field(default_factory=lambda: list(KNOWN_CACHE_BACKENDS))
    """Backend probe order. The first available backend wins."""

    cache_dir: str = "storage/cache"

    redis_url: Optional[str] = None
    """redis://host:6379/0. The redis backend is skipped when unset."""

    cache_prefix: str = "portfolio:"

    # ─────────────────────────────────────────────────────────────────────
    # SECURITY
    # ─────────────────────────────────────────────────────────────────────

    allowed_origins: List[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))

    rate_limits: Dict[str, Tuple[int, int]] = field(
        default_factory=lambda: dict(DEFAULT_RATE_LIMITS)
    )

    rate_limit_fail_open: bool = True
    """
    What the limiter does when its backend fails.
    True  - let the request through (availability first)
    False - reject with 429 (protection first)
    """

    session_name: str = "PORTFOLIO_API_SESSION"

    session_lifetime: int = 3600
    """Idle seconds before a session expires. Refreshed on every request."""

    session_secure: bool = False
    """Add the Secure attribute to the session cookie (HTTPS deployments)."""

    password_iterations: int = 600_000
    """PBKDF2-SHA256 iterations for new password hashes."""

    # ─────────────────────────────────────────────────────────────────────
    # LOGGING
    # ─────────────────────────────────────────────────────────────────────

    log_level: str = "INFO"

    log_format: str = "text"
    """Access log format: 'text' or 'json'."""

    log_file: Optional[str] = None
    """When set, logs are also written to this file, rotated daily."""

    # ─────────────────────────────────────────────────────────────────────
    # CV
    # ─────────────────────────────────────────────────────────────────────

    cv_pdf_command: str = "wkhtmltopdf"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """
        Create configuration from environment variables.

        =====================================================================
        ENVIRONMENT VARIABLES
        =====================================================================

        APP_HOST, APP_PORT, APP_WORKERS, APP_TIMEOUT, APP_DEBUG, APP_ENV
        DATABASE_URL  or  DB_HOST, DB_PORT, DB_NAME, DB_USER, DB_PASS
        DB_POOL_SIZE, DB_POOL_TIMEOUT
        CACHE_ENABLED, CACHE_TTL, CACHE_BACKENDS, CACHE_DIR, CACHE_PREFIX
        REDIS_URL
        ALLOWED_ORIGINS              comma-separated
        RATE_LIMIT_<CATEGORY>        "limit/window", e.g. RATE_LIMIT_AUTH=3/300
        RATE_LIMIT_FAIL_OPEN
        SESSION_NAME, SESSION_LIFETIME, SESSION_SECURE
        LOG_LEVEL, LOG_FORMAT, LOG_FILE
        CV_PDF_COMMAND

        =====================================================================
        """
        rate_limits = dict(DEFAULT_RATE_LIMITS)
        for category in DEFAULT_RATE_LIMITS:
            value = os.getenv(f"RATE_LIMIT_{category.upper()}")
            if value:
                rate_limits[category] = parse_rate(value)

        try:
            return cls(
                host=os.getenv("APP_HOST", "127.0.0.1"),
                port=int(os.getenv("APP_PORT", "8080")),
                max_workers=int(os.getenv("APP_WORKERS", "16")),
                timeout=float(os.getenv("APP_TIMEOUT", "30")),
                debug=_env_bool("APP_DEBUG", False),
                environment=os.getenv("APP_ENV", "production"),
                database_url=_database_url_from_env(),
                db_pool_size=int(os.getenv("DB_POOL_SIZE", "5")),
                db_pool_timeout=float(os.getenv("DB_POOL_TIMEOUT", "10")),
                cache_enabled=_env_bool("CACHE_ENABLED", True),
                cache_ttl=int(os.getenv("CACHE_TTL", "3600")),
                cache_backends=_env_list("CACHE_BACKENDS", list(KNOWN_CACHE_BACKENDS)),
                cache_dir=os.getenv("CACHE_DIR", "storage/cache"),
                cache_prefix=os.getenv("CACHE_PREFIX", "portfolio:"),
                redis_url=os.getenv("REDIS_URL") or None,
                allowed_origins=_env_list("ALLOWED_ORIGINS", DEFAULT_ALLOWED_ORIGINS),
                rate_limits=rate_limits,
                rate_limit_fail_open=_env_bool("RATE_LIMIT_FAIL_OPEN", True),
                session_name=os.getenv("SESSION_NAME", "PORTFOLIO_API_SESSION"),
                session_lifetime=int(os.getenv("SESSION_LIFETIME", "3600")),
                session_secure=_env_bool("SESSION_SECURE", False),
                log_level=os.getenv("LOG_LEVEL", "INFO"),
                log_format=os.getenv("LOG_FORMAT", "text"),
                log_file=os.getenv("LOG_FILE") or None,
                cv_pdf_command=os.getenv("CV_PDF_COMMAND", "wkhtmltopdf"),
            )
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment value: {e}")

    def validate(self) -> None:
        """
        Validate configuration values (fail fast).

        Raises:
            ConfigurationError: On the first invalid value.
        """
        if not 0 < self.port < 65536:
            raise ConfigurationError(f"Invalid port: {self.port}. Must be 1-65535.")

        if self.min_workers < 1:
            raise ConfigurationError("min_workers must be >= 1")

        if self.max_workers < self.min_workers:
            raise ConfigurationError("max_workers must be >= min_workers")

        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("timeout must be > 0")

        if not self.database_url:
            raise ConfigurationError("database_url is required")

        if self.cache_ttl < 1:
            raise ConfigurationError("cache_ttl must be >= 1")

        unknown = [b for b in self.cache_backends if b not in KNOWN_CACHE_BACKENDS]
        if unknown or not self.cache_backends:
            raise ConfigurationError(
                f"cache_backends must be a non-empty subset of {KNOWN_CACHE_BACKENDS}, "
                f"got {self.cache_backends}"
            )

        for category, (limit, window) in self.rate_limits.items():
            if limit < 1 or window < 1:
                raise ConfigurationError(f"Invalid rate limit for {category}: {limit}/{window}")

        if self.session_lifetime < 60:
            raise ConfigurationError("session_lifetime must be >= 60 seconds")

        if self.log_format not in ("text", "json"):
            raise ConfigurationError(f"log_format must be 'text' or 'json', got {self.log_format!r}")


def _database_url_from_env() -> str:
    url = os.getenv("DATABASE_URL")
    if url:
        return url

    host = os.getenv("DB_HOST")
    if not host:
        return "sqlite:///storage/portfolio.db"

    user = quote_plus(os.getenv("DB_USER", "root"))
    password = quote_plus(os.getenv("DB_PASS", ""))
    port = os.getenv("DB_PORT", "3306")
    name = os.getenv("DB_NAME", "portfolio")
    return f"mysql+pymysql://{user}:{password}@{host}:{port}/{name}?charset=utf8mb4"
