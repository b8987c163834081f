"""
Unit tests for AppConfig.
"""

import pytest

from portfolioapi.config import DEFAULT_RATE_LIMITS, AppConfig, parse_rate
from portfolioapi.errors import ConfigurationError


class TestParseRate:
    """Tests for parse_rate."""

    def test_valid(self):
        assert parse_rate("5/60") == (5, 60)

    @pytest.mark.parametrize("value", ["5", "a/b", "0/60", "5/0", "5/-1"])
    def test_invalid(self, value):
        with pytest.raises(ConfigurationError):
            parse_rate(value)


class TestFromEnv:
    """Tests for AppConfig.from_env."""

    @pytest.fixture(autouse=True)
    def clean_env(self, monkeypatch):
        for name in ("DATABASE_URL", "DB_HOST", "REDIS_URL", "APP_PORT", "ALLOWED_ORIGINS",
                     "CACHE_BACKENDS", "RATE_LIMIT_AUTH", "APP_DEBUG", "LOG_FILE"):
            monkeypatch.delenv(name, raising=False)

    def test_defaults(self):
        config = AppConfig.from_env()
        assert config.port == 8080
        assert config.database_url == "sqlite:///storage/portfolio.db"
        assert config.redis_url is None
        assert config.rate_limits == DEFAULT_RATE_LIMITS

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("APP_PORT", "3000")
        monkeypatch.setenv("APP_DEBUG", "true")
        monkeypatch.setenv("ALLOWED_ORIGINS", "https://a.example, https://b.example")
        monkeypatch.setenv("CACHE_BACKENDS", "memory")
        monkeypatch.setenv("RATE_LIMIT_AUTH", "10/600")

        config = AppConfig.from_env()
        assert config.port == 3000
        assert config.debug is True
        assert config.allowed_origins == ["https://a.example", "https://b.example"]
        assert config.cache_backends == ["memory"]
        assert config.rate_limits["auth"] == (10, 600)
        assert config.rate_limits["contact_submit"] == (5, 60)

    def test_mysql_url_from_parts(self, monkeypatch):
        monkeypatch.setenv("DB_HOST", "db")
        monkeypatch.setenv("DB_USER", "portfolio")
        monkeypatch.setenv("DB_PASS", "p@ss")
        monkeypatch.setenv("DB_NAME", "site")

        assert AppConfig.from_env().database_url == \
            "mysql+pymysql://portfolio:p%40ss@db:3306/site?charset=utf8mb4"

    def test_bad_number(self, monkeypatch):
        monkeypatch.setenv("APP_PORT", "eighty")
        with pytest.raises(ConfigurationError):
            AppConfig.from_env()


class TestValidate:
    """Tests for AppConfig.validate."""

    def test_defaults_are_valid(self):
        AppConfig().validate()

    @pytest.mark.parametrize("overrides", [
        {"port": 0},
        {"port": 70000},
        {"min_workers": 0},
        {"min_workers": 8, "max_workers": 4},
        {"timeout": 0},
        {"database_url": ""},
        {"cache_backends": []},
        {"cache_backends": ["memcached"]},
        {"rate_limits": {"auth": (0, 60)}},
        {"session_lifetime": 10},
        {"log_format": "xml"},
    ])
    def test_invalid(self, overrides):
        with pytest.raises(ConfigurationError):
            AppConfig(**overrides).validate()
