"""
pytest configuration and fixtures.
"""

import json
import sys
from pathlib import Path
from typing import Any, Callable, Dict, Optional
from urllib.parse import parse_qs

import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from portfolioapi import AppConfig, create_app
from portfolioapi.cache import MemoryCache
from portfolioapi.data import Database, build_engine
from portfolioapi.http import HTTPRequest, HTTPResponse


ADMIN_USERNAME = "admin"
ADMIN_PASSWORD = "correct-horse-battery"


class FakeClock:
    """Controllable epoch clock for stores, sessions and the limiter."""

    def __init__(self, start: float = 1_760_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def build_request(method: str, path: str, body: Any = None,
                  headers: Optional[Dict[str, str]] = None,
                  client_ip: str = "127.0.0.1") -> HTTPRequest:
    """An HTTPRequest as the parser would produce it (query split off the path)."""
    path, _, query = path.partition("?")
    request_headers = {name.lower(): value for name, value in (headers or {}).items()}
    raw_body = b""
    if body is not None:
        raw_body = json.dumps(body).encode("utf-8")
        request_headers.setdefault("content-type", "application/json")
        request_headers["content-length"] = str(len(raw_body))
    return HTTPRequest(
        method=method,
        path=path,
        headers=request_headers,
        query_params=parse_qs(query, keep_blank_values=True),
        body=raw_body,
        client_address=(client_ip, 50000),
    )


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryCache:
    return MemoryCache(default_ttl=3600, clock=clock)


@pytest.fixture
def database(store: MemoryCache) -> Database:
    """In-memory SQLite with the full schema, caching through ``store``."""
    db = Database(build_engine("sqlite://"), cache=store)
    db.create_schema()
    yield db
    db.dispose()


@pytest.fixture
def config() -> AppConfig:
    return AppConfig(
        database_url="sqlite://",
        cache_backends=["memory"],
        password_iterations=1000,
        log_level="WARNING",
        environment="testing",
    )


@pytest.fixture
def app(config: AppConfig, store: MemoryCache, database: Database):
    """Fully wired application over the in-memory store and database."""
    return create_app(config, store=store, database=database)


@pytest.fixture
def call(app) -> Callable[..., HTTPResponse]:
    """call("GET", "/api/health") → HTTPResponse, through the whole pipeline."""
    def _call(method: str, path: str, body: Any = None,
              headers: Optional[Dict[str, str]] = None, client_ip: str = "127.0.0.1") -> HTTPResponse:
        return app.handle(build_request(method, path, body, headers, client_ip))
    return _call


@pytest.fixture
def admin_user(app) -> Dict[str, Any]:
    admin_id = app.admins.create_admin(
        ADMIN_USERNAME, "admin@example.com", app.hasher.hash(ADMIN_PASSWORD)
    )
    return {"id": admin_id, "username": ADMIN_USERNAME, "password": ADMIN_PASSWORD}


@pytest.fixture
def auth_headers(app, call, admin_user) -> Dict[str, str]:
    """Cookie header for a logged-in admin session."""
    response = call("POST", "/api/auth/login",
                    {"username": admin_user["username"], "password": admin_user["password"]})
    assert response.status == 200, response.json
    cookie = response.headers["Set-Cookie"].split(";")[0]
    return {"Cookie": cookie}


@pytest.fixture
def seeded(app) -> Dict[str, int]:
    """A small portfolio: personal info, two projects, skills, one job, one degree."""
    portfolio = app.portfolio
    ids = {
        "personal_info": portfolio.save_personal_info({
            "full_name": "Jane Doe",
            "title": "Backend Engineer",
            "tagline": "Building reliable APIs",
            "bio": "Ten years of building web services.",
            "email": "jane@example.com",
            "phone": "+1 555 0100",
            "location": "Tel Aviv",
            "github": "https://github.com/janedoe",
        }),
        "project_low": portfolio.create("projects", {
            "title": "Side Project",
            "short_description": "A small tool",
            "technologies": "Python",
            "priority": "1",
        }),
        "project_high": portfolio.create("projects", {
            "title": "Flagship",
            "short_description": "The main thing",
            "technologies": "Python, SQL",
            "priority": "10",
            "is_featured": "true",
        }),
        "project_hidden": portfolio.create("projects", {
            "title": "Hidden",
            "short_description": "Not public",
            "technologies": "Go",
            "is_visible": "false",
        }),
        "skill": portfolio.create("skills", {
            "name": "Python", "category": "languages", "proficiency_level": "9",
        }),
        "experience": portfolio.create("experience", {
            "company": "Acme",
            "position": "Engineer",
            "start_date": "2020-01-01",
            "is_current": True,
            "description": "Built things.",
        }),
        "education": portfolio.create("education", {
            "institution": "Tech University",
            "degree": "BSc Computer Science",
            "start_date": "2012-09-01",
            "end_date": "2016-06-30",
        }),
    }
    return ids
