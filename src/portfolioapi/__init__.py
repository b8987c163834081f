"""
=============================================================================
PORTFOLIOAPI - Portfolio Content API
=============================================================================

JSON API behind a personal portfolio site: public reads of the portfolio
content, a contact form, CV export and an authenticated admin surface.

    portfolioapi/
    ├── __main__.py          # CLI (serve, init-db, create-admin, hash-password)
    ├── app.py               # create_app(): wires everything together
    ├── routes.py            # route table
    ├── server.py            # thread-pool HTTP server + logging setup
    ├── config.py            # AppConfig
    ├── errors.py            # error taxonomy
    ├── core/                # sockets, connections, worker pool
    ├── http/                # request parsing, responses, router
    ├── middleware/          # access log, CORS, rate limit, auth
    ├── cache/               # redis / memory / file stores
    ├── data/                # schema, database, repositories
    ├── services/            # limiter, sessions, validation, spam, CV
    └── handlers/            # endpoint implementations

Quick start:

    from portfolioapi import AppConfig, HTTPServer, create_app

    config = AppConfig.from_env()
    HTTPServer(create_app(config)).run()
=============================================================================
"""

__version__ = "1.0.0"

from .config import AppConfig
from .app import PortfolioApp, create_app
from .server import HTTPServer, configure_logging

__all__ = [
    "__version__",
    "AppConfig",
    "PortfolioApp",
    "create_app",
    "HTTPServer",
    "configure_logging",
]
