"""
Relational persistence: engine, schema, repositories.
"""

from .database import Database, build_engine
from .repositories import AdminRepository, PortfolioRepository
from .schema import CONTENT_TABLES, metadata

__all__ = [
    "Database",
    "build_engine",
    "AdminRepository",
    "PortfolioRepository",
    "CONTENT_TABLES",
    "metadata",
]
