"""
Request handlers. Each class receives its collaborators in ``__init__``
and exposes bound methods that routes.py registers.
"""

from .admin import CONTENT_ENTITIES, AdminHandler, ContentAdminHandler, ContentEntity
from .auth import AuthHandler
from .contact import ContactHandler
from .cv import CvHandler
from .docs import DocsHandler
from .health import HealthHandler
from .portfolio import PortfolioHandler

__all__ = [
    "CONTENT_ENTITIES",
    "AdminHandler",
    "ContentAdminHandler",
    "ContentEntity",
    "AuthHandler",
    "ContactHandler",
    "CvHandler",
    "DocsHandler",
    "HealthHandler",
    "PortfolioHandler",
]
