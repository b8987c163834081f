"""
=============================================================================
ROUTE TABLE
=============================================================================

Every endpoint the API serves, in match order. Route names double as the
descriptions listed by ``GET /api``.

    ┌──────────────────────────────┬──────────────┬─────────────────────────┐
    │ Prefix                       │ Middleware   │ Handler                 │
    ├──────────────────────────────┼──────────────┼─────────────────────────┤
    │ /api, /api/health/*          │ -            │ DocsHandler, Health     │
    │ /api/portfolio/*             │ -            │ PortfolioHandler        │
    │ /api/cv/download             │ rate_limit   │ CvHandler               │
    │ /api/contact/submit          │ rate_limit   │ ContactHandler          │
    │ /api/auth/login              │ rate_limit   │ AuthHandler             │
    │ /api/auth/logout, verify     │ auth         │ AuthHandler             │
    │ /api/admin/*                 │ auth         │ Admin / ContentAdmin    │
    └──────────────────────────────┴──────────────┴─────────────────────────┘
=============================================================================
"""

from typing import Iterable

from .handlers import (
    AdminHandler,
    AuthHandler,
    ContactHandler,
    ContentAdminHandler,
    CvHandler,
    DocsHandler,
    HealthHandler,
    PortfolioHandler,
)
from .http.router import Router


RATE_LIMITED = ["rate_limit"]
AUTHENTICATED = ["auth"]


def register_routes(
    router: Router,
    docs: DocsHandler,
    health: HealthHandler,
    portfolio: PortfolioHandler,
    cv: CvHandler,
    contact: ContactHandler,
    auth: AuthHandler,
    admin: AdminHandler,
    content: Iterable[ContentAdminHandler],
) -> Router:
    """Register the full route table on ``router``."""

    # ─────────────────────────────────────────────────────────────────────
    # PUBLIC
    # ─────────────────────────────────────────────────────────────────────

    router.register("GET", "/api", docs.index, name="API documentation")
    router.register("GET", "/api/health", health.index, name="Basic health check")
    router.register("GET", "/api/health/status", health.status, name="Detailed system status")
    router.register("GET", "/api/health/database", health.database_check, name="Database connectivity check")

    router.register("GET", "/api/portfolio", portfolio.all_data, name="All portfolio data")
    router.register("GET", "/api/portfolio/personal-info", portfolio.personal_info,
                    name="Public personal information")
    router.register("GET", "/api/portfolio/projects", portfolio.projects, name="Visible projects")
    router.register("GET", "/api/portfolio/skills", portfolio.skills, name="Skills grouped by category")
    router.register("GET", "/api/portfolio/experience", portfolio.experience, name="Work experience")
    router.register("GET", "/api/portfolio/education", portfolio.education, name="Education history")

    router.register("GET", "/api/cv/download", cv.download, middleware=RATE_LIMITED,
                    name="Download CV (?format=pdf|html|json)")
    router.register("GET", "/api/cv/stats", cv.stats, name="CV download statistics")

    router.register("POST", "/api/contact/submit", contact.submit, middleware=RATE_LIMITED,
                    name="Submit contact form")

    # ─────────────────────────────────────────────────────────────────────
    # AUTH
    # ─────────────────────────────────────────────────────────────────────

    router.register("POST", "/api/auth/login", auth.login, middleware=RATE_LIMITED, name="Admin login")
    router.register("POST", "/api/auth/logout", auth.logout, middleware=AUTHENTICATED, name="Admin logout")
    router.register("GET", "/api/auth/verify", auth.verify, middleware=AUTHENTICATED,
                    name="Verify the current session")

    # ─────────────────────────────────────────────────────────────────────
    # ADMIN
    # ─────────────────────────────────────────────────────────────────────

    router.register("GET", "/api/admin/dashboard", admin.dashboard, middleware=AUTHENTICATED,
                    name="Dashboard statistics")
    router.register("GET", "/api/admin/messages", admin.messages, middleware=AUTHENTICATED,
                    name="Contact messages (paginated)")
    router.register("PUT", "/api/admin/messages/{id}/status", admin.update_message_status,
                    middleware=AUTHENTICATED, name="Mark a message read or unread")
    router.register("DELETE", "/api/admin/messages/{id}", admin.delete_message,
                    middleware=AUTHENTICATED, name="Delete a message")
    router.register("GET", "/api/admin/logs", admin.logs, middleware=AUTHENTICATED, name="Admin audit log")
    router.register("PUT", "/api/admin/personal-info", admin.update_personal_info,
                    middleware=AUTHENTICATED, name="Update personal information")

    for handler in content:
        table = handler.entity.table
        label = handler.entity.label
        router.register("GET", f"/api/admin/{table}", handler.list, middleware=AUTHENTICATED,
                        name=f"List {label.lower()} entries")
        router.register("POST", f"/api/admin/{table}", handler.create, middleware=AUTHENTICATED,
                        name=f"Create a {label.lower()} entry")
        router.register("PUT", f"/api/admin/{table}/{{id}}", handler.update, middleware=AUTHENTICATED,
                        name=f"Replace a {label.lower()} entry")
        router.register("DELETE", f"/api/admin/{table}/{{id}}", handler.delete, middleware=AUTHENTICATED,
                        name=f"Delete a {label.lower()} entry")

    return router
