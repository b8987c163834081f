"""
``GET /api``: a self-describing index built from the live route table.
"""

from typing import Any, Dict, List

from ..config import AppConfig
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, success
from ..http.router import Router


DESCRIPTION = "Portfolio content API: public portfolio reads, contact form, CV export and admin management."


class DocsHandler:

    def __init__(self, router: Router, config: AppConfig):
        self.router = router
        self.config = config

    def endpoints(self) -> Dict[str, List[Dict[str, Any]]]:
        """Routes grouped by the first path segment after /api."""
        groups: Dict[str, List[Dict[str, Any]]] = {}
        for route in self.router.routes:
            segments = route.pattern.strip("/").split("/")
            group = segments[1] if len(segments) > 1 else "docs"
            groups.setdefault(group, []).append({
                "method": route.method,
                "path": route.pattern,
                "description": route.name or "",
                "auth_required": "auth" in route.middleware,
                "rate_limited": "rate_limit" in route.middleware,
            })
        return groups

    def index(self, request: HTTPRequest) -> HTTPResponse:
        data = {
            "name": self.config.app_name,
            "version": self.config.app_version,
            "description": DESCRIPTION,
            "endpoints": self.endpoints(),
        }
        return success(data, "API documentation")
