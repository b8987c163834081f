"""
Public portfolio reads.

All data comes through the cached repository reads; the combined payload
behind ``GET /api/portfolio`` is cached on its own as well, tagged with
every content table so any admin write drops it.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..config import AppConfig
from ..data.database import Database
from ..data.repositories import PortfolioRepository
from ..data.schema import CONTENT_TABLES
from ..errors import NotFoundError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, success


logger = logging.getLogger(__name__)


ALL_DATA_KEY = "portfolio_all_data"
ALL_DATA_TTL = 600

# never exposed on the public personal-info endpoint
PRIVATE_FIELDS = ("email", "phone")


def frontend_personal_info(info: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Reshape the personal_info row into the front end's camelCase model."""
    if not info:
        return None
    return {
        "fullName": info.get("full_name"),
        "title": info.get("title"),
        "tagline": info.get("tagline"),
        "summary": info.get("bio"),
        "contact": {
            "email": info.get("email"),
            "phone": info.get("phone"),
            "location": info.get("location"),
            "socialLinks": {
                "github": info.get("github"),
                "linkedin": info.get("linkedin"),
                "website": info.get("website"),
            },
        },
        "profileImageUrl": info.get("profile_image"),
    }


def skill_categories(grouped: Dict[str, List[Dict[str, Any]]]) -> List[Dict[str, Any]]:
    return [
        {
            "category": category,
            "skills": [
                {
                    "name": skill["name"],
                    "level": skill["proficiency_level"],
                    "description": skill.get("description"),
                }
                for skill in skills
            ],
        }
        for category, skills in grouped.items()
    ]


class PortfolioHandler:

    def __init__(self, repository: PortfolioRepository, database: Database, config: AppConfig):
        self.repository = repository
        self.database = database
        self.config = config

    def personal_info(self, request: HTTPRequest) -> HTTPResponse:
        info = self.repository.personal_info()
        if info is None:
            raise NotFoundError("Personal information not found")
        for name in PRIVATE_FIELDS:
            info.pop(name, None)
        return success(info, "Personal information retrieved successfully")

    def projects(self, request: HTTPRequest) -> HTTPResponse:
        return success(self.repository.projects(), "Projects retrieved successfully")

    def skills(self, request: HTTPRequest) -> HTTPResponse:
        return success(self.repository.skills_by_category(), "Skills retrieved successfully")

    def experience(self, request: HTTPRequest) -> HTTPResponse:
        return success(self.repository.experience(), "Experience retrieved successfully")

    def education(self, request: HTTPRequest) -> HTTPResponse:
        return success(self.repository.education(), "Education retrieved successfully")

    def all_data(self, request: HTTPRequest) -> HTTPResponse:
        payload = self.database.remember(
            ALL_DATA_KEY, self._build_all_data, ttl=ALL_DATA_TTL, tables=CONTENT_TABLES
        )
        return success(payload, "Portfolio data retrieved successfully")

    def _build_all_data(self) -> Dict[str, Any]:
        logger.debug("Building combined portfolio payload")
        return {
            "personalInfo": frontend_personal_info(self.repository.personal_info()),
            "projects": self.repository.projects(),
            "experiences": self.repository.experience(),
            "education": self.repository.education(),
            "skillCategories": skill_categories(self.repository.skills_by_category()),
            "lastUpdated": datetime.now(timezone.utc).isoformat(),
            "version": self.config.app_version,
        }
