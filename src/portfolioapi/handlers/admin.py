"""
=============================================================================
ADMIN HANDLERS
=============================================================================

Everything under /api/admin runs behind the ``auth`` middleware, so
``request.context.user`` is always set here.

    ┌──────────────────────────────────┬────────────────────────────────────┐
    │ AdminHandler                     │ dashboard, inbox, audit log,       │
    │                                  │ personal info                      │
    │ ContentAdminHandler (one each    │ list / create / update / delete    │
    │ for projects, skills,            │ with the entity's rule set         │
    │ experience, education)           │                                    │
    └──────────────────────────────────┴────────────────────────────────────┘

Validation failures answer 422 with field errors. Every write goes to the
admin_logs audit table and (through the repository) drops the cached reads
of the table it touched.
=============================================================================
"""

import logging
import math
import platform
import re
import sys
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..config import AppConfig
from ..data.repositories import AdminRepository, PortfolioRepository
from ..errors import NotFoundError, ValidationError
from ..http.request import HTTPRequest
from ..http.response import HTTPResponse, created, success
from ..http.status_codes import HTTPStatus
from ..services.validation import (
    EDUCATION_RULES,
    EXPERIENCE_RULES,
    MESSAGE_STATUS_RULES,
    PERSONAL_INFO_RULES,
    PROJECT_RULES,
    SKILL_RULES,
    Validator,
)


logger = logging.getLogger(__name__)


MESSAGE_STATUSES = ("all", "read", "unread")
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
DEFAULT_LOG_LIMIT = 50
MAX_LOG_LIMIT = 200


def unprocessable(errors: Dict[str, str]) -> ValidationError:
    return ValidationError(
        "Validation failed", errors=errors, status_code=HTTPStatus.UNPROCESSABLE_ENTITY
    )


def parse_id(request: HTTPRequest, not_found: str) -> int:
    """The ``{id}`` path parameter as a positive int; 404 when it is not one."""
    value = request.path_params.get("id", "")
    if not re.fullmatch(r"[0-9]+", value) or int(value) < 1:
        raise NotFoundError(not_found)
    return int(value)


def query_int(request: HTTPRequest, name: str, default: int, low: int,
              high: Optional[int], errors: Dict[str, str]) -> int:
    """Integer query parameter within [low, high]; problems go into ``errors``."""
    raw = request.get_query(name)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        errors[name] = f"The {name} must be an integer."
        return default
    if value < low or (high is not None and value > high):
        bound = f"between {low} and {high}" if high is not None else f"at least {low}"
        errors[name] = f"The {name} must be {bound}."
        return default
    return value


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


class _AuditMixin:
    admins: AdminRepository

    def audit(self, request: HTTPRequest, action: str, details: Mapping[str, Any]) -> None:
        user = request.context.user or {}
        ip = request.context.client_ip or request.client_address[0]
        self.admins.log_action(user.get("id"), action, details, ip, request.user_agent)
        logger.info(f"Admin {user.get('username')} {action} {dict(details)}")


class AdminHandler(_AuditMixin):

    def __init__(self, portfolio: PortfolioRepository, admins: AdminRepository,
                 validator: Validator, config: AppConfig, store_name: str = ""):
        self.portfolio = portfolio
        self.admins = admins
        self.validator = validator
        self.config = config
        self.store_name = store_name

    # =========================================================================
    # DASHBOARD
    # =========================================================================

    def dashboard(self, request: HTTPRequest) -> HTTPResponse:
        counts = self.portfolio.counts()
        counts["messages_total"] = self.admins.count_messages()
        counts["messages_unread"] = self.admins.count_messages("unread")
        data = {
            "counts": counts,
            "recent_messages": self.admins.recent_messages(5),
            "system": {
                "app_version": self.config.app_version,
                "environment": self.config.environment,
                "python_version": sys.version.split()[0],
                "platform": platform.system(),
                "cache_backend": self.store_name,
                "cache_enabled": self.config.cache_enabled,
            },
        }
        return success(data, "Dashboard data retrieved successfully")

    # =========================================================================
    # CONTACT INBOX
    # =========================================================================

    def messages(self, request: HTTPRequest) -> HTTPResponse:
        errors: Dict[str, str] = {}
        page = query_int(request, "page", 1, 1, None, errors)
        per_page = query_int(request, "limit", DEFAULT_PAGE_SIZE, 1, MAX_PAGE_SIZE, errors)
        status = request.get_query("status", "all") or "all"
        if status not in MESSAGE_STATUSES:
            errors["status"] = "The status must be one of: all, read, unread."
        if errors:
            raise unprocessable(errors)

        search = (request.get_query("search") or "").strip() or None
        total = self.admins.count_messages(status, search)
        data = {
            "messages": self.admins.list_messages(page, per_page, status, search),
            "pagination": {
                "current_page": page,
                "per_page": per_page,
                "total": total,
                "total_pages": math.ceil(total / per_page) if total else 0,
            },
        }
        return success(data, "Messages retrieved successfully")

    def update_message_status(self, request: HTTPRequest) -> HTTPResponse:
        message_id = parse_id(request, "Message not found")
        data = request.data
        errors = self.validator.validate(data, MESSAGE_STATUS_RULES)
        if errors:
            raise unprocessable(errors)

        is_read = to_bool(data["is_read"])
        if not self.admins.set_message_read(message_id, is_read):
            raise NotFoundError("Message not found")
        self.audit(request, "update_message_status", {"message_id": message_id, "is_read": is_read})
        return success({"message_id": message_id, "is_read": is_read}, "Message status updated")

    def delete_message(self, request: HTTPRequest) -> HTTPResponse:
        message_id = parse_id(request, "Message not found")
        if not self.admins.delete_message(message_id):
            raise NotFoundError("Message not found")
        self.audit(request, "delete_message", {"message_id": message_id})
        return success(None, "Message deleted successfully")

    # =========================================================================
    # AUDIT LOG
    # =========================================================================

    def logs(self, request: HTTPRequest) -> HTTPResponse:
        errors: Dict[str, str] = {}
        page = query_int(request, "page", 1, 1, None, errors)
        limit = query_int(request, "limit", DEFAULT_LOG_LIMIT, 1, MAX_LOG_LIMIT, errors)
        if errors:
            raise unprocessable(errors)

        data = {
            "logs": self.admins.list_logs(limit=limit, offset=(page - 1) * limit),
            "pagination": {"current_page": page, "per_page": limit},
        }
        return success(data, "Admin logs retrieved successfully")

    # =========================================================================
    # PERSONAL INFO
    # =========================================================================

    def update_personal_info(self, request: HTTPRequest) -> HTTPResponse:
        data = request.data
        errors = self.validator.validate(data, PERSONAL_INFO_RULES)
        if errors:
            raise unprocessable(errors)

        values = {field: data[field] for field in PERSONAL_INFO_RULES if field in data}
        row_id = self.portfolio.save_personal_info(values)
        self.audit(request, "update_personal_info", {"personal_info_id": row_id})
        return success({"personal_info_id": row_id}, "Personal information updated successfully")


@dataclass(frozen=True)
class ContentEntity:
    """
    One admin-managed content table.

    Attributes:
        table: Table name, also the URL segment (/api/admin/<table>).
        singular: Used for the id key ("project_id") and audit actions.
        label: Used in messages ("Project created successfully").
        rules: Validation rule set, applied on create and update.
    """
    table: str
    singular: str
    label: str
    rules: Mapping[str, str]


CONTENT_ENTITIES = (
    ContentEntity("projects", "project", "Project", PROJECT_RULES),
    ContentEntity("skills", "skill", "Skill", SKILL_RULES),
    ContentEntity("experience", "experience", "Experience", EXPERIENCE_RULES),
    ContentEntity("education", "education", "Education", EDUCATION_RULES),
)


class ContentAdminHandler(_AuditMixin):
    """CRUD for one content entity."""

    def __init__(self, entity: ContentEntity, portfolio: PortfolioRepository,
                 admins: AdminRepository, validator: Validator):
        self.entity = entity
        self.portfolio = portfolio
        self.admins = admins
        self.validator = validator

    def _validated(self, request: HTTPRequest) -> Dict[str, Any]:
        data = request.data
        errors = self.validator.validate(data, self.entity.rules)
        if errors:
            raise unprocessable(errors)
        return {field: data[field] for field in self.entity.rules if field in data}

    def list(self, request: HTTPRequest) -> HTTPResponse:
        rows = self.portfolio.list_all(self.entity.table)
        return success(rows, f"{self.entity.label} list retrieved successfully")

    def create(self, request: HTTPRequest) -> HTTPResponse:
        values = self._validated(request)
        row_id = self.portfolio.create(self.entity.table, values)
        self.audit(request, f"create_{self.entity.singular}", {f"{self.entity.singular}_id": row_id})
        return created({f"{self.entity.singular}_id": row_id}, f"{self.entity.label} created successfully")

    def update(self, request: HTTPRequest) -> HTTPResponse:
        not_found = f"{self.entity.label} not found"
        row_id = parse_id(request, not_found)
        values = self._validated(request)
        if not self.portfolio.update(self.entity.table, row_id, values):
            raise NotFoundError(not_found)
        self.audit(request, f"update_{self.entity.singular}", {f"{self.entity.singular}_id": row_id})
        return success({f"{self.entity.singular}_id": row_id}, f"{self.entity.label} updated successfully")

    def delete(self, request: HTTPRequest) -> HTTPResponse:
        not_found = f"{self.entity.label} not found"
        row_id = parse_id(request, not_found)
        if not self.portfolio.delete(self.entity.table, row_id):
            raise NotFoundError(not_found)
        self.audit(request, f"delete_{self.entity.singular}", {f"{self.entity.singular}_id": row_id})
        return success(None, f"{self.entity.label} deleted successfully")
