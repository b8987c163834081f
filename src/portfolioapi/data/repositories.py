"""
Repositories: the SQL behind each handler.

PortfolioRepository covers portfolio content (public reads, admin CRUD,
contact intake). AdminRepository covers admin accounts, the contact inbox
and the audit log. Both receive the process-wide Database.
"""

import json
import logging
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import Boolean, Date, DateTime, Integer

from .database import Database
from .schema import TABLES, utcnow


logger = logging.getLogger(__name__)


# cache lifetimes for public reads, in seconds
PERSONAL_INFO_TTL = 300
PROJECTS_TTL = 600
SKILLS_TTL = 900
TIMELINE_TTL = 1200

TRUE_STRINGS = ("1", "true", "yes", "on")


# admin listing order per content table
ADMIN_ORDER = {
    "projects": "display_order ASC, created_at DESC",
    "skills": "category ASC, display_order ASC, proficiency_level DESC",
    "experience": "display_order ASC, start_date DESC",
    "education": "display_order ASC, start_date DESC",
}


def coerce_values(table_name: str, values: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Convert validated request values to the column types of ``table_name``.

    Strings become dates, ints and bools where the column says so; empty
    strings on nullable columns become NULL. Unknown keys are dropped.
    """
    table = TABLES[table_name]
    coerced: Dict[str, Any] = {}
    for key, value in values.items():
        if key not in table.c or key == "id":
            continue
        column = table.c[key]
        if value == "" and column.nullable:
            coerced[key] = None
            continue
        if value is None:
            coerced[key] = None
        elif isinstance(column.type, Boolean):
            coerced[key] = value if isinstance(value, bool) else str(value).strip().lower() in TRUE_STRINGS
        elif isinstance(column.type, Integer):
            coerced[key] = int(value)
        elif isinstance(column.type, DateTime):
            coerced[key] = value if isinstance(value, datetime) else datetime.fromisoformat(str(value))
        elif isinstance(column.type, Date):
            coerced[key] = value if isinstance(value, date) else date.fromisoformat(str(value))
        else:
            coerced[key] = value
    return coerced


class PortfolioRepository:
    """Portfolio content reads and writes."""

    def __init__(self, db: Database):
        self.db = db

    # ─────────────────────────────────────────────────────────────────────
    # PUBLIC READS (cached)
    # ─────────────────────────────────────────────────────────────────────

    def personal_info(self) -> Optional[Dict[str, Any]]:
        rows = self.db.cached_query(
            "SELECT * FROM personal_info ORDER BY id LIMIT 1",
            ttl=PERSONAL_INFO_TTL, tables=["personal_info"],
        )
        return rows[0] if rows else None

    def projects(self) -> List[Dict[str, Any]]:
        return self.db.cached_query(
            "SELECT * FROM projects WHERE is_visible = 1 AND status != 'archived' "
            "ORDER BY priority DESC, created_at DESC",
            ttl=PROJECTS_TTL, tables=["projects"],
        )

    def skills(self) -> List[Dict[str, Any]]:
        return self.db.cached_query(
            "SELECT * FROM skills WHERE is_visible = 1 "
            "ORDER BY category ASC, proficiency_level DESC, name ASC",
            ttl=SKILLS_TTL, tables=["skills"],
        )

    def skills_by_category(self) -> Dict[str, List[Dict[str, Any]]]:
        grouped: Dict[str, List[Dict[str, Any]]] = {}
        for skill in self.skills():
            grouped.setdefault(skill["category"], []).append(skill)
        return grouped

    def experience(self) -> List[Dict[str, Any]]:
        return self.db.cached_query(
            "SELECT * FROM experience WHERE is_visible = 1 "
            "ORDER BY is_current DESC, start_date DESC",
            ttl=TIMELINE_TTL, tables=["experience"],
        )

    def education(self) -> List[Dict[str, Any]]:
        return self.db.cached_query(
            "SELECT * FROM education WHERE is_visible = 1 ORDER BY start_date DESC",
            ttl=TIMELINE_TTL, tables=["education"],
        )

    # ─────────────────────────────────────────────────────────────────────
    # ADMIN READS (uncached, hidden rows included)
    # ─────────────────────────────────────────────────────────────────────

    def list_all(self, table_name: str) -> List[Dict[str, Any]]:
        order = ADMIN_ORDER[table_name]
        return self.db.fetch_all(f"SELECT * FROM {table_name} ORDER BY {order}")

    def find(self, table_name: str, row_id: int) -> Optional[Dict[str, Any]]:
        if table_name not in ADMIN_ORDER:
            raise KeyError(table_name)
        return self.db.fetch_one(f"SELECT * FROM {table_name} WHERE id = :id", {"id": row_id})

    def counts(self) -> Dict[str, int]:
        """Visible rows per content table (dashboard)."""
        return {
            table: int(self.db.scalar(f"SELECT COUNT(*) FROM {table} WHERE is_visible = 1") or 0)
            for table in ADMIN_ORDER
        }

    # ─────────────────────────────────────────────────────────────────────
    # WRITES (each invalidates the table's cached reads)
    # ─────────────────────────────────────────────────────────────────────

    def create(self, table_name: str, values: Mapping[str, Any]) -> int:
        return self.db.insert(table_name, coerce_values(table_name, values))

    def update(self, table_name: str, row_id: int, values: Mapping[str, Any]) -> bool:
        return self.db.update(table_name, row_id, coerce_values(table_name, values))

    def delete(self, table_name: str, row_id: int) -> bool:
        return self.db.delete(table_name, row_id)

    def save_personal_info(self, values: Mapping[str, Any]) -> int:
        """Update the single personal_info row, creating it on first save."""
        current = self.db.fetch_one("SELECT id FROM personal_info ORDER BY id LIMIT 1")
        if current is None:
            return self.db.insert("personal_info", coerce_values("personal_info", values))
        self.db.update("personal_info", current["id"], coerce_values("personal_info", values))
        return current["id"]

    def save_contact_message(self, values: Mapping[str, Any]) -> int:
        return self.db.insert("contact_messages", coerce_values("contact_messages", values))


class AdminRepository:
    """Admin accounts, contact inbox and audit log."""

    def __init__(self, db: Database):
        self.db = db

    # ─────────────────────────────────────────────────────────────────────
    # ACCOUNTS
    # ─────────────────────────────────────────────────────────────────────

    def find_by_username(self, username: str) -> Optional[Dict[str, Any]]:
        return self.db.fetch_one(
            "SELECT * FROM admin_users WHERE username = :username", {"username": username}
        )

    def find_by_id(self, user_id: int) -> Optional[Dict[str, Any]]:
        """Public fields only; the password hash never leaves the repository."""
        return self.db.fetch_one(
            "SELECT id, username, email, last_login FROM admin_users WHERE id = :id",
            {"id": user_id},
        )

    def touch_last_login(self, user_id: int) -> None:
        self.db.update("admin_users", user_id, {"last_login": utcnow()})

    def create_admin(self, username: str, email: str, password_hash: str) -> int:
        return self.db.insert("admin_users", {
            "username": username,
            "email": email,
            "password_hash": password_hash,
        })

    # ─────────────────────────────────────────────────────────────────────
    # CONTACT INBOX
    # ─────────────────────────────────────────────────────────────────────

    @staticmethod
    def _message_filters(status: str, search: Optional[str]):
        clauses, params = [], {}
        if status == "read":
            clauses.append("is_read = 1")
        elif status == "unread":
            clauses.append("is_read = 0")
        if search:
            clauses.append(
                "(name LIKE :search OR email LIKE :search OR subject LIKE :search OR message LIKE :search)"
            )
            params["search"] = f"%{search}%"
        where = " WHERE " + " AND ".join(clauses) if clauses else ""
        return where, params

    def list_messages(self, page: int, per_page: int, status: str = "all",
                      search: Optional[str] = None) -> List[Dict[str, Any]]:
        where, params = self._message_filters(status, search)
        params.update({"limit": per_page, "offset": (page - 1) * per_page})
        return self.db.fetch_all(
            f"SELECT * FROM contact_messages{where} ORDER BY created_at DESC, id DESC "
            "LIMIT :limit OFFSET :offset",
            params,
        )

    def count_messages(self, status: str = "all", search: Optional[str] = None) -> int:
        where, params = self._message_filters(status, search)
        return int(self.db.scalar(f"SELECT COUNT(*) FROM contact_messages{where}", params) or 0)

    def recent_messages(self, limit: int = 5) -> List[Dict[str, Any]]:
        return self.db.fetch_all(
            "SELECT id, name, email, subject, created_at, is_read FROM contact_messages "
            "ORDER BY created_at DESC, id DESC LIMIT :limit",
            {"limit": limit},
        )

    def set_message_read(self, message_id: int, is_read: bool) -> bool:
        return self.db.update("contact_messages", message_id, {"is_read": bool(is_read)})

    def delete_message(self, message_id: int) -> bool:
        return self.db.delete("contact_messages", message_id)

    # ─────────────────────────────────────────────────────────────────────
    # AUDIT LOG
    # ─────────────────────────────────────────────────────────────────────

    def log_action(self, admin_id: Optional[int], action: str, details: Optional[Mapping[str, Any]] = None,
                   ip_address: str = "", user_agent: str = "") -> int:
        return self.db.insert("admin_logs", {
            "admin_id": admin_id,
            "action": action,
            "details": json.dumps(details or {}, default=str),
            "ip_address": ip_address[:45],
            "user_agent": user_agent[:500],
        })

    def list_logs(self, limit: int = 50, offset: int = 0) -> List[Dict[str, Any]]:
        rows = self.db.fetch_all(
            "SELECT al.*, au.username FROM admin_logs al "
            "LEFT JOIN admin_users au ON au.id = al.admin_id "
            "ORDER BY al.created_at DESC, al.id DESC LIMIT :limit OFFSET :offset",
            {"limit": limit, "offset": offset},
        )
        for row in rows:
            try:
                row["details"] = json.loads(row["details"]) if row.get("details") else {}
            except ValueError:
                logger.warning(f"Unreadable details on admin log {row.get('id')}")
        return rows
