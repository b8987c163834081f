"""
Relational schema (SQLAlchemy Core).

    personal_info      one row: the portfolio owner
    projects           portfolio projects, ordered by priority
    skills             grouped by category, 1-10 proficiency
    experience         work history
    education          degrees and courses
    contact_messages   contact form intake
    admin_users        admin accounts (PBKDF2 password hashes)
    admin_logs         audit trail of admin writes

Reads go through hand-written SQL (``text()``); writes use these Table
objects so inserts, updates and deletes stay portable between SQLite and
MySQL.
"""

from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
)


metadata = MetaData()


def utcnow() -> datetime:
    """Naive UTC timestamp (both SQLite and MySQL DATETIME are naive)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _timestamps():
    return [
        Column("created_at", DateTime, nullable=False, default=utcnow),
        Column("updated_at", DateTime, nullable=False, default=utcnow, onupdate=utcnow),
    ]


personal_info = Table(
    "personal_info", metadata,
    Column("id", Integer, primary_key=True),
    Column("full_name", String(100), nullable=False),
    Column("title", String(100), nullable=False),
    Column("tagline", String(200)),
    Column("bio", Text, nullable=False),
    Column("email", String(100), nullable=False),
    Column("phone", String(20)),
    Column("location", String(100)),
    Column("website", String(200)),
    Column("linkedin", String(200)),
    Column("github", String(200)),
    Column("profile_image", String(500)),
    *_timestamps(),
)

projects = Table(
    "projects", metadata,
    Column("id", Integer, primary_key=True),
    Column("title", String(100), nullable=False),
    Column("short_description", String(255), nullable=False),
    Column("long_description", Text),
    Column("technologies", String(500), nullable=False),
    Column("project_url", String(500)),
    Column("github_url", String(500)),
    Column("image_url", String(500)),
    Column("status", String(20), nullable=False, default="active"),
    Column("priority", Integer, nullable=False, default=0),
    Column("display_order", Integer, nullable=False, default=0),
    Column("is_featured", Boolean, nullable=False, default=False),
    Column("is_visible", Boolean, nullable=False, default=True),
    *_timestamps(),
)

skills = Table(
    "skills", metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("category", String(50), nullable=False),
    Column("proficiency_level", Integer, nullable=False),
    Column("description", String(500)),
    Column("display_order", Integer, nullable=False, default=0),
    Column("is_visible", Boolean, nullable=False, default=True),
    *_timestamps(),
)

experience = Table(
    "experience", metadata,
    Column("id", Integer, primary_key=True),
    Column("company", String(100), nullable=False),
    Column("position", String(100), nullable=False),
    Column("location", String(100)),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date),
    Column("is_current", Boolean, nullable=False, default=False),
    Column("description", Text, nullable=False),
    Column("display_order", Integer, nullable=False, default=0),
    Column("is_visible", Boolean, nullable=False, default=True),
    *_timestamps(),
)

education = Table(
    "education", metadata,
    Column("id", Integer, primary_key=True),
    Column("institution", String(150), nullable=False),
    Column("degree", String(150), nullable=False),
    Column("field_of_study", String(150)),
    Column("start_date", Date, nullable=False),
    Column("end_date", Date),
    Column("description", Text),
    Column("display_order", Integer, nullable=False, default=0),
    Column("is_visible", Boolean, nullable=False, default=True),
    *_timestamps(),
)

contact_messages = Table(
    "contact_messages", metadata,
    Column("id", Integer, primary_key=True),
    Column("name", String(100), nullable=False),
    Column("email", String(100), nullable=False),
    Column("subject", String(200), nullable=False),
    Column("message", Text, nullable=False),
    Column("ip_address", String(45)),
    Column("user_agent", String(500)),
    Column("is_read", Boolean, nullable=False, default=False),
    *_timestamps(),
)

admin_users = Table(
    "admin_users", metadata,
    Column("id", Integer, primary_key=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("email", String(100), nullable=False),
    Column("password_hash", String(255), nullable=False),
    Column("last_login", DateTime),
    *_timestamps(),
)

admin_logs = Table(
    "admin_logs", metadata,
    Column("id", Integer, primary_key=True),
    Column("admin_id", Integer, ForeignKey("admin_users.id"), nullable=True),
    Column("action", String(100), nullable=False),
    Column("details", Text),
    Column("ip_address", String(45)),
    Column("user_agent", String(500)),
    Column("created_at", DateTime, nullable=False, default=utcnow),
)


TABLES = {table.name: table for table in metadata.sorted_tables}

CONTENT_TABLES = ("personal_info", "projects", "skills", "experience", "education")
