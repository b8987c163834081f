"""
Rule-string input validation.

    errors = Validator().validate(data, {
        "title": "required|max:100",
        "priority": "integer|min:0",
    })
    # {} when valid, {"title": "The title field is required."} otherwise

Rules, applied left to right (first failure per field wins):

    required     present and not blank
    max:N        string length <= N (numbers: value <= N)
    min:N        string length >= N (numbers: value >= N)
    email        plausible email address
    url          http(s) URL with a host
    integer      whole number
    boolean      true/false, 1/0, yes/no, on/off
    date         YYYY-MM-DD

An empty optional field skips every other rule. JSON objects and arrays
never pass, whatever the rules.
"""

import html
import re
from datetime import date
from typing import Any, Dict, Mapping
from urllib.parse import urlparse


EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

BOOLEAN_VALUES = ("1", "0", "true", "false", "yes", "no", "on", "off")


# ─────────────────────────────────────────────────────────────────────────────
# RULE SETS
# ─────────────────────────────────────────────────────────────────────────────

CONTACT_RULES = {
    "name": "required|max:100",
    "email": "required|email|max:100",
    "subject": "required|max:200",
    "message": "required|min:10|max:2000",
}

PERSONAL_INFO_RULES = {
    "full_name": "required|max:100",
    "title": "required|max:100",
    "email": "required|email|max:100",
    "phone": "max:20",
    "location": "max:100",
    "website": "url|max:200",
    "linkedin": "url|max:200",
    "github": "url|max:200",
    "bio": "required|max:1000",
    "tagline": "max:200",
    "profile_image": "url|max:500",
}

PROJECT_RULES = {
    "title": "required|max:100",
    "short_description": "required|max:255",
    "long_description": "max:2000",
    "technologies": "required|max:500",
    "project_url": "url|max:500",
    "github_url": "url|max:500",
    "image_url": "url|max:500",
    "status": "max:20",
    "priority": "integer|min:0",
    "display_order": "integer|min:0",
    "is_featured": "boolean",
    "is_visible": "boolean",
}

SKILL_RULES = {
    "name": "required|max:100",
    "category": "required|max:50",
    "proficiency_level": "required|integer|min:1|max:10",
    "description": "max:500",
    "display_order": "integer|min:0",
    "is_visible": "boolean",
}

EXPERIENCE_RULES = {
    "company": "required|max:100",
    "position": "required|max:100",
    "location": "max:100",
    "start_date": "required|date",
    "end_date": "date",
    "is_current": "boolean",
    "description": "required|max:1000",
    "display_order": "integer|min:0",
    "is_visible": "boolean",
}

EDUCATION_RULES = {
    "institution": "required|max:150",
    "degree": "required|max:150",
    "field_of_study": "max:150",
    "start_date": "required|date",
    "end_date": "date",
    "description": "max:1000",
    "display_order": "integer|min:0",
    "is_visible": "boolean",
}

MESSAGE_STATUS_RULES = {
    "is_read": "required|boolean",
}


def sanitize(value: Any) -> Any:
    """Trim and HTML-escape strings (recursively for dicts and lists)."""
    if isinstance(value, str):
        return html.escape(value.strip(), quote=True)
    if isinstance(value, dict):
        return {key: sanitize(item) for key, item in value.items()}
    if isinstance(value, list):
        return [sanitize(item) for item in value]
    return value


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_integer(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, float):
        return value.is_integer()
    return isinstance(value, str) and re.fullmatch(r"-?\d+", value.strip()) is not None


def _is_url(value: Any) -> bool:
    parsed = urlparse(str(value))
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _is_date(value: Any) -> bool:
    text = str(value)
    if not re.fullmatch(r"\d{4}-\d{2}-\d{2}", text):
        return False
    try:
        date.fromisoformat(text)
    except ValueError:
        return False
    return True


def _is_boolean(value: Any) -> bool:
    if isinstance(value, bool):
        return True
    if isinstance(value, int):
        return value in (0, 1)
    return isinstance(value, str) and value.strip().lower() in BOOLEAN_VALUES


def _structured_message(label: str, rules) -> str:
    """Message for a JSON object or array sent where a scalar is expected."""
    if "integer" in rules:
        return f"The {label} must be an integer."
    if "boolean" in rules:
        return f"The {label} must be true or false."
    return f"The {label} must be a string."


class Validator:
    """Applies rule strings to a mapping of input values."""

    def validate(self, data: Mapping[str, Any], rules: Mapping[str, str]) -> Dict[str, str]:
        """
        Validate ``data`` against ``rules``.

        Returns:
            field → message for every failing field; empty when valid.
        """
        errors: Dict[str, str] = {}
        for field_name, rule_string in rules.items():
            message = self._check(field_name, data.get(field_name), rule_string.split("|"))
            if message:
                errors[field_name] = message
        return errors

    def _check(self, field_name: str, value: Any, rules) -> str:
        label = field_name.replace("_", " ")
        if _is_blank(value):
            return f"The {label} field is required." if "required" in rules else ""
        if isinstance(value, (dict, list)):
            return _structured_message(label, rules)

        numeric = "integer" in rules
        for rule in rules:
            name, _, arg = rule.partition(":")
            if name == "email" and not EMAIL_RE.match(str(value)):
                return f"The {label} must be a valid email address."
            if name == "url" and not _is_url(value):
                return f"The {label} must be a valid URL."
            if name == "integer" and not _is_integer(value):
                return f"The {label} must be an integer."
            if name == "boolean" and not _is_boolean(value):
                return f"The {label} must be true or false."
            if name == "date" and not _is_date(value):
                return f"The {label} must be a date in YYYY-MM-DD format."
            if name == "max":
                limit = int(arg)
                if numeric or _is_number(value):
                    if _is_integer(value) and int(value) > limit:
                        return f"The {label} may not be greater than {limit}."
                elif len(str(value)) > limit:
                    return f"The {label} may not be longer than {limit} characters."
            if name == "min":
                limit = int(arg)
                if numeric or _is_number(value):
                    if _is_integer(value) and int(value) < limit:
                        return f"The {label} must be at least {limit}."
                elif len(str(value)) < limit:
                    return f"The {label} must be at least {limit} characters."
        return ""
