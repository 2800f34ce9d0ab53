"""Field-level validation shared by issue creation, partial updates, and the CLI.

Pure functions: no SQLite or Click dependencies.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Any

from issuestore.errors import ValidationError
from issuestore.models import IssueType, Status

MAX_TITLE_LENGTH = 500
MIN_PRIORITY = 0
MAX_PRIORITY = 4
_MAX_ACTOR_LENGTH = 128

# <prefix>-<positive integer>; the prefix itself may contain hyphens.
_ISSUE_ID_RE = re.compile(r"^(?P<prefix>[A-Za-z0-9][A-Za-z0-9_.-]*)-(?P<number>[1-9][0-9]*)$")
_PREFIX_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


def sanitize_actor(value: Any) -> tuple[str, str | None]:
    """Validate and clean an actor name.

    Returns (cleaned_actor, None) on success or ("", error_message) on failure.
    Strips whitespace, then checks: non-empty, max length, no control/format chars.
    """
    if not isinstance(value, str):
        return ("", "actor must be a string")
    # Reject "\nbad" rather than silently absorbing the newline via strip().
    for ch in value:
        cat = unicodedata.category(ch)
        if cat.startswith("C"):  # Cc (control) and Cf (format)
            return ("", f"actor must not contain control characters (found U+{ord(ch):04X})")
    cleaned = value.strip()
    if not cleaned:
        return ("", "actor must not be empty")
    if len(cleaned) > _MAX_ACTOR_LENGTH:
        return ("", f"actor must be at most {_MAX_ACTOR_LENGTH} characters")
    return (cleaned, None)


def require_actor(value: Any) -> str:
    """Like :func:`sanitize_actor` but raises ``ValidationError``."""
    cleaned, err = sanitize_actor(value)
    if err is not None:
        raise ValidationError(err, field="actor")
    return cleaned


def validate_title(value: Any) -> str:
    if not isinstance(value, str):
        msg = "title must be a string"
        raise ValidationError(msg, field="title")
    if not value or len(value) > MAX_TITLE_LENGTH:
        msg = f"title must be 1-{MAX_TITLE_LENGTH} characters (got {len(value)})"
        raise ValidationError(msg, field="title")
    return value


def validate_priority(value: Any) -> int:
    # bool is an int subclass; True must not sneak in as priority 1.
    if not isinstance(value, int) or isinstance(value, bool):
        msg = f"priority must be an integer, got {type(value).__name__}"
        raise ValidationError(msg, field="priority")
    if not (MIN_PRIORITY <= value <= MAX_PRIORITY):
        msg = f"priority must be between {MIN_PRIORITY} and {MAX_PRIORITY} (got {value})"
        raise ValidationError(msg, field="priority")
    return value


def validate_status(value: Any) -> str:
    if not Status.is_valid(value):
        valid = ", ".join(s.value for s in Status)
        msg = f"invalid status: {value!r}. Valid statuses: {valid}"
        raise ValidationError(msg, field="status")
    return str(value)


def validate_issue_type(value: Any) -> str:
    if not IssueType.is_valid(value):
        valid = ", ".join(t.value for t in IssueType)
        msg = f"invalid issue type: {value!r}. Valid types: {valid}"
        raise ValidationError(msg, field="issue_type")
    return str(value)


def validate_estimated_minutes(value: Any) -> int | None:
    if value is None:
        return None
    if not isinstance(value, int) or isinstance(value, bool):
        msg = f"estimated_minutes must be an integer, got {type(value).__name__}"
        raise ValidationError(msg, field="estimated_minutes")
    if value < 0:
        msg = f"estimated_minutes cannot be negative (got {value})"
        raise ValidationError(msg, field="estimated_minutes")
    return value


def validate_optional_text(value: Any, field: str) -> str | None:
    if value is not None and not isinstance(value, str):
        msg = f"{field} must be a string or None"
        raise ValidationError(msg, field=field)
    return value


def validate_text(value: Any, field: str) -> str:
    if not isinstance(value, str):
        msg = f"{field} must be a string"
        raise ValidationError(msg, field=field)
    return value


def parse_issue_id(issue_id: str) -> tuple[str, int] | None:
    """Split ``<prefix>-<n>`` into (prefix, n). Returns None if malformed."""
    m = _ISSUE_ID_RE.match(issue_id)
    if m is None:
        return None
    return m.group("prefix"), int(m.group("number"))


def validate_issue_id(value: Any) -> str:
    if not isinstance(value, str) or parse_issue_id(value) is None:
        msg = f"issue id must look like '<prefix>-<positive integer>', got {value!r}"
        raise ValidationError(msg, field="id")
    return value


def validate_prefix(value: Any) -> str:
    if not isinstance(value, str) or not _PREFIX_RE.match(value):
        msg = f"prefix must start with a letter or digit and contain only letters, digits, '_', '.', '-': {value!r}"
        raise ValidationError(msg, field="prefix")
    return value


def prefix_from_name(name: str, default: str = "issue") -> str:
    """Derive a valid id prefix from a directory name."""
    candidate = re.sub(r"[^A-Za-z0-9_.-]+", "-", name).strip("-_.")
    return candidate if candidate and _PREFIX_RE.match(candidate) else default
