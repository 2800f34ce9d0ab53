"""Read-only search query construction.

Every column name in the generated SQL is a literal in this module; caller
input only ever reaches the query as a bound parameter.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from issuestore.errors import ValidationError

ISSUE_COLUMNS = (
    "id",
    "title",
    "description",
    "design",
    "acceptance_criteria",
    "notes",
    "status",
    "priority",
    "issue_type",
    "assignee",
    "estimated_minutes",
    "created_at",
    "updated_at",
    "closed_at",
    "approved_at",
    "approved_by",
)

SELECT_ISSUE_COLUMNS = ", ".join(ISSUE_COLUMNS)


@dataclass(frozen=True)
class IssueFilter:
    """Exact-match filters, AND-combined. ``None`` means "don't filter"."""

    status: str | None = None
    priority: int | None = None
    issue_type: str | None = None
    assignee: str | None = None
    limit: int | None = None


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def build_search_query(query: str = "", issue_filter: IssueFilter | None = None) -> tuple[str, list[Any]]:
    """Return ``(sql, params)`` selecting matching issues.

    Free text matches a substring of ``title``, ``description`` or ``id``.
    Results are ordered by priority ascending, newest first within a
    priority. A positive ``limit`` caps the row count; zero or None means
    unlimited.
    """
    f = issue_filter or IssueFilter()
    conditions: list[str] = []
    params: list[Any] = []

    if query:
        pattern = f"%{_escape_like(query)}%"
        conditions.append("(title LIKE ? ESCAPE '\\' OR description LIKE ? ESCAPE '\\' OR id LIKE ? ESCAPE '\\')")
        params.extend([pattern, pattern, pattern])
    if f.status is not None:
        conditions.append("status = ?")
        params.append(f.status)
    if f.priority is not None:
        conditions.append("priority = ?")
        params.append(f.priority)
    if f.issue_type is not None:
        conditions.append("issue_type = ?")
        params.append(f.issue_type)
    if f.assignee is not None:
        conditions.append("assignee = ?")
        params.append(f.assignee)

    where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
    # rowid breaks ties between issues created within the same timestamp.
    sql = f"SELECT {SELECT_ISSUE_COLUMNS} FROM issues{where} ORDER BY priority ASC, created_at DESC, rowid DESC"

    if f.limit is not None:
        if not isinstance(f.limit, int) or isinstance(f.limit, bool) or f.limit < 0:
            msg = f"limit must be a non-negative integer, got {f.limit!r}"
            raise ValidationError(msg, field="limit")
        if f.limit > 0:
            sql += " LIMIT ?"
            params.append(f.limit)
    return sql, params
