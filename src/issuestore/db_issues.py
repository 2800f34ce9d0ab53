"""IssuesMixin: issue CRUD and search.

All methods access ``self.conn``, ``self._write()``, ``self.allocator``, etc.
via Python's MRO when composed into ``IssueStore``.

Every mutation follows the same shape: validate, (allocate), open a
transaction, change the row, append exactly one event, commit.
"""

from __future__ import annotations

import dataclasses
import logging
import sqlite3
from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

from issuestore.db_base import DBMixinProtocol, _now_iso
from issuestore.errors import IssueNotFoundError, ValidationError
from issuestore.models import EventType, Status
from issuestore.search import SELECT_ISSUE_COLUMNS, IssueFilter, build_search_query
from issuestore.snapshots import dump_changes, dump_issue
from issuestore.updates import FieldUpdate, SetApprovedAt, SetApprovedBy, SetStatus, changes_as_dict, parse_changes
from issuestore.validation import require_actor, validate_issue_id

if TYPE_CHECKING:
    from issuestore.core import Issue

logger = logging.getLogger(__name__)


def _event_type_for(updates: Iterable[FieldUpdate]) -> EventType:
    status_updates = [u for u in updates if isinstance(u, SetStatus)]
    if not status_updates:
        return EventType.UPDATED
    if status_updates[0].closes:
        return EventType.CLOSED
    return EventType.STATUS_CHANGED


class IssuesMixin(DBMixinProtocol):
    """Issue create / read / update / close and search.

    Inherits ``DBMixinProtocol`` for type-safe access to shared attributes.
    Actual implementations provided by ``IssueStore`` at composition time via MRO.
    """

    if TYPE_CHECKING:
        # From EventsMixin
        def _record_event(
            self,
            issue_id: str,
            event_type: EventType,
            *,
            actor: str,
            old_value: str | None = None,
            new_value: str | None = None,
            comment: str | None = None,
        ) -> None: ...

    # -- Row mapping ---------------------------------------------------------

    @staticmethod
    def _row_to_issue(row: sqlite3.Row) -> Issue:
        from issuestore.core import Issue

        return Issue(
            id=row["id"],
            title=row["title"],
            description=row["description"],
            design=row["design"],
            acceptance_criteria=row["acceptance_criteria"],
            notes=row["notes"],
            status=row["status"],
            priority=row["priority"],
            issue_type=row["issue_type"],
            assignee=row["assignee"],
            estimated_minutes=row["estimated_minutes"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
            closed_at=row["closed_at"],
            approved_at=row["approved_at"],
            approved_by=row["approved_by"],
        )

    def _fetch_issue(self, conn: sqlite3.Connection, issue_id: str) -> Issue | None:
        row = conn.execute(f"SELECT {SELECT_ISSUE_COLUMNS} FROM issues WHERE id = ?", (issue_id,)).fetchone()
        return None if row is None else self._row_to_issue(row)

    def _require_issue(self, conn: sqlite3.Connection, issue_id: str) -> Issue:
        issue = self._fetch_issue(conn, issue_id)
        if issue is None:
            raise IssueNotFoundError(issue_id)
        return issue

    # -- Issue CRUD ----------------------------------------------------------

    def create_issue(self, issue: Issue, *, actor: str, timeout: float | None = None) -> Issue:
        """Insert *issue* and its ``created`` event atomically.

        An empty ``issue.id`` gets the next allocated id. ``created_at`` and
        ``updated_at`` are stamped here; ``closed_at`` and the approval
        fields start empty. On success the caller's object receives the id
        and timestamps, and the stored record is returned.
        """
        actor = require_actor(actor)
        issue.validate()
        if issue.id:
            validate_issue_id(issue.id)
            self.allocator.observe(issue.id)
            issue_id = issue.id
        else:
            issue_id = self.allocator.allocate()

        now = _now_iso()
        stored = dataclasses.replace(
            issue,
            id=issue_id,
            created_at=now,
            updated_at=now,
            closed_at=None,
            approved_at=None,
            approved_by=None,
        )

        with self._write("create_issue", timeout) as conn:
            conn.execute(
                "INSERT INTO issues (id, title, description, design, acceptance_criteria, notes, "
                "status, priority, issue_type, assignee, estimated_minutes, created_at, updated_at) "
                "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    stored.id,
                    stored.title,
                    stored.description,
                    stored.design,
                    stored.acceptance_criteria,
                    stored.notes,
                    stored.status,
                    stored.priority,
                    stored.issue_type,
                    stored.assignee,
                    stored.estimated_minutes,
                    stored.created_at,
                    stored.updated_at,
                ),
            )
            self._record_event(stored.id, EventType.CREATED, actor=actor, new_value=dump_issue(stored.to_dict()))

        issue.id = stored.id
        issue.created_at = stored.created_at
        issue.updated_at = stored.updated_at
        logger.info(
            "Created issue %s",
            stored.id,
            extra={"operation": "create_issue", "issue_id": stored.id, "actor": actor, "event_type": EventType.CREATED.value},
        )
        return stored

    def get_issue(self, issue_id: str, *, timeout: float | None = None) -> Issue | None:
        """Point lookup. Returns None when the issue does not exist."""
        with self._read("get_issue", timeout) as conn:
            return self._fetch_issue(conn, issue_id)

    def update_issue(
        self,
        issue_id: str,
        changes: Mapping[str, Any] | Iterable[FieldUpdate],
        *,
        actor: str,
        timeout: float | None = None,
    ) -> Issue:
        """Apply a partial update and record one event.

        The event's ``old_value`` is the full pre-update issue and its
        ``new_value`` the change set. Setting status to ``closed`` records a
        ``closed`` event, any other status a ``status_changed`` event, and
        everything else an ``updated`` event.
        """
        actor = require_actor(actor)
        updates = parse_changes(changes)
        values = changes_as_dict(updates)
        event_type = _event_type_for(updates)
        now = _now_iso()

        # Column names come from the fixed FieldUpdate registry, never the caller.
        assignments = [f"{column} = ?" for column in values]
        assignments.append("updated_at = ?")
        sql = f"UPDATE issues SET {', '.join(assignments)} WHERE id = ?"

        with self._write("update_issue", timeout) as conn:
            before = self._require_issue(conn, issue_id)
            conn.execute(sql, [*values.values(), now, issue_id])
            self._record_event(
                issue_id,
                event_type,
                actor=actor,
                old_value=dump_issue(before.to_dict()),
                new_value=dump_changes(values),
            )
            after = self._require_issue(conn, issue_id)

        logger.info(
            "Updated issue %s",
            issue_id,
            extra={
                "operation": "update_issue",
                "issue_id": issue_id,
                "actor": actor,
                "event_type": event_type.value,
                "fields": sorted(values),
            },
        )
        return after

    def close_issue(self, issue_id: str, *, reason: str = "", actor: str, timeout: float | None = None) -> Issue:
        """Close an issue, recording *reason* as the ``closed`` event's comment."""
        actor = require_actor(actor)
        if not isinstance(reason, str):
            msg = "reason must be a string"
            raise ValidationError(msg, field="reason")
        now = _now_iso()

        with self._write("close_issue", timeout) as conn:
            cur = conn.execute(
                "UPDATE issues SET status = ?, closed_at = ?, updated_at = ? WHERE id = ?",
                (Status.CLOSED.value, now, now, issue_id),
            )
            # Without this check the event insert would leave an orphan row.
            if cur.rowcount == 0:
                raise IssueNotFoundError(issue_id)
            self._record_event(issue_id, EventType.CLOSED, actor=actor, comment=reason)
            closed = self._require_issue(conn, issue_id)

        logger.info(
            "Closed issue %s",
            issue_id,
            extra={"operation": "close_issue", "issue_id": issue_id, "actor": actor, "event_type": EventType.CLOSED.value},
        )
        return closed

    def approve_issue(self, issue_id: str, *, approver: str, actor: str, timeout: float | None = None) -> Issue:
        """Stamp ``approved_at`` with the current time and ``approved_by`` with *approver*."""
        approver = require_actor(approver)
        return self.update_issue(
            issue_id,
            [SetApprovedAt(_now_iso()), SetApprovedBy(approver)],
            actor=actor,
            timeout=timeout,
        )

    # -- Search --------------------------------------------------------------

    def search_issues(
        self,
        query: str = "",
        issue_filter: IssueFilter | None = None,
        *,
        timeout: float | None = None,
    ) -> list[Issue]:
        """Substring search plus exact-match filters over current issue state."""
        sql, params = build_search_query(query, issue_filter)
        with self._read("search_issues", timeout) as conn:
            rows = conn.execute(sql, params).fetchall()
        return [self._row_to_issue(r) for r in rows]
