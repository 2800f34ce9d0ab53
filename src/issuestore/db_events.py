"""EventsMixin: audit event recording and history queries.

All methods access ``self.conn``, ``self._read()``, etc. via Python's MRO
when composed into ``IssueStore``.
"""

from __future__ import annotations

from typing import cast

from issuestore.db_base import DBMixinProtocol, _now_iso
from issuestore.errors import IssueNotFoundError
from issuestore.models import EventType
from issuestore.types.events import EventRecord, EventRecordWithTitle


class EventsMixin(DBMixinProtocol):
    """Append-only audit trail.

    ``_record_event`` must only be called inside ``self._write()`` so the
    event commits or rolls back together with the mutation it describes.
    """

    # -- Events (private) ----------------------------------------------------

    def _record_event(
        self,
        issue_id: str,
        event_type: EventType,
        *,
        actor: str,
        old_value: str | None = None,
        new_value: str | None = None,
        comment: str | None = None,
    ) -> None:
        self.conn.execute(
            "INSERT INTO events (issue_id, event_type, actor, old_value, new_value, comment, created_at) "
            "VALUES (?, ?, ?, ?, ?, ?, ?)",
            (issue_id, event_type.value, actor, old_value, new_value, comment, _now_iso()),
        )

    # -- Events (public) -----------------------------------------------------

    def get_issue_events(self, issue_id: str, *, limit: int = 50, timeout: float | None = None) -> list[EventRecord]:
        """Get events for a specific issue, newest first."""
        with self._read("get_issue_events", timeout) as conn:
            if conn.execute("SELECT 1 FROM issues WHERE id = ?", (issue_id,)).fetchone() is None:
                raise IssueNotFoundError(issue_id)
            rows = conn.execute(
                "SELECT * FROM events WHERE issue_id = ? ORDER BY created_at DESC, id DESC LIMIT ?",
                (issue_id, limit),
            ).fetchall()
        return cast(list[EventRecord], [dict(r) for r in rows])

    def get_recent_events(self, limit: int = 20, *, timeout: float | None = None) -> list[EventRecordWithTitle]:
        with self._read("get_recent_events", timeout) as conn:
            rows = conn.execute(
                "SELECT e.*, i.title as issue_title FROM events e JOIN issues i ON e.issue_id = i.id "
                "ORDER BY e.created_at DESC, e.id DESC LIMIT ?",
                (limit,),
            ).fetchall()
        return cast(list[EventRecordWithTitle], [dict(r) for r in rows])

    def get_events_since(self, since: str, *, limit: int = 100, timeout: float | None = None) -> list[EventRecordWithTitle]:
        """Get events since a given ISO timestamp, ordered chronologically."""
        with self._read("get_events_since", timeout) as conn:
            rows = conn.execute(
                "SELECT e.*, i.title as issue_title FROM events e "
                "JOIN issues i ON e.issue_id = i.id "
                "WHERE e.created_at > ? "
                "ORDER BY e.created_at ASC, e.id ASC LIMIT ?",
                (since, limit),
            ).fetchall()
        return cast(list[EventRecordWithTitle], [dict(r) for r in rows])

    def count_events(self, issue_id: str | None = None, *, timeout: float | None = None) -> int:
        """Number of events, optionally restricted to one issue (orphans included)."""
        with self._read("count_events", timeout) as conn:
            if issue_id is None:
                row = conn.execute("SELECT COUNT(*) FROM events").fetchone()
            else:
                row = conn.execute("SELECT COUNT(*) FROM events WHERE issue_id = ?", (issue_id,)).fetchone()
        return int(row[0])
