"""TypedDicts for db_events.py return types and the snapshot contract."""

from __future__ import annotations

from typing import Any, Literal, TypedDict

from issuestore.types.core import ISOTimestamp


class EventRecord(TypedDict):
    """Row from the events table (SELECT * FROM events).

    ``old_value`` and ``new_value`` hold serialized snapshot documents;
    decode them with ``issuestore.snapshots.load_snapshot``.
    """

    id: int
    issue_id: str
    event_type: str
    actor: str
    old_value: str | None
    new_value: str | None
    comment: str | None
    created_at: ISOTimestamp


class EventRecordWithTitle(EventRecord):
    """EventRecord with the joined issue_title column.

    Returned by ``get_recent_events()`` and ``get_events_since()``.
    """

    issue_title: str


class SnapshotDocument(TypedDict):
    """Envelope stored in ``events.old_value`` / ``events.new_value``."""

    schema: str
    version: int
    kind: Literal["issue", "changes"]
    data: dict[str, Any]
