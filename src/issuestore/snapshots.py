"""Versioned serialization of audit snapshots.

Event rows store issue state (``kind="issue"``) or a change set
(``kind="changes"``) as a JSON envelope::

    {"schema": "issuestore.snapshot", "version": 1, "kind": "issue", "data": {...}}

Readers go through :func:`load_snapshot`, which accepts every version up to
``SNAPSHOT_VERSION`` plus bare JSON objects written before the envelope
existed (reported as version 0).
"""

from __future__ import annotations

import json
from typing import Any, Literal, cast

from issuestore.errors import IssueStoreError
from issuestore.types.events import SnapshotDocument

SNAPSHOT_SCHEMA = "issuestore.snapshot"
SNAPSHOT_VERSION = 1

SnapshotKind = Literal["issue", "changes"]


class UnsupportedSnapshotError(IssueStoreError, ValueError):
    """Raised when a stored snapshot cannot be decoded by this version."""


def _dump(kind: SnapshotKind, data: dict[str, Any]) -> str:
    doc: SnapshotDocument = {
        "schema": SNAPSHOT_SCHEMA,
        "version": SNAPSHOT_VERSION,
        "kind": kind,
        "data": data,
    }
    return json.dumps(doc, sort_keys=True, default=str)


def dump_issue(data: dict[str, Any]) -> str:
    """Serialize a full issue state (``Issue.to_dict()``)."""
    return _dump("issue", data)


def dump_changes(data: dict[str, Any]) -> str:
    """Serialize the raw change set of a partial update."""
    return _dump("changes", data)


def load_snapshot(text: str) -> SnapshotDocument:
    try:
        raw = json.loads(text)
    except json.JSONDecodeError as exc:
        msg = f"snapshot is not valid JSON: {exc}"
        raise UnsupportedSnapshotError(msg) from exc
    if not isinstance(raw, dict):
        msg = f"snapshot must be a JSON object, got {type(raw).__name__}"
        raise UnsupportedSnapshotError(msg)

    if raw.get("schema") != SNAPSHOT_SCHEMA:
        # Pre-envelope record: the object is the payload itself.
        kind: SnapshotKind = "issue" if "id" in raw and "title" in raw else "changes"
        return {"schema": SNAPSHOT_SCHEMA, "version": 0, "kind": kind, "data": raw}

    version = raw.get("version")
    if not isinstance(version, int) or version < 1 or version > SNAPSHOT_VERSION:
        msg = f"unsupported snapshot version {version!r} (this build reads up to {SNAPSHOT_VERSION})"
        raise UnsupportedSnapshotError(msg)
    if raw.get("kind") not in ("issue", "changes") or not isinstance(raw.get("data"), dict):
        msg = "snapshot envelope is missing 'kind' or 'data'"
        raise UnsupportedSnapshotError(msg)
    return cast(SnapshotDocument, raw)
