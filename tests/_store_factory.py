"""Shared IssueStore factory for test fixtures.

Importable by any conftest.py or test file in the test suite.
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from issuestore.core import IssueStore


def make_store(tmp_path: Path, *, prefix: str = "test", filename: str = "issues.db") -> IssueStore:
    """Factory for IssueStore instances in tests."""
    return IssueStore(tmp_path / filename, prefix=prefix)


def install_event_failure(store: IssueStore, actor: str = "boom") -> None:
    """Make any event written by *actor* fail inside the transaction.

    The trigger aborts the INSERT into ``events`` after the issue row was
    already written, which exercises the rollback path.
    """
    store.conn.execute(
        f"CREATE TRIGGER fail_events_for_{actor} BEFORE INSERT ON events "
        f"WHEN NEW.actor = '{actor}' BEGIN SELECT RAISE(ABORT, 'injected failure'); END;"
    )


def dump_state(store: IssueStore) -> tuple[list[tuple[object, ...]], list[tuple[object, ...]]]:
    """Snapshot every row of both tables for before/after comparisons."""
    issues = [tuple(r) for r in store.conn.execute("SELECT * FROM issues ORDER BY id")]
    events = [tuple(r) for r in store.conn.execute("SELECT * FROM events ORDER BY id")]
    return issues, events


def raw_connection(db_path: Path) -> sqlite3.Connection:
    """A second, independent connection to the same database file."""
    conn = sqlite3.connect(str(db_path), isolation_level=None)
    conn.row_factory = sqlite3.Row
    return conn
