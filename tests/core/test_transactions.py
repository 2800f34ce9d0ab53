"""Tests for atomicity: failed mutations leave no trace, ids are never reused."""

from __future__ import annotations

import itertools
import sqlite3
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from issuestore.core import Issue, IssueStore
from issuestore.errors import IssueNotFoundError, OperationTimeoutError, StorageError
from tests._store_factory import dump_state, install_event_failure, raw_connection


class TestRollback:
    def test_failed_create_leaves_no_trace(self, store: IssueStore) -> None:
        store.create_issue(Issue("Survivor"), actor="tester")
        install_event_failure(store)
        before = dump_state(store)
        with pytest.raises(StorageError) as exc_info:
            store.create_issue(Issue("Doomed"), actor="boom")
        assert exc_info.value.rolled_back is True
        assert isinstance(exc_info.value.cause, sqlite3.IntegrityError)
        assert dump_state(store) == before

    def test_failed_create_burns_its_id(self, store: IssueStore) -> None:
        store.create_issue(Issue("One"), actor="tester")
        install_event_failure(store)
        with pytest.raises(StorageError):
            store.create_issue(Issue("Two"), actor="boom")
        third = store.create_issue(Issue("Three"), actor="tester")
        assert third.id == "test-3"
        assert store.get_issue("test-2") is None

    def test_failed_create_leaves_caller_object_alone(self, store: IssueStore) -> None:
        install_event_failure(store)
        draft = Issue("Doomed")
        with pytest.raises(StorageError):
            store.create_issue(draft, actor="boom")
        assert draft.id == ""

    def test_failed_update_leaves_no_trace(self, store: IssueStore) -> None:
        issue = store.create_issue(Issue("Stable", priority=3), actor="tester")
        install_event_failure(store)
        before = dump_state(store)
        with pytest.raises(StorageError):
            store.update_issue(issue.id, {"priority": 0, "title": "Changed"}, actor="boom")
        assert dump_state(store) == before

    def test_failed_close_leaves_no_trace(self, store: IssueStore) -> None:
        issue = store.create_issue(Issue("Still open"), actor="tester")
        install_event_failure(store)
        before = dump_state(store)
        with pytest.raises(StorageError):
            store.close_issue(issue.id, reason="nope", actor="boom")
        assert dump_state(store) == before
        fetched = store.get_issue(issue.id)
        assert fetched is not None
        assert fetched.status == "open"

    def test_not_found_inside_transaction_rolls_back(self, store: IssueStore) -> None:
        before = dump_state(store)
        with pytest.raises(IssueNotFoundError):
            store.close_issue("test-77", actor="tester")
        assert dump_state(store) == before
        assert not store.conn.in_transaction

    def test_store_usable_after_rollback(self, store: IssueStore) -> None:
        install_event_failure(store)
        with pytest.raises(StorageError):
            store.create_issue(Issue("Doomed"), actor="boom")
        assert not store.conn.in_transaction
        created = store.create_issue(Issue("Fine"), actor="tester")
        assert store.get_issue(created.id) is not None

    def test_foreign_exception_propagates_after_rollback(self, store: IssueStore) -> None:
        with pytest.raises(RuntimeError, match="bail"):
            with store._write("manual", None) as conn:
                conn.execute(
                    "INSERT INTO issues (id, title, created_at, updated_at) VALUES ('test-1', 't', 'x', 'x')"
                )
                raise RuntimeError("bail")
        assert store.get_issue("test-1") is None


class TestDeadlines:
    def test_non_positive_timeout_fails_fast(self, store: IssueStore) -> None:
        with pytest.raises(OperationTimeoutError) as exc_info:
            store.get_issue("test-1", timeout=0)
        assert exc_info.value.rolled_back is False
        assert exc_info.value.timeout == 0

    def test_timeout_is_a_storage_error(self, store: IssueStore) -> None:
        with pytest.raises(StorageError):
            store.search_issues(timeout=-1)

    def test_interrupted_read_reports_timeout(self, populated_store: IssueStore) -> None:
        populated_store._PROGRESS_INTERVAL = 1
        clock = itertools.chain([0.0], itertools.repeat(100.0))
        with patch("issuestore.core.time.monotonic", side_effect=clock):
            with pytest.raises(OperationTimeoutError) as exc_info:
                populated_store.search_issues(timeout=5)
        assert exc_info.value.operation == "search_issues"
        assert exc_info.value.rolled_back is False
        # Handler removed; the next call runs normally.
        assert len(populated_store.search_issues()) == 4

    def test_interrupted_write_changes_nothing(self, store: IssueStore) -> None:
        issue = store.create_issue(Issue("Deadline"), actor="tester")
        before = dump_state(store)
        store._PROGRESS_INTERVAL = 1
        clock = itertools.chain([0.0], itertools.repeat(100.0))
        with patch("issuestore.core.time.monotonic", side_effect=clock):
            with pytest.raises(OperationTimeoutError):
                store.update_issue(issue.id, {"title": "Too slow"}, actor="tester", timeout=5)
        assert dump_state(store) == before
        assert not store.conn.in_transaction

    def test_deadline_bounds_wait_on_another_connections_lock(self, tmp_path: Path, store: IssueStore) -> None:
        issue = store.create_issue(Issue("Contended"), actor="tester")
        before = dump_state(store)
        other = raw_connection(tmp_path / "issues.db")
        other.execute("BEGIN IMMEDIATE")
        try:
            started = time.monotonic()
            with pytest.raises(OperationTimeoutError) as exc_info:
                store.update_issue(issue.id, {"title": "Blocked"}, actor="tester", timeout=0.2)
            elapsed = time.monotonic() - started
        finally:
            other.execute("ROLLBACK")
            other.close()
        assert elapsed < 2.0
        assert exc_info.value.rolled_back is False
        assert dump_state(store) == before
        # The connection-wide busy timeout is restored afterwards.
        assert store.conn.execute("PRAGMA busy_timeout").fetchone()[0] == IssueStore._BUSY_TIMEOUT_MS

    def test_busy_without_deadline_is_plain_storage_error(self, tmp_path: Path, store: IssueStore) -> None:
        store.conn.execute("PRAGMA busy_timeout=1")
        other = raw_connection(tmp_path / "issues.db")
        other.execute("BEGIN IMMEDIATE")
        try:
            with pytest.raises(StorageError) as exc_info:
                store.create_issue(Issue("Blocked"), actor="tester")
        finally:
            other.execute("ROLLBACK")
            other.close()
        assert not isinstance(exc_info.value, OperationTimeoutError)


class _FailingRollbackConnection:
    in_transaction = True

    def set_progress_handler(self, handler: object, n: int) -> None:
        pass

    def execute(self, sql: str) -> None:
        raise sqlite3.OperationalError("disk I/O error")


class TestRollbackFailure:
    def test_failed_rollback_is_wrapped(self) -> None:
        with pytest.raises(StorageError) as exc_info:
            IssueStore._rollback(_FailingRollbackConnection(), "update_issue")  # type: ignore[arg-type]
        assert exc_info.value.operation == "update_issue"
        assert exc_info.value.rolled_back is False
        assert isinstance(exc_info.value.__cause__, sqlite3.OperationalError)
