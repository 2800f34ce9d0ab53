"""Shared pytest fixtures for issuestore tests."""

from __future__ import annotations

from collections.abc import Generator
from pathlib import Path

import pytest
from click.testing import CliRunner

from issuestore.core import DB_FILENAME, STORE_DIR_NAME, Issue, IssueStore, write_config
from tests._store_factory import make_store


@pytest.fixture
def store(tmp_path: Path) -> Generator[IssueStore, None, None]:
    """Fresh IssueStore for each test."""
    s = make_store(tmp_path)
    yield s
    s.close()


@pytest.fixture
def populated_store(store: IssueStore) -> IssueStore:
    """IssueStore pre-populated with a representative issue set.

    Creates:
    - A = open P1 bug assigned to alice, mentions "login"
    - B = open P2 task, description mentions "login"
    - C = closed P3 feature
    - D = in_progress P0 bug assigned to bob
    """
    a = store.create_issue(Issue("Login page crashes", priority=1, issue_type="bug", assignee="alice"), actor="tester")
    b = store.create_issue(Issue("Refactor session code", description="touches the login flow"), actor="tester")
    c = store.create_issue(Issue("Dark mode", priority=3, issue_type="feature"), actor="tester")
    store.close_issue(c.id, reason="shipped", actor="tester")
    d = store.create_issue(Issue("Data loss on save", priority=0, issue_type="bug", assignee="bob"), actor="tester")
    store.update_issue(d.id, {"status": "in_progress"}, actor="bob")
    # Store IDs for easy access in tests
    store._test_ids: dict[str, str] = {"a": a.id, "b": b.id, "c": c.id, "d": d.id}  # type: ignore[attr-defined]
    return store


@pytest.fixture
def store_project(tmp_path: Path) -> Path:
    """A tmp directory set up as an issuestore project (.issuestore/ with config + db).

    Returns the project root (parent of .issuestore/).
    """
    store_dir = tmp_path / STORE_DIR_NAME
    store_dir.mkdir()
    write_config(store_dir, {"prefix": "proj", "version": 1})
    IssueStore(store_dir / DB_FILENAME, prefix="proj").close()
    return tmp_path


@pytest.fixture
def cli_runner() -> CliRunner:
    """Click CLI test runner."""
    return CliRunner()
