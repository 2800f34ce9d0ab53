"""Shared utilities, types, and Protocol for DB mixins."""

from __future__ import annotations

import sqlite3
from contextlib import AbstractContextManager
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from issuestore.allocator import IdAllocator
    from issuestore.core import Issue


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class DBMixinProtocol(Protocol):
    """Shared attributes and methods that DB mixins access via self.

    Mixins inherit this Protocol so mypy can type-check self.conn,
    self._write(), etc. without ``type: ignore`` on every call.
    Actual implementations are provided by IssueStore at composition time.
    """

    db_path: Path
    prefix: str
    _conn: sqlite3.Connection | None

    @property
    def conn(self) -> sqlite3.Connection: ...

    @property
    def allocator(self) -> IdAllocator: ...

    def _read(self, operation: str, timeout: float | None) -> AbstractContextManager[sqlite3.Connection]: ...

    def _write(self, operation: str, timeout: float | None) -> AbstractContextManager[sqlite3.Connection]: ...

    def get_issue(self, issue_id: str, *, timeout: float | None = None) -> Issue | None: ...

