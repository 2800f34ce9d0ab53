"""Core storage engine for the issue tracker.

Single source of truth for all SQLite operations. The CLI and any other
driver import from this module. No daemon, no cache: direct SQLite in WAL
mode, one short transaction per mutation.

Convention-based discovery: each project has a `.issuestore/` directory
containing `issues.db` (SQLite) and `config.json` (project prefix, version).
"""

from __future__ import annotations

import contextlib
import json
import logging
import math
import sqlite3
import threading
import time
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from issuestore.allocator import IdAllocator
from issuestore.db_events import EventsMixin
from issuestore.db_issues import IssuesMixin
from issuestore.db_schema import CURRENT_SCHEMA_VERSION, SCHEMA_SQL
from issuestore.errors import (
    InitializationError,
    IssueStoreError,
    OperationTimeoutError,
    StorageError,
    StoreClosedError,
)
from issuestore.models import IssueType, Status
from issuestore.types.core import ISOTimestamp, IssueDict, ProjectConfig
from issuestore.validation import (
    validate_estimated_minutes,
    validate_issue_type,
    validate_optional_text,
    validate_prefix,
    validate_priority,
    validate_status,
    validate_text,
    validate_title,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Convention-based discovery
# ---------------------------------------------------------------------------

STORE_DIR_NAME = ".issuestore"
DB_FILENAME = "issues.db"
CONFIG_FILENAME = "config.json"
DEFAULT_PREFIX = "issue"


def find_store_root(start: Path | None = None) -> Path:
    """Walk up from start (default cwd) looking for .issuestore/ directory.

    Returns the .issuestore/ directory path (not the project root).
    """
    current = (start or Path.cwd()).resolve()
    for parent in [current, *current.parents]:
        candidate = parent / STORE_DIR_NAME
        if candidate.is_dir():
            return candidate
    msg = f"No {STORE_DIR_NAME}/ directory found in {current} or any parent"
    raise FileNotFoundError(msg)


def read_config(store_dir: Path) -> ProjectConfig:
    """Read .issuestore/config.json. Returns defaults if missing or corrupt."""
    defaults = ProjectConfig(prefix=DEFAULT_PREFIX, version=1)
    config_path = store_dir / CONFIG_FILENAME
    if not config_path.exists():
        return defaults
    try:
        result = json.loads(config_path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Failed to read %s, using defaults: %s", config_path, exc)
        return defaults
    if not isinstance(result, dict):
        logger.warning("Ignoring %s: expected a JSON object", config_path)
        return defaults
    config: ProjectConfig = {**defaults, **result}  # type: ignore[typeddict-item]
    return config


def write_config(store_dir: Path, config: dict[str, Any] | ProjectConfig) -> None:
    """Write .issuestore/config.json."""
    config_path = store_dir / CONFIG_FILENAME
    config_path.write_text(json.dumps(config, indent=2) + "\n")


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class Issue:
    title: str
    id: str = ""
    description: str = ""
    design: str = ""
    acceptance_criteria: str = ""
    notes: str = ""
    status: str = Status.OPEN.value
    priority: int = 2
    issue_type: str = IssueType.TASK.value
    assignee: str | None = None
    estimated_minutes: int | None = None
    # Server-assigned
    created_at: str = ""
    updated_at: str = ""
    closed_at: str | None = None
    approved_at: str | None = None
    approved_by: str | None = None

    def validate(self) -> None:
        """Whole-issue rule check. Raises ``ValidationError`` on the first violation."""
        validate_title(self.title)
        for name in ("description", "design", "acceptance_criteria", "notes"):
            validate_text(getattr(self, name), name)
        validate_status(self.status)
        validate_priority(self.priority)
        validate_issue_type(self.issue_type)
        validate_optional_text(self.assignee, "assignee")
        validate_estimated_minutes(self.estimated_minutes)

    def to_dict(self) -> IssueDict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "design": self.design,
            "acceptance_criteria": self.acceptance_criteria,
            "notes": self.notes,
            "status": self.status,
            "priority": self.priority,
            "issue_type": self.issue_type,
            "assignee": self.assignee,
            "estimated_minutes": self.estimated_minutes,
            "created_at": ISOTimestamp(self.created_at),
            "updated_at": ISOTimestamp(self.updated_at),
            "closed_at": ISOTimestamp(self.closed_at) if self.closed_at is not None else None,
            "approved_at": ISOTimestamp(self.approved_at) if self.approved_at is not None else None,
            "approved_by": self.approved_by,
        }


# ---------------------------------------------------------------------------
# IssueStore
# ---------------------------------------------------------------------------


class IssueStore(EventsMixin, IssuesMixin):
    """Direct SQLite operations, safe to share between threads.

    Construction creates the parent directory, opens the connection, applies
    the schema and seeds the id allocator. Any failure raises
    ``InitializationError`` and leaves nothing open.
    """

    _PROGRESS_INTERVAL = 1000  # SQLite VM instructions between deadline checks
    _BUSY_TIMEOUT_MS = 5000

    def __init__(self, db_path: str | Path, *, prefix: str = DEFAULT_PREFIX) -> None:
        self.db_path = Path(db_path)
        self.prefix = validate_prefix(prefix)
        self._conn: sqlite3.Connection | None = None
        self._closed = False
        # Serializes all use of the shared connection; the allocator has its own lock.
        self._lock = threading.RLock()
        self._allocator: IdAllocator | None = None
        self.initialize()

    @classmethod
    def from_project(cls, project_path: Path | None = None) -> IssueStore:
        """Create an IssueStore by discovering .issuestore/ from project_path (or cwd)."""
        store_dir = find_store_root(project_path)
        config = read_config(store_dir)
        return cls(store_dir / DB_FILENAME, prefix=config.get("prefix", DEFAULT_PREFIX))

    def __enter__(self) -> IssueStore:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()

    # -- Connection & schema -------------------------------------------------

    @property
    def conn(self) -> sqlite3.Connection:
        if self._closed:
            msg = f"IssueStore for {self.db_path} is closed"
            raise StoreClosedError(msg)
        if self._conn is None:
            # isolation_level=None: transactions are opened explicitly by _write().
            self._conn = sqlite3.connect(str(self.db_path), isolation_level=None, check_same_thread=False)
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode=WAL")
            self._conn.execute("PRAGMA foreign_keys=ON")
            self._conn.execute(f"PRAGMA busy_timeout={self._BUSY_TIMEOUT_MS}")
        return self._conn

    @property
    def allocator(self) -> IdAllocator:
        if self._allocator is None:
            msg = "IssueStore is not initialized"
            raise StoreClosedError(msg)
        return self._allocator

    def initialize(self) -> None:
        """Create tables on a fresh database, then seed the id allocator.

        Raises ``InitializationError`` if the database was written by a newer
        schema version or cannot be opened.
        """
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            with self._lock:
                conn = self.conn
                current_version = self.get_schema_version()
                if current_version == 0:
                    conn.executescript(SCHEMA_SQL)
                    conn.execute(f"PRAGMA user_version = {CURRENT_SCHEMA_VERSION}")
                elif current_version > CURRENT_SCHEMA_VERSION:
                    msg = (
                        f"{self.db_path} has schema version {current_version}; "
                        f"this build supports up to {CURRENT_SCHEMA_VERSION}"
                    )
                    raise InitializationError(msg)
                self._allocator = IdAllocator.from_connection(conn, self.prefix)
        except InitializationError:
            self.close()
            raise
        except (OSError, sqlite3.Error) as exc:
            self.close()
            msg = f"Failed to initialize issue store at {self.db_path}: {exc}"
            raise InitializationError(msg) from exc
        logger.debug("Opened issue store %s (prefix=%s)", self.db_path, self.prefix)

    def get_schema_version(self) -> int:
        """Return the current schema version from PRAGMA user_version."""
        result: int = self.conn.execute("PRAGMA user_version").fetchone()[0]
        return result

    def close(self) -> None:
        """Release the connection. Any later call raises ``StoreClosedError``."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None
            self._closed = True

    @property
    def closed(self) -> bool:
        return self._closed

    # -- Operation scaffolding -----------------------------------------------

    @contextlib.contextmanager
    def _locked(self, operation: str, timeout: float | None) -> Iterator[tuple[sqlite3.Connection, float | None]]:
        """Hold the connection lock and install the caller's deadline."""
        if timeout is not None and timeout <= 0:
            raise OperationTimeoutError(operation, timeout)
        deadline = None if timeout is None else time.monotonic() + timeout
        acquired = self._lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            raise OperationTimeoutError(operation, timeout or 0.0)
        try:
            conn = self.conn
            if deadline is not None:
                # The progress handler cannot interrupt a busy-wait on another connection's lock.
                remaining_ms = max(1, math.ceil((deadline - time.monotonic()) * 1000))
                conn.execute(f"PRAGMA busy_timeout={remaining_ms}")
                conn.set_progress_handler(lambda: int(time.monotonic() > deadline), self._PROGRESS_INTERVAL)
            try:
                yield conn, deadline
            finally:
                if deadline is not None and self._conn is not None:
                    self._conn.set_progress_handler(None, 0)
                    self._conn.execute(f"PRAGMA busy_timeout={self._BUSY_TIMEOUT_MS}")
        finally:
            self._lock.release()

    @staticmethod
    def _storage_error(
        operation: str,
        exc: sqlite3.Error,
        deadline: float | None,
        timeout: float | None,
        *,
        rolled_back: bool,
    ) -> StorageError:
        if deadline is None or timeout is None:
            return StorageError(operation, exc, rolled_back=rolled_back)
        # busy_timeout was capped at the remaining budget, so SQLITE_BUSY means it ran out.
        if time.monotonic() >= deadline or getattr(exc, "sqlite_errorcode", None) == sqlite3.SQLITE_BUSY:
            return OperationTimeoutError(operation, timeout, rolled_back=rolled_back)
        return StorageError(operation, exc, rolled_back=rolled_back)

    @contextlib.contextmanager
    def _read(self, operation: str, timeout: float | None) -> Iterator[sqlite3.Connection]:
        """Run a read without a transaction; wrap SQLite failures."""
        with self._locked(operation, timeout) as (conn, deadline):
            try:
                yield conn
            except sqlite3.Error as exc:
                raise self._storage_error(operation, exc, deadline, timeout, rolled_back=False) from exc

    @contextlib.contextmanager
    def _write(self, operation: str, timeout: float | None) -> Iterator[sqlite3.Connection]:
        """Run the body in ``BEGIN IMMEDIATE`` … ``COMMIT``; roll back on any exception."""
        with self._locked(operation, timeout) as (conn, deadline):
            try:
                conn.execute("BEGIN IMMEDIATE")
            except sqlite3.Error as exc:
                raise self._storage_error(operation, exc, deadline, timeout, rolled_back=False) from exc
            try:
                yield conn
                conn.execute("COMMIT")
            except BaseException as exc:
                self._rollback(conn, operation)
                if isinstance(exc, sqlite3.Error):
                    logger.warning("Rolled back %s: %s", operation, exc, extra={"operation": operation, "error": str(exc)})
                    raise self._storage_error(operation, exc, deadline, timeout, rolled_back=True) from exc
                if not isinstance(exc, IssueStoreError):
                    logger.warning(
                        "Rolled back %s after %s: %s",
                        operation,
                        type(exc).__name__,
                        exc,
                        extra={"operation": operation, "error": repr(exc)},
                    )
                raise

    @staticmethod
    def _rollback(conn: sqlite3.Connection, operation: str) -> None:
        conn.set_progress_handler(None, 0)
        if not conn.in_transaction:
            # SQLite already rolled back (e.g. interrupted statement).
            return
        try:
            conn.execute("ROLLBACK")
        except sqlite3.Error as exc:
            logger.exception("ROLLBACK failed during %s", operation, extra={"operation": operation, "error": str(exc)})
            raise StorageError(operation, exc, rolled_back=False) from exc
        logger.debug("Rolled back %s", operation)
