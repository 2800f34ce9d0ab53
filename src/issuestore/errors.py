"""Exception hierarchy for the issue store.

Validation failures are raised before any transaction opens. Storage failures
carry ``rolled_back`` so callers can tell "nothing happened" apart from
"rolled back"; both leave the database in the same state.
"""

from __future__ import annotations


class IssueStoreError(Exception):
    """Base class for every error raised by issuestore."""


class ValidationError(IssueStoreError, ValueError):
    """Raised when an issue, an update, an actor, or an id is malformed."""

    def __init__(self, message: str, *, field: str | None = None) -> None:
        self.field = field
        super().__init__(message)


class IssueNotFoundError(IssueStoreError, KeyError):
    """Raised when a mutation targets an issue that does not exist."""

    def __init__(self, issue_id: str) -> None:
        self.issue_id = issue_id
        super().__init__(f"Issue not found: {issue_id}")

    def __str__(self) -> str:
        # KeyError.__str__ would wrap the message in quotes.
        return str(self.args[0])


class StorageError(IssueStoreError):
    """Wraps a failure from SQLite.

    ``rolled_back`` is True when a transaction was open and has been rolled
    back, False when the failure happened before any transaction began.
    """

    def __init__(self, operation: str, cause: BaseException | None = None, *, rolled_back: bool = False) -> None:
        self.operation = operation
        self.cause = cause
        self.rolled_back = rolled_back
        detail = f": {cause}" if cause is not None else ""
        suffix = " (rolled back)" if rolled_back else ""
        super().__init__(f"Storage failure during {operation}{detail}{suffix}")


class OperationTimeoutError(StorageError):
    """Raised when an operation exceeds its caller-supplied deadline."""

    def __init__(self, operation: str, timeout: float, *, rolled_back: bool = False) -> None:
        self.timeout = timeout
        super().__init__(operation, TimeoutError(f"deadline of {timeout:g}s exceeded"), rolled_back=rolled_back)


class InitializationError(IssueStoreError):
    """Raised when the database directory, connection, or schema cannot be set up."""


class StoreClosedError(IssueStoreError):
    """Raised when a store is used after ``close()``."""
