"""issuestore: transactional SQLite storage for issues and their audit trail."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("issuestore")
except PackageNotFoundError:
    __version__ = "0.0.0-dev"

from issuestore.core import Issue, IssueStore
from issuestore.errors import (
    InitializationError,
    IssueNotFoundError,
    IssueStoreError,
    OperationTimeoutError,
    StorageError,
    StoreClosedError,
    ValidationError,
)
from issuestore.models import EventType, IssueType, Status
from issuestore.search import IssueFilter

__all__ = [
    "EventType",
    "InitializationError",
    "Issue",
    "IssueFilter",
    "IssueNotFoundError",
    "IssueStore",
    "IssueStoreError",
    "IssueType",
    "OperationTimeoutError",
    "Status",
    "StorageError",
    "StoreClosedError",
    "ValidationError",
    "__version__",
]
