# IMPORT CONSTRAINT: types/ modules must only import from typing, stdlib, and each other.
# NEVER import from core.py, db_base.py, or any mixin; that would create an import cycle.
"""Typed return-value contracts for the issuestore core and CLI layers."""

from __future__ import annotations

from issuestore.types.core import ISOTimestamp, IssueDict, ProjectConfig
from issuestore.types.events import EventRecord, EventRecordWithTitle, SnapshotDocument

__all__ = [
    "EventRecord",
    "EventRecordWithTitle",
    "ISOTimestamp",
    "IssueDict",
    "ProjectConfig",
    "SnapshotDocument",
]
