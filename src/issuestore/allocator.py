"""Sequential issue id allocation.

Each ``IssueStore`` owns one ``IdAllocator``. The counter lives in memory and
is seeded from the highest numbered id already on disk, so ids are unique
and strictly increasing for the lifetime of the store. Allocation happens
outside any database transaction: an id handed to an operation that later
fails is never reused, leaving a gap in the sequence.
"""

from __future__ import annotations

import logging
import sqlite3
import threading

from issuestore.validation import parse_issue_id

logger = logging.getLogger(__name__)


class IdAllocator:
    """Thread-safe ``<prefix>-<n>`` generator."""

    def __init__(self, prefix: str, start: int = 1) -> None:
        if start < 1:
            msg = f"start must be >= 1, got {start}"
            raise ValueError(msg)
        self.prefix = prefix
        self._next = start
        self._lock = threading.Lock()

    @classmethod
    def from_connection(cls, conn: sqlite3.Connection, prefix: str) -> IdAllocator:
        """Seed the counter one past the highest ``<prefix>-<n>`` id in ``issues``.

        Ids with another prefix or a non-numeric suffix are ignored. With no
        usable rows the counter starts at 1.
        """
        highest = 0
        pattern = prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_") + "-%"
        for row in conn.execute("SELECT id FROM issues WHERE id LIKE ? ESCAPE '\\'", (pattern,)):
            parsed = parse_issue_id(row[0])
            if parsed is None or parsed[0] != prefix:
                continue
            highest = max(highest, parsed[1])
        logger.debug("Seeded id allocator for prefix %r at %d", prefix, highest + 1)
        return cls(prefix, start=highest + 1)

    def allocate(self) -> str:
        with self._lock:
            number = self._next
            self._next += 1
        return f"{self.prefix}-{number}"

    def observe(self, issue_id: str) -> None:
        """Advance past an explicitly supplied id so later allocations skip it."""
        parsed = parse_issue_id(issue_id)
        if parsed is None or parsed[0] != self.prefix:
            return
        with self._lock:
            if parsed[1] >= self._next:
                self._next = parsed[1] + 1

    def peek(self) -> int:
        """Return the number the next ``allocate()`` will use."""
        with self._lock:
            return self._next
