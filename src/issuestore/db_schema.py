"""Database schema definitions for the issue store.

``issues`` holds current state and is never deleted from. ``events`` is the
append-only audit trail; triggers reject UPDATE and DELETE on it.
"""

from __future__ import annotations

SCHEMA_SQL = """\
CREATE TABLE IF NOT EXISTS issues (
    id                  TEXT PRIMARY KEY,
    title               TEXT NOT NULL,
    description         TEXT NOT NULL DEFAULT '',
    design              TEXT NOT NULL DEFAULT '',
    acceptance_criteria TEXT NOT NULL DEFAULT '',
    notes               TEXT NOT NULL DEFAULT '',
    status              TEXT NOT NULL DEFAULT 'open',
    priority            INTEGER NOT NULL DEFAULT 2,
    issue_type          TEXT NOT NULL DEFAULT 'task',
    assignee            TEXT,
    estimated_minutes   INTEGER,
    created_at          TEXT NOT NULL,
    updated_at          TEXT NOT NULL,
    closed_at           TEXT,
    approved_at         TEXT,
    approved_by         TEXT,

    CHECK (priority BETWEEN 0 AND 4),
    CHECK (length(title) BETWEEN 1 AND 500),
    CHECK (estimated_minutes IS NULL OR estimated_minutes >= 0)
);

CREATE INDEX IF NOT EXISTS idx_issues_status ON issues(status);
CREATE INDEX IF NOT EXISTS idx_issues_priority ON issues(priority, created_at);
CREATE INDEX IF NOT EXISTS idx_issues_assignee ON issues(assignee);
CREATE INDEX IF NOT EXISTS idx_issues_type ON issues(issue_type);

CREATE TABLE IF NOT EXISTS events (
    id         INTEGER PRIMARY KEY AUTOINCREMENT,
    issue_id   TEXT NOT NULL REFERENCES issues(id),
    event_type TEXT NOT NULL,
    actor      TEXT NOT NULL DEFAULT '',
    old_value  TEXT,
    new_value  TEXT,
    comment    TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_events_issue ON events(issue_id);
CREATE INDEX IF NOT EXISTS idx_events_created ON events(created_at);
CREATE INDEX IF NOT EXISTS idx_events_issue_time ON events(issue_id, created_at DESC);

-- History is permanent: issues are never deleted, events never change.
CREATE TRIGGER IF NOT EXISTS issues_no_delete BEFORE DELETE ON issues BEGIN
    SELECT RAISE(ABORT, 'issues cannot be deleted');
END;
CREATE TRIGGER IF NOT EXISTS events_no_update BEFORE UPDATE ON events BEGIN
    SELECT RAISE(ABORT, 'events are append-only');
END;
CREATE TRIGGER IF NOT EXISTS events_no_delete BEFORE DELETE ON events BEGIN
    SELECT RAISE(ABORT, 'events are append-only');
END;
"""

CURRENT_SCHEMA_VERSION = 1
