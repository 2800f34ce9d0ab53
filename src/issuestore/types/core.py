"""Foundational TypedDicts for dataclass to_dict() returns."""

from __future__ import annotations

from typing import NewType, TypedDict

ISOTimestamp = NewType("ISOTimestamp", str)


class ProjectConfig(TypedDict, total=False):
    """Shape of .issuestore/config.json."""

    prefix: str
    version: int


class IssueDict(TypedDict):
    id: str
    title: str
    description: str
    design: str
    acceptance_criteria: str
    notes: str
    status: str
    priority: int
    issue_type: str
    assignee: str | None
    estimated_minutes: int | None
    created_at: ISOTimestamp
    updated_at: ISOTimestamp
    closed_at: ISOTimestamp | None
    approved_at: ISOTimestamp | None
    approved_by: str | None
