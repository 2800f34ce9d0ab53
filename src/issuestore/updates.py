"""Typed partial-update operations.

One frozen dataclass per updatable column. Each variant validates its own
value, so an update built from these types cannot name a column outside the
allow-list. :func:`parse_changes` converts the field-name mapping accepted by
the public API into variants and rejects unknown names.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar

from issuestore.errors import ValidationError
from issuestore.models import Status
from issuestore.validation import (
    validate_estimated_minutes,
    validate_issue_type,
    validate_optional_text,
    validate_priority,
    validate_status,
    validate_text,
    validate_title,
)


@dataclass(frozen=True)
class FieldUpdate:
    """Base class for a single-column change."""

    column: ClassVar[str]
    value: Any

    def validate(self) -> Any:
        """Return the value to store, or raise ``ValidationError``."""
        raise NotImplementedError


@dataclass(frozen=True)
class SetTitle(FieldUpdate):
    column: ClassVar[str] = "title"
    value: str

    def validate(self) -> str:
        return validate_title(self.value)


@dataclass(frozen=True)
class SetDescription(FieldUpdate):
    column: ClassVar[str] = "description"
    value: str

    def validate(self) -> str:
        return validate_text(self.value, self.column)


@dataclass(frozen=True)
class SetDesign(FieldUpdate):
    column: ClassVar[str] = "design"
    value: str

    def validate(self) -> str:
        return validate_text(self.value, self.column)


@dataclass(frozen=True)
class SetAcceptanceCriteria(FieldUpdate):
    column: ClassVar[str] = "acceptance_criteria"
    value: str

    def validate(self) -> str:
        return validate_text(self.value, self.column)


@dataclass(frozen=True)
class SetNotes(FieldUpdate):
    column: ClassVar[str] = "notes"
    value: str

    def validate(self) -> str:
        return validate_text(self.value, self.column)


@dataclass(frozen=True)
class SetStatus(FieldUpdate):
    column: ClassVar[str] = "status"
    value: str

    def validate(self) -> str:
        return validate_status(self.value)

    @property
    def closes(self) -> bool:
        return self.value == Status.CLOSED


@dataclass(frozen=True)
class SetPriority(FieldUpdate):
    column: ClassVar[str] = "priority"
    value: int

    def validate(self) -> int:
        return validate_priority(self.value)


@dataclass(frozen=True)
class SetIssueType(FieldUpdate):
    column: ClassVar[str] = "issue_type"
    value: str

    def validate(self) -> str:
        return validate_issue_type(self.value)


@dataclass(frozen=True)
class SetAssignee(FieldUpdate):
    column: ClassVar[str] = "assignee"
    value: str | None

    def validate(self) -> str | None:
        return validate_optional_text(self.value, self.column)


@dataclass(frozen=True)
class SetEstimatedMinutes(FieldUpdate):
    column: ClassVar[str] = "estimated_minutes"
    value: int | None

    def validate(self) -> int | None:
        return validate_estimated_minutes(self.value)


@dataclass(frozen=True)
class SetApprovedAt(FieldUpdate):
    column: ClassVar[str] = "approved_at"
    value: str | None

    def validate(self) -> str | None:
        if self.value is None:
            return None
        if not isinstance(self.value, str):
            msg = "approved_at must be an ISO-8601 string or None"
            raise ValidationError(msg, field=self.column)
        try:
            datetime.fromisoformat(self.value)
        except ValueError as exc:
            msg = f"approved_at is not an ISO-8601 timestamp: {self.value!r}"
            raise ValidationError(msg, field=self.column) from exc
        return self.value


@dataclass(frozen=True)
class SetApprovedBy(FieldUpdate):
    column: ClassVar[str] = "approved_by"
    value: str | None

    def validate(self) -> str | None:
        return validate_optional_text(self.value, self.column)


UPDATE_TYPES: dict[str, type[FieldUpdate]] = {
    cls.column: cls
    for cls in (
        SetTitle,
        SetDescription,
        SetDesign,
        SetAcceptanceCriteria,
        SetNotes,
        SetStatus,
        SetPriority,
        SetIssueType,
        SetAssignee,
        SetEstimatedMinutes,
        SetApprovedAt,
        SetApprovedBy,
    )
}

UPDATABLE_FIELDS: frozenset[str] = frozenset(UPDATE_TYPES)


def parse_changes(changes: Mapping[str, Any] | Iterable[FieldUpdate]) -> list[FieldUpdate]:
    """Turn a field-name mapping (or an iterable of variants) into validated variants.

    Raises ``ValidationError`` on an unknown field, a repeated field, an
    empty change set, or any invalid value. Nothing is partially applied.
    """
    if isinstance(changes, Mapping):
        updates: list[FieldUpdate] = []
        for name, value in changes.items():
            cls = UPDATE_TYPES.get(name)
            if cls is None:
                msg = f"invalid field for update: {name!r}. Updatable fields: {', '.join(sorted(UPDATABLE_FIELDS))}"
                raise ValidationError(msg, field=str(name))
            updates.append(cls(value))
    else:
        updates = list(changes)
        for u in updates:
            if not isinstance(u, FieldUpdate) or type(u) not in UPDATE_TYPES.values():
                msg = f"not an update operation: {u!r}"
                raise ValidationError(msg)

    if not updates:
        msg = "no fields to update"
        raise ValidationError(msg)

    seen: set[str] = set()
    for u in updates:
        if u.column in seen:
            msg = f"field {u.column!r} given more than once"
            raise ValidationError(msg, field=u.column)
        seen.add(u.column)
        u.validate()
    return updates


def changes_as_dict(updates: Iterable[FieldUpdate]) -> dict[str, Any]:
    """The raw change set recorded as an update event's ``new_value``."""
    return {u.column: u.validate() for u in updates}
