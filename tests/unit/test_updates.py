"""Tests for typed partial-update operations."""

from __future__ import annotations

import pytest

from issuestore.errors import ValidationError
from issuestore.updates import (
    UPDATABLE_FIELDS,
    SetAssignee,
    SetPriority,
    SetStatus,
    SetTitle,
    changes_as_dict,
    parse_changes,
)


class TestParseChanges:
    def test_mapping_becomes_variants(self) -> None:
        updates = parse_changes({"title": "New", "priority": 1})
        assert updates == [SetTitle("New"), SetPriority(1)]

    def test_variants_pass_through(self) -> None:
        updates = parse_changes([SetStatus("blocked")])
        assert updates == [SetStatus("blocked")]

    def test_unknown_field(self) -> None:
        with pytest.raises(ValidationError, match="invalid field for update") as exc_info:
            parse_changes({"labels": ["x"]})
        assert exc_info.value.field == "labels"

    def test_server_managed_fields_not_updatable(self) -> None:
        assert {"id", "created_at", "updated_at", "closed_at"}.isdisjoint(UPDATABLE_FIELDS)

    def test_empty(self) -> None:
        with pytest.raises(ValidationError, match="no fields"):
            parse_changes({})

    def test_duplicate_field(self) -> None:
        with pytest.raises(ValidationError, match="more than once"):
            parse_changes([SetTitle("a"), SetTitle("b")])

    def test_non_variant_rejected(self) -> None:
        with pytest.raises(ValidationError, match="not an update operation"):
            parse_changes([("title", "x")])  # type: ignore[list-item]

    def test_invalid_value_rejected(self) -> None:
        with pytest.raises(ValidationError, match="priority"):
            parse_changes({"priority": 7})


class TestVariants:
    def test_status_closes(self) -> None:
        assert SetStatus("closed").closes
        assert not SetStatus("open").closes

    def test_assignee_allows_none(self) -> None:
        assert SetAssignee(None).validate() is None

    def test_variants_are_frozen(self) -> None:
        update = SetTitle("x")
        with pytest.raises(AttributeError):
            update.value = "y"  # type: ignore[misc]

    def test_changes_as_dict(self) -> None:
        assert changes_as_dict([SetTitle("t"), SetAssignee(None)]) == {"title": "t", "assignee": None}
