"""Tests for search SQL construction."""

from __future__ import annotations

import pytest

from issuestore.errors import ValidationError
from issuestore.search import IssueFilter, build_search_query


class TestBuildSearchQuery:
    def test_no_criteria(self) -> None:
        sql, params = build_search_query()
        assert "WHERE" not in sql
        assert sql.endswith("ORDER BY priority ASC, created_at DESC, rowid DESC")
        assert params == []

    def test_text_is_bound_three_times(self) -> None:
        sql, params = build_search_query("crash")
        assert sql.count("LIKE ?") == 3
        assert params == ["%crash%"] * 3

    def test_like_metacharacters_escaped(self) -> None:
        _, params = build_search_query("50%_off")
        assert params[0] == "%50\\%\\_off%"

    def test_filters_in_order(self) -> None:
        sql, params = build_search_query("", IssueFilter(status="open", priority=1, issue_type="bug", assignee="al"))
        assert "status = ? AND priority = ? AND issue_type = ? AND assignee = ?" in sql
        assert params == ["open", 1, "bug", "al"]

    def test_caller_input_never_in_sql(self) -> None:
        hostile = "x'; DROP TABLE issues; --"
        sql, params = build_search_query(hostile, IssueFilter(assignee=hostile))
        assert hostile not in sql
        assert hostile in params

    def test_limit(self) -> None:
        sql, params = build_search_query("", IssueFilter(limit=5))
        assert sql.endswith("LIMIT ?")
        assert params == [5]

    @pytest.mark.parametrize("limit", [-1, True, 2.5])
    def test_bad_limit(self, limit: object) -> None:
        with pytest.raises(ValidationError, match="limit"):
            build_search_query("", IssueFilter(limit=limit))  # type: ignore[arg-type]
