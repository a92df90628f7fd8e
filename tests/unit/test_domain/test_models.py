"""Tests for the identity context and access rules."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from filedeck.domain.models import AccessRule, HandlerResult, SearchOptions, UserContext


class TestAccessRule:
    def test_prefix_rule_matches_by_prefix(self) -> None:
        rule = AccessRule(path="docs/secret", allow=False)
        assert rule.matches("docs/secret/plan.txt")
        assert not rule.matches("a/docs/secret")

    def test_regex_rule_matches_anywhere(self) -> None:
        rule = AccessRule(path=r"\.env$", regex=True)
        assert rule.matches("app/.env")
        assert not rule.matches("app/.envrc")

    def test_invalid_regex_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Invalid rule pattern"):
            AccessRule(path="(unclosed", regex=True)

    def test_invalid_regex_ignored_for_prefix_rule(self) -> None:
        rule = AccessRule(path="(unclosed")
        assert rule.matches("(unclosed/file")


class TestUserContext:
    def test_defaults(self) -> None:
        user = UserContext()
        assert user.filesystem == "."
        assert user.commands == ["git", "svn", "hg"]
        assert user.rules == []

    def test_no_rules_allows_everything(self) -> None:
        assert UserContext().allowed("anything/at/all")

    def test_last_matching_rule_wins(self) -> None:
        user = UserContext(
            rules=[
                AccessRule(path="docs", allow=False),
                AccessRule(path="docs/public", allow=True),
            ]
        )
        assert not user.allowed("docs/private.txt")
        assert user.allowed("docs/public/index.html")
        assert user.allowed("src/main.py")

    def test_frozen(self) -> None:
        user = UserContext()
        with pytest.raises(ValidationError):
            user.filesystem = "/tmp"  # type: ignore[misc]


class TestSearchOptions:
    def test_terms_coerced_to_tuple(self) -> None:
        options = SearchOptions(terms=["a", "b"])  # type: ignore[arg-type]
        assert options.terms == ("a", "b")
        assert options.case_insensitive is False


class TestHandlerResult:
    def test_unpacks_as_status_and_error(self) -> None:
        status, error = HandlerResult(501)
        assert status == 501
        assert error is None
