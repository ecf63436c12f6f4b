"""Tests for tapkeeper.github."""

from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import pytest

from tapkeeper.github import (
    MAXIMUM_OPEN_PRS,
    ValidationFailedError,
    fetch_pull_requests,
    pr_title_regex,
    search_issues,
    too_many_open_prs,
)
from tapkeeper.models import Tap
from tapkeeper.shell import CommandError


class TestSearchIssues:
    @patch("tapkeeper.github.gh")
    def test_decodes_response(self, mock_gh: MagicMock) -> None:
        mock_gh.return_value = json.dumps({"total_count": 0, "items": []})

        assert search_issues("is:pr foo") == {"total_count": 0, "items": []}
        assert "q=is:pr foo" in mock_gh.call_args.args

    @patch("tapkeeper.github.gh")
    def test_validation_failure(self, mock_gh: MagicMock) -> None:
        """HTTP 422 responses become ValidationFailedError."""
        mock_gh.side_effect = CommandError(
            ["gh", "api"], 1, "gh: Validation Failed (HTTP 422)"
        )

        with pytest.raises(ValidationFailedError):
            search_issues("is:pr foo")

    @patch("tapkeeper.github.gh")
    def test_other_failures_propagate(self, mock_gh: MagicMock) -> None:
        mock_gh.side_effect = CommandError(["gh", "api"], 1, "HTTP 502")

        with pytest.raises(CommandError):
            search_issues("is:pr foo")


class TestPrTitleRegex:
    def test_name_only(self) -> None:
        regex = pr_title_regex("foo")
        assert regex.search("foo 1.2.3")
        assert regex.search("Foo: update")
        assert not regex.search("foobar 1.2.3")

    def test_name_and_version(self) -> None:
        regex = pr_title_regex("foo", "1.2.3")
        assert regex.search("foo 1.2.3")
        assert regex.search("foo: update to 1.2.3")
        assert not regex.search("foo 1.2.30")
        assert not regex.search("foo 1.2.4")


class TestFetchPullRequests:
    def test_no_repository(self) -> None:
        assert fetch_pull_requests("foo", None) == []

    @patch("tapkeeper.github.search_issues")
    def test_filters_results(self, mock_search: MagicMock) -> None:
        """Only pull requests whose title names the package are kept."""
        mock_search.return_value = {
            "items": [
                {"title": "foo 1.2.3", "html_url": "https://github.com/o/r/pull/1"},
                {"title": "foo 1.2.3", "html_url": "https://github.com/o/r/issues/2"},
                {"title": "foobar 1.2.3", "html_url": "https://github.com/o/r/pull/3"},
            ]
        }

        prs = fetch_pull_requests("foo", "o/r", version="1.2.3")

        assert [pr["html_url"] for pr in prs] == ["https://github.com/o/r/pull/1"]
        mock_search.assert_called_once_with("is:pr foo 1.2.3 repo:o/r in:title state:open")


class TestTooManyOpenPrs:
    def test_no_tap(self) -> None:
        assert not too_many_open_prs(None)

    @patch("tapkeeper.github.search_issues")
    def test_third_party_tap_unlimited(self, mock_search: MagicMock) -> None:
        assert not too_many_open_prs(Tap(name="acme/tools"))
        mock_search.assert_not_called()

    @patch("tapkeeper.github.search_issues")
    def test_official_tap_at_limit(
        self, mock_search: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("TAPKEEPER_TEST_BOT_AUTOBUMP", raising=False)
        mock_search.return_value = {"total_count": MAXIMUM_OPEN_PRS}

        assert too_many_open_prs(Tap(name="homebrew/core"))
        assert mock_search.call_args.args[0] == (
            "is:pr is:open author:@me repo:homebrew/homebrew-core"
        )

    @patch("tapkeeper.github.search_issues")
    def test_official_tap_below_limit(
        self, mock_search: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("TAPKEEPER_TEST_BOT_AUTOBUMP", raising=False)
        mock_search.return_value = {"total_count": MAXIMUM_OPEN_PRS - 1}

        assert not too_many_open_prs(Tap(name="homebrew/core"))

    @patch("tapkeeper.github.search_issues")
    def test_autobump_bot_exempt(
        self, mock_search: MagicMock, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("TAPKEEPER_TEST_BOT_AUTOBUMP", "1")

        assert not too_many_open_prs(Tap(name="homebrew/core"))
        mock_search.assert_not_called()
