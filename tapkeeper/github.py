"""GitHub pull request queries via the gh CLI.

Used by bump to find pull requests that already propose a version, and to
stop a run before opening PRs when the user has too many open already.
"""

from __future__ import annotations

import json
import os
import re
from typing import Any

from .models import Tap
from .shell import CommandError, debug, gh

MAXIMUM_OPEN_PRS = 15


class ValidationFailedError(RuntimeError):
    """The GitHub API rejected a query (HTTP 422)."""


def search_issues(query: str, *, per_page: int = 30) -> dict[str, Any]:
    """Run a GitHub issue search and return the decoded response.

    Raises:
        ValidationFailedError: If GitHub rejects the query.
        CommandError: For any other gh failure.
    """
    debug(f"Searching GitHub: {query}")
    try:
        output = gh(
            "api",
            "-X",
            "GET",
            "search/issues",
            "-f",
            f"q={query}",
            "-f",
            f"per_page={per_page}",
        )
    except CommandError as e:
        if "HTTP 422" in e.stderr or "Validation Failed" in e.stderr:
            raise ValidationFailedError(e.stderr.strip()) from e
        raise
    return json.loads(output) if output else {}


def pr_title_regex(name: str, version: str | None = None) -> re.Pattern[str]:
    """Match PR titles naming the package (and version) as whole words."""
    name_part = rf"(^|\s){re.escape(name)}(:|,|\s"
    if version:
        return re.compile(
            rf"{name_part})(.*\s)?{re.escape(version)}(:|,|\s|$)", re.IGNORECASE
        )
    return re.compile(rf"{name_part}|$)", re.IGNORECASE)


def fetch_pull_requests(
    name: str, tap_remote_repo: str | None, *, version: str | None = None
) -> list[dict[str, Any]]:
    """Find open pull requests for a package, optionally for one version.

    Args:
        name: Package name as it appears in PR titles.
        tap_remote_repo: "owner/repo" to search in.
        version: Only keep PRs whose title also names this version.

    Returns:
        Matching search results, each with at least "title" and "html_url".
    """
    if not tap_remote_repo:
        return []

    query = f"is:pr {name} {version or ''}".strip()
    query = f"{query} repo:{tap_remote_repo} in:title state:open"
    regex = pr_title_regex(name, version)
    items = search_issues(query).get("items", [])
    return [
        pr
        for pr in items
        if "/pull/" in pr.get("html_url", "") and regex.search(pr.get("title", ""))
    ]


def count_open_pull_requests(repository: str) -> int:
    """Number of open PRs by the authenticated user in a repository."""
    result = search_issues(f"is:pr is:open author:@me repo:{repository}", per_page=1)
    return int(result.get("total_count", 0))


def too_many_open_prs(tap: Tap | None) -> bool:
    """Whether the user already has the maximum number of open PRs.

    Only official taps are limited, and automated bump runs are exempt.
    """
    if tap is None or not tap.official:
        return False
    if os.environ.get("TAPKEEPER_TEST_BOT_AUTOBUMP"):
        return False

    debug("Checking for too many open PRs")
    return count_open_pull_requests(tap.remote_repository) >= MAXIMUM_OPEN_PRS