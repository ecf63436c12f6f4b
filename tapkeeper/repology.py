"""Repology catalog queries.

Repology tracks package versions across distributions. A query returns the
list of Repology entries for a project; `latest_version` reduces those to
the newest known version or a status message.
"""

from __future__ import annotations

from typing import Any

import requests

from .shell import warn
from .versions import Version

HOMEBREW_CORE = "homebrew"
HOMEBREW_CASK = "homebrew_casks"
API_URL = "https://repology.org/tools/project-by"
USER_AGENT = "tapkeeper (+https://github.com/tapkeeper/tapkeeper)"
REQUEST_TIMEOUT = 30


def single_package_query(name: str, *, repository: str) -> dict[str, list[dict[str, Any]]] | None:
    """Fetch Repology's entries for a single package.

    Returns:
        {name: [entry, ...]} on success, or None when the request or the
        response body fails. Failures are reported as warnings since a
        missing catalog version only degrades the report.
    """
    params = {
        "repo": repository,
        "name_type": "srcname",
        "target_page": "api_v1_project",
        "name": name,
    }
    try:
        response = requests.get(
            API_URL,
            params=params,
            headers={"User-Agent": USER_AGENT},
            timeout=REQUEST_TIMEOUT,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as e:
        warn(f"Error running Repology query for {name}: {e}")
        return None

    return {name: data}


def latest_version(repositories: list[dict[str, Any]]) -> Version | str:
    """Pick the newest version from a package's Repology entries.

    The status is "unique" when the package is present only in this
    repository, so Repology has no way of knowing if it is up to date.
    """
    if not repositories:
        return "not found"

    if any(repo.get("status") == "unique" for repo in repositories):
        return "present only in Homebrew"

    newest = next((repo for repo in repositories if repo.get("status") == "newest"), None)
    if newest is None or not newest.get("version"):
        return "no latest version"

    return Version(newest["version"])
