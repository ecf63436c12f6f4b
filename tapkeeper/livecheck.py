"""Upstream version checks ("livecheck").

A package's [livecheck] table names a strategy for finding upstream
versions:

- github_latest: the tag of the repository's latest GitHub release.
- page_match: every regex match in an HTTP page.

The strategy is inferred from the URL when not given. A check can also be
skipped, or reuse the check of another formula or cask in the same tap.
"""

from __future__ import annotations

import json
import re
from typing import Any

import requests

from .models import Cask, Formula, Livecheck
from .shell import debug, gh
from .taps import load_package_in_tap
from .versions import Version

REQUEST_TIMEOUT = 30
GITHUB_URL_REGEX = re.compile(r"https?://github\.com/([^/]+)/([^/#?]+)")
DEFAULT_TAG_REGEX = re.compile(r"^v?(\d+(?:\.\d+)*(?:[._-]?[a-z]+\d*)?)$", re.IGNORECASE)


def resolve_livecheck_reference(package: Formula | Cask) -> Formula | Cask | None:
    """Load the formula or cask whose check this package reuses, if any."""
    livecheck = package.livecheck
    if package.tap is None or not (livecheck.formula or livecheck.cask):
        return None
    if livecheck.cask:
        return load_package_in_tap(package.tap, livecheck.cask, casks=True)[0]
    return load_package_in_tap(package.tap, livecheck.formula)[0]


def skip_information(package: Formula | Cask) -> dict[str, Any] | None:
    """Why a package's upstream check is skipped, or None.

    Returns:
        {"status": str, "messages": [str, ...]} when skipped.
    """
    livecheck = package.livecheck
    if livecheck.skip:
        messages = [livecheck.skip] if isinstance(livecheck.skip, str) else []
        return {"status": "skipped", "messages": messages}

    if livecheck.defined:
        return None

    if package.disabled:
        return {"status": "disabled", "messages": []}
    if package.deprecated:
        return {"status": "deprecated", "messages": []}
    if isinstance(package, Formula):
        if package.versioned_formula:
            return {"status": "versioned", "messages": []}
        if package.head_only:
            return {"status": "HEAD only", "messages": []}
    elif Version(package.version).is_latest:
        return {"status": "latest", "messages": []}
    return None


def referenced_skip_information(
    referenced: Formula | Cask, original_name: str
) -> dict[str, Any] | None:
    """Skip information for a referenced package, attributed to the referrer."""
    info = skip_information(referenced)
    if info is None:
        return None
    if info["status"] == "skipped":
        messages = info["messages"] or [f"referenced {referenced.name} is skipped"]
        return {"status": "skipped", "messages": messages}
    return {
        "status": "error",
        "messages": [f"{original_name} references {referenced.name}, which is {info['status']}"],
    }


def infer_strategy(livecheck: Livecheck) -> str | None:
    if livecheck.strategy:
        return livecheck.strategy
    if livecheck.url and GITHUB_URL_REGEX.match(livecheck.url) and not livecheck.regex:
        return "github_latest"
    if livecheck.url:
        return "page_match"
    return None


def _extract_versions(matches: list[Any]) -> list[Version]:
    versions: list[Version] = []
    for match in matches:
        # findall returns tuples when the regex has several groups
        value = match[0] if isinstance(match, tuple) else match
        if value:
            versions.append(Version(value))
    return versions


def github_latest(url: str, regex: str | None = None) -> list[Version]:
    """Versions from the tag of a repository's latest GitHub release."""
    match = GITHUB_URL_REGEX.match(url)
    if match is None:
        raise ValueError(f"Not a GitHub repository URL: {url}")
    owner, repo = match.group(1), match.group(2).removesuffix(".git")
    output = gh("api", f"repos/{owner}/{repo}/releases/latest")
    tag = json.loads(output).get("tag_name", "") if output else ""
    pattern = re.compile(regex, re.IGNORECASE) if regex else DEFAULT_TAG_REGEX
    return _extract_versions(pattern.findall(tag))


def page_match(url: str, regex: str) -> list[Version]:
    """Versions from every regex match in a page."""
    response = requests.get(url, timeout=REQUEST_TIMEOUT)
    response.raise_for_status()
    return _extract_versions(re.findall(regex, response.text, re.IGNORECASE))


STRATEGIES = {"github_latest": github_latest, "page_match": page_match}


def fetch_versions(package: Formula | Cask, livecheck: Livecheck, arch: str) -> list[Version]:
    """Run a livecheck strategy for the given simulated architecture."""
    strategy = infer_strategy(livecheck)
    if strategy is None or not livecheck.url:
        return []
    if strategy not in STRATEGIES:
        raise ValueError(f"Unknown livecheck strategy: {strategy}")

    url = livecheck.url
    if isinstance(package, Cask):
        url = url.replace("{arch}", package.arch_value(arch))
    url = url.replace("{version}", str(package.version))

    debug(f"livecheck {package.name} ({arch}): {strategy} {url}")
    if strategy == "page_match":
        if not livecheck.regex:
            raise ValueError("page_match requires a regex")
        return page_match(url, livecheck.regex)
    return github_latest(url, livecheck.regex)


def latest_version(
    package: Formula | Cask,
    *,
    referenced: Formula | Cask | None = None,
    arch: str = "arm",
) -> dict[str, str | None] | None:
    """Find the newest upstream version of a package.

    The referenced package's check is used when present; the throttle rate
    comes from the package itself, falling back to the referenced one.

    Returns:
        None when no versions were found, otherwise {"latest": str} plus
        "latest_throttled" (possibly None) when a throttle rate applies.
    """
    source = referenced or package
    versions = fetch_versions(source, source.livecheck, arch)
    if not versions:
        return None

    result: dict[str, str | None] = {"latest": str(max(versions))}

    throttle = package.livecheck.throttle or (referenced.livecheck.throttle if referenced else None)
    if throttle:
        throttled = [v for v in versions if v.patch % throttle == 0]
        result["latest_throttled"] = str(max(throttled)) if throttled else None

    return result
