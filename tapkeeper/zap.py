"""Zap stanza generation: find an app's leftover files and describe them.

The pipeline is:
1. Scan known user and system directories for entries whose name contains
   the application name (case-insensitive), plus dotfiles in $HOME.
2. Collapse siblings sharing a filename prefix into `<prefix>*` wildcards.
3. Replace UUID-shaped segments with `*`.
4. Suggest `rmdir` for emptied parent directories under Application Support
   and the container folders, minus a denylist of shared directories.
5. Render `trash:`, `delete:` and `rmdir:` directives as a `zap` stanza.

Paths under the home directory are reported with a leading `~`.
"""

from __future__ import annotations

import os
import posixpath
import re
from pathlib import Path

from .models import Cask
from .shell import heading
from .taps import load_package

USER_TRASH_PATHS = [
    "Desktop",
    "Documents",
    "Library",
    "Library/Application Scripts",
    "Library/Application Support",
    "Library/Application Support/CrashReporter",
    "Library/Application Support/com.apple.sharedfilelist/"
    "com.apple.LSSharedFileList.ApplicationRecentDocuments",
    "Library/Caches",
    "Library/Caches/com.apple.helpd/Generated",
    "Library/Caches/com.apple.helpd/SDMHelpData/Other/English/HelpSDMIndexFile",
    "Library/Containers",
    "Library/Cookies",
    "Library/Group Containers",
    "Library/HTTPStorages",
    "Library/Internet Plug-Ins",
    "Library/LaunchAgents",
    "Library/Logs",
    "Library/Logs/DiagnosticReports",
    "Library/PreferencePanes",
    "Library/Preferences",
    "Library/Preferences/ByHost",
    "Library/Saved Application State",
    "Library/WebKit",
    "Music",
]

SYSTEM_DELETE_PATHS = [
    "/Library/Application Support",
    "/Library/Caches",
    "/Library/Frameworks",
    "/Library/LaunchAgents",
    "/Library/LaunchDaemons",
    "/Library/Logs",
    "/Library/PreferencePanes",
    "/Library/Preferences",
    "/Library/PrivilegedHelperTools",
    "/Library/Screen Savers",
    "/Library/ScriptingAdditions",
    "/Library/Services",
    "/Users/Shared",
    "/etc/newsyslog.d",
]

RMDIR_EXCLUSIONS = [
    "Library/Application Support/CrashReporter",
    "/Library/Application Support",
    "/Library/Caches",
    "/Library/Preferences",
]

UUID_PATTERN = re.compile(r"[0-9A-F]{8}(-[0-9A-F]{4}){3}-[0-9A-F]{12}", re.IGNORECASE)
RMDIR_PARENT_PATTERN = re.compile(r"/(Application Support|Containers|Group Containers)/")

NO_ZAP_REQUIRED = "# No zap stanza required"


def _home() -> str:
    return str(Path.home())


def normalize_path(path: str) -> str:
    """Replace a leading home directory with `~`."""
    home = _home()
    if path == home or path.startswith(home + os.sep):
        return "~" + path[len(home):]
    return path


def scan_directories(directories: list[str], *, home_relative: bool, pattern: str) -> list[str]:
    """Find entries in each directory whose name contains `pattern`.

    Missing directories are ignored.

    Returns:
        Sorted, deduplicated, home-normalized paths.
    """
    home = _home()
    needle = pattern.lower()
    matches: set[str] = set()

    for directory in directories:
        full_dir = os.path.join(home, directory) if home_relative else directory
        if not os.path.isdir(full_dir):
            continue
        for entry in os.listdir(full_dir):
            if needle in entry.lower():
                matches.add(normalize_path(os.path.join(full_dir, entry)))

    return sorted(matches)


def scan_home_root(pattern: str) -> list[str]:
    """Find dotfiles directly under $HOME whose name contains `pattern`."""
    home = _home()
    if not os.path.isdir(home):
        return []
    needle = pattern.lower()
    return sorted(
        normalize_path(os.path.join(home, entry))
        for entry in os.listdir(home)
        if entry.startswith(".") and needle in entry.lower()
    )


def find_wildcard_groups(basenames: list[str]) -> list[str]:
    """Merge basenames that extend an earlier basename into `<name>*`.

    Basenames are visited in the given order; the first unused one that
    is a prefix of at least one other unused basename becomes the group's
    representative.
    """
    if len(basenames) <= 1:
        return list(basenames)

    used = [False] * len(basenames)
    result: list[str] = []

    for i, name in enumerate(basenames):
        if used[i]:
            continue

        group = [i]
        for j, other in enumerate(basenames):
            if i == j or used[j]:
                continue
            if other.startswith(name):
                group.append(j)

        if len(group) > 1:
            result.append(f"{name}*")
            for index in group:
                used[index] = True
        else:
            result.append(name)

    return result


def collapse_to_wildcards(paths: list[str]) -> list[str]:
    """Collapse sibling paths sharing a filename prefix into wildcards.

    Example:
        ["~/L/com.example.foo", "~/L/com.example.foo.plist"] → ["~/L/com.example.foo*"]
    """
    grouped: dict[str, list[str]] = {}
    for path in paths:
        grouped.setdefault(posixpath.dirname(path), []).append(path)

    result: set[str] = set()
    for directory, entries in grouped.items():
        if len(entries) == 1:
            result.add(entries[0])
            continue
        basenames = [posixpath.basename(entry) for entry in entries]
        for name in find_wildcard_groups(basenames):
            result.add(posixpath.join(directory, name))

    return sorted(result)


def replace_uuids(paths: list[str]) -> list[str]:
    """Replace UUID-shaped segments with `*`, merging paths that become equal."""
    return sorted({UUID_PATTERN.sub("*", path) for path in paths})


def derive_rmdir_candidates(paths: list[str]) -> list[str]:
    """Suggest parent directories to remove once their contents are gone.

    Only parents inside Application Support, Containers or Group Containers
    qualify. Shared directories and paths already listed are left out.
    """
    home = _home()
    candidates: set[str] = set()

    for path in paths:
        expanded = os.path.join(home, path[2:]) if path.startswith("~") else path
        parent = posixpath.dirname(expanded)

        if not RMDIR_PARENT_PATTERN.search(parent):
            continue

        normalized = normalize_path(parent)
        if any(normalized in (f"~/{excluded}", excluded) for excluded in RMDIR_EXCLUSIONS):
            continue
        if normalized not in paths:
            candidates.add(normalized)

    return sorted(candidates)


def format_directive(key: str, paths: list[str]) -> str:
    if len(paths) == 1:
        return f'{key}: "{paths[0]}"'
    items = ",\n".join(f'       "{path}"' for path in paths)
    return f"{key}: [\n{items},\n     ]"


def format_stanza(*, trash: list[str], delete: list[str], rmdir: list[str]) -> str:
    """Render the directives as a `zap` stanza, omitting empty ones."""
    directives = [
        format_directive(key, paths)
        for key, paths in (("trash", trash), ("delete", delete), ("rmdir", rmdir))
        if paths
    ]
    return "zap " + ",\n".join(directives)


def resolve_app_name(cask: Cask) -> str | None:
    """The app bundle name of a cask without `.app`, if it has one."""
    if not cask.app:
        return None
    return Path(cask.app).name.removesuffix(".app")


def title_case_token(token: str) -> str:
    """Title-case a cask token, e.g. "test-cask" → "Test Cask"."""
    return " ".join(word.capitalize() for word in token.replace("-", " ").split())


def resolve_app_name_from_cask(token: str, taps_dir: Path) -> str:
    """Find the application name for a cask token.

    Uses the cask's app bundle name, falling back to the title-cased token
    when the cask installs no app.
    """
    cask = load_package(taps_dir, token, kind="cask")[0]
    app_name = resolve_app_name(cask) if isinstance(cask, Cask) else None
    if app_name:
        return app_name

    heading(f'No app artifact found in cask "{token}"; using token as app name.')
    return title_case_token(token)


def collect_paths(app_name: str) -> tuple[list[str], list[str], list[str]]:
    """Scan for an application's files.

    Returns:
        (trash paths, delete paths, rmdir candidates).
    """
    trash = scan_directories(USER_TRASH_PATHS, home_relative=True, pattern=app_name)
    trash += scan_home_root(app_name)
    delete = scan_directories(SYSTEM_DELETE_PATHS, home_relative=False, pattern=app_name)

    trash = replace_uuids(collapse_to_wildcards(trash))
    delete = replace_uuids(collapse_to_wildcards(delete))
    rmdir = derive_rmdir_candidates(trash + delete)
    return trash, delete, rmdir


def generate_zap(app_name: str) -> str | None:
    """Render the zap stanza for an application, or None if nothing was found."""
    trash, delete, rmdir = collect_paths(app_name)
    if not trash and not delete:
        return None
    return format_stanza(trash=trash, delete=delete, rmdir=rmdir)
