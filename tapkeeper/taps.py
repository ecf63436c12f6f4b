"""Tap discovery and package lookup.

Taps live under a single directory as <user>/<repo>/ folders. Each tap
holds Formula/*.toml and Casks/*.toml definitions plus an optional tap.toml.
"""

from __future__ import annotations

from pathlib import Path

from .models import Cask, Formula, Tap
from .shell import capture
from .toml import load_cask, load_formula, load_tap


class PackageUnavailableError(LookupError):
    """No formula or cask with the requested name exists in any tap."""


class TapUnavailableError(LookupError):
    """The requested tap isn't present in the taps directory."""


def all_taps(taps_dir: Path) -> list[Tap]:
    """Return every tap under taps_dir, sorted by name."""
    if not taps_dir.is_dir():
        return []
    taps: list[Tap] = []
    for user_dir in sorted(p for p in taps_dir.iterdir() if p.is_dir()):
        for repo_dir in sorted(p for p in user_dir.iterdir() if p.is_dir()):
            taps.append(load_tap(repo_dir, f"{user_dir.name}/{repo_dir.name}"))
    return taps


def fetch_tap(taps_dir: Path, name: str) -> Tap:
    """Look up a tap by its "user/repo" name (case-insensitive)."""
    if name.count("/") != 1:
        raise TapUnavailableError(f"Invalid tap name: {name}")
    for tap in all_taps(taps_dir):
        if tap.name.lower() == name.lower():
            return tap
    raise TapUnavailableError(f"No available tap {name}.")


def tap_formulae(tap: Tap) -> list[Formula]:
    if tap.path is None:
        return []
    return [load_formula(p, tap) for p in sorted((tap.path / "Formula").glob("*.toml"))]


def tap_casks(tap: Tap) -> list[Cask]:
    if tap.path is None:
        return []
    return [load_cask(p, tap) for p in sorted((tap.path / "Casks").glob("*.toml"))]


def load_package(
    taps_dir: Path, name: str, *, kind: str | None = None
) -> list[Formula | Cask]:
    """Resolve a package name to its definitions.

    Accepts a bare name or a fully-qualified "user/repo/name". Without a
    `kind` both formulae and casks are searched, so a name can resolve to
    one of each.

    Raises:
        PackageUnavailableError: If nothing matches.
    """
    if name.count("/") == 2:
        tap_name, short_name = name.rsplit("/", 1)
        try:
            taps = [fetch_tap(taps_dir, tap_name)]
        except TapUnavailableError as e:
            raise PackageUnavailableError(str(e)) from e
    else:
        taps, short_name = all_taps(taps_dir), name

    found: list[Formula | Cask] = []
    for tap in taps:
        if tap.path is None:
            continue
        if kind in (None, "formula"):
            path = tap.path / "Formula" / f"{short_name}.toml"
            if path.exists():
                found.append(load_formula(path, tap))
        if kind in (None, "cask"):
            path = tap.path / "Casks" / f"{short_name}.toml"
            if path.exists():
                found.append(load_cask(path, tap))

    if not found:
        raise PackageUnavailableError(f"No available formula or cask with the name \"{name}\".")
    return found


def autobumped_packages(tap: Tap, *, casks: bool = False) -> list[Formula | Cask]:
    """Load every package on a tap's autobump list."""
    packages: list[Formula | Cask] = []
    for name in tap.autobump:
        packages.extend(load_package_in_tap(tap, name, casks=casks))
    return packages


def load_package_in_tap(tap: Tap, name: str, *, casks: bool = False) -> list[Formula | Cask]:
    if tap.path is None:
        raise PackageUnavailableError(name)
    folder, loader = ("Casks", load_cask) if casks else ("Formula", load_formula)
    path = tap.path / folder / f"{name}.toml"
    if not path.exists():
        raise PackageUnavailableError(f"{tap.name}/{name}")
    return [loader(path, tap)]


def installed_names(brew_file: str, *, casks: bool = False) -> list[str]:
    """Names of installed formulae or casks, as reported by `brew list`."""
    flag = "--cask" if casks else "--formula"
    output = capture(brew_file, "list", flag, "-1", check=False)
    return [line.strip() for line in output.splitlines() if line.strip()]
