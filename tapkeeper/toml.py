"""TOML reading utilities.

Uses tomlkit to read tap metadata and package definitions. Definitions are
plain TOML tables; the filename stem provides the package name when the file
doesn't set one.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import tomlkit
from pydantic import TypeAdapter

from .models import Cask, Formula, Package, Tap

PACKAGE_ADAPTER: TypeAdapter[Package] = TypeAdapter(Package)


def load_toml(path: Path) -> tomlkit.TOMLDocument:
    """Load and parse a TOML file."""
    return tomlkit.parse(path.read_text())


def to_plain(doc: tomlkit.TOMLDocument | dict[str, Any]) -> dict[str, Any]:
    """Convert tomlkit containers into plain Python values."""
    if isinstance(doc, tomlkit.TOMLDocument):
        return doc.unwrap()
    return dict(doc)


def load_tap(path: Path, name: str) -> Tap:
    """Build a Tap from a tap directory.

    Reads the optional tap.toml for the remote URL, the autobump list and the
    synced-versions groups.
    """
    data: dict[str, Any] = {}
    tap_toml = path / "tap.toml"
    if tap_toml.exists():
        data = to_plain(load_toml(tap_toml))
    return Tap(
        name=name,
        path=path,
        remote=data.get("remote"),
        autobump=list(data.get("autobump", [])),
        synced_versions_formulae=[
            list(group) for group in data.get("synced_versions_formulae", [])
        ],
    )


def _load_package(data: dict[str, Any], kind: str, tap: Tap | None) -> Formula | Cask:
    data["kind"] = kind
    data["tap"] = tap
    return PACKAGE_ADAPTER.validate_python(data)


def load_formula(path: Path, tap: Tap | None = None) -> Formula:
    """Parse Formula/<name>.toml into a Formula."""
    data = to_plain(load_toml(path))
    data.setdefault("name", path.stem)
    return _load_package(data, "formula", tap)


def load_cask(path: Path, tap: Tap | None = None) -> Cask:
    """Parse Casks/<token>.toml into a Cask."""
    data = to_plain(load_toml(path))
    data.setdefault("name", data.pop("token", path.stem))
    return _load_package(data, "cask", tap)
