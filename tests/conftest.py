"""Shared test fixtures."""

from __future__ import annotations

from pathlib import Path

import pytest


def write_tap(
    taps_dir: Path,
    name: str,
    *,
    tap_toml: str = "",
    formulae: dict[str, str] | None = None,
    casks: dict[str, str] | None = None,
) -> Path:
    """Create <taps_dir>/<user>/<repo> with the given definitions."""
    tap_dir = taps_dir / name
    (tap_dir / "Formula").mkdir(parents=True, exist_ok=True)
    (tap_dir / "Casks").mkdir(parents=True, exist_ok=True)
    if tap_toml:
        (tap_dir / "tap.toml").write_text(tap_toml)
    for formula_name, content in (formulae or {}).items():
        (tap_dir / "Formula" / f"{formula_name}.toml").write_text(content)
    for token, content in (casks or {}).items():
        (tap_dir / "Casks" / f"{token}.toml").write_text(content)
    return tap_dir


@pytest.fixture
def taps_dir(tmp_path: Path) -> Path:
    """A taps directory with a core tap, a cask tap and a third-party tap."""
    root = tmp_path / "taps"
    write_tap(
        root,
        "homebrew/core",
        tap_toml='autobump = ["auto-formula"]\nsynced_versions_formulae = [["foo", "foo-data"]]\n',
        formulae={
            "foo": 'version = "1.0.0"\n\n[livecheck]\nurl = "https://example.com/foo"\nregex = "foo-(\\\\d+(?:\\\\.\\\\d+)+)"\n',
            "foo-data": 'version = "1.0.0"\n',
            "auto-formula": 'version = "2.0"\n',
            "python@3.12": 'version = "3.12.1"\n',
        },
    )
    write_tap(
        root,
        "homebrew/cask",
        tap_toml='autobump = ["auto-cask"]\n',
        casks={
            "foo": 'version = "1.0.0"\napp = "Foo.app"\n',
            "auto-cask": 'version = "3.0"\n',
        },
    )
    write_tap(
        root,
        "acme/tools",
        tap_toml='remote = "https://github.com/acme/homebrew-tools.git"\n',
        formulae={"widget": 'version = "0.9"\n'},
        casks={"widget-app": 'version = "0.9"\napp = "Widget.app"\n'},
    )
    return root


@pytest.fixture
def fake_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point $HOME at an empty temporary directory."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    return home
