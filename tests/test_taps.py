"""Tests for tapkeeper.taps and tapkeeper.toml."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from conftest import write_tap

from tapkeeper.models import Cask, Formula
from tapkeeper.taps import (
    PackageUnavailableError,
    TapUnavailableError,
    all_taps,
    autobumped_packages,
    fetch_tap,
    installed_names,
    load_package,
    load_package_in_tap,
    tap_casks,
    tap_formulae,
)
from tapkeeper.toml import load_cask, load_formula, load_tap


class TestTomlLoading:
    def test_load_tap_metadata(self, taps_dir: Path) -> None:
        tap = load_tap(taps_dir / "homebrew" / "core", "homebrew/core")
        assert tap.autobump == ["auto-formula"]
        assert tap.synced_versions_formulae == [["foo", "foo-data"]]
        assert tap.remote is None

    def test_load_tap_without_metadata(self, tmp_path: Path) -> None:
        tap_dir = write_tap(tmp_path, "acme/empty")
        tap = load_tap(tap_dir, "acme/empty")
        assert tap.autobump == []
        assert tap.path == tap_dir

    def test_load_formula_name_from_stem(self, taps_dir: Path) -> None:
        formula = load_formula(taps_dir / "homebrew" / "core" / "Formula" / "foo.toml")
        assert formula.name == "foo"
        assert formula.version == "1.0.0"
        assert formula.livecheck.url == "https://example.com/foo"
        assert formula.livecheck.regex == r"foo-(\d+(?:\.\d+)+)"

    def test_load_cask_token(self, tmp_path: Path) -> None:
        path = tmp_path / "whatever.toml"
        path.write_text('token = "bar"\nversion = "2.0"\n\n[versions]\nintel = "1.9"\n')
        cask = load_cask(path)
        assert cask.name == "bar"
        assert cask.version_for("intel").value == "1.9"

    def test_directory_decides_kind(self, tmp_path: Path) -> None:
        path = tmp_path / "bar.toml"
        path.write_text('kind = "cask"\nversion = "2.0"\n')
        formula = load_formula(path)
        assert isinstance(formula, Formula)
        assert formula.kind == "formula"


class TestTaps:
    def test_all_taps_sorted(self, taps_dir: Path) -> None:
        assert [tap.name for tap in all_taps(taps_dir)] == [
            "acme/tools",
            "homebrew/cask",
            "homebrew/core",
        ]

    def test_all_taps_missing_dir(self, tmp_path: Path) -> None:
        assert all_taps(tmp_path / "nope") == []

    def test_fetch_tap_case_insensitive(self, taps_dir: Path) -> None:
        assert fetch_tap(taps_dir, "Acme/Tools").name == "acme/tools"

    def test_fetch_tap_missing(self, taps_dir: Path) -> None:
        with pytest.raises(TapUnavailableError):
            fetch_tap(taps_dir, "acme/missing")
        with pytest.raises(TapUnavailableError, match="Invalid"):
            fetch_tap(taps_dir, "acme")

    def test_tap_contents(self, taps_dir: Path) -> None:
        tap = fetch_tap(taps_dir, "acme/tools")
        assert [f.name for f in tap_formulae(tap)] == ["widget"]
        assert [c.name for c in tap_casks(tap)] == ["widget-app"]


class TestLoadPackage:
    def test_name_matching_formula_and_cask(self, taps_dir: Path) -> None:
        found = load_package(taps_dir, "foo")
        assert {type(p) for p in found} == {Formula, Cask}

    def test_kind_restricts_search(self, taps_dir: Path) -> None:
        found = load_package(taps_dir, "foo", kind="cask")
        assert len(found) == 1
        assert isinstance(found[0], Cask)
        assert found[0].tap.name == "homebrew/cask"

    def test_fully_qualified_name(self, taps_dir: Path) -> None:
        (found,) = load_package(taps_dir, "acme/tools/widget")
        assert found.full_name == "acme/tools/widget"

    def test_unknown_package(self, taps_dir: Path) -> None:
        with pytest.raises(PackageUnavailableError):
            load_package(taps_dir, "nope")
        with pytest.raises(PackageUnavailableError):
            load_package(taps_dir, "acme/missing/widget")

    def test_load_package_in_tap(self, taps_dir: Path) -> None:
        tap = fetch_tap(taps_dir, "homebrew/cask")
        (cask,) = load_package_in_tap(tap, "auto-cask", casks=True)
        assert cask.version == "3.0"
        with pytest.raises(PackageUnavailableError):
            load_package_in_tap(tap, "auto-cask")

    def test_autobumped_packages(self, taps_dir: Path) -> None:
        tap = fetch_tap(taps_dir, "homebrew/core")
        assert [p.name for p in autobumped_packages(tap)] == ["auto-formula"]


@patch("tapkeeper.taps.capture")
def test_installed_names(mock_capture: MagicMock) -> None:
    """installed_names lists casks or formulae via the brew executable."""
    mock_capture.return_value = "foo\n\nbar\n"

    assert installed_names("brew", casks=True) == ["foo", "bar"]
    mock_capture.assert_called_once_with("brew", "list", "--cask", "-1", check=False)
