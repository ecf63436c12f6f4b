"""Tests for tapkeeper.models."""

from __future__ import annotations

import pytest
from pydantic import TypeAdapter, ValidationError

from tapkeeper.models import Cask, Formula, Livecheck, Package, Tap, VersionBumpInfo
from tapkeeper.versions import Version, VersionParser


class TestTap:
    def test_name_parts(self) -> None:
        tap = Tap(name="acme/tools")
        assert tap.user == "acme"
        assert tap.repo == "tools"
        assert not tap.official
        assert not tap.core

    def test_official_and_core(self) -> None:
        assert Tap(name="homebrew/core").core
        assert Tap(name="Homebrew/cask").official
        assert Tap(name="homebrew/cask-fonts").official
        assert not Tap(name="homebrew/cask-fonts").core

    def test_remote_repository_default(self) -> None:
        assert Tap(name="acme/tools").remote_repository == "acme/homebrew-tools"

    def test_remote_repository_from_remote(self) -> None:
        tap = Tap(name="acme/tools", remote="https://github.com/acme/custom-tools.git")
        assert tap.remote_repository == "acme/custom-tools"

    def test_allow_bump(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Autobumped names are blocked unless running as the autobump bot."""
        monkeypatch.delenv("TAPKEEPER_TEST_BOT_AUTOBUMP", raising=False)
        tap = Tap(name="homebrew/core", autobump=["foo"])
        assert not tap.allow_bump("foo")
        assert tap.allow_bump("bar")

        monkeypatch.setenv("TAPKEEPER_TEST_BOT_AUTOBUMP", "1")
        assert tap.allow_bump("foo")


class TestLivecheck:
    def test_undefined_by_default(self) -> None:
        assert not Livecheck().defined

    def test_throttle_alone_is_not_a_strategy(self) -> None:
        assert not Livecheck(throttle=5).defined

    @pytest.mark.parametrize(
        "fields",
        [{"url": "https://example.com"}, {"skip": True}, {"skip": "gone"}, {"formula": "bar"}],
    )
    def test_defined(self, fields: dict) -> None:
        assert Livecheck(**fields).defined


class TestFormula:
    def test_head_only(self) -> None:
        assert Formula(name="foo", head="https://example.com/foo.git").head_only
        assert not Formula(name="foo", version="1.0", head="https://example.com/foo.git").head_only
        assert Formula(name="foo").head_only

    def test_versioned_formula(self) -> None:
        assert Formula(name="python@3.12", version="3.12.1").versioned_formula
        assert not Formula(name="python", version="3.12.1").versioned_formula

    def test_full_name(self) -> None:
        assert Formula(name="foo", tap=Tap(name="homebrew/core")).full_name == "foo"
        assert Formula(name="foo", tap=Tap(name="acme/tools")).full_name == "acme/tools/foo"
        assert Formula(name="foo").full_name == "foo"

    def test_display_name(self) -> None:
        formula = Formula(name="foo", tap=Tap(name="acme/tools"))
        assert formula.display_name() == "foo"
        assert formula.display_name(full_name=True) == "acme/tools/foo"

    def test_version_for(self) -> None:
        assert Formula(name="foo", version="1.0").version_for("intel") == Version("1.0")
        with pytest.raises(ValueError, match="no stable version"):
            Formula(name="foo", head="https://example.com").version_for("arm")


class TestCask:
    def test_plain_cask(self) -> None:
        cask = Cask(name="foo", version="1.0")
        assert cask.name == "foo"
        assert not cask.on_system_blocks_exist
        assert cask.version_for("intel") == Version("1.0")

    def test_per_arch_versions(self) -> None:
        cask = Cask(name="foo", version="1.0", versions={"intel": "0.9"})
        assert cask.on_system_blocks_exist
        assert cask.version_for("arm") == Version("1.0")
        assert cask.version_for("intel") == Version("0.9")

    def test_deprecated_per_arch(self) -> None:
        cask = Cask(name="foo", version="1.0", deprecated_on=["intel"])
        assert cask.on_system_blocks_exist
        assert cask.deprecated_for("intel")
        assert not cask.deprecated_for("arm")

    def test_arch_value(self) -> None:
        cask = Cask(name="foo", version="1.0", arch={"arm": "aarch64", "intel": "x86_64"})
        assert cask.arch_value("arm") == "aarch64"
        assert Cask(name="foo", version="1.0").arch_value("intel") == "intel"


class TestPackage:
    def test_discriminated_by_kind(self) -> None:
        adapter = TypeAdapter(Package)
        assert isinstance(adapter.validate_python({"kind": "formula", "name": "a"}), Formula)
        assert isinstance(
            adapter.validate_python({"kind": "cask", "name": "a", "version": "1"}), Cask
        )


class TestVersionBumpInfo:
    def test_frozen(self) -> None:
        info = VersionBumpInfo(
            type="formula",
            version_name="formula version:",
            current_version=VersionParser(general="1.0"),
            new_version=VersionParser(general="1.1"),
            repology_latest="not found",
        )
        assert info.new_version.general == Version("1.1")
        with pytest.raises(ValidationError):
            info.type = "cask"
