"""Data models for tapkeeper.

These Pydantic models represent the packages being checked (formulae and
casks), the taps that hold them and the per-package result of a bump check.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .versions import Version, VersionParser, VersionReading

ARCH_OPTIONS = ("arm", "intel")
CORE_TAPS = ("homebrew/core", "homebrew/cask")


class Tap(BaseModel):
    """A repository of package definitions.

    Attributes:
        name: "user/repo" identifier.
        path: Directory holding tap.toml, Formula/ and Casks/.
        remote: Optional remote URL; defaults to the GitHub convention.
        autobump: Names whose bump PRs are opened by an automated process.
        synced_versions_formulae: Groups of formulae that must share a version.
    """

    name: str
    path: Optional[Path] = None
    remote: Optional[str] = None
    autobump: list[str] = Field(default_factory=list)
    synced_versions_formulae: list[list[str]] = Field(default_factory=list)

    @property
    def user(self) -> str:
        return self.name.split("/", 1)[0]

    @property
    def repo(self) -> str:
        return self.name.split("/", 1)[1]

    @property
    def official(self) -> bool:
        return self.user.lower() == "homebrew"

    @property
    def core(self) -> bool:
        return self.name.lower() in CORE_TAPS

    @property
    def remote_repository(self) -> str:
        """The "owner/repo" of the tap's GitHub remote."""
        if self.remote:
            remote = self.remote.removesuffix(".git").rstrip("/")
            return "/".join(remote.split("/")[-2:])
        return f"{self.user}/homebrew-{self.repo}"

    def allow_bump(self, name: str) -> bool:
        """Whether bump PRs for `name` may be opened by hand."""
        if os.environ.get("TAPKEEPER_TEST_BOT_AUTOBUMP"):
            return True
        return name not in self.autobump


class Livecheck(BaseModel):
    """Upstream version check configuration of a package.

    Attributes:
        strategy: "github_latest" or "page_match"; inferred from `url` if unset.
        url: Page or repository to check. `{arch}` is replaced per arch.
        regex: Pattern whose first group (or whole match) is a version.
        throttle: Only report versions whose patch is divisible by this rate.
        skip: Skip the check; a string gives the reason.
        formula: Name of a formula whose check is reused.
        cask: Token of a cask whose check is reused.
    """

    strategy: Optional[str] = None
    url: Optional[str] = None
    regex: Optional[str] = None
    throttle: Optional[int] = None
    skip: Union[bool, str, None] = None
    formula: Optional[str] = None
    cask: Optional[str] = None

    @property
    def defined(self) -> bool:
        return any(
            value not in (None, False)
            for value in (self.strategy, self.url, self.skip, self.formula, self.cask)
        )


class Formula(BaseModel):
    """A build-from-source package definition."""

    kind: Literal["formula"] = "formula"
    name: str
    tap: Optional[Tap] = None
    version: Optional[str] = None
    head: Optional[str] = None
    deprecated: bool = False
    disabled: bool = False
    livecheck: Livecheck = Field(default_factory=Livecheck)

    @property
    def head_only(self) -> bool:
        return self.version is None

    @property
    def versioned_formula(self) -> bool:
        return "@" in self.name

    @property
    def on_system_blocks_exist(self) -> bool:
        return False

    @property
    def full_name(self) -> str:
        if self.tap is None or self.tap.core:
            return self.name
        return f"{self.tap.name}/{self.name}"

    def display_name(self, full_name: bool = False) -> str:
        return self.full_name if full_name else self.name

    def version_for(self, arch: str) -> Version:
        if self.version is None:
            raise ValueError(f"{self.name} has no stable version")
        return Version(self.version)

    def deprecated_for(self, arch: str) -> bool:
        return self.deprecated


class Cask(BaseModel):
    """A prebuilt application definition.

    `versions`, `arch` and `deprecated_on` hold the per-architecture
    overrides; any of them makes the cask architecture-dependent.
    """

    kind: Literal["cask"] = "cask"
    name: str
    tap: Optional[Tap] = None
    version: str
    versions: dict[str, str] = Field(default_factory=dict)
    arch: dict[str, str] = Field(default_factory=dict)
    deprecated: bool = False
    deprecated_on: list[str] = Field(default_factory=list)
    disabled: bool = False
    app: Optional[str] = None
    livecheck: Livecheck = Field(default_factory=Livecheck)

    @property
    def on_system_blocks_exist(self) -> bool:
        return bool(self.versions or self.arch or self.deprecated_on)

    @property
    def full_name(self) -> str:
        if self.tap is None or self.tap.core:
            return self.name
        return f"{self.tap.name}/{self.name}"

    def display_name(self, full_name: bool = False) -> str:
        return self.full_name if full_name else self.name

    def version_for(self, arch: str) -> Version:
        return Version(self.versions.get(arch, self.version))

    def deprecated_for(self, arch: str) -> bool:
        return self.deprecated or arch in self.deprecated_on

    def arch_value(self, arch: str) -> str:
        return self.arch.get(arch, arch)


Package = Annotated[Union[Formula, Cask], Field(discriminator="kind")]


class VersionBumpInfo(BaseModel):
    """Snapshot of everything a bump check learned about one package.

    Attributes:
        type: "formula" or "cask".
        deprecated: Deprecation flag per version key.
        multiple_versions: Whether current/new readings differ by arch.
        version_name: Label used in the report ("formula version:").
        current_version: Readings of the packaged version.
        new_version: Readings of the upstream candidate version.
        repology_latest: Repology's newest version or a status message.
        newer_than_upstream: Per version key, whether current > upstream.
        duplicate_pull_requests: Open PRs for this exact version.
        maybe_duplicate_pull_requests: Open PRs for this package.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    type: Literal["formula", "cask"]
    deprecated: dict[str, bool] = Field(default_factory=dict)
    multiple_versions: dict[str, bool] = Field(default_factory=dict)
    version_name: str
    current_version: VersionParser
    new_version: VersionParser
    repology_latest: VersionReading
    newer_than_upstream: dict[str, bool] = Field(default_factory=dict)
    duplicate_pull_requests: Optional[str] = None
    maybe_duplicate_pull_requests: Optional[str] = None
