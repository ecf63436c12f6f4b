"""Bump check: current version → upstream version → pull request.

For each selected formula or cask this module:
1. Skips packages that don't accept manual bumps (disabled, HEAD-only,
   autobumped).
2. Resolves the current version per architecture and asks livecheck (and
   optionally Repology) for the newest upstream version.
3. Compares the two, looks for existing pull requests and prints a report.
4. Optionally runs the `bump-<kind>-pr` subcommand to open a pull request.

Remote failures degrade to message readings ("error: ...", "unable to get
versions") so one broken package never stops the run. Only exceeding the
open-PR limit is fatal.
"""

from __future__ import annotations

import os
from collections import defaultdict
from pathlib import Path

import click
from pydantic import BaseModel, Field

from . import github, livecheck, repology
from .models import ARCH_OPTIONS, Cask, Formula, VersionBumpInfo
from .shell import debug, fatal, heading, pluralize, run
from .taps import (
    PackageUnavailableError,
    all_taps,
    autobumped_packages,
    fetch_tap,
    installed_names,
    load_package,
    load_package_in_tap,
    tap_casks,
    tap_formulae,
)
from .versions import (
    SKIPPED,
    UNABLE_TO_GET_THROTTLED_VERSIONS,
    UNABLE_TO_GET_VERSIONS,
    Version,
    VersionParser,
    VersionParserError,
    VersionReading,
    compare_versions,
)

NEWER_THAN_UPSTREAM_MSG = " (newer than upstream)"
PR_MESSAGE = "Created by `tapkeeper bump`"
INDENT = " " * 26


class BumpOptions(BaseModel):
    """Flags that shape a bump run.

    Attributes:
        full_name: Print fully-qualified names.
        no_pull_requests: Don't search for existing pull requests.
        open_pr: Open a pull request when none exists yet.
        no_fork: Pass --no-fork to the PR subcommand.
        repology: Query Repology for a catalog version.
        bump_synced: Bump formulae synced with the bumped one too.
        formula: Only formulae were requested.
        cask: Only casks were requested.
        no_github_api: Never call the GitHub API.
        brew_file: Executable providing the bump-<kind>-pr subcommands.
        taps_dir: Directory holding the taps.
    """

    full_name: bool = False
    no_pull_requests: bool = False
    open_pr: bool = False
    no_fork: bool = False
    repology: bool = False
    bump_synced: bool = False
    formula: bool = False
    cask: bool = False
    no_github_api: bool = False
    brew_file: str = "brew"
    taps_dir: Path = Field(default_factory=lambda: Path.home() / ".tapkeeper" / "taps")


def select_packages(
    named: list[str],
    options: BumpOptions,
    *,
    auto: bool = False,
    tap_name: str | None = None,
    installed: bool = False,
    eval_all: bool = False,
    start_with: str | None = None,
    no_autobump: bool = False,
) -> list[Formula | Cask]:
    """Build the sorted list of packages to check.

    Raises:
        click.UsageError: If the combination of selectors can't be satisfied.
    """
    excluded: set[tuple[str, str]] = set()
    if no_autobump and eval_all:
        for tap in all_taps(options.taps_dir):
            if tap.name.lower() == "homebrew/core" and options.formula:
                excluded |= {(p.kind, p.full_name) for p in autobumped_packages(tap)}
            if tap.name.lower() == "homebrew/cask" and options.cask:
                excluded |= {(p.kind, p.full_name) for p in autobumped_packages(tap, casks=True)}

    packages: list[Formula | Cask] = []
    if auto:
        if not options.formula and not options.cask:
            raise click.UsageError("`--formula` or `--cask` must be passed with `--auto`.")
        if not tap_name:
            raise click.UsageError("`--tap=` must be passed with `--auto`.")

        tap = fetch_tap(options.taps_dir, tap_name)
        what = pluralize("cask" if options.cask else "formula", 2)
        if not tap.autobump:
            raise click.UsageError(f"No autobumped {what} found.")

        # Only run bump on the first formula in each synced group
        synced: set[str] = set()
        if options.bump_synced and options.formula:
            synced = {name for group in tap.synced_versions_formulae for name in group[1:]}

        for name in tap.autobump:
            if options.cask:
                packages.extend(load_package_in_tap(tap, name, casks=True))
            elif name not in synced:
                packages.extend(load_package_in_tap(tap, name))
    elif tap_name:
        tap = fetch_tap(options.taps_dir, tap_name)
        if tap.official:
            raise click.UsageError("`--tap` requires `--auto` for official taps.")
        if not options.cask:
            packages.extend(tap_formulae(tap))
        if not options.formula:
            packages.extend(tap_casks(tap))
    elif installed:
        for kind in ("formula", "cask"):
            if (kind == "formula" and options.cask) or (kind == "cask" and options.formula):
                continue
            for name in installed_names(options.brew_file, casks=kind == "cask"):
                try:
                    packages.extend(load_package(options.taps_dir, name, kind=kind))
                except PackageUnavailableError:
                    debug(f"Installed {kind} {name} has no definition in any tap")
    elif named:
        kind = "formula" if options.formula else "cask" if options.cask else None
        for name in named:
            packages.extend(load_package(options.taps_dir, name, kind=kind))
    elif eval_all:
        for tap in all_taps(options.taps_dir):
            if not options.cask:
                packages.extend(tap_formulae(tap))
            if not options.formula:
                packages.extend(tap_casks(tap))
    else:
        raise click.UsageError(
            "`tapkeeper bump` without named arguments needs `--installed` or "
            "`--eval-all` passed or `TAPKEEPER_EVAL_ALL=1` set!"
        )

    if start_with:
        packages = [p for p in packages if p.name.startswith(start_with)]

    packages.sort(key=lambda p: p.name)
    return [p for p in packages if (p.kind, p.full_name) not in excluded]


def skip_repology(package: Formula | Cask, options: BumpOptions) -> bool:
    """Whether to leave Repology out for this package.

    CI runs that open PRs skip it for packages with a livecheck strategy to
    stay under Repology's rate limits. Versioned formulae have no meaningful
    catalog entry.
    """
    if not options.repology:
        return True
    if os.environ.get("CI") and options.open_pr and package.livecheck.defined:
        return True
    return isinstance(package, Formula) and package.versioned_formula


def skip_ineligible(package: Formula | Cask) -> bool:
    """Report and skip packages that don't accept manual bumps."""
    if isinstance(package, Formula):
        skip = package.disabled or package.head_only
        reason = "disabled" if package.disabled else "HEAD-only"
        text = f"Formula is {reason} so not accepting updates."
    else:
        skip = package.disabled
        text = "Cask is disabled so not accepting updates."

    if package.tap is not None and not package.tap.allow_bump(package.name):
        skip = True
        text = f"{text.split()[0]} is autobumped so will have bump PRs opened automatically every ~3 hours."

    if not skip:
        return False

    heading(package.name)
    click.echo(text)
    return True


def livecheck_result(package: Formula | Cask, arch: str) -> Version | str:
    """Ask livecheck for the newest upstream version.

    Returns:
        A Version, or a message: the skip status ("skipped - reason",
        "deprecated", ...), "unable to get versions",
        "unable to get throttled versions" or "error: <details>".
    """
    try:
        referenced = livecheck.resolve_livecheck_reference(package)

        skip_info = None
        if referenced is not None:
            skip_info = livecheck.referenced_skip_information(referenced, package.name)
        if skip_info is None:
            skip_info = livecheck.skip_information(package)

        if skip_info:
            messages = ", ".join(skip_info["messages"])
            return f"{skip_info['status']} - {messages}" if messages else skip_info["status"]

        version_info = livecheck.latest_version(package, referenced=referenced, arch=arch)
        if not version_info:
            return UNABLE_TO_GET_VERSIONS

        if "latest_throttled" not in version_info:
            return Version(version_info["latest"])
        if version_info["latest_throttled"] is None:
            return UNABLE_TO_GET_THROTTLED_VERSIONS
        return Version(version_info["latest_throttled"])
    except Exception as e:
        return f"error: {e}"


def retrieve_pull_requests(
    package: Formula | Cask,
    name: str,
    options: BumpOptions,
    *,
    version: str | None = None,
) -> str | None:
    """Format open pull requests for a package as "title (url), ..."."""
    if options.no_github_api:
        return None

    tap_remote_repo = package.tap.remote_repository if package.tap else None
    try:
        pull_requests = github.fetch_pull_requests(name, tap_remote_repo, version=version)
    except github.ValidationFailedError as e:
        debug(f"Error fetching pull requests for {package.name} {name}: {e}")
        pull_requests = None

    if not pull_requests:
        return None
    return ", ".join(f"{pr['title']} ({pr['html_url']})" for pr in pull_requests)


def _greater(left: VersionReading | None, right: VersionReading | None) -> bool:
    return isinstance(left, Version) and isinstance(right, Version) and left > right


def retrieve_versions_by_arch(
    package: Formula | Cask,
    repositories: list[dict],
    name: str,
    options: BumpOptions,
) -> VersionBumpInfo:
    """Resolve current and upstream versions for each relevant architecture.

    Casks with per-arch blocks are checked once per arch; everything else is
    checked once, as arm, and stored under the "general" key.
    """
    is_cask_with_blocks = isinstance(package, Cask) and package.on_system_blocks_exist
    if isinstance(package, Formula):
        kind, version_name = "formula", "formula version:"
    else:
        kind, version_name = "cask", "cask version:   "

    deprecated: dict[str, bool] = {}
    current_versions: dict[str, VersionReading | None] = {}
    new_versions: dict[str, VersionReading | None] = {}

    repology_latest = repology.latest_version(repositories) if repositories else "not found"
    repology_latest_is_a_version = isinstance(repology_latest, Version)
    has_livecheck = package.livecheck.defined

    arch_options = ARCH_OPTIONS if is_cask_with_blocks else ("arm",)
    for arch in arch_options:
        version_key = arch if is_cask_with_blocks else "general"

        current_value = package.version_for(arch)
        deprecated[version_key] = package.deprecated_for(arch)

        livecheck_latest = livecheck_result(package, arch)
        livecheck_latest_is_a_version = isinstance(livecheck_latest, Version)

        new_value: VersionReading | None = None
        if (
            livecheck_latest_is_a_version and livecheck_latest >= current_value
        ) or current_value.is_latest:
            new_value = livecheck_latest
        elif isinstance(livecheck_latest, str) and livecheck_latest.startswith(SKIPPED):
            new_value = SKIPPED
        elif (
            repology_latest_is_a_version
            and not has_livecheck
            and repology_latest > current_value
            and not current_value.is_latest
        ):
            new_value = repology_latest

        # Fall back to the upstream version even when it's lower than the
        # current one, so regressions upstream are visible
        if new_value is None and livecheck_latest_is_a_version:
            new_value = livecheck_latest
        if new_value is None and repology_latest_is_a_version and not has_livecheck:
            new_value = repology_latest

        current_versions[version_key] = current_value
        new_versions[version_key] = new_value

    # Casks whose arch blocks only differ by checksum share one version
    if current_versions.get("arm") is not None and current_versions["arm"] == current_versions.get("intel"):
        current_versions = {"general": current_versions["arm"]}
    if new_versions.get("arm") is not None and new_versions["arm"] == new_versions.get("intel"):
        new_versions = {"general": new_versions["arm"]}

    current_version = VersionParser(
        general=current_versions.get("general"),
        arm=current_versions.get("arm"),
        intel=current_versions.get("intel"),
    )
    try:
        new_version = VersionParser(
            general=new_versions.get("general"),
            arm=new_versions.get("arm"),
            intel=new_versions.get("intel"),
        )
    except VersionParserError:
        new_version = VersionParser(general=UNABLE_TO_GET_VERSIONS)

    comparison = compare_versions(current_version, new_version)
    multiple_versions = comparison["multiple_versions"]
    newer_than_upstream = comparison["newer_than_upstream"]
    if not multiple_versions["current"] and "general" not in deprecated:
        deprecated = {"general": deprecated.get("arm") or deprecated.get("intel") or False}

    duplicate_pull_requests = None
    maybe_duplicate_pull_requests = None
    if (
        not options.no_pull_requests
        and new_version.general not in (UNABLE_TO_GET_VERSIONS, SKIPPED)
        and new_version != current_version
        and not all(newer_than_upstream.values())
    ):
        # The arm version is used for the PR, matching bump-cask-pr
        if multiple_versions["new"]:
            pull_request_version = str(new_version.arm)
        else:
            pull_request_version = str(new_version.general)

        duplicate_pull_requests = retrieve_pull_requests(
            package, name, options, version=pull_request_version
        )
        if duplicate_pull_requests is None:
            maybe_duplicate_pull_requests = retrieve_pull_requests(package, name, options)

    return VersionBumpInfo(
        type=kind,
        deprecated=deprecated,
        multiple_versions=multiple_versions,
        version_name=version_name,
        current_version=current_version,
        new_version=new_version,
        repology_latest=repology_latest,
        newer_than_upstream=newer_than_upstream,
        duplicate_pull_requests=duplicate_pull_requests,
        maybe_duplicate_pull_requests=maybe_duplicate_pull_requests,
    )


def synced_with(
    formula: Formula, new_version: VersionReading | None
) -> list[str]:
    """Formulae that must share a version with `formula` but don't match the new one."""
    if formula.tap is None:
        return []

    outdated: list[str] = []
    for group in formula.tap.synced_versions_formulae:
        if formula.name not in group:
            continue
        for synced_name in group:
            if synced_name == formula.name:
                continue
            synced = load_package_in_tap(formula.tap, synced_name)[0]
            if synced.version is None or Version(synced.version) != new_version:
                outdated.append(synced.name)
    return outdated


def format_current_versions(info: VersionBumpInfo) -> str:
    current = info.current_version
    newer = info.newer_than_upstream
    deprecated = info.deprecated

    def annotate(key: str) -> str:
        return (NEWER_THAN_UPSTREAM_MSG if newer.get(key) else "") + (
            " (deprecated)" if deprecated.get(key) else ""
        )

    if info.multiple_versions["current"]:
        arm = current.arm if current.arm is not None else current.general
        intel = current.intel if current.intel is not None else current.general
        return f"arm:   {arm}{annotate('arm')}\n{INDENT}intel: {intel}{annotate('intel')}"
    return f"{current.general}{annotate('general')}"


def format_new_versions(info: VersionBumpInfo) -> str:
    new = info.new_version
    if info.multiple_versions["new"] and new.arm is not None and new.intel is not None:
        return f"arm:   {new.arm}\n{INDENT}intel: {new.intel}"
    return str(new.general)


def retrieve_and_display_info_and_open_pr(
    package: Formula | Cask,
    name: str,
    repositories: list[dict],
    options: BumpOptions,
    *,
    ambiguous_cask: bool = False,
) -> bool:
    """Print the version report for one package and maybe open a PR.

    Returns:
        False if the PR subcommand failed, True otherwise.

    Raises:
        SystemExit: If the user already has too many open pull requests.
    """
    info = retrieve_versions_by_arch(package, repositories, name, options)

    current_version = info.current_version
    new_version = info.new_version
    repology_latest = info.repology_latest
    versions_equal = new_version == current_version
    all_newer_than_upstream = all(info.newer_than_upstream.values())
    new_version_usable = new_version.general not in (UNABLE_TO_GET_VERSIONS, SKIPPED)

    title_name = f"{name} (cask)" if ambiguous_cask else name
    repology_agrees = repology_latest == current_version.general or not isinstance(
        repology_latest, Version
    )
    if repology_agrees and versions_equal:
        title = f"{title_name} {click.style('is up to date!', fg='green')}"
    else:
        title = title_name

    heading(title)
    throttled = " (throttled)" if package.livecheck.throttle else ""
    click.echo(f"Current {info.version_name}  {format_current_versions(info)}")
    click.echo(f"Latest livecheck version: {format_new_versions(info)}{throttled}")
    if not skip_repology(package, options):
        click.echo(f"Latest Repology version:  {repology_latest}")

    outdated_synced: list[str] = []
    if isinstance(package, Formula):
        outdated_synced = synced_with(package, new_version.general)
        if not options.bump_synced and outdated_synced:
            click.echo(
                f"Version syncing:          {title_name} version should be kept in sync with\n"
                f"{INDENT}{', '.join(outdated_synced)}."
            )

    if (
        not options.no_pull_requests
        and new_version_usable
        and not versions_equal
        and not all_newer_than_upstream
    ):
        maybe_text = None
        if info.duplicate_pull_requests:
            duplicate_text = info.duplicate_pull_requests
        elif info.maybe_duplicate_pull_requests:
            duplicate_text = "none"
            maybe_text = info.maybe_duplicate_pull_requests
        else:
            duplicate_text = "none"
            maybe_text = "none"

        click.echo(f"Duplicate pull requests:  {duplicate_text}")
        if maybe_text:
            click.echo(f"Maybe duplicate pull requests: {maybe_text}")

    if not options.open_pr or not new_version_usable or all_newer_than_upstream:
        return True

    if not options.no_github_api and github.too_many_open_prs(package.tap):
        fatal("You have too many PRs open: close or merge some first!")

    if (
        _greater(repology_latest, current_version.general)
        and _greater(repology_latest, new_version.general)
        and package.livecheck.defined
    ):
        click.echo(
            f"{title_name} was not bumped to the Repology version because it has a livecheck strategy."
        )

    if versions_equal or (
        not isinstance(new_version.general, Version) and not info.multiple_versions["new"]
    ):
        return True
    if info.duplicate_pull_requests:
        return True

    if info.multiple_versions["new"]:
        version_args = [f"--version-arm={new_version.arm}", f"--version-intel={new_version.intel}"]
    else:
        version_args = [f"--version={new_version.general}"]

    bump_pr_args = [
        f"bump-{info.type}-pr",
        name,
        *version_args,
        "--no-browse",
        f"--message={PR_MESSAGE}",
    ]
    if options.no_fork:
        bump_pr_args.append("--no-fork")
    if options.bump_synced and outdated_synced:
        bump_pr_args.append(f"--bump-synced={','.join(outdated_synced)}")

    result = run(options.brew_file, *bump_pr_args, check=False)
    return result.returncode == 0


def find_ambiguous(
    packages: list[Formula | Cask], options: BumpOptions
) -> tuple[set[int], set[int]]:
    """Find packages whose display names collide.

    Returns:
        (ids of casks sharing a full name with a formula,
         ids of packages sharing a short name and needing their full name).
    """
    ambiguous_casks: set[int] = set()
    if not options.formula and not options.cask:
        by_full_name: dict[str, list[Formula | Cask]] = defaultdict(list)
        for package in packages:
            by_full_name[package.display_name(full_name=True)].append(package)
        for items in by_full_name.values():
            if len(items) > 1:
                ambiguous_casks |= {id(p) for p in items if isinstance(p, Cask)}

    ambiguous_names: set[int] = set()
    if not options.full_name:
        by_name: dict[str, list[Formula | Cask]] = defaultdict(list)
        for package in packages:
            if id(package) not in ambiguous_casks:
                by_name[package.display_name()].append(package)
        for items in by_name.values():
            if len(items) > 1:
                ambiguous_names |= {id(p) for p in items}

    return ambiguous_casks, ambiguous_names


def handle_packages(packages: list[Formula | Cask], options: BumpOptions) -> bool:
    """Check every package in order.

    Returns:
        True if any PR subcommand failed.
    """
    ambiguous_casks, ambiguous_names = find_ambiguous(packages, options)

    failed = False
    for i, package in enumerate(packages):
        if i > 0:
            click.echo()
        if skip_ineligible(package):
            continue

        use_full_name = options.full_name or id(package) in ambiguous_names
        name = package.display_name(full_name=use_full_name)
        repository = repology.HOMEBREW_CORE if isinstance(package, Formula) else repology.HOMEBREW_CASK

        package_data = None
        if not skip_repology(package, options):
            package_data = repology.single_package_query(name, repository=repository)
        repositories = next(iter(package_data.values()), []) if package_data else []

        succeeded = retrieve_and_display_info_and_open_pr(
            package,
            name,
            repositories,
            options,
            ambiguous_cask=id(package) in ambiguous_casks,
        )
        if not succeeded:
            failed = True

    return failed
