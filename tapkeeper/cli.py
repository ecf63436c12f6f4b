"""CLI entry point for tapkeeper."""

from __future__ import annotations

import os

import click

from tapkeeper import bump, zap
from tapkeeper.config import Settings, load_settings
from tapkeeper.shell import heading, warn
from tapkeeper.stats import CallTimes, inject_dump_stats

CONFLICTING_BUMP_OPTIONS = [
    ("formula", "cask"),
    ("tap_name", "installed"),
    ("tap_name", "no_autobump"),
    ("installed", "eval_all"),
    ("installed", "auto"),
    ("no_pull_requests", "open_pr"),
]


def _flag_name(param: str) -> str:
    return "--" + param.removesuffix("_name").replace("_", "-")


@click.group()
@click.version_option(package_name="tapkeeper")
@click.option("--debug", is_flag=True, help="Print debug traces.")
@click.option(
    "--dump-stats",
    is_flag=True,
    envvar="TAPKEEPER_DUMP_STATS",
    help="Print time spent in each check step at exit.",
)
@click.pass_context
def cli(ctx: click.Context, debug: bool, dump_stats: bool) -> None:
    """Package maintenance commands: version bumps and zap stanzas."""
    settings = load_settings()
    if debug or settings.debug:
        os.environ["TAPKEEPER_DEBUG"] = "1"
    ctx.obj = settings

    if dump_stats:
        registry = CallTimes()
        inject_dump_stats(registry, bump, r"^(retrieve_|livecheck_result|synced_with|handle_packages)")
        inject_dump_stats(registry, zap, r"^(scan_|collapse_|replace_|derive_)")

        @ctx.call_on_close
        def dump_stats_report() -> None:
            registry.restore()
            report = registry.report()
            if report:
                click.echo(report)


@cli.command("bump")
@click.argument("names", nargs=-1)
@click.option("--full-name", is_flag=True, help="Print formulae/casks with fully-qualified names.")
@click.option("--no-pull-requests", is_flag=True, help="Do not retrieve pull requests from GitHub.")
@click.option("--auto", is_flag=True, hidden=True, help="Read the list of formulae/casks from the tap autobump list.")
@click.option("--no-autobump", is_flag=True, help="Ignore formulae/casks in autobump list (official repositories only).")
@click.option("--formula", "--formulae", "formula", is_flag=True, help="Check only formulae.")
@click.option("--cask", "--casks", "cask", is_flag=True, help="Check only casks.")
@click.option("--eval-all", is_flag=True, envvar="TAPKEEPER_EVAL_ALL", help="Evaluate all formulae and casks.")
@click.option("--repology", is_flag=True, help="Use Repology to check for outdated packages.")
@click.option("--tap", "tap_name", metavar="USER/REPO", help="Check formulae and casks within the given tap.")
@click.option("--installed", is_flag=True, help="Check formulae and casks that are currently installed.")
@click.option("--no-fork", is_flag=True, help="Don't try to fork the repository.")
@click.option("--open-pr", is_flag=True, help="Open a pull request for the new version if none have been opened yet.")
@click.option("--start-with", metavar="PREFIX", help="Only check packages whose name starts with PREFIX.")
@click.option("--bump-synced", is_flag=True, help="Bump additional formulae marked as synced with the given formulae.")
@click.pass_obj
def bump_command(settings: Settings, names: tuple[str, ...], **flags: object) -> None:
    """Display out-of-date packages and the latest version available.

    If the current and livecheck versions differ, or when querying specific
    packages, also displays whether a pull request has been opened.
    """
    for first, second in CONFLICTING_BUMP_OPTIONS:
        if flags[first] and flags[second]:
            raise click.UsageError(
                f"Options {_flag_name(first)} and {_flag_name(second)} are mutually exclusive."
            )

    options = bump.BumpOptions(
        full_name=flags["full_name"],
        no_pull_requests=flags["no_pull_requests"],
        open_pr=flags["open_pr"],
        no_fork=flags["no_fork"],
        repology=flags["repology"],
        bump_synced=flags["bump_synced"],
        formula=flags["formula"],
        cask=flags["cask"],
        no_github_api=settings.no_github_api,
        brew_file=settings.brew_file,
        taps_dir=settings.taps_dir,
    )

    try:
        packages = bump.select_packages(
            list(names),
            options,
            auto=bool(flags["auto"]),
            tap_name=flags["tap_name"],
            installed=bool(flags["installed"]),
            eval_all=bool(flags["eval_all"]),
            start_with=flags["start_with"],
            no_autobump=bool(flags["no_autobump"]),
        )
    except LookupError as e:
        raise click.ClickException(str(e)) from e

    if bump.handle_packages(packages, options):
        raise SystemExit(1)


@cli.command("generate-zap")
@click.argument("cask_or_name")
@click.option(
    "--name",
    "raw_name",
    is_flag=True,
    help="Treat the argument as a raw application name instead of a cask token.",
)
@click.pass_obj
def generate_zap_command(settings: Settings, cask_or_name: str, raw_name: bool) -> None:
    """Generate a zap stanza for a cask by scanning for its files.

    Accepts a cask token (e.g. `firefox`) or, with --name, an application
    name (e.g. `Firefox`). The application should have been launched at
    least once so that its preferences and caches exist on disk.
    """
    if raw_name:
        app_name = cask_or_name
    else:
        try:
            app_name = zap.resolve_app_name_from_cask(cask_or_name, settings.taps_dir)
        except LookupError as e:
            raise click.ClickException(str(e)) from e

    heading(f'Scanning for files matching "{app_name}"...')
    stanza = zap.generate_zap(app_name)
    if stanza is None:
        warn(f'No files found matching "{app_name}".')
        click.echo(zap.NO_ZAP_REQUIRED)
        return

    click.echo(stanza)
