"""Shell and GitHub CLI utilities.

Provides simple wrappers around subprocess calls for running external
commands and the `gh` CLI, plus output formatting helpers.
"""

from __future__ import annotations

import os
import subprocess
import sys

import click


class CommandError(RuntimeError):
    """A captured command exited with a non-zero status."""

    def __init__(self, args: list[str], returncode: int, stderr: str) -> None:
        self.args_list = args
        self.returncode = returncode
        self.stderr = stderr
        super().__init__(
            f"{' '.join(args)} exited with {returncode}: {stderr.strip()}"
        )


def gh(*args: str, check: bool = True) -> str:
    """Run a gh command and return stdout.

    Args:
        *args: Arguments to pass to gh (e.g., "api", "search/issues").
        check: If True (default), raise CommandError on non-zero exit so the
               caller can inspect stderr. Set to False for lookups that may
               legitimately fail.

    Returns:
        Stripped stdout from the gh command.
    """
    result = subprocess.run(["gh", *args], capture_output=True, text=True)
    if check and result.returncode != 0:
        raise CommandError(["gh", *args], result.returncode, result.stderr)
    return result.stdout.strip()


def capture(*args: str, check: bool = True) -> str:
    """Run an arbitrary command and return its stripped stdout."""
    result = subprocess.run(args, capture_output=True, text=True)
    if check and result.returncode != 0:
        raise CommandError(list(args), result.returncode, result.stderr)
    return result.stdout.strip()


def run(*args: str, check: bool = True) -> subprocess.CompletedProcess[bytes]:
    """Run an arbitrary shell command.

    Unlike gh(), this doesn't capture output - it streams directly to
    the terminal so users can follow the PR-creation subcommand.

    Args:
        *args: Command and arguments (e.g., "brew", "bump-cask-pr", "foo").
        check: If True (default), raise on non-zero exit.

    Returns:
        CompletedProcess with returncode for checking success.
    """
    return subprocess.run(args, check=check)


def heading(msg: str) -> None:
    """Print a visually distinct title line (`==> msg`)."""
    click.echo(f"{click.style('==>', fg='blue', bold=True)} {click.style(msg, bold=True)}")


def warn(msg: str) -> None:
    """Print a non-fatal warning to stderr."""
    click.echo(f"{click.style('Warning', fg='yellow')}: {msg}", err=True)


def debug(msg: str) -> None:
    """Print a trace line when TAPKEEPER_DEBUG is set."""
    if os.environ.get("TAPKEEPER_DEBUG", "").lower() in ("1", "true", "yes", "on"):
        click.echo(f"{click.style('==>', fg='magenta')} {msg}", err=True)


def fatal(msg: str) -> None:
    """Print an error message and exit with code 1.

    Use for unrecoverable errors that should halt the whole run.
    """
    print(f"Error: {msg}", file=sys.stderr)
    sys.exit(1)


def pluralize(stem: str, count: int) -> str:
    """Combine `stem` with a singular or plural suffix based on `count`.

    Examples:
        pluralize("cask", 2) → "casks"
        pluralize("formula", 2) → "formulae"
        pluralize("formula", 1) → "formula"
    """
    plural, singular = "s", ""
    if stem == "formula":
        plural = "e"

    suffix = singular if count == 1 else plural
    return f"{stem}{suffix}"
