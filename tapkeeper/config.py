"""Settings for tapkeeper.

Values come from, in increasing priority: built-in defaults, the
[tapkeeper] table of a TOML config file, and TAPKEEPER_* environment
variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

from .toml import load_toml, to_plain

ENV_PREFIX = "TAPKEEPER_"
TRUTHY = {"1", "true", "yes", "on"}


def default_config_path() -> Path:
    return Path(os.environ.get("TAPKEEPER_CONFIG", Path.home() / ".tapkeeper.toml"))


class Settings(BaseModel):
    """Resolved configuration.

    Attributes:
        taps_dir: Directory holding <user>/<repo> taps.
        brew_file: Executable that provides bump-<kind>-pr and `list`.
        no_github_api: Never call the GitHub API.
        debug: Print debug traces.
    """

    taps_dir: Path = Field(default_factory=lambda: Path.home() / ".tapkeeper" / "taps")
    brew_file: str = "brew"
    no_github_api: bool = False
    debug: bool = False


def _env_overrides() -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for field in Settings.model_fields:
        value = os.environ.get(f"{ENV_PREFIX}{field.upper()}")
        if value is None:
            continue
        if Settings.model_fields[field].annotation is bool:
            overrides[field] = value.strip().lower() in TRUTHY
        else:
            overrides[field] = value
    return overrides


def load_settings(config_path: Path | None = None) -> Settings:
    """Build Settings from the config file and the environment."""
    path = config_path or default_config_path()
    data: dict[str, Any] = {}
    if path.exists():
        data = dict(to_plain(load_toml(path)).get("tapkeeper", {}))

    data.update(_env_overrides())
    settings = Settings(**data)
    settings.taps_dir = settings.taps_dir.expanduser()
    return settings
