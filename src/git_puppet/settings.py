"""Resolve runtime settings from the environment."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .exceptions import SettingsError

DEFAULT_INSTALL_COMMAND = "npm i"
DEFAULT_MAX_WORKERS = 8
CONFIG_FILENAME = "configs.json"


@dataclass(frozen=True)
class PuppetSettings:
    """Runtime settings shared by every command."""

    home: Path
    install_command: str = DEFAULT_INSTALL_COMMAND
    max_workers: int = DEFAULT_MAX_WORKERS

    @property
    def config_file(self) -> Path:
        return self.home / CONFIG_FILENAME


def load_settings(environ: Mapping[str, str] | None = None) -> PuppetSettings:
    """Build settings from environment variables.

    Supports:
    - PUPPET_HOME: directory holding configs.json (default ~/.puppet)
    - PUPPET_INSTALL_COMMAND: dependency refresh step of the sync command
    - PUPPET_MAX_WORKERS: number of repos run at once
    """
    env = os.environ if environ is None else environ

    raw_home = env.get("PUPPET_HOME")
    if raw_home:
        home = Path(os.path.expandvars(raw_home)).expanduser()
    else:
        home = Path.home() / ".puppet"

    install_command = env.get("PUPPET_INSTALL_COMMAND", DEFAULT_INSTALL_COMMAND).strip()

    return PuppetSettings(
        home=home,
        install_command=install_command,
        max_workers=_parse_workers(env.get("PUPPET_MAX_WORKERS")),
    )


def _parse_workers(raw: str | None) -> int:
    if raw is None or not raw.strip():
        return DEFAULT_MAX_WORKERS
    try:
        workers = int(raw)
    except ValueError as exc:
        raise SettingsError(f"PUPPET_MAX_WORKERS must be an integer, got {raw!r}") from exc
    if workers < 1:
        raise SettingsError(f"PUPPET_MAX_WORKERS must be at least 1, got {workers}")
    return workers
