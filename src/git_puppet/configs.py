"""Persisted branch configurations (``~/.puppet/configs.json``)."""

from __future__ import annotations

import contextlib
import json
import os
import tempfile
from collections.abc import Iterable
from pathlib import Path

from .core import BatchResult, BatchRunner, BranchSnapshot, PuppetLogger, RepoRef, checkout_command
from .exceptions import ConfigFormatError, ConfigKeyNotFoundError, ConfigNotFoundError

ConfigMap = dict[str, list[BranchSnapshot]]


def atomic_write(path: Path, data: str, *, encoding: str = "utf-8") -> None:
    """Replace ``path`` with ``data`` via a temp file and ``os.replace``."""
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{path.name}.",
        suffix=".tmp",
        dir=str(path.parent),
    )
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding=encoding) as file_handle:
            file_handle.write(data)
            file_handle.flush()
            os.fsync(file_handle.fileno())
        os.replace(temp_path, path)
    except Exception:
        with contextlib.suppress(OSError):
            temp_path.unlink(missing_ok=True)
        raise


class ConfigStore:
    """Named snapshots of (repo, branch) pairs kept in a single JSON file.

    The file maps each configuration name to a list of ``[repo, branch]``
    pairs. Every write rewrites the whole file.
    """

    def __init__(self, path: Path, logger: PuppetLogger):
        self.path = path
        self.logger = logger

    def exists(self) -> bool:
        return self.path.is_file()

    def load(self, missing_ok: bool = False) -> ConfigMap | None:
        """Read the store.

        Raises ConfigNotFoundError when the file is absent, unless
        ``missing_ok`` is set, in which case None is returned. Raises
        ConfigFormatError when the file is not a mapping of names to
        ``[repo, branch]`` pairs.
        """
        if not self.exists():
            if missing_ok:
                return None
            raise ConfigNotFoundError(self.path)
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigFormatError(self.path, str(e)) from e
        if not isinstance(raw, dict):
            raise ConfigFormatError(self.path, "expected an object of configurations")
        try:
            return {
                name: [BranchSnapshot.from_pair(pair) for pair in pairs]
                for name, pairs in raw.items()
            }
        except (TypeError, ValueError) as e:
            raise ConfigFormatError(self.path, "entries must be [repo, branch] pairs") from e

    def _write(self, configs: ConfigMap) -> None:
        payload = {
            name: [entry.to_pair() for entry in entries] for name, entries in configs.items()
        }
        atomic_write(self.path, json.dumps(payload, indent=2) + "\n")

    def save(self, name: str, entries: Iterable[BranchSnapshot]) -> None:
        """Create or overwrite configuration ``name``."""
        entries = list(entries)
        configs = self.load(missing_ok=True)
        if configs is not None:
            configs[name] = entries
            self._write(configs)
            self.logger.info(f"config {name} saved")
            return

        created = not self.path.parent.exists()
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._write({name: entries})
        if created:
            self.logger.info(f"{self.path.parent} directory created and config {name} saved")
        else:
            self.logger.info(f"config {name} saved")

    def remove(self, name: str) -> bool:
        """Delete configuration ``name``; warn and do nothing if it is absent."""
        configs = self.load()
        try:
            self._lookup(configs, name, f"Confirm the configuration exists at {self.path}")
        except ConfigKeyNotFoundError as e:
            self.logger.warn(str(e))
            return False
        del configs[name]
        self._write(configs)
        self.logger.info(f"Configuration {name} was removed")
        return True

    def names(self) -> list[str]:
        return list(self.load())

    def get(self, name: str | None = None) -> list[str] | list[BranchSnapshot] | None:
        """List configuration names, or return the entries of ``name``."""
        configs = self.load()
        if name is None:
            return list(configs)
        try:
            return self._lookup(configs, name, f"Confirm that the config exists at {self.path}")
        except ConfigKeyNotFoundError as e:
            self.logger.warn(str(e))
            return None

    def run(self, name: str, runner: BatchRunner, root_path: Path) -> BatchResult | None:
        """Check out every saved branch in its repo under ``root_path``.

        Checkouts are independent: a failing repo neither stops the others
        nor rolls back the ones already switched.
        """
        configs = self.load()
        try:
            entries = self._lookup(
                configs, name, "Can you confirm it exists with puppet get"
            )
        except ConfigKeyNotFoundError as e:
            self.logger.warn(str(e))
            return None

        self.logger.info(f"running {name} configuration")
        commands = [
            (RepoRef(name=entry.repo, path=root_path / entry.repo), checkout_command(entry.branch))
            for entry in entries
        ]
        result = runner.run_commands(commands, show_progress=False)
        self.logger.info(f"running {name} configuration done")
        return result

    @staticmethod
    def _lookup(configs: ConfigMap, name: str, hint: str) -> list[BranchSnapshot]:
        if name not in configs:
            raise ConfigKeyNotFoundError(name, hint)
        return configs[name]
