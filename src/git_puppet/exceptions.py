"""Custom exception hierarchy for git-puppet."""

from __future__ import annotations

from pathlib import Path


class PuppetError(Exception):
    """Base error for all custom exceptions."""


class SettingsError(PuppetError):
    """Raised when environment configuration is invalid."""


class VcsQueryError(PuppetError):
    """Raised when the current branch of a repository cannot be determined."""

    def __init__(self, path: Path, reason: str = ""):
        message = f"Unable to read branch of {path}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.path = path
        self.reason = reason


class RepoCommandError(PuppetError):
    """Raised when a shell command fails inside a repository."""

    def __init__(
        self,
        repo: str,
        command: str,
        returncode: int | None = None,
        stderr: str | None = None,
    ):
        if returncode is None:
            message = f"Command error in {repo}: {command}"
        else:
            message = f"Command error in {repo} (exit {returncode}): {command}"
        detail = (stderr or "").strip()
        if detail:
            message = f"{message}\n{detail}"
        super().__init__(message)
        self.repo = repo
        self.command = command
        self.returncode = returncode
        self.stderr = stderr or ""


class ConfigNotFoundError(PuppetError):
    """Raised when the configuration file is required but does not exist."""

    def __init__(self, path: Path):
        super().__init__(
            f"Config file does not exist. Confirm that the config exists at {path}"
        )
        self.path = path


class ConfigKeyNotFoundError(PuppetError):
    """Raised when a named configuration is absent from the store."""

    def __init__(self, name: str, hint: str = ""):
        message = f"Specified config {name} does not exist in the config file."
        if hint:
            message = f"{message} {hint}"
        super().__init__(message)
        self.name = name


class ConfigFormatError(PuppetError):
    """Raised when the configuration file cannot be parsed."""

    def __init__(self, path: Path, reason: str = ""):
        message = f"Config file {path} is not a valid puppet configuration"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)
        self.path = path
        self.reason = reason
