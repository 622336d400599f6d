"""Shared fixtures: a fake workspace and fakes for shell and git."""

from __future__ import annotations

import io
import threading
from pathlib import Path

import pytest
from rich.console import Console

from git_puppet.core import PuppetLogger, ShellOutput
from git_puppet.exceptions import RepoCommandError, VcsQueryError


class FakeBranchQuery:
    """Answers branch queries from a dict; None means the query fails."""

    def __init__(self, branches: dict[str, str | None]):
        self.branches = branches
        self.calls: list[str] = []

    def __call__(self, path: Path) -> str:
        self.calls.append(path.name)
        branch = self.branches.get(path.name)
        if branch is None:
            raise VcsQueryError(path, "HEAD is not a branch")
        return branch


class FakeShell:
    """Records commands; repos listed in ``failing`` exit with status 1."""

    def __init__(self, failing: set[str] | None = None):
        self.failing = failing or set()
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()

    def run(self, cwd: Path, command: str) -> ShellOutput:
        with self._lock:
            self.calls.append((cwd.name, command))
        if cwd.name in self.failing:
            raise RepoCommandError(cwd.name, command, 1, f"{cwd.name} exploded")
        return ShellOutput(stdout=f"ran in {cwd.name}\ndone", stderr="warning: noisy")


class RecordingProgress:
    def __init__(self):
        self.events: list[tuple[str, float | None]] = []

    def start(self, total: float = 100) -> None:
        self.events.append(("start", total))

    def increment(self, amount: float) -> None:
        self.events.append(("increment", amount))

    def stop(self) -> None:
        self.events.append(("stop", None))


def make_repo(root: Path, name: str, *, git: bool = True) -> Path:
    path = root / name
    path.mkdir()
    if git:
        (path / ".git").mkdir()
    return path


def console_text(console: Console) -> str:
    return console.file.getvalue()


@pytest.fixture
def console() -> Console:
    return Console(file=io.StringIO(), width=200, soft_wrap=True, color_system=None)


@pytest.fixture
def logger(console: Console) -> PuppetLogger:
    return PuppetLogger(console, verbose=True)


@pytest.fixture
def quiet_logger(console: Console) -> PuppetLogger:
    return PuppetLogger(console, verbose=False)


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """alpha, beta, gamma are repos; the rest are not."""
    root = tmp_path / "workspace"
    root.mkdir()
    for name in ("gamma", "alpha", "beta"):
        make_repo(root, name)
    make_repo(root, "notes", git=False)
    make_repo(root, ".hidden")
    (root / "README.md").write_text("not a repo\n")
    return root


@pytest.fixture
def branches() -> dict[str, str | None]:
    return {"alpha": "main", "beta": "feature/login", "gamma": "develop", ".hidden": "main"}


@pytest.fixture
def branch_query(branches) -> FakeBranchQuery:
    return FakeBranchQuery(branches)


@pytest.fixture
def fake_shell() -> FakeShell:
    return FakeShell()
