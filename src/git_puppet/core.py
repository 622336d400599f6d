"""
git-puppet: Pull the strings of every sub-repo in a workspace at once.

Runs shell commands across the sibling Git repositories of a directory and
keeps named snapshots of their checked-out branches.
"""

from __future__ import annotations

import json
import shlex
import subprocess
from collections.abc import Callable, Iterable, Iterator
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol

from rich.console import Console
from rich.progress import BarColumn, Progress, TaskID, TaskProgressColumn, TextColumn

from .exceptions import RepoCommandError, VcsQueryError
from .settings import DEFAULT_INSTALL_COMMAND, DEFAULT_MAX_WORKERS

# =============================================================================
# Domain Models
# =============================================================================


@dataclass(frozen=True)
class RepoRef:
    """A sub-repo directory under the workspace root."""

    name: str
    path: Path

    def to_dict(self) -> dict:
        return {"name": self.name, "path": str(self.path)}


@dataclass(frozen=True)
class BranchSnapshot:
    """The branch checked out in a repo when it was inspected."""

    repo: str
    branch: str

    def to_pair(self) -> list[str]:
        return [self.repo, self.branch]

    @classmethod
    def from_pair(cls, pair: Iterable[str]) -> BranchSnapshot:
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise ValueError(f"expected [repo, branch], got {pair!r}")
        repo, branch = pair
        return cls(repo=str(repo), branch=str(branch))


@dataclass(frozen=True)
class RepoSkip:
    """A repository left out of discovery, and why."""

    name: str
    reason: str


@dataclass
class DiscoveryResult:
    """Repositories found under a root, with their current branches."""

    repos: list[RepoRef] = field(default_factory=list)
    branches: list[BranchSnapshot] = field(default_factory=list)
    missing: list[str] = field(default_factory=list)
    skipped: list[RepoSkip] = field(default_factory=list)

    @property
    def names(self) -> list[str]:
        return [repo.name for repo in self.repos]


@dataclass(frozen=True)
class ShellOutput:
    """Captured output of a finished shell command."""

    stdout: str = ""
    stderr: str = ""


@dataclass
class RepoFailure:
    """A repo whose command did not succeed."""

    repo: RepoRef
    error: RepoCommandError

    def to_dict(self) -> dict:
        return {
            "name": self.repo.name,
            "path": str(self.repo.path),
            "command": self.error.command,
            "returncode": self.error.returncode,
            "error": str(self.error),
        }


@dataclass
class BatchResult:
    """Outcome of one command run across a set of repos."""

    succeeded: set[RepoRef] = field(default_factory=set)
    failed: list[RepoFailure] = field(default_factory=list)
    outputs: dict[RepoRef, ShellOutput] = field(default_factory=dict)
    attempted: int = 0

    @property
    def total(self) -> int:
        return self.attempted

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "succeeded": sorted(repo.name for repo in self.succeeded),
            "failed": [failure.to_dict() for failure in self.failed],
        }


# =============================================================================
# Logging
# =============================================================================


class PuppetLogger:
    """Console logger whose verbosity is fixed at construction."""

    def __init__(self, console: Console, verbose: bool = False):
        self.console = console
        self.verbose = verbose

    def info(self, message: Any) -> None:
        self._print(message, "bright_green")

    def warn(self, message: Any) -> None:
        self._print(message, "bright_yellow")

    def log(self, message: Any) -> None:
        """Print only in verbose mode."""
        if self.verbose:
            self._print(message, "bright_cyan")

    def _print(self, message: Any, style: str) -> None:
        if isinstance(message, (dict, list)):
            message = json.dumps(message, default=str)
        self.console.print(
            str(message), style=style, markup=False, highlight=False, soft_wrap=True
        )


# =============================================================================
# Git / Shell Operations (Low-level)
# =============================================================================


class GitOperations:
    """Low-level Git queries for a single repository."""

    def __init__(self, repo_path: Path):
        self.repo_path = repo_path

    def _run(self, *args: str) -> subprocess.CompletedProcess:
        """Run a git command in the repository."""
        return subprocess.run(
            ["git", *args],
            cwd=self.repo_path,
            capture_output=True,
            text=True,
            check=False,
        )

    def current_branch(self) -> str:
        """Get current branch name."""
        try:
            result = self._run("rev-parse", "--abbrev-ref", "HEAD")
        except OSError as e:
            raise VcsQueryError(self.repo_path, str(e)) from e
        if result.returncode != 0:
            raise VcsQueryError(self.repo_path, result.stderr.strip())
        branch = result.stdout.strip()
        if not branch:
            raise VcsQueryError(self.repo_path, "empty branch name")
        return branch


def current_branch(repo_path: Path) -> str:
    """Return the branch checked out in ``repo_path``."""
    return GitOperations(repo_path).current_branch()


def has_git_metadata(path: Path) -> bool:
    return (path / ".git").exists()


class ShellExecutor:
    """Run a shell command string inside a directory."""

    def run(self, cwd: Path, command: str) -> ShellOutput:
        try:
            result = subprocess.run(
                command,
                shell=True,
                cwd=cwd,
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            raise RepoCommandError(cwd.name, command, stderr=str(e)) from e
        if result.returncode != 0:
            raise RepoCommandError(cwd.name, command, result.returncode, result.stderr)
        return ShellOutput(stdout=result.stdout, stderr=result.stderr)


class CommandShell(Protocol):
    def run(self, cwd: Path, command: str) -> ShellOutput: ...


BranchQuery = Callable[[Path], str]


def sync_command(branch: str, install_command: str = DEFAULT_INSTALL_COMMAND) -> str:
    """Stash, switch to ``branch``, pull it from origin, refresh dependencies."""
    quoted = shlex.quote(branch)
    steps = ["git stash", f"git checkout {quoted}", f"git pull origin {quoted}"]
    if install_command:
        steps.append(install_command)
    return " && ".join(steps)


def checkout_command(branch: str) -> str:
    return f"git checkout {shlex.quote(branch)}"


# =============================================================================
# Repository Discovery
# =============================================================================


def discover_repositories(
    root_path: Path,
    filter_names: Iterable[str] | None = None,
    *,
    branch_query: BranchQuery = current_branch,
    logger: PuppetLogger | None = None,
) -> DiscoveryResult:
    """Find the sub-repos directly under ``root_path``.

    Children are visited in name order and dot-entries are ignored. Repos
    whose branch cannot be read are reported in ``skipped`` and left out of
    both ``repos`` and ``branches``.
    """
    wanted = list(dict.fromkeys(filter_names)) if filter_names is not None else None
    result = DiscoveryResult()

    for child in sorted(root_path.iterdir(), key=lambda p: p.name):
        if child.name.startswith("."):
            continue
        if not child.is_dir() or not has_git_metadata(child):
            continue
        if wanted is not None and child.name not in wanted:
            continue
        try:
            branch = branch_query(child)
        except VcsQueryError as e:
            result.skipped.append(RepoSkip(name=child.name, reason=str(e)))
            continue
        result.repos.append(RepoRef(name=child.name, path=child))
        result.branches.append(BranchSnapshot(repo=child.name, branch=branch))

    if wanted is not None:
        found = set(result.names)
        result.missing = [name for name in wanted if name not in found]

    if logger is not None:
        _report_discovery(result, logger)
    return result


def _report_discovery(result: DiscoveryResult, logger: PuppetLogger) -> None:
    for skip in result.skipped:
        logger.warn(f"Skipping {skip.name}: {skip.reason}")
    if result.missing:
        lines = ["The following filtered repos were not found"]
        lines.extend(f"  - {name}" for name in result.missing)
        logger.warn("\n".join(lines))
    if not result.repos:
        logger.warn(
            "No repos found for puppet usage. "
            "Confirm that you are running puppet in the top directory."
        )


# =============================================================================
# Progress
# =============================================================================


class ProgressReporter(Protocol):
    def start(self, total: float = 100) -> None: ...

    def increment(self, amount: float) -> None: ...

    def stop(self) -> None: ...


class NullProgress:
    """Progress sink that discards every signal."""

    def start(self, total: float = 100) -> None:
        pass

    def increment(self, amount: float) -> None:
        pass

    def stop(self) -> None:
        pass


class RichProgress:
    """Progress bar rendered with rich."""

    def __init__(self, console: Console, description: str = "Puppet Progress"):
        self.console = console
        self.description = description
        self._progress: Progress | None = None
        self._task: TaskID | None = None

    def start(self, total: float = 100) -> None:
        self._progress = Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(complete_style="cyan"),
            TaskProgressColumn(),
            console=self.console,
        )
        self._progress.start()
        self._task = self._progress.add_task(self.description, total=total)

    def increment(self, amount: float) -> None:
        if self._progress is not None and self._task is not None:
            self._progress.advance(self._task, amount)

    def stop(self) -> None:
        if self._progress is not None:
            self._progress.stop()
        self._progress = None
        self._task = None


# =============================================================================
# Batch Execution
# =============================================================================


class BatchRunner:
    """Run one command per repo concurrently and collect the outcomes."""

    def __init__(
        self,
        logger: PuppetLogger,
        *,
        shell: CommandShell | None = None,
        branch_query: BranchQuery = current_branch,
        progress: ProgressReporter | None = None,
        install_command: str = DEFAULT_INSTALL_COMMAND,
        max_workers: int = DEFAULT_MAX_WORKERS,
    ):
        self.logger = logger
        self.shell = shell if shell is not None else ShellExecutor()
        self.branch_query = branch_query
        self.progress = progress if progress is not None else NullProgress()
        self.install_command = install_command
        self.max_workers = max_workers

    def run_batch(
        self,
        command: str | None,
        repos: list[RepoRef],
        show_progress: bool = False,
        sequential: bool = False,
    ) -> BatchResult:
        """Run ``command`` in every repo, or the sync command when it is None."""
        if command is not None:
            command = command.replace("\n", "")
        return self._execute([(repo, command) for repo in repos], show_progress, sequential)

    def run_commands(
        self,
        commands: list[tuple[RepoRef, str]],
        show_progress: bool = False,
        sequential: bool = False,
    ) -> BatchResult:
        """Run a distinct command per entry; a repo may appear more than once."""
        jobs = [(repo, command.replace("\n", "")) for repo, command in commands]
        return self._execute(jobs, show_progress, sequential)

    def _sync_command_for(self, repo: RepoRef) -> str:
        branch = self.branch_query(repo.path)
        return sync_command(branch, self.install_command)

    def _execute(
        self,
        jobs: list[tuple[RepoRef, str | None]],
        show_progress: bool,
        sequential: bool,
    ) -> BatchResult:
        result = BatchResult()
        if not jobs:
            return result

        progress = self.progress if show_progress else NullProgress()
        step = 100 / len(jobs)
        progress.start(total=100)
        try:
            for repo, outcome in self._settle(jobs, sequential):
                result.attempted += 1
                if isinstance(outcome, RepoCommandError):
                    self.logger.log(f"Command error in {repo.name}")
                    self.logger.log(str(outcome))
                    result.failed.append(RepoFailure(repo=repo, error=outcome))
                else:
                    self._log_output(repo, outcome)
                    result.succeeded.add(repo)
                    result.outputs[repo] = outcome
                progress.increment(step)
        finally:
            progress.stop()

        if result.failed:
            lines = ["Error in commands"]
            lines.extend(f"  - {failure.error}" for failure in result.failed)
            self.logger.warn("\n".join(lines))
        return result

    def _settle(
        self,
        jobs: list[tuple[RepoRef, str | None]],
        sequential: bool,
    ) -> Iterator[tuple[RepoRef, ShellOutput | RepoCommandError]]:
        """Yield each job's repo with its outcome, in completion order."""
        if sequential or len(jobs) <= 1:
            for repo, command in jobs:
                yield repo, self._attempt(repo, command)
            return

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {
                executor.submit(self._attempt, repo, command): repo for repo, command in jobs
            }
            for future in as_completed(futures):
                yield futures[future], future.result()

    def _attempt(self, repo: RepoRef, command: str | None) -> ShellOutput | RepoCommandError:
        if command is None:
            try:
                command = self._sync_command_for(repo)
            except VcsQueryError as e:
                return RepoCommandError(repo.name, "<sync>", stderr=str(e))
        self.logger.log(f"Running command: {command} in {repo.name}")
        try:
            return self.shell.run(repo.path, command)
        except RepoCommandError as e:
            return e

    def _log_output(self, repo: RepoRef, output: ShellOutput) -> None:
        if not self.logger.verbose:
            return
        self.logger.log(f"Finished command in {repo.name}")
        self.logger.log("STDOUT")
        for line in output.stdout.split("\n"):
            self.logger.log(line)
        self.logger.log("STDERR")
        for line in output.stderr.split("\n"):
            self.logger.log(line)


# =============================================================================
# Workspace Manager
# =============================================================================


class PuppetManager:
    """Operate on every sub-repo under a workspace root."""

    def __init__(
        self,
        root_path: Path,
        logger: PuppetLogger,
        runner: BatchRunner,
        *,
        branch_query: BranchQuery = current_branch,
    ):
        self.root_path = root_path.resolve()
        self.logger = logger
        self.runner = runner
        self.branch_query = branch_query

    def discover(self, filter_names: Iterable[str] | None = None) -> DiscoveryResult:
        """Discover sub-repos, reporting skips and missing filter names."""
        return discover_repositories(
            self.root_path,
            filter_names,
            branch_query=self.branch_query,
            logger=self.logger,
        )

    def repo(self, name: str) -> RepoRef:
        return RepoRef(name=name, path=self.root_path / name)

    def run_command(
        self,
        command: str | None,
        filter_names: Iterable[str] | None = None,
        *,
        show_progress: bool = True,
        sequential: bool = False,
    ) -> BatchResult:
        """Run ``command`` (or the sync command) across discovered repos."""
        filter_list = list(filter_names) if filter_names is not None else None
        discovery = self.discover(filter_list)
        self.logger.log("Puppet configuration")
        self.logger.log(
            {
                "rootPath": str(self.root_path),
                "filter": filter_list,
                "command": command,
                "repos": discovery.names,
            }
        )
        if not discovery.repos:
            return BatchResult()
        self.logger.info("Running puppets...")
        result = self.runner.run_batch(
            command, discovery.repos, show_progress=show_progress, sequential=sequential
        )
        self.logger.info("Puppets done!")
        return result
