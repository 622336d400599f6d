"""Tests for the batch command executor."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest
from conftest import FakeShell, RecordingProgress, console_text

from git_puppet.core import (
    BatchRunner,
    PuppetLogger,
    RepoRef,
    ShellExecutor,
    ShellOutput,
    checkout_command,
    sync_command,
)
from git_puppet.exceptions import RepoCommandError


def refs(root: Path, *names: str) -> list[RepoRef]:
    return [RepoRef(name=name, path=root / name) for name in names]


@pytest.fixture
def progress() -> RecordingProgress:
    return RecordingProgress()


@pytest.fixture
def runner(logger, fake_shell, branch_query, progress) -> BatchRunner:
    return BatchRunner(
        logger,
        shell=fake_shell,
        branch_query=branch_query,
        progress=progress,
        max_workers=4,
    )


def test_failure_in_one_repo_does_not_stop_the_others(logger, branch_query, workspace):
    shell = FakeShell(failing={"alpha"})
    runner = BatchRunner(logger, shell=shell, branch_query=branch_query)
    alpha, beta = refs(workspace, "alpha", "beta")

    result = runner.run_batch("make test", [alpha, beta])

    assert result.succeeded == {beta}
    assert [failure.repo for failure in result.failed] == [alpha]
    assert result.failed[0].error.returncode == 1
    assert sorted(shell.calls) == [("alpha", "make test"), ("beta", "make test")]
    assert not result.ok


def test_every_repo_fails_and_the_call_still_returns(logger, branch_query, workspace):
    shell = FakeShell(failing={"alpha", "beta", "gamma"})
    runner = BatchRunner(logger, shell=shell, branch_query=branch_query)

    result = runner.run_batch("false", refs(workspace, "alpha", "beta", "gamma"))

    assert result.succeeded == set()
    assert sorted(f.repo.name for f in result.failed) == ["alpha", "beta", "gamma"]
    assert result.total == 3


def test_explicit_command_has_newlines_stripped(runner, fake_shell, workspace):
    runner.run_batch("git fetch &&\ngit status\n", refs(workspace, "alpha"))

    assert fake_shell.calls == [("alpha", "git fetch &&git status")]


def test_sync_command_uses_branch_at_execution_time(runner, fake_shell, branches, workspace):
    branches["alpha"] = "hotfix"

    runner.run_batch(None, refs(workspace, "alpha", "beta"))

    assert sorted(fake_shell.calls) == [
        ("alpha", sync_command("hotfix")),
        ("beta", sync_command("feature/login")),
    ]


def test_sync_branch_failure_fails_only_that_repo(runner, fake_shell, branches, workspace):
    branches["beta"] = None

    result = runner.run_batch(None, refs(workspace, "alpha", "beta"))

    assert [r.name for r in result.succeeded] == ["alpha"]
    assert [f.repo.name for f in result.failed] == ["beta"]
    assert "HEAD is not a branch" in str(result.failed[0].error)
    assert fake_shell.calls == [("alpha", sync_command("main"))]


def test_progress_signals_cover_every_repo(runner, progress, workspace):
    shell_refs = refs(workspace, "alpha", "beta", "gamma", "delta")
    runner.shell = FakeShell(failing={"beta"})

    runner.run_batch("ls", shell_refs, show_progress=True)

    assert progress.events[0] == ("start", 100)
    assert progress.events[-1] == ("stop", None)
    increments = [amount for kind, amount in progress.events if kind == "increment"]
    assert increments == [25.0] * 4


def test_no_progress_signals_when_disabled(runner, progress, workspace):
    runner.run_batch("ls", refs(workspace, "alpha", "beta"))

    assert progress.events == []


def test_empty_batch_returns_immediately(runner, progress, fake_shell):
    result = runner.run_batch("ls", [], show_progress=True)

    assert result.total == 0
    assert progress.events == []
    assert fake_shell.calls == []


def test_failures_are_summarized_in_one_warning(logger, console, branch_query, workspace):
    shell = FakeShell(failing={"alpha", "gamma"})
    runner = BatchRunner(logger, shell=shell, branch_query=branch_query)

    runner.run_batch("npm test", refs(workspace, "alpha", "beta", "gamma"))

    text = console_text(console)
    assert text.count("Error in commands") == 1
    assert "alpha exploded" in text
    assert "gamma exploded" in text


def test_verbose_logging_prints_output_lines(runner, console, workspace):
    runner.run_batch("ls", refs(workspace, "alpha"))

    text = console_text(console)
    assert "Running command: ls in alpha" in text
    assert "Finished command in alpha" in text
    assert "STDOUT" in text
    assert "ran in alpha" in text
    assert "STDERR" in text
    assert "warning: noisy" in text


def test_quiet_logger_hides_command_output(quiet_logger, console, fake_shell, branch_query, workspace):
    runner = BatchRunner(quiet_logger, shell=fake_shell, branch_query=branch_query)

    runner.run_batch("ls", refs(workspace, "alpha", "beta"))

    assert console_text(console) == ""


def test_outputs_are_kept_for_succeeded_repos(runner, workspace):
    alpha, beta = refs(workspace, "alpha", "beta")

    result = runner.run_batch("ls", [alpha, beta])

    assert result.outputs[alpha].stdout.startswith("ran in alpha")
    assert set(result.outputs) == {alpha, beta}


def test_sequential_mode_runs_in_order(runner, fake_shell, workspace):
    runner.shell = FakeShell(failing={"beta"})

    result = runner.run_batch("ls", refs(workspace, "alpha", "beta", "gamma"), sequential=True)

    assert [name for name, _ in runner.shell.calls] == ["alpha", "beta", "gamma"]
    assert len(result.succeeded) == 2


def test_run_commands_sends_each_repo_its_own_command(runner, fake_shell, workspace):
    alpha, beta = refs(workspace, "alpha", "beta")

    runner.run_commands([(alpha, checkout_command("main")), (beta, checkout_command("feature"))])

    assert sorted(fake_shell.calls) == [
        ("alpha", "git checkout main"),
        ("beta", "git checkout feature"),
    ]


def test_batch_result_to_dict(logger, branch_query, workspace):
    runner = BatchRunner(logger, shell=FakeShell(failing={"beta"}), branch_query=branch_query)

    data = runner.run_batch("ls", refs(workspace, "gamma", "beta", "alpha")).to_dict()

    assert data["total"] == 3
    assert data["succeeded"] == ["alpha", "gamma"]
    assert data["failed"][0]["name"] == "beta"
    assert data["failed"][0]["returncode"] == 1


def test_sync_command_shape():
    assert sync_command("main") == (
        "git stash && git checkout main && git pull origin main && npm i"
    )
    assert sync_command("main", "") == "git stash && git checkout main && git pull origin main"
    assert sync_command("odd name", "pip install -e .").startswith(
        "git stash && git checkout 'odd name' && git pull origin 'odd name'"
    )


def test_logger_renders_dicts_as_json(console):
    PuppetLogger(console, verbose=True).log({"command": "ls", "repos": ["alpha"]})

    assert '{"command": "ls", "repos": ["alpha"]}' in console_text(console)


class TestShellExecutor:
    def test_captures_stdout_and_stderr(self, tmp_path):
        output = ShellExecutor().run(tmp_path, "echo out; echo err 1>&2")

        assert output.stdout == "out\n"
        assert output.stderr == "err\n"

    def test_runs_inside_the_directory(self, tmp_path):
        (tmp_path / "marker.txt").write_text("x")

        output = ShellExecutor().run(tmp_path, "ls")

        assert "marker.txt" in output.stdout

    def test_nonzero_exit_raises(self, tmp_path):
        with pytest.raises(RepoCommandError) as exc_info:
            ShellExecutor().run(tmp_path, "echo nope 1>&2; exit 3")

        assert exc_info.value.returncode == 3
        assert exc_info.value.repo == tmp_path.name
        assert "nope" in exc_info.value.stderr

    def test_missing_directory_raises(self, tmp_path):
        with pytest.raises(RepoCommandError) as exc_info:
            ShellExecutor().run(tmp_path / "gone", "ls")

        assert exc_info.value.returncode is None


class BarrierShell(FakeShell):
    """Every call blocks until all ``parties`` calls are in flight at once."""

    def __init__(self, parties: int, failing: set[str] | None = None):
        super().__init__(failing=failing)
        self.barrier = threading.Barrier(parties, timeout=5)

    def run(self, cwd: Path, command: str) -> ShellOutput:
        self.barrier.wait()
        return super().run(cwd, command)


class TestConcurrentExecution:
    def test_commands_run_at_the_same_time(self, logger, branch_query, workspace):
        shell = BarrierShell(3)
        runner = BatchRunner(logger, shell=shell, branch_query=branch_query, max_workers=3)

        result = runner.run_batch("make", refs(workspace, "alpha", "beta", "gamma"))

        assert sorted(r.name for r in result.succeeded) == ["alpha", "beta", "gamma"]
        assert result.failed == []
        assert not shell.barrier.broken

    def test_failing_repo_is_isolated_while_others_run(self, logger, branch_query, workspace):
        shell = BarrierShell(3, failing={"beta"})
        runner = BatchRunner(logger, shell=shell, branch_query=branch_query, max_workers=4)

        result = runner.run_batch("make", refs(workspace, "alpha", "beta", "gamma"))

        assert sorted(r.name for r in result.succeeded) == ["alpha", "gamma"]
        assert [f.repo.name for f in result.failed] == ["beta"]
        assert result.total == 3


def test_run_commands_keeps_repeated_repos(runner, fake_shell, workspace):
    alpha, beta = refs(workspace, "alpha", "beta")

    result = runner.run_commands(
        [
            (alpha, checkout_command("main")),
            (alpha, checkout_command("dev")),
            (beta, checkout_command("x")),
        ]
    )

    assert sorted(fake_shell.calls) == [
        ("alpha", "git checkout dev"),
        ("alpha", "git checkout main"),
        ("beta", "git checkout x"),
    ]
    assert result.total == 3
    assert result.succeeded == {alpha, beta}
