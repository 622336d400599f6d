"""Command-line interface for git-puppet."""

from __future__ import annotations

import json
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

import typer
from rich.console import Console

from ._version import __version__
from .configs import ConfigStore
from .core import (
    BatchResult,
    BatchRunner,
    PuppetLogger,
    PuppetManager,
    RichProgress,
    ShellExecutor,
    current_branch,
)
from .exceptions import ConfigFormatError, ConfigNotFoundError, SettingsError
from .formatters import OutputFormatter
from .schema import get_tool_schema
from .settings import PuppetSettings, load_settings

app = typer.Typer(
    name="puppet",
    help="Run commands across every sub-repo of a workspace and save branch configurations.",
    no_args_is_help=True,
)


@dataclass
class GlobalOptions:
    verbose: bool = False
    root: Path | None = None


@dataclass
class Runtime:
    """Everything a command needs, built once per invocation."""

    settings: PuppetSettings
    logger: PuppetLogger
    formatter: OutputFormatter
    manager: PuppetManager
    store: ConfigStore


def version_callback(value: bool):
    """Print version and exit."""
    if value:
        print(f"git-puppet {__version__}")
        raise typer.Exit()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Verbose mode: log commands and their output",
    ),
    root: Path = typer.Option(
        None,
        "--root",
        "-C",
        help="Workspace root holding the sub-repos (default: current directory)",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    schema: bool = typer.Option(
        False,
        "--schema",
        help="Output MCP-compatible tool schema for AI agents",
    ),
):
    """puppet: pull the strings of every sub-repo at once."""
    if schema:
        print(json.dumps(get_tool_schema(), indent=2))
        raise typer.Exit()
    ctx.obj = GlobalOptions(verbose=verbose, root=root)


def build_runtime(ctx: typer.Context, json_output: bool = False) -> Runtime:
    """Create console, logger, formatter and the workspace manager."""
    options: GlobalOptions = ctx.obj or GlobalOptions()
    # In JSON mode stdout carries only the document.
    log_console = Console(stderr=json_output)
    logger = PuppetLogger(log_console, verbose=options.verbose)
    formatter = OutputFormatter(Console(), use_json=json_output)

    try:
        settings = load_settings()
    except SettingsError as e:
        logger.warn(str(e))
        raise typer.Exit(1) from e

    runner = BatchRunner(
        logger,
        shell=ShellExecutor(),
        branch_query=current_branch,
        progress=RichProgress(log_console),
        install_command=settings.install_command,
        max_workers=settings.max_workers,
    )
    root_path = options.root if options.root else Path.cwd()
    manager = PuppetManager(root_path, logger, runner, branch_query=current_branch)
    store = ConfigStore(settings.config_file, logger)
    return Runtime(
        settings=settings,
        logger=logger,
        formatter=formatter,
        manager=manager,
        store=store,
    )


@contextmanager
def config_required(logger: PuppetLogger) -> Iterator[None]:
    """Exit with status 1 when the configuration file is missing or unreadable."""
    try:
        yield
    except (ConfigNotFoundError, ConfigFormatError) as e:
        logger.warn(str(e))
        raise typer.Exit(1) from e


@app.command()
def command(
    ctx: typer.Context,
    shell_command: str = typer.Argument(
        ...,
        metavar="COMMAND",
        help="Command to send to every sub repo. Wrap it in quotes",
    ),
    filter_names: list[str] = typer.Option(
        None,
        "--filter",
        "-f",
        help="Sub repo to use (repeatable)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
    sequential: bool = typer.Option(
        False,
        "--sequential",
        "-s",
        help="Run sequentially instead of parallel",
    ),
):
    """Send a command to all sub repos."""
    rt = build_runtime(ctx, json_output)
    if not shell_command.strip():
        rt.logger.warn("Command is empty. Use puppet update to sync every sub repo")
        raise typer.Exit(1)
    result = rt.manager.run_command(
        shell_command,
        filter_names or None,
        show_progress=not json_output,
        sequential=sequential,
    )
    if json_output or result.total:
        rt.formatter.print_batch_result(result)


@app.command()
def update(
    ctx: typer.Context,
    filter_names: list[str] = typer.Option(
        None,
        "--filter",
        "-f",
        help="Sub repo to use (repeatable)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
    sequential: bool = typer.Option(
        False,
        "--sequential",
        "-s",
        help="Run sequentially instead of parallel",
    ),
):
    """Update all sub repos to their current branch."""
    rt = build_runtime(ctx, json_output)
    result = rt.manager.run_command(
        None,
        filter_names or None,
        show_progress=not json_output,
        sequential=sequential,
    )
    if json_output or result.total:
        rt.formatter.print_batch_result(result)


@app.command()
def branches(
    ctx: typer.Context,
    filter_names: list[str] = typer.Option(
        None,
        "--filter",
        "-f",
        help="Sub repo to use (repeatable)",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """Get the list of branches for all your sub repos."""
    rt = build_runtime(ctx, json_output)
    discovery = rt.manager.discover(filter_names or None)
    if json_output or discovery.branches:
        rt.formatter.print_branches(discovery.branches)


@app.command()
def save(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of the saved config"),
    filter_names: list[str] = typer.Option(
        None,
        "--filter",
        "-f",
        help="Sub repo to use (repeatable)",
    ),
):
    """Save the current branch configuration for all sub repos."""
    rt = build_runtime(ctx)
    rt.logger.info(f"Saving config {name}")
    discovery = rt.manager.discover(filter_names or None)
    with config_required(rt.logger):
        rt.store.save(name, discovery.branches)


@app.command()
def remove(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of config to delete"),
):
    """Remove a branch configuration."""
    rt = build_runtime(ctx)
    rt.logger.info(f"Removing {name} configuration")
    with config_required(rt.logger):
        rt.store.remove(name)


@app.command()
def run(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Name of config to run"),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """Change to a saved branch configuration."""
    rt = build_runtime(ctx, json_output)
    with config_required(rt.logger):
        result = rt.store.run(name, rt.manager.runner, rt.manager.root_path)
    if json_output:
        rt.formatter.print_batch_result(result if result is not None else BatchResult())


@app.command()
def get(
    ctx: typer.Context,
    name: str = typer.Argument(None, help="Name of config to show"),
    json_output: bool = typer.Option(
        False,
        "--json",
        "-j",
        help="Output as JSON",
    ),
):
    """View all configurations, or the branches of one configuration."""
    rt = build_runtime(ctx, json_output)
    with config_required(rt.logger):
        found = rt.store.get(name)
    if found is None:
        if json_output:
            rt.formatter.print_config(name, [])
        return
    if name is None:
        rt.formatter.print_config_names(found)
    else:
        rt.formatter.print_config(name, found)


# Short aliases
app.command("co", hidden=True)(command)
app.command("up", hidden=True)(update)
app.command("br", hidden=True)(branches)
app.command("sv", hidden=True)(save)
app.command("rm", hidden=True)(remove)
app.command("rn", hidden=True)(run)
app.command("gt", hidden=True)(get)
