"""Output formatters for console and JSON display."""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.table import Table

if TYPE_CHECKING:
    from .core import BatchResult, BranchSnapshot


class OutputFormatter:
    """Format output for console or JSON."""

    def __init__(self, console: Console, use_json: bool = False):
        self.console = console
        self.use_json = use_json

    def _print_json(self, data: Any):
        """Print JSON output."""
        print(json.dumps(data, indent=2))

    def print_branches(self, branches: list[BranchSnapshot], title: str = "Branches Info"):
        """Print the branch checked out in each repository."""
        if self.use_json:
            self._print_json(
                {"branches": [{"repository": b.repo, "branch": b.branch} for b in branches]}
            )
            return
        self.console.print(self._branch_table(branches, title))

    def print_config(self, name: str, entries: list[BranchSnapshot]):
        """Print a single saved configuration."""
        if self.use_json:
            self._print_json(
                {
                    "name": name,
                    "entries": [{"repository": e.repo, "branch": e.branch} for e in entries],
                }
            )
            return
        self.console.print(self._branch_table(entries, f"Here is the config for {name}"))

    def print_config_names(self, names: list[str]):
        """Print the names of all stored configurations."""
        if self.use_json:
            self._print_json({"configs": names})
            return
        self.console.print("[bright_green]Here are the stored configs[/]")
        for name in names:
            self.console.print(f"  - {name}", style="bright_green", markup=False)

    def print_batch_result(self, result: BatchResult):
        """Print the outcome of a batch run."""
        if self.use_json:
            self._print_json(result.to_dict())
            return

        parts = [f"[bold]Total:[/] {result.total}"]
        if result.succeeded:
            parts.append(f"[green]✓ Succeeded:[/] {len(result.succeeded)}")
        if result.failed:
            parts.append(f"[red]✗ Failed:[/] {len(result.failed)}")
        self.console.print(" | ".join(parts))

    def _branch_table(self, branches: list[BranchSnapshot], title: str) -> Table:
        table = Table(title=title)
        table.add_column("Repository", style="cyan", no_wrap=True)
        table.add_column("Branch", style="green")
        for snapshot in branches:
            table.add_row(snapshot.repo, snapshot.branch)
        return table
