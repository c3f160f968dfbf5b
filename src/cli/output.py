"""Terminal output handling using Rich library.

This module provides the OutputHandler class for all CLI terminal output:
colored status messages, a spinner for long diffs and tables for branches,
snapshots, merge requests, conflicts and diffs. Supports verbosity levels
and the --no-color flag.
"""

import json
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional, Sequence

from rich.console import Console
from rich.live import Live
from rich.markup import escape
from rich.spinner import Spinner
from rich.table import Table

from src.models.branch import Branch, BranchDetails
from src.models.diff import ABSENT, ChangeType, Diff, LineOpType
from src.models.merge import (
    ConflictWithResolution,
    MergeHistoryEntry,
    MergeRequest,
    MergeRequestStatus,
)
from src.models.snapshot import Snapshot

# Longest rendering of a conflict value inside a table cell
MAX_VALUE_WIDTH = 40

STATUS_STYLES = {
    MergeRequestStatus.OPEN: "green",
    MergeRequestStatus.CONFLICT: "red",
    MergeRequestStatus.MERGED: "blue",
    MergeRequestStatus.CLOSED: "dim",
}

CHANGE_STYLES = {
    ChangeType.ADDED: ("+", "green"),
    ChangeType.REMOVED: ("-", "red"),
    ChangeType.MODIFIED: ("~", "yellow"),
}


def _short_value(value: Any) -> str:
    if value is ABSENT:
        return "<absent>"
    if isinstance(value, str):
        text = value.replace("\n", "\\n")
    else:
        text = json.dumps(value, sort_keys=True)
    if len(text) > MAX_VALUE_WIDTH:
        text = text[:MAX_VALUE_WIDTH - 3] + "..."
    return escape(text)


class OutputHandler:
    """Handles all terminal output using Rich library.

    Attributes:
        verbosity: Verbosity level (0=summary, 1=info, 2=debug)
        console: Rich Console instance for output

    Example:
        >>> handler = OutputHandler(verbosity=1, no_color=False)
        >>> handler.success("Branch created")
        >>> with handler.spinner("Computing diff..."):
        ...     diff = engine.get_diff(a, b)
    """

    def __init__(self, verbosity: int = 0, no_color: bool = False):
        """Initialize output handler.

        Args:
            verbosity: Verbosity level (0=summary, 1=info, 2=debug)
            no_color: Disable color output if True
        """
        self.verbosity = verbosity
        self.no_color = no_color
        self.console = Console(
            force_terminal=not no_color,
            no_color=no_color,
            highlight=False,
        )

    def success(self, message: str) -> None:
        self.console.print(f"[green]✓[/green] {message}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]✗[/red] {message}", style="red")

    def warning(self, message: str) -> None:
        self.console.print(f"[yellow]⚠[/yellow] {message}", style="yellow")

    def info(self, message: str) -> None:
        """Display info message (only if verbosity >= 1)."""
        if self.verbosity >= 1:
            self.console.print(message)

    def debug(self, message: str) -> None:
        """Display debug message (only if verbosity >= 2)."""
        if self.verbosity >= 2:
            self.console.print(f"[dim]{message}[/dim]")

    def print(self, message: str) -> None:
        self.console.print(message)

    def print_json(self, data: Any) -> None:
        """Print data as indented JSON without markup or wrapping."""
        self.console.print(
            json.dumps(data, indent=2, sort_keys=True),
            markup=False,
            highlight=False,
            soft_wrap=True,
        )

    @contextmanager
    def spinner(self, message: str) -> Iterator[None]:
        """Display spinner for single operations.

        Args:
            message: Message to display with spinner

        Yields:
            None
        """
        if self.no_color:
            yield
            return
        spinner = Spinner("dots", text=message)
        with Live(spinner, console=self.console, refresh_per_second=10, transient=True):
            yield

    def print_branches(self, branches: Sequence[Branch]) -> None:
        if not branches:
            self.console.print("[yellow]No branches[/yellow]")
            return

        names = {b.id: b.name for b in branches}
        table = Table(title="Branches")
        table.add_column("Name", style="bold")
        table.add_column("Status")
        table.add_column("Parent")
        table.add_column("Head snapshot")
        table.add_column("Id", overflow="fold")
        for branch in branches:
            name = f"{branch.name} *" if branch.is_default else branch.name
            parent = names.get(branch.parent_branch_id, branch.parent_branch_id or "-")
            table.add_row(
                escape(name),
                branch.status.value,
                escape(parent),
                (branch.head_snapshot_id or "-")[:8],
                branch.id,
            )
        self.console.print(table)

    def print_branch_details(
        self,
        details: BranchDetails,
        ancestors: Optional[List[Branch]] = None,
    ) -> None:
        branch = details.branch
        self.console.print(f"[bold]{escape(branch.name)}[/bold]{' (default)' if branch.is_default else ''}")
        self.console.print(f"  Id:          {branch.id}")
        self.console.print(f"  Suite:       {escape(branch.suite_id)}")
        self.console.print(f"  Status:      {branch.status.value}")
        if branch.description:
            self.console.print(f"  Description: {escape(branch.description)}")
        if ancestors:
            lineage = " <- ".join([branch.name] + [a.name for a in ancestors])
            self.console.print(f"  Lineage:     {escape(lineage)}")
        if branch.forked_from_snapshot_id:
            self.console.print(f"  Forked from: {branch.forked_from_snapshot_id}")
        head = details.head_snapshot
        self.console.print(f"  Head:        {head.id if head else '-'}")
        self.console.print(f"  Snapshots:   {details.snapshot_count}")

    def print_snapshots(self, snapshots: Sequence[Snapshot]) -> None:
        if not snapshots:
            self.console.print("[yellow]No snapshots[/yellow]")
            return

        table = Table(title="Snapshots")
        table.add_column("Id", overflow="fold")
        table.add_column("Captured at")
        table.add_column("Files", justify="right")
        table.add_column("Scenarios", justify="right")
        table.add_column("Hash")
        for snapshot in snapshots:
            table.add_row(
                snapshot.id,
                snapshot.captured_at,
                str(len(snapshot.code_files)),
                str(len(snapshot.scenarios)),
                snapshot.content_hash[:12],
            )
        self.console.print(table)

    def print_merge_requests(self, requests: Sequence[MergeRequest]) -> None:
        if not requests:
            self.console.print("[yellow]No merge requests[/yellow]")
            return

        table = Table(title="Merge requests")
        table.add_column("Title", style="bold")
        table.add_column("Status")
        table.add_column("Created")
        table.add_column("Id", overflow="fold")
        for request in requests:
            style = STATUS_STYLES[request.status]
            table.add_row(
                escape(request.title),
                f"[{style}]{request.status.value}[/{style}]",
                request.created_at,
                request.id,
            )
        self.console.print(table)

    def print_merge_request(self, request: MergeRequest) -> None:
        style = STATUS_STYLES[request.status]
        self.console.print(f"[bold]{escape(request.title)}[/bold]")
        self.console.print(f"  Id:      {request.id}")
        self.console.print(f"  Status:  [{style}]{request.status.value}[/{style}]")
        self.console.print(f"  Source:  {request.source_branch_id} @ {request.source_head_snapshot_id}")
        self.console.print(f"  Target:  {request.target_branch_id} @ {request.target_head_snapshot_id}")
        self.console.print(f"  Base:    {request.base_snapshot_id}")
        if request.description:
            self.console.print(f"  Description: {escape(request.description)}")
        if request.merged_snapshot_id:
            self.console.print(
                f"  Merged:  {request.merged_snapshot_id} at {request.merged_at}"
                f"{' by ' + request.merged_by if request.merged_by else ''}"
            )

    def print_conflicts(self, conflicts: Sequence[ConflictWithResolution]) -> None:
        if not conflicts:
            self.console.print("[green]No conflicts[/green]")
            return

        table = Table(title="Conflicts")
        table.add_column("Kind")
        table.add_column("Path", style="bold")
        table.add_column("Source")
        table.add_column("Target")
        table.add_column("Resolution")
        table.add_column("Id", overflow="fold")
        for item in conflicts:
            conflict = item.conflict
            if item.resolution is not None:
                resolution = f"[green]{item.resolution.strategy.value}[/green]"
            else:
                resolution = "[red]pending[/red]"
            table.add_row(
                conflict.kind.value,
                escape(conflict.path or "<root>"),
                _short_value(conflict.source_value),
                _short_value(conflict.target_value),
                resolution,
                conflict.id,
            )
        self.console.print(table)

        pending = sum(1 for item in conflicts if item.resolution is None)
        if pending:
            self.console.print(f"\n[red]{pending} conflict(s) pending[/red]")
        else:
            self.console.print("\n[green]All conflicts resolved[/green]")

    def print_history(self, entries: Sequence[MergeHistoryEntry]) -> None:
        for entry in entries:
            actor = f" by {escape(entry.actor)}" if entry.actor else ""
            self.console.print(f"{entry.timestamp}  [bold]{entry.action.value}[/bold]{actor}")

    def print_diff(self, diff: Diff, show_lines: bool = False) -> None:
        """Display a diff as change tables.

        Args:
            diff: Diff to display
            show_lines: Also print inserted/deleted lines of code changes
        """
        if diff.is_empty:
            self.console.print("[green]No differences[/green]")
            return

        if diff.code_changes:
            self.console.print("\n[bold]Code:[/bold]")
            for change in diff.code_changes:
                marker, style = CHANGE_STYLES[change.change_type]
                self.console.print(
                    f"  [{style}]{marker}[/{style}] {escape(change.path)} "
                    f"(+{change.inserted_count} -{change.deleted_count})"
                )
                if show_lines:
                    for op in change.line_ops:
                        if op.op == LineOpType.INSERT:
                            self.console.print(f"      [green]+ {escape(op.text)}[/green]")
                        elif op.op == LineOpType.DELETE:
                            self.console.print(f"      [red]- {escape(op.text)}[/red]")

        for title, changes in (("Config", diff.config_changes), ("Scenarios", diff.scenario_changes)):
            if not changes:
                continue
            self.console.print(f"\n[bold]{title}:[/bold]")
            for change in changes:
                marker, style = CHANGE_STYLES[change.change_type]
                self.console.print(
                    f"  [{style}]{marker}[/{style}] {escape(change.key_path or '<root>')}: "
                    f"{_short_value(change.old_value)} -> {_short_value(change.new_value)}"
                )

        self.console.print(f"\n{diff.summary}")
