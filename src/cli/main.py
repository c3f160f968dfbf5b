"""Main CLI entry point for the suite-branching command.

This module provides the Typer application that serves as the entry point
for the suite-branching command-line tool. Commands are grouped by entity:
``branch``, ``snapshot`` and ``merge-request``, plus ``init`` and ``diff``.
Branches are addressed by name (or id) within a suite; snapshots, merge
requests and conflicts by id.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional

import typer
from rich.markup import escape

from src.api.suite_branching import SuiteBranching
from src.cli.errors import exit_code_for
from src.cli.models import CliOptions, ExitCode
from src.cli.output import OutputHandler
from src.cli.payload import load_payload, parse_custom_value
from src.core.config import DEFAULT_CONFIG_PATH, ConfigLoader
from src.core.errors import BranchingError, ConflictError
from src.models.merge import ConflictKind, ResolutionStrategy

VERSION = "0.1.0"

app = typer.Typer(
    name="suite-branching",
    help="""Branch, diff and merge versioned test suites.

QUICK START:
  suite-branching init checkout                               # Create suite with 'main'
  suite-branching branch create checkout feature-x            # Fork from main
  suite-branching snapshot capture checkout feature-x s.yaml  # Record new content
  suite-branching merge-request create checkout feature-x main
  suite-branching merge-request conflicts <mr-id>
  suite-branching merge-request resolve <conflict-id> target
  suite-branching merge-request execute <mr-id>""",
    add_completion=False,
    rich_markup_mode=None,
    no_args_is_help=True,
)
branch_app = typer.Typer(help="Create, inspect and manage branches.", no_args_is_help=True)
snapshot_app = typer.Typer(help="Capture and inspect snapshots.", no_args_is_help=True)
merge_request_app = typer.Typer(
    help="Propose, resolve and execute merges.", no_args_is_help=True
)
app.add_typer(branch_app, name="branch")
app.add_typer(snapshot_app, name="snapshot")
app.add_typer(merge_request_app, name="merge-request")

# Module logger
logger = logging.getLogger(__name__)

JSON_OPTION = typer.Option(False, "--json", help="Print machine-readable JSON")
ACTOR_OPTION = typer.Option(None, "--actor", help="Actor recorded for this change")


def _configure_logging(verbosity: int, logdir: Optional[str] = None) -> None:
    """Configure logging based on verbosity level.

    Configures only the 'src' namespace logger to avoid affecting third-party
    libraries. The root logger is left unchanged.

    Args:
        verbosity: Verbosity level (0=WARNING, 1=INFO, 2=DEBUG)
        logdir: Optional directory for log files (creates timestamped log file)
    """
    if verbosity == 0:
        level = logging.WARNING
    elif verbosity == 1:
        level = logging.INFO
    else:  # verbosity >= 2
        level = logging.DEBUG

    app_logger = logging.getLogger("src")
    app_logger.setLevel(level)
    app_logger.handlers.clear()

    log_format = "%(asctime)s [%(levelname)8s] %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(log_format, datefmt=date_format)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    app_logger.addHandler(console_handler)

    if logdir:
        log_path = Path(logdir)
        log_path.mkdir(parents=True, exist_ok=True)

        # Timestamped filename in local time
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_file = log_path / f"suite-branching_{timestamp}.log"

        file_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        file_formatter = logging.Formatter(file_format, datefmt=date_format)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(file_formatter)
        app_logger.addHandler(file_handler)

        logger.info(f"Logging to file: {log_file}")


def _open_engine(options: CliOptions) -> SuiteBranching:
    config = ConfigLoader.load(options.config_path)
    if options.database_path:
        config.database_path = options.database_path
    return SuiteBranching(config)


def _run(ctx: typer.Context, action: Callable[[SuiteBranching, OutputHandler], None]) -> None:
    """Open the engine, run one command and map errors to exit codes.

    Args:
        ctx: Typer context carrying CliOptions
        action: Command body
    """
    options: CliOptions = ctx.obj
    output = OutputHandler(verbosity=options.verbosity, no_color=options.no_color)

    try:
        with _open_engine(options) as engine:
            action(engine, output)

    except typer.Exit:
        raise

    except ConflictError as e:
        logger.error(f"Merge blocked: {e}")
        output.error(f"Merge blocked by {len(e.conflict_ids)} unresolved conflict(s):")
        for conflict_id in e.conflict_ids:
            output.print(f"  • {conflict_id}")
        raise typer.Exit(exit_code_for(e))

    except BranchingError as e:
        logger.error(f"Command failed: {e}")
        output.error(escape(str(e)))
        raise typer.Exit(exit_code_for(e))

    except Exception as e:
        logger.exception("Unexpected error")
        output.error(f"Unexpected error: {escape(str(e))}")
        raise typer.Exit(ExitCode.GENERAL_ERROR)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"suite-branching version {VERSION}")
        raise typer.Exit()


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: str = typer.Option(
        DEFAULT_CONFIG_PATH,
        "--config",
        help="Path to the YAML configuration file",
    ),
    database: Optional[str] = typer.Option(
        None,
        "--db",
        help="SQLite database path (overrides config and SUITE_BRANCHING_DB)",
    ),
    logdir: Optional[str] = typer.Option(
        None,
        "--logdir",
        help="Directory for log files (creates timestamped log file)",
    ),
    verbosity: int = typer.Option(
        0,
        "--verbosity",
        "-v",
        help="Verbosity level: 0=summary, 1=info, 2=debug",
    ),
    no_color: bool = typer.Option(
        False,
        "--no-color",
        help="Disable colored output",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Branch, diff and merge versioned test suites."""
    _configure_logging(verbosity, logdir)
    ctx.obj = CliOptions(
        config_path=config,
        database_path=database,
        verbosity=verbosity,
        no_color=no_color,
    )


@app.command("init")
def init_command(
    ctx: typer.Context,
    suite_id: str = typer.Argument(..., help="Test suite id"),
    payload: Optional[str] = typer.Option(
        None, "--payload", help="JSON/YAML file with the initial content"
    ),
    actor: Optional[str] = ACTOR_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Create a suite's default branch (no-op if it already exists)."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        content = load_payload(payload) if payload else None
        branch = engine.create_suite(suite_id, content, created_by=actor)
        if as_json:
            output.print_json(branch.to_dict())
        else:
            output.success(f"Suite '{escape(suite_id)}' ready on branch '{escape(branch.name)}'")
            output.info(f"  Head snapshot: {branch.head_snapshot_id}")

    _run(ctx, action)


@app.command("diff")
def diff_command(
    ctx: typer.Context,
    from_snapshot: str = typer.Argument(..., help="Snapshot id to diff from"),
    to_snapshot: str = typer.Argument(..., help="Snapshot id to diff to"),
    lines: bool = typer.Option(False, "--lines", help="Show changed code lines"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Show the changes between two snapshots."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        with output.spinner("Computing diff..."):
            diff = engine.get_diff(from_snapshot, to_snapshot)
        if as_json:
            output.print_json(diff.to_dict())
        else:
            output.print_diff(diff, show_lines=lines)

    _run(ctx, action)


# ── branch ───────────────────────────────────────────────────────────────────


@branch_app.command("create")
def branch_create(
    ctx: typer.Context,
    suite_id: str = typer.Argument(..., help="Test suite id"),
    name: str = typer.Argument(..., help="New branch name"),
    parent: Optional[str] = typer.Option(
        None, "--parent", "-p", help="Parent branch name or id (default: the default branch)"
    ),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    actor: Optional[str] = ACTOR_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Fork a new branch from its parent's head snapshot."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        parent_id = engine.find_branch(suite_id, parent).id if parent else None
        branch = engine.create_branch(suite_id, name, parent_id, description, created_by=actor)
        if as_json:
            output.print_json(branch.to_dict())
        else:
            output.success(f"Created branch '{escape(branch.name)}'")
            output.info(f"  Id: {branch.id}")
            output.info(f"  Forked from snapshot: {branch.forked_from_snapshot_id}")

    _run(ctx, action)


@branch_app.command("list")
def branch_list(
    ctx: typer.Context,
    suite_id: str = typer.Argument(..., help="Test suite id"),
    as_json: bool = JSON_OPTION,
) -> None:
    """List the branches of a suite."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        branches = engine.list_branches(suite_id)
        if as_json:
            output.print_json([b.to_dict() for b in branches])
        else:
            output.print_branches(branches)

    _run(ctx, action)


@branch_app.command("show")
def branch_show(
    ctx: typer.Context,
    suite_id: str = typer.Argument(..., help="Test suite id"),
    branch: str = typer.Argument(..., help="Branch name or id"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Show a branch with its lineage and head snapshot."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        branch_id = engine.find_branch(suite_id, branch).id
        details = engine.get_branch_details(branch_id)
        ancestors = engine.get_ancestors(branch_id)
        if as_json:
            data = details.branch.to_dict()
            data['snapshot_count'] = details.snapshot_count
            data['ancestors'] = [a.id for a in ancestors]
            data['children'] = [c.id for c in engine.get_children(branch_id)]
            output.print_json(data)
        else:
            output.print_branch_details(details, ancestors)

    _run(ctx, action)


@branch_app.command("compare")
def branch_compare(
    ctx: typer.Context,
    suite_id: str = typer.Argument(..., help="Test suite id"),
    source: str = typer.Argument(..., help="Branch name or id to diff from"),
    target: str = typer.Argument(..., help="Branch name or id to diff to"),
    lines: bool = typer.Option(False, "--lines", help="Show changed code lines"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Show the changes between the heads of two branches."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        source_id = engine.find_branch(suite_id, source).id
        target_id = engine.find_branch(suite_id, target).id
        with output.spinner("Computing diff..."):
            diff = engine.compare_branches(source_id, target_id)
        if as_json:
            output.print_json(diff.to_dict())
        else:
            output.print_diff(diff, show_lines=lines)

    _run(ctx, action)


@branch_app.command("update")
def branch_update(
    ctx: typer.Context,
    suite_id: str = typer.Argument(..., help="Test suite id"),
    branch: str = typer.Argument(..., help="Branch name or id"),
    name: Optional[str] = typer.Option(None, "--name", help="New branch name"),
    status: Optional[str] = typer.Option(
        None, "--status", help="New status: merged, closed or archived"
    ),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Rename a branch, change its description or move its status."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        branch_id = engine.find_branch(suite_id, branch).id
        updated = engine.update_branch(branch_id, name=name, status=status, description=description)
        if as_json:
            output.print_json(updated.to_dict())
        else:
            output.success(f"Updated branch '{escape(updated.name)}' ({updated.status.value})")

    _run(ctx, action)


@branch_app.command("delete")
def branch_delete(
    ctx: typer.Context,
    suite_id: str = typer.Argument(..., help="Test suite id"),
    branch: str = typer.Argument(..., help="Branch name or id"),
) -> None:
    """Delete a branch (its snapshots are kept)."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        target = engine.find_branch(suite_id, branch)
        engine.delete_branch(target.id)
        output.success(f"Deleted branch '{escape(target.name)}'")

    _run(ctx, action)


# ── snapshot ─────────────────────────────────────────────────────────────────


@snapshot_app.command("capture")
def snapshot_capture(
    ctx: typer.Context,
    suite_id: str = typer.Argument(..., help="Test suite id"),
    branch: str = typer.Argument(..., help="Branch name or id"),
    payload: str = typer.Argument(..., help="JSON/YAML file {codeFiles, scenarios, config}"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Capture generated content as the branch's new head snapshot."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        branch_id = engine.find_branch(suite_id, branch).id
        previous = engine.get_head_snapshot(branch_id)
        snapshot = engine.capture_snapshot(branch_id, load_payload(payload))
        if as_json:
            output.print_json(snapshot.to_dict(include_content=False))
        elif previous is not None and previous.id == snapshot.id:
            output.warning(f"Content unchanged; head stays at snapshot {snapshot.id}")
        else:
            output.success(f"Captured snapshot {snapshot.id}")

    _run(ctx, action)


@snapshot_app.command("show")
def snapshot_show(
    ctx: typer.Context,
    snapshot_id: str = typer.Argument(..., help="Snapshot id"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Show a snapshot's content."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        snapshot = engine.get_snapshot(snapshot_id)
        if as_json:
            output.print_json(snapshot.to_dict())
            return
        output.print(f"[bold]Snapshot {snapshot.id}[/bold]")
        output.print(f"  Branch:   {snapshot.branch_id}")
        output.print(f"  Captured: {snapshot.captured_at}")
        output.print(f"  Hash:     {snapshot.content_hash}")
        output.print(f"  Files ({len(snapshot.code_files)}):")
        for path in sorted(snapshot.code_files):
            output.print(f"    {escape(path)}")
        output.print(f"  Scenarios: {len(snapshot.scenarios)}")
        output.print(f"  Config keys: {escape(', '.join(sorted(snapshot.config))) or '-'}")

    _run(ctx, action)


@snapshot_app.command("list")
def snapshot_list(
    ctx: typer.Context,
    suite_id: str = typer.Argument(..., help="Test suite id"),
    branch: str = typer.Argument(..., help="Branch name or id"),
    as_json: bool = JSON_OPTION,
) -> None:
    """List a branch's snapshots, oldest first."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        snapshots = engine.list_snapshots(engine.find_branch(suite_id, branch).id)
        if as_json:
            output.print_json([s.to_dict(include_content=False) for s in snapshots])
        else:
            output.print_snapshots(snapshots)

    _run(ctx, action)


# ── merge-request ────────────────────────────────────────────────────────────


@merge_request_app.command("create")
def merge_request_create(
    ctx: typer.Context,
    suite_id: str = typer.Argument(..., help="Test suite id"),
    source: str = typer.Argument(..., help="Source branch name or id"),
    target: str = typer.Argument(..., help="Target branch name or id"),
    title: Optional[str] = typer.Option(None, "--title"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    actor: Optional[str] = ACTOR_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Propose merging SOURCE into TARGET and detect conflicts."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        source_id = engine.find_branch(suite_id, source).id
        target_id = engine.find_branch(suite_id, target).id
        with output.spinner("Computing diffs..."):
            request = engine.create_merge_request(
                source_id, target_id, title=title, description=description, created_by=actor
            )
        conflicts = engine.list_conflicts(request.id)
        if as_json:
            data = request.to_dict()
            data['conflict_ids'] = [item.conflict.id for item in conflicts]
            output.print_json(data)
            return
        output.success(f"Created merge request {request.id} ({request.status.value})")
        if conflicts:
            output.warning(f"{len(conflicts)} conflict(s) must be resolved before merging")
            output.print_conflicts(conflicts)

    _run(ctx, action)


@merge_request_app.command("list")
def merge_request_list(
    ctx: typer.Context,
    suite_id: str = typer.Argument(..., help="Test suite id"),
    status: Optional[str] = typer.Option(
        None, "--status", help="Filter: open, conflict, merged or closed"
    ),
    as_json: bool = JSON_OPTION,
) -> None:
    """List a suite's merge requests, newest first."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        requests = engine.list_merge_requests(suite_id, status)
        if as_json:
            output.print_json([r.to_dict() for r in requests])
        else:
            output.print_merge_requests(requests)

    _run(ctx, action)


@merge_request_app.command("show")
def merge_request_show(
    ctx: typer.Context,
    merge_request_id: str = typer.Argument(..., help="Merge request id"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Show a merge request."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        request = engine.get_merge_request(merge_request_id)
        if as_json:
            output.print_json(request.to_dict())
        else:
            output.print_merge_request(request)

    _run(ctx, action)


@merge_request_app.command("conflicts")
def merge_request_conflicts(
    ctx: typer.Context,
    merge_request_id: str = typer.Argument(..., help="Merge request id"),
    as_json: bool = JSON_OPTION,
) -> None:
    """List a merge request's conflicts with their resolutions."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        conflicts = engine.list_conflicts(merge_request_id)
        if as_json:
            output.print_json([
                {
                    'conflict': item.conflict.to_dict(),
                    'resolution': item.resolution.to_dict() if item.resolution else None,
                }
                for item in conflicts
            ])
        else:
            output.print_conflicts(conflicts)

    _run(ctx, action)


@merge_request_app.command("resolve")
def merge_request_resolve(
    ctx: typer.Context,
    conflict_id: str = typer.Argument(..., help="Conflict id"),
    strategy: str = typer.Argument(
        ..., help=f"Strategy: {', '.join(s.value for s in ResolutionStrategy)}"
    ),
    value: Optional[str] = typer.Option(
        None, "--value", help="Custom value as JSON (null deletes a code file)"
    ),
    value_file: Optional[str] = typer.Option(
        None, "--value-file", help="File with the custom value (verbatim for code conflicts)"
    ),
    actor: Optional[str] = ACTOR_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Settle one conflict with a resolution strategy."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        conflict = engine.get_conflict(conflict_id).conflict
        custom_value = parse_custom_value(
            value, value_file, raw_text=conflict.kind == ConflictKind.CODE
        )
        resolution = engine.resolve_conflict(conflict_id, strategy, custom_value, resolved_by=actor)
        if as_json:
            output.print_json(resolution.to_dict())
            return
        output.success(
            f"Resolved {conflict.kind.value} conflict at {escape(conflict.path or '<root>')} "
            f"with '{resolution.strategy.value}'"
        )
        request = engine.get_merge_request(conflict.merge_request_id)
        output.info(f"  Merge request status: {request.status.value}")

    _run(ctx, action)


@merge_request_app.command("execute")
def merge_request_execute(
    ctx: typer.Context,
    merge_request_id: str = typer.Argument(..., help="Merge request id"),
    actor: Optional[str] = ACTOR_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Merge the source changes into the target branch."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        snapshot = engine.execute_merge(merge_request_id, merged_by=actor)
        if as_json:
            output.print_json(snapshot.to_dict(include_content=False))
        else:
            output.success(f"Merged as snapshot {snapshot.id}")

    _run(ctx, action)


@merge_request_app.command("close")
def merge_request_close(
    ctx: typer.Context,
    merge_request_id: str = typer.Argument(..., help="Merge request id"),
    actor: Optional[str] = ACTOR_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Close a merge request without merging."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        request = engine.close_merge_request(merge_request_id, actor=actor)
        if as_json:
            output.print_json(request.to_dict())
        else:
            output.success(f"Closed merge request {request.id}")

    _run(ctx, action)


@merge_request_app.command("history")
def merge_request_history(
    ctx: typer.Context,
    merge_request_id: str = typer.Argument(..., help="Merge request id"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Show the audit history of a merge request."""
    def action(engine: SuiteBranching, output: OutputHandler) -> None:
        entries = engine.get_history(merge_request_id)
        if as_json:
            output.print_json([e.to_dict() for e in entries])
        else:
            output.print_history(entries)

    _run(ctx, action)


def main() -> None:
    """Main entry point for the CLI application.

    This function is called when the module is executed directly or
    when the console script is invoked.
    """
    app()


# Allow running as: python -m src.cli.main
if __name__ == "__main__":
    main()
