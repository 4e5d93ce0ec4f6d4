"""CLI interface for snapstage."""

import logging
import signal
import sys
from collections.abc import Callable
from pathlib import Path

import click

from snapstage.config import (
    MAX_CONCURRENCY,
    MIN_CONCURRENCY,
    Config,
    Priority,
    TransferConfig,
    TransferKind,
)
from snapstage.diff.compare import compare_snapshot_files
from snapstage.diff.models import ChangeStatus
from snapstage.errors import SnapstageError
from snapstage.planner import Plan, plan_deployment, plan_staging
from snapstage.snapshot import capture_snapshot
from snapstage.store import load_changeset, save_snapshot, save_summary
from snapstage.transfer import LocalTransferFacility, ProgressReporter, TransferOrchestrator
from snapstage.transfer.progress import format_bytes, format_duration
from snapstage.transfer.results import RunSummary

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    default="WARNING",
    help="Logging verbosity",
)
@click.pass_context
def cli(ctx: click.Context, log_level: str) -> None:
    ctx.ensure_object(dict)
    config = Config(log_level=log_level.upper())
    ctx.obj["config"] = config
    logging.basicConfig(level=config.log_level, format=LOG_FORMAT)


@cli.command()
@click.argument("root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), required=True, help="Snapshot file"
)
@click.option("--exclude", multiple=True, help="Regex of paths to leave out (repeatable)")
@click.option("--progress-interval", type=int, default=10000, help="Log status every N files")
@click.pass_context
def snapshot(
    ctx: click.Context,
    root: Path,
    output: Path,
    exclude: tuple[str, ...],
    progress_interval: int,
) -> None:
    """Capture the file inventory of ROOT."""
    config: Config = ctx.obj["config"]
    config.snapshot.exclude_patterns = list(exclude)
    config.snapshot.progress_interval = progress_interval

    try:
        snap = capture_snapshot(root, config.snapshot.exclude_patterns, progress_interval)
        save_snapshot(snap, output)
    except (SnapstageError, ValueError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        sys.exit(130)

    click.echo(f"Snapshot of {snap.root}: {len(snap):,} files ({format_bytes(snap.total_bytes)})")
    if snap.errors:
        click.echo(f"  Unreadable paths: {len(snap.errors):,}")
    click.echo(f"Saved to: {output}")


@cli.command()
@click.argument("before", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("after", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), required=True, help="Changeset file"
)
@click.option(
    "--errors",
    "error_files",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Extra JSON list of paths to exclude (repeatable)",
)
def compare(before: Path, after: Path, output: Path, error_files: tuple[Path, ...]) -> None:
    """Compare two snapshots and write the changeset."""
    try:
        changeset = compare_snapshot_files(before, after, output, error_files)
    except SnapstageError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    _print_counts(changeset.counts(), changeset.excluded_count)
    click.echo(f"Saved to: {output}")


@cli.command()
@click.argument("changeset_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--limit", type=int, default=20, help="Number of entries to list")
def show(changeset_path: Path, limit: int) -> None:
    """Print a summary of a changeset file."""
    try:
        changeset = load_changeset(changeset_path)
    except SnapstageError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    click.echo(f"Before: {changeset.before_root} ({changeset.before_captured_at:%Y-%m-%d %H:%M})")
    click.echo(f"After:  {changeset.after_root} ({changeset.after_captured_at:%Y-%m-%d %H:%M})")
    _print_counts(changeset.counts(), changeset.excluded_count)

    if limit > 0 and len(changeset):
        click.echo()
        for entry in changeset.entries[:limit]:
            click.echo(f"  {entry.status.value:<9} {_truncate(entry.path, 60):<60} {entry.reason}")
        if len(changeset) > limit:
            click.echo(f"  ... {len(changeset) - limit:,} more")


def transfer_options(func: Callable) -> Callable:
    func = click.option(
        "--summary",
        "summary_path",
        type=click.Path(path_type=Path),
        help="Write the run summary JSON here",
    )(func)
    func = click.option(
        "--poll-interval", type=float, default=2.0, help="Seconds between job status polls"
    )(func)
    func = click.option(
        "--retry-timeout", type=float, default=1200.0, help="Seconds a stalled transfer may retry"
    )(func)
    func = click.option(
        "--retry-interval", type=float, default=60.0, help="Seconds between transfer retries"
    )(func)
    func = click.option(
        "--priority",
        type=click.Choice([p.value for p in Priority], case_sensitive=False),
        default=Priority.NORMAL.value,
        help="Priority passed to the transfer facility",
    )(func)
    func = click.option(
        "--concurrency",
        type=click.IntRange(MIN_CONCURRENCY, MAX_CONCURRENCY),
        default=4,
        help="Maximum concurrent transfers",
    )(func)
    return func


@cli.command()
@click.argument("changeset_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("staging_root", type=click.Path(file_okay=False, path_type=Path))
@transfer_options
@click.pass_context
def stage(
    ctx: click.Context,
    changeset_path: Path,
    staging_root: Path,
    summary_path: Path | None,
    **settings,
) -> None:
    """Copy added and modified files from a changeset into STAGING_ROOT."""
    try:
        changeset = load_changeset(changeset_path)
    except SnapstageError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)

    plan = plan_staging(changeset, staging_root.resolve())
    _run_transfer(ctx, plan, TransferKind.COPY, summary_path, settings)


@cli.command()
@click.argument("staging_root", type=click.Path(exists=True, file_okay=False, path_type=Path))
@transfer_options
@click.pass_context
def deploy(
    ctx: click.Context,
    staging_root: Path,
    summary_path: Path | None,
    **settings,
) -> None:
    """Move staged files from STAGING_ROOT back to their original locations."""
    plan = plan_deployment(staging_root.resolve())
    _run_transfer(ctx, plan, TransferKind.MOVE, summary_path, settings)


def _run_transfer(
    ctx: click.Context,
    plan: Plan,
    kind: TransferKind,
    summary_path: Path | None,
    settings: dict,
) -> None:
    config: Config = ctx.obj["config"]
    try:
        config.transfer = TransferConfig(
            kind=kind,
            concurrency=settings["concurrency"],
            priority=Priority(settings["priority"].lower()),
            retry_interval=settings["retry_interval"],
            retry_timeout=settings["retry_timeout"],
            poll_interval=settings["poll_interval"],
        )
        with LocalTransferFacility(max_workers=config.transfer.concurrency) as facility:
            orchestrator = TransferOrchestrator(
                facility,
                config.transfer,
                reporter=ProgressReporter(config.transfer.progress_interval),
            )
            previous_handler = _install_stop_handler(orchestrator)
            try:
                summary = orchestrator.run(plan.operations, plan.skipped)
            finally:
                signal.signal(signal.SIGINT, previous_handler)
    except SnapstageError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        click.echo("\nTransfer aborted.", err=True)
        sys.exit(130)

    if summary_path:
        save_summary(summary.to_dict(), summary_path)
    _print_summary(summary)

    if summary.aborted or summary.failed_total:
        sys.exit(1)


def _install_stop_handler(orchestrator: TransferOrchestrator):
    """First Ctrl+C drains active jobs, a second one aborts."""

    def handler(signum, frame):  # pylint: disable=unused-argument
        if orchestrator.stop_requested:
            raise KeyboardInterrupt
        click.echo("\nStopping: waiting for active transfers (Ctrl+C again to abort)", err=True)
        orchestrator.request_stop()

    return signal.signal(signal.SIGINT, handler)


def _print_counts(counts: dict[ChangeStatus, int], excluded: int) -> None:
    click.echo("Changes:")
    click.echo(f"  Added:    {counts[ChangeStatus.ADDED]:,}")
    click.echo(f"  Modified: {counts[ChangeStatus.MODIFIED]:,}")
    click.echo(f"  Deleted:  {counts[ChangeStatus.DELETED]:,}")
    if excluded:
        click.echo(f"  Excluded: {excluded:,}")


def _print_summary(summary: RunSummary) -> None:
    click.echo()
    click.echo("=" * 60)
    click.echo(f"{summary.kind.value.upper()} SUMMARY")
    click.echo("=" * 60)
    click.echo(f"  Total operations:  {summary.total_input:,}")
    click.echo(f"  Succeeded:         {summary.succeeded:,}")
    click.echo(f"  Failed:            {summary.failed:,}")
    click.echo(f"  Partial failures:  {summary.partial_failures:,}")
    click.echo(f"  Skipped:           {summary.skipped:,}")
    click.echo(f"  Transferred:       {format_bytes(summary.total_bytes)}")
    click.echo(f"  Duration:          {format_duration(summary.duration_seconds)}")
    if summary.fatal_error:
        click.echo(f"  Aborted:           {summary.fatal_error}")


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return "..." + text[-(max_len - 3) :]


def main() -> None:
    """Entry point for the CLI."""
    cli(standalone_mode=True)  # pylint: disable=no-value-for-parameter


if __name__ == "__main__":
    main()
