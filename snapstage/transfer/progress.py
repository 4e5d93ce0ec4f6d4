"""Progress reporting for transfer runs."""

import sys

from snapstage.transfer.results import ResultAggregator, RunSummary


class ProgressReporter:
    """Reports transfer progress to the user."""

    def __init__(self, interval: int = 100):
        self.interval = interval
        self._last_report_count = 0

    def report_start(self, kind: str, operations: int, planned_bytes: int) -> None:
        print(f"Starting {kind}: {operations:,} operations ({format_bytes(planned_bytes)})")

    def report_if_needed(self, aggregator: ResultAggregator, active: int) -> None:
        if aggregator.completed - self._last_report_count >= self.interval:
            self._print_progress(aggregator, active)
            self._last_report_count = aggregator.completed

    def report_completion(self, summary: RunSummary) -> None:
        duration = format_duration(summary.duration_seconds)
        print(
            f"\n{summary.kind.value.capitalize()} complete: {summary.succeeded:,} succeeded, "
            f"{summary.failed:,} failed, {summary.partial_failures:,} partial failures, "
            f"{summary.skipped:,} skipped of {summary.total_input:,} ({duration})"
        )
        print(f"Transferred: {format_bytes(summary.total_bytes)}")
        if summary.fatal_error:
            print(f"Run aborted: {summary.fatal_error}")

    def report_interruption(self, aggregator: ResultAggregator) -> None:
        print(
            f"\nTransfer interrupted after {aggregator.completed:,} of "
            f"{aggregator.total_input:,} operations. Active jobs were cancelled."
        )

    def _print_progress(self, aggregator: ResultAggregator, active: int) -> None:
        print(
            f"[{aggregator.completed:,}/{aggregator.total_input:,}] "
            f"{format_bytes(aggregator.transferred_bytes)} transferred, "
            f"{len(aggregator.failures):,} failed, {active} active",
            file=sys.stderr,
        )


def format_duration(seconds: float) -> str:
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)

    if hours > 0:
        return f"{hours}h {minutes}m {secs}s"
    if minutes > 0:
        return f"{minutes}m {secs}s"
    return f"{secs}s"


def format_bytes(size: int) -> str:
    size_f = float(size)
    for unit in ["B", "KB", "MB", "GB", "TB"]:
        if size_f < 1024:
            return f"{size_f:.2f} {unit}"
        size_f /= 1024
    return f"{size_f:.2f} PB"
