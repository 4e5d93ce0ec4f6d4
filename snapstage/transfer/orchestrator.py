"""Bounded-concurrency scheduling of transfer jobs."""

import logging
import os
import threading
import time
from collections import deque
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any

from snapstage.config import TransferConfig, TransferKind
from snapstage.errors import SubmissionError
from snapstage.planner.drives import filter_accessible_drives, is_drive_accessible
from snapstage.planner.models import OperationDescriptor, SkippedOperation
from snapstage.transfer.facility import FacilityState, TransferFacility
from snapstage.transfer.progress import ProgressReporter
from snapstage.transfer.results import Outcome, ResultAggregator, RunSummary, build_result

logger = logging.getLogger(__name__)

CANCELLED_REASON = "cancelled before submission"


class JobState(Enum):
    """Lifecycle of one job inside the orchestrator."""

    QUEUED = "queued"
    ACTIVE = "active"
    TRANSFERRED = "transferred"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PARTIAL_FAILURE = "partial_failure"


TERMINAL_STATES = frozenset({JobState.SUCCEEDED, JobState.FAILED, JobState.PARTIAL_FAILURE})


@dataclass
class Job:
    operation: OperationDescriptor
    handle: Any = None
    started_at: float = 0.0
    started_at_wall: datetime | None = None
    state: JobState = JobState.QUEUED


class TransferOrchestrator:
    """Drives planned operations through a fixed number of concurrent jobs.

    The orchestrator submits operations in input order to the transfer
    facility, keeping at most ``config.concurrency`` jobs active. Each poll
    cycle checks every active job once, settles the finished ones and
    refills the free slots; it sleeps ``config.poll_interval`` between
    cycles only while jobs are still active.

    Errors of individual operations never stop the run. They are recorded
    as FAILED, or PARTIAL_FAILURE when a move transferred its data but could
    not remove its source. The only abort is a copy run whose destination
    directories cannot be created.
    """

    def __init__(
        self,
        facility: TransferFacility,
        config: TransferConfig | None = None,
        reporter: ProgressReporter | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        remove_file: Callable[[Path], None] = os.remove,
        make_dirs: Callable[[Path], None] = lambda p: p.mkdir(parents=True, exist_ok=True),
        is_accessible: Callable[[str], bool] = is_drive_accessible,
    ) -> None:
        self.facility = facility
        self.config = config or TransferConfig()
        self.reporter = reporter
        self.active: list[Job] = []
        self.peak_active = 0
        self._sleep = sleep
        self._clock = clock
        self._remove_file = remove_file
        self._make_dirs = make_dirs
        self._is_accessible = is_accessible
        self._stop = threading.Event()

    @property
    def kind(self) -> TransferKind:
        return self.config.kind

    def request_stop(self) -> None:
        """Stop submitting new jobs; active jobs are still drained."""
        self._stop.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop.is_set()

    def run(
        self,
        operations: Iterable[OperationDescriptor],
        skipped: Iterable[SkippedOperation] = (),
    ) -> RunSummary:
        """Execute every operation and return the run summary.

        Args:
            operations: Operations to schedule, in submission order.
            skipped: Operations already dropped during planning. They are
                counted in the summary but never scheduled.

        Returns:
            RunSummary covering both scheduled and skipped operations.
        """
        operations = list(operations)
        skipped = list(skipped)
        aggregator = ResultAggregator(self.kind)
        aggregator.total_input = len(operations) + len(skipped)
        aggregator.planned_bytes = sum(op.size for op in operations)

        for item in skipped:
            aggregator.record_skipped(item)

        if self.kind is TransferKind.MOVE:
            operations, unreachable = filter_accessible_drives(operations, self._is_accessible)
            for item in unreachable:
                aggregator.record_skipped(item)

        operations = self._prepare_directories(operations, aggregator)

        if self.reporter:
            self.reporter.report_start(self.kind.value, len(operations), aggregator.planned_bytes)

        try:
            self._schedule(deque(operations), aggregator)
        except KeyboardInterrupt:
            if self.reporter:
                self.reporter.report_interruption(aggregator)
            raise
        finally:
            self._release_all()

        summary = aggregator.summary()
        logger.info(
            "%s run finished: %d succeeded, %d failed, %d partial, %d skipped of %d",
            self.kind.value,
            summary.succeeded,
            summary.failed,
            summary.partial_failures,
            summary.skipped,
            summary.total_input,
        )
        if self.reporter:
            self.reporter.report_completion(summary)
        return summary

    def _prepare_directories(
        self,
        operations: list[OperationDescriptor],
        aggregator: ResultAggregator,
    ) -> list[OperationDescriptor]:
        """Create every destination directory once, before any submission."""
        failed_dirs: dict[Path, str] = {}
        for parent in dict.fromkeys(op.destination.parent for op in operations):
            try:
                self._make_dirs(parent)
            except OSError as e:
                if self.kind is TransferKind.COPY:
                    return self._abort(operations, aggregator, parent, e)
                logger.error("Cannot create destination directory %s: %s", parent, e)
                failed_dirs[parent] = str(e)

        if not failed_dirs:
            return operations

        kept = []
        for op in operations:
            error = failed_dirs.get(op.destination.parent)
            if error is None:
                kept.append(op)
            else:
                aggregator.record_skipped(op, f"cannot create destination directory: {error}")
        return kept

    def _abort(
        self,
        operations: list[OperationDescriptor],
        aggregator: ResultAggregator,
        directory: Path,
        error: OSError,
    ) -> list[OperationDescriptor]:
        aggregator.fatal_error = f"Cannot create destination directory {directory}: {error}"
        logger.error("Aborting copy run: %s", aggregator.fatal_error)
        for op in operations:
            aggregator.record_skipped(op, f"run aborted: {aggregator.fatal_error}")
        return []

    def _schedule(self, queue: deque[OperationDescriptor], aggregator: ResultAggregator) -> None:
        while queue or self.active:
            while queue and len(self.active) < self.config.concurrency and not self._stop.is_set():
                self._start(queue.popleft(), aggregator)

            if self._stop.is_set() and queue:
                logger.warning("Stop requested, %d queued operations not submitted", len(queue))
                while queue:
                    aggregator.record_skipped(queue.popleft(), CANCELLED_REASON)

            if not self.active:
                continue

            self._poll_active(aggregator)
            if self.active:
                self._sleep(self.config.poll_interval)

    def _start(self, operation: OperationDescriptor, aggregator: ResultAggregator) -> None:
        job = Job(operation=operation, started_at_wall=datetime.now(timezone.utc))

        if self.kind is TransferKind.COPY and operation.destination.exists():
            try:
                self._remove_file(operation.destination)
            except OSError as e:
                self._finish(job, aggregator, JobState.FAILED, f"Cannot replace destination: {e}")
                return

        try:
            job.handle = self.facility.submit(
                operation.source,
                operation.destination,
                self.config.priority,
                self.config.retry_interval,
                self.config.retry_timeout,
            )
        except (SubmissionError, OSError) as e:
            self._finish(job, aggregator, JobState.FAILED, f"Submission failed: {e}")
            return

        job.state = JobState.ACTIVE
        job.started_at = self._clock()
        self.active.append(job)
        self.peak_active = max(self.peak_active, len(self.active))
        logger.debug("Started %s -> %s", operation.source, operation.destination)

    def _poll_active(self, aggregator: ResultAggregator) -> None:
        for job in list(self.active):
            try:
                self._poll_job(job, aggregator)
            except Exception as e:  # pylint: disable=broad-exception-caught
                logger.exception("Transfer facility error for %s", job.operation.source)
                if job in self.active:
                    self._fail(job, aggregator, f"Facility error: {type(e).__name__}: {e}")

    def _poll_job(self, job: Job, aggregator: ResultAggregator) -> None:
        state = self.facility.poll(job.handle)

        if state is FacilityState.IN_PROGRESS:
            return

        if state is FacilityState.TRANSIENT_ERROR:
            if self._clock() - job.started_at <= self.config.retry_timeout:
                return
            error = self._error_text(job, state)
            self._fail(job, aggregator, f"Retry timeout exceeded: {error}")
        elif state is FacilityState.TRANSFERRED:
            job.state = JobState.TRANSFERRED
            self._settle_transferred(job, aggregator)
        else:
            self._fail(job, aggregator, self._error_text(job, state))

    def _settle_transferred(self, job: Job, aggregator: ResultAggregator) -> None:
        try:
            self.facility.complete(job.handle)
        except OSError as e:
            self._fail(job, aggregator, f"Completion failed: {e}")
            return

        if self.kind is TransferKind.COPY:
            self._finish(job, aggregator, JobState.SUCCEEDED)
            return

        try:
            self._remove_file(job.operation.source)
        except OSError as e:
            self._finish(
                job,
                aggregator,
                JobState.PARTIAL_FAILURE,
                f"Transferred but source not removed: {e}",
            )
            return
        self._finish(job, aggregator, JobState.SUCCEEDED, source_removed=True)

    def _fail(self, job: Job, aggregator: ResultAggregator, error: str) -> None:
        self._cancel(job)
        self._finish(job, aggregator, JobState.FAILED, error)

    def _finish(
        self,
        job: Job,
        aggregator: ResultAggregator,
        state: JobState,
        error: str | None = None,
        source_removed: bool = False,
    ) -> None:
        job.state = state
        if job in self.active:
            self.active.remove(job)
        job.handle = None

        outcome = {
            JobState.SUCCEEDED: Outcome.SUCCESS,
            JobState.FAILED: Outcome.FAILED,
            JobState.PARTIAL_FAILURE: Outcome.PARTIAL_FAILURE,
        }[state]
        aggregator.record(
            build_result(
                self.kind,
                job.operation,
                outcome,
                error=error,
                started_at=job.started_at_wall,
                finished_at=datetime.now(timezone.utc),
                source_removed=source_removed,
            )
        )

        op = job.operation
        if outcome is Outcome.SUCCESS:
            logger.info("%s %s -> %s", self.kind.value.capitalize(), op.source, op.destination)
        elif outcome is Outcome.PARTIAL_FAILURE:
            logger.error("Partial failure %s -> %s: %s", op.source, op.destination, error)
        else:
            logger.warning("Failed %s -> %s: %s", op.source, op.destination, error)

        if self.reporter:
            self.reporter.report_if_needed(aggregator, len(self.active))

    def _error_text(self, job: Job, state: FacilityState) -> str:
        return self.facility.error(job.handle) or f"transfer facility reported {state.value}"

    def _cancel(self, job: Job) -> None:
        if job.handle is None:
            return
        try:
            self.facility.cancel(job.handle)
        except Exception as e:  # pylint: disable=broad-exception-caught
            logger.error("Error releasing job for %s: %s", job.operation.source, e)

    def _release_all(self) -> None:
        """Best-effort release of every handle still open."""
        for job in self.active:
            logger.warning("Releasing unfinished job for %s", job.operation.source)
            self._cancel(job)
        self.active.clear()
