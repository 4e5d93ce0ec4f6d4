"""Asynchronous single-file transfer facility.

The orchestrator only depends on the TransferFacility protocol: submit a
job, poll its state, complete it once transferred, cancel it otherwise.
LocalTransferFacility implements the protocol with a thread pool.
"""

import itertools
import logging
import os
import shutil
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Protocol, Self

from snapstage.config import MAX_CONCURRENCY, Priority
from snapstage.errors import FacilityUnavailableError, SubmissionError

logger = logging.getLogger(__name__)

TEMP_SUFFIX = ".snapstage-tmp"

# Errors that retrying cannot fix.
_PERMANENT_ERRORS = (FileNotFoundError, IsADirectoryError, NotADirectoryError)


class FacilityState(Enum):
    """Job state as reported by the transfer facility."""

    IN_PROGRESS = "InProgress"
    TRANSFERRED = "Transferred"
    ERROR = "Error"
    TRANSIENT_ERROR = "TransientError"
    FATAL = "Fatal"


class TransferFacility(Protocol):
    """Interface of an asynchronous, retrying single-file transfer service."""

    def submit(
        self,
        source: Path,
        destination: Path,
        priority: Priority,
        retry_interval: float,
        retry_timeout: float,
    ) -> Any:
        """Start a transfer and return its job handle. Raises SubmissionError."""

    def poll(self, handle: Any) -> FacilityState:
        """Return the current state of a job without blocking."""

    def error(self, handle: Any) -> str | None:
        """Return the last error reported for a job."""

    def complete(self, handle: Any) -> None:
        """Finalize a transferred job so the destination file becomes visible."""

    def cancel(self, handle: Any) -> None:
        """Abandon a job and release everything it holds."""


@dataclass
class LocalJob:
    """Handle of a job running on a LocalTransferFacility."""

    job_id: int
    source: Path
    destination: Path
    priority: Priority
    retry_interval: float
    retry_timeout: float
    state: FacilityState = FacilityState.IN_PROGRESS
    last_error: str | None = None
    attempts: int = 0
    future: Future | None = None
    cancelled: threading.Event = field(default_factory=threading.Event)

    @property
    def temp_path(self) -> Path:
        return self.destination.with_name(f"{self.destination.name}.{self.job_id}{TEMP_SUFFIX}")


class LocalTransferFacility:
    """Transfers files on a background thread pool.

    Data is written to a temporary file next to the destination; complete()
    renames it into place, overwriting any existing file. OSErrors other
    than the permanent ones are retried every retry_interval seconds until
    retry_timeout has passed, during which the job reports TRANSIENT_ERROR.
    Priority is recorded on the job but does not reorder the pool.
    """

    def __init__(
        self,
        max_workers: int = MAX_CONCURRENCY,
        copy_function: Callable[[Path, Path], Any] = shutil.copy2,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        try:
            self._executor = ThreadPoolExecutor(
                max_workers=max_workers, thread_name_prefix="snapstage-transfer"
            )
        except (ValueError, RuntimeError) as e:
            raise FacilityUnavailableError(f"Cannot start transfer workers: {e}") from e
        self._copy = copy_function
        self._clock = clock
        self._lock = threading.Lock()
        self._ids = itertools.count(1)

    def submit(
        self,
        source: Path,
        destination: Path,
        priority: Priority = Priority.NORMAL,
        retry_interval: float = 60.0,
        retry_timeout: float = 1200.0,
    ) -> LocalJob:
        if not source.is_file():
            raise SubmissionError(f"Source is not a file: {source}")
        if not destination.parent.is_dir():
            raise SubmissionError(f"Destination directory does not exist: {destination.parent}")
        if not os.access(destination.parent, os.W_OK):
            raise SubmissionError(f"Destination directory is not writable: {destination.parent}")

        job = LocalJob(
            job_id=next(self._ids),
            source=source,
            destination=destination,
            priority=priority,
            retry_interval=retry_interval,
            retry_timeout=retry_timeout,
        )
        try:
            job.future = self._executor.submit(self._run, job)
        except RuntimeError as e:
            raise SubmissionError(f"Transfer facility is shut down: {e}") from e
        logger.debug("Submitted job %d: %s -> %s", job.job_id, source, destination)
        return job

    def poll(self, handle: LocalJob) -> FacilityState:
        future = handle.future
        if future is not None and future.done() and not future.cancelled():
            exc = future.exception()
            if exc is not None:
                self._set_state(handle, FacilityState.FATAL, f"{type(exc).__name__}: {exc}")
        with self._lock:
            return handle.state

    def error(self, handle: LocalJob) -> str | None:
        with self._lock:
            return handle.last_error

    def complete(self, handle: LocalJob) -> None:
        """Move the transferred data onto the destination path.

        Raises:
            ValueError: If the job has not reached TRANSFERRED.
            OSError: If the rename fails.
        """
        if self.poll(handle) is not FacilityState.TRANSFERRED:
            raise ValueError(f"Job {handle.job_id} is not transferred")
        os.replace(handle.temp_path, handle.destination)
        logger.debug("Completed job %d", handle.job_id)

    def cancel(self, handle: LocalJob) -> None:
        handle.cancelled.set()
        if handle.future is not None:
            handle.future.cancel()
        handle.temp_path.unlink(missing_ok=True)
        logger.debug("Cancelled job %d", handle.job_id)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True, cancel_futures=True)

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.shutdown()

    def _run(self, job: LocalJob) -> None:
        started = self._clock()
        while not job.cancelled.is_set():
            job.attempts += 1
            try:
                self._copy(job.source, job.temp_path)
            except _PERMANENT_ERRORS as e:
                self._fail(job, str(e))
                return
            except OSError as e:
                if self._clock() - started + job.retry_interval > job.retry_timeout:
                    self._fail(job, f"Retry timeout exceeded after {job.attempts} attempts: {e}")
                    return
                logger.info(
                    "Transfer of %s failed (attempt %d), retrying in %ss: %s",
                    job.source,
                    job.attempts,
                    job.retry_interval,
                    e,
                )
                self._set_state(job, FacilityState.TRANSIENT_ERROR, str(e))
                job.cancelled.wait(job.retry_interval)
                continue

            if job.cancelled.is_set():
                job.temp_path.unlink(missing_ok=True)
                return
            self._set_state(job, FacilityState.TRANSFERRED, None)
            return

    def _fail(self, job: LocalJob, message: str) -> None:
        job.temp_path.unlink(missing_ok=True)
        self._set_state(job, FacilityState.ERROR, message)

    def _set_state(self, job: LocalJob, state: FacilityState, error: str | None) -> None:
        with self._lock:
            job.state = state
            if error is not None:
                job.last_error = error
