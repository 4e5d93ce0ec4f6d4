"""Per-operation results and run-level aggregation."""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar

from snapstage.config import TransferKind
from snapstage.diff.models import ChangeStatus
from snapstage.planner.models import OperationDescriptor, SkippedOperation


class Outcome(Enum):
    """Final outcome of one planned operation."""

    SUCCESS = "Success"
    FAILED = "Failed"
    PARTIAL_FAILURE = "PartialFailure"
    SKIPPED = "Skipped"


@dataclass(frozen=True)
class _ResultBase:
    source: Path
    destination: Path | None
    outcome: Outcome
    size: int
    error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    kind: ClassVar[TransferKind]

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "source": str(self.source),
            "destination": str(self.destination) if self.destination else None,
            "outcome": self.outcome.value,
            "size": self.size,
            "error": self.error,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
        }


@dataclass(frozen=True)
class CopyResult(_ResultBase):
    status: ChangeStatus | None = None

    kind: ClassVar[TransferKind] = TransferKind.COPY

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status"] = self.status.value if self.status else None
        return data


@dataclass(frozen=True)
class MoveResult(_ResultBase):
    drive: str | None = None
    source_removed: bool = False

    kind: ClassVar[TransferKind] = TransferKind.MOVE

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["drive"] = self.drive
        data["source_removed"] = self.source_removed
        return data


TransferResult = CopyResult | MoveResult


def build_result(
    kind: TransferKind,
    operation: OperationDescriptor | SkippedOperation,
    outcome: Outcome,
    error: str | None = None,
    started_at: datetime | None = None,
    finished_at: datetime | None = None,
    source_removed: bool = False,
) -> TransferResult:
    """Build the result variant matching the transfer kind."""
    if kind is TransferKind.COPY:
        return CopyResult(
            source=operation.source,
            destination=operation.destination,
            outcome=outcome,
            size=operation.size,
            error=error,
            started_at=started_at,
            finished_at=finished_at,
            status=operation.status,
        )
    return MoveResult(
        source=operation.source,
        destination=operation.destination,
        outcome=outcome,
        size=operation.size,
        error=error,
        started_at=started_at,
        finished_at=finished_at,
        drive=operation.drive,
        source_removed=source_removed,
    )


@dataclass
class RunSummary:
    """Final counts of an orchestrator run.

    succeeded + failed + partial_failures + skipped always equals total_input.
    """

    kind: TransferKind
    total_input: int = 0
    skipped: int = 0
    succeeded: int = 0
    failed: int = 0
    partial_failures: int = 0
    total_bytes: int = 0
    planned_bytes: int = 0
    duration_seconds: float = 0.0
    started_at: datetime | None = None
    finished_at: datetime | None = None
    fatal_error: str | None = None
    results: list[TransferResult] = field(default_factory=list)

    @property
    def failed_total(self) -> int:
        return self.failed + self.partial_failures

    @property
    def successes(self) -> list[TransferResult]:
        return [r for r in self.results if r.outcome is Outcome.SUCCESS]

    @property
    def failures(self) -> list[TransferResult]:
        return [
            r for r in self.results if r.outcome in (Outcome.FAILED, Outcome.PARTIAL_FAILURE)
        ]

    @property
    def aborted(self) -> bool:
        return self.fatal_error is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "total_input": self.total_input,
            "skipped": self.skipped,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "partial_failures": self.partial_failures,
            "total_bytes": self.total_bytes,
            "planned_bytes": self.planned_bytes,
            "duration_seconds": round(self.duration_seconds, 3),
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "fatal_error": self.fatal_error,
            "results": [r.to_dict() for r in self.results],
        }


class ResultAggregator:
    """Collects results in completion order and keeps the run counters."""

    def __init__(self, kind: TransferKind) -> None:
        self.kind = kind
        self.results: list[TransferResult] = []
        self.successes: list[TransferResult] = []
        self.failures: list[TransferResult] = []
        self.skipped: list[TransferResult] = []
        self.total_input = 0
        self.planned_bytes = 0
        self.transferred_bytes = 0
        self.fatal_error: str | None = None
        self.started_at = datetime.now(timezone.utc)
        self._start_time = time.monotonic()

    def record(self, result: TransferResult) -> None:
        self.results.append(result)
        if result.outcome is Outcome.SUCCESS:
            self.successes.append(result)
            self.transferred_bytes += result.size
        elif result.outcome is Outcome.SKIPPED:
            self.skipped.append(result)
        else:
            self.failures.append(result)

    def record_skipped(
        self,
        skipped: SkippedOperation | OperationDescriptor,
        reason: str | None = None,
    ) -> None:
        if reason is None and isinstance(skipped, SkippedOperation):
            reason = skipped.reason
        now = datetime.now(timezone.utc)
        self.record(build_result(self.kind, skipped, Outcome.SKIPPED, reason, now, now))

    @property
    def completed(self) -> int:
        return len(self.results)

    def count(self, outcome: Outcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    def summary(self) -> RunSummary:
        return RunSummary(
            kind=self.kind,
            total_input=self.total_input,
            skipped=len(self.skipped),
            succeeded=len(self.successes),
            failed=self.count(Outcome.FAILED),
            partial_failures=self.count(Outcome.PARTIAL_FAILURE),
            total_bytes=self.transferred_bytes,
            planned_bytes=self.planned_bytes,
            duration_seconds=time.monotonic() - self._start_time,
            started_at=self.started_at,
            finished_at=datetime.now(timezone.utc),
            fatal_error=self.fatal_error,
            results=list(self.results),
        )
