"""Planned transfer operations."""

from dataclasses import dataclass, field
from pathlib import Path

from snapstage.diff.models import ChangeStatus


@dataclass(frozen=True)
class OperationDescriptor:
    """A single planned transfer from source to destination.

    status is set for copies derived from a changeset; drive is set for
    operations reconstructed from a staged path.
    """

    source: Path
    destination: Path
    size: int
    status: ChangeStatus | None = None
    drive: str | None = None


@dataclass(frozen=True)
class SkippedOperation:
    """An operation dropped before scheduling, with the reason it was dropped."""

    source: Path
    destination: Path | None
    size: int
    reason: str
    status: ChangeStatus | None = None
    drive: str | None = None


@dataclass
class Plan:
    operations: list[OperationDescriptor] = field(default_factory=list)
    skipped: list[SkippedOperation] = field(default_factory=list)
    total_bytes: int = 0

    @property
    def total_input(self) -> int:
        return len(self.operations) + len(self.skipped)

    def add(self, operation: OperationDescriptor) -> None:
        self.operations.append(operation)
        self.total_bytes += operation.size
