"""Changeset data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class ChangeStatus(Enum):
    """How a path differs between two snapshots."""

    ADDED = "Added"
    MODIFIED = "Modified"
    DELETED = "Deleted"


@dataclass(frozen=True)
class ChangesetEntry:
    """One changed path. Unchanged paths never produce an entry."""

    path: str
    status: ChangeStatus
    directory: str
    size_delta: int
    old_size: int | None = None
    new_size: int | None = None
    old_modified_at: datetime | None = None
    new_modified_at: datetime | None = None
    old_attributes: str | None = None
    new_attributes: str | None = None
    reason: str = ""


@dataclass(frozen=True)
class Changeset:
    """Ordered changes between a before and an after snapshot."""

    before_root: str
    after_root: str
    before_captured_at: datetime
    after_captured_at: datetime
    compared_at: datetime
    entries: tuple[ChangesetEntry, ...] = ()
    excluded_count: int = 0

    def __len__(self) -> int:
        return len(self.entries)

    def __iter__(self):
        return iter(self.entries)

    def with_status(self, *statuses: ChangeStatus) -> list[ChangesetEntry]:
        return [e for e in self.entries if e.status in statuses]

    @property
    def added(self) -> list[ChangesetEntry]:
        return self.with_status(ChangeStatus.ADDED)

    @property
    def modified(self) -> list[ChangesetEntry]:
        return self.with_status(ChangeStatus.MODIFIED)

    @property
    def deleted(self) -> list[ChangesetEntry]:
        return self.with_status(ChangeStatus.DELETED)

    def counts(self) -> dict[ChangeStatus, int]:
        counts = {status: 0 for status in ChangeStatus}
        for entry in self.entries:
            counts[entry.status] += 1
        return counts
