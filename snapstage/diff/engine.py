"""Snapshot comparison."""

import logging
from collections.abc import Iterable
from datetime import datetime, timedelta, timezone

from snapstage.diff.models import Changeset, ChangeStatus, ChangesetEntry
from snapstage.snapshot.models import (
    InventoryRecord,
    Snapshot,
    ancestor_keys,
    path_key,
    trimmed_key,
)

logger = logging.getLogger(__name__)

# Filesystems round last-write times differently (FAT keeps 2s, SMB may
# truncate sub-second precision); anything within this window is unchanged.
TIMESTAMP_TOLERANCE = timedelta(seconds=1)


def compare_snapshots(
    before: Snapshot,
    after: Snapshot,
    excluded: Iterable[str] = (),
    compared_at: datetime | None = None,
) -> Changeset:
    """Compute the changes that turn the before snapshot into the after one.

    A path is left out of the comparison entirely if it, or a directory
    above it, is excluded or appears in either snapshot's error list. A
    transient access failure must not show up as a deletion followed by a
    re-addition.

    Args:
        before: Earlier snapshot.
        after: Later snapshot.
        excluded: Additional paths to leave out of the comparison.
        compared_at: Comparison timestamp, defaults to now.

    Returns:
        Changeset with Added/Modified entries in after order, followed by
        Deleted entries in before order.
    """
    exclusions = _collect_exclusions(before, after, excluded)

    before_index = _build_index(before.records, exclusions)
    after_index = _build_index(after.records, exclusions)
    excluded_count = (len(before.records) - len(before_index)) + (
        len(after.records) - len(after_index)
    )

    entries: list[ChangesetEntry] = []
    for key, new in after_index.items():
        old = before_index.get(key)
        if old is None:
            entries.append(_added(new))
            continue
        reason = describe_differences(old, new)
        if reason:
            entries.append(_modified(old, new, reason))

    for key, old in before_index.items():
        if key not in after_index:
            entries.append(_deleted(old))

    logger.info(
        "Compared %d/%d files: %d changes, %d excluded",
        len(before_index),
        len(after_index),
        len(entries),
        excluded_count,
    )
    return Changeset(
        before_root=before.root,
        after_root=after.root,
        before_captured_at=before.captured_at,
        after_captured_at=after.captured_at,
        compared_at=compared_at or datetime.now(timezone.utc).astimezone(),
        entries=tuple(entries),
        excluded_count=excluded_count,
    )


def describe_differences(old: InventoryRecord, new: InventoryRecord) -> str:
    """Return a "; "-joined list of the fields that differ, empty if none."""
    reasons = []
    if old.size != new.size:
        reasons.append(f"Size: {old.size} → {new.size}")
    if not timestamps_equal(old.modified_at, new.modified_at):
        reasons.append(
            f"LastWriteTime: {old.modified_at.isoformat()} → {new.modified_at.isoformat()}"
        )
    if old.attribute_string != new.attribute_string:
        reasons.append(f"Attributes: {old.attribute_string} → {new.attribute_string}")
    return "; ".join(reasons)


def timestamps_equal(a: datetime, b: datetime) -> bool:
    return abs(a - b) <= TIMESTAMP_TOLERANCE


def _collect_exclusions(
    before: Snapshot, after: Snapshot, excluded: Iterable[str]
) -> set[str]:
    return {trimmed_key(p) for p in (*excluded, *before.errors, *after.errors)}


def _build_index(
    records: Iterable[InventoryRecord], exclusions: set[str]
) -> dict[str, InventoryRecord]:
    # dict keeps insertion order, which carries snapshot order into the output
    index: dict[str, InventoryRecord] = {}
    for record in records:
        if not exclusions.isdisjoint(ancestor_keys(record.path)):
            continue
        index[path_key(record.path)] = record
    return index


def _added(new: InventoryRecord) -> ChangesetEntry:
    return ChangesetEntry(
        path=new.path,
        status=ChangeStatus.ADDED,
        directory=new.directory,
        size_delta=new.size,
        new_size=new.size,
        new_modified_at=new.modified_at,
        new_attributes=new.attribute_string,
        reason="New file",
    )


def _modified(old: InventoryRecord, new: InventoryRecord, reason: str) -> ChangesetEntry:
    return ChangesetEntry(
        path=new.path,
        status=ChangeStatus.MODIFIED,
        directory=new.directory,
        size_delta=new.size - old.size,
        old_size=old.size,
        new_size=new.size,
        old_modified_at=old.modified_at,
        new_modified_at=new.modified_at,
        old_attributes=old.attribute_string,
        new_attributes=new.attribute_string,
        reason=reason,
    )


def _deleted(old: InventoryRecord) -> ChangesetEntry:
    return ChangesetEntry(
        path=old.path,
        status=ChangeStatus.DELETED,
        directory=old.directory,
        size_delta=-old.size,
        old_size=old.size,
        old_modified_at=old.modified_at,
        old_attributes=old.attribute_string,
        reason="File removed",
    )
