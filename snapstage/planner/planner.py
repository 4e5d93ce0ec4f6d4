"""Build transfer operations for the staging and deployment directions."""

import logging
import os
from collections.abc import Callable
from pathlib import Path

from snapstage.diff.models import Changeset, ChangeStatus
from snapstage.planner.drives import drive_root, staged_path
from snapstage.planner.models import OperationDescriptor, Plan, SkippedOperation
from snapstage.snapshot.filesystem import walk_directory

logger = logging.getLogger(__name__)

STAGED_STATUSES = (ChangeStatus.ADDED, ChangeStatus.MODIFIED)
SOURCE_MISSING = "source no longer exists"


def plan_staging(
    changeset: Changeset,
    staging_root: Path,
    exists: Callable[[str], bool] = os.path.isfile,
) -> Plan:
    """Plan copies of added and modified files into the staging area.

    A file deleted again since the snapshot was taken is skipped rather than
    failed.

    Args:
        changeset: Changes to stage. Deleted entries are ignored.
        staging_root: Root of the staging area.
        exists: Existence check for source paths.

    Returns:
        Plan with one operation per stageable entry.
    """
    plan = Plan()
    for entry in changeset.with_status(*STAGED_STATUSES):
        source = Path(entry.path)
        size = entry.new_size or 0

        try:
            drive_id, destination = staged_path(staging_root, source)
        except ValueError as e:
            logger.warning("Cannot stage %s: %s", source, e)
            plan.skipped.append(SkippedOperation(source, None, size, str(e), entry.status))
            continue

        if not exists(entry.path):
            logger.info("Skipping %s: %s", source, SOURCE_MISSING)
            plan.skipped.append(
                SkippedOperation(source, destination, size, SOURCE_MISSING, entry.status)
            )
            continue

        plan.add(OperationDescriptor(source, destination, size, status=entry.status))

    logger.info(
        "Planned %d staging copies (%d bytes), %d skipped",
        len(plan.operations),
        plan.total_bytes,
        len(plan.skipped),
    )
    return plan


def plan_deployment(
    staging_root: Path,
    exists: Callable[[str], bool] = os.path.isfile,
) -> Plan:
    """Plan moves of every staged file back to its original location.

    The first directory below the staging root names the drive the file came
    from; the rest of the path is reattached beneath that drive's root.
    """
    plan = Plan()
    enumeration = walk_directory(staging_root)
    for error_path in enumeration.errors:
        logger.warning("Cannot read staged path, not deploying: %s", error_path)

    for record in enumeration.records:
        source = Path(record.path)
        parts = source.relative_to(staging_root).parts

        if len(parts) < 2:
            reason = "not inside a drive folder"
            logger.warning("Skipping %s: %s", source, reason)
            plan.skipped.append(SkippedOperation(source, None, record.size, reason))
            continue

        drive_id = parts[0]
        destination = drive_root(drive_id).joinpath(*parts[1:])

        if not exists(record.path):
            logger.info("Skipping %s: %s", source, SOURCE_MISSING)
            plan.skipped.append(
                SkippedOperation(source, destination, record.size, SOURCE_MISSING, drive=drive_id)
            )
            continue

        plan.add(OperationDescriptor(source, destination, record.size, drive=drive_id))

    logger.info(
        "Planned %d deployment moves (%d bytes), %d skipped",
        len(plan.operations),
        plan.total_bytes,
        len(plan.skipped),
    )
    return plan
