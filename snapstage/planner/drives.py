"""Drive identifiers used to re-root files into and out of the staging area.

A staged file lives at ``<staging root>/<drive id>/<path below drive root>``.
On Windows the drive id is the drive letter (``C:\\data\\f`` stages to
``C/data/f``) or a flattened UNC share (``\\\\srv\\docs`` becomes
``srv@docs``; host names cannot contain ``@``); on POSIX it is the first path
segment below ``/`` (``/mnt/nas/f`` stages to ``mnt/nas/f``).
"""

import logging
import os
from collections.abc import Callable, Iterable
from pathlib import Path, PureWindowsPath

from snapstage.planner.models import OperationDescriptor, SkippedOperation

logger = logging.getLogger(__name__)

UNC_SEPARATOR = "@"


def split_drive(path: Path) -> tuple[str, Path]:
    """Split an absolute path into its drive id and the path below the drive root.

    Raises:
        ValueError: If the path is relative or has nothing below its root.
    """
    if not path.is_absolute():
        raise ValueError(f"Cannot derive a drive from relative path: {path}")

    if path.drive:
        drive = path.drive
        if len(drive) == 2 and drive[1] == ":":
            drive_id = drive[0].upper()
        else:
            # UNC share: \\server\share -> server@share
            parts = drive.replace("/", "\\").split("\\")
            drive_id = UNC_SEPARATOR.join(part for part in parts if part)
        below = path.parts[1:]
    else:
        drive_id = path.parts[1] if len(path.parts) > 1 else ""
        below = path.parts[2:]

    if not drive_id or not below:
        raise ValueError(f"Path has no drive segment to re-root: {path}")
    return drive_id, Path(*below)


def drive_root(drive_id: str) -> Path:
    """Inverse of split_drive: the root directory a drive id stands for."""
    if os.name == "nt":
        return Path(windows_drive_root(drive_id))
    return Path("/") / drive_id


def windows_drive_root(drive_id: str) -> PureWindowsPath:
    if len(drive_id) == 1:
        return PureWindowsPath(f"{drive_id}:\\")
    server, _, share = drive_id.partition(UNC_SEPARATOR)
    return PureWindowsPath(f"\\\\{server}\\{share}\\")


def staged_path(staging_root: Path, original: Path) -> tuple[str, Path]:
    drive_id, below = split_drive(original)
    return drive_id, staging_root / drive_id / below


def is_drive_accessible(drive_id: str) -> bool:
    return os.path.isdir(drive_root(drive_id))


def destination_drive(operation: OperationDescriptor) -> str:
    if operation.drive:
        return operation.drive
    return split_drive(operation.destination)[0]


def filter_accessible_drives(
    operations: Iterable[OperationDescriptor],
    is_accessible: Callable[[str], bool] = is_drive_accessible,
) -> tuple[list[OperationDescriptor], list[SkippedOperation]]:
    """Drop every operation whose destination drive cannot be reached.

    Each drive is checked once. Dropping the whole group up front keeps a dead
    share from failing every one of its files through submit and poll.

    Returns:
        Tuple of (operations to keep, skipped operations), both in input order.
    """
    operations = list(operations)
    groups: dict[str, list[OperationDescriptor]] = {}
    for operation in operations:
        groups.setdefault(destination_drive(operation), []).append(operation)

    unreachable = set()
    for drive_id, group in groups.items():
        if not is_accessible(drive_id):
            logger.warning(
                "Destination drive %s (%s) is not accessible, skipping %d operations",
                drive_id,
                drive_root(drive_id),
                len(group),
            )
            unreachable.add(drive_id)

    kept: list[OperationDescriptor] = []
    skipped: list[SkippedOperation] = []
    for operation in operations:
        drive_id = destination_drive(operation)
        if drive_id in unreachable:
            skipped.append(
                SkippedOperation(
                    source=operation.source,
                    destination=operation.destination,
                    size=operation.size,
                    reason=f"destination drive {drive_id} not accessible",
                    status=operation.status,
                    drive=drive_id,
                )
            )
        else:
            kept.append(operation)
    return kept, skipped
