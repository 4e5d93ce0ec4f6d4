"""Filesystem enumeration for snapshot capture."""

import logging
import os
import re
import stat
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from snapstage.snapshot.models import (
    InventoryRecord,
    Snapshot,
    attributes_from_bits,
    path_key,
)

logger = logging.getLogger(__name__)


@dataclass
class EnumerationResult:
    records: list[InventoryRecord] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    excluded: int = 0


def compile_patterns(patterns: Iterable[str]) -> list[re.Pattern[str]]:
    """Compile exclusion regexes, matched case-insensitively against full paths."""
    compiled = []
    for pattern in patterns:
        try:
            compiled.append(re.compile(pattern, re.IGNORECASE))
        except re.error as e:
            raise ValueError(f"Invalid exclude pattern {pattern!r}: {e}") from e
    return compiled


def walk_directory(
    root: Path,
    exclude: Iterable[str] = (),
    progress_interval: int = 0,
) -> EnumerationResult:
    """Enumerate every regular file beneath root.

    Paths matching any exclude pattern are left out, directories included.
    Entries that cannot be read are reported in the error list rather than
    raised, so one unreadable share does not abort the capture. On a
    case-sensitive filesystem two names can differ only by case; the first
    one is kept and the later ones go to the error list, which keeps the
    path out of comparisons.
    """
    result = EnumerationResult()
    patterns = compile_patterns(exclude)
    _walk_recursive(root, patterns, result, progress_interval, {})
    return result


def capture_snapshot(
    root: Path,
    exclude: Iterable[str] = (),
    progress_interval: int = 0,
) -> Snapshot:
    root = root.resolve()
    captured_at_utc = datetime.now(timezone.utc)
    result = walk_directory(root, exclude, progress_interval)

    logger.info(
        "Captured %d files under %s (%d errors, %d excluded)",
        len(result.records),
        root,
        len(result.errors),
        result.excluded,
    )
    return Snapshot(
        root=str(root),
        captured_at=captured_at_utc.astimezone(),
        captured_at_utc=captured_at_utc,
        records=tuple(result.records),
        errors=tuple(result.errors),
    )


def _walk_recursive(
    directory: Path,
    patterns: list[re.Pattern[str]],
    result: EnumerationResult,
    progress_interval: int,
    seen: dict[str, str],
) -> None:
    try:
        with os.scandir(directory) as it:
            entries = sorted(it, key=lambda e: e.name)
    except PermissionError:
        logger.warning("Permission denied listing directory: %s", directory)
        result.errors.append(str(directory))
        return
    except OSError as e:
        logger.error("Error listing directory %s: %s", directory, e)
        result.errors.append(str(directory))
        return

    subdirs: list[Path] = []
    for entry in entries:
        if _is_excluded(entry.path, patterns):
            result.excluded += 1
            continue
        try:
            if entry.is_symlink():
                continue
            if entry.is_dir(follow_symlinks=False):
                subdirs.append(Path(entry.path))
                continue
            if not entry.is_file(follow_symlinks=False):
                continue
            record = _build_record(entry)
        except FileNotFoundError:
            logger.warning("File disappeared during scan: %s", entry.path)
            continue
        except OSError as e:
            logger.warning("Cannot read %s: %s", entry.path, e)
            result.errors.append(entry.path)
            continue

        key = path_key(record.path)
        if key in seen:
            logger.warning("Path differs only by case from %s: %s", seen[key], record.path)
            result.errors.append(record.path)
            continue
        seen[key] = record.path

        result.records.append(record)
        if progress_interval and len(result.records) % progress_interval == 0:
            logger.info("[%d files] Scanning: %s", len(result.records), directory)

    for subdir in subdirs:
        _walk_recursive(subdir, patterns, result, progress_interval, seen)


def _is_excluded(path: str, patterns: list[re.Pattern[str]]) -> bool:
    return any(p.search(path) for p in patterns)


def _build_record(entry: os.DirEntry) -> InventoryRecord:
    stat_result = entry.stat(follow_symlinks=False)
    return InventoryRecord(
        path=entry.path,
        name=entry.name,
        size=stat_result.st_size,
        modified_at=datetime.fromtimestamp(stat_result.st_mtime, tz=timezone.utc),
        created_at=_get_created_at(stat_result),
        attributes=_get_attributes(entry.name, stat_result),
    )


def _get_created_at(stat_result: os.stat_result) -> datetime | None:
    try:
        created = stat_result.st_birthtime
    except AttributeError:
        if os.name != "nt":
            return None
        # st_ctime is the creation time on Windows
        created = stat_result.st_ctime
    return datetime.fromtimestamp(created, tz=timezone.utc)


def _get_attributes(name: str, stat_result: os.stat_result) -> frozenset[str]:
    bits = getattr(stat_result, "st_file_attributes", None)
    if bits is not None:
        return attributes_from_bits(bits)

    flags = set()
    if not stat_result.st_mode & stat.S_IWUSR:
        flags.add("ReadOnly")
    if name.startswith("."):
        flags.add("Hidden")
    return frozenset(flags)
