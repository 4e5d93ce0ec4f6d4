"""Compare two persisted snapshots and persist the changeset."""

import logging
from collections.abc import Iterable
from pathlib import Path

from snapstage.diff.engine import compare_snapshots
from snapstage.diff.models import Changeset
from snapstage.store import load_error_paths, load_snapshot, save_changeset

logger = logging.getLogger(__name__)


def compare_snapshot_files(
    before_path: Path,
    after_path: Path,
    output_path: Path,
    error_paths: Iterable[Path] = (),
) -> Changeset:
    before = load_snapshot(before_path)
    after = load_snapshot(after_path)

    excluded: list[str] = []
    for error_file in error_paths:
        paths = load_error_paths(error_file)
        logger.info("Loaded %d excluded paths from %s", len(paths), error_file)
        excluded.extend(paths)

    changeset = compare_snapshots(before, after, excluded=excluded)
    save_changeset(changeset, output_path)
    return changeset
