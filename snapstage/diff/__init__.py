"""Snapshot diff engine."""

from .engine import TIMESTAMP_TOLERANCE, compare_snapshots
from .models import Changeset, ChangesetEntry, ChangeStatus

__all__ = [
    "Changeset",
    "ChangesetEntry",
    "ChangeStatus",
    "TIMESTAMP_TOLERANCE",
    "compare_snapshots",
]
