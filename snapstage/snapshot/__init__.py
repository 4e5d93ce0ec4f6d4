"""Snapshot capture: inventory records and filesystem enumeration."""

from .filesystem import EnumerationResult, capture_snapshot, walk_directory
from .models import EntryKind, InventoryRecord, Snapshot

__all__ = [
    "EnumerationResult",
    "EntryKind",
    "InventoryRecord",
    "Snapshot",
    "capture_snapshot",
    "walk_directory",
]
