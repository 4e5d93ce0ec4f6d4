"""snapstage - Stage only the files that changed between two directory snapshots."""

__version__ = "0.1.0"

from snapstage.diff import compare_snapshots
from snapstage.snapshot import capture_snapshot
from snapstage.transfer import TransferOrchestrator

__all__ = ["TransferOrchestrator", "capture_snapshot", "compare_snapshots"]
