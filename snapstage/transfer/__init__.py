"""Transfer orchestration against an asynchronous transfer facility."""

from .facility import FacilityState, LocalTransferFacility, TransferFacility
from .orchestrator import Job, JobState, TransferOrchestrator
from .progress import ProgressReporter
from .results import (
    CopyResult,
    MoveResult,
    Outcome,
    ResultAggregator,
    RunSummary,
    TransferResult,
)

__all__ = [
    "CopyResult",
    "FacilityState",
    "Job",
    "JobState",
    "LocalTransferFacility",
    "MoveResult",
    "Outcome",
    "ProgressReporter",
    "ResultAggregator",
    "RunSummary",
    "TransferFacility",
    "TransferOrchestrator",
    "TransferResult",
]
