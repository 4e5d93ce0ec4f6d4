"""Planning of transfer operations between original locations and staging."""

from .drives import drive_root, filter_accessible_drives, split_drive
from .models import OperationDescriptor, Plan, SkippedOperation
from .planner import plan_deployment, plan_staging

__all__ = [
    "OperationDescriptor",
    "Plan",
    "SkippedOperation",
    "drive_root",
    "filter_accessible_drives",
    "plan_deployment",
    "plan_staging",
    "split_drive",
]
