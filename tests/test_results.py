"""Tests for result variants and the aggregator."""

from pathlib import Path

from snapstage.config import TransferKind
from snapstage.diff.models import ChangeStatus
from snapstage.planner.models import OperationDescriptor, SkippedOperation
from snapstage.transfer.results import (
    CopyResult,
    MoveResult,
    Outcome,
    ResultAggregator,
    build_result,
)

OP = OperationDescriptor(Path("/s/a"), Path("/d/a"), 100, status=ChangeStatus.ADDED, drive="d")


class TestBuildResult:
    """Tests for build_result."""

    def test_copy_variant(self):
        result = build_result(TransferKind.COPY, OP, Outcome.SUCCESS)

        assert isinstance(result, CopyResult)
        assert result.status is ChangeStatus.ADDED
        assert result.to_dict()["kind"] == "copy"
        assert result.to_dict()["status"] == "Added"

    def test_move_variant(self):
        result = build_result(TransferKind.MOVE, OP, Outcome.SUCCESS, source_removed=True)

        assert isinstance(result, MoveResult)
        assert result.drive == "d"
        assert result.to_dict()["source_removed"] is True
        assert "status" not in result.to_dict()


class TestResultAggregator:
    """Tests for ResultAggregator."""

    def test_partitions_by_outcome(self):
        aggregator = ResultAggregator(TransferKind.MOVE)
        aggregator.total_input = 4
        aggregator.record(build_result(TransferKind.MOVE, OP, Outcome.SUCCESS))
        aggregator.record(build_result(TransferKind.MOVE, OP, Outcome.FAILED, "x"))
        aggregator.record(build_result(TransferKind.MOVE, OP, Outcome.PARTIAL_FAILURE, "y"))
        aggregator.record_skipped(SkippedOperation(Path("/s/b"), None, 5, "gone"))

        summary = aggregator.summary()

        assert len(aggregator.successes) == 1
        assert len(aggregator.failures) == 2
        assert summary.succeeded == 1
        assert summary.failed == 1
        assert summary.partial_failures == 1
        assert summary.skipped == 1
        assert summary.failed_total == 2
        assert summary.total_bytes == 100
        assert aggregator.completed == 4

    def test_skip_reason_defaults_to_planned_reason(self):
        aggregator = ResultAggregator(TransferKind.COPY)

        aggregator.record_skipped(SkippedOperation(Path("/s/b"), None, 5, "gone"))
        aggregator.record_skipped(OP, "cancelled")

        assert [r.error for r in aggregator.skipped] == ["gone", "cancelled"]

    def test_summary_to_dict(self):
        aggregator = ResultAggregator(TransferKind.COPY)
        aggregator.total_input = 1
        aggregator.fatal_error = "disk full"
        aggregator.record_skipped(OP, "run aborted")

        data = aggregator.summary().to_dict()

        assert data["kind"] == "copy"
        assert data["fatal_error"] == "disk full"
        assert data["results"][0]["outcome"] == "Skipped"
        assert data["results"][0]["destination"] == "/d/a"
