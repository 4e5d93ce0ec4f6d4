"""Tests for the thread-pool transfer facility."""

import shutil
import time
from pathlib import Path

import pytest

from snapstage.config import Priority
from snapstage.errors import SubmissionError
from snapstage.transfer.facility import FacilityState, LocalJob, LocalTransferFacility


def wait_for(facility: LocalTransferFacility, job: LocalJob, timeout: float = 5.0):
    """Poll until the job leaves IN_PROGRESS/TRANSIENT_ERROR."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        state = facility.poll(job)
        if state not in (FacilityState.IN_PROGRESS, FacilityState.TRANSIENT_ERROR):
            return state
        time.sleep(0.01)
    pytest.fail(f"job {job.job_id} did not finish, last state {facility.poll(job)}")


@pytest.fixture
def source(tmp_path: Path) -> Path:
    path = tmp_path / "src" / "data.bin"
    path.parent.mkdir()
    path.write_bytes(b"payload")
    return path


@pytest.fixture
def dest_dir(tmp_path: Path) -> Path:
    path = tmp_path / "dest"
    path.mkdir()
    return path


class TestTransfer:
    """Tests for the submit/poll/complete cycle."""

    def test_copies_and_completes(self, source: Path, dest_dir: Path):
        destination = dest_dir / "data.bin"
        with LocalTransferFacility(max_workers=2) as facility:
            job = facility.submit(source, destination)
            assert wait_for(facility, job) is FacilityState.TRANSFERRED
            assert not destination.exists()

            facility.complete(job)

        assert destination.read_bytes() == b"payload"
        assert not job.temp_path.exists()
        assert source.exists()

    def test_complete_overwrites_destination(self, source: Path, dest_dir: Path):
        destination = dest_dir / "data.bin"
        destination.write_bytes(b"old")
        with LocalTransferFacility() as facility:
            job = facility.submit(source, destination)
            wait_for(facility, job)
            facility.complete(job)

        assert destination.read_bytes() == b"payload"

    def test_complete_before_transfer_raises(self, source: Path, dest_dir: Path):
        def never(src, dst):
            raise FileNotFoundError("gone")

        with LocalTransferFacility(copy_function=never) as facility:
            job = facility.submit(source, dest_dir / "data.bin")
            wait_for(facility, job)
            with pytest.raises(ValueError, match="not transferred"):
                facility.complete(job)


class TestSubmit:
    """Tests for submission checks."""

    def test_missing_source(self, tmp_path: Path, dest_dir: Path):
        with LocalTransferFacility() as facility:
            with pytest.raises(SubmissionError, match="Source is not a file"):
                facility.submit(tmp_path / "nope", dest_dir / "nope")

    def test_missing_destination_directory(self, source: Path, tmp_path: Path):
        with LocalTransferFacility() as facility:
            with pytest.raises(SubmissionError, match="does not exist"):
                facility.submit(source, tmp_path / "missing" / "data.bin")

    def test_after_shutdown(self, source: Path, dest_dir: Path):
        facility = LocalTransferFacility()
        facility.shutdown()

        with pytest.raises(SubmissionError, match="shut down"):
            facility.submit(source, dest_dir / "data.bin")

    def test_records_priority(self, source: Path, dest_dir: Path):
        with LocalTransferFacility() as facility:
            job = facility.submit(source, dest_dir / "data.bin", Priority.LOW)
            wait_for(facility, job)

        assert job.priority is Priority.LOW


class TestErrors:
    """Tests for how copy failures map to facility states."""

    def test_permanent_error(self, source: Path, dest_dir: Path):
        def missing(src, dst):
            raise FileNotFoundError("source vanished")

        with LocalTransferFacility(copy_function=missing) as facility:
            job = facility.submit(source, dest_dir / "data.bin")
            assert wait_for(facility, job) is FacilityState.ERROR
            assert facility.error(job) == "source vanished"

        assert job.attempts == 1

    def test_transient_error_is_retried(self, source: Path, dest_dir: Path):
        calls = []

        def flaky(src, dst):
            calls.append(src)
            if len(calls) == 1:
                raise PermissionError("locked")
            shutil.copyfile(src, dst)

        with LocalTransferFacility(copy_function=flaky) as facility:
            job = facility.submit(
                source, dest_dir / "data.bin", retry_interval=0.01, retry_timeout=5.0
            )
            assert wait_for(facility, job) is FacilityState.TRANSFERRED
            facility.complete(job)

        assert job.attempts == 2
        assert facility.error(job) == "locked"
        assert (dest_dir / "data.bin").read_bytes() == b"payload"

    def test_retry_timeout(self, source: Path, dest_dir: Path):
        def always_locked(src, dst):
            raise PermissionError("locked")

        with LocalTransferFacility(copy_function=always_locked) as facility:
            job = facility.submit(
                source, dest_dir / "data.bin", retry_interval=0.01, retry_timeout=0.05
            )
            assert wait_for(facility, job) is FacilityState.ERROR

        assert facility.error(job).startswith("Retry timeout exceeded after")
        assert job.attempts >= 2

    def test_unexpected_exception_is_fatal(self, source: Path, dest_dir: Path):
        def broken(src, dst):
            raise RuntimeError("boom")

        with LocalTransferFacility(copy_function=broken) as facility:
            job = facility.submit(source, dest_dir / "data.bin")
            assert wait_for(facility, job) is FacilityState.FATAL

        assert facility.error(job) == "RuntimeError: boom"


class TestCancel:
    """Tests for cancel."""

    def test_removes_temp_file(self, source: Path, dest_dir: Path):
        with LocalTransferFacility() as facility:
            job = facility.submit(source, dest_dir / "data.bin")
            wait_for(facility, job)
            assert job.temp_path.exists()

            facility.cancel(job)

        assert not job.temp_path.exists()
        assert not (dest_dir / "data.bin").exists()

    def test_stops_retry_loop(self, source: Path, dest_dir: Path):
        def always_locked(src, dst):
            raise PermissionError("locked")

        with LocalTransferFacility(copy_function=always_locked) as facility:
            job = facility.submit(
                source, dest_dir / "data.bin", retry_interval=60.0, retry_timeout=600.0
            )
            deadline = time.monotonic() + 5
            while facility.poll(job) is not FacilityState.TRANSIENT_ERROR:
                assert time.monotonic() < deadline
                time.sleep(0.01)

            facility.cancel(job)

        assert job.attempts == 1
