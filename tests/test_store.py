"""Tests for JSON persistence."""

import json
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from snapstage.diff import ChangeStatus, compare_snapshots
from snapstage.diff.compare import compare_snapshot_files
from snapstage.errors import SnapshotFormatError
from snapstage.snapshot.models import InventoryRecord, Snapshot
from snapstage.store import (
    load_changeset,
    load_error_paths,
    load_snapshot,
    save_changeset,
    save_snapshot,
    save_summary,
)

T0 = datetime(2024, 3, 1, 12, 0, 0, tzinfo=timezone.utc)


def sample_snapshot(*records: InventoryRecord, errors: tuple[str, ...] = ()) -> Snapshot:
    return Snapshot(
        root="/v",
        captured_at=T0.astimezone(timezone(timedelta(hours=2))),
        captured_at_utc=T0,
        records=records,
        errors=errors,
    )


class TestSnapshotFiles:
    """Tests for snapshot save/load."""

    def test_preserves_records(self, tmp_path: Path):
        record = InventoryRecord(
            path="/v/a.txt",
            name="a.txt",
            size=12,
            modified_at=T0,
            created_at=T0 - timedelta(days=1),
            attributes=frozenset({"Archive", "ReadOnly"}),
        )
        original = sample_snapshot(record, errors=("/v/locked",))
        path = tmp_path / "snap.json"

        save_snapshot(original, path)
        loaded = load_snapshot(path)

        assert loaded == original
        assert loaded.records[0].created_at == T0 - timedelta(days=1)
        assert loaded.errors == ("/v/locked",)

    def test_writes_metadata(self, tmp_path: Path):
        path = tmp_path / "snap.json"
        save_snapshot(sample_snapshot(InventoryRecord("/v/a", "a", 7, T0)), path)

        data = json.loads(path.read_text(encoding="utf-8"))

        assert data["metadata"]["root"] == "/v"
        assert data["metadata"]["file_count"] == 1
        assert data["metadata"]["total_bytes"] == 7
        assert data["files"][0]["attributes"] == []

    def test_naive_timestamps_are_utc(self, tmp_path: Path):
        path = tmp_path / "snap.json"
        path.write_text(
            json.dumps(
                {
                    "metadata": {
                        "root": "/v",
                        "captured_at": "2024-03-01T12:00:00",
                        "captured_at_utc": "2024-03-01T12:00:00",
                    },
                    "files": [
                        {
                            "path": "/v/a",
                            "name": "a",
                            "size": 1,
                            "modified_at": "2024-03-01T12:00:00",
                        }
                    ],
                }
            ),
            encoding="utf-8",
        )

        loaded = load_snapshot(path)

        assert loaded.records[0].modified_at == T0

    def test_duplicate_paths_rejected(self, tmp_path: Path):
        path = tmp_path / "snap.json"
        files = [
            {"path": "/v/a", "name": "a", "size": 1, "modified_at": T0.isoformat()},
            {"path": "/V/A", "name": "A", "size": 1, "modified_at": T0.isoformat()},
        ]
        metadata = {"root": "/v", "captured_at": T0.isoformat(), "captured_at_utc": T0.isoformat()}
        path.write_text(json.dumps({"metadata": metadata, "files": files}), encoding="utf-8")

        with pytest.raises(SnapshotFormatError, match="Duplicate"):
            load_snapshot(path)

    def test_malformed_timestamp_rejected(self, tmp_path: Path):
        path = tmp_path / "snap.json"
        metadata = {"root": "/v", "captured_at": "yesterday", "captured_at_utc": "yesterday"}
        path.write_text(json.dumps({"metadata": metadata, "files": []}), encoding="utf-8")

        with pytest.raises(SnapshotFormatError):
            load_snapshot(path)

    def test_invalid_json_rejected(self, tmp_path: Path):
        path = tmp_path / "snap.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(SnapshotFormatError, match="not valid JSON"):
            load_snapshot(path)

    def test_invalid_utf8_rejected(self, tmp_path: Path):
        path = tmp_path / "snap.json"
        path.write_bytes(b'{"metadata": "\xff\xfe"}')

        with pytest.raises(SnapshotFormatError, match="not valid JSON"):
            load_snapshot(path)


class TestErrorPaths:
    """Tests for load_error_paths."""

    def test_plain_list(self, tmp_path: Path):
        path = tmp_path / "errors.json"
        path.write_text(json.dumps(["/v/a", "/v/b"]), encoding="utf-8")
        assert load_error_paths(path) == ["/v/a", "/v/b"]

    def test_snapshot_errors_member(self, tmp_path: Path):
        path = tmp_path / "snap.json"
        save_snapshot(sample_snapshot(errors=("/v/x",)), path)
        assert load_error_paths(path) == ["/v/x"]

    def test_rejects_non_strings(self, tmp_path: Path):
        path = tmp_path / "errors.json"
        path.write_text(json.dumps([1, 2]), encoding="utf-8")
        with pytest.raises(SnapshotFormatError):
            load_error_paths(path)


class TestChangesetFiles:
    """Tests for changeset save/load and file comparison."""

    def test_preserves_entries(self, tmp_path: Path):
        before = sample_snapshot(
            InventoryRecord("/v/a", "a", 1, T0), InventoryRecord("/v/b", "b", 1, T0)
        )
        after = sample_snapshot(
            InventoryRecord("/v/a", "a", 2, T0), InventoryRecord("/v/c", "c", 3, T0)
        )
        changeset = compare_snapshots(before, after, compared_at=T0)
        path = tmp_path / "changes.json"

        save_changeset(changeset, path)
        loaded = load_changeset(path)

        assert loaded == changeset
        assert [e.status for e in loaded.entries] == [
            ChangeStatus.MODIFIED,
            ChangeStatus.ADDED,
            ChangeStatus.DELETED,
        ]

    def test_compare_snapshot_files(self, tmp_path: Path):
        before = sample_snapshot(InventoryRecord("/v/a", "a", 1, T0))
        save_snapshot(before, tmp_path / "before.json")
        save_snapshot(
            sample_snapshot(
                InventoryRecord("/v/a", "a", 1, T0), InventoryRecord("/v/new", "new", 5, T0)
            ),
            tmp_path / "after.json",
        )
        errors = tmp_path / "errors.json"
        errors.write_text(json.dumps(["/v/new"]), encoding="utf-8")

        changeset = compare_snapshot_files(
            tmp_path / "before.json", tmp_path / "after.json", tmp_path / "out.json", [errors]
        )

        assert len(changeset) == 0
        assert (tmp_path / "out.json").exists()

    def test_save_summary(self, tmp_path: Path):
        path = tmp_path / "nested" / "summary.json"
        save_summary({"succeeded": 3}, path)
        assert json.loads(path.read_text(encoding="utf-8")) == {"succeeded": 3}
