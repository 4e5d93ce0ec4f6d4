"""JSON persistence for snapshots, changesets and run summaries."""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from snapstage.diff.models import Changeset, ChangesetEntry, ChangeStatus
from snapstage.errors import SnapshotFormatError
from snapstage.snapshot.models import EntryKind, InventoryRecord, Snapshot

logger = logging.getLogger(__name__)

FORMAT_VERSION = 1


def save_snapshot(snapshot: Snapshot, path: Path) -> None:
    data = {
        "version": FORMAT_VERSION,
        "metadata": {
            "root": snapshot.root,
            "captured_at": snapshot.captured_at.isoformat(),
            "captured_at_utc": snapshot.captured_at_utc.isoformat(),
            "file_count": len(snapshot.records),
            "total_bytes": snapshot.total_bytes,
            "error_count": len(snapshot.errors),
        },
        "errors": list(snapshot.errors),
        "files": [_record_to_dict(r) for r in snapshot.records],
    }
    _write_json(path, data)
    logger.info("Saved snapshot of %s (%d files) to %s", snapshot.root, len(snapshot), path)


def load_snapshot(path: Path) -> Snapshot:
    data = _read_json(path)
    try:
        metadata = data["metadata"]
        records = tuple(_record_from_dict(item) for item in data["files"])
        return Snapshot(
            root=metadata["root"],
            captured_at=_parse_timestamp(metadata["captured_at"]),
            captured_at_utc=_parse_timestamp(metadata["captured_at_utc"]),
            records=records,
            errors=tuple(data.get("errors", [])),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise SnapshotFormatError(f"Invalid snapshot file {path}: {e}") from e


def load_error_paths(path: Path) -> list[str]:
    """Load an error-path list: a JSON array, or a snapshot's "errors" member."""
    data = _read_json(path)
    if isinstance(data, dict):
        data = data.get("errors", [])
    if not isinstance(data, list) or not all(isinstance(p, str) for p in data):
        raise SnapshotFormatError(f"Invalid error list in {path}")
    return data


def save_changeset(changeset: Changeset, path: Path) -> None:
    counts = changeset.counts()
    data = {
        "version": FORMAT_VERSION,
        "metadata": {
            "before_root": changeset.before_root,
            "after_root": changeset.after_root,
            "before_captured_at": changeset.before_captured_at.isoformat(),
            "after_captured_at": changeset.after_captured_at.isoformat(),
            "compared_at": changeset.compared_at.isoformat(),
            "excluded_count": changeset.excluded_count,
            "added": counts[ChangeStatus.ADDED],
            "modified": counts[ChangeStatus.MODIFIED],
            "deleted": counts[ChangeStatus.DELETED],
        },
        "results": [_entry_to_dict(e) for e in changeset.entries],
    }
    _write_json(path, data)
    logger.info("Saved %d changes to %s", len(changeset), path)


def load_changeset(path: Path) -> Changeset:
    data = _read_json(path)
    try:
        metadata = data["metadata"]
        return Changeset(
            before_root=metadata["before_root"],
            after_root=metadata["after_root"],
            before_captured_at=_parse_timestamp(metadata["before_captured_at"]),
            after_captured_at=_parse_timestamp(metadata["after_captured_at"]),
            compared_at=_parse_timestamp(metadata["compared_at"]),
            entries=tuple(_entry_from_dict(item) for item in data["results"]),
            excluded_count=metadata.get("excluded_count", 0),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise SnapshotFormatError(f"Invalid changeset file {path}: {e}") from e


def save_summary(summary: dict[str, Any], path: Path) -> None:
    _write_json(path, summary)
    logger.info("Saved run summary to %s", path)


def _record_to_dict(record: InventoryRecord) -> dict[str, Any]:
    return {
        "path": record.path,
        "name": record.name,
        "kind": record.kind.value,
        "size": record.size,
        "modified_at": record.modified_at.isoformat(),
        "created_at": record.created_at.isoformat() if record.created_at else None,
        "attributes": sorted(record.attributes),
    }


def _record_from_dict(item: dict[str, Any]) -> InventoryRecord:
    size = item["size"]
    if not isinstance(size, int) or isinstance(size, bool):
        raise ValueError(f"size of {item['path']} is not an integer")
    created_at = item.get("created_at")
    return InventoryRecord(
        path=item["path"],
        name=item["name"],
        kind=EntryKind(item.get("kind", EntryKind.FILE.value)),
        size=size,
        modified_at=_parse_timestamp(item["modified_at"]),
        created_at=_parse_timestamp(created_at) if created_at else None,
        attributes=frozenset(item.get("attributes", [])),
    )


def _entry_to_dict(entry: ChangesetEntry) -> dict[str, Any]:
    return {
        "path": entry.path,
        "status": entry.status.value,
        "directory": entry.directory,
        "size_delta": entry.size_delta,
        "old_size": entry.old_size,
        "new_size": entry.new_size,
        "old_modified_at": _format_optional(entry.old_modified_at),
        "new_modified_at": _format_optional(entry.new_modified_at),
        "old_attributes": entry.old_attributes,
        "new_attributes": entry.new_attributes,
        "reason": entry.reason,
    }


def _entry_from_dict(item: dict[str, Any]) -> ChangesetEntry:
    return ChangesetEntry(
        path=item["path"],
        status=ChangeStatus(item["status"]),
        directory=item["directory"],
        size_delta=item["size_delta"],
        old_size=item.get("old_size"),
        new_size=item.get("new_size"),
        old_modified_at=_parse_optional(item.get("old_modified_at")),
        new_modified_at=_parse_optional(item.get("new_modified_at")),
        old_attributes=item.get("old_attributes"),
        new_attributes=item.get("new_attributes"),
        reason=item.get("reason", ""),
    )


def _parse_timestamp(value: str) -> datetime:
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        # Naive timestamps are taken to be UTC
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_optional(value: str | None) -> datetime | None:
    return _parse_timestamp(value) if value else None


def _format_optional(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _read_json(path: Path) -> Any:
    try:
        with path.open("r", encoding="utf-8") as f:
            return json.load(f)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise SnapshotFormatError(f"{path} is not valid JSON: {e}") from e


def _write_json(path: Path, data: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, indent=2, ensure_ascii=False)
