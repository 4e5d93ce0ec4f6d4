"""Inventory records and snapshots."""

import stat
from collections.abc import Iterator
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import PurePath

PATH_SEPARATORS = ("/", "\\")

# Windows st_file_attributes bits and the names they are reported under.
ATTRIBUTE_FLAGS: dict[int, str] = {
    stat.FILE_ATTRIBUTE_READONLY: "ReadOnly",
    stat.FILE_ATTRIBUTE_HIDDEN: "Hidden",
    stat.FILE_ATTRIBUTE_SYSTEM: "System",
    stat.FILE_ATTRIBUTE_DIRECTORY: "Directory",
    stat.FILE_ATTRIBUTE_ARCHIVE: "Archive",
    stat.FILE_ATTRIBUTE_DEVICE: "Device",
    stat.FILE_ATTRIBUTE_NORMAL: "Normal",
    stat.FILE_ATTRIBUTE_TEMPORARY: "Temporary",
    stat.FILE_ATTRIBUTE_SPARSE_FILE: "SparseFile",
    stat.FILE_ATTRIBUTE_REPARSE_POINT: "ReparsePoint",
    stat.FILE_ATTRIBUTE_COMPRESSED: "Compressed",
    stat.FILE_ATTRIBUTE_OFFLINE: "Offline",
    stat.FILE_ATTRIBUTE_NOT_CONTENT_INDEXED: "NotContentIndexed",
    stat.FILE_ATTRIBUTE_ENCRYPTED: "Encrypted",
    stat.FILE_ATTRIBUTE_INTEGRITY_STREAM: "IntegrityStream",
    stat.FILE_ATTRIBUTE_VIRTUAL: "Virtual",
    stat.FILE_ATTRIBUTE_NO_SCRUB_DATA: "NoScrubData",
}

NORMAL_ATTRIBUTES = "Normal"


class EntryKind(Enum):
    """Kind of filesystem entry an inventory record describes."""

    FILE = "file"
    DIRECTORY = "directory"


def path_key(path: str) -> str:
    """Case-insensitive comparison key for a path."""
    return path.casefold()


def trimmed_key(path: str) -> str:
    """Case-insensitive key with trailing separators removed."""
    return path_key(path).rstrip("".join(PATH_SEPARATORS))


def ancestor_keys(path: str) -> Iterator[str]:
    """Yield the trimmed key of path, then of each directory above it."""
    key = trimmed_key(path)
    yield key
    for i in range(len(key) - 1, -1, -1):
        if key[i] in PATH_SEPARATORS:
            yield key[:i]


def is_same_or_under(path: str, prefix: str) -> bool:
    """Return True if path equals prefix or lies beneath it, ignoring case."""
    key = trimmed_key(path)
    prefix_key = trimmed_key(prefix)
    if key == prefix_key:
        return True
    return any(key.startswith(prefix_key + sep) for sep in PATH_SEPARATORS)


def attributes_from_bits(bits: int) -> frozenset[str]:
    return frozenset(name for bit, name in ATTRIBUTE_FLAGS.items() if bits & bit)


def format_attributes(attributes: frozenset[str]) -> str:
    # "Normal" is only meaningful on its own, so drop it when other flags exist.
    names = sorted(attributes - {NORMAL_ATTRIBUTES})
    return ", ".join(names) if names else NORMAL_ATTRIBUTES


@dataclass(frozen=True)
class InventoryRecord:
    """Identity and metadata of one file at capture time."""

    path: str
    name: str
    size: int
    modified_at: datetime
    created_at: datetime | None = None
    attributes: frozenset[str] = frozenset()
    kind: EntryKind = EntryKind.FILE

    def __post_init__(self) -> None:
        if self.size < 0:
            raise ValueError(f"Negative size for {self.path}: {self.size}")

    @property
    def attribute_string(self) -> str:
        return format_attributes(self.attributes)

    @property
    def directory(self) -> str:
        return str(PurePath(self.path).parent)


@dataclass(frozen=True)
class Snapshot:
    """Point-in-time inventory of the files under a root path.

    Records keep enumeration order. Errors are the paths that could not be
    read during capture; the diff engine uses them as exclusions.
    """

    root: str
    captured_at: datetime
    captured_at_utc: datetime
    records: tuple[InventoryRecord, ...] = ()
    errors: tuple[str, ...] = ()
    _index: dict[str, InventoryRecord] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self) -> None:
        root_key = trimmed_key(self.root)
        for record in self.records:
            if trimmed_key(record.path) == root_key or not is_same_or_under(
                record.path, self.root
            ):
                raise ValueError(f"{record.path} is not beneath snapshot root {self.root}")
            key = path_key(record.path)
            if key in self._index:
                raise ValueError(f"Duplicate path in snapshot: {record.path}")
            self._index[key] = record

    def __len__(self) -> int:
        return len(self.records)

    def get(self, path: str) -> InventoryRecord | None:
        return self._index.get(path_key(path))

    @property
    def total_bytes(self) -> int:
        return sum(r.size for r in self.records)
