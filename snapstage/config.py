"""Configuration module for snapstage."""

from dataclasses import dataclass, field
from enum import Enum

from snapstage.errors import ConfigError

MIN_CONCURRENCY = 1
MAX_CONCURRENCY = 10


class TransferKind(Enum):
    """Whether the source is kept (copy) or removed after transfer (move)."""

    COPY = "copy"
    MOVE = "move"


class Priority(Enum):
    """Priority level handed through to the transfer facility."""

    FOREGROUND = "foreground"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"


@dataclass
class SnapshotConfig:
    exclude_patterns: list[str] = field(default_factory=list)
    progress_interval: int = 10000


@dataclass
class TransferConfig:
    """Settings for one orchestrator run.

    retry_interval and retry_timeout bound how long the facility may keep
    retrying a stalled transfer before the job is treated as failed.
    """

    kind: TransferKind = TransferKind.COPY
    concurrency: int = 4
    priority: Priority = Priority.NORMAL
    retry_interval: float = 60.0
    retry_timeout: float = 1200.0
    poll_interval: float = 2.0
    progress_interval: int = 100

    def __post_init__(self) -> None:
        if not MIN_CONCURRENCY <= self.concurrency <= MAX_CONCURRENCY:
            raise ConfigError(
                f"concurrency must be between {MIN_CONCURRENCY} and {MAX_CONCURRENCY}, "
                f"got {self.concurrency}"
            )
        if self.retry_interval < 1:
            raise ConfigError(
                f"retry_interval must be at least 1 second, got {self.retry_interval}"
            )
        if self.retry_timeout < self.retry_interval:
            raise ConfigError(
                f"retry_timeout ({self.retry_timeout}) must not be shorter than "
                f"retry_interval ({self.retry_interval})"
            )
        if self.poll_interval <= 0:
            raise ConfigError(f"poll_interval must be positive, got {self.poll_interval}")
        if self.progress_interval < 1:
            raise ConfigError(f"progress_interval must be positive, got {self.progress_interval}")


@dataclass
class Config:
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)
    transfer: TransferConfig = field(default_factory=TransferConfig)
    log_level: str = "WARNING"
