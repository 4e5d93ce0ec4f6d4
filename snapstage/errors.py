"""Exception hierarchy for snapstage."""


class SnapstageError(Exception):
    """Base error for the project."""


class ConfigError(SnapstageError, ValueError):
    """Raised when a configuration value is out of range."""


class SnapshotFormatError(SnapstageError):
    """Raised when a persisted snapshot or changeset cannot be decoded."""


class FacilityUnavailableError(SnapstageError):
    """Raised when the transfer facility cannot be started."""


class SubmissionError(SnapstageError):
    """Raised when the transfer facility rejects a job synchronously."""
