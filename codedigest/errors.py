from __future__ import annotations


class DigestError(Exception):
    """Base exception for errors raised by codedigest."""


class FileReadError(DigestError):
    """Raised when a selected file cannot be opened or decoded."""

    def __init__(self, path: str, reason: str = "") -> None:
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to read file {path}" + (f": {reason}" if reason else ""))


class RedactionError(DigestError):
    """Raised by redactors that want to signal a failure explicitly."""


class DigestCancelledError(DigestError):
    """Raised when a digest run is cancelled; no partial result is produced."""

    def __init__(self, message: str = "Digest generation cancelled") -> None:
        super().__init__(message)


class MissingRootError(DigestError):
    """Raised when generation is started without any input selection."""


class ConfigError(DigestError):
    """Raised when a configuration file cannot be parsed."""
