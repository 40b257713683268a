"""Custom exceptions for the synchronize module."""

from pathlib import Path


class StorageError(Exception):
    """Raised when local mirror storage cannot be created, read or written."""

    def __init__(self, message: str, path: Path | None = None) -> None:
        super().__init__(message)
        self.path = path
