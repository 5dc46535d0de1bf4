"""Storage exceptions: cache snapshot and plain data files."""

from pathlib import Path

from .base import RepoPickerError


class StorageError(RepoPickerError):
    """Base class for on-disk data file errors."""

    pass


class FileAccessError(StorageError):
    """Raised when a data file cannot be read or written."""

    def __init__(self, filepath: Path, reason: str):
        super().__init__(
            f"Cannot access file: {filepath}",
            details={"filepath": str(filepath), "reason": reason},
        )
        self.filepath = filepath
        self.reason = reason


class CorruptCacheError(StorageError):
    """Raised when a cache snapshot cannot be decoded."""

    def __init__(self, filepath: Path, reason: str):
        super().__init__(
            f"Corrupt cache snapshot: {filepath}",
            details={"filepath": str(filepath), "reason": reason},
        )
        self.filepath = filepath
        self.reason = reason
