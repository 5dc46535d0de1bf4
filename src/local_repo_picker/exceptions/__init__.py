"""Exception hierarchy for local-repo-picker."""

from .base import RepoPickerError
from .config import (
    ConfigurationError,
    InvalidConfigError,
    InvalidPathError,
    SecurityError,
)
from .storage import CorruptCacheError, FileAccessError, StorageError

__all__ = [
    "RepoPickerError",
    "ConfigurationError",
    "InvalidPathError",
    "InvalidConfigError",
    "SecurityError",
    "StorageError",
    "FileAccessError",
    "CorruptCacheError",
]
