"""
Security utilities for local-repo-picker.

Confines user-supplied repository paths to the configured scan roots and
rejects values that could smuggle extra arguments into a subprocess.
"""

import os
from pathlib import Path
from typing import Iterable, Optional

from .exceptions import InvalidPathError, SecurityError


def contains_nul(value: str) -> bool:
    return "\0" in value


def ensure_safe_token(value: str, what: str = "argument") -> str:
    """
    Reject command tokens containing NUL bytes.

    Raises:
        SecurityError: If the token is unsafe to hand to a subprocess
    """
    if contains_nul(value):
        raise SecurityError(f"invalid {what}: contains NUL byte")
    return value


def resolve_allowed_path(scan_roots: Iterable[Path], path: Optional[str]) -> Path:
    """
    Resolve a user-supplied path and check it lies under one of the scan roots.

    Args:
        scan_roots: Absolute scan roots
        path: Candidate repository path (must be absolute)

    Returns:
        Absolute path inside a scan root

    Raises:
        InvalidPathError: If the path is empty or relative
        SecurityError: If the path escapes every scan root
    """
    if not path or not path.strip():
        raise InvalidPathError(Path(""), "path is required")
    ensure_safe_token(path, "path")
    candidate = Path(path).expanduser()
    if not candidate.is_absolute():
        raise InvalidPathError(candidate, "path must be absolute")

    resolved = Path(os.path.abspath(candidate))
    for root in scan_roots:
        root_abs = Path(os.path.abspath(root))
        if resolved == root_abs:
            return resolved
        try:
            resolved.relative_to(root_abs)
            return resolved
        except ValueError:
            continue

    raise SecurityError("path is outside the configured scan roots", filepath=resolved)

