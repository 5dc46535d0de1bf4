"""Path key normalisation shared by the LRU index, manual tags and cache."""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path
from typing import Union

PathLike = Union[str, "os.PathLike[str]"]

_SEPARATORS = re.compile(r"[\\/]+")


def is_case_insensitive_platform() -> bool:
    return sys.platform.startswith("win") or sys.platform == "darwin"


def normalize_repo_key(value: PathLike) -> str:
    """Return the canonical comparison key for a filesystem path.

    The key is absolute, uses the platform separator throughout, and is
    case-folded only where the filesystem is case-insensitive. Blank input
    yields an empty string.
    """
    text = os.fspath(value).strip()
    if not text:
        return ""
    resolved = os.path.abspath(os.path.expanduser(text))
    unified = _SEPARATORS.sub(lambda _match: os.sep, resolved)
    if len(unified) > 1 and unified.endswith(os.sep):
        unified = unified.rstrip(os.sep) or os.sep
    if is_case_insensitive_platform():
        return unified.lower()
    return unified


def derive_relative_path(full_path: PathLike, scan_root: PathLike) -> str:
    """Path of a repository relative to its scan root.

    Falls back to the basename when the repository is the root itself or
    lives outside it.
    """
    resolved_path = Path(os.path.abspath(os.fspath(full_path)))
    resolved_root = Path(os.path.abspath(os.fspath(scan_root)))
    if resolved_path == resolved_root:
        return resolved_path.name
    try:
        relative = resolved_path.relative_to(resolved_root)
    except ValueError:
        return resolved_path.name
    return relative.as_posix() or resolved_path.name
