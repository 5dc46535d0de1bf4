"""Reading git metadata straight from disk, without spawning git."""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlsplit

from ..logging_config import get_logger

logger = get_logger(__name__)

_GITDIR_RE = re.compile(r"^\s*gitdir:\s*(.+?)\s*$", re.MULTILINE)
_SECTION_RE = re.compile(r"^\s*\[(.+?)\]\s*$")
_URL_RE = re.compile(r"^\s*url\s*=\s*(.+?)\s*$")
_SCP_RE = re.compile(r"^(?:.+@)?([^:/]+):(.+)$")


@dataclass(frozen=True)
class OriginInfo:
    host: Optional[str]
    full_name: str


def resolve_git_dir(repo_path: str | Path) -> Optional[Path]:
    """Locate the git directory for a working tree.

    ``.git`` is either the directory itself or, for worktrees and
    submodules, a file holding ``gitdir: <target>`` relative to the tree.
    """
    dot_git = Path(repo_path) / ".git"
    try:
        if dot_git.is_dir():
            return dot_git
        if not dot_git.is_file():
            return None
        content = dot_git.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None

    match = _GITDIR_RE.search(content)
    if not match:
        return None
    target = Path(match.group(1).strip())
    if target.is_absolute():
        return target
    return (Path(repo_path) / target).resolve()


def read_origin_url(repo_path: str | Path) -> Optional[str]:
    """Return ``remote.origin.url`` parsed from the repository's config file.

    Returns None when the git directory or its config cannot be read or the
    origin section has no url, so the caller can fall back to the git CLI.
    """
    git_dir = resolve_git_dir(repo_path)
    if git_dir is None:
        return None
    config_path = git_dir / "config"
    try:
        content = config_path.read_text(encoding="utf-8", errors="replace")
    except OSError:
        return None

    in_origin = False
    for line in content.splitlines():
        section = _SECTION_RE.match(line)
        if section:
            in_origin = section.group(1).strip() == 'remote "origin"'
            continue
        if not in_origin:
            continue
        url = _URL_RE.match(line)
        if url:
            return url.group(1).strip()
    return None


def parse_origin_info(origin_url: Optional[str]) -> OriginInfo:
    """Split an origin URL into host and ``namespace/repo`` full name.

    Accepts ``scheme://host/path`` and SCP-like ``user@host:path`` forms.
    Anything else yields an empty full name.

    Example:
        >>> parse_origin_info("git@github.com:org/repo.git")
        OriginInfo(host='github.com', full_name='org/repo')
    """
    if not origin_url or not origin_url.strip():
        return OriginInfo(host=None, full_name="")
    value = origin_url.strip()

    if "://" in value:
        try:
            parts = urlsplit(value)
            host = parts.hostname
        except ValueError:
            return OriginInfo(host=None, full_name="")
        repo_path = parts.path
    else:
        scp = _SCP_RE.match(value)
        if not scp:
            return OriginInfo(host=None, full_name="")
        host = scp.group(1).lower()
        repo_path = scp.group(2)

    trimmed = _strip_repo_path(repo_path)
    segments = [segment for segment in trimmed.split("/") if segment]
    if len(segments) >= 2:
        full_name = f"{segments[-2]}/{segments[-1]}"
    elif segments:
        full_name = segments[0]
    else:
        full_name = ""
    return OriginInfo(host=host or None, full_name=full_name)


def parse_origin_to_site_url(origin_url: Optional[str]) -> Optional[str]:
    """Browsable ``https://host/path`` URL for an origin, or None."""
    if not origin_url or origin_url == "-":
        return None
    value = origin_url.strip()
    if "://" in value:
        try:
            parts = urlsplit(value)
            host = parts.hostname
        except ValueError:
            return None
        repo_path = _strip_repo_path(parts.path)
    else:
        scp = _SCP_RE.match(value)
        if not scp:
            return None
        host = scp.group(1)
        repo_path = _strip_repo_path(scp.group(2))
    if not host or not repo_path:
        return None
    return f"https://{host}/{repo_path}"


def _strip_repo_path(value: str) -> str:
    trimmed = value.lstrip("/").rstrip("/")
    if trimmed.lower().endswith(".git"):
        trimmed = trimmed[:-4]
    return trimmed
