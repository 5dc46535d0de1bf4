"""Best-effort per-repository preview.

A preview never raises for expected failures. Each git-derived field falls
back to ``"-"`` (or an empty list) on its own, and the result carries one
human-readable message for the most significant failure.
"""

from __future__ import annotations

import asyncio
import os
from collections import OrderedDict
from pathlib import Path
from typing import Optional

from .file_ops import read_head_lines
from .git import (
    GitErrorKind,
    GitMetadataResolver,
    parse_origin_to_site_url,
    pick_error_kind,
    resolve_git_dir,
)
from .logging_config import get_logger
from .models import PLACEHOLDER, RepoPreview, PreviewResult, RepositoryRecord
from .paths import normalize_repo_key
from .plugins import PluginRegistry, PreviewPluginInput

logger = get_logger(__name__)

README_CANDIDATES = ("README.md", "README.MD", "README")
README_MAX_LINES = 200
DEFAULT_PREVIEW_CACHE_SIZE = 64

MSG_NOT_ACCESSIBLE = "Repository not accessible"
MSG_GIT_UNAVAILABLE = "Git not available"
MSG_TIMEOUT = "Git timed out, preview degraded"
MSG_NOT_ALLOWED = "Git command not allowed, preview degraded"
MSG_UNKNOWN = "Git preview failed, showing partial data"
MSG_PREVIEW_TIMEOUT = "Preview timed out"

ERROR_MESSAGES: dict[GitErrorKind, str] = {
    GitErrorKind.NOT_FOUND: MSG_GIT_UNAVAILABLE,
    GitErrorKind.NOT_REPO: MSG_NOT_ACCESSIBLE,
    GitErrorKind.TIMEOUT: MSG_TIMEOUT,
    GitErrorKind.NOT_ALLOWED: MSG_NOT_ALLOWED,
    GitErrorKind.UNKNOWN: MSG_UNKNOWN,
}

# Per-field timeouts in milliseconds
QUICK_TIMEOUT_MS = 1500
SLOW_TIMEOUT_MS = 2000


def read_readme(repo_path: str) -> tuple[list[str], str]:
    """First lines of the first README found, with its status.

    Status is ``ok`` when a candidate was read, ``missing`` when none
    exists and ``unavailable`` when one exists but cannot be read.
    """
    for name in README_CANDIDATES:
        try:
            return read_head_lines(Path(repo_path) / name, README_MAX_LINES), "ok"
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.debug(f"README unreadable in {repo_path}: {e}")
            return [], "unavailable"
    return [], "missing"


def build_fallback_preview(path: str, reason: str) -> PreviewResult:
    """Placeholder preview; always succeeds."""
    return PreviewResult(data=RepoPreview(path=path), error=reason)


def parse_sync_counts(output: str) -> str:
    parts = output.split()
    try:
        ahead = int(parts[0]) if parts else 0
        behind = int(parts[1]) if len(parts) > 1 else 0
    except ValueError:
        return PLACEHOLDER
    return f"ahead {ahead} / behind {behind}"


class PreviewAssembler:
    """Builds previews and memoises the most recent ones by path."""

    def __init__(
        self,
        git: Optional[GitMetadataResolver] = None,
        registry: Optional[PluginRegistry] = None,
        cache_size: int = DEFAULT_PREVIEW_CACHE_SIZE,
    ):
        if cache_size < 0:
            raise ValueError("cache_size must be non-negative")
        self.git = git or GitMetadataResolver()
        self.registry = registry if registry is not None else PluginRegistry()
        self.cache_size = cache_size
        self._memo: OrderedDict[str, PreviewResult] = OrderedDict()

    async def build_repo_preview(self, record: RepositoryRecord) -> PreviewResult:
        result = await self._assemble(record)
        self._remember(record.full_path, result)
        return result

    async def get_cached_preview(self, record: RepositoryRecord) -> PreviewResult:
        """Memoised build_repo_preview; cleared only by clear()."""
        key = normalize_repo_key(record.full_path)
        cached = self._memo.get(key)
        if cached is not None:
            self._memo.move_to_end(key)
            return cached
        return await self.build_repo_preview(record)

    def clear(self) -> None:
        self._memo.clear()
        self.git.clear()

    def _remember(self, path: str, result: PreviewResult) -> None:
        if self.cache_size == 0:
            return
        key = normalize_repo_key(path)
        self._memo[key] = result
        self._memo.move_to_end(key)
        while len(self._memo) > self.cache_size:
            self._memo.popitem(last=False)

    async def _assemble(self, record: RepositoryRecord) -> PreviewResult:
        repo_path = record.full_path
        if not os.path.isdir(repo_path) or not os.access(repo_path, os.R_OK):
            return build_fallback_preview(repo_path, MSG_NOT_ACCESSIBLE)

        if resolve_git_dir(repo_path) is None:
            return self._readme_only(record, MSG_NOT_ACCESSIBLE)
        if not await self.git.is_available():
            return self._readme_only(record, MSG_GIT_UNAVAILABLE)

        origin, branch, status, sync, commits, (readme, readme_status) = await asyncio.gather(
            self.git.read_origin(repo_path, timeout_ms=QUICK_TIMEOUT_MS),
            self.git.run_git(["rev-parse", "--abbrev-ref", "HEAD"], repo_path, QUICK_TIMEOUT_MS),
            self.git.run_git(["status", "--porcelain"], repo_path, QUICK_TIMEOUT_MS),
            self.git.run_git(
                ["rev-list", "--left-right", "--count", "HEAD...@{upstream}"],
                repo_path,
                SLOW_TIMEOUT_MS,
            ),
            self.git.run_git(
                ["log", "-n", "12", "--date=iso", "--pretty=format:%cd %h %s"],
                repo_path,
                SLOW_TIMEOUT_MS,
            ),
            asyncio.to_thread(read_readme, repo_path),
        )

        origin_url = origin.stdout.strip() if origin.ok else ""
        site_url = parse_origin_to_site_url(origin_url) if origin_url else None
        if status.ok:
            status_value = "dirty" if status.stdout.strip() else "clean"
        else:
            status_value = PLACEHOLDER

        preview = RepoPreview(
            path=repo_path,
            repo_key=record.repo_key,
            origin=origin_url or PLACEHOLDER,
            site_url=site_url or PLACEHOLDER,
            branch=(branch.stdout.strip() or PLACEHOLDER) if branch.ok else PLACEHOLDER,
            status=status_value,
            sync=parse_sync_counts(sync.stdout) if sync.ok else PLACEHOLDER,
            recent_commits=(
                [line.strip() for line in commits.stdout.splitlines() if line.strip()]
                if commits.ok
                else []
            ),
            readme=readme,
            readme_status=readme_status,
        )

        kind = pick_error_kind([origin.kind, branch.kind, status.kind, sync.kind, commits.kind])
        error = ERROR_MESSAGES[kind] if kind is not None else None
        if error:
            logger.debug(f"preview degraded for {repo_path}: {kind.value}")

        preview.extensions = await self.registry.resolve_preview_extensions(
            PreviewPluginInput(record=record, preview=preview)
        )
        return PreviewResult(data=preview, error=error)

    def _readme_only(self, record: RepositoryRecord, reason: str) -> PreviewResult:
        readme, readme_status = read_readme(record.full_path)
        result = build_fallback_preview(record.full_path, reason)
        result.data.repo_key = record.repo_key
        result.data.readme = readme
        result.data.readme_status = readme_status
        return result


async def build_preview_with_timeout(
    assembler: PreviewAssembler, record: RepositoryRecord, timeout_ms: int
) -> PreviewResult:
    """Race a preview against ``timeout_ms``, substituting a fallback on expiry."""
    try:
        return await asyncio.wait_for(assembler.build_repo_preview(record), timeout_ms / 1000)
    except asyncio.TimeoutError:
        logger.debug(f"preview timed out for {record.full_path}")
        return build_fallback_preview(record.full_path, MSG_PREVIEW_TIMEOUT)
