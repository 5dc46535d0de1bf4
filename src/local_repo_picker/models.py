"""Data models for discovery, caching and previews."""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

CACHE_VERSION = 1
PLACEHOLDER = "-"


class WarningReason(str, Enum):
    """Why a path was skipped during discovery."""

    NOT_FOUND = "not_found"
    NO_PERMISSION = "no_permission"
    NOT_DIRECTORY = "not_directory"
    SYMLINK_SKIPPED = "symlink_skipped"
    READDIR_FAILED = "readdir_failed"


@dataclass(frozen=True)
class ScanWarning:
    path: str
    reason: WarningReason

    def describe(self) -> str:
        return f"{self.reason.value}: {self.path}"


@dataclass(frozen=True)
class DiscoveredRepo:
    path: str
    scan_root: str
    auto_tag: Optional[str] = None  # "[team]" for <root>/team/...


@dataclass
class GitRepository:
    """Identity derived from a repository's origin URL."""

    provider: str
    namespace: str
    repo: str
    full_name: str
    base_url: str
    origin_url: str
    is_valid: bool

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GitRepository":
        return cls(
            provider=str(data["provider"]),
            namespace=str(data.get("namespace", "")),
            repo=str(data.get("repo", "")),
            full_name=str(data.get("full_name", "")),
            base_url=str(data.get("base_url", "")),
            origin_url=str(data.get("origin_url", "")),
            is_valid=bool(data.get("is_valid", False)),
        )


@dataclass
class RepositoryRecord:
    """One discovered repository as persisted in the cache snapshot.

    ``tags`` is the resolved list shown to users; ``manual_tags`` and
    ``auto_tags`` keep the inputs it was derived from.
    """

    full_path: str
    scan_root: str
    relative_path: str
    repo_key: str
    git: Optional[GitRepository] = None
    is_dirty: bool = False
    manual_tags: list[str] = field(default_factory=list)
    auto_tags: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    last_scanned_at: int = 0  # epoch milliseconds

    @property
    def path(self) -> str:
        return self.full_path

    @property
    def owner_repo(self) -> str:
        """Display name: git full name, else the directory name."""
        if self.git is not None and self.git.full_name:
            return self.git.full_name
        return os.path.basename(self.full_path.rstrip("/\\")) or self.full_path

    @property
    def origin_url(self) -> Optional[str]:
        return self.git.origin_url if self.git is not None else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "full_path": self.full_path,
            "scan_root": self.scan_root,
            "relative_path": self.relative_path,
            "repo_key": self.repo_key,
            "git": self.git.to_dict() if self.git is not None else None,
            "is_dirty": self.is_dirty,
            "manual_tags": list(self.manual_tags),
            "auto_tags": list(self.auto_tags),
            "tags": list(self.tags),
            "last_scanned_at": self.last_scanned_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RepositoryRecord":
        git_data = data.get("git")
        return cls(
            full_path=str(data["full_path"]),
            scan_root=str(data.get("scan_root", "")),
            relative_path=str(data.get("relative_path", "")),
            repo_key=str(data.get("repo_key", PLACEHOLDER)),
            git=GitRepository.from_dict(git_data) if isinstance(git_data, dict) else None,
            is_dirty=bool(data.get("is_dirty", False)),
            manual_tags=[str(tag) for tag in data.get("manual_tags", [])],
            auto_tags=[str(tag) for tag in data.get("auto_tags", [])],
            tags=[str(tag) for tag in data.get("tags", [])],
            last_scanned_at=int(data.get("last_scanned_at", 0)),
        )


@dataclass
class CacheMetadata:
    cache_version: int = CACHE_VERSION
    scan_started_at: int = 0
    scan_finished_at: int = 0
    scan_duration_ms: int = 0
    build_duration_ms: int = 0
    repo_count: int = 0
    scan_roots: list[str] = field(default_factory=list)
    pruned_at: Optional[int] = None
    pruned_repo_count: Optional[int] = None
    warning_count: int = 0
    warning_samples: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        # Prune accounting is only written once pruning happened
        if self.pruned_at is None:
            data.pop("pruned_at")
            data.pop("pruned_repo_count")
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CacheMetadata":
        known = cls.__dataclass_fields__
        return cls(**{key: value for key, value in data.items() if key in known})


@dataclass
class CacheSnapshot:
    """The whole cache file. Replaced wholesale on every write."""

    saved_at: int  # epoch milliseconds
    ttl_ms: int
    metadata: CacheMetadata
    repos: list[RepositoryRecord] = field(default_factory=list)

    def is_stale(self, now_ms: int) -> bool:
        return now_ms - self.saved_at > self.ttl_ms

    def to_dict(self) -> dict[str, Any]:
        return {
            "saved_at": self.saved_at,
            "ttl_ms": self.ttl_ms,
            "metadata": self.metadata.to_dict(),
            "repos": [repo.to_dict() for repo in self.repos],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any], default_ttl_ms: int) -> "CacheSnapshot":
        """Decode a snapshot; raises on structurally invalid input."""
        if not isinstance(data, dict):
            raise ValueError("snapshot must be a JSON object")
        raw_repos = data.get("repos", [])
        if not isinstance(raw_repos, list):
            raise ValueError("repos must be a list")
        if not all(isinstance(item, dict) for item in raw_repos):
            raise ValueError("repos entries must be JSON objects")
        raw_metadata = data.get("metadata")
        saved_at = int(data.get("saved_at", 0))
        metadata = (
            CacheMetadata.from_dict(raw_metadata)
            if isinstance(raw_metadata, dict)
            else CacheMetadata(scan_started_at=saved_at, scan_finished_at=saved_at)
        )
        return cls(
            saved_at=saved_at,
            ttl_ms=int(data.get("ttl_ms", default_ttl_ms)),
            metadata=metadata,
            repos=[RepositoryRecord.from_dict(item) for item in raw_repos],
        )


@dataclass
class ManualTagEdit:
    """User edits for one path: tags to add and tags to suppress."""

    add: list[str] = field(default_factory=list)
    remove: list[str] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not self.add and not self.remove


@dataclass
class PreviewSection:
    title: str
    lines: list[str] = field(default_factory=list)


@dataclass
class RepoPreview:
    path: str
    repo_key: str = PLACEHOLDER
    origin: str = PLACEHOLDER
    site_url: str = PLACEHOLDER
    branch: str = PLACEHOLDER
    status: str = PLACEHOLDER  # "dirty" | "clean" | "-"
    sync: str = PLACEHOLDER
    recent_commits: list[str] = field(default_factory=list)
    readme: list[str] = field(default_factory=list)
    readme_status: str = "unavailable"  # "ok" | "missing" | "unavailable"
    extensions: list[PreviewSection] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class PreviewResult:
    data: RepoPreview
    error: Optional[str] = None

    @property
    def degraded(self) -> bool:
        return self.error is not None
