"""
Repository cache for local-repo-picker.

The cache is a single JSON snapshot (``cache.json``) holding every
discovered repository with its identity and tags. Its lifecycle:

    absent/corrupt -> built -> fresh -> stale -> rebuilt

A snapshot that fails to decode is deleted so the next load sees "absent"
again. A stale snapshot is left on disk and ignored. Writes always replace
the whole file; there is no locking, the last writer wins.
"""

from __future__ import annotations

import asyncio
import json
import os
import time
from pathlib import Path
from typing import Callable, Optional

from .config import ConfigPaths, PickerConfig, get_config_paths
from .exceptions import CorruptCacheError, FileAccessError
from .file_ops import remove_file, safe_read_text, safe_write_file
from .git import GitMetadataResolver, parse_origin_info
from .identity import build_git_repository, build_repository_record
from .logging_config import get_logger
from .lru import read_lru, sort_by_lru
from .models import (
    CACHE_VERSION,
    CacheMetadata,
    CacheSnapshot,
    DiscoveredRepo,
    ManualTagEdit,
    RepositoryRecord,
    ScanWarning,
)
from .paths import normalize_repo_key
from .plugins import PluginRegistry, TagPluginInput
from .scanning import PathScanner
from .tags import build_tags, get_remote_tag, merge_tags, read_manual_tag_edits

logger = get_logger(__name__)

MAX_WARNING_SAMPLES = 20
ENRICH_CONCURRENCY = 6

Clock = Callable[[], int]


def now_ms() -> int:
    return int(time.time() * 1000)


class CacheStore:
    """
    Builds, persists and loads the repository snapshot.

    Features:
    - Scan -> git metadata -> tags pipeline with bounded concurrency
    - TTL-based staleness
    - Self-healing on corrupt snapshots
    - Pruning of repositories that vanished from disk
    - LRU ordering of the returned repositories
    """

    def __init__(
        self,
        config: PickerConfig,
        paths: Optional[ConfigPaths] = None,
        git: Optional[GitMetadataResolver] = None,
        registry: Optional[PluginRegistry] = None,
        cache_file: Optional[Path] = None,
        manual_tags_file: Optional[Path] = None,
        lru_file: Optional[Path] = None,
        on_warning: Optional[Callable[[ScanWarning], None]] = None,
        clock: Clock = now_ms,
    ):
        """
        Initialize the store.

        Args:
            config: Picker configuration
            paths: Data file locations (defaults to get_config_paths())
            git: Git resolver shared with other consumers
            registry: Plugin registry consulted for extra tags
            cache_file: Override for the snapshot location
            manual_tags_file: Override for the manual tags file
            lru_file: Override for the LRU list
            on_warning: Called once per scan anomaly
            clock: Millisecond clock, replaceable in tests
        """
        paths = paths or get_config_paths()
        self.config = config
        self.cache_file = Path(cache_file) if cache_file else paths.cache_file
        self.manual_tags_file = Path(manual_tags_file) if manual_tags_file else paths.manual_tags_file
        self.lru_file = Path(lru_file) if lru_file else paths.lru_file
        self.git = git or GitMetadataResolver(
            timeout_ms=config.git_timeout_ms, max_concurrency=config.git_concurrency
        )
        self.registry = registry if registry is not None else PluginRegistry()
        self.on_warning = on_warning
        self.clock = clock
        self.warnings: list[ScanWarning] = []

    @property
    def scan_roots(self) -> list[str]:
        return [str(root) for root in self.config.resolved_scan_roots]

    # ── Build ──────────────────────────────────────────────────

    async def build_cache(self, reason: str = "initial") -> CacheSnapshot:
        """Scan every root, enrich each repository and write a new snapshot."""
        build_started_at = self.clock()
        manual_edits = read_manual_tag_edits(self.manual_tags_file)

        scanner = PathScanner(
            max_depth=self.config.max_depth,
            prune_dirs=self.config.prune_dirs,
            follow_symlinks=self.config.follow_symlinks,
            on_warning=self.on_warning,
        )
        scan_started_at = self.clock()
        found = scanner.scan(self.scan_roots)
        scan_finished_at = self.clock()
        self.warnings = list(scanner.warnings)
        logger.debug(
            f"scan: {len(found)} repos, {scan_finished_at - scan_started_at}ms ({reason})"
        )

        limiter = asyncio.Semaphore(ENRICH_CONCURRENCY)

        async def enrich_limited(repo: DiscoveredRepo) -> RepositoryRecord:
            async with limiter:
                return await self._enrich(repo, manual_edits)

        records = list(await asyncio.gather(*(enrich_limited(repo) for repo in found)))
        ordered = self._apply_lru(records)

        build_finished_at = self.clock()
        metadata = CacheMetadata(
            cache_version=CACHE_VERSION,
            scan_started_at=scan_started_at,
            scan_finished_at=scan_finished_at,
            scan_duration_ms=scan_finished_at - scan_started_at,
            build_duration_ms=build_finished_at - build_started_at,
            repo_count=len(ordered),
            scan_roots=self.scan_roots,
            warning_count=len(self.warnings),
            warning_samples=[w.describe() for w in self.warnings[:MAX_WARNING_SAMPLES]],
        )
        snapshot = CacheSnapshot(
            saved_at=self.clock(),
            ttl_ms=self.config.cache_ttl_ms,
            metadata=metadata,
            repos=ordered,
        )
        self._write(snapshot)
        logger.info(f"Cache built: {len(ordered)} repos ({reason})")
        return snapshot

    async def refresh_cache(self) -> CacheSnapshot:
        """Rebuild regardless of the current snapshot's age."""
        return await self.build_cache(reason="refresh")

    async def load_or_build(self) -> CacheSnapshot:
        cached = await self.load_cache()
        if cached is not None:
            return cached
        return await self.build_cache()

    async def _enrich(
        self, repo: DiscoveredRepo, manual_edits: dict[str, ManualTagEdit]
    ) -> RepositoryRecord:
        overrides = self.config.remote_host_providers
        origin_url = await self.git.read_origin_value(repo.path)
        origin = parse_origin_info(origin_url)
        git_identity = build_git_repository(origin_url, overrides)
        remote_tag = get_remote_tag(origin.host, overrides)
        dirty = await self.git.is_dirty(repo.path)

        edit = manual_edits.get(normalize_repo_key(repo.path))
        manual_tags = list(edit.add) if edit else []
        removed = list(edit.remove) if edit else []
        auto_tags = [repo.auto_tag] if repo.auto_tag else []

        base_tags = build_tags(remote_tag, repo.auto_tag, manual_tags, dirty)
        owner_repo = origin.full_name or os.path.basename(repo.path)
        extra_tags = await self.registry.resolve_tag_extensions(
            TagPluginInput(
                repo_path=repo.path,
                scan_root=repo.scan_root,
                owner_repo=owner_repo,
                dirty=dirty,
                base_tags=list(base_tags),
                origin_url=origin_url,
                provider=git_identity.provider if git_identity else None,
                auto_tag=repo.auto_tag,
                manual_tags=manual_tags,
            )
        )

        return build_repository_record(
            full_path=repo.path,
            scan_root=repo.scan_root,
            is_dirty=dirty,
            last_scanned_at=self.clock(),
            git=git_identity,
            manual_tags=manual_tags,
            auto_tags=auto_tags,
            tags=merge_tags(base_tags, extra_tags, removed),
        )

    # ── Load ───────────────────────────────────────────────────

    async def load_cache(self) -> Optional[CacheSnapshot]:
        """Return the current snapshot, or None when absent, corrupt or stale.

        Repositories whose directories disappeared are dropped from the
        returned view and the pruned snapshot is written back, keeping its
        original ``saved_at`` so pruning never extends the TTL.
        """
        try:
            content = safe_read_text(self.cache_file)
        except FileAccessError as e:
            logger.warning(f"Cache unreadable: {e}")
            return None
        if content is None:
            return None

        try:
            snapshot = self._decode(content)
        except CorruptCacheError as e:
            logger.warning(f"{e}, removing")
            self._discard()
            return None

        now = self.clock()
        if snapshot.is_stale(now):
            logger.debug("cache expired")
            return None

        existing = [repo for repo in snapshot.repos if os.path.exists(repo.full_path)]
        pruned = len(snapshot.repos) - len(existing)
        snapshot.repos = self._apply_lru(existing)
        snapshot.metadata.repo_count = len(snapshot.repos)
        if not snapshot.metadata.scan_roots:
            snapshot.metadata.scan_roots = self.scan_roots

        if pruned > 0:
            snapshot.metadata.pruned_at = now
            snapshot.metadata.pruned_repo_count = pruned
            logger.info(f"Pruned {pruned} missing repos from cache")
            try:
                self._write(snapshot)
            except FileAccessError as e:
                logger.warning(f"Could not persist pruned cache: {e}")

        logger.debug(f"cache hit: {len(snapshot.repos)} repos")
        return snapshot

    # ── Helpers ────────────────────────────────────────────────

    def _apply_lru(self, records: list[RepositoryRecord]) -> list[RepositoryRecord]:
        return sort_by_lru(records, read_lru(self.lru_file))

    def _decode(self, content: str) -> CacheSnapshot:
        try:
            return CacheSnapshot.from_dict(json.loads(content), self.config.cache_ttl_ms)
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise CorruptCacheError(self.cache_file, str(e))

    def _write(self, snapshot: CacheSnapshot) -> None:
        safe_write_file(
            self.cache_file,
            json.dumps(snapshot.to_dict(), indent=2, ensure_ascii=False) + "\n",
        )

    def _discard(self) -> None:
        try:
            remove_file(self.cache_file)
        except FileAccessError as e:
            logger.warning(f"Could not remove corrupt cache: {e}")

    def clear(self) -> bool:
        """Delete the snapshot file; returns True if one existed."""
        return remove_file(self.cache_file)

    def stats(self) -> dict:
        """Summary of the snapshot file for display."""
        exists = self.cache_file.exists()
        return {
            "cache_file": str(self.cache_file),
            "exists": exists,
            "size": self.cache_file.stat().st_size if exists else 0,
            "ttl_ms": self.config.cache_ttl_ms,
            "ttl_seconds": self.config.cache_ttl_seconds,
        }
