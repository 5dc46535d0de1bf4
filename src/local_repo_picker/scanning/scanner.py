"""Repository discovery below configured scan roots.

A directory holding a ``.git`` entry is a repository and a leaf: nothing
beneath it is visited, so nested repositories (vendored checkouts,
submodules) never show up on their own.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..logging_config import get_logger
from ..models import DiscoveredRepo, ScanWarning, WarningReason

logger = get_logger(__name__)

VCS_MARKER = ".git"

WarningSink = Callable[[ScanWarning], None]


class PathScanner:
    """Walks scan roots and collects repository leaves.

    Anomalies never abort the scan; they are reported through ``on_warning``
    and kept on ``self.warnings``.
    """

    def __init__(
        self,
        max_depth: int = 7,
        prune_dirs: Iterable[str] = (),
        follow_symlinks: bool = False,
        on_warning: Optional[WarningSink] = None,
    ):
        self.max_depth = max_depth
        self.prune_dirs = frozenset(prune_dirs)
        self.follow_symlinks = follow_symlinks
        self.on_warning = on_warning
        self.warnings: list[ScanWarning] = []

    def scan(self, scan_roots: Iterable[str | Path]) -> list[DiscoveredRepo]:
        results: list[DiscoveredRepo] = []
        for raw_root in scan_roots:
            root = Path(os.path.abspath(os.path.expanduser(os.fspath(raw_root))))
            start = self._check_root(root)
            if start is None:
                continue
            # Real paths already walked under this root; breaks symlink loops
            visited: set[str] = set()
            self._walk(root, start, 0, visited, results)
        logger.debug(f"scan: {len(results)} repos, {len(self.warnings)} warnings")
        return results

    # ── Roots ──────────────────────────────────────────────────

    def _check_root(self, root: Path) -> Optional[Path]:
        """Return the directory to walk for ``root``, or None when unusable."""
        if root.is_symlink():
            if not self.follow_symlinks:
                self._warn(root, WarningReason.SYMLINK_SKIPPED)
                return None
            try:
                target = root.resolve(strict=True)
            except (OSError, RuntimeError):
                self._warn(root, WarningReason.NOT_FOUND)
                return None
            if not target.is_dir():
                self._warn(root, WarningReason.NOT_DIRECTORY)
                return None
            return root

        try:
            root.stat()
        except FileNotFoundError:
            self._warn(root, WarningReason.NOT_FOUND)
            return None
        except PermissionError:
            self._warn(root, WarningReason.NO_PERMISSION)
            return None
        except OSError:
            self._warn(root, WarningReason.NOT_FOUND)
            return None

        if not root.is_dir():
            self._warn(root, WarningReason.NOT_DIRECTORY)
            return None
        return root

    # ── Traversal ──────────────────────────────────────────────

    def _walk(
        self,
        root: Path,
        current: Path,
        depth: int,
        visited: set[str],
        results: list[DiscoveredRepo],
    ) -> None:
        if depth > self.max_depth:
            return

        real = os.path.realpath(current)
        if real in visited:
            return
        visited.add(real)

        try:
            with os.scandir(current) as it:
                entries = sorted(it, key=lambda entry: entry.name)
        except PermissionError:
            self._warn(current, WarningReason.NO_PERMISSION)
            return
        except NotADirectoryError:
            self._warn(current, WarningReason.NOT_DIRECTORY)
            return
        except OSError:
            self._warn(current, WarningReason.READDIR_FAILED)
            return

        if any(entry.name == VCS_MARKER for entry in entries):
            results.append(
                DiscoveredRepo(
                    path=str(current),
                    scan_root=str(root),
                    auto_tag=auto_tag_for(root, current),
                )
            )
            return

        # Real directories claim their real paths before any link to them does
        links: list[Path] = []
        for entry in entries:
            name = entry.name
            if name.startswith(".") or name.startswith("_"):
                continue
            if name in self.prune_dirs:
                continue

            child = current / name
            try:
                is_link = entry.is_symlink()
            except OSError:
                self._warn(child, WarningReason.READDIR_FAILED)
                continue

            if is_link:
                if not self.follow_symlinks:
                    self._warn(child, WarningReason.SYMLINK_SKIPPED)
                    continue
                try:
                    target_is_dir = entry.is_dir(follow_symlinks=True)
                except OSError:
                    target_is_dir = False
                if not target_is_dir:
                    self._warn(child, WarningReason.NOT_DIRECTORY)
                    continue
                links.append(child)
                continue

            try:
                if not entry.is_dir(follow_symlinks=False):
                    continue
            except OSError:
                self._warn(child, WarningReason.READDIR_FAILED)
                continue
            self._walk(root, child, depth + 1, visited, results)

        for child in links:
            self._walk(root, child, depth + 1, visited, results)

    def _warn(self, path: Path, reason: WarningReason) -> None:
        warning = ScanWarning(path=str(path), reason=reason)
        self.warnings.append(warning)
        logger.debug(f"scan warning {warning.describe()}")
        if self.on_warning is not None:
            self.on_warning(warning)


def auto_tag_for(scan_root: Path, repo_path: Path) -> Optional[str]:
    """Bracketed first path segment of ``repo_path`` below ``scan_root``."""
    try:
        relative = repo_path.relative_to(scan_root)
    except ValueError:
        return None
    parts = [part for part in relative.parts if part]
    if not parts:
        return None
    return f"[{parts[0]}]"


def scan_repos(
    scan_roots: Iterable[str | Path],
    max_depth: int = 7,
    prune_dirs: Iterable[str] = (),
    follow_symlinks: bool = False,
    on_warning: Optional[WarningSink] = None,
) -> list[DiscoveredRepo]:
    """Discover repositories below ``scan_roots``; see PathScanner."""
    scanner = PathScanner(
        max_depth=max_depth,
        prune_dirs=prune_dirs,
        follow_symlinks=follow_symlinks,
        on_warning=on_warning,
    )
    return scanner.scan(scan_roots)
