"""Most-recently-used ordering of repository paths.

The list is kept in ``lru.txt`` as newline separated normalised path keys,
most recent first, independent of the cache snapshot.
"""

from __future__ import annotations

from operator import attrgetter
from pathlib import Path
from typing import Any, Callable, Iterable, Sequence, TypeVar

from .exceptions import FileAccessError
from .file_ops import safe_read_text, safe_write_file
from .logging_config import get_logger
from .paths import normalize_repo_key

logger = get_logger(__name__)

DEFAULT_LRU_LIMIT = 300

T = TypeVar("T")


def _dedupe_keys(entries: Iterable[str]) -> list[str]:
    seen: set[str] = set()
    result: list[str] = []
    for entry in entries:
        key = normalize_repo_key(entry)
        if not key or key in seen:
            continue
        seen.add(key)
        result.append(key)
    return result


def read_lru(file_path: Path) -> list[str]:
    """Return the stored keys, most recent first; missing file is empty."""
    try:
        content = safe_read_text(file_path)
    except FileAccessError as e:
        logger.warning(f"Cannot read LRU list {file_path}: {e}")
        return []
    if content is None:
        return []
    return _dedupe_keys(content.splitlines())


def update_lru(file_path: Path, repo_path: str, limit: int = DEFAULT_LRU_LIMIT) -> list[str]:
    """Move ``repo_path`` to the front, truncate to ``limit`` and persist."""
    if limit < 1:
        raise ValueError("limit must be at least 1")
    key = normalize_repo_key(repo_path)
    if not key:
        raise ValueError("repo_path is required")
    current = read_lru(file_path)
    updated = [key, *(item for item in current if item != key)][:limit]
    safe_write_file(file_path, "\n".join(updated) + "\n")
    return updated


def _default_path(item: Any) -> str:
    if isinstance(item, str):
        return item
    return attrgetter("full_path")(item)


def sort_by_lru(
    items: Sequence[T],
    lru_list: Sequence[str],
    key: Callable[[T], str] = _default_path,
) -> list[T]:
    """Order ``items`` by their rank in ``lru_list``.

    Ranked items come first in list order; the rest follow sorted by path.
    With an empty list everything is sorted by path.
    """
    if not lru_list:
        return sorted(items, key=key)

    rank: dict[str, int] = {}
    for index, entry in enumerate(lru_list):
        rank.setdefault(normalize_repo_key(entry), index)
    unranked = len(lru_list)

    def sort_key(item: T) -> tuple[int, str]:
        path = key(item)
        return rank.get(normalize_repo_key(path), unranked), path

    return sorted(items, key=sort_key)
