"""
local-repo-picker - discover, tag and preview local git repositories

Scans configured roots for git checkouts, derives identity and tags from
each repository's origin and working tree, and keeps a TTL-bounded,
recency-ordered snapshot for fast listing.
"""

__version__ = "0.3.0"

from .cache import CacheStore
from .config import PickerConfig, load_config
from .git import GitMetadataResolver
from .models import CacheSnapshot, PreviewResult, RepositoryRecord
from .plugins import PluginRegistry, builtin_plugins
from .preview import PreviewAssembler, build_fallback_preview

__all__ = [
    "CacheStore",  # Build / load / refresh the repository snapshot
    "PickerConfig",
    "load_config",
    "GitMetadataResolver",
    "CacheSnapshot",
    "PreviewResult",
    "RepositoryRecord",
    "PluginRegistry",
    "builtin_plugins",
    "PreviewAssembler",
    "build_fallback_preview",
]
