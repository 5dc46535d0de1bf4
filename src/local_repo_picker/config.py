"""Configuration loading and management for local-repo-picker.

Configuration sources are merged in priority order:
    1. Defaults (defined in PickerConfig)
    2. User config (<config dir>/config.toml)
    3. Explicit config file (if given)
    4. Environment variables (REPO_PICKER_* prefix)
    5. Keyword overrides (typically CLI flags)

Data files live in per-user directories unless LOCAL_REPO_PICKER_DIR points
somewhere else, in which case config/, data/ and cache/ are created below it.

Example:
    >>> config = load_config(scan_roots=["~/code"], max_depth=4)
    >>> config.max_depth
    4
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, get_type_hints

from .exceptions import ConfigurationError, InvalidConfigError

APP_NAME = "local-repo-picker"
ENV_PREFIX = "REPO_PICKER_"
BASE_DIR_ENV = "LOCAL_REPO_PICKER_DIR"

DEFAULT_MAX_DEPTH = 7
DEFAULT_CACHE_TTL_MS = 12 * 60 * 60 * 1000
DEFAULT_LRU_LIMIT = 300
DEFAULT_GIT_TIMEOUT_MS = 2000
DEFAULT_GIT_CONCURRENCY = 6

# Older config files used camelCase keys
_CAMEL_ALIASES = {
    "scanRoots": "scan_roots",
    "maxDepth": "max_depth",
    "pruneDirs": "prune_dirs",
    "followSymlinks": "follow_symlinks",
    "cacheTtlMs": "cache_ttl_ms",
    "remoteHostProviders": "remote_host_providers",
    "remoteHostTags": "remote_host_providers",
    "lruLimit": "lru_limit",
}


@dataclass(frozen=True)
class ConfigPaths:
    """Locations of every file the picker reads or writes."""

    config_dir: Path
    data_dir: Path
    cache_dir: Path

    @property
    def config_file(self) -> Path:
        return self.config_dir / "config.toml"

    @property
    def cache_file(self) -> Path:
        return self.cache_dir / "cache.json"

    @property
    def manual_tags_file(self) -> Path:
        return self.data_dir / "repo_tags.tsv"

    @property
    def lru_file(self) -> Path:
        return self.data_dir / "lru.txt"

    @classmethod
    def from_base(cls, base_dir: Path) -> "ConfigPaths":
        return cls(
            config_dir=base_dir / "config",
            data_dir=base_dir / "data",
            cache_dir=base_dir / "cache",
        )


def get_config_paths() -> ConfigPaths:
    """Resolve data file locations, honouring LOCAL_REPO_PICKER_DIR."""
    custom_base = os.environ.get(BASE_DIR_ENV, "").strip()
    if custom_base:
        return ConfigPaths.from_base(Path(custom_base).expanduser())

    home = Path.home()
    config_home = Path(os.environ.get("XDG_CONFIG_HOME") or home / ".config")
    data_home = Path(os.environ.get("XDG_DATA_HOME") or home / ".local" / "share")
    cache_home = Path(os.environ.get("XDG_CACHE_HOME") or home / ".cache")
    return ConfigPaths(
        config_dir=config_home / APP_NAME,
        data_dir=data_home / APP_NAME,
        cache_dir=cache_home / APP_NAME,
    )


@dataclass(frozen=True)
class PickerConfig:
    """Strongly-typed picker configuration.

    Attributes:
        Discovery:
            scan_roots: Directories under which repositories are discovered
            max_depth: Deepest directory level (relative to a root) to visit
            prune_dirs: Directory basenames that are never descended into
            follow_symlinks: Resolve symlinked directories instead of skipping them

        Cache:
            cache_ttl_ms: Snapshot lifetime in milliseconds
            lru_limit: Maximum entries kept in the recency list

        Git:
            git_timeout_ms: Per-invocation timeout for git subprocesses
            git_concurrency: Maximum git subprocesses in flight

        Tags:
            remote_host_providers: Host pattern -> provider name overrides,
                matched against the origin host by label suffix
    """

    scan_roots: list[str] = field(default_factory=list)
    max_depth: int = DEFAULT_MAX_DEPTH
    prune_dirs: list[str] = field(default_factory=list)
    follow_symlinks: bool = False

    cache_ttl_ms: int = DEFAULT_CACHE_TTL_MS
    lru_limit: int = DEFAULT_LRU_LIMIT

    git_timeout_ms: int = DEFAULT_GIT_TIMEOUT_MS
    git_concurrency: int = DEFAULT_GIT_CONCURRENCY

    remote_host_providers: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        if not all(isinstance(root, str) for root in self.scan_roots):
            raise InvalidConfigError("scan_roots", self.scan_roots, "entries must be strings")
        if self.max_depth < 0:
            raise InvalidConfigError("max_depth", self.max_depth, "must be non-negative")
        if self.cache_ttl_ms < 0:
            raise InvalidConfigError("cache_ttl_ms", self.cache_ttl_ms, "must be non-negative")
        if self.lru_limit < 1:
            raise InvalidConfigError("lru_limit", self.lru_limit, "must be at least 1")
        if self.git_timeout_ms < 1:
            raise InvalidConfigError("git_timeout_ms", self.git_timeout_ms, "must be positive")
        if self.git_concurrency < 1:
            raise InvalidConfigError("git_concurrency", self.git_concurrency, "must be at least 1")
        for pattern, provider in self.remote_host_providers.items():
            if not pattern.strip() or not str(provider).strip():
                raise InvalidConfigError(
                    "remote_host_providers", pattern, "host pattern and provider must be non-empty"
                )

    @property
    def resolved_scan_roots(self) -> list[Path]:
        """Scan roots expanded and made absolute; symlinks are left in place."""
        return [Path(os.path.abspath(os.path.expanduser(root))) for root in self.scan_roots]

    @property
    def cache_ttl_seconds(self) -> float:
        return self.cache_ttl_ms / 1000


def load_config(config_file: Optional[Path] = None, **overrides: Any) -> PickerConfig:
    """Load configuration with auto-discovery and merging.

    Args:
        config_file: Optional explicit config file path
        **overrides: Direct overrides (typically from CLI flags); ``None``
            values are ignored

    Returns:
        Validated PickerConfig instance

    Raises:
        ConfigurationError: If a config file is invalid or missing
    """
    merged: dict[str, Any] = {}

    user_config = get_config_paths().config_file
    if user_config.exists():
        try:
            merged.update(_normalize_keys(load_toml_file(user_config)))
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Invalid user config '{user_config}': {e}")

    if config_file is not None:
        if not config_file.exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        try:
            merged.update(_normalize_keys(load_toml_file(config_file)))
        except ConfigurationError:
            raise
        except Exception as e:
            raise ConfigurationError(f"Invalid config file '{config_file}': {e}")

    merged.update(_load_env_vars())
    merged.update({key: value for key, value in overrides.items() if value is not None})

    return _build_config(merged)


def _build_config(values: dict[str, Any]) -> PickerConfig:
    """Coerce loosely-typed values into a PickerConfig."""
    known = PickerConfig.__dataclass_fields__
    unknown = sorted(set(values) - set(known))
    if unknown:
        raise ConfigurationError(f"Invalid configuration: unknown keys {', '.join(unknown)}")

    coerced = dict(values)
    for list_key in ("scan_roots", "prune_dirs"):
        if list_key in coerced:
            raw = coerced[list_key]
            if isinstance(raw, str):
                raw = [raw]
            if not isinstance(raw, (list, tuple)):
                raise InvalidConfigError(list_key, raw, "expected a list of strings")
            coerced[list_key] = [str(item) for item in raw if isinstance(item, str) and item.strip()]
    if "remote_host_providers" in coerced:
        raw = coerced["remote_host_providers"]
        if not isinstance(raw, dict):
            raise InvalidConfigError("remote_host_providers", raw, "expected a table")
        coerced["remote_host_providers"] = {
            str(pattern).strip().lower(): str(provider).strip()
            for pattern, provider in raw.items()
            if isinstance(provider, str)
        }

    try:
        return PickerConfig(**coerced)
    except TypeError as e:
        raise ConfigurationError(f"Invalid configuration: {e}")


def _normalize_keys(raw: dict[str, Any]) -> dict[str, Any]:
    return {_CAMEL_ALIASES.get(key, key): value for key, value in raw.items()}


def _load_env_vars() -> dict[str, Any]:
    """Load configuration from REPO_PICKER_* environment variables.

    Lists are colon-separated (os.pathsep) for scan_roots and comma-separated
    for prune_dirs. remote_host_providers is not configurable from the
    environment.
    """
    type_hints = get_type_hints(PickerConfig)
    result: dict[str, Any] = {}

    for field_name in PickerConfig.__dataclass_fields__:
        env_key = f"{ENV_PREFIX}{field_name.upper()}"
        env_value = os.environ.get(env_key)
        if env_value is None:
            continue
        try:
            parsed = _parse_env_value(env_value, type_hints.get(field_name), field_name)
        except ValueError as e:
            raise ConfigurationError(f"Invalid {env_key}: {e}")
        if parsed is not None:
            result[field_name] = parsed

    return result


def _parse_env_value(value: str, type_hint: Any, field_name: str) -> Any:
    """Parse environment variable string to the correct type."""
    if field_name == "scan_roots":
        return [part for part in value.split(os.pathsep) if part.strip()]
    if field_name == "prune_dirs":
        return [part.strip() for part in value.split(",") if part.strip()]

    if type_hint is bool:
        lower = value.lower()
        if lower in ("true", "1", "yes", "on"):
            return True
        elif lower in ("false", "0", "no", "off"):
            return False
        else:
            raise ValueError(f"expected true/false, got '{value}'")

    if type_hint is int:
        return int(value)

    return None


def load_toml_file(path: Path) -> dict:
    """Load TOML file and return parsed dict."""
    try:
        # Python 3.11+ has tomllib in stdlib
        import tomllib
    except ModuleNotFoundError:
        try:
            import tomli as tomllib  # type: ignore
        except ImportError:
            raise ConfigurationError(
                "TOML support requires Python 3.11+ or 'tomli' package. "
                "Install with: pip install tomli"
            )

    with open(path, "rb") as f:
        return tomllib.load(f)
