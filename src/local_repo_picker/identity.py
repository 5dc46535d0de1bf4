"""Repository identity: provider resolution, repo keys and cache records."""

from __future__ import annotations

from typing import Mapping, Optional

from .git.origin import parse_origin_info
from .models import PLACEHOLDER, GitRepository, RepositoryRecord
from .paths import derive_relative_path

# host -> (provider, base url)
KNOWN_PROVIDERS: dict[str, tuple[str, str]] = {
    "github.com": ("github", "https://github.com"),
    "gitee.com": ("gitee", "https://gitee.com"),
    "gitlab.com": ("gitlab", "https://gitlab.com"),
    "bitbucket.org": ("bitbucket", "https://bitbucket.org"),
    "dev.azure.com": ("azure", "https://dev.azure.com"),
}


def host_matches(host: str, pattern: str) -> bool:
    """Suffix match on whole host labels: ``corp.com`` matches ``git.corp.com``."""
    host = host.lower().rstrip(".")
    pattern = pattern.lower().strip().lstrip(".").rstrip(".")
    if not pattern:
        return False
    return host == pattern or host.endswith(f".{pattern}")


def match_host_override(host: str, overrides: Optional[Mapping[str, str]]) -> Optional[str]:
    """Provider name for ``host`` from user overrides; the longest pattern wins."""
    if not overrides:
        return None
    best: Optional[tuple[int, str]] = None
    for pattern, provider in overrides.items():
        if host_matches(host, pattern) and (best is None or len(pattern) > best[0]):
            best = (len(pattern), provider)
    return best[1] if best else None


def resolve_provider(host: str, overrides: Optional[Mapping[str, str]] = None) -> tuple[str, str]:
    """Return ``(provider, base_url)`` for an origin host."""
    host = host.lower()
    override = match_host_override(host, overrides)
    if override:
        return override, f"https://{host}"
    if host in KNOWN_PROVIDERS:
        return KNOWN_PROVIDERS[host]
    if host.endswith(".visualstudio.com"):
        return "azure", f"https://{host}"
    return "unknown", f"https://{host}"


def split_full_name(full_name: str) -> tuple[str, str]:
    parts = [part for part in full_name.strip().split("/") if part]
    if len(parts) >= 2:
        return parts[-2], parts[-1]
    if parts:
        return "", parts[0]
    return "", ""


def build_git_repository(
    origin_url: Optional[str],
    host_overrides: Optional[Mapping[str, str]] = None,
    fallback_full_name: str = "",
) -> Optional[GitRepository]:
    """Git identity for an origin URL, or None when no host can be parsed."""
    if not origin_url:
        return None
    info = parse_origin_info(origin_url)
    if not info.host:
        return None
    full_name = info.full_name or fallback_full_name.strip()
    provider, base_url = resolve_provider(info.host, host_overrides)
    namespace, repo = split_full_name(full_name)
    return GitRepository(
        provider=provider,
        namespace=namespace,
        repo=repo,
        full_name=full_name,
        base_url=base_url,
        origin_url=origin_url,
        is_valid=bool(full_name and namespace and repo),
    )


def build_record_key(git: Optional[GitRepository], relative_path: str) -> str:
    """Stable identity that survives moving the checkout on disk."""
    if git is not None and git.is_valid:
        return f"{git.provider}:{git.full_name}"
    if relative_path:
        return f"local:{relative_path}"
    return PLACEHOLDER


def build_repository_record(
    full_path: str,
    scan_root: str,
    is_dirty: bool,
    last_scanned_at: int,
    git: Optional[GitRepository] = None,
    relative_path: Optional[str] = None,
    manual_tags: Optional[list[str]] = None,
    auto_tags: Optional[list[str]] = None,
    tags: Optional[list[str]] = None,
) -> RepositoryRecord:
    if relative_path is None:
        relative_path = derive_relative_path(full_path, scan_root)
    return RepositoryRecord(
        full_path=full_path,
        scan_root=scan_root,
        relative_path=relative_path,
        repo_key=build_record_key(git, relative_path),
        git=git,
        is_dirty=is_dirty,
        manual_tags=list(manual_tags or []),
        auto_tags=list(auto_tags or []),
        tags=list(tags or []),
        last_scanned_at=last_scanned_at,
    )
