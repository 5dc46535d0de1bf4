"""Git metadata: allowlisted commands, origin parsing and repository identity."""

from .allowlist import GIT_ALLOWLIST, is_allowed
from .command import CommandResult, CommandTimeout, run_command
from .origin import (
    OriginInfo,
    parse_origin_info,
    parse_origin_to_site_url,
    read_origin_url,
    resolve_git_dir,
)
from .resolver import (
    ERROR_PRIORITY,
    GitErrorKind,
    GitMetadataResolver,
    GitResult,
    pick_error_kind,
)

__all__ = [
    "GIT_ALLOWLIST",
    "is_allowed",
    "CommandResult",
    "CommandTimeout",
    "run_command",
    "OriginInfo",
    "parse_origin_info",
    "parse_origin_to_site_url",
    "read_origin_url",
    "resolve_git_dir",
    "ERROR_PRIORITY",
    "GitErrorKind",
    "GitMetadataResolver",
    "GitResult",
    "pick_error_kind",
]
