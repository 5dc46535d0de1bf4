"""The complete set of git invocations the picker may perform.

Every entry is an exact argument tuple. Anything else, including the same
subcommand with different flags, is refused before a process is spawned.
"""

from typing import Sequence

GIT_ALLOWLIST: frozenset[tuple[str, ...]] = frozenset(
    {
        ("--version",),
        ("status", "--porcelain"),
        ("config", "--get", "remote.origin.url"),
        ("rev-parse", "--abbrev-ref", "HEAD"),
        ("rev-parse", "--show-toplevel"),
        ("rev-list", "--left-right", "--count", "HEAD...@{upstream}"),
        ("log", "-n", "12", "--date=iso", "--pretty=format:%cd %h %s"),
    }
)


def is_allowed(args: Sequence[str]) -> bool:
    return tuple(args) in GIT_ALLOWLIST
