"""Git metadata resolution under an allowlist, timeouts and a shared limiter.

``GitMetadataResolver`` owns the state that would otherwise be module
globals: the concurrency limiter, the "is git installed" memo and the
command runner. Tests build isolated instances with a fake runner.

Expected failures are returned as ``GitResult`` values carrying a
``GitErrorKind``; callers substitute placeholders instead of catching.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Sequence

from ..exceptions import SecurityError
from ..logging_config import get_logger
from .allowlist import is_allowed
from .command import CommandRunner, CommandTimeout, run_command
from .origin import read_origin_url

logger = get_logger(__name__)

DEFAULT_TIMEOUT_MS = 2000
DEFAULT_MAX_CONCURRENCY = 6


class GitErrorKind(str, Enum):
    NOT_FOUND = "not_found"  # git executable missing
    NOT_REPO = "not_repo"
    TIMEOUT = "timeout"
    NOT_ALLOWED = "not_allowed"
    UNKNOWN = "unknown"


# Highest priority first
ERROR_PRIORITY: tuple[GitErrorKind, ...] = (
    GitErrorKind.NOT_FOUND,
    GitErrorKind.NOT_REPO,
    GitErrorKind.TIMEOUT,
    GitErrorKind.NOT_ALLOWED,
    GitErrorKind.UNKNOWN,
)


@dataclass(frozen=True)
class GitResult:
    ok: bool
    stdout: str = ""
    kind: Optional[GitErrorKind] = None
    message: str = ""
    returncode: Optional[int] = None

    @classmethod
    def failure(
        cls, kind: GitErrorKind, message: str, returncode: Optional[int] = None
    ) -> "GitResult":
        return cls(ok=False, kind=kind, message=message, returncode=returncode)


class GitMetadataResolver:
    """Runs allowlisted git commands with per-call timeouts.

    All invocations made through one instance share a limiter, so at most
    ``max_concurrency`` git processes exist at any time regardless of how
    many repositories are processed together.
    """

    def __init__(
        self,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
        runner: Optional[CommandRunner] = None,
        executable: str = "git",
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        self.timeout_ms = timeout_ms
        self.max_concurrency = max_concurrency
        self.executable = executable
        self._runner: CommandRunner = runner or run_command
        self._available: Optional[bool] = None
        self._limiter: Optional[asyncio.Semaphore] = None
        self._limiter_loop: Optional[asyncio.AbstractEventLoop] = None

    def _get_limiter(self) -> asyncio.Semaphore:
        # A semaphore is bound to the loop it first waits on
        loop = asyncio.get_running_loop()
        if self._limiter is None or self._limiter_loop is not loop:
            self._limiter = asyncio.Semaphore(self.max_concurrency)
            self._limiter_loop = loop
        return self._limiter

    async def run_git(
        self,
        args: Sequence[str],
        cwd: Optional[str | Path] = None,
        timeout_ms: Optional[int] = None,
    ) -> GitResult:
        """Run ``git <args>`` if the argument tuple is allowlisted."""
        if not is_allowed(args):
            logger.debug(f"git command refused: {list(args)!r}")
            return GitResult.failure(GitErrorKind.NOT_ALLOWED, "git command not allowed")

        cwd_str = str(cwd) if cwd is not None else None
        if cwd_str is not None and not Path(cwd_str).is_dir():
            return GitResult.failure(GitErrorKind.NOT_REPO, f"not a directory: {cwd_str}")

        timeout_s = (timeout_ms if timeout_ms is not None else self.timeout_ms) / 1000
        argv = [self.executable, *args]

        async with self._get_limiter():
            try:
                result = await self._runner(argv, cwd_str, timeout_s)
            except FileNotFoundError as e:
                return GitResult.failure(GitErrorKind.NOT_FOUND, f"git not found: {e}")
            except CommandTimeout as e:
                logger.debug(f"git timeout in {cwd_str}: {e}")
                return GitResult.failure(GitErrorKind.TIMEOUT, str(e))
            except SecurityError as e:
                return GitResult.failure(GitErrorKind.NOT_ALLOWED, str(e))
            except OSError as e:
                logger.debug(f"git failed in {cwd_str}: {e}")
                return GitResult.failure(GitErrorKind.UNKNOWN, str(e))

        if result.ok:
            return GitResult(ok=True, stdout=result.stdout, returncode=result.returncode)

        stderr = result.stderr.strip()
        if "not a git repository" in stderr.lower():
            return GitResult.failure(GitErrorKind.NOT_REPO, stderr, result.returncode)
        return GitResult.failure(
            GitErrorKind.UNKNOWN, stderr or f"git exited with {result.returncode}", result.returncode
        )

    async def is_available(self) -> bool:
        """Whether the git executable runs; memoised for the instance lifetime."""
        if self._available is None:
            result = await self.run_git(["--version"])
            self._available = result.ok
            if not result.ok:
                logger.debug(f"git unavailable: {result.message}")
        return self._available

    async def is_dirty(self, repo_path: str | Path, timeout_ms: Optional[int] = None) -> bool:
        """True when ``git status --porcelain`` reports changes; False on failure."""
        result = await self.run_git(["status", "--porcelain"], cwd=repo_path, timeout_ms=timeout_ms)
        return result.ok and bool(result.stdout.strip())

    async def read_origin(self, repo_path: str | Path, timeout_ms: Optional[int] = None) -> GitResult:
        """Origin URL via the config fast path, falling back to the git CLI.

        A missing origin (``git config --get`` exiting 1) is a successful
        result with empty output.
        """
        from_config = read_origin_url(repo_path)
        if from_config:
            return GitResult(ok=True, stdout=from_config, returncode=0)
        result = await self.run_git(
            ["config", "--get", "remote.origin.url"], cwd=repo_path, timeout_ms=timeout_ms
        )
        if not result.ok and result.kind is GitErrorKind.UNKNOWN and result.returncode == 1:
            return GitResult(ok=True, stdout="", returncode=1)
        if result.ok:
            return GitResult(ok=True, stdout=result.stdout.strip(), returncode=result.returncode)
        return result

    async def read_origin_value(self, repo_path: str | Path) -> Optional[str]:
        result = await self.read_origin(repo_path)
        value = result.stdout.strip() if result.ok else ""
        return value or None

    def clear(self) -> None:
        """Forget memoised availability."""
        self._available = None


def pick_error_kind(kinds: Sequence[Optional[GitErrorKind]]) -> Optional[GitErrorKind]:
    """Most significant failure among ``kinds`` by ERROR_PRIORITY."""
    present = {kind for kind in kinds if kind is not None}
    for kind in ERROR_PRIORITY:
        if kind in present:
            return kind
    return None
