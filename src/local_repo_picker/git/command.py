"""Asynchronous subprocess execution with a hard timeout."""

from __future__ import annotations

import asyncio
import os
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence

from ..security import ensure_safe_token

# Captured output is truncated to this many bytes per stream after the process exits
MAX_OUTPUT_BYTES = 4 * 1024 * 1024


@dataclass(frozen=True)
class CommandResult:
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class CommandTimeout(Exception):
    """Raised when a subprocess does not finish within its timeout."""

    def __init__(self, argv: Sequence[str], timeout_s: float):
        super().__init__(f"{' '.join(argv)} timed out after {timeout_s:.1f}s")
        self.argv = list(argv)
        self.timeout_s = timeout_s


CommandRunner = Callable[[Sequence[str], Optional[str], float], Awaitable[CommandResult]]

# Keep git non-interactive and its messages in English for classification
_GIT_ENV = {
    "GIT_TERMINAL_PROMPT": "0",
    "GIT_OPTIONAL_LOCKS": "0",
    "LC_ALL": "C",
    "LANG": "C",
}


def _build_env() -> dict[str, str]:
    env = dict(os.environ)
    env.update(_GIT_ENV)
    return env


async def run_command(
    argv: Sequence[str],
    cwd: Optional[str] = None,
    timeout_s: float = 2.0,
) -> CommandResult:
    """Run ``argv`` without a shell and capture its output.

    Raises:
        FileNotFoundError: If the executable does not exist
        CommandTimeout: If the process outlives ``timeout_s``; it is killed
        SecurityError: If any token contains a NUL byte
    """
    if not argv:
        raise ValueError("command required")
    for token in argv:
        ensure_safe_token(token)
    if cwd is not None:
        ensure_safe_token(cwd, "path")
        cwd = os.path.abspath(cwd)

    proc = await asyncio.create_subprocess_exec(
        *argv,
        cwd=cwd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=_build_env(),
    )
    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout_s)
    except asyncio.TimeoutError:
        proc.kill()
        await proc.wait()
        raise CommandTimeout(argv, timeout_s)
    except asyncio.CancelledError:
        proc.kill()
        await proc.wait()
        raise

    return CommandResult(
        returncode=proc.returncode if proc.returncode is not None else -1,
        stdout=stdout[:MAX_OUTPUT_BYTES].decode("utf-8", errors="replace"),
        stderr=stderr[:MAX_OUTPUT_BYTES].decode("utf-8", errors="replace"),
    )
