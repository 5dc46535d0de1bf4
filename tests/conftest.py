"""Shared test fixtures for local-repo-picker tests."""

import asyncio
import os
from pathlib import Path
from typing import Optional

import pytest

from local_repo_picker.git.command import CommandResult


def pytest_addoption(parser):
    """Add --run-slow option for slow tests."""
    parser.addoption(
        "--run-slow",
        action="store_true",
        default=False,
        help="run slow tests",
    )


def pytest_configure(config):
    """Configure slow marker."""
    config.addinivalue_line("markers", "slow: mark test as slow to run")


def pytest_collection_modifyitems(config, items):
    """Skip slow tests unless --run-slow is given."""
    if config.getoption("--run-slow"):
        return
    skip_slow = pytest.mark.skip(reason="need --run-slow option to run")
    for item in items:
        if "slow" in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    """Point every data file at a per-test directory and drop picker env vars."""
    for key in list(os.environ):
        if key.startswith("REPO_PICKER_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.delenv("DEBUG", raising=False)
    monkeypatch.delenv("LOCAL_REPO_PICKER_DEBUG", raising=False)
    base = tmp_path / "picker-home"
    monkeypatch.setenv("LOCAL_REPO_PICKER_DIR", str(base))
    return base


def make_repo(root: Path, relative: str, origin: Optional[str] = None) -> Path:
    """Create a fake working tree with a ``.git`` directory and optional origin."""
    repo = root / relative if relative else root
    git_dir = repo / ".git"
    git_dir.mkdir(parents=True, exist_ok=True)
    lines = ["[core]", "\tbare = false"]
    if origin:
        lines += ['[remote "origin"]', f"\turl = {origin}", "\tfetch = +refs/heads/*:refs/remotes/origin/*"]
    (git_dir / "config").write_text("\n".join(lines) + "\n", encoding="utf-8")
    return repo


class FakeGitRunner:
    """Stands in for run_command; records every spawn.

    ``responses`` maps an argument tuple (without the executable) to a
    CommandResult, or to an exception instance that is raised.
    """

    def __init__(self, responses=None, delay: float = 0.0):
        self.responses = dict(responses or {})
        self.default = CommandResult(returncode=0, stdout="", stderr="")
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def __call__(self, argv, cwd, timeout_s):
        self.calls.append((tuple(argv[1:]), cwd, timeout_s))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            response = self.respond(tuple(argv[1:]), cwd)
            if isinstance(response, BaseException):
                raise response
            return response
        finally:
            self.in_flight -= 1

    def respond(self, args, cwd):
        return self.responses.get(args, self.default)

    def args_called(self):
        return [args for args, _cwd, _timeout in self.calls]


@pytest.fixture
def fake_runner():
    return FakeGitRunner()


@pytest.fixture
def scan_root(tmp_path):
    root = tmp_path / "code"
    root.mkdir()
    return root
