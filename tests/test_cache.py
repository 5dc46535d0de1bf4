"""Tests for building, loading and self-healing the repository cache."""

import asyncio
import json
import os
import shutil
import sys

import pytest
from conftest import FakeGitRunner, make_repo

from local_repo_picker.cache import CacheStore
from local_repo_picker.config import PickerConfig
from local_repo_picker.git import CommandResult, GitMetadataResolver
from local_repo_picker.lru import update_lru
from local_repo_picker.plugins import PluginModule, PluginRegistry, builtin_plugins
from local_repo_picker.tags import update_manual_tag_edits

HOUR_MS = 60 * 60 * 1000


class RepoRunner(FakeGitRunner):
    """Answers per working tree: listed basenames are dirty, origins come from .git/config."""

    def __init__(self, dirty=(), delay=0.0):
        super().__init__(delay=delay)
        self.dirty = set(dirty)

    def respond(self, args, cwd):
        if args == ("status", "--porcelain") and os.path.basename(cwd) in self.dirty:
            return CommandResult(0, " M file.txt\n", "")
        if args == ("config", "--get", "remote.origin.url"):
            return CommandResult(1, "", "")
        return self.default


class Clock:
    def __init__(self, now=1_700_000_000_000):
        self.now = now

    def __call__(self):
        return self.now


def _store(scan_root, runner=None, clock=None, registry=None, **config_kw):
    config = PickerConfig(scan_roots=[str(scan_root)], **config_kw)
    git = GitMetadataResolver(runner=runner or RepoRunner(), max_concurrency=config.git_concurrency)
    return CacheStore(config, git=git, registry=registry, clock=clock or Clock())


def _by_relative(snapshot):
    return {repo.relative_path: repo for repo in snapshot.repos}


@pytest.fixture
def two_repos(scan_root):
    make_repo(scan_root, "app", origin="git@github.com:org/app.git")
    make_repo(scan_root, "team/lib")
    return scan_root


class TestBuildCache:
    def test_records_and_tags(self, two_repos):
        store = _store(two_repos, runner=RepoRunner(dirty={"lib"}))
        snapshot = asyncio.run(store.build_cache())

        repos = _by_relative(snapshot)
        assert set(repos) == {"app", "team/lib"}

        app = repos["app"]
        assert app.repo_key == "github:org/app"
        assert app.git.provider == "github"
        assert app.tags == ["[github]", "[app]"]
        assert app.auto_tags == ["[app]"]
        assert not app.is_dirty

        lib = repos["team/lib"]
        assert lib.repo_key == "local:team/lib"
        assert lib.git is None
        assert lib.is_dirty
        assert lib.tags == ["[noremote]", "[team]", "[dirty]"]

    def test_snapshot_file_and_metadata(self, two_repos):
        clock = Clock()
        store = _store(two_repos, clock=clock)
        snapshot = asyncio.run(store.build_cache())

        data = json.loads(store.cache_file.read_text())
        assert data["saved_at"] == clock.now
        assert data["ttl_ms"] == store.config.cache_ttl_ms
        assert data["metadata"]["cache_version"] == 1
        assert data["metadata"]["repo_count"] == 2
        assert data["metadata"]["scan_roots"] == store.scan_roots
        assert "pruned_at" not in data["metadata"]
        assert len(data["repos"]) == 2
        assert snapshot.metadata.warning_count == 0

    def test_origin_read_without_subprocess(self, two_repos):
        runner = RepoRunner()
        asyncio.run(_store(two_repos, runner=runner).build_cache())
        config_calls = [args for args in runner.args_called() if args[0] == "config"]
        # only the repository without an origin section needs the CLI
        assert config_calls == [("config", "--get", "remote.origin.url")]

    def test_manual_tags_replace_auto_and_remove(self, two_repos):
        store = _store(two_repos)
        app_path = store.scan_roots[0] + os.sep + "app"
        update_manual_tag_edits(store.manual_tags_file, app_path, add=["work"], remove=["github"])

        app = _by_relative(asyncio.run(store.build_cache()))["app"]
        assert app.manual_tags == ["[work]"]
        assert app.tags == ["[work]"]

    def test_plugin_tags_appended(self, two_repos):
        (two_repos / "app" / "pyproject.toml").write_text('[project]\nname = "app"\n')
        store = _store(two_repos, registry=PluginRegistry(builtin_plugins()))
        repos = _by_relative(asyncio.run(store.build_cache()))
        assert repos["app"].tags == ["[github]", "[app]", "[python]"]
        assert "[python]" not in repos["team/lib"].tags

    def test_failing_plugin_does_not_abort(self, two_repos):
        class Exploding:
            id = "boom"
            label = "boom"

            def apply(self, input):
                raise RuntimeError("boom")

        registry = PluginRegistry([PluginModule(id="boom", label="boom", tags=[Exploding()])])
        snapshot = asyncio.run(_store(two_repos, registry=registry).build_cache())
        assert len(snapshot.repos) == 2

    def test_host_overrides(self, scan_root):
        make_repo(scan_root, "svc", origin="https://git.corp.com/team/svc.git")
        store = _store(scan_root, remote_host_providers={"corp.com": "gitlab"})
        svc = asyncio.run(store.build_cache()).repos[0]
        assert svc.repo_key == "gitlab:team/svc"
        assert svc.tags[0] == "[gitlab]"

    def test_unknown_host_tag(self, scan_root):
        make_repo(scan_root, "svc", origin="git@git.example.net:team/svc.git")
        svc = asyncio.run(_store(scan_root).build_cache()).repos[0]
        assert svc.tags[0] == "[internal:git.example.net]"
        assert svc.repo_key == "unknown:team/svc"

    def test_lru_ordering(self, two_repos):
        store = _store(two_repos)
        lib_path = store.scan_roots[0] + os.sep + os.path.join("team", "lib")
        update_lru(store.lru_file, lib_path)
        snapshot = asyncio.run(store.build_cache())
        assert [repo.relative_path for repo in snapshot.repos] == ["team/lib", "app"]

    def test_path_order_without_lru(self, two_repos):
        snapshot = asyncio.run(_store(two_repos).build_cache())
        assert [repo.relative_path for repo in snapshot.repos] == ["app", "team/lib"]

    def test_scan_warnings_in_metadata(self, tmp_path, two_repos):
        seen = []
        config = PickerConfig(scan_roots=[str(tmp_path / "absent"), str(two_repos)])
        store = CacheStore(
            config,
            git=GitMetadataResolver(runner=RepoRunner()),
            on_warning=seen.append,
            clock=Clock(),
        )
        snapshot = asyncio.run(store.build_cache())
        assert len(snapshot.repos) == 2
        assert snapshot.metadata.warning_count == 1
        assert snapshot.metadata.warning_samples[0].startswith("not_found: ")
        assert len(seen) == 1
        assert store.warnings == seen

    def test_git_concurrency_bounded(self, scan_root):
        for index in range(10):
            make_repo(scan_root, f"r{index}")
        runner = RepoRunner(delay=0.01)
        asyncio.run(_store(scan_root, runner=runner, git_concurrency=2).build_cache())
        assert runner.max_in_flight <= 2

    def test_empty_roots(self, tmp_path):
        store = _store(tmp_path / "nothing-here")
        snapshot = asyncio.run(store.build_cache())
        assert snapshot.repos == []
        assert snapshot.metadata.warning_count == 1

    @pytest.mark.skipif(sys.platform.startswith("win"), reason="symlinks need privileges")
    def test_symlinked_root(self, tmp_path):
        real = tmp_path / "real"
        make_repo(real, "team/app")
        link = tmp_path / "link"
        link.symlink_to(real, target_is_directory=True)

        skipped = asyncio.run(_store(link).build_cache())
        assert skipped.repos == []
        assert skipped.metadata.warning_samples == [f"symlink_skipped: {link}"]

        followed = asyncio.run(_store(link, follow_symlinks=True).build_cache())
        assert [repo.full_path for repo in followed.repos] == [str(link / "team" / "app")]
        assert followed.repos[0].scan_root == str(link)
        assert followed.repos[0].tags[:2] == ["[noremote]", "[team]"]


class TestLoadCache:
    def test_absent(self, two_repos):
        assert asyncio.run(_store(two_repos).load_cache()) is None

    def test_fresh_round_trip_without_git(self, two_repos):
        runner = RepoRunner()
        store = _store(two_repos, runner=runner)
        built = asyncio.run(store.build_cache())
        calls = len(runner.calls)

        loaded = asyncio.run(store.load_cache())
        assert loaded is not None
        assert [r.to_dict() for r in loaded.repos] == [r.to_dict() for r in built.repos]
        assert len(runner.calls) == calls

    def test_stale_returns_none_and_keeps_file(self, two_repos):
        clock = Clock()
        store = _store(two_repos, clock=clock, cache_ttl_ms=HOUR_MS)
        asyncio.run(store.build_cache())

        clock.now += HOUR_MS
        assert asyncio.run(store.load_cache()) is not None
        clock.now += 1
        assert asyncio.run(store.load_cache()) is None
        assert store.cache_file.exists()

    def test_stored_ttl_wins(self, two_repos):
        clock = Clock()
        asyncio.run(_store(two_repos, clock=clock, cache_ttl_ms=10).build_cache())
        clock.now += 100
        longer = _store(two_repos, clock=clock, cache_ttl_ms=HOUR_MS)
        assert asyncio.run(longer.load_cache()) is None

    @pytest.mark.parametrize(
        "content",
        [
            "{not json",
            "[]",
            '{"repos": {}}',
            '{"saved_at": 1, "repos": [{"scan_root": "/x"}]}',
            '{"saved_at": 1, "repos": [null]}',
            '{"saved_at": 1, "ttl_ms": 1, "repos": ["/x"]}',
        ],
    )
    def test_corrupt_file_is_deleted(self, two_repos, content):
        store = _store(two_repos)
        store.cache_file.parent.mkdir(parents=True, exist_ok=True)
        store.cache_file.write_text(content)

        assert asyncio.run(store.load_cache()) is None
        assert not store.cache_file.exists()
        assert asyncio.run(store.load_cache()) is None

    def test_missing_repos_pruned_and_persisted(self, two_repos):
        clock = Clock()
        store = _store(two_repos, clock=clock)
        built = asyncio.run(store.build_cache())
        saved_at = built.saved_at

        shutil.rmtree(two_repos / "team" / "lib")
        clock.now += 5000
        loaded = asyncio.run(store.load_cache())

        assert [repo.relative_path for repo in loaded.repos] == ["app"]
        assert loaded.metadata.repo_count == 1
        assert loaded.metadata.pruned_repo_count == 1
        assert loaded.metadata.pruned_at == clock.now
        assert loaded.saved_at == saved_at

        on_disk = json.loads(store.cache_file.read_text())
        assert on_disk["saved_at"] == saved_at
        assert len(on_disk["repos"]) == 1
        assert on_disk["metadata"]["pruned_repo_count"] == 1

    def test_lru_applied_on_load(self, two_repos):
        store = _store(two_repos)
        asyncio.run(store.build_cache())
        update_lru(store.lru_file, store.scan_roots[0] + os.sep + os.path.join("team", "lib"))
        loaded = asyncio.run(store.load_cache())
        assert [repo.relative_path for repo in loaded.repos] == ["team/lib", "app"]


class TestLifecycle:
    def test_load_or_build(self, two_repos):
        runner = RepoRunner()
        store = _store(two_repos, runner=runner)
        first = asyncio.run(store.load_or_build())
        calls = len(runner.calls)
        second = asyncio.run(store.load_or_build())
        assert len(first.repos) == len(second.repos) == 2
        assert len(runner.calls) == calls

    def test_refresh_ignores_ttl(self, two_repos):
        clock = Clock()
        store = _store(two_repos, clock=clock)
        asyncio.run(store.build_cache())
        make_repo(two_repos, "new")
        clock.now += 1000

        refreshed = asyncio.run(store.refresh_cache())
        assert refreshed.saved_at == clock.now
        assert len(refreshed.repos) == 3

    def test_clear_and_stats(self, two_repos):
        store = _store(two_repos)
        assert store.stats()["exists"] is False
        assert store.stats()["ttl_seconds"] == store.config.cache_ttl_ms / 1000
        asyncio.run(store.build_cache())
        assert store.stats()["size"] > 0
        assert store.clear() is True
        assert store.clear() is False
