"""Tests for repository discovery."""

import os
import sys

import pytest
from conftest import make_repo

from local_repo_picker.models import WarningReason
from local_repo_picker.scanning import PathScanner, auto_tag_for, scan_repos

needs_symlinks = pytest.mark.skipif(sys.platform.startswith("win"), reason="symlinks need privileges")


def _paths(repos):
    return sorted(repo.path for repo in repos)


class TestDiscovery:
    def test_finds_repos_with_auto_tags(self, scan_root):
        make_repo(scan_root, "team/app")
        make_repo(scan_root, "team/lib")
        make_repo(scan_root, "solo")

        repos = scan_repos([scan_root])

        by_path = {repo.path: repo for repo in repos}
        assert set(by_path) == {
            str(scan_root / "team" / "app"),
            str(scan_root / "team" / "lib"),
            str(scan_root / "solo"),
        }
        assert by_path[str(scan_root / "team" / "app")].auto_tag == "[team]"
        assert by_path[str(scan_root / "solo")].auto_tag == "[solo]"
        assert all(repo.scan_root == str(scan_root) for repo in repos)

    def test_repos_are_leaves(self, scan_root):
        make_repo(scan_root, "team/repo")
        make_repo(scan_root, "team/repo/vendor/lib")

        assert _paths(scan_repos([scan_root])) == [str(scan_root / "team" / "repo")]

    def test_root_itself_is_repo(self, scan_root):
        make_repo(scan_root, "")
        repos = scan_repos([scan_root])
        assert len(repos) == 1
        assert repos[0].auto_tag is None

    def test_git_file_marks_repo(self, scan_root):
        worktree = scan_root / "wt"
        worktree.mkdir()
        (worktree / ".git").write_text("gitdir: ../main/.git/worktrees/wt\n")
        assert _paths(scan_repos([scan_root])) == [str(worktree)]

    def test_hidden_and_underscore_dirs_skipped(self, scan_root):
        make_repo(scan_root, ".hidden/repo")
        make_repo(scan_root, "_archive/repo")
        make_repo(scan_root, "visible")
        assert _paths(scan_repos([scan_root])) == [str(scan_root / "visible")]

    def test_prune_dirs(self, scan_root):
        make_repo(scan_root, "node_modules/pkg")
        make_repo(scan_root, "work/node_modules/pkg")
        make_repo(scan_root, "work/app")
        repos = scan_repos([scan_root], prune_dirs={"node_modules"})
        assert _paths(repos) == [str(scan_root / "work" / "app")]

    def test_max_depth(self, scan_root):
        make_repo(scan_root, "a/b")
        make_repo(scan_root, "a/b2/c/d")

        shallow = scan_repos([scan_root], max_depth=2)
        assert _paths(shallow) == [str(scan_root / "a" / "b")]

        deep = scan_repos([scan_root], max_depth=4)
        assert len(deep) == 2

    def test_depth_limit_is_silent(self, scan_root):
        make_repo(scan_root, "a/b/c")
        scanner = PathScanner(max_depth=1)
        assert scanner.scan([scan_root]) == []
        assert scanner.warnings == []

    def test_multiple_roots(self, tmp_path):
        first = tmp_path / "one"
        second = tmp_path / "two"
        make_repo(first, "x")
        make_repo(second, "y")
        repos = scan_repos([first, second])
        assert {repo.scan_root for repo in repos} == {str(first), str(second)}


class TestWarnings:
    def test_missing_root(self, tmp_path):
        seen = []
        repos = scan_repos([tmp_path / "absent"], on_warning=seen.append)
        assert repos == []
        assert [w.reason for w in seen] == [WarningReason.NOT_FOUND]

    def test_file_root(self, tmp_path):
        root = tmp_path / "file.txt"
        root.write_text("x")
        scanner = PathScanner()
        scanner.scan([root])
        assert [w.reason for w in scanner.warnings] == [WarningReason.NOT_DIRECTORY]

    def test_bad_root_does_not_stop_others(self, tmp_path, scan_root):
        make_repo(scan_root, "app")
        repos = scan_repos([tmp_path / "absent", scan_root])
        assert _paths(repos) == [str(scan_root / "app")]

    @pytest.mark.skipif(
        sys.platform.startswith("win") or (hasattr(os, "geteuid") and os.geteuid() == 0),
        reason="permissions are not enforced",
    )
    def test_unreadable_directory(self, scan_root):
        make_repo(scan_root, "ok")
        locked = scan_root / "locked"
        locked.mkdir()
        locked.chmod(0)
        try:
            scanner = PathScanner()
            repos = scanner.scan([scan_root])
        finally:
            locked.chmod(0o755)
        assert _paths(repos) == [str(scan_root / "ok")]
        assert [w.reason for w in scanner.warnings] == [WarningReason.NO_PERMISSION]


@needs_symlinks
class TestSymlinks:
    def test_symlinked_dir_skipped_by_default(self, tmp_path, scan_root):
        outside = tmp_path / "outside"
        make_repo(outside, "linked")
        (scan_root / "link").symlink_to(outside, target_is_directory=True)

        scanner = PathScanner()
        assert scanner.scan([scan_root]) == []
        assert [w.reason for w in scanner.warnings] == [WarningReason.SYMLINK_SKIPPED]

    def test_symlinked_dir_followed(self, tmp_path, scan_root):
        outside = tmp_path / "outside"
        make_repo(outside, "linked")
        (scan_root / "link").symlink_to(outside, target_is_directory=True)

        repos = scan_repos([scan_root], follow_symlinks=True)
        assert _paths(repos) == [str(scan_root / "link" / "linked")]
        assert repos[0].auto_tag == "[link]"

    def test_real_directory_wins_over_earlier_link(self, scan_root):
        make_repo(scan_root, "zeta/app")
        (scan_root / "alpha").symlink_to(scan_root / "zeta", target_is_directory=True)

        repos = scan_repos([scan_root], follow_symlinks=True)
        assert _paths(repos) == [str(scan_root / "zeta" / "app")]
        assert repos[0].auto_tag == "[zeta]"

    def test_symlink_to_file_warns(self, tmp_path, scan_root):
        target = tmp_path / "notes.txt"
        target.write_text("x")
        (scan_root / "notes").symlink_to(target)

        scanner = PathScanner(follow_symlinks=True)
        scanner.scan([scan_root])
        assert [w.reason for w in scanner.warnings] == [WarningReason.NOT_DIRECTORY]

    def test_symlink_loop_terminates(self, scan_root):
        make_repo(scan_root, "app")
        (scan_root / "loop").symlink_to(scan_root, target_is_directory=True)

        repos = scan_repos([scan_root], follow_symlinks=True)
        assert _paths(repos) == [str(scan_root / "app")]

    def test_symlinked_root_requires_follow(self, tmp_path):
        real = tmp_path / "real"
        make_repo(real, "app")
        link = tmp_path / "rootlink"
        link.symlink_to(real, target_is_directory=True)

        scanner = PathScanner()
        assert scanner.scan([link]) == []
        assert [w.reason for w in scanner.warnings] == [WarningReason.SYMLINK_SKIPPED]

        followed = scan_repos([link], follow_symlinks=True)
        assert _paths(followed) == [str(link / "app")]


def test_auto_tag_for(tmp_path):
    assert auto_tag_for(tmp_path, tmp_path / "team" / "x") == "[team]"
    assert auto_tag_for(tmp_path, tmp_path) is None
    assert auto_tag_for(tmp_path / "a", tmp_path / "b") is None
