"""Tests for tag derivation and the manual tags file."""

import pytest

from local_repo_picker.models import ManualTagEdit
from local_repo_picker.paths import normalize_repo_key
from local_repo_picker.tags import (
    apply_manual_tag_edit,
    build_tags,
    get_remote_tag,
    merge_tags,
    normalize_tag,
    parse_manual_tag_tokens,
    parse_tag_list,
    read_manual_tag_edits,
    read_manual_tags,
    set_manual_tags,
    update_manual_tag_edits,
    write_manual_tag_edits,
)


class TestBuildTags:
    def test_manual_replaces_auto(self):
        assert build_tags("[noremote]", "[team]", ["[x]"], dirty=True) == [
            "[noremote]",
            "[x]",
            "[dirty]",
        ]

    def test_auto_tag_when_no_manual(self):
        assert build_tags("[github]", "[team]", dirty=False) == ["[github]", "[team]"]

    def test_remote_only(self):
        assert build_tags("[github]") == ["[github]"]

    def test_deduplicates(self):
        assert build_tags("[github]", None, ["[github]", "[x]", "[x]"]) == ["[github]", "[x]"]

    def test_merge_appends_plugins_and_drops_removed(self):
        base = ["[github]", "[team]"]
        assert merge_tags(base, ["[python]", "[team]"]) == ["[github]", "[team]", "[python]"]
        assert merge_tags(base, ["[python]"], removed=["[team]"]) == ["[github]", "[python]"]


class TestRemoteTag:
    @pytest.mark.parametrize(
        "host,tag",
        [
            (None, "[noremote]"),
            ("", "[noremote]"),
            ("github.com", "[github]"),
            ("gitee.com", "[gitee]"),
            ("GitHub.com", "[github]"),
            ("git.corp.com", "[internal:git.corp.com]"),
        ],
    )
    def test_builtin(self, host, tag):
        assert get_remote_tag(host) == tag

    def test_override(self):
        assert get_remote_tag("git.corp.com", {"corp.com": "gitlab"}) == "[gitlab]"


class TestTagParsing:
    def test_normalize_tag(self):
        assert normalize_tag("x") == "[x]"
        assert normalize_tag(" [x] ") == "[x]"
        assert normalize_tag("[]") is None
        assert normalize_tag("  ") is None

    def test_parse_tag_list(self):
        assert parse_tag_list("[a][b]") == ["[a]", "[b]"]
        assert parse_tag_list("a b") == ["[a]", "[b]"]

    def test_parse_manual_tokens(self):
        edit = parse_manual_tag_tokens("[a][b]![c]")
        assert edit == ManualTagEdit(add=["[a]", "[b]"], remove=["[c]"])
        assert parse_manual_tag_tokens("a !c") == ManualTagEdit(add=["[a]"], remove=["[c]"])


class TestApplyEdit:
    def test_idempotent(self):
        once = apply_manual_tag_edit(None, add=["a", "b"], remove=["c"])
        twice = apply_manual_tag_edit(once, add=["a", "b"], remove=["c"])
        assert once == twice == ManualTagEdit(add=["[a]", "[b]"], remove=["[c]"])

    def test_removing_absent_tag_is_noop_for_additions(self):
        current = ManualTagEdit(add=["[a]"])
        assert apply_manual_tag_edit(current, remove=["b"]).add == ["[a]"]

    def test_add_cancels_removal(self):
        current = ManualTagEdit(remove=["[a]"])
        assert apply_manual_tag_edit(current, add=["a"]) == ManualTagEdit(add=["[a]"], remove=[])

    def test_remove_cancels_addition(self):
        current = ManualTagEdit(add=["[a]", "[b]"])
        assert apply_manual_tag_edit(current, remove=["a"]) == ManualTagEdit(add=["[b]"], remove=["[a]"])


class TestManualTagsFile:
    def test_missing_file(self, tmp_path):
        assert read_manual_tag_edits(tmp_path / "absent.tsv") == {}

    def test_write_and_read(self, tmp_path):
        file_path = tmp_path / "repo_tags.tsv"
        repo = str(tmp_path / "code" / "app")
        write_manual_tag_edits(
            file_path,
            {
                normalize_repo_key(repo): ManualTagEdit(add=["[a]"], remove=["[b]"]),
                normalize_repo_key(str(tmp_path / "empty")): ManualTagEdit(),
            },
        )
        content = file_path.read_text()
        assert content == f"{normalize_repo_key(repo)}\t[a]![b]\n"
        assert read_manual_tag_edits(file_path) == {
            normalize_repo_key(repo): ManualTagEdit(add=["[a]"], remove=["[b]"])
        }

    def test_malformed_lines_skipped(self, tmp_path):
        file_path = tmp_path / "repo_tags.tsv"
        key = normalize_repo_key(str(tmp_path / "app"))
        file_path.write_text(f"no tab here\n\n{key}\t[x]\n\t[y]\n")
        assert read_manual_tags(file_path) == {key: ["[x]"]}

    def test_update_round_trip(self, tmp_path):
        file_path = tmp_path / "repo_tags.tsv"
        repo = str(tmp_path / "app")
        update_manual_tag_edits(file_path, repo, add=["work"])
        update_manual_tag_edits(file_path, repo, add=["work"], remove=["team"])
        edits = read_manual_tag_edits(file_path)
        assert edits[normalize_repo_key(repo)] == ManualTagEdit(add=["[work]"], remove=["[team]"])

    def test_update_to_empty_drops_record(self, tmp_path):
        file_path = tmp_path / "repo_tags.tsv"
        repo = str(tmp_path / "app")
        update_manual_tag_edits(file_path, repo, add=["work"])
        update_manual_tag_edits(file_path, repo, remove=["work"])
        # the removal itself is a record
        assert read_manual_tag_edits(file_path)[normalize_repo_key(repo)].remove == ["[work]"]
        update_manual_tag_edits(file_path, repo, add=["work"])
        set_manual_tags(file_path, repo, [])
        assert read_manual_tag_edits(file_path) == {}

    def test_update_requires_path(self, tmp_path):
        with pytest.raises(ValueError):
            update_manual_tag_edits(tmp_path / "t.tsv", "  ", add=["x"])
