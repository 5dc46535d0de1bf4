"""Tag derivation and the manual tags file.

Final tag order for a repository:

    remote tag, then manual tags (or the auto tag when there are none),
    then ``[dirty]``, then plugin tags; duplicates keep their first position
    and tags the user removed by hand are dropped.

Manual tags live in ``repo_tags.tsv``, one ``<path>\\t<tokens>`` line per
repository, where ``[tag]`` adds a tag and ``![tag]`` suppresses one.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from .exceptions import FileAccessError
from .file_ops import safe_read_text, safe_write_file
from .identity import match_host_override
from .logging_config import get_logger
from .models import ManualTagEdit
from .paths import normalize_repo_key

logger = get_logger(__name__)

NOREMOTE_TAG = "[noremote]"
DIRTY_TAG = "[dirty]"

# host -> fixed remote tag
REMOTE_HOST_TAGS: dict[str, str] = {
    "github.com": "[github]",
    "gitee.com": "[gitee]",
}

_BRACKETED_RE = re.compile(r"(!?)\[([^\]]+)\]")


def unique_tags(tags: Iterable[str]) -> list[str]:
    """Deduplicate preserving first occurrence."""
    seen: set[str] = set()
    result: list[str] = []
    for tag in tags:
        if tag in seen:
            continue
        seen.add(tag)
        result.append(tag)
    return result


def normalize_tag(tag: str) -> Optional[str]:
    """Bracket a bare tag; blank input yields None."""
    trimmed = tag.strip()
    if not trimmed or trimmed in ("[]", "!"):
        return None
    if trimmed.startswith("[") and trimmed.endswith("]"):
        inner = trimmed[1:-1].strip()
        return f"[{inner}]" if inner else None
    return f"[{trimmed}]"


def normalize_tags(tags: Iterable[str]) -> list[str]:
    return [tag for tag in (normalize_tag(item) for item in tags) if tag is not None]


def parse_tag_list(raw: str) -> list[str]:
    """Parse ``[a][b]`` or whitespace separated ``a b`` into bracketed tags."""
    matches = _BRACKETED_RE.findall(raw)
    if matches:
        return normalize_tags(f"[{name}]" for bang, name in matches if not bang)
    return normalize_tags(token for token in raw.split() if not token.startswith("!"))


def get_remote_tag(host: Optional[str], host_overrides: Optional[Mapping[str, str]] = None) -> str:
    """Tag describing where a repository's origin lives."""
    if not host:
        return NOREMOTE_TAG
    host = host.lower()
    override = match_host_override(host, host_overrides)
    if override:
        return f"[{override}]"
    if host in REMOTE_HOST_TAGS:
        return REMOTE_HOST_TAGS[host]
    return f"[internal:{host}]"


def build_tags(
    remote_tag: str,
    auto_tag: Optional[str] = None,
    manual_tags: Optional[Sequence[str]] = None,
    dirty: bool = False,
) -> list[str]:
    """Combine the tag sources into an ordered, deduplicated list.

    Manual tags replace the auto tag; they never coexist.

    Example:
        >>> build_tags("[noremote]", "[team]", ["[x]"], dirty=True)
        ['[noremote]', '[x]', '[dirty]']
    """
    if manual_tags:
        base = [remote_tag, *manual_tags]
    elif auto_tag:
        base = [remote_tag, auto_tag]
    else:
        base = [remote_tag]
    if dirty:
        base.append(DIRTY_TAG)
    return unique_tags(base)


def merge_tags(base: Sequence[str], extra: Sequence[str], removed: Sequence[str] = ()) -> list[str]:
    """Append plugin tags to ``base`` and drop manually removed tags."""
    suppressed = set(removed)
    return [tag for tag in unique_tags([*base, *extra]) if tag not in suppressed]


# ── Manual tags file ───────────────────────────────────────────


def parse_manual_tag_tokens(raw: str) -> ManualTagEdit:
    """Parse ``[a][b]![c]`` (or ``a b !c``) into additions and removals."""
    add: list[str] = []
    remove: list[str] = []
    matches = _BRACKETED_RE.findall(raw)
    if matches:
        for bang, name in matches:
            tag = normalize_tag(f"[{name}]")
            if tag is not None:
                (remove if bang else add).append(tag)
    else:
        for token in raw.split():
            if token.startswith("!"):
                tag = normalize_tag(token[1:])
                if tag is not None:
                    remove.append(tag)
            else:
                tag = normalize_tag(token)
                if tag is not None:
                    add.append(tag)
    return ManualTagEdit(add=unique_tags(add), remove=unique_tags(remove))


def format_manual_tag_tokens(edit: ManualTagEdit) -> str:
    return "".join(edit.add) + "".join(f"!{tag}" for tag in edit.remove)


def read_manual_tag_edits(file_path: Path) -> dict[str, ManualTagEdit]:
    """Load manual tag edits keyed by normalised path.

    A missing or unreadable file yields no edits.
    """
    edits: dict[str, ManualTagEdit] = {}
    try:
        content = safe_read_text(file_path)
    except FileAccessError as e:
        logger.warning(f"Cannot read manual tags {file_path}: {e}")
        return edits
    if content is None:
        return edits

    for line in content.splitlines():
        if not line.strip() or "\t" not in line:
            continue
        raw_path, raw_tags = line.split("\t", 1)
        key = normalize_repo_key(raw_path)
        if not key:
            continue
        edit = parse_manual_tag_tokens(raw_tags)
        if edit.is_empty():
            continue
        previous = edits.get(key)
        if previous is not None:
            edit = ManualTagEdit(
                add=unique_tags([*previous.add, *edit.add]),
                remove=unique_tags([*previous.remove, *edit.remove]),
            )
        edits[key] = edit
    return edits


def read_manual_tags(file_path: Path) -> dict[str, list[str]]:
    """Resolved manual tag lists (additions only) keyed by normalised path."""
    return {key: list(edit.add) for key, edit in read_manual_tag_edits(file_path).items() if edit.add}


def write_manual_tag_edits(file_path: Path, edits: Mapping[str, ManualTagEdit]) -> None:
    """Replace the manual tags file; empty records are omitted."""
    lines = [
        f"{key}\t{format_manual_tag_tokens(edit)}"
        for key, edit in sorted(edits.items())
        if not edit.is_empty()
    ]
    safe_write_file(file_path, "\n".join(lines) + ("\n" if lines else ""))


def apply_manual_tag_edit(
    current: Optional[ManualTagEdit],
    add: Iterable[str] = (),
    remove: Iterable[str] = (),
) -> ManualTagEdit:
    """Apply an add/remove delta to a record.

    Adding a tag cancels a pending removal of it and removing cancels an
    addition, so reapplying the same delta changes nothing.
    """
    add_tags = normalize_tags(add)
    remove_tags = [tag for tag in normalize_tags(remove) if tag not in add_tags]
    base = current or ManualTagEdit()
    next_add = [tag for tag in base.add if tag not in remove_tags]
    next_remove = [tag for tag in base.remove if tag not in add_tags]
    return ManualTagEdit(
        add=unique_tags([*next_add, *add_tags]),
        remove=unique_tags([*next_remove, *remove_tags]),
    )


def update_manual_tag_edits(
    file_path: Path,
    repo_path: str,
    add: Iterable[str] = (),
    remove: Iterable[str] = (),
) -> ManualTagEdit:
    """Apply an add/remove delta to one path and persist the file."""
    key = normalize_repo_key(repo_path)
    if not key:
        raise ValueError("repo_path is required")
    edits = read_manual_tag_edits(file_path)
    updated = apply_manual_tag_edit(edits.get(key), add=add, remove=remove)
    if updated.is_empty():
        edits.pop(key, None)
    else:
        edits[key] = updated
    write_manual_tag_edits(file_path, edits)
    return updated


def set_manual_tags(file_path: Path, repo_path: str, tags: Iterable[str]) -> ManualTagEdit:
    """Replace the additions for one path, keeping removals that were not re-added."""
    key = normalize_repo_key(repo_path)
    if not key:
        raise ValueError("repo_path is required")
    new_tags = unique_tags(normalize_tags(tags))
    edits = read_manual_tag_edits(file_path)
    previous = edits.get(key)
    remove = [tag for tag in (previous.remove if previous else []) if tag not in new_tags]
    updated = ManualTagEdit(add=new_tags, remove=remove)
    if updated.is_empty():
        edits.pop(key, None)
    else:
        edits[key] = updated
    write_manual_tag_edits(file_path, edits)
    return updated
