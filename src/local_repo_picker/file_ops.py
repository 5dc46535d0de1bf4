"""
Safe file operations for local-repo-picker.

Every data file (cache snapshot, manual tags, LRU list) is replaced
wholesale: content goes to a sibling temp file first and is then moved into
place, so readers never observe a half-written file.
"""

import os
import tempfile
from pathlib import Path
from typing import Optional

from .exceptions import FileAccessError


def safe_read_text(
    filepath: Path,
    encoding: str = "utf-8",
    errors: str = "replace",
) -> Optional[str]:
    """
    Read a text file, treating a missing file as absent.

    Args:
        filepath: File to read
        encoding: Text encoding
        errors: How to handle encoding errors

    Returns:
        File contents, or None if the file does not exist

    Raises:
        FileAccessError: If the file exists but cannot be read
    """
    try:
        with open(filepath, encoding=encoding, errors=errors) as f:
            return f.read()
    except FileNotFoundError:
        return None
    except OSError as e:
        raise FileAccessError(filepath, f"OS error: {e}")


def read_head_lines(filepath: Path, max_lines: int, encoding: str = "utf-8") -> list[str]:
    """
    Read at most ``max_lines`` lines without loading the rest of the file.

    Raises:
        FileNotFoundError: If the file does not exist
        OSError: If the file cannot be read
    """
    lines: list[str] = []
    with open(filepath, encoding=encoding, errors="replace") as f:
        for line in f:
            if len(lines) >= max_lines:
                break
            lines.append(line.rstrip("\r\n"))
    return lines


def safe_write_file(filepath: Path, content: str, encoding: str = "utf-8") -> None:
    """
    Atomically replace a file's content, creating parent directories.

    Raises:
        FileAccessError: If file cannot be written
    """
    tmp_name: Optional[str] = None
    try:
        filepath.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(
            prefix=f".{filepath.name}.", suffix=".tmp", dir=str(filepath.parent)
        )
        with os.fdopen(fd, "w", encoding=encoding) as f:
            f.write(content)
        os.replace(tmp_name, filepath)
        tmp_name = None
    except OSError as e:
        raise FileAccessError(filepath, f"Write failed: {e}")
    finally:
        if tmp_name is not None:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass


def remove_file(filepath: Path) -> bool:
    """
    Delete a file if present.

    Returns:
        True if a file was removed

    Raises:
        FileAccessError: If the file exists but cannot be deleted
    """
    try:
        filepath.unlink()
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        raise FileAccessError(filepath, f"Delete failed: {e}")
