"""Repository discovery."""

from .scanner import VCS_MARKER, PathScanner, auto_tag_for, scan_repos

__all__ = ["VCS_MARKER", "PathScanner", "auto_tag_for", "scan_repos"]
