"""Built-in plugin: recognise Python projects."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

from ..config import load_toml_file
from ..logging_config import get_logger
from ..models import PreviewSection
from .base import PluginModule, PreviewPluginInput, TagPluginInput

logger = get_logger(__name__)

PYTHON_MARKERS = ("pyproject.toml", "setup.py", "setup.cfg")


def is_python_project(repo_path: str) -> bool:
    root = Path(repo_path)
    return any((root / marker).is_file() for marker in PYTHON_MARKERS)


def read_pyproject(repo_path: str) -> Optional[dict[str, Any]]:
    path = Path(repo_path) / "pyproject.toml"
    if not path.is_file():
        return None
    try:
        return load_toml_file(path)
    except Exception as e:
        logger.debug(f"Unreadable pyproject.toml in {repo_path}: {e}")
        return None


class PythonTagPlugin:
    id = "builtin.python-tag"
    label = "Python project tag"

    def apply(self, input: TagPluginInput) -> list[str]:
        return ["[python]"] if is_python_project(input.repo_path) else []


class PythonPreviewPlugin:
    id = "builtin.python-preview"
    label = "Python project preview"

    def render(self, input: PreviewPluginInput) -> Optional[PreviewSection]:
        repo_path = input.record.full_path
        if not is_python_project(repo_path):
            return None
        project = (read_pyproject(repo_path) or {}).get("project", {})
        name = project.get("name") if isinstance(project, dict) else None
        requires = project.get("requires-python") if isinstance(project, dict) else None
        dependencies = project.get("dependencies", []) if isinstance(project, dict) else []
        return PreviewSection(
            title="PYTHON",
            lines=[
                f"NAME: {name if isinstance(name, str) else '-'}",
                f"REQUIRES: {requires if isinstance(requires, str) else '-'}",
                f"DEPENDENCIES: {len(dependencies) if isinstance(dependencies, list) else 0}",
            ],
        )


def builtin_plugins() -> list[PluginModule]:
    return [
        PluginModule(
            id="builtin.python",
            label="Python projects",
            tags=[PythonTagPlugin()],
            previews=[PythonPreviewPlugin()],
        )
    ]
