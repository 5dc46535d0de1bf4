"""Ordered plugin registry with a per-call error boundary.

A contributor that raises (or returns garbage) contributes nothing; the
failure is logged and the remaining contributors still run.
"""

from __future__ import annotations

import inspect
from typing import Iterable, Optional

from ..logging_config import get_logger
from ..models import PreviewSection
from ..tags import normalize_tags, unique_tags
from .base import (
    PluginModule,
    PreviewContributor,
    PreviewPluginInput,
    TagContributor,
    TagPluginInput,
)

logger = get_logger(__name__)


class PluginRegistry:
    """Plugins in registration order; re-registering an id replaces it in place."""

    def __init__(self, modules: Optional[Iterable[PluginModule]] = None):
        self._modules: dict[str, PluginModule] = {}
        if modules:
            self.register_many(modules)

    def register(self, module: PluginModule) -> None:
        if not module.id:
            logger.warning("Plugin registration skipped: missing id")
            return
        self._modules[module.id] = module

    def register_many(self, modules: Iterable[PluginModule]) -> None:
        for module in modules:
            self.register(module)

    def clear(self) -> None:
        self._modules.clear()

    @property
    def modules(self) -> list[PluginModule]:
        return list(self._modules.values())

    def tag_contributors(self) -> list[TagContributor]:
        return [plugin for module in self._modules.values() for plugin in module.tags]

    def preview_contributors(self) -> list[PreviewContributor]:
        return [plugin for module in self._modules.values() for plugin in module.previews]

    async def resolve_tag_extensions(self, input: TagPluginInput) -> list[str]:
        """Collect bracketed, deduplicated tags from every tag contributor."""
        tags: list[str] = []
        for plugin in self.tag_contributors():
            tags.extend(await self._safe_apply(plugin, input))
        return unique_tags(tags)

    async def resolve_preview_extensions(self, input: PreviewPluginInput) -> list[PreviewSection]:
        """Collect non-empty sections from every preview contributor."""
        sections: list[PreviewSection] = []
        for plugin in self.preview_contributors():
            section = await self._safe_render(plugin, input)
            if section is not None and section.lines:
                sections.append(section)
        return sections

    async def _safe_apply(self, plugin: TagContributor, input: TagPluginInput) -> list[str]:
        plugin_id = getattr(plugin, "id", repr(plugin))
        try:
            result = plugin.apply(input)
            if inspect.isawaitable(result):
                result = await result
            if not result:
                return []
            if isinstance(result, str):
                result = [result]
            return normalize_tags(str(tag) for tag in result)
        except Exception as e:
            logger.warning(f"Tag plugin failed: {plugin_id} {e}")
            return []

    async def _safe_render(
        self, plugin: PreviewContributor, input: PreviewPluginInput
    ) -> Optional[PreviewSection]:
        plugin_id = getattr(plugin, "id", repr(plugin))
        try:
            result = plugin.render(input)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            logger.warning(f"Preview plugin failed: {plugin_id} {e}")
            return None
        if result is None:
            return None
        if not isinstance(result, PreviewSection):
            logger.warning(f"Preview plugin returned unexpected {type(result).__name__}: {plugin_id}")
            return None
        return result
