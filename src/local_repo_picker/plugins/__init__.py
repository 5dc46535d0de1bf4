"""Plugin extension interfaces and registry."""

from .base import (
    PluginModule,
    PreviewContributor,
    PreviewPluginInput,
    TagContributor,
    TagPluginInput,
)
from .builtin import builtin_plugins
from .registry import PluginRegistry

__all__ = [
    "PluginModule",
    "PreviewContributor",
    "PreviewPluginInput",
    "TagContributor",
    "TagPluginInput",
    "PluginRegistry",
    "builtin_plugins",
]
