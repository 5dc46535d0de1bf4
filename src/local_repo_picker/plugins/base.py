"""Protocol classes for tag and preview contributor plugins."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Awaitable, Optional, Protocol, Union

from ..models import PreviewSection, RepoPreview, RepositoryRecord

TagResult = Optional[list[str]]
SectionResult = Optional[PreviewSection]


@dataclass(frozen=True)
class TagPluginInput:
    repo_path: str
    scan_root: str
    owner_repo: str
    dirty: bool
    base_tags: list[str]
    origin_url: Optional[str] = None
    provider: Optional[str] = None
    auto_tag: Optional[str] = None
    manual_tags: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PreviewPluginInput:
    record: RepositoryRecord
    preview: RepoPreview


class TagContributor(Protocol):
    """Adds tags to a repository during cache builds. May be sync or async."""

    id: str
    label: str

    def apply(self, input: TagPluginInput) -> Union[TagResult, Awaitable[TagResult]]: ...


class PreviewContributor(Protocol):
    """Adds a titled section to a repository preview. May be sync or async."""

    id: str
    label: str

    def render(self, input: PreviewPluginInput) -> Union[SectionResult, Awaitable[SectionResult]]: ...


@dataclass
class PluginModule:
    """A named bundle of contributors registered together."""

    id: str
    label: str
    tags: list[TagContributor] = field(default_factory=list)
    previews: list[PreviewContributor] = field(default_factory=list)
