"""Shared CLI helpers."""

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar

import typer
from rich.console import Console

from ..cache import CacheStore
from ..config import PickerConfig, get_config_paths, load_config
from ..exceptions import RepoPickerError
from ..git import GitMetadataResolver
from ..logging_config import get_logger
from ..plugins import PluginRegistry, builtin_plugins

console = Console()
logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class CliState:
    config_file: Optional[Path] = None
    verbose: bool = False


def resolve_config(ctx: typer.Context) -> PickerConfig:
    """Load configuration honouring the global --config option."""
    state: CliState = ctx.obj or CliState()
    return load_config(config_file=state.config_file)


def run_command(ctx: typer.Context, body: Callable[[PickerConfig], Awaitable[T]]) -> T:
    """Load config and drive ``body`` to completion, mapping errors to exit codes."""
    state: CliState = ctx.obj or CliState()
    try:
        config = resolve_config(ctx)
        if not config.scan_roots:
            console.print(
                "[yellow]No scan roots configured.[/yellow] "
                f"Add scan_roots to {get_config_paths().config_file}"
            )
            raise typer.Exit(1)
        return asyncio.run(body(config))

    except typer.Exit:
        raise

    except RepoPickerError as e:
        logger.error(f"{e.__class__.__name__}: {e}")
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)

    except Exception as e:
        logger.exception("Unexpected error")
        console.print(f"[red]Unexpected error:[/red] {e}")
        if state.verbose:
            console.print_exception()
        raise typer.Exit(1)


def format_tags(tags: list[Any]) -> str:
    return " ".join(str(tag) for tag in tags)


def build_store(config: PickerConfig, git: Optional[GitMetadataResolver] = None) -> CacheStore:
    """Cache store wired with the shared git resolver and built-in plugins."""
    return CacheStore(
        config,
        git=git or build_git(config),
        registry=PluginRegistry(builtin_plugins()),
    )


def build_git(config: PickerConfig) -> GitMetadataResolver:
    return GitMetadataResolver(
        timeout_ms=config.git_timeout_ms, max_concurrency=config.git_concurrency
    )
