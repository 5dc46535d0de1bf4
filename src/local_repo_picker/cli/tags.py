"""Manual tag and recency commands."""

from typing import List, Optional

import typer

from ..config import PickerConfig, get_config_paths
from ..lru import update_lru
from ..models import ManualTagEdit
from ..security import resolve_allowed_path
from ..tags import update_manual_tag_edits
from . import app
from ._common import console, format_tags, run_command


@app.command()
def tag(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Absolute path of a repository"),
    add: Optional[List[str]] = typer.Option(None, "--add", "-a", help="Tag to add (repeatable)"),
    remove: Optional[List[str]] = typer.Option(
        None, "--remove", "-r", help="Tag to suppress (repeatable)"
    ),
):
    """Add or suppress manual tags for a repository."""
    if not add and not remove:
        console.print("[yellow]Nothing to do: pass --add and/or --remove[/yellow]")
        raise typer.Exit(1)

    async def body(config: PickerConfig) -> ManualTagEdit:
        target = resolve_allowed_path(config.resolved_scan_roots, path)
        return update_manual_tag_edits(
            get_config_paths().manual_tags_file, str(target), add=add or [], remove=remove or []
        )

    edit = run_command(ctx, body)
    console.print(f"Added: {format_tags(edit.add) or '-'}", highlight=False)
    console.print(f"Suppressed: {format_tags(edit.remove) or '-'}", highlight=False)
    console.print("[dim]Run `local-repo-picker refresh` to apply[/dim]")


@app.command()
def touch(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Absolute path of a repository"),
):
    """Mark a repository as most recently used."""

    async def body(config: PickerConfig) -> List[str]:
        target = resolve_allowed_path(config.resolved_scan_roots, path)
        return update_lru(get_config_paths().lru_file, str(target), config.lru_limit)

    entries = run_command(ctx, body)
    console.print(f"[green]Recent:[/green] {entries[0]} ({len(entries)} tracked)")
