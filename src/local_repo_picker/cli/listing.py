"""Listing and cache management commands."""

import json
from typing import List, Optional

import typer
from rich.table import Table

from ..config import PickerConfig
from ..models import CacheSnapshot, RepositoryRecord
from ..tags import normalize_tags
from . import app
from ._common import build_store, console, format_tags, run_command


def filter_by_tags(repos: List[RepositoryRecord], tags: List[str]) -> List[RepositoryRecord]:
    """Repositories carrying every one of ``tags``."""
    wanted = normalize_tags(tags)
    if not wanted:
        return list(repos)
    return [repo for repo in repos if all(tag in repo.tags for tag in wanted)]


def _render_table(repos: List[RepositoryRecord]) -> None:
    table = Table(show_header=True, header_style="bold cyan", box=None)
    table.add_column("Repository", style="bold")
    table.add_column("Key", style="dim")
    table.add_column("Tags")
    table.add_column("Path", style="blue")
    for repo in repos:
        table.add_row(repo.owner_repo, repo.repo_key, format_tags(repo.tags), repo.full_path)
    console.print(table)


@app.command("list")
def list_repos(
    ctx: typer.Context,
    refresh: bool = typer.Option(False, "--refresh", "-r", help="Rebuild the cache first"),
    tag: Optional[List[str]] = typer.Option(
        None, "--tag", "-t", help="Only repositories with this tag (repeatable)"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of a table"),
):
    """List cached repositories, most recently used first."""

    async def body(config: PickerConfig) -> CacheSnapshot:
        store = build_store(config)
        if refresh:
            return await store.refresh_cache()
        return await store.load_or_build()

    snapshot = run_command(ctx, body)
    repos = filter_by_tags(snapshot.repos, tag or [])

    if as_json:
        print(json.dumps([repo.to_dict() for repo in repos], indent=2, ensure_ascii=False))
        return

    if not repos:
        console.print("[yellow]No repositories found[/yellow]")
        return
    _render_table(repos)


@app.command()
def refresh(ctx: typer.Context):
    """Rescan every root and rewrite the cache."""

    async def body(config: PickerConfig) -> CacheSnapshot:
        return await build_store(config).refresh_cache()

    snapshot = run_command(ctx, body)
    meta = snapshot.metadata
    console.print(
        f"[green]Cache rebuilt:[/green] {meta.repo_count} repos "
        f"in {meta.build_duration_ms} ms"
    )
    if meta.warning_count:
        console.print(f"[yellow]{meta.warning_count} scan warnings[/yellow]")
        for sample in meta.warning_samples:
            console.print(f"  {sample}", markup=False)


@app.command()
def cache_info(ctx: typer.Context):
    """Show cache location, age and scan statistics."""

    async def body(config: PickerConfig):
        store = build_store(config)
        return store.stats(), await store.load_cache()

    stats, snapshot = run_command(ctx, body)

    console.print("[bold cyan]local-repo-picker Cache Info[/bold cyan]")
    console.print()
    console.print(f"File: [blue]{stats['cache_file']}[/blue]")
    console.print(f"TTL: [yellow]{stats['ttl_seconds']:g} s[/yellow]")
    if not stats["exists"]:
        console.print("Status: [red]Absent[/red]")
        return
    console.print(f"Size: [yellow]{stats['size']} bytes[/yellow]")
    if snapshot is None:
        console.print("Status: [red]Stale or unreadable[/red]")
        return

    meta = snapshot.metadata
    console.print("Status: [green]Fresh[/green]")
    console.print(f"Repositories: [yellow]{meta.repo_count}[/yellow]")
    console.print(f"Scan roots: {', '.join(meta.scan_roots) or '-'}")
    console.print(f"Scan duration: {meta.scan_duration_ms} ms")
    console.print(f"Warnings: {meta.warning_count}")
    if meta.pruned_at is not None:
        console.print(f"Pruned: {meta.pruned_repo_count} missing repos")
