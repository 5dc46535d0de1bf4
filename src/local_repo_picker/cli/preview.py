"""Preview command."""

import json

import typer

from ..config import PickerConfig
from ..models import PreviewResult
from ..paths import normalize_repo_key
from ..plugins import PluginRegistry, builtin_plugins
from ..preview import PreviewAssembler, build_preview_with_timeout
from ..security import resolve_allowed_path
from . import app
from ._common import build_git, build_store, console, run_command

DEFAULT_PREVIEW_TIMEOUT_MS = 5000


def _render(result: PreviewResult) -> None:
    data = result.data
    console.print(f"[bold cyan]{data.path}[/bold cyan]")
    rows = [
        ("KEY", data.repo_key),
        ("ORIGIN", data.origin),
        ("SITE", data.site_url),
        ("BRANCH", data.branch),
        ("STATUS", data.status),
        ("SYNC", data.sync),
    ]
    for label, value in rows:
        console.print(f"[bold]{label:<7}[/bold] {value}")
    if result.error:
        console.print(f"[yellow]{result.error}[/yellow]")

    console.print()
    console.print("[bold]RECENT COMMITS[/bold]")
    for line in data.recent_commits or ["-"]:
        console.print(f"  {line}", markup=False, highlight=False)

    for section in data.extensions:
        console.print()
        console.print(f"[bold]{section.title}[/bold]")
        for line in section.lines:
            console.print(f"  {line}", markup=False, highlight=False)

    console.print()
    console.print(f"[bold]README[/bold] ({data.readme_status})")
    for line in data.readme:
        console.print(line, markup=False, highlight=False)


@app.command()
def preview(
    ctx: typer.Context,
    path: str = typer.Argument(..., help="Absolute path of a cached repository"),
    timeout_ms: int = typer.Option(
        DEFAULT_PREVIEW_TIMEOUT_MS, "--timeout", help="Give up and show placeholders after this many ms"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print JSON instead of text"),
):
    """Show branch, sync state, recent commits and README for one repository."""

    async def body(config: PickerConfig) -> PreviewResult:
        target = resolve_allowed_path(config.resolved_scan_roots, path)
        git = build_git(config)
        snapshot = await build_store(config, git=git).load_or_build()
        key = normalize_repo_key(str(target))
        record = next(
            (repo for repo in snapshot.repos if normalize_repo_key(repo.full_path) == key), None
        )
        if record is None:
            console.print(f"[red]Not a cached repository:[/red] {target}")
            raise typer.Exit(1)
        assembler = PreviewAssembler(git=git, registry=PluginRegistry(builtin_plugins()))
        return await build_preview_with_timeout(assembler, record, timeout_ms)

    result = run_command(ctx, body)
    if as_json:
        payload = {"data": result.data.to_dict(), "error": result.error}
        print(json.dumps(payload, indent=2, ensure_ascii=False))
        return
    _render(result)
