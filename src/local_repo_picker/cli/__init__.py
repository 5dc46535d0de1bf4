"""CLI entry point; registers all subcommands."""

from pathlib import Path
from typing import Optional

import typer

from .. import __version__
from ..logging_config import setup_logging
from ._common import CliState, console

app = typer.Typer(
    name="local-repo-picker",
    help="Discover, tag and preview local git repositories",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"local-repo-picker {__version__}")
        raise typer.Exit(0)


@app.callback()
def callback(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help="Explicit config.toml to merge over the user config"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging on stderr"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors"),
    version: bool = typer.Option(
        False, "--version", callback=_version_callback, is_eager=True, help="Show version and exit"
    ),
) -> None:
    setup_logging(verbose=verbose, quiet=quiet)
    ctx.obj = CliState(config_file=config, verbose=verbose)


def main() -> None:
    app()


# Import subcommands to register them
from .listing import list_repos as _list_repos, refresh as _refresh, cache_info as _cache_info  # noqa: F401, E402
from .preview import preview as _preview  # noqa: F401, E402
from .tags import tag as _tag, touch as _touch  # noqa: F401, E402
