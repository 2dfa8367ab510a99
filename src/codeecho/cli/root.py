"""Global options shared by every subcommand."""

from pathlib import Path
from typing import Optional

import typer

from ..config import load_config
from ..exceptions import ConfigurationError
from ..logging_config import setup_logging
from . import app
from ._common import console


@app.callback(invoke_without_command=True, no_args_is_help=False)
def main(
    ctx: typer.Context,
    db: Optional[Path] = typer.Option(
        None,
        "--db",
        help="SQLite database file (default: .codeecho/codeecho.db)",
        dir_okay=False,
    ),
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only show errors",
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also append logs to this file",
        hidden=True,
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
    ),
):
    """
    Mine git history into change records and report hotspots, temporal
    coupling and knowledge risk.

    [bold cyan]Examples:[/bold cyan]

      codeecho ingest api ./services/api

      codeecho hotspots api --limit 10

      codeecho coupling api --since 2024-01-01 --types py
    """
    if version:
        from .. import __version__

        console.print(f"[bold cyan]CodeEcho[/bold cyan] version [green]{__version__}[/green]")
        raise typer.Exit(0)

    if ctx.invoked_subcommand is None:
        console.print(ctx.get_help())
        raise typer.Exit(0)

    try:
        settings = load_config(
            config_file=config,
            database_path=str(db) if db else None,
            verbose=verbose,
            quiet=quiet,
        )
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}", highlight=False)
        raise typer.Exit(2)

    setup_logging(
        verbose=settings.verbosity == "verbose",
        quiet=settings.verbosity == "quiet",
        log_file=str(log_file) if log_file else None,
    )

    ctx.ensure_object(dict)
    ctx.obj["config"] = settings
