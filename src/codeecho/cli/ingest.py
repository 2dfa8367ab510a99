"""Ingest CLI command -- mine a repository's history into the database."""

from typing import Callable, Optional

import typer
from rich.table import Table

from ..domain.models import IngestionResult
from ..exceptions import NotRunning
from ..history.locations import parse_location, sanitize
from ..mining.service import AnalysisService
from . import app
from ._common import console, fail, open_service, print_json

_POLL_SECONDS = 0.2


@app.command()
def ingest(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name (created on first use)"),
    location: str = typer.Argument(..., help="Local repository path or remote git URL"),
    full: bool = typer.Option(
        False,
        "--full",
        help="Walk the whole history even if the project has a checkpoint",
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Ingest commits from LOCATION into project NAME.

    The first run walks the full history; later runs only pick up commits
    added since the last checkpoint. Press Ctrl-C to stop at the next commit
    boundary; everything stored so far is kept.

    [bold cyan]Examples:[/bold cyan]

      codeecho ingest api ./services/api

      codeecho ingest kernel https://github.com/torvalds/linux.git --full
    """
    with open_service(ctx) as service:
        parsed = parse_location(location)
        service.miner.source.validate_location(location)
        stored_location = location if parsed.is_remote else parsed.url

        project = service.ensure_project(name, stored_location)
        if project.repo_path != stored_location:
            project.repo_path = stored_location
            service.projects.update(project)
        project_id = project.require_id()

        service.start(project_id, "full" if full else "auto")
        _wait_with_status(service, project_id, name, quiet=json_output)

        result = service.last_result(project_id)
        if result is None:
            status = service.status(project_id)
            fail(RuntimeError(status.last_error or "ingestion failed"))
            return

        if json_output:
            print_json(result.to_dict())
        else:
            _output_rich(name, sanitize(stored_location), result)


def _wait_with_status(service: AnalysisService, project_id: int, name: str, quiet: bool) -> None:
    """Block until the background job ends; Ctrl-C requests cancellation."""
    if quiet:
        _wait(service, project_id, lambda text: None)
        return
    with console.status(f"Ingesting [bold]{name}[/bold]...", spinner="dots") as spinner:
        _wait(service, project_id, spinner.update, name)


def _wait(
    service: AnalysisService,
    project_id: int,
    update: Callable[[str], None],
    name: str = "",
) -> None:
    cancelling = False
    while True:
        try:
            if service.wait(project_id, timeout=_POLL_SECONDS):
                return
            if not cancelling:
                stored = service.changes.commit_count(project_id)
                update(f"Ingesting [bold]{name}[/bold]: {stored} commits stored")
        except KeyboardInterrupt:
            if cancelling:
                continue
            cancelling = True
            try:
                service.request_cancel(project_id)
            except NotRunning:
                return
            update(f"Cancelling [bold]{name}[/bold] at the next commit...")


def _output_rich(name: str, location: str, result: IngestionResult) -> None:
    outcome_style = "green" if result.outcome.value == "completed" else "yellow"
    table = Table(title=f"Ingestion: {name}", show_header=False, pad_edge=True)
    table.add_column("Field", style="bold")
    table.add_column("Value")

    rows: list[tuple[str, Optional[str]]] = [
        ("Location", location),
        ("Mode", result.mode.value),
        ("Outcome", f"[{outcome_style}]{result.outcome.value}[/{outcome_style}]"),
        ("Commits walked", str(result.walked_count)),
        ("New commits", str(result.commit_count)),
        ("Changes", str(result.change_count)),
        ("Already stored", str(result.skipped_count)),
        ("Errors", str(result.error_count)),
        ("Files tracked", str(result.file_count)),
        ("Checkpoint", result.checkpoint[:12] if result.checkpoint else "-"),
    ]
    for label, value in rows:
        table.add_row(label, value or "-")

    console.print()
    console.print(table)
    console.print()
