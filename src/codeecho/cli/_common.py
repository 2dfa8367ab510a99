"""Shared CLI helpers."""

import json
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Iterator, Optional

import typer
from rich.console import Console

from ..config import CodeEchoConfig
from ..domain.models import DateRange, Project
from ..exceptions import CodeEchoError, ProjectNotFound
from ..mining.service import AnalysisService

console = Console()


def get_config(ctx: typer.Context) -> CodeEchoConfig:
    obj = ctx.ensure_object(dict)
    config = obj.get("config")
    if config is None:
        config = CodeEchoConfig()
        obj["config"] = config
    return config


@contextmanager
def open_service(ctx: typer.Context) -> Iterator[AnalysisService]:
    """Yield a service over the configured database; CodeEcho errors exit 1."""
    config = get_config(ctx)
    try:
        service, db = AnalysisService.from_config(config)
    except CodeEchoError as e:
        fail(e)
    try:
        yield service
    except CodeEchoError as e:
        fail(e)
    finally:
        db.close()


def resolve_project(service: AnalysisService, name: str) -> Project:
    try:
        return service.project_by_name(name)
    except ProjectNotFound:
        console.print(
            f"[yellow]Unknown project:[/yellow] {name}. "
            "Run [bold]codeecho ingest NAME LOCATION[/bold] first."
        )
        raise typer.Exit(1)


def fail(error: Exception) -> None:
    console.print(f"[red]Error:[/red] {error}", markup=True, highlight=False)
    raise typer.Exit(1)


def date_range(since: Optional[str], until: Optional[str]) -> Optional[DateRange]:
    """Build a whole-day range from ``YYYY-MM-DD`` options."""
    if since is None and until is None:
        return None
    try:
        return DateRange.from_dates(since, until)
    except ValueError as e:
        raise typer.BadParameter(str(e))


def fmt_time(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return value.strftime("%Y-%m-%d %H:%M")


def _default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "to_dict"):
        return value.to_dict()
    raise TypeError(f"not JSON serializable: {type(value).__name__}")


def print_json(data: Any) -> None:
    """Machine-readable output on stdout, bypassing rich."""
    print(json.dumps(data, indent=2, default=_default))
