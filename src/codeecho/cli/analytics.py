"""Analytics CLI commands -- hotspots, coupling, ownership, authors, overview."""

from typing import Optional

import typer
from rich.table import Table

from . import app
from ._common import (
    console,
    date_range,
    fmt_time,
    get_config,
    open_service,
    print_json,
    resolve_project,
)

_RISK_STYLES = {
    "critical": "bold red",
    "high": "red",
    "medium": "yellow",
    "low": "green",
    "High": "red",
    "Medium": "yellow",
    "Low": "green",
}


def _styled(level: str) -> str:
    style = _RISK_STYLES.get(level, "white")
    return f"[{style}]{level}[/{style}]"


@app.command()
def hotspots(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name"),
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-n",
        help="Number of files to show (default from config, 0 for all)",
        min=0,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Rank files by how often they change.

    Files are ordered by the number of distinct commits touching them, then
    by total lines added plus deleted.

    [bold cyan]Examples:[/bold cyan]

      codeecho hotspots api

      codeecho hotspots api --limit 50 --json
    """
    if limit is None:
        limit = get_config(ctx).hotspot_default_limit

    with open_service(ctx) as service:
        project_id = resolve_project(service, name).require_id()
        rows = service.rank_hotspots(project_id, limit)

    if json_output:
        print_json(
            [
                {
                    "file_path": r.file_path,
                    "change_count": r.change_count,
                    "total_added": r.total_added,
                    "total_deleted": r.total_deleted,
                }
                for r in rows
            ]
        )
        return

    if not rows:
        console.print(f"[yellow]No changes recorded for {name}.[/yellow]")
        return

    table = Table(title=f"Hotspots: {name}")
    table.add_column("#", justify="right", style="dim")
    table.add_column("File", style="cyan")
    table.add_column("Commits", justify="right", style="bold")
    table.add_column("Added", justify="right", style="green")
    table.add_column("Deleted", justify="right", style="red")
    for i, r in enumerate(rows, 1):
        table.add_row(str(i), r.file_path, str(r.change_count), str(r.total_added), str(r.total_deleted))
    console.print()
    console.print(table)
    console.print()


@app.command()
def coupling(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name"),
    limit: Optional[int] = typer.Option(
        None,
        "--limit",
        "-n",
        help="Number of pairs to show (default 100, at most 200)",
    ),
    since: Optional[str] = typer.Option(
        None,
        "--since",
        help="Only commits on or after this date (YYYY-MM-DD)",
    ),
    until: Optional[str] = typer.Option(
        None,
        "--until",
        help="Only commits on or before this date (YYYY-MM-DD)",
    ),
    min_shared: Optional[int] = typer.Option(
        None,
        "--min-shared",
        help="Minimum commits a pair must share (default 2)",
    ),
    min_score: Optional[float] = typer.Option(
        None,
        "--min-score",
        help="Minimum coupling score between 0 and 1",
        min=0.0,
        max=1.0,
    ),
    types: Optional[str] = typer.Option(
        None,
        "--types",
        "-t",
        help="Comma-separated file extensions to include, e.g. py,go",
    ),
    max_files: Optional[int] = typer.Option(
        None,
        "--max-files-per-commit",
        help="Ignore commits touching more files than this",
        min=2,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Show files that tend to change in the same commits.

    The score is shared commits divided by the smaller of the two files'
    commit counts, so 1.0 means one file never changes without the other.

    [bold cyan]Examples:[/bold cyan]

      codeecho coupling api

      codeecho coupling api --since 2024-01-01 --types py --min-score 0.5
    """
    window = date_range(since, until)

    with open_service(ctx) as service:
        project_id = resolve_project(service, name).require_id()
        pairs = service.couple(
            project_id,
            limit=limit,
            date_range=window,
            min_shared_commits=min_shared,
            min_coupling_score=min_score,
            file_types=types,
            max_files_per_commit=max_files,
        )

    if json_output:
        print_json(
            [
                {
                    "file_a": p.file_a,
                    "file_b": p.file_b,
                    "shared_commits": p.shared_commits,
                    "total_commits_a": p.total_commits_a,
                    "total_commits_b": p.total_commits_b,
                    "coupling_score": round(p.coupling_score, 4),
                    "last_modified": p.last_modified,
                }
                for p in pairs
            ]
        )
        return

    if not pairs:
        console.print(f"[yellow]No coupled files found for {name}.[/yellow]")
        return

    table = Table(title=f"Temporal coupling: {name}")
    table.add_column("File A", style="cyan")
    table.add_column("File B", style="cyan")
    table.add_column("Score", justify="right", style="bold")
    table.add_column("Shared", justify="right")
    table.add_column("A / B", justify="right", style="dim")
    table.add_column("Last", style="green")
    for p in pairs:
        table.add_row(
            p.file_a,
            p.file_b,
            f"{p.coupling_score:.2f}",
            str(p.shared_commits),
            f"{p.total_commits_a} / {p.total_commits_b}",
            fmt_time(p.last_modified),
        )
    console.print()
    console.print(table)
    console.print()


@app.command()
def ownership(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name"),
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Number of files to show",
        min=1,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Show who owns each file by share of lines changed.
    """
    with open_service(ctx) as service:
        project_id = resolve_project(service, name).require_id()
        files = service.file_ownership(project_id)[:limit]

    if json_output:
        print_json([f.to_dict() for f in files])
        return

    if not files:
        console.print(f"[yellow]No changes recorded for {name}.[/yellow]")
        return

    table = Table(title=f"Ownership: {name}")
    table.add_column("File", style="cyan")
    table.add_column("Owner")
    table.add_column("Share", justify="right", style="bold")
    table.add_column("Contributors", justify="right")
    table.add_column("Risk")
    for f in files:
        table.add_row(
            f.file_path,
            f.primary_owner,
            f"{f.ownership_percentage:.0f}%",
            str(f.total_contributors),
            _styled(f.risk_level),
        )
    console.print()
    console.print(table)
    console.print()


@app.command("bus-factor")
def bus_factor(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name"),
    since: Optional[str] = typer.Option(None, "--since", help="Start date (YYYY-MM-DD)"),
    until: Optional[str] = typer.Option(None, "--until", help="End date (YYYY-MM-DD)"),
    path: Optional[str] = typer.Option(
        None,
        "--path",
        help="Only files under this directory",
    ),
    risk: Optional[str] = typer.Option(
        None,
        "--risk",
        help="Only files at this risk level: high, medium, low or all",
    ),
    limit: int = typer.Option(
        20,
        "--limit",
        "-n",
        help="Number of files to show",
        min=1,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Count how many authors hold half of each file's commits.

    A bus factor of 1 means a single author made at least half of the
    commits to the file.
    """
    window = date_range(since, until)

    with open_service(ctx) as service:
        project_id = resolve_project(service, name).require_id()
        try:
            report = service.bus_factor(
                project_id, date_range=window, path_prefix=path, risk_level=risk
            )
        except ValueError as e:
            raise typer.BadParameter(str(e), param_hint="--risk")

    if json_output:
        print_json(report.to_dict())
        return

    s = report.summary
    console.print()
    console.print(
        f"[bold]{s.total_files}[/bold] files, average bus factor "
        f"[bold]{s.average_bus_factor:.2f}[/bold] "
        f"([red]{s.high_risk_files} high[/red], [yellow]{s.medium_risk_files} medium[/yellow], "
        f"[green]{s.low_risk_files} low[/green])"
    )
    if not report.files:
        return

    table = Table(title=f"Bus factor: {name}")
    table.add_column("File", style="cyan")
    table.add_column("Bus factor", justify="right", style="bold")
    table.add_column("Risk")
    table.add_column("Commits", justify="right")
    table.add_column("Top authors")
    for entry in report.files[:limit]:
        top = ", ".join(f"{a.author} ({a.ownership_percent:.0f}%)" for a in entry.top_authors[:3])
        table.add_row(
            entry.file_path,
            str(entry.bus_factor),
            _styled(entry.risk_level),
            str(entry.total_commits),
            top,
        )
    console.print(table)
    console.print()


@app.command()
def authors(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    List authors by commits, files touched and lines changed.
    """
    with open_service(ctx) as service:
        project_id = resolve_project(service, name).require_id()
        rows = service.authors(project_id)

    if json_output:
        print_json([a.to_dict() for a in rows])
        return

    if not rows:
        console.print(f"[yellow]No changes recorded for {name}.[/yellow]")
        return

    table = Table(title=f"Authors: {name}")
    table.add_column("Author", style="cyan")
    table.add_column("Commits", justify="right", style="bold")
    table.add_column("Files", justify="right")
    table.add_column("Added", justify="right", style="green")
    table.add_column("Deleted", justify="right", style="red")
    table.add_column("Last active", style="dim")
    for a in rows:
        table.add_row(
            a.author,
            str(a.total_commits),
            str(a.files_touched),
            str(a.lines_added),
            str(a.lines_deleted),
            fmt_time(a.last_activity),
        )
    console.print()
    console.print(table)
    console.print()


@app.command()
def overview(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Summarize a project: totals, contributors and high-churn files.
    """
    with open_service(ctx) as service:
        project_id = resolve_project(service, name).require_id()
        ov = service.overview(project_id)
        extensions = service.file_types(project_id)

    if json_output:
        data = ov.to_dict()
        data["file_types"] = extensions
        print_json(data)
        return

    console.print()
    console.print(f"[bold cyan]{ov.name}[/bold cyan]")
    console.print(
        f"  {ov.total_files} files, {ov.total_commits} commits, "
        f"{ov.contributors} contributors, net {ov.net_lines:+d} lines"
    )
    if extensions:
        console.print(f"  [dim]File types: {', '.join(extensions)}[/dim]")
    if not ov.risk_snapshots:
        console.print()
        return

    table = Table(title="High-churn files")
    table.add_column("File", style="cyan")
    table.add_column("Changes", justify="right", style="bold")
    table.add_column("Lines", justify="right")
    table.add_column("Level")
    for snap in ov.risk_snapshots:
        table.add_row(snap.file_path, str(snap.changes), str(snap.total_lines), _styled(snap.level))
    console.print(table)
    console.print()
