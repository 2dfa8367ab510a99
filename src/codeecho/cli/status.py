"""Status and project listing commands."""

import typer
from rich.table import Table

from ..history.locations import sanitize
from . import app
from ._common import console, fmt_time, open_service, print_json, resolve_project


@app.command()
def status(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Project name"),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Show a project's checkpoint and stored totals.
    """
    with open_service(ctx) as service:
        project = resolve_project(service, name)
        st = service.status(project.require_id())

    if json_output:
        data = st.to_dict()
        data["name"] = project.name
        print_json(data)
        return

    table = Table(title=f"Status: {project.name}", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Repository", sanitize(project.repo_path))
    table.add_row("Analyzed", "yes" if st.is_analyzed else "no")
    table.add_row("Checkpoint", st.last_commit_hash[:12] if st.last_commit_hash else "-")
    table.add_row("Commits", str(st.commit_count))
    table.add_row("Changes", str(st.change_count))
    table.add_row("Files", str(st.file_count))
    table.add_row("Running", "yes" if st.running else "no")
    console.print()
    console.print(table)
    console.print()


@app.command()
def projects(
    ctx: typer.Context,
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    List known projects.
    """
    with open_service(ctx) as service:
        rows = []
        for p in service.projects.list_all():
            project_id = p.require_id()
            rows.append(
                {
                    "id": project_id,
                    "name": p.name,
                    "repo_path": sanitize(p.repo_path),
                    "last_analyzed_hash": p.last_analyzed_hash.value if p.last_analyzed_hash else None,
                    "commit_count": service.changes.commit_count(project_id),
                    "created_at": p.created_at,
                }
            )

    if json_output:
        print_json(rows)
        return

    if not rows:
        console.print("[yellow]No projects yet.[/yellow] Run [bold]codeecho ingest[/bold] first.")
        return

    table = Table(title="Projects")
    table.add_column("ID", justify="right", style="bold")
    table.add_column("Name", style="cyan")
    table.add_column("Repository")
    table.add_column("Commits", justify="right")
    table.add_column("Checkpoint", style="dim")
    table.add_column("Created", style="green")
    for r in rows:
        table.add_row(
            str(r["id"]),
            r["name"],
            r["repo_path"],
            str(r["commit_count"]),
            r["last_analyzed_hash"][:8] if r["last_analyzed_hash"] else "-",
            fmt_time(r["created_at"]),
        )
    console.print()
    console.print(table)
    console.print()
