"""Project lifecycle commands: list, info, stale, delete.

Usage:
  codevault list [--detailed] [--group backend]
  codevault info --name service
  codevault stale --name service
  codevault delete --name service [--yes]
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from codevault.cli import common
from codevault.cli.common import console, format_time_ago
from codevault.cli.errors import err_project_not_found
from codevault.db.models import ProjectFilter
from codevault.db.repository import NotFoundError
from codevault.ingest.indexer import remove_project

_TIME_FMT = "%Y-%m-%d %H:%M:%S"


def list_cmd(
    ctx: typer.Context,
    detailed: Annotated[
        bool,
        typer.Option("--detailed", help="Show path, language, chunk count and last indexing time."),
    ] = False,
    group: Annotated[
        str | None,
        typer.Option("--group", "-g", help="Only list projects in this group."),
    ] = None,
) -> None:
    """List indexed projects."""
    cfg = common.get_config(ctx)
    conn, repo = common.open_metadata(cfg)
    try:
        projects = repo.list_projects(ProjectFilter(group_name=group) if group else None)
    finally:
        conn.close()

    if not projects:
        if group:
            console.print(f"[yellow]No projects found in group '{escape(group)}'.[/]")
        else:
            console.print("[yellow]No projects indexed yet.[/]")
        raise typer.Exit(0)

    title = f"Projects in group '{group}'" if group else "Indexed projects"
    table = Table(title=f"{escape(title)} ({len(projects)})", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Group")
    if detailed:
        table.add_column("Path")
        table.add_column("Language")
        table.add_column("Chunks", justify="right")
        table.add_column("Last indexed")
        table.add_column("Description")

    for p in projects:
        row = [escape(p.name), escape(p.group_name) or "[dim]-[/]"]
        if detailed:
            row += [
                escape(p.path),
                p.language,
                str(p.chunk_count),
                format_time_ago(p.last_indexed_at),
                escape(p.description),
            ]
        table.add_row(*row)

    console.print(table)


def info_cmd(
    ctx: typer.Context,
    name: Annotated[
        str,
        typer.Option("--name", "-n", help="Name of the project."),
    ],
) -> None:
    """Show detailed information about a project."""
    cfg = common.get_config(ctx)
    conn, repo = common.open_metadata(cfg)
    try:
        try:
            project = repo.get_project(name)
        except NotFoundError:
            console.print(err_project_not_found(name))
            raise typer.Exit(1) from None
        files = repo.list_files(project.id)
        stale = repo.get_stale_files(project.id)
    finally:
        conn.close()

    console.print(f"\n[bold]Project:[/] {escape(project.name)}")
    console.print(f"  Path:         {escape(project.path)}")
    console.print(f"  Language:     {project.language}")
    if project.description:
        console.print(f"  Description:  {escape(project.description)}")
    console.print(f"  Group:        {escape(project.group_name) or '(none)'}")
    console.print(f"  Chunks:       {project.chunk_count}")
    if project.last_indexed_at is not None:
        console.print(
            f"  Last indexed: {project.last_indexed_at.strftime(_TIME_FMT)} "
            f"({format_time_ago(project.last_indexed_at)})"
        )
    else:
        console.print("  Last indexed: never")
    if project.last_modified_at is not None:
        console.print(f"  Last change:  {project.last_modified_at.strftime(_TIME_FMT)}")
    if project.created_at is not None:
        console.print(f"  Created:      {project.created_at.strftime(_TIME_FMT)}")
    if project.updated_at is not None:
        console.print(f"  Updated:      {project.updated_at.strftime(_TIME_FMT)}")
    if files:
        console.print(f"  Files tracked: {len(files)}")
    if stale:
        console.print(f"  [yellow]⚠ Stale files (need re-indexing): {len(stale)}[/]")


def stale_cmd(
    ctx: typer.Context,
    name: Annotated[
        str,
        typer.Option("--name", "-n", help="Name of the project."),
    ],
) -> None:
    """List files that changed since they were last indexed."""
    cfg = common.get_config(ctx)
    conn, repo = common.open_metadata(cfg)
    try:
        try:
            project = repo.get_project(name)
        except NotFoundError:
            console.print(err_project_not_found(name))
            raise typer.Exit(1) from None
        stale = repo.get_stale_files(project.id)
    finally:
        conn.close()

    if not stale:
        console.print(f"[green]✓[/] {escape(name)} is up to date")
        return

    table = Table(title=f"Stale files in {escape(name)} ({len(stale)})", header_style="bold")
    table.add_column("File", style="bold")
    table.add_column("Modified")
    table.add_column("Last indexed")
    for f in stale:
        table.add_row(
            escape(f.file_path),
            f.last_modified_at.strftime(_TIME_FMT) if f.last_modified_at else "-",
            f.last_indexed_at.strftime(_TIME_FMT) if f.last_indexed_at else "never",
        )
    console.print(table)
    console.print(f"\n  Run:  codevault index --path {escape(project.path)} --name {escape(name)}")


def delete_cmd(
    ctx: typer.Context,
    name: Annotated[
        str,
        typer.Option("--name", "-n", help="Name of the project to delete."),
    ],
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove a project's chunks and metadata from the knowledge base."""
    cfg = common.get_config(ctx)
    with common.open_stores(cfg) as (repo, store):
        chunk_count = store.count(name)
        try:
            repo.get_project(name)
            has_metadata = True
        except NotFoundError:
            has_metadata = False

        if chunk_count == 0 and not has_metadata:
            console.print(err_project_not_found(name))
            raise typer.Exit(0)

        console.print(f"\nDelete project: [bold]{escape(name)}[/]")
        console.print(f"  Chunks: {chunk_count}  |  Metadata: {'yes' if has_metadata else 'no'}")

        if not yes:
            if not typer.confirm("Confirm deletion?", default=False):
                console.print("[dim]Cancelled.[/]")
                raise typer.Exit(0)

        remove_project(store, repo, name)

    console.print(f"\n[green]✓[/] Deleted: {escape(name)}")
    console.print(f"  {chunk_count} chunks removed")
