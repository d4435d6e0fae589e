"""codevault group CLI commands.

Commands:
  codevault group create --name backend [--description ...]
  codevault group list
  codevault group update --name backend --description ...
  codevault group delete --name backend   (member projects become ungrouped)
"""

from __future__ import annotations

from typing import Annotated

import typer
from rich.markup import escape
from rich.table import Table

from codevault.cli import common
from codevault.cli.common import console, format_time_ago
from codevault.cli.errors import err_group_exists, err_group_not_found
from codevault.db.repository import ConflictError, NotFoundError

group_app = typer.Typer(
    name="group",
    help="Manage project groups (create, list, update, delete).",
    add_completion=False,
)


@group_app.command("create")
def group_create_cmd(
    ctx: typer.Context,
    name: Annotated[str, typer.Option("--name", "-n", help="Group name.")],
    description: Annotated[
        str, typer.Option("--description", "-d", help="Group description.")
    ] = "",
) -> None:
    """Create a new group."""
    cfg = common.get_config(ctx)
    conn, repo = common.open_metadata(cfg)
    try:
        group = repo.create_group(name, description)
    except ConflictError:
        console.print(err_group_exists(name))
        raise typer.Exit(1) from None
    finally:
        conn.close()

    console.print(f"[green]✓[/] Created group '{escape(group.name)}'")
    if group.description:
        console.print(f"  Description: {escape(group.description)}")


@group_app.command("list")
def group_list_cmd(ctx: typer.Context) -> None:
    """List all groups with their project counts."""
    cfg = common.get_config(ctx)
    conn, repo = common.open_metadata(cfg)
    try:
        groups = repo.list_groups()
        counts = {g.name: len(repo.get_projects_by_group(g.name)) for g in groups}
    finally:
        conn.close()

    if not groups:
        console.print("[yellow]No groups found.[/]")
        raise typer.Exit(0)

    table = Table(title=f"Groups ({len(groups)})", show_header=True, header_style="bold")
    table.add_column("Name", style="bold")
    table.add_column("Projects", justify="right")
    table.add_column("Description")
    table.add_column("Created")
    for g in groups:
        table.add_row(
            escape(g.name),
            str(counts[g.name]),
            escape(g.description),
            format_time_ago(g.created_at),
        )
    console.print(table)


@group_app.command("update")
def group_update_cmd(
    ctx: typer.Context,
    name: Annotated[str, typer.Option("--name", "-n", help="Group name.")],
    description: Annotated[
        str, typer.Option("--description", "-d", help="New description.")
    ],
) -> None:
    """Change a group's description."""
    cfg = common.get_config(ctx)
    conn, repo = common.open_metadata(cfg)
    try:
        repo.update_group(name, description)
    except NotFoundError:
        console.print(err_group_not_found(name))
        raise typer.Exit(1) from None
    finally:
        conn.close()

    console.print(f"[green]✓[/] Updated group '{escape(name)}'")


@group_app.command("delete")
def group_delete_cmd(
    ctx: typer.Context,
    name: Annotated[str, typer.Option("--name", "-n", help="Group name.")],
) -> None:
    """Delete a group. Its projects are kept but become ungrouped."""
    cfg = common.get_config(ctx)
    conn, repo = common.open_metadata(cfg)
    try:
        members = repo.get_projects_by_group(name)
        repo.delete_group(name)
    except NotFoundError:
        console.print(err_group_not_found(name))
        raise typer.Exit(1) from None
    finally:
        conn.close()

    if members:
        console.print(f"  Note: {len(members)} project(s) are now ungrouped.")
    console.print(f"[green]✓[/] Deleted group '{escape(name)}'")
