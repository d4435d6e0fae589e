"""codevault query: semantic search over indexed code.

Usage:
  codevault query --query "how are HTTP handlers registered"
  codevault query -q "retry logic" --project service --limit 10
  codevault query -q "auth middleware" --group backend
"""

from __future__ import annotations

from typing import Annotated, Any

import typer
from rich.markup import escape
from rich.panel import Panel
from rich.syntax import Syntax

from codevault.cli import common
from codevault.cli.common import console
from codevault.cli.errors import (
    err_dimension_mismatch,
    err_empty_group,
    err_project_and_group,
)
from codevault.db.models import SearchResult


def query_cmd(
    ctx: typer.Context,
    query: Annotated[
        str,
        typer.Option("--query", "-q", help="Natural-language query."),
    ],
    limit: Annotated[
        int,
        typer.Option("--limit", "-l", min=1, help="Maximum number of results."),
    ] = 5,
    project: Annotated[
        str | None,
        typer.Option("--project", "-p", help="Only search this project."),
    ] = None,
    group: Annotated[
        str | None,
        typer.Option("--group", "-g", help="Only search projects in this group."),
    ] = None,
) -> None:
    """Search the code knowledge base."""
    if project and group:
        console.print(err_project_and_group())
        raise typer.Exit(1)

    cfg = common.get_config(ctx)
    filters: dict[str, Any] = {}

    if project:
        filters["project"] = project
    elif group:
        conn, repo = common.open_metadata(cfg)
        try:
            names = [p.name for p in repo.get_projects_by_group(group)]
        finally:
            conn.close()
        if not names:
            console.print(err_empty_group(group))
            raise typer.Exit(1)
        filters["projects"] = names
        console.print(f"[dim]Searching group '{escape(group)}': {escape(', '.join(names))}[/]")

    embedder = common.build_embedder(cfg)
    try:
        vector = embedder.embed(query)
    except ValueError as exc:
        console.print(err_dimension_mismatch(str(exc)))
        raise typer.Exit(1) from None

    store = common.open_store(cfg)
    try:
        results = store.search(vector, limit=limit, filters=filters)
    finally:
        store.close()

    if not results:
        console.print(
            "[yellow]No results.[/]\n"
            "  Index a project first:  codevault index --path <dir> --name <project>"
        )
        return

    console.print(f"\nFound {len(results)} results:\n")
    for i, result in enumerate(results, start=1):
        _print_result(i, result)


def _print_result(rank: int, result: SearchResult) -> None:
    chunk = result.chunk
    header = (
        f"[bold]{rank}. {chunk.chunk_type.value} {escape(chunk.name)}[/]  "
        f"[dim](score {result.score:.4f})[/]\n"
        f"{escape(chunk.project)} · {escape(chunk.file_path)}:{chunk.line_start}-{chunk.line_end}"
    )
    if chunk.receiver:
        header += f" · receiver {escape(chunk.receiver)}"
    if chunk.doc_string:
        header += f"\n[italic]{escape(chunk.doc_string.strip())}[/]"
    console.print(header)
    console.print(
        Panel(
            Syntax(chunk.code, chunk.language, line_numbers=True, start_line=chunk.line_start),
            expand=False,
        )
    )
