"""codevault index: parse, embed and store one project.

Usage:
  codevault index --path ./service --name service
  codevault index --path ./service --name service --group backend --clean
"""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from codevault.cli import common
from codevault.cli.common import console
from codevault.cli.errors import err_indexing, err_no_chunks, err_path_not_found
from codevault.ingest.indexer import (
    EmptyIndexError,
    Indexer,
    IndexingError,
    MetadataSyncError,
)
from codevault.ingest.registry import get_extractor


def index_cmd(
    ctx: typer.Context,
    path: Annotated[
        Path,
        typer.Option("--path", "-p", help="Path to the project directory."),
    ],
    name: Annotated[
        str,
        typer.Option("--name", "-n", help="Name of the project."),
    ],
    group: Annotated[
        str | None,
        typer.Option("--group", "-g", help="Group to file the project under (created if missing)."),
    ] = None,
    description: Annotated[
        str,
        typer.Option("--description", "-d", help="Project description."),
    ] = "",
    clean: Annotated[
        bool,
        typer.Option("--clean", help="Delete existing project data first (removes orphaned chunks)."),
    ] = False,
) -> None:
    """Index a code project into the knowledge base."""
    if not path.is_dir():
        console.print(err_path_not_found(str(path)))
        raise typer.Exit(1)

    cfg = common.get_config(ctx)
    extractor = get_extractor("go")
    embedder = common.build_embedder(cfg)

    console.print(f"\n[bold]→ Indexing {escape(name)}[/] from {escape(str(path))}")
    if clean:
        console.print(f"  [yellow]↻ Cleaning existing data for {escape(name)}[/]")

    with common.open_stores(cfg) as (repo, store):
        indexer = Indexer(extractor, embedder, store, repo)
        try:
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                transient=True,
                console=console,
            ) as prog:
                prog.add_task("Parsing, embedding and storing…", total=None)
                count = indexer.index_project(
                    path, name, clean=clean, group=group, description=description
                )
        except EmptyIndexError:
            console.print(err_no_chunks(str(path), extractor.language))
            raise typer.Exit(1) from None
        except MetadataSyncError as exc:
            console.print(f"  [green]✓[/] {exc.chunk_count} chunks stored")
            console.print(err_indexing(exc))
            raise typer.Exit(1) from None
        except IndexingError as exc:
            console.print(err_indexing(exc))
            raise typer.Exit(1) from None

    console.print(f"  [green]✓[/] Indexed {count} chunks")
    if group:
        console.print(f"  Group: {escape(group)}")
