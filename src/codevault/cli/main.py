"""codevault CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.logging import RichHandler

from codevault.cli.common import CliState
from codevault.cli.groups import group_app
from codevault.cli.index import index_cmd
from codevault.cli.init import init_cmd
from codevault.cli.projects import delete_cmd, info_cmd, list_cmd, stale_cmd
from codevault.cli.query import query_cmd


def _version() -> str:
    try:
        return importlib.metadata.version("codevault")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"codevault {_version()}")
        raise typer.Exit()


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # litellm/httpx are chatty at INFO
    for name in ("LiteLLM", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)


app = typer.Typer(
    name="codevault",
    help=(
        "codevault: semantic knowledge base over source-code repositories.\n\n"
        "  codevault index   Parse a project into functions, methods and types, then embed them.\n"
        "  codevault query   Search indexed code in natural language."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Annotated[
        Path | None,
        typer.Option(
            "--config",
            "-c",
            help="Path to config file (default: ~/.codevault/config.yaml).",
        ),
    ] = None,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Log indexing steps and skipped files."),
    ] = False,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """codevault: semantic knowledge base over source-code repositories."""
    _setup_logging(verbose)
    ctx.obj = CliState(config_path=config, verbose=verbose)


app.command("init")(init_cmd)
app.command("index")(index_cmd)
app.command("query")(query_cmd)
app.command("list")(list_cmd)
app.command("info")(info_cmd)
app.command("stale")(stale_cmd)
app.command("delete")(delete_cmd)
app.add_typer(group_app, name="group")


@app.command("version")
def version_cmd() -> None:
    """Show the installed codevault version."""
    typer.echo(f"codevault {_version()}")


if __name__ == "__main__":
    app()
