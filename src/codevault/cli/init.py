"""codevault init: write the default config and create both databases.

Usage:
  codevault init
  codevault --config ./codevault.yaml init
"""

from __future__ import annotations

import typer
from rich.markup import escape

from codevault.cli import common
from codevault.cli.common import CliState, console
from codevault.config import ensure_global_config


def init_cmd(ctx: typer.Context) -> None:
    """Create the config file (if missing) and initialise the databases."""
    state = ctx.obj if isinstance(ctx.obj, CliState) else CliState()

    cfg_path = ensure_global_config(state.config_path)
    console.print(f"  [green]✓[/] {escape(str(cfg_path))} (config)")

    cfg = common.get_config(ctx)
    for label, db_path in (
        ("metadata", cfg.metadata.db_path),
        ("vectors", cfg.vector_store.path),
    ):
        common.open_db(db_path).close()
        console.print(f"  [green]✓[/] {escape(str(db_path))} ({label})")

    console.print("\n[bold green]✓ codevault initialized.[/]")
    console.print("\nNext steps:")
    console.print("  1. export OPENAI_API_KEY=...                     (or configure ollama)")
    console.print("  2. codevault index --path <dir> --name <project>  (build the index)")
    console.print("  3. codevault query --query \"<question>\"           (search it)")
