"""codevault rich error messages with actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from codevault.cli.errors import err_no_api_key
    console.print(err_no_api_key("openai"))
    raise typer.Exit(1)
"""

from __future__ import annotations

from rich.markup import escape

from codevault.ingest.indexer import IndexingError

# What to try after a failure at each indexing step.
_STEP_HINTS = {
    "clean": "Check that the vector store at the configured path is writable.",
    "parse": "Check that --path exists and is readable.",
    "embed": "Check the embedding model, API key, and network access (use -v for details).",
    "store": "Check that the vector store at the configured path is writable.",
    "metadata": "Vectors were written. Re-run the same command to repair project metadata.",
}


def err_no_api_key(provider: str, env_var: str | None = None) -> str:
    """No API key for *provider*.

    Example:
        No API key for 'openai'. Set:  export OPENAI_API_KEY=sk-...
    """
    env_var = env_var or f"{provider.upper()}_API_KEY"
    return (
        f"[red]Error:[/] No API key for '{provider}'.\n"
        f"  Set:  export {env_var}=...\n"
        "  Or switch to a local model in config.yaml (embedding.model: ollama/bge-m3)."
    )


def err_config(message: str) -> str:
    """Config file could not be loaded or contains a forbidden value."""
    return f"[red]Error:[/] Invalid configuration.\n  {escape(message)}"


def err_path_not_found(path: str) -> str:
    return (
        f"[red]Error:[/] Project path does not exist or is not a directory: '{escape(path)}'\n"
        "  Pass the repository root with --path."
    )


def err_no_chunks(project_path: str, language: str) -> str:
    """Extraction found nothing to index."""
    return (
        f"[red]Error:[/] No {language} code found in '{escape(project_path)}'.\n"
        "  vendor/, node_modules/ and hidden directories are skipped.\n"
        "  Check --path points at the repository root."
    )


def err_indexing(exc: IndexingError) -> str:
    """An indexing run failed at a known step."""
    hint = _STEP_HINTS.get(exc.step, "Re-run with -v for details.")
    return f"[red]Error:[/] Indexing failed during '{exc.step}': {escape(str(exc))}\n  {hint}"


def err_project_not_found(name: str) -> str:
    return (
        f"[yellow]Project not found:[/] '{escape(name)}' is not in the knowledge base.\n"
        "  Run:  codevault list  to see all indexed projects."
    )


def err_group_not_found(name: str) -> str:
    return (
        f"[red]Error:[/] Group '{escape(name)}' does not exist.\n"
        "  Run:  codevault group list  to see all groups."
    )


def err_group_exists(name: str) -> str:
    return (
        f"[red]Error:[/] Group '{escape(name)}' already exists.\n"
        f"  Run:  codevault group update --name {escape(name)} --description ...  to change it."
    )


def err_empty_group(name: str) -> str:
    """--group filter resolves to zero projects."""
    return (
        f"[red]Error:[/] No projects found in group '{escape(name)}'.\n"
        f"  Run:  codevault index --path <dir> --name <project> --group {escape(name)}"
    )


def err_project_and_group() -> str:
    return (
        "[red]Error:[/] Cannot specify both --project and --group.\n"
        "  Use one filter, or neither to search every project."
    )


def err_dimension_mismatch(message: str) -> str:
    return (
        f"[red]Error:[/] {escape(message)}\n"
        "  Set embedding.dimensions in config.yaml to the model's vector size."
    )


def err_store_unavailable(path: str, message: str) -> str:
    """The vector store database could not be opened."""
    return (
        f"[red]Error:[/] Cannot open the vector store at '{escape(path)}': {escape(message)}\n"
        "  Check vector_store.path and vector_store.batch_size in config.yaml."
    )
