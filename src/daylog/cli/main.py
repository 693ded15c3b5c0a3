"""daylog CLI entry point."""

from __future__ import annotations

import importlib.metadata
import logging
from typing import Annotated

import typer
from rich.logging import RichHandler

from daylog.cli.info import info_cmd
from daylog.cli.reindex import reindex_cmd


def _version() -> str:
    try:
        return importlib.metadata.version("daylog")
    except importlib.metadata.PackageNotFoundError:
        return "dev"


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"daylog {_version()}")
        raise typer.Exit()


def configure_logging(verbose: bool) -> None:
    """Route daylog log records through rich; DEBUG with --verbose, else WARNING."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # LiteLLM and httpx are chatty at DEBUG.
    for name in ("LiteLLM", "httpx"):
        logging.getLogger(name).setLevel(logging.WARNING)


app = typer.Typer(
    name="daylog",
    help=(
        "daylog — dated work log with retrieval-augmented answers.\n\n"
        "  daylog reindex  Rebuild the vector index from the catalog.\n"
        "  daylog info     Show the active embedding and generation models."
    ),
    add_completion=False,
)


@app.callback()
def main_callback(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=_version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option("--verbose", "-v", help="Show debug logging."),
    ] = False,
) -> None:
    """daylog — dated work log with retrieval-augmented answers."""
    configure_logging(verbose)


app.command("reindex")(reindex_cmd)
app.command("info")(info_cmd)


@app.command("version")
def version_cmd() -> None:
    """Show the installed daylog version."""
    typer.echo(f"daylog {_version()}")


if __name__ == "__main__":
    app()
