"""daylog reindex — rebuild the vector index from the catalog.

Usage:
  daylog reindex
  daylog reindex --project-dir ~/notes
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console

from daylog.cli.errors import message_for
from daylog.config import ConfigError, load_config
from daylog.service import Daylog

console = Console()


def reindex_cmd(
    project_dir: Annotated[
        Path,
        typer.Option("--project-dir", "-p", help="Directory containing daylog.yaml."),
    ] = Path("."),
) -> None:
    """Chunk, embed and index every catalog item."""
    try:
        cfg = load_config(project_dir)
    except ConfigError as exc:
        console.print(message_for(exc))
        raise typer.Exit(1) from exc

    with Daylog.open(cfg) as app:
        try:
            result = asyncio.run(app.reindex_all())
        except Exception as exc:
            console.print(
                message_for(
                    exc,
                    model=cfg.embedding.model,
                    items_path=str(cfg.storage.items_path),
                )
            )
            raise typer.Exit(1) from exc

    typer.echo(f"items={result['items']} chunks={result['chunks']}")
