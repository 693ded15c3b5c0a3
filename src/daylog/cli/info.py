"""daylog info — show the active models and store locations."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated

import typer
from rich.console import Console
from rich.panel import Panel

from daylog.cli.errors import message_for
from daylog.config import ConfigError, load_config
from daylog.service import Daylog

console = Console()


def _flag(enabled: bool) -> str:
    return "[green]✓ enabled[/]" if enabled else "[yellow]✗ disabled[/]"


def info_cmd(
    project_dir: Annotated[
        Path,
        typer.Option("--project-dir", "-p", help="Directory containing daylog.yaml."),
    ] = Path("."),
) -> None:
    """Show runtime model info: embedding strategy, model key, generation model."""
    try:
        cfg = load_config(project_dir)
    except ConfigError as exc:
        console.print(message_for(exc))
        raise typer.Exit(1) from exc

    with Daylog.open(cfg) as app:
        info = app.runtime_model_info()
        entries = app.repo.count_entries()
        embedded = app.repo.count_embeddings(info["embeddings"]["model_key"])
        chunks = app.index.count()

    emb = info["embeddings"]
    llm = info["llm"]
    lines = [
        f"Embeddings:  [bold]{emb['provider']}[/] (configured: {emb['configured_provider']}) "
        f"{_flag(emb['enabled'])}",
        f"  Model:     {emb['model'] or '-'}",
        f"  Model key: {emb['model_key']}",
        f"Generation:  [bold]{llm['model']}[/] {_flag(llm['enabled'])}",
    ]
    console.print(Panel("\n".join(lines), title="[bold]Models[/]", expand=False))

    store_lines = [
        f"Database:  {cfg.storage.db_path}",
        f"Catalog:   {cfg.storage.items_path}",
        f"Entries: [bold]{entries}[/]  |  Embedded: [bold]{embedded}[/]  |  "
        f"Indexed chunks: [bold]{chunks}[/]",
    ]
    console.print(Panel("\n".join(store_lines), title="[bold]Storage[/]", expand=False))
