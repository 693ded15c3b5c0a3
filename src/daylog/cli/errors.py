"""daylog rich error messages — actionable feedback.

Every error shown to the user must contain:
  1. What went wrong (clear cause)
  2. The exact action the user should take to fix it

Usage:
    from daylog.cli.errors import message_for
    console.print(message_for(exc))
    raise typer.Exit(1)
"""

from __future__ import annotations

import json

from daylog.config import ConfigError
from daylog.errors import (
    EmbeddingError,
    ErrorKind,
    ModelNotFoundError,
    ProviderError,
    RemoteTimeoutError,
)
from daylog.rag.llm_client import api_key_env, classify_error


def err_no_api_key(model: str) -> str:
    """No API key for the provider of *model*.

    Example:
        No API key for 'gemini/text-embedding-004'. Set:  export GEMINI_API_KEY=...
    """
    env_var = api_key_env(model) or "the provider API key"
    return (
        f"[red]Error:[/] No API key for '{model}'.\n"
        f"  Set:  export {env_var}=..."
    )


def err_config(exc: ConfigError) -> str:
    """Invalid or forbidden value in a config file."""
    return (
        f"[red]Error:[/] Invalid configuration.\n"
        f"  {exc}\n"
        "  Fix daylog.yaml (or ~/.daylog/config.yaml) and run the command again."
    )


def err_embedding(exc: EmbeddingError) -> str:
    """A provider returned no vectors for a batch, or embeddings are disabled."""
    return (
        f"[red]Error:[/] Embedding failed.\n"
        f"  {exc}\n"
        "  Set embedding.provider: localhash in daylog.yaml to index offline."
    )


def err_model_not_found(exc: ModelNotFoundError) -> str:
    """No embedding model candidate worked."""
    return f"[red]Error:[/] {exc}"


def err_quota(model: str) -> str:
    """Provider quota exhausted and no fallback applied."""
    return (
        f"[red]Error:[/] Provider quota exhausted for '{model}'.\n"
        "  Wait for the quota to reset, or use:  export DAYLOG_EMBEDDING_PROVIDER=localhash"
    )


def err_timeout(exc: RemoteTimeoutError) -> str:
    """A remote call exceeded its deadline."""
    return (
        f"[red]Error:[/] {exc}.\n"
        "  Raise retry.timeout in daylog.yaml, or check network access to the provider."
    )


def err_catalog_corrupt(path: str, exc: json.JSONDecodeError) -> str:
    """items.json is not valid JSON."""
    return (
        f"[red]Error:[/] Catalog file is not valid JSON ({exc.msg}, line {exc.lineno}).\n"
        f"  File: {path}\n"
        "  Restore the file from a backup or remove it to start an empty catalog."
    )


def message_for(exc: Exception, *, model: str = "", items_path: str = "") -> str:
    """Return the rich message for a failure raised by a daylog operation."""
    if isinstance(exc, ConfigError):
        return err_config(exc)
    if isinstance(exc, ModelNotFoundError):
        return err_model_not_found(exc)
    if isinstance(exc, EmbeddingError):
        return err_embedding(exc)
    if isinstance(exc, RemoteTimeoutError):
        return err_timeout(exc)
    if isinstance(exc, json.JSONDecodeError):
        return err_catalog_corrupt(items_path, exc)

    kind = classify_error(exc)
    if kind is ErrorKind.AUTH:
        return err_no_api_key(model)
    if kind is ErrorKind.QUOTA:
        return err_quota(model)
    if isinstance(exc, ProviderError):
        return f"[red]Error:[/] {exc}"
    return f"[red]Error:[/] {type(exc).__name__}: {exc}"
