"""Shared pytest fixtures."""

from __future__ import annotations

import pytest

from daylog.db.connection import Database

_ENV_VARS = (
    "DAYLOG_EMBEDDING_PROVIDER",
    "DAYLOG_EMBEDDING_MODEL",
    "DAYLOG_GENERATION_MODEL",
    "DAYLOG_DATA_DIR",
    "EMBEDDINGS_BATCH_SIZE",
    "REQUEST_SPACING_MS",
    "GEMINI_API_KEY",
    "OPENAI_API_KEY",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch, tmp_path):
    """Keep host configuration and API keys out of every test."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setattr(
        "daylog.config._GLOBAL_CONFIG_PATH", tmp_path / "no-global" / "config.yaml"
    )


@pytest.fixture
def tmp_db(tmp_path):
    """File-based DB in tmp_path with schema initialized, closed after test."""
    conn = Database(tmp_path / "journal.sqlite").open()
    yield conn
    conn.close()
