"""Service facade: the operations daylog exposes to outer surfaces.

Daylog wires configuration, the journal database, the catalog store, the
embedding gateway and the answer synthesizer together once per process.

Usage:
    cfg = load_config(project_dir)
    with Daylog.open(cfg) as app:
        result = asyncio.run(app.query_rag("what did I do on 2026/01/25?"))
"""

from __future__ import annotations

import sqlite3
from collections.abc import Iterable
from typing import Any

from daylog.catalog.store import CatalogStore
from daylog.config import DaylogConfig
from daylog.db.connection import Database
from daylog.db.repository import EntryRepository
from daylog.ingest.chunker import TextChunker
from daylog.ingest.indexer import Reindexer
from daylog.ingest.vector_index import SqliteVecIndex
from daylog.providers.embeddings import EmbeddingGateway, RemoteEmbeddings
from daylog.rag.query import QueryEngine
from daylog.rag.synthesis import AnswerSynthesizer


class Daylog:
    """One configured daylog instance.

    Prefer Daylog.open(cfg); the constructor takes already-built parts so
    tests can substitute any of them.
    """

    def __init__(
        self,
        cfg: DaylogConfig,
        conn: sqlite3.Connection,
        store: CatalogStore,
        gateway: EmbeddingGateway,
        synthesizer: AnswerSynthesizer | None,
    ) -> None:
        self.cfg = cfg
        self._conn = conn
        self.store = store
        self.gateway = gateway
        self.synthesizer = synthesizer
        self.repo = EntryRepository(conn)
        self.index = SqliteVecIndex(conn)
        self.engine = QueryEngine(
            self.repo, gateway, synthesizer, top_k=cfg.retrieval.top_k
        )
        self.reindexer = Reindexer(
            store,
            gateway,
            self.index,
            TextChunker(cfg.chunking.chunk_size, cfg.chunking.overlap),
        )

    @classmethod
    def open(cls, cfg: DaylogConfig) -> Daylog:
        """Open the journal database (creating it if needed) and build the parts."""
        conn = Database(cfg.storage.db_path).open()
        return cls(
            cfg,
            conn,
            CatalogStore(cfg.storage.items_path),
            EmbeddingGateway.from_config(cfg),
            AnswerSynthesizer.from_config(cfg),
        )

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> Daylog:
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    async def create_entry(self, date: str, title: str, content: str) -> dict[str, Any]:
        """Register a dated entry. Returns ``{id, date, embedded}``."""
        return await self.engine.create_entry(date, title, content)

    async def query_rag(
        self, query: str, top_k: int | None = None, model_key: str | None = None
    ) -> dict[str, Any]:
        """Answer *query* from dated entries. Returns ``{answer, hits, note, date_filter}``."""
        result = await self.engine.query(query, top_k=top_k, model_key=model_key)
        return result.to_dict()

    # ------------------------------------------------------------------
    # Catalog items
    # ------------------------------------------------------------------

    async def create_item(
        self,
        title: str,
        content: str,
        source: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> dict[str, Any]:
        item = await self.store.create(title, content, source=source, tags=tags)
        return item.to_dict()

    async def update_item(
        self,
        item_id: str,
        *,
        title: str | None = None,
        content: str | None = None,
        source: str | None = None,
        tags: Iterable[str] | None = None,
    ) -> dict[str, Any]:
        item = await self.store.update(
            item_id, title=title, content=content, source=source, tags=tags
        )
        return item.to_dict()

    async def delete_item(self, item_id: str) -> dict[str, bool]:
        return {"deleted": await self.store.delete(item_id)}

    async def get_item(self, item_id: str) -> dict[str, Any] | None:
        item = await self.store.get(item_id)
        return item.to_dict() if item is not None else None

    async def list_items(self) -> list[dict[str, Any]]:
        return [item.to_dict() for item in await self.store.list()]

    # ------------------------------------------------------------------
    # Index + diagnostics
    # ------------------------------------------------------------------

    async def reindex_all(self) -> dict[str, int]:
        """Rebuild the vector index from the catalog. Returns ``{items, chunks}``."""
        result = await self.reindexer.reindex_all()
        return result.to_dict()

    def runtime_model_info(self) -> dict[str, Any]:
        """Describe the active generation and embedding models."""
        provider = self.gateway.provider
        if isinstance(provider, RemoteEmbeddings):
            emb_model = provider.working_model or provider.model
        elif provider is not None:
            emb_model = provider.model_key
        else:
            emb_model = ""

        return {
            "llm": {
                "model": self.cfg.generation.model,
                "enabled": self.synthesizer is not None and self.synthesizer.enabled,
            },
            "embeddings": {
                "provider": self.gateway.strategy,
                "configured_provider": self.cfg.embedding.provider,
                "model": emb_model,
                "model_key": self.gateway.model_key,
                "enabled": self.gateway.enabled,
            },
        }
