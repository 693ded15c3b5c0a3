"""Reindex pipeline: catalog items → chunks → vectors → vector index.

The index is rebuilt in full on every run. Chunk ids are
``<item_id>:<chunk_index>``, so running reindex twice over unchanged items
produces the same ids and counts.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from daylog.catalog.store import CatalogStore
from daylog.errors import IndexClearError
from daylog.ingest.chunker import TextChunker
from daylog.ingest.vector_index import VectorIndex
from daylog.providers.embeddings import EmbeddingGateway

logger = logging.getLogger(__name__)


@dataclass
class ReindexResult:
    items: int
    chunks: int

    def to_dict(self) -> dict[str, int]:
        return {"items": self.items, "chunks": self.chunks}


class Reindexer:
    """Rebuild *index* from every item in *store*.

    Args:
        store: Catalog item store (source of truth).
        gateway: Embedding gateway; quota fallback applies per run.
        index: Target vector index.
        chunker: Text chunker; defaults to 900/150 character windows.
    """

    def __init__(
        self,
        store: CatalogStore,
        gateway: EmbeddingGateway,
        index: VectorIndex,
        chunker: TextChunker | None = None,
    ) -> None:
        self.store = store
        self.gateway = gateway
        self.index = index
        self.chunker = chunker or TextChunker()

    async def reindex_all(self) -> ReindexResult:
        """Chunk, embed and index all catalog items.

        Raises:
            EmbeddingError: A batch came back without vectors, or embeddings
                are disabled.
        """
        items = await self.store.list()

        chunks = []
        for item in items:
            meta = {
                "item_id": item.id,
                "title": item.title,
                "source": item.source,
                "tags": item.tags,
            }
            chunks.extend(self.chunker.chunk(item.id, item.content, meta))

        texts = [c.text for c in chunks]
        vectors, model_key = await self.gateway.embed_documents(texts)

        self.index.ensure(model_key, len(vectors[0]) if vectors else None)
        try:
            self.index.clear()
        except (IndexClearError, NotImplementedError) as exc:
            logger.warning("vector index clear failed, continuing with upsert: %s", exc)

        if chunks:
            self.index.upsert(
                [c.chunk_id for c in chunks],
                vectors,
                [c.metadata for c in chunks],
                texts,
            )

        logger.info("reindexed %d items into %d chunks (%s)", len(items), len(chunks), model_key)
        return ReindexResult(items=len(items), chunks=len(chunks))
