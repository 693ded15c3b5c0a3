"""daylog reindex pipeline — chunker, vector index, reindexer."""

from daylog.ingest.chunker import TextChunker
from daylog.ingest.indexer import Reindexer, ReindexResult
from daylog.ingest.vector_index import SqliteVecIndex, VectorIndex

__all__ = [
    "Reindexer",
    "ReindexResult",
    "SqliteVecIndex",
    "TextChunker",
    "VectorIndex",
]
