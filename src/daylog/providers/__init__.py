"""Embedding providers and the remote call queue."""

from daylog.providers.embeddings import (
    BatchEmbedder,
    Embedding,
    EmbeddingGateway,
    EmbeddingProvider,
    LocalHashEmbeddings,
    RemoteEmbeddings,
)
from daylog.providers.retry import RemoteCallQueue, RetryPolicy

__all__ = [
    "BatchEmbedder",
    "Embedding",
    "EmbeddingGateway",
    "EmbeddingProvider",
    "LocalHashEmbeddings",
    "RemoteCallQueue",
    "RemoteEmbeddings",
    "RetryPolicy",
]
