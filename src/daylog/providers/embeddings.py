"""Embedding provider gateway.

Strategies share the EmbeddingProvider protocol:

- RemoteEmbeddings: a hosted model called through LiteLLM, with model
  discovery when the configured model is unavailable.
- LocalHashEmbeddings: deterministic SHA-256 derived vectors; offline.

BatchEmbedder splits document lists into fixed-size sub-batches.
EmbeddingGateway picks the strategy once at construction, and falls back to
LocalHashEmbeddings for an operation that fails on quota or rate limits.
Every vector it returns is tagged with the model key of the strategy that
produced it, so vectors from different models are never compared.
"""

from __future__ import annotations

import hashlib
import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from daylog.config import DaylogConfig
from daylog.errors import (
    EmbeddingError,
    ErrorKind,
    ModelNotFoundError,
    ProviderAuthError,
    provider_error_for,
)
from daylog.providers.retry import RemoteCallQueue, RetryPolicy
from daylog.rag.llm_client import (
    aembed,
    classify_error,
    has_api_key,
    list_embedding_models,
    provider_of,
)

logger = logging.getLogger(__name__)

LOCALHASH_KEY = "localhash:v1"
DISABLED_KEY = "disabled"
DEFAULT_BATCH_SIZE = 8

_FALLBACK_KINDS = frozenset([ErrorKind.QUOTA, ErrorKind.RATE_LIMIT])


@dataclass(frozen=True)
class Embedding:
    """A vector and the identity of the model that produced it."""

    vector: list[float]
    model_key: str


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Turns text into vectors.

    ``model_key`` identifies the model (and version) behind the vectors; it
    may change after the first successful remote call resolves a model.
    """

    @property
    def model_key(self) -> str: ...

    async def embed_query(self, text: str) -> list[float]: ...

    async def embed_documents(self, texts: list[str]) -> list[list[float]]: ...


# -----------------------------------------------------------------------------
# Local hash strategy
# -----------------------------------------------------------------------------


class LocalHashEmbeddings:
    """Deterministic pseudo-embeddings derived from SHA-256.

    Bytes of ``sha256(f"{counter}|{text}")`` for counter = 0, 1, … fill the
    vector, each mapped to [-0.5, 0.5]; the result is L2-normalized. Equal
    input always gives an equal vector and no network access is needed.
    The vectors carry no semantic similarity beyond exact matches.
    """

    def __init__(self, dimensions: int = 256) -> None:
        if dimensions < 1:
            raise ValueError("dimensions must be >= 1")
        self.dimensions = dimensions

    @property
    def model_key(self) -> str:
        if self.dimensions == 256:
            return LOCALHASH_KEY
        return f"{LOCALHASH_KEY}-{self.dimensions}"

    def embed_sync(self, text: str) -> list[float]:
        vector: list[float] = []
        data = text.encode("utf-8")
        counter = 0
        while len(vector) < self.dimensions:
            digest = hashlib.sha256(str(counter).encode("ascii") + b"|" + data).digest()
            for b in digest:
                if len(vector) >= self.dimensions:
                    break
                vector.append(b / 255 - 0.5)
            counter += 1

        norm = math.sqrt(sum(v * v for v in vector)) or 1.0
        return [v / norm for v in vector]

    async def embed_query(self, text: str) -> list[float]:
        return self.embed_sync(text)

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self.embed_sync(t) for t in texts]


# -----------------------------------------------------------------------------
# Remote strategy
# -----------------------------------------------------------------------------


def _uniq(values: Sequence[str | None]) -> list[str]:
    out: list[str] = []
    for v in values:
        if v and v not in out:
            out.append(v)
    return out


class RemoteEmbeddings:
    """Hosted embedding model via LiteLLM with model discovery.

    Candidates are tried in order: the cached working model, the configured
    model, configured fallback models, then every embedding model the catalog
    reports for the provider. A candidate is skipped when it returns no
    vectors or fails with NOT_FOUND; any other failure propagates at once.
    The first candidate that works is cached on this instance and used
    directly afterwards.

    Args:
        model: Configured LiteLLM model string (provider/model).
        queue: Single-flight queue every remote call goes through.
        fallback_models: Extra candidates tried before catalog discovery.
        catalog: Returns embedding-capable models for a provider name.
        timeout: Per-call deadline passed to the queue.
    """

    def __init__(
        self,
        model: str,
        queue: RemoteCallQueue | None = None,
        fallback_models: Sequence[str] = (),
        catalog: Callable[[str], list[str]] = list_embedding_models,
        timeout: float | None = None,
    ) -> None:
        self.model = model
        self._queue = queue or RemoteCallQueue(name="embedding")
        self._fallback_models = list(fallback_models)
        self._catalog = catalog
        self._timeout = timeout
        self._working_model: str | None = None

    @property
    def working_model(self) -> str | None:
        return self._working_model

    @property
    def model_key(self) -> str:
        return f"remote:{self._working_model or self.model}"

    async def embed_query(self, text: str) -> list[float]:
        return (await self.embed_documents([text]))[0]

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []

        tried: list[str] = []
        first_round = _uniq([self._working_model, self.model, *self._fallback_models])
        for model in first_round:
            tried.append(model)
            vectors = await self._try_model(model, texts)
            if vectors is not None:
                return vectors

        try:
            discovered = self._catalog(provider_of(self.model))
        except Exception as exc:  # catalog lookup is best-effort
            logger.warning("embedding model catalog lookup failed: %s", exc)
            discovered = []

        for model in discovered:
            if model in tried:
                continue
            tried.append(model)
            vectors = await self._try_model(model, texts)
            if vectors is not None:
                logger.info("embedding model '%s' unavailable; using '%s'", self.model, model)
                return vectors

        candidates = [m for m in tried if m not in first_round]
        hint = (
            f"Embedding-capable candidates (first 10): {', '.join(candidates[:10])}"
            if candidates
            else "No embedding-capable models were found in the model catalog."
        )
        raise ModelNotFoundError(
            "\n".join(
                [
                    f"Embedding call failed for model '{self.model}'.",
                    "Tried: configured/cached model, fallback models, catalog discovery.",
                    hint,
                    "Fix: check the provider API is enabled for your key and set "
                    "embedding.model to one of the candidates.",
                ]
            )
        )

    async def _try_model(self, model: str, texts: list[str]) -> list[list[float]] | None:
        try:
            vectors = await self._queue.run(lambda: aembed(model, texts), timeout=self._timeout)
        except Exception as exc:
            if classify_error(exc) is ErrorKind.NOT_FOUND:
                logger.debug("embedding model '%s' not found: %s", model, exc)
                return None
            raise
        if len(vectors) != len(texts) or any(not v for v in vectors):
            logger.debug("embedding model '%s' returned no vectors", model)
            return None
        self._working_model = model
        return vectors


# -----------------------------------------------------------------------------
# Batching
# -----------------------------------------------------------------------------


class BatchEmbedder:
    """Embed long document lists in sub-batches of *batch_size*.

    Spacing between consecutive remote calls is applied by the provider's
    RemoteCallQueue. A short or empty result for any sub-batch raises
    EmbeddingError; zero vectors are never substituted.
    """

    def __init__(self, provider: EmbeddingProvider, batch_size: int = DEFAULT_BATCH_SIZE) -> None:
        self.provider = provider
        self.batch_size = batch_size if batch_size > 0 else DEFAULT_BATCH_SIZE

    async def embed_documents(self, texts: list[str]) -> list[list[float]]:
        out: list[list[float]] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            vectors = await self.provider.embed_documents(batch)
            if len(vectors) != len(batch) or any(not v for v in vectors):
                raise EmbeddingError(
                    f"Embeddings returned an empty vector for documents "
                    f"{start}..{start + len(batch) - 1}. Check the provider API key "
                    f"and embedding.model ({self.provider.model_key})."
                )
            out.extend(vectors)
        return out


# -----------------------------------------------------------------------------
# Gateway
# -----------------------------------------------------------------------------


class EmbeddingGateway:
    """Uniform ``embed(text) -> Embedding | None`` over the configured strategy.

    Args:
        provider: Primary strategy, or None when embeddings are disabled.
        fallback: Strategy used when the primary fails on quota/rate limits.
        batch_size: Sub-batch size for embed_documents().
    """

    def __init__(
        self,
        provider: EmbeddingProvider | None,
        fallback: EmbeddingProvider | None = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ) -> None:
        self.provider = provider
        self.fallback = fallback if fallback is not None else LocalHashEmbeddings()
        self.batch_size = batch_size

    @classmethod
    def from_config(cls, cfg: DaylogConfig) -> EmbeddingGateway:
        """Select the strategy once from configuration."""
        emb = cfg.embedding
        local = LocalHashEmbeddings(dimensions=emb.dimensions)

        if emb.provider == "disabled":
            return cls(None, fallback=local, batch_size=emb.batch_size)
        if emb.provider == "localhash":
            return cls(local, fallback=local, batch_size=emb.batch_size)

        if not has_api_key(emb.model):
            logger.info(
                "no API key for '%s'; using local hash embeddings", provider_of(emb.model)
            )
            return cls(local, fallback=local, batch_size=emb.batch_size)

        queue = RemoteCallQueue(
            RetryPolicy(
                max_retries=cfg.retry.max_retries,
                base_delay=cfg.retry.base_delay,
                max_delay=cfg.retry.max_delay,
                spacing_ms=emb.spacing_ms,
            ),
            name="embedding",
        )
        remote = RemoteEmbeddings(
            emb.model,
            queue=queue,
            fallback_models=emb.fallback_models,
            timeout=cfg.retry.timeout,
        )
        return cls(remote, fallback=local, batch_size=emb.batch_size)

    @property
    def enabled(self) -> bool:
        return self.provider is not None

    @property
    def model_key(self) -> str:
        return self.provider.model_key if self.provider is not None else DISABLED_KEY

    @property
    def strategy(self) -> str:
        if self.provider is None:
            return "disabled"
        if isinstance(self.provider, LocalHashEmbeddings):
            return "localhash"
        return "remote"

    async def embed(self, text: str) -> Embedding | None:
        """Embed one text. Empty/whitespace input or a disabled gateway → None."""
        s = (text or "").strip()
        if not s or self.provider is None:
            return None

        try:
            vector = await self.provider.embed_query(s)
            return Embedding(vector=vector, model_key=self.provider.model_key)
        except Exception as exc:
            self._raise_unless_fallback(exc)

        vector = await self.fallback.embed_query(s)
        return Embedding(vector=vector, model_key=self.fallback.model_key)

    async def embed_documents(self, texts: list[str]) -> tuple[list[list[float]], str]:
        """Embed *texts* in sub-batches. Returns (vectors, model_key).

        On quota/rate-limit failure the whole operation is redone with the
        fallback strategy so all vectors share one model key.

        Raises:
            EmbeddingError: Embeddings are disabled, or a batch came back empty.
        """
        if not texts:
            return [], self.model_key
        if self.provider is None:
            raise EmbeddingError("Embeddings are disabled (embedding.provider: disabled).")

        try:
            vectors = await BatchEmbedder(self.provider, self.batch_size).embed_documents(texts)
            return vectors, self.provider.model_key
        except EmbeddingError:
            raise
        except Exception as exc:
            self._raise_unless_fallback(exc)

        vectors = await BatchEmbedder(self.fallback, self.batch_size).embed_documents(texts)
        return vectors, self.fallback.model_key

    def _raise_unless_fallback(self, exc: Exception) -> None:
        kind = classify_error(exc)
        if kind in _FALLBACK_KINDS and self.fallback is not self.provider:
            logger.warning(
                "embedding provider hit %s (%s); falling back to %s",
                kind.value,
                exc,
                self.fallback.model_key,
            )
            return
        if kind is ErrorKind.AUTH and not isinstance(exc, ProviderAuthError):
            raise provider_error_for(
                kind, f"Embedding provider rejected the credentials: {exc}", cause=exc
            ) from exc
        raise exc
