"""LiteLLM adapter: API key checks, async embedding/completion calls, model
catalog lookup and provider error classification.

All remote model calls route through this module. Retries are NOT delegated
to LiteLLM (num_retries=0); the caller's RemoteCallQueue owns retry and
single-flight ordering. classify_error() is the only place that inspects raw
provider exceptions.
"""

from __future__ import annotations

import asyncio
import os

import litellm

from daylog.errors import ErrorKind, ProviderAuthError

# Disable LiteLLM verbose logging unless explicitly enabled
litellm.suppress_debug_info = True
litellm.set_verbose = False  # type: ignore[assignment]


# ------------------------------------------------------------------
# Provider → env var mapping for API key validation
# ------------------------------------------------------------------

_PROVIDER_ENV: dict[str, str | None] = {
    "openai": "OPENAI_API_KEY",
    "anthropic": "ANTHROPIC_API_KEY",
    "azure": "AZURE_API_KEY",
    "cohere": "COHERE_API_KEY",
    "gemini": "GEMINI_API_KEY",
    "mistral": "MISTRAL_API_KEY",
    "voyage": "VOYAGE_API_KEY",
    "ollama": None,  # Local, no key required
    "ollama_chat": None,
}

# Lower-cased message fragments that mark hard quota exhaustion (as opposed
# to a short-lived rate limit).
_QUOTA_MARKERS: tuple[str, ...] = (
    "insufficient_quota",
    "insufficientquota",
    "exceeded your current quota",
    "quota exceeded",
    "resource_exhausted",
    "resource exhausted",
)

_TRANSIENT_STATUS: frozenset[int] = frozenset([408, 409, 500, 502, 503, 504])


def provider_of(model: str) -> str:
    """Return the provider prefix of a 'provider/model' string ('openai' if none)."""
    return model.split("/")[0].lower() if "/" in model else "openai"


def api_key_env(model: str) -> str | None:
    """Return the env var holding the key for *model*'s provider, or None if keyless."""
    provider = provider_of(model)
    if provider in _PROVIDER_ENV:
        return _PROVIDER_ENV[provider]
    return f"{provider.upper()}_API_KEY"


def has_api_key(model: str) -> bool:
    """True if *model* needs no key or its key env var is set."""
    env_var = api_key_env(model)
    return env_var is None or bool(os.getenv(env_var))


def validate_api_key(model: str) -> None:
    """Check that the required API key env var is set for *model*.

    Raises:
        ProviderAuthError: If the required key is missing from environment.
    """
    if not has_api_key(model):
        raise ProviderAuthError(
            f"API key not found for provider '{provider_of(model)}'. "
            f"Set the {api_key_env(model)} environment variable."
        )


# ------------------------------------------------------------------
# Remote calls
# ------------------------------------------------------------------


async def aembed(model: str, texts: list[str]) -> list[list[float]]:
    """Call litellm.aembedding() once for *texts*. Returns one vector per text.

    Missing or non-list vectors in the response come back as empty lists so
    callers can detect them.
    """
    response = await litellm.aembedding(model=model, input=texts, num_retries=0)
    vectors: list[list[float]] = []
    for item in response.data or []:
        raw = item["embedding"] if isinstance(item, dict) else getattr(item, "embedding", None)
        vectors.append([float(x) for x in raw] if isinstance(raw, list) else [])
    return vectors


async def acomplete(
    model: str,
    messages: list[dict],
    max_tokens: int = 1024,
    temperature: float = 0.2,
) -> str:
    """Call litellm.acompletion(). Returns the content string ('' if none)."""
    response = await litellm.acompletion(
        model=model,
        messages=messages,
        max_tokens=max_tokens,
        temperature=temperature,
        num_retries=0,
    )
    return response.choices[0].message.content or ""


def list_embedding_models(provider: str) -> list[str]:
    """Return embedding-capable models LiteLLM knows for *provider*.

    Reads LiteLLM's bundled model catalog (``litellm.model_cost``); names are
    returned in 'provider/model' form, in catalog order, without duplicates.
    """
    found: list[str] = []
    for name, info in litellm.model_cost.items():
        if not isinstance(info, dict) or info.get("mode") != "embedding":
            continue
        if str(info.get("litellm_provider", "")).lower() != provider.lower():
            continue
        full = name if name.startswith(f"{provider}/") else f"{provider}/{name}"
        if full not in found:
            found.append(full)
    return found


# ------------------------------------------------------------------
# Error classification
# ------------------------------------------------------------------


def _status_of(exc: BaseException) -> int | None:
    for attr in ("status_code", "status", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def classify_error(exc: BaseException) -> ErrorKind:
    """Map a raw provider exception to an ErrorKind.

    Quota markers win over the status code, so a 429 carrying
    RESOURCE_EXHAUSTED is QUOTA while a bare 429 is RATE_LIMIT.
    """
    kind = getattr(exc, "kind", None)
    if isinstance(kind, ErrorKind):
        return kind

    text = f"{type(exc).__name__} {exc}".lower()
    if any(marker in text for marker in _QUOTA_MARKERS):
        return ErrorKind.QUOTA

    status = _status_of(exc)
    if status == 429 or isinstance(exc, litellm.RateLimitError):
        return ErrorKind.RATE_LIMIT
    if status in (401, 403) or isinstance(
        exc, (litellm.AuthenticationError, litellm.PermissionDeniedError)
    ):
        return ErrorKind.AUTH
    if status == 404 or isinstance(exc, litellm.NotFoundError) or "not_found" in text:
        return ErrorKind.NOT_FOUND
    if isinstance(
        exc,
        (
            ConnectionError,
            TimeoutError,
            asyncio.TimeoutError,
            litellm.APIConnectionError,
            litellm.Timeout,
        ),
    ):
        return ErrorKind.TRANSIENT
    if status is not None and (status in _TRANSIENT_STATUS or 500 <= status < 600):
        return ErrorKind.TRANSIENT
    return ErrorKind.FATAL
