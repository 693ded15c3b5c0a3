"""daylog configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (DAYLOG_*, EMBEDDINGS_BATCH_SIZE, REQUEST_SPACING_MS)
  3. Per-project daylog.yaml
  4. Global ~/.daylog/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load().
"""

from __future__ import annotations

import os
import re
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".daylog"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "daylog.yaml"

# Key names that suggest a credential; forbidden in global config.
# Does NOT match legitimate keys like max_tokens or batch_size.
_API_KEY_RE: re.Pattern[str] = re.compile(
    r"api[_\-]?(?:key|secret)"
    r"|_token$"
    r"|^token$"
    r"|_secret$"
    r"|^secret$"
    r"|passw(?:ord|d)"
    r"|credential",
    re.IGNORECASE,
)

_KNOWN_SECTIONS: frozenset[str] = frozenset(
    ["storage", "embedding", "generation", "retrieval", "chunking", "retry"]
)

EMBEDDING_PROVIDERS: frozenset[str] = frozenset(["remote", "localhash", "disabled"])


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StorageCfg:
    """Where canonical records live (daylog.yaml: storage:).

    Attributes:
        data_dir: Directory holding ``journal.sqlite`` and ``items.json``.
    """

    data_dir: str = "data"

    @property
    def db_path(self) -> Path:
        return Path(self.data_dir) / "journal.sqlite"

    @property
    def items_path(self) -> Path:
        return Path(self.data_dir) / "items.json"


@dataclass
class EmbeddingCfg:
    """Embedding gateway configuration (daylog.yaml: embedding:).

    Attributes:
        provider: 'remote' (LiteLLM), 'localhash' (offline hash vectors) or
            'disabled' (no vectors at all).
        model: LiteLLM embedding model string (provider/model format).
        fallback_models: Extra candidates tried before the model catalog when
            the configured model is not found.
        dimensions: Vector size of the local hash strategy.
        batch_size: Documents per remote embedding call.
        spacing_ms: Pause between consecutive remote calls.
    """

    provider: str = "remote"
    model: str = "gemini/text-embedding-004"
    fallback_models: list[str] = field(default_factory=list)
    dimensions: int = 256
    batch_size: int = 8
    spacing_ms: int = 0


@dataclass
class GenerationCfg:
    """Answer synthesis configuration (daylog.yaml: generation:)."""

    model: str = "gemini/gemini-1.5-flash"
    temperature: float = 0.2


@dataclass
class RetrievalCfg:
    """Query engine configuration (daylog.yaml: retrieval:)."""

    top_k: int = 5


@dataclass
class ChunkingCfg:
    """Reindex chunker configuration, in characters (daylog.yaml: chunking:)."""

    chunk_size: int = 900
    overlap: int = 150


@dataclass
class RetryCfg:
    """Remote call retry policy (daylog.yaml: retry:).

    Attributes:
        max_retries: Retries after the first attempt on transient failures.
        base_delay: Initial backoff delay in seconds.
        max_delay: Backoff cap in seconds.
        timeout: Per-call deadline in seconds covering queue wait and
            execution; ``None`` waits indefinitely.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    timeout: float | None = 60.0


@dataclass
class DaylogConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    storage: StorageCfg = field(default_factory=StorageCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    chunking: ChunkingCfg = field(default_factory=ChunkingCfg)
    retry: RetryCfg = field(default_factory=RetryCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError if *data* contains any API-key-like key names."""

    def _scan(obj: Any, path: str) -> None:
        if isinstance(obj, dict):
            for k, v in obj.items():
                full = f"{path}.{k}" if path else k
                if _API_KEY_RE.search(str(k)):
                    raise ConfigError(
                        f"Global config '{source}' contains a forbidden key '{full}'.\n"
                        f"  API keys must be set via environment variables, not config files.\n"
                        f"  Remove '{full}' from {source.name} and use:\n"
                        f"    export {str(k).upper().replace('-', '_')}=<value>"
                    )
                _scan(v, full)

    _scan(data, "")


def _validate_provider(provider: str) -> None:
    if provider not in EMBEDDING_PROVIDERS:
        allowed = ", ".join(sorted(EMBEDDING_PROVIDERS))
        raise ConfigError(
            f"Unsupported embedding.provider '{provider}'.\n"
            f"  Use one of: {allowed}"
        )


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}' — ignored.",
                UserWarning,
                stacklevel=4,
            )


# ---------------------------------------------------------------------------
# Merge + build
# ---------------------------------------------------------------------------


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return a new dict that is *base* deep-merged with *override*."""
    result = dict(base)
    for k, v in override.items():
        if k in result and isinstance(result[k], dict) and isinstance(v, dict):
            result[k] = _deep_merge(result[k], v)
        else:
            result[k] = v
    return result


def _optional_float(value: Any) -> float | None:
    return None if value is None else float(value)


def _cfg_from_dict(data: dict[str, Any]) -> DaylogConfig:
    """Build a *DaylogConfig* from a merged raw YAML dict."""
    cfg = DaylogConfig()

    if "storage" in data:
        s = data["storage"] or {}
        cfg.storage = StorageCfg(data_dir=str(s.get("data_dir", cfg.storage.data_dir)))

    if "embedding" in data:
        e = data["embedding"] or {}
        cfg.embedding = EmbeddingCfg(
            provider=str(e.get("provider", cfg.embedding.provider)).lower(),
            model=str(e.get("model", cfg.embedding.model)),
            fallback_models=[str(m) for m in e.get("fallback_models") or []],
            dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            batch_size=int(e.get("batch_size", cfg.embedding.batch_size)),
            spacing_ms=int(e.get("spacing_ms", cfg.embedding.spacing_ms)),
        )

    if "generation" in data:
        g = data["generation"] or {}
        cfg.generation = GenerationCfg(
            model=str(g.get("model", cfg.generation.model)),
            temperature=float(g.get("temperature", cfg.generation.temperature)),
        )

    if "retrieval" in data:
        r = data["retrieval"] or {}
        cfg.retrieval = RetrievalCfg(top_k=int(r.get("top_k", cfg.retrieval.top_k)))

    if "chunking" in data:
        c = data["chunking"] or {}
        cfg.chunking = ChunkingCfg(
            chunk_size=int(c.get("chunk_size", cfg.chunking.chunk_size)),
            overlap=int(c.get("overlap", cfg.chunking.overlap)),
        )

    if "retry" in data:
        rt = data["retry"] or {}
        cfg.retry = RetryCfg(
            max_retries=int(rt.get("max_retries", cfg.retry.max_retries)),
            base_delay=float(rt.get("base_delay", cfg.retry.base_delay)),
            max_delay=float(rt.get("max_delay", cfg.retry.max_delay)),
            timeout=_optional_float(rt.get("timeout", cfg.retry.timeout)),
        )

    return cfg


def _apply_env_overrides(cfg: DaylogConfig) -> DaylogConfig:
    """Apply environment variable overrides (layer 2)."""
    if provider := os.environ.get("DAYLOG_EMBEDDING_PROVIDER"):
        cfg.embedding.provider = provider.lower()
    if model := os.environ.get("DAYLOG_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("DAYLOG_GENERATION_MODEL"):
        cfg.generation.model = model
    if data_dir := os.environ.get("DAYLOG_DATA_DIR"):
        cfg.storage.data_dir = data_dir
    if batch := os.environ.get("EMBEDDINGS_BATCH_SIZE"):
        cfg.embedding.batch_size = int(batch)
    if spacing := os.environ.get("REQUEST_SPACING_MS"):
        cfg.embedding.spacing_ms = int(spacing)
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> DaylogConfig:
    """Load and return a merged *DaylogConfig*.

    Applies layers in order: global → per-project → env vars.

    Args:
        project_dir: Directory to search for *daylog.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Returns:
        Fully merged *DaylogConfig* with env var overrides applied.

    Raises:
        ConfigError: If global config contains API-key-like fields, or the
            embedding provider is not one of remote/localhash/disabled.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = yaml.safe_load(global_path.read_text(encoding="utf-8")) or {}
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = yaml.safe_load(project_cfg_path.read_text(encoding="utf-8")) or {}
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)
    cfg = _apply_env_overrides(cfg)

    _validate_provider(cfg.embedding.provider)

    # A relative data_dir is resolved against the project directory.
    data_dir = Path(cfg.storage.data_dir).expanduser()
    if not data_dir.is_absolute():
        data_dir = search_dir / data_dir
    cfg.storage.data_dir = str(data_dir)

    return cfg
