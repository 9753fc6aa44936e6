"""kindex configuration loader.

Priority (high → low):
  1. CLI flags           (handled at call site, not in this module)
  2. Environment variables  (KINDEX_EMBEDDING_MODEL, KINDEX_GENERATION_MODEL,
                             KINDEX_COLLECTION, KINDEX_DB)
  3. Per-project kindex.yaml
  4. Global ~/.kindex/config.yaml  (model defaults only, no API keys)
  5. Hardcoded defaults

Global config must never contain API keys; use environment variables instead.
All YAML reads use yaml.safe_load(), never yaml.load().
"""

from __future__ import annotations

import os
import re
import warnings
from collections.abc import Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from kindex.db.collections import validate_collection_name
from kindex.ingest.collector import DEFAULT_USER_AGENT

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_GLOBAL_CONFIG_DIR: Path = Path.home() / ".kindex"
_GLOBAL_CONFIG_PATH: Path = _GLOBAL_CONFIG_DIR / "config.yaml"
_PROJECT_CONFIG_NAME: str = "kindex.yaml"

# Fields that suggest an API key, forbidden in global config.
# Does NOT match legitimate keys like max_messages, rrf_k or top_k.
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
    ["store", "embedding", "generation", "chunker", "retrieval", "collector", "chat"]
)


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class ConfigError(ValueError):
    """Raised when a config file contains an invalid or forbidden value."""


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------


@dataclass
class StoreCfg:
    """Vector store location (kindex.yaml: store:)."""

    path: str = ".kindex.db"
    collection: str = "knowledge_chunks"


@dataclass
class EmbeddingCfg:
    model: str = "gemini/gemini-embedding-001"
    dimensions: int = 768


@dataclass
class GenerationCfg:
    model: str = "gemini/gemini-2.5-flash"


@dataclass
class ChunkerCfg:
    """Chunk size and overlap in characters (kindex.yaml: chunker:)."""

    chunk_size: int = 1000
    chunk_overlap: int = 200


@dataclass
class RetrievalCfg:
    top_k: int = 5
    rrf_k: int = 60
    prefetch_multiplier: int = 4


@dataclass
class CollectorCfg:
    """Web fetch settings (kindex.yaml: collector:).

    Attributes:
        timeout: Seconds allowed per fetch.
        user_agent: User-Agent header sent with every request.
        block_private_addresses: Reject URLs resolving to internal networks.
            Disable only for local development.
    """

    timeout: float = 30.0
    user_agent: str = DEFAULT_USER_AGENT
    block_private_addresses: bool = True


@dataclass
class ChatCfg:
    daily_limit: int = 20
    max_messages: int = 10
    keep_recent: int = 4


@dataclass
class KindexConfig:
    """Root configuration object, built by load_config() from merged YAML layers."""

    store: StoreCfg = field(default_factory=StoreCfg)
    embedding: EmbeddingCfg = field(default_factory=EmbeddingCfg)
    generation: GenerationCfg = field(default_factory=GenerationCfg)
    chunker: ChunkerCfg = field(default_factory=ChunkerCfg)
    retrieval: RetrievalCfg = field(default_factory=RetrievalCfg)
    collector: CollectorCfg = field(default_factory=CollectorCfg)
    chat: ChatCfg = field(default_factory=ChatCfg)


# ---------------------------------------------------------------------------
# Validation helpers
# ---------------------------------------------------------------------------


def _key_paths(obj: Any, prefix: str = "") -> Iterator[tuple[str, str]]:
    """Yield (dotted path, key) for every mapping key in *obj*, depth first."""
    if not isinstance(obj, dict):
        return
    for key, value in obj.items():
        dotted = f"{prefix}.{key}" if prefix else str(key)
        yield dotted, str(key)
        yield from _key_paths(value, dotted)


def _check_no_api_keys(data: dict[str, Any], source: Path) -> None:
    """Raise ConfigError on the first API-key-like key name in *data*."""
    for dotted, key in _key_paths(data):
        if _API_KEY_RE.search(key):
            raise ConfigError(
                f"Global config '{source}' contains a forbidden key '{dotted}'.\n"
                f"  Provider keys belong in the environment, never in {source.name}.\n"
                f"  Delete '{dotted}' and run:  export {key.upper().replace('-', '_')}=<value>"
            )


def _warn_unknown_keys(data: dict[str, Any], source: Path) -> None:
    """Emit a UserWarning for unrecognised top-level keys."""
    for key in data:
        if key not in _KNOWN_SECTIONS:
            warnings.warn(
                f"Unknown config key '{key}' in '{source}', ignored.",
                UserWarning,
                stacklevel=4,
            )


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ConfigError(f"Config file '{path}' is not valid YAML: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"Config file '{path}' must contain a mapping at the top level.")
    return data


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


def _cfg_from_dict(data: dict[str, Any]) -> KindexConfig:
    """Build a *KindexConfig* from a merged raw YAML dict."""
    cfg = KindexConfig()

    try:
        if "store" in data:
            s = data["store"]
            cfg.store = StoreCfg(
                path=str(s.get("path", cfg.store.path)),
                collection=str(s.get("collection", cfg.store.collection)),
            )

        if "embedding" in data:
            e = data["embedding"]
            cfg.embedding = EmbeddingCfg(
                model=str(e.get("model", cfg.embedding.model)),
                dimensions=int(e.get("dimensions", cfg.embedding.dimensions)),
            )

        if "generation" in data:
            g = data["generation"]
            cfg.generation = GenerationCfg(model=str(g.get("model", cfg.generation.model)))

        if "chunker" in data:
            c = data["chunker"]
            cfg.chunker = ChunkerCfg(
                chunk_size=int(c.get("chunk_size", cfg.chunker.chunk_size)),
                chunk_overlap=int(c.get("chunk_overlap", cfg.chunker.chunk_overlap)),
            )

        if "retrieval" in data:
            r = data["retrieval"]
            cfg.retrieval = RetrievalCfg(
                top_k=int(r.get("top_k", cfg.retrieval.top_k)),
                rrf_k=int(r.get("rrf_k", cfg.retrieval.rrf_k)),
                prefetch_multiplier=int(
                    r.get("prefetch_multiplier", cfg.retrieval.prefetch_multiplier)
                ),
            )

        if "collector" in data:
            co = data["collector"]
            cfg.collector = CollectorCfg(
                timeout=float(co.get("timeout", cfg.collector.timeout)),
                user_agent=str(co.get("user_agent", cfg.collector.user_agent)),
                block_private_addresses=bool(
                    co.get("block_private_addresses", cfg.collector.block_private_addresses)
                ),
            )

        if "chat" in data:
            ch = data["chat"]
            cfg.chat = ChatCfg(
                daily_limit=int(ch.get("daily_limit", cfg.chat.daily_limit)),
                max_messages=int(ch.get("max_messages", cfg.chat.max_messages)),
                keep_recent=int(ch.get("keep_recent", cfg.chat.keep_recent)),
            )
    except (AttributeError, TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid config value: {exc}") from exc

    return cfg


def _apply_env_overrides(cfg: KindexConfig) -> KindexConfig:
    """Apply KINDEX_* environment variable overrides."""
    if model := os.environ.get("KINDEX_EMBEDDING_MODEL"):
        cfg.embedding.model = model
    if model := os.environ.get("KINDEX_GENERATION_MODEL"):
        cfg.generation.model = model
    if collection := os.environ.get("KINDEX_COLLECTION"):
        cfg.store.collection = collection
    if db_path := os.environ.get("KINDEX_DB"):
        cfg.store.path = db_path
    return cfg


def _validate(cfg: KindexConfig) -> KindexConfig:
    """Reject merged values that would only fail later, deep in a command."""
    problems: list[str] = []
    try:
        validate_collection_name(cfg.store.collection)
    except ValueError as exc:
        problems.append(str(exc))
    if cfg.embedding.dimensions < 1:
        problems.append("embedding.dimensions must be >= 1")
    if cfg.chunker.chunk_size < 1:
        problems.append("chunker.chunk_size must be >= 1")
    elif not 0 <= cfg.chunker.chunk_overlap < cfg.chunker.chunk_size:
        problems.append("chunker.chunk_overlap must be >= 0 and below chunker.chunk_size")
    if cfg.retrieval.top_k < 1:
        problems.append("retrieval.top_k must be >= 1")
    if cfg.retrieval.prefetch_multiplier < 1:
        problems.append("retrieval.prefetch_multiplier must be >= 1")
    if not 0 <= cfg.chat.keep_recent <= cfg.chat.max_messages:
        problems.append("chat.keep_recent must be between 0 and chat.max_messages")
    if problems:
        raise ConfigError("Invalid config value: " + "; ".join(problems))
    return cfg


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(
    project_dir: Path | None = None,
    *,
    global_config_path: Path | None = None,
) -> KindexConfig:
    """Load and return a merged *KindexConfig*.

    Applies layers in order: global → per-project → env vars.
    CLI flag overrides must be applied by the caller after this function.

    Args:
        project_dir: Directory to search for *kindex.yaml*. Defaults to CWD.
        global_config_path: Override the global config path (for testing).

    Raises:
        ConfigError: If a config file is malformed, carries an invalid value,
            or the global config contains API-key-like fields.
    """
    global_path = global_config_path if global_config_path is not None else _GLOBAL_CONFIG_PATH
    search_dir = project_dir if project_dir is not None else Path.cwd()

    merged: dict[str, Any] = {}

    if global_path.exists():
        raw_global = _read_yaml(global_path)
        _check_no_api_keys(raw_global, global_path)
        _warn_unknown_keys(raw_global, global_path)
        merged = _deep_merge(merged, raw_global)

    project_cfg_path = search_dir / _PROJECT_CONFIG_NAME
    if project_cfg_path.exists():
        raw_project = _read_yaml(project_cfg_path)
        _warn_unknown_keys(raw_project, project_cfg_path)
        merged = _deep_merge(merged, raw_project)

    cfg = _cfg_from_dict(merged)
    return _validate(_apply_env_overrides(cfg))
