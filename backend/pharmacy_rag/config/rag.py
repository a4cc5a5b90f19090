from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable

from pharmacy_rag.db import DEFAULT_DATABASE_URL

EMBEDDINGS_PROVIDERS = {"ollama", "openrouter", "stub"}


@dataclass(frozen=True)
class RAGConfig:
    embeddings_enabled: bool = True
    embeddings_provider: str = "ollama"  # ollama | openrouter | stub
    embed_model: str | None = None  # None: the provider's own default
    embed_dim: int | None = None
    embed_timeout_s: float = 10.0
    ollama_host: str = "http://127.0.0.1:11434"
    default_k: int = 8
    database_url: str = DEFAULT_DATABASE_URL


def _repo_backend_root() -> Path:
    # backend/pharmacy_rag/config/rag.py -> backend/
    return Path(__file__).resolve().parents[2]


def _parse_scalar(val: str) -> Any:
    if val.lower() in {"true", "false"}:
        return val.lower() == "true"
    try:
        return int(val)
    except ValueError:
        pass
    try:
        return float(val)
    except ValueError:
        return val.strip("\"'")


def _read_rag_section(path: Path) -> dict[str, Any]:
    """Scalar `key: value` pairs under the top-level `rag:` key; everything else is ignored."""
    if not path.exists():
        return {}
    section: dict[str, Any] = {}
    inside = False
    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if not line.startswith((" ", "\t")):
            inside = stripped == "rag:"
            continue
        if not inside:
            continue
        key, sep, val = stripped.partition(":")
        if not sep:
            continue
        val = val.split(" #", 1)[0].strip()
        section[key.strip()] = _parse_scalar(val)
    return section


_TRUTHY = {"1", "true", "yes", "on"}
_FALSY = {"0", "false", "no", "off"}


def _env_str(key: str) -> str | None:
    val = (os.getenv(key) or "").strip()
    return val or None


def _env_bool(key: str) -> bool | None:
    val = (_env_str(key) or "").lower()
    if val in _TRUTHY:
        return True
    if val in _FALSY:
        return False
    return None


def _env_number(key: str, cast: Callable[[str], Any]) -> Any:
    val = _env_str(key)
    if val is None:
        return None
    try:
        return cast(val)
    except ValueError:
        return None


def load_rag_config(path: Path | None = None) -> RAGConfig:
    path = path or (_repo_backend_root() / "config" / "rag.yaml")
    rag = _read_rag_section(path)
    defaults = RAGConfig()

    cfg = RAGConfig(
        embeddings_enabled=bool(rag.get("embeddings_enabled", defaults.embeddings_enabled)),
        embeddings_provider=str(rag.get("embeddings_provider", defaults.embeddings_provider) or defaults.embeddings_provider),
        embed_model=(str(rag.get("embed_model") or "").strip() or None),
        embed_dim=(int(rag["embed_dim"]) if rag.get("embed_dim") else None),
        embed_timeout_s=float(rag.get("embed_timeout_s", defaults.embed_timeout_s) or defaults.embed_timeout_s),
        ollama_host=str(rag.get("ollama_host", defaults.ollama_host) or defaults.ollama_host),
        default_k=int(rag.get("default_k", defaults.default_k) or defaults.default_k),
    )

    env_embeddings_enabled = _env_bool("RAG_EMBEDDINGS_ENABLED")
    env_provider = (_env_str("RAG_EMBEDDINGS_PROVIDER") or "").lower()
    env_embed_model = _env_str("RAG_EMBED_MODEL")
    env_embed_dim = _env_number("RAG_EMBED_DIM", int)
    env_timeout = _env_number("RAG_EMBED_TIMEOUT_S", float)
    env_ollama_host = _env_str("OLLAMA_HOST")
    env_default_k = _env_number("RAG_DEFAULT_K", int)
    env_database_url = _env_str("DATABASE_URL")

    provider = cfg.embeddings_provider.strip().lower()
    if env_provider:
        provider = env_provider
    if provider not in EMBEDDINGS_PROVIDERS:
        provider = defaults.embeddings_provider

    default_k = env_default_k if env_default_k is not None else cfg.default_k
    if default_k <= 0:
        default_k = defaults.default_k

    return RAGConfig(
        embeddings_enabled=(env_embeddings_enabled if env_embeddings_enabled is not None else cfg.embeddings_enabled),
        embeddings_provider=provider,
        embed_model=(env_embed_model or cfg.embed_model),
        embed_dim=(env_embed_dim if env_embed_dim is not None else cfg.embed_dim),
        embed_timeout_s=(env_timeout if env_timeout is not None else cfg.embed_timeout_s),
        ollama_host=(env_ollama_host or cfg.ollama_host).rstrip("/"),
        default_k=default_k,
        database_url=(env_database_url or defaults.database_url),
    )


@lru_cache(maxsize=1)
def get_rag_config() -> RAGConfig:
    return load_rag_config()
