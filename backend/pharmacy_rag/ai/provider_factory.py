from __future__ import annotations

from typing import Any

from pharmacy_rag.ai.providers.base import EmbeddingsProvider
from pharmacy_rag.ai.providers.ollama import OllamaProvider
from pharmacy_rag.ai.providers.openrouter import OpenRouterProvider
from pharmacy_rag.ai.providers.stub import StubProvider
from pharmacy_rag.config.rag import RAGConfig


def build_embeddings_provider(cfg: RAGConfig) -> EmbeddingsProvider:
    provider_name = (cfg.embeddings_provider or "ollama").strip().lower()
    # Unset model/dimension fields are left to each provider's own defaults.
    overrides: dict[str, Any] = {}
    if cfg.embed_model:
        overrides["model"] = cfg.embed_model
    if cfg.embed_dim:
        overrides["dimensions"] = cfg.embed_dim
    if provider_name == "stub":
        return StubProvider()
    if provider_name == "ollama":
        return OllamaProvider(host=cfg.ollama_host, timeout_s=cfg.embed_timeout_s, **overrides)
    if provider_name == "openrouter":
        return OpenRouterProvider(timeout_s=cfg.embed_timeout_s, **overrides)
    raise RuntimeError(f"Unsupported embeddings provider: {provider_name}")
