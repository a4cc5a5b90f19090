from __future__ import annotations

import logging
import math

import httpx

from pharmacy_rag import schemas
from pharmacy_rag.ai.providers.base import EmbeddingProviderError, EmbeddingsProvider


_logger = logging.getLogger(__name__)

_KNOWN_DIMENSIONS = {
    ("ollama", "nomic-embed-text"): 768,
    ("openrouter", "text-embedding-3-small"): 1536,
    ("openrouter", "text-embedding-ada-002"): 1536,
}
_DEFAULT_DIMENSION = 768

# Anything a provider can surface for a failed or timed-out call.
_PROVIDER_FAILURES = (
    EmbeddingProviderError,
    httpx.HTTPError,
    OSError,
    RuntimeError,
    KeyError,
    IndexError,
    ValueError,
    TypeError,
)


def _preview(text: str, limit: int = 30) -> str:
    return (text or "")[:limit]


class EmbeddingClient:
    """
    Wraps an embeddings provider so retrieval never sees a provider exception.

    `safe_embed` returns None whenever a query vector cannot be produced
    (disabled, timeout, HTTP error, empty or non-numeric payload). The caller
    treats None as "vector search unavailable" and escalates to lexical search.
    There are no retries here; timeouts are owned by the provider's HTTP client.
    """

    def __init__(self, provider: EmbeddingsProvider, *, enabled: bool = True) -> None:
        self.provider = provider
        self.enabled = enabled

    async def _embed_one(self, text: str) -> list[float]:
        vectors = await self.provider.embed([text])
        if not vectors:
            raise EmbeddingProviderError(self.provider.name, None, "provider returned no vectors")
        return vectors[0]

    async def safe_embed(self, text: str) -> list[float] | None:
        if not self.enabled:
            _logger.debug("Embeddings disabled; skipping vector lookup for %r", _preview(text))
            return None
        try:
            vector = await self._embed_one(text)
        except _PROVIDER_FAILURES as exc:
            _logger.warning("Embeddings unavailable (%s) for %r: %s", self.provider.name, _preview(text), exc)
            return None
        if not isinstance(vector, list) or not vector:
            _logger.warning("Empty or invalid embedding from %s for %r", self.provider.name, _preview(text))
            return None
        try:
            values = [float(x) for x in vector]
        except (TypeError, ValueError):
            _logger.warning("Non-numeric embedding from %s for %r", self.provider.name, _preview(text))
            return None
        if not all(math.isfinite(x) for x in values):
            _logger.warning("Non-finite embedding from %s for %r", self.provider.name, _preview(text))
            return None
        return values

    async def health_check(self) -> schemas.EmbeddingsHealth:
        provider = self.provider.name
        model = self.provider.model
        if not self.enabled:
            return schemas.EmbeddingsHealth(status="degraded", provider=provider, model=model, error="Embeddings disabled")
        try:
            vector = await self._embed_one("test")
        except _PROVIDER_FAILURES as exc:
            return schemas.EmbeddingsHealth(status="unhealthy", provider=provider, model=model, error=str(exc))
        if vector:
            return schemas.EmbeddingsHealth(status="healthy", provider=provider, model=model, dimension=len(vector))
        return schemas.EmbeddingsHealth(
            status="degraded",
            provider=provider,
            model=model,
            error="Provider returned an empty embedding",
        )

    def expected_dimension(self) -> int:
        return _KNOWN_DIMENSIONS.get((self.provider.name, self.provider.model), _DEFAULT_DIMENSION)

    async def aclose(self) -> None:
        close = getattr(self.provider, "aclose", None)
        if callable(close):
            await close()
