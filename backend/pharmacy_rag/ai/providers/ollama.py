from __future__ import annotations

import httpx

from .base import EmbeddingProviderError, EmbeddingsProvider


class OllamaProvider(EmbeddingsProvider):
    """Local Ollama server; `/api/embeddings` takes one prompt per request."""

    name = "ollama"

    def __init__(
        self,
        *,
        host: str = "http://127.0.0.1:11434",
        model: str = "nomic-embed-text",
        dimensions: int = 768,
        timeout_s: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.host = host.rstrip("/")
        self.model = model
        self.dimensions = dimensions
        self._client = httpx.AsyncClient(base_url=self.host, timeout=timeout_s, transport=transport)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def embed(self, texts: list[str]) -> list[list[float]]:
        out: list[list[float]] = []
        for text in texts:
            res = await self._client.post("/api/embeddings", json={"model": self.model, "prompt": text})
            if res.status_code >= 400:
                raise EmbeddingProviderError(self.name, res.status_code, res.text)
            payload = res.json()
            if not isinstance(payload, dict):
                raise EmbeddingProviderError(self.name, res.status_code, "unexpected response shape")
            embedding = payload.get("embedding")
            if not embedding or not isinstance(embedding, list):
                raise EmbeddingProviderError(self.name, res.status_code, "response has no embedding")
            out.append(embedding)
        return out
