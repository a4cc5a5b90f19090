from __future__ import annotations

import os

import httpx

from .base import EmbeddingProviderError, EmbeddingsProvider


class OpenRouterProvider(EmbeddingsProvider):
    """OpenAI-compatible `/embeddings` endpoint (OpenRouter, OpenAI, or a proxy)."""

    name = "openrouter"

    def __init__(
        self,
        *,
        model: str | None = None,
        dimensions: int | None = None,
        timeout_s: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_key = os.getenv("OPENROUTER_API_KEY")
        self.base_url = (os.getenv("OPENROUTER_BASE_URL") or "https://openrouter.ai/api/v1").rstrip("/")
        self.model = model or os.getenv("OPENROUTER_EMBED_MODEL", "text-embedding-3-small")
        self.dimensions = int(dimensions or os.getenv("OPENROUTER_EMBED_DIM", "1536"))
        self.http_referer = (os.getenv("OPENROUTER_HTTP_REFERER") or "").strip() or None
        self.x_title = (os.getenv("OPENROUTER_X_TITLE") or "").strip() or None
        self.timeout_s = float(timeout_s or os.getenv("OPENROUTER_TIMEOUT_S", "15"))

        if not self.api_key:
            raise RuntimeError("OPENROUTER_API_KEY is not set")

        self._client = httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout_s,
            headers=self._headers(),
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        if self.http_referer:
            headers["HTTP-Referer"] = self.http_referer
        if self.x_title:
            headers["X-Title"] = self.x_title
        return headers

    def _raise_openrouter_error(self, res: httpx.Response) -> None:
        try:
            payload = res.json()
        except ValueError:
            payload = None
        message = res.text
        if isinstance(payload, dict):
            error = payload.get("error")
            if isinstance(error, dict) and error.get("message"):
                message = error["message"]
            elif payload.get("message"):
                message = payload["message"]
        raise EmbeddingProviderError(self.name, res.status_code, str(message))

    async def aclose(self) -> None:
        await self._client.aclose()

    async def embed(self, texts: list[str]) -> list[list[float]]:
        res = await self._client.post(
            "/embeddings",
            json={"model": self.model, "input": texts},
        )
        if res.status_code >= 400:
            self._raise_openrouter_error(res)
        data = res.json()
        raw_items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(raw_items, list) or not all(
            isinstance(item, dict) and "embedding" in item for item in raw_items
        ):
            raise EmbeddingProviderError(self.name, res.status_code, "unexpected response shape")
        items = sorted(raw_items, key=lambda item: item.get("index", 0))
        if len(items) != len(texts):
            raise EmbeddingProviderError(self.name, res.status_code, "embedding count does not match input count")
        return [item["embedding"] for item in items]
