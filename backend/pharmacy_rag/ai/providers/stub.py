from __future__ import annotations

import hashlib

from .base import EmbeddingsProvider


class StubProvider(EmbeddingsProvider):
    """
    Deterministic provider for tests/dev when no embedding model is reachable.
    Identical texts always map to identical vectors.
    """

    name = "stub"
    model = "stub-sha256"

    def __init__(self, dimensions: int = 16) -> None:
        self.dimensions = max(1, min(int(dimensions), 32))

    async def embed(self, texts: list[str]) -> list[list[float]]:
        out: list[list[float]] = []
        for text in texts:
            digest = hashlib.sha256(text.encode("utf-8")).digest()
            vec = [b / 255.0 for b in digest[: self.dimensions]]
            out.append(vec)
        return out
