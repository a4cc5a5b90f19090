from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(eq=False)
class EmbeddingProviderError(RuntimeError):
    provider: str
    status_code: int | None
    message: str

    def __str__(self) -> str:
        prefix = f"{self.provider} error ({self.status_code})" if self.status_code is not None else f"{self.provider} error"
        return f"{prefix}: {self.message}"


class EmbeddingsProvider(Protocol):
    name: str
    model: str
    dimensions: int

    async def embed(self, texts: list[str]) -> list[list[float]]: ...
