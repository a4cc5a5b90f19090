import math
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# --------------------
# Knowledge store records
# --------------------


class KnowledgeChunkRecord(BaseModel):
    id: int
    source: str
    text: str = Field(validation_alias="chunk_text")
    chunk_index: int = 0

    model_config = ConfigDict(from_attributes=True, frozen=True, populate_by_name=True)


class EmbeddingRecord(BaseModel):
    id: int
    knowledge_chunk_id: int = Field(validation_alias="knowledge_id")
    vector: List[float]
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True, frozen=True, populate_by_name=True)

    @field_validator("vector")
    @classmethod
    def _finite_non_empty(cls, value: List[float]) -> List[float]:
        if not value:
            raise ValueError("embedding vector is empty")
        if not all(math.isfinite(x) for x in value):
            raise ValueError("embedding vector has non-finite values")
        return value


# --------------------
# Diagnostics
# --------------------


class KnowledgeInfo(BaseModel):
    total_chunks: int = 0
    total_embeddings: int = 0
    sources: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)


class EmbeddingsHealth(BaseModel):
    status: str  # healthy | degraded | unhealthy
    provider: str
    model: str
    dimension: Optional[int] = None
    error: Optional[str] = None
