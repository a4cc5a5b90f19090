from __future__ import annotations

from collections.abc import Iterable, Sequence
from dataclasses import replace

from pharmacy_rag import schemas
from pharmacy_rag.ai.intent import CATEGORY_KEYWORDS, Intent
from pharmacy_rag.rag.retrieval import RetrievedChunk, lexical_search, to_retrieved, vector_search

VECTOR_WEIGHT = 0.7
LEXICAL_WEIGHT = 0.3
CATEGORY_BASE_SCORE = 0.25


def merge_results(
    vector_results: Sequence[RetrievedChunk],
    lexical_results: Sequence[RetrievedChunk],
    top_k: int,
) -> list[RetrievedChunk]:
    merged: dict[int, RetrievedChunk] = {}
    for result in [*vector_results, *lexical_results]:
        existing = merged.get(result.id)
        if existing is None:
            merged[result.id] = result
            continue
        combined = existing.score * VECTOR_WEIGHT + result.score * LEXICAL_WEIGHT
        merged[result.id] = replace(existing, score=combined)
    ordered = sorted(merged.values(), key=lambda item: item.score, reverse=True)
    return ordered[:top_k]


def hybrid_search(
    query: str,
    query_vector: Sequence[float] | None,
    embeddings: Sequence[schemas.EmbeddingRecord],
    chunks: Sequence[schemas.KnowledgeChunkRecord],
    *,
    top_k: int,
    min_score: float,
) -> list[RetrievedChunk]:
    vector = vector_search(query_vector, embeddings, chunks, top_k=top_k, min_score=min_score)
    lexical = lexical_search(query, chunks, top_k=top_k, min_score=min_score)
    combined = merge_results(vector.chunks, lexical, top_k)
    return [item for item in combined if item.score >= min_score]


def category_search(
    intent: Intent,
    chunks: Iterable[schemas.KnowledgeChunkRecord],
    *,
    top_k: int,
    min_score: float,
) -> list[RetrievedChunk]:
    """Recall tier: any keyword hit for the intent scores a flat base score, in store order."""
    keywords = CATEGORY_KEYWORDS.get(intent)
    if not keywords or CATEGORY_BASE_SCORE < min_score:
        return []
    out: list[RetrievedChunk] = []
    for chunk in chunks:
        if len(out) >= top_k:
            break
        text = chunk.text.lower()
        if any(keyword in text for keyword in keywords):
            out.append(to_retrieved(chunk, CATEGORY_BASE_SCORE))
    return out
