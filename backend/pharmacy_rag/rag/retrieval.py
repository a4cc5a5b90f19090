from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from pharmacy_rag import schemas
from pharmacy_rag.rag.vector import find_top_k_similar, normalize_vector


_logger = logging.getLogger(__name__)

LEXICAL_TERM_WEIGHT = 0.1
LEXICAL_MIN_TERM_LENGTH = 3


@dataclass(frozen=True)
class RetrievedChunk:
    id: int
    source: str
    chunk_index: int
    content: str
    score: float
    rank: int = 0


@dataclass(frozen=True)
class VectorSearchOutcome:
    """`available=False` means no query vector existed; an empty `chunks` alone means no match."""

    available: bool
    chunks: list[RetrievedChunk] = field(default_factory=list)

    @property
    def top_score(self) -> float:
        return self.chunks[0].score if self.chunks else 0.0


def to_retrieved(chunk: schemas.KnowledgeChunkRecord, score: float) -> RetrievedChunk:
    return RetrievedChunk(
        id=chunk.id,
        source=chunk.source,
        chunk_index=chunk.chunk_index,
        content=chunk.text,
        score=score,
    )


def vector_search(
    query_vector: Sequence[float] | None,
    embeddings: Sequence[schemas.EmbeddingRecord],
    chunks: Sequence[schemas.KnowledgeChunkRecord],
    *,
    top_k: int,
    min_score: float,
) -> VectorSearchOutcome:
    query = normalize_vector(query_vector)
    if not query:
        return VectorSearchOutcome(available=False)
    if not embeddings:
        return VectorSearchOutcome(available=True)

    usable = [emb for emb in embeddings if len(emb.vector) == len(query)]
    skipped = len(embeddings) - len(usable)
    if skipped:
        _logger.warning("Skipped %d embeddings whose dimension differs from the query (%d)", skipped, len(query))
    if not usable:
        return VectorSearchOutcome(available=True)

    ranked = find_top_k_similar(query, [normalize_vector(emb.vector) for emb in usable], top_k)
    chunk_map = {chunk.id: chunk for chunk in chunks}
    seen: set[int] = set()
    out: list[RetrievedChunk] = []
    for sim in ranked:
        if sim.score < min_score:
            break
        chunk_id = usable[sim.index].knowledge_chunk_id
        chunk = chunk_map.get(chunk_id)
        # A chunk with several embeddings keeps its best (first) score.
        if chunk is None or chunk_id in seen:
            continue
        seen.add(chunk_id)
        out.append(to_retrieved(chunk, sim.score))
    return VectorSearchOutcome(available=True, chunks=out)


def query_terms(query: str) -> list[str]:
    return [term for term in (query or "").lower().split() if len(term) >= LEXICAL_MIN_TERM_LENGTH]


def lexical_search(
    query: str,
    chunks: Iterable[schemas.KnowledgeChunkRecord],
    *,
    top_k: int,
    min_score: float,
) -> list[RetrievedChunk]:
    """
    Term-count heuristic: 0.1 per literal occurrence of each query term, capped at 1.0.

    Not BM25: no IDF and no length normalisation.
    """
    terms = query_terms(query)
    if not terms:
        return []
    scored: list[RetrievedChunk] = []
    for chunk in chunks:
        text = chunk.text.lower()
        if not any(term in text for term in terms):
            continue
        score = 0.0
        for term in terms:
            score += text.count(term) * LEXICAL_TERM_WEIGHT
        score = min(score, 1.0)
        if score >= min_score:
            scored.append(to_retrieved(chunk, score))
    scored.sort(key=lambda item: item.score, reverse=True)
    return scored[:top_k]
