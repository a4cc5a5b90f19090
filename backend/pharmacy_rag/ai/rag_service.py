from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Literal

from pharmacy_rag import schemas
from pharmacy_rag.ai import response_templates as templates
from pharmacy_rag.ai.embeddings import EmbeddingClient
from pharmacy_rag.ai.intent import Intent, detect_intent, expand_query, is_category_intent
from pharmacy_rag.rag.hybrid import category_search, hybrid_search
from pharmacy_rag.rag.retrieval import RetrievedChunk, vector_search
from pharmacy_rag.rag.store import KnowledgeStore


_logger = logging.getLogger(__name__)

SearchType = Literal["vector", "hybrid", "category", "fallback"]

TOPK_VECTOR = 12
TOPK_BM25 = 12
MIN_SCORE_VECTOR = 0.22
MIN_SCORE_HYBRID = 0.20
MIN_SCORE_CATEGORY = 0.20
GATING_THRESHOLD = 0.18
FALLBACK_MIN_SCORE = 0.15

CONTEXT_MIN_SCORE = 0.20
ANSWER_MIN_SCORE = 0.25
DEFAULT_K = 8

_CATEGORY_HINTS = (
    ("suplementos", ("vitamina", "suplemento")),
    ("medicamentos", ("medicamento", "fármaco")),
    ("servicios", ("consulta", "servicio")),
    ("horarios", ("horario", "24/7")),
)


@dataclass(frozen=True)
class RAGResult:
    chunks: list[RetrievedChunk]
    total_score: float
    sources: list[str]
    has_relevant_context: bool
    search_type: SearchType
    top_score: float
    intent: Intent = "general"
    expanded_query: str = ""


@dataclass(frozen=True)
class StructuredResponse:
    intent: Intent
    response: str
    needs_user_input: bool
    suggested_actions: list[str] = field(default_factory=list)


def format_result(
    chunks: list[RetrievedChunk],
    search_type: SearchType,
    top_score: float,
    *,
    intent: Intent = "general",
    expanded_query: str = "",
) -> RAGResult:
    ranked = [replace(chunk, rank=i) for i, chunk in enumerate(chunks, start=1)]
    sources = list(dict.fromkeys(chunk.source for chunk in ranked))
    return RAGResult(
        chunks=ranked,
        total_score=sum(chunk.score for chunk in ranked),
        sources=sources,
        has_relevant_context=len(ranked) > 0,
        search_type=search_type,
        top_score=top_score,
        intent=intent,
        expanded_query=expanded_query,
    )


class RAGService:
    """
    Knowledge retrieval for the chatbot: a fixed escalation ladder
    (vector -> hybrid -> category -> fallback) over a read-only store.

    Build one instance at process start and pass it to callers. The instance
    holds no per-query state, so concurrent `search` calls are independent.
    """

    def __init__(self, store: KnowledgeStore, embeddings: EmbeddingClient, *, default_k: int = DEFAULT_K) -> None:
        self.store = store
        self.embeddings = embeddings
        self.default_k = default_k

    async def search(self, query: str, k: int | None = None) -> RAGResult:
        k = max(self.default_k if k is None else k, 0)
        intent = detect_intent(query)
        expanded = expand_query(query, intent)
        _logger.info("RAG search %r k=%d intent=%s", query, k, intent)
        _logger.debug("Expanded query: %r", expanded)

        query_vector = await self.embeddings.safe_embed(expanded)
        # Storage errors propagate; a failed read is never turned into "no data".
        chunks = self.store.list_chunks()
        embeddings = self.store.list_embeddings() if query_vector is not None else []

        vector = vector_search(query_vector, embeddings, chunks, top_k=TOPK_VECTOR, min_score=MIN_SCORE_VECTOR)
        top_score = vector.top_score
        _logger.info("Vector stage: available=%s hits=%d top=%.3f", vector.available, len(vector.chunks), top_score)

        if top_score >= GATING_THRESHOLD:
            return format_result(vector.chunks[:k], "vector", top_score, intent=intent, expanded_query=expanded)

        hybrid = hybrid_search(
            expanded, query_vector, embeddings, chunks, top_k=TOPK_BM25, min_score=MIN_SCORE_HYBRID
        )
        if hybrid:
            _logger.info("Hybrid stage accepted %d results", len(hybrid))
            return format_result(hybrid, "hybrid", top_score, intent=intent, expanded_query=expanded)

        if is_category_intent(intent):
            category = category_search(intent, chunks, top_k=k, min_score=MIN_SCORE_CATEGORY)
            if category:
                _logger.info("Category stage accepted %d results for %s", len(category), intent)
                return format_result(category, "category", top_score, intent=intent, expanded_query=expanded)

        fallback = vector_search(query_vector, embeddings, chunks, top_k=k, min_score=FALLBACK_MIN_SCORE)
        _logger.info("Fallback stage returned %d results", len(fallback.chunks))
        return format_result(fallback.chunks, "fallback", top_score, intent=intent, expanded_query=expanded)

    async def generate_context(self, query: str, k: int | None = None) -> str:
        result = await self.search(query, k)
        if not result.has_relevant_context:
            return ""
        lines = [
            templates.context_line(chunk.source, chunk.score, chunk.content)
            for chunk in result.chunks
            if chunk.score >= CONTEXT_MIN_SCORE
        ]
        if not lines:
            return ""
        _logger.info("Context built from %d chunks", len(lines))
        return templates.context_block(lines)

    async def generate_structured_response(self, query: str, k: int | None = None) -> StructuredResponse:
        result = await self.search(query, k)
        intent = result.intent
        if not result.has_relevant_context:
            return _no_context(intent)

        strong = [chunk for chunk in result.chunks if chunk.score >= ANSWER_MIN_SCORE]

        if intent == "symptom_throat":
            items = [chunk.content for chunk in strong[:3]]
            return StructuredResponse(
                intent=intent,
                response=templates.throat_symptom_response(items),
                needs_user_input=True,
                suggested_actions=list(templates.SUGGESTED_ACTIONS["symptom_throat"]),
            )

        if intent in {"medication_query", "medication"} and strong:
            text = strong[0].content
            return StructuredResponse(
                intent=intent,
                response=templates.medication_response(
                    templates.extract_medication_name(text),
                    templates.extract_price(text),
                    templates.extract_requires_prescription(text),
                ),
                needs_user_input=True,
                suggested_actions=list(templates.SUGGESTED_ACTIONS["medication"]),
            )

        if intent in {"service_info", "appointment"} and strong:
            text = strong[0].content
            return StructuredResponse(
                intent=intent,
                response=templates.service_response(
                    templates.extract_service_name(text),
                    text,
                    templates.extract_price(text),
                ),
                needs_user_input=True,
                suggested_actions=list(templates.SUGGESTED_ACTIONS["service"]),
            )

        if not strong:
            return _no_context(intent)
        return StructuredResponse(
            intent=intent,
            response=templates.generic_response([chunk.content for chunk in strong[:3]]),
            needs_user_input=True,
            suggested_actions=list(templates.SUGGESTED_ACTIONS["generic"]),
        )

    def knowledge_info(self) -> schemas.KnowledgeInfo:
        # Raw row counts; malformed embeddings still count here.
        sample = " ".join(chunk.text for chunk in self.store.list_chunks()[:100]).lower()
        categories = [name for name, hints in _CATEGORY_HINTS if any(hint in sample for hint in hints)]
        return schemas.KnowledgeInfo(
            total_chunks=self.store.count_chunks(),
            total_embeddings=self.store.count_embeddings(),
            sources=self.store.list_sources(),
            categories=categories,
        )

    async def debug_search(self, query: str, k: int = DEFAULT_K) -> dict[str, Any]:
        """Runs the vector and hybrid strategies side by side, without gating."""
        intent = detect_intent(query)
        expanded = expand_query(query, intent)
        query_vector = await self.embeddings.safe_embed(expanded)
        chunks = self.store.list_chunks()
        embeddings = self.store.list_embeddings()

        vector = vector_search(query_vector, embeddings, chunks, top_k=k, min_score=MIN_SCORE_HYBRID)
        hybrid = hybrid_search(expanded, query_vector, embeddings, chunks, top_k=k, min_score=MIN_SCORE_VECTOR)
        vector_result = format_result(vector.chunks, "vector", vector.top_score, intent=intent, expanded_query=expanded)
        hybrid_result = format_result(hybrid, "hybrid", vector.top_score, intent=intent, expanded_query=expanded)

        vector_working = vector_result.has_relevant_context
        hybrid_working = hybrid_result.has_relevant_context
        if not vector_working and not hybrid_working:
            actions = [
                "No strategy found relevant context",
                "Check that embeddings were generated for the knowledge base",
                "Lower the similarity threshold (min_score)",
                "Raise the number of chunks (top_k)",
                "Check that the query is not too generic",
            ]
        elif vector_working and not hybrid_working:
            actions = [
                "Vector search works",
                "Hybrid search does not improve results",
                "Check the lexical scoring configuration",
            ]
        else:
            actions = [
                "Retrieval is working",
                "Vector and hybrid search both return context",
                "Consider tuning thresholds",
            ]

        return {
            "query": {"original": query, "expanded": expanded, "intent": intent},
            "embeddings_available": vector.available,
            "database": self.knowledge_info().model_dump(),
            "vector_search": _debug_section(vector_result),
            "hybrid_search": _debug_section(hybrid_result),
            "recommendations": {
                "vector_working": vector_working,
                "hybrid_working": hybrid_working,
                "suggested_actions": actions,
            },
        }


def _no_context(intent: Intent) -> StructuredResponse:
    return StructuredResponse(
        intent=intent,
        response=templates.no_context_response(),
        needs_user_input=True,
        suggested_actions=list(templates.SUGGESTED_ACTIONS["no_context"]),
    )


def _debug_section(result: RAGResult) -> dict[str, Any]:
    return {
        "results": [
            {
                "rank": chunk.rank,
                "score": f"{chunk.score:.3f}",
                "source": chunk.source,
                "snippet": chunk.content[:150],
            }
            for chunk in result.chunks
        ],
        "total_score": result.total_score,
        "sources": result.sources,
    }
