import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.engine import Engine

from pharmacy_rag.db import Base, make_engine, make_session_factory
from pharmacy_rag import models  # noqa: F401  (registers tables on Base.metadata)
from pharmacy_rag.ai.embeddings import EmbeddingClient
from pharmacy_rag.ai.provider_factory import build_embeddings_provider
from pharmacy_rag.ai.rag_service import RAGService
from pharmacy_rag.config.rag import RAGConfig, get_rag_config
from pharmacy_rag.rag.store import SqlKnowledgeStore


_logger = logging.getLogger(__name__)


def init_database(engine: Engine) -> None:
    Base.metadata.create_all(bind=engine)


def create_rag_service(cfg: RAGConfig | None = None, *, engine: Engine | None = None) -> RAGService:
    cfg = cfg or get_rag_config()
    engine = engine or make_engine(cfg.database_url)
    store = SqlKnowledgeStore(make_session_factory(engine))
    provider = build_embeddings_provider(cfg)
    embeddings = EmbeddingClient(provider, enabled=cfg.embeddings_enabled)
    _logger.info(
        "RAG service ready: provider=%s model=%s embeddings_enabled=%s default_k=%d",
        provider.name,
        provider.model,
        cfg.embeddings_enabled,
        cfg.default_k,
    )
    return RAGService(store, embeddings, default_k=cfg.default_k)


@asynccontextmanager
async def rag_service_lifespan(
    cfg: RAGConfig | None = None,
    *,
    engine: Engine | None = None,
) -> AsyncIterator[RAGService]:
    cfg = cfg or get_rag_config()
    owns_engine = engine is None
    engine = engine or make_engine(cfg.database_url)
    init_database(engine)
    service = create_rag_service(cfg, engine=engine)
    try:
        yield service
    finally:
        await service.embeddings.aclose()
        if owns_engine:
            engine.dispose()
