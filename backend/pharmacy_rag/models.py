from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from datetime import datetime

from pharmacy_rag.db import Base
from pharmacy_rag.ai.types import EmbeddingVector


class KnowledgeChunk(Base):
    """
    A bounded unit of source text. Rows are written by the ingestion pipeline;
    the retrieval core only reads them.
    """

    __tablename__ = "knowledge"

    id = Column(Integer, primary_key=True, index=True)
    source = Column(String, nullable=False, index=True)  # origin document, e.g. catalogo.md
    chunk_text = Column(Text, nullable=False)
    chunk_index = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    embeddings = relationship(
        "KnowledgeEmbedding",
        back_populates="chunk",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class KnowledgeEmbedding(Base):
    __tablename__ = "embeddings"

    id = Column(Integer, primary_key=True, index=True)
    knowledge_id = Column(
        Integer,
        ForeignKey("knowledge.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Default matches `nomic-embed-text` output dimension; only enforced by pgvector.
    vector = Column(EmbeddingVector(768), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    chunk = relationship("KnowledgeChunk", back_populates="embeddings")
