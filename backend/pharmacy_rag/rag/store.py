from __future__ import annotations

import logging
from typing import Protocol

from pydantic import ValidationError
from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from pharmacy_rag import models, schemas


_logger = logging.getLogger(__name__)


class KnowledgeStoreError(RuntimeError):
    """The knowledge store could not be read. Fatal for the current query."""


class KnowledgeStore(Protocol):
    def list_chunks(self) -> list[schemas.KnowledgeChunkRecord]: ...

    def list_embeddings(self) -> list[schemas.EmbeddingRecord]: ...

    def count_chunks(self) -> int: ...

    def count_embeddings(self) -> int: ...

    def list_sources(self) -> list[str]: ...


class SqlKnowledgeStore:
    """
    Read path over the `knowledge` / `embeddings` tables.

    Every call opens its own session so concurrent queries never share ORM
    state. Rows are validated into records here; an embedding whose stored
    vector is missing or malformed is dropped (and logged) instead of failing
    the whole read.
    """

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def _session(self) -> Session:
        return self._session_factory()

    def list_chunks(self) -> list[schemas.KnowledgeChunkRecord]:
        db = self._session()
        try:
            rows = db.query(models.KnowledgeChunk).order_by(models.KnowledgeChunk.id.asc()).all()
            return [schemas.KnowledgeChunkRecord.model_validate(row) for row in rows]
        except SQLAlchemyError as exc:
            raise KnowledgeStoreError(f"Could not read knowledge chunks: {exc}") from exc
        finally:
            db.close()

    def list_embeddings(self) -> list[schemas.EmbeddingRecord]:
        db = self._session()
        try:
            rows = db.query(models.KnowledgeEmbedding).order_by(models.KnowledgeEmbedding.id.asc()).all()
            records: list[schemas.EmbeddingRecord] = []
            for row in rows:
                try:
                    records.append(schemas.EmbeddingRecord.model_validate(row))
                except ValidationError:
                    _logger.warning("Skipping malformed embedding id=%s (knowledge_id=%s)", row.id, row.knowledge_id)
            return records
        except SQLAlchemyError as exc:
            raise KnowledgeStoreError(f"Could not read embeddings: {exc}") from exc
        finally:
            db.close()

    def count_chunks(self) -> int:
        db = self._session()
        try:
            return int(db.query(func.count(models.KnowledgeChunk.id)).scalar() or 0)
        except SQLAlchemyError as exc:
            raise KnowledgeStoreError(f"Could not count knowledge chunks: {exc}") from exc
        finally:
            db.close()

    def count_embeddings(self) -> int:
        db = self._session()
        try:
            return int(db.query(func.count(models.KnowledgeEmbedding.id)).scalar() or 0)
        except SQLAlchemyError as exc:
            raise KnowledgeStoreError(f"Could not count embeddings: {exc}") from exc
        finally:
            db.close()

    def list_sources(self) -> list[str]:
        db = self._session()
        try:
            rows = (
                db.query(models.KnowledgeChunk.source)
                .distinct()
                .order_by(models.KnowledgeChunk.source.asc())
                .all()
            )
            return [str(row[0]) for row in rows]
        except SQLAlchemyError as exc:
            raise KnowledgeStoreError(f"Could not list knowledge sources: {exc}") from exc
        finally:
            db.close()
