import sys
from pathlib import Path

import pytest
from sqlalchemy import text
from sqlalchemy.pool import StaticPool

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

from pharmacy_rag import models
from pharmacy_rag.ai.types import format_pgvector, parse_stored_vector
from pharmacy_rag.db import Base, make_engine, make_session_factory
from pharmacy_rag.rag.store import KnowledgeStoreError, SqlKnowledgeStore

engine = make_engine("sqlite://", poolclass=StaticPool)
TestingSessionLocal = make_session_factory(engine)


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


def seed(source: str, chunk_text: str, *vectors) -> int:
    db = TestingSessionLocal()
    try:
        chunk = models.KnowledgeChunk(source=source, chunk_text=chunk_text, chunk_index=0)
        db.add(chunk)
        db.commit()
        db.refresh(chunk)
        for vector in vectors:
            db.add(models.KnowledgeEmbedding(knowledge_id=chunk.id, vector=vector))
        db.commit()
        return chunk.id
    finally:
        db.close()


def test_list_chunks_returns_typed_records_in_id_order():
    seed("b.md", "segundo origen")
    seed("a.md", "primer origen")
    store = SqlKnowledgeStore(TestingSessionLocal)

    chunks = store.list_chunks()
    assert [c.source for c in chunks] == ["b.md", "a.md"]
    assert chunks[0].text == "segundo origen"
    assert chunks[0].id < chunks[1].id


def test_list_embeddings_round_trips_vectors():
    chunk_id = seed("a.md", "texto", [0.1, 0.2, 0.3])
    store = SqlKnowledgeStore(TestingSessionLocal)

    embeddings = store.list_embeddings()
    assert len(embeddings) == 1
    assert embeddings[0].knowledge_chunk_id == chunk_id
    assert embeddings[0].vector == pytest.approx([0.1, 0.2, 0.3])


def test_malformed_and_missing_vectors_are_dropped():
    chunk_id = seed("a.md", "texto", [1.0, 0.0], [0.5, 0.5], [0.0, 1.0])
    db = TestingSessionLocal()
    try:
        ids = [row.id for row in db.query(models.KnowledgeEmbedding).order_by(models.KnowledgeEmbedding.id).all()]
        db.execute(text("UPDATE embeddings SET vector = 'basura' WHERE id = :id"), {"id": ids[0]})
        db.execute(text("UPDATE embeddings SET vector = NULL WHERE id = :id"), {"id": ids[1]})
        db.commit()
    finally:
        db.close()
    store = SqlKnowledgeStore(TestingSessionLocal)

    embeddings = store.list_embeddings()
    assert [e.vector for e in embeddings] == [[0.0, 1.0]]
    assert embeddings[0].knowledge_chunk_id == chunk_id
    assert store.count_embeddings() == 3


def test_empty_and_non_finite_vectors_are_dropped():
    seed("a.md", "texto", [], [1.0, float("nan")], [1.0, 2.0])
    store = SqlKnowledgeStore(TestingSessionLocal)

    assert [e.vector for e in store.list_embeddings()] == [[1.0, 2.0]]


def test_deleting_a_chunk_cascades_to_embeddings():
    chunk_id = seed("a.md", "texto", [1.0, 0.0], [0.0, 1.0])
    seed("b.md", "otro", [1.0, 1.0])
    db = TestingSessionLocal()
    try:
        db.execute(text("DELETE FROM knowledge WHERE id = :id"), {"id": chunk_id})
        db.commit()
    finally:
        db.close()
    store = SqlKnowledgeStore(TestingSessionLocal)

    assert store.count_chunks() == 1
    assert store.count_embeddings() == 1


def test_list_sources_is_distinct_and_sorted():
    seed("b.md", "uno")
    seed("a.md", "dos")
    seed("b.md", "tres")
    store = SqlKnowledgeStore(TestingSessionLocal)

    assert store.list_sources() == ["a.md", "b.md"]


def test_storage_failure_raises_knowledge_store_error():
    Base.metadata.drop_all(bind=engine)
    store = SqlKnowledgeStore(TestingSessionLocal)

    with pytest.raises(KnowledgeStoreError):
        store.list_chunks()
    with pytest.raises(KnowledgeStoreError):
        store.list_embeddings()


def test_stored_vector_codec():
    assert format_pgvector([1, 0.5]) == "[1.00000000,0.50000000]"
    assert parse_stored_vector("[1.00000000,0.50000000]") == [1.0, 0.5]
    assert parse_stored_vector("[0.1, 0.2]") == [0.1, 0.2]
    assert parse_stored_vector((1, 2)) == [1.0, 2.0]
    assert parse_stored_vector("basura") is None
    assert parse_stored_vector('{"a": 1}') is None
    assert parse_stored_vector('["x"]') is None
    assert parse_stored_vector(None) is None
