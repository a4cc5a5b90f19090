import asyncio
import json
import sys
from pathlib import Path

import httpx
import pytest

BASE_DIR = Path(__file__).resolve().parents[1]
if str(BASE_DIR) not in sys.path:
    sys.path.append(str(BASE_DIR))

from pharmacy_rag.ai.embeddings import EmbeddingClient
from pharmacy_rag.ai.provider_factory import build_embeddings_provider
from pharmacy_rag.ai.providers.base import EmbeddingProviderError
from pharmacy_rag.ai.providers.ollama import OllamaProvider
from pharmacy_rag.ai.providers.openrouter import OpenRouterProvider
from pharmacy_rag.ai.providers.stub import StubProvider
from pharmacy_rag.config.rag import RAGConfig


def ollama_transport(embedding, *, status_code: int = 200, seen: list | None = None) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        if seen is not None:
            seen.append((request.url.path, json.loads(request.content)))
        if status_code >= 400:
            return httpx.Response(status_code, text="model not loaded")
        return httpx.Response(200, json={"embedding": embedding})

    return httpx.MockTransport(handler)


class RaisingProvider:
    name = "raising"
    model = "raising-test"
    dimensions = 2

    def __init__(self, exc: Exception) -> None:
        self.exc = exc

    async def embed(self, texts: list[str]) -> list[list[float]]:
        raise self.exc


class ReturningProvider:
    name = "returning"
    model = "returning-test"
    dimensions = 2

    def __init__(self, vectors) -> None:
        self.vectors = vectors

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return self.vectors


def test_ollama_provider_posts_one_prompt_per_text():
    seen: list = []
    provider = OllamaProvider(
        host="http://ollama.test",
        model="nomic-embed-text",
        transport=ollama_transport([0.1, 0.2], seen=seen),
    )
    vectors = asyncio.run(provider.embed(["hola", "adiós"]))
    assert vectors == [[0.1, 0.2], [0.1, 0.2]]
    assert seen == [
        ("/api/embeddings", {"model": "nomic-embed-text", "prompt": "hola"}),
        ("/api/embeddings", {"model": "nomic-embed-text", "prompt": "adiós"}),
    ]


def test_ollama_provider_raises_on_http_error():
    provider = OllamaProvider(host="http://ollama.test", transport=ollama_transport(None, status_code=500))
    with pytest.raises(EmbeddingProviderError) as exc_info:
        asyncio.run(provider.embed(["hola"]))
    assert exc_info.value.status_code == 500
    assert "model not loaded" in str(exc_info.value)


def test_ollama_provider_raises_on_missing_embedding():
    provider = OllamaProvider(host="http://ollama.test", transport=ollama_transport([]))
    with pytest.raises(EmbeddingProviderError):
        asyncio.run(provider.embed(["hola"]))


@pytest.mark.parametrize("body", [["oops"], "oops", {"embedding": "0.1,0.2"}])
def test_ollama_provider_rejects_unexpected_payload(body):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))

    provider = OllamaProvider(host="http://ollama.test", transport=transport)
    with pytest.raises(EmbeddingProviderError):
        asyncio.run(provider.embed(["hola"]))

    client = EmbeddingClient(OllamaProvider(host="http://ollama.test", transport=transport))
    assert asyncio.run(client.safe_embed("hola")) is None


def test_openrouter_provider_sorts_by_index(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "test-key")
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={"data": [{"index": 1, "embedding": [0.0, 1.0]}, {"index": 0, "embedding": [1.0, 0.0]}]},
        )

    provider = OpenRouterProvider(model="text-embedding-3-small", transport=httpx.MockTransport(handler))
    vectors = asyncio.run(provider.embed(["uno", "dos"]))
    assert vectors == [[1.0, 0.0], [0.0, 1.0]]
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"] == {"model": "text-embedding-3-small", "input": ["uno", "dos"]}


def test_openrouter_provider_error_message(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "test-key")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(401, json={"error": {"message": "invalid key"}})

    provider = OpenRouterProvider(transport=httpx.MockTransport(handler))
    with pytest.raises(EmbeddingProviderError) as exc_info:
        asyncio.run(provider.embed(["uno"]))
    assert exc_info.value.status_code == 401
    assert exc_info.value.message == "invalid key"


@pytest.mark.parametrize("body", [["oops"], {"data": ["x"]}, {"data": {"embedding": [1.0]}}, {"data": [{"index": 0}]}])
def test_openrouter_provider_rejects_unexpected_payload(monkeypatch, body):
    monkeypatch.setenv("OPENROUTER_API_KEY", "test-key")
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=body))

    provider = OpenRouterProvider(transport=transport)
    with pytest.raises(EmbeddingProviderError):
        asyncio.run(provider.embed(["uno"]))

    client = EmbeddingClient(OpenRouterProvider(transport=transport))
    assert asyncio.run(client.safe_embed("uno")) is None


def test_openrouter_error_with_non_object_body(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "test-key")
    transport = httpx.MockTransport(lambda request: httpx.Response(502, json=["bad gateway"]))

    provider = OpenRouterProvider(transport=transport)
    with pytest.raises(EmbeddingProviderError) as exc_info:
        asyncio.run(provider.embed(["uno"]))
    assert exc_info.value.status_code == 502


def test_openrouter_requires_api_key(monkeypatch):
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    with pytest.raises(RuntimeError):
        OpenRouterProvider()


def test_stub_provider_is_deterministic():
    provider = StubProvider(dimensions=8)
    first = asyncio.run(provider.embed(["ibuprofeno"]))[0]
    second = asyncio.run(provider.embed(["ibuprofeno"]))[0]
    other = asyncio.run(provider.embed(["paracetamol"]))[0]
    assert first == second
    assert first != other
    assert len(first) == 8


def test_safe_embed_returns_vector():
    client = EmbeddingClient(ReturningProvider([[1, 2]]))
    assert asyncio.run(client.safe_embed("hola")) == [1.0, 2.0]


@pytest.mark.parametrize(
    "exc",
    [
        EmbeddingProviderError("raising", 503, "down"),
        httpx.ConnectError("connection refused"),
        httpx.ReadTimeout("timed out"),
        OSError("socket closed"),
    ],
)
def test_safe_embed_swallows_provider_failures(exc):
    client = EmbeddingClient(RaisingProvider(exc))
    assert asyncio.run(client.safe_embed("hola")) is None


@pytest.mark.parametrize("vectors", [[], [[]], [["a", "b"]], [[1.0, float("inf")]], [None]])
def test_safe_embed_rejects_unusable_vectors(vectors):
    client = EmbeddingClient(ReturningProvider(vectors))
    assert asyncio.run(client.safe_embed("hola")) is None


def test_safe_embed_disabled_returns_none():
    client = EmbeddingClient(ReturningProvider([[1.0, 2.0]]), enabled=False)
    assert asyncio.run(client.safe_embed("hola")) is None


def test_safe_embed_ollama_down_returns_none():
    provider = OllamaProvider(host="http://ollama.test", transport=ollama_transport(None, status_code=503))
    client = EmbeddingClient(provider)
    assert asyncio.run(client.safe_embed("hola")) is None


def test_health_check_states():
    healthy = asyncio.run(EmbeddingClient(ReturningProvider([[1.0, 2.0, 3.0]])).health_check())
    assert healthy.status == "healthy"
    assert healthy.dimension == 3

    unhealthy = asyncio.run(EmbeddingClient(RaisingProvider(OSError("refused"))).health_check())
    assert unhealthy.status == "unhealthy"
    assert "refused" in unhealthy.error

    degraded = asyncio.run(EmbeddingClient(ReturningProvider([[1.0]]), enabled=False).health_check())
    assert degraded.status == "degraded"


def test_expected_dimension():
    assert EmbeddingClient(OllamaProvider(model="nomic-embed-text")).expected_dimension() == 768
    assert EmbeddingClient(StubProvider()).expected_dimension() == 768


def test_expected_dimension_openrouter(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "test-key")
    client = EmbeddingClient(OpenRouterProvider(model="text-embedding-3-small"))
    assert client.expected_dimension() == 1536


def test_factory_builds_configured_provider():
    assert isinstance(build_embeddings_provider(RAGConfig(embeddings_provider="stub")), StubProvider)
    provider = build_embeddings_provider(RAGConfig(embeddings_provider="ollama", ollama_host="http://ollama.test/"))
    assert isinstance(provider, OllamaProvider)
    assert provider.host == "http://ollama.test"
    with pytest.raises(RuntimeError):
        build_embeddings_provider(RAGConfig(embeddings_provider="nope"))


def test_factory_uses_provider_default_model(monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "test-key")
    monkeypatch.delenv("OPENROUTER_EMBED_MODEL", raising=False)
    monkeypatch.delenv("OPENROUTER_EMBED_DIM", raising=False)

    openrouter = build_embeddings_provider(RAGConfig(embeddings_provider="openrouter"))
    assert openrouter.model == "text-embedding-3-small"
    assert openrouter.dimensions == 1536

    ollama = build_embeddings_provider(RAGConfig(embeddings_provider="ollama"))
    assert ollama.model == "nomic-embed-text"
    assert ollama.dimensions == 768

    pinned = build_embeddings_provider(RAGConfig(embeddings_provider="openrouter", embed_model="custom-embed", embed_dim=64))
    assert pinned.model == "custom-embed"
    assert pinned.dimensions == 64


def test_aclose_closes_http_client():
    provider = OllamaProvider(host="http://ollama.test", transport=ollama_transport([0.1]))
    client = EmbeddingClient(provider)
    asyncio.run(client.aclose())
    assert provider._client.is_closed
