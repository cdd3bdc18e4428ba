from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from research_graph.config import Settings
from research_graph.errors import ExternalServiceError
from research_graph.services.embeddings import (
    LocalEmbeddingService,
    OpenRouterEmbeddingService,
    get_embedding_service,
)


def _service(handler, **kwargs) -> OpenRouterEmbeddingService:
    return OpenRouterEmbeddingService(
        api_key=kwargs.pop("api_key", "test-key"),
        base_url="https://openrouter.test/api/v1",
        model="test/embed",
        dimensions=2,
        timeout=5,
        max_attempts=kwargs.pop("max_attempts", 3),
        transport=httpx.MockTransport(handler),
    )


@pytest.mark.asyncio
async def test_embed_texts_orders_by_index_and_normalizes():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "data": [
                    {"index": 1, "embedding": [0.0, 2.0]},
                    {"index": 0, "embedding": [3.0, 4.0]},
                ]
            },
        )

    vectors = await _service(handler).embed_texts(["first", "second"])

    assert vectors[0] == pytest.approx([0.6, 0.8])
    assert vectors[1] == pytest.approx([0.0, 1.0])
    assert seen["url"] == "https://openrouter.test/api/v1/embeddings"
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"] == {"model": "test/embed", "input": ["first", "second"], "dimensions": 2}


@pytest.mark.asyncio
async def test_wrong_vector_count_is_an_upstream_error():
    def handler(request):
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0, 0.0]}]})

    with pytest.raises(ExternalServiceError, match="expected 2 embeddings"):
        await _service(handler).embed_texts(["a", "b"])


@pytest.mark.asyncio
async def test_wrong_dimensions_is_an_upstream_error():
    def handler(request):
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0, 0.0, 0.0]}]})

    with pytest.raises(ExternalServiceError, match="dimensions"):
        await _service(handler).embed_texts(["a"])


@pytest.mark.asyncio
async def test_server_errors_are_retried_then_succeed():
    calls = []

    def handler(request):
        calls.append(request)
        if len(calls) == 1:
            return httpx.Response(503, text="overloaded")
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0, 1.0]}]})

    with patch("research_graph.services.retry.asyncio.sleep", new=AsyncMock()):
        vectors = await _service(handler).embed_texts(["a"])

    assert len(calls) == 2
    assert vectors[0] == pytest.approx([0.7071, 0.7071], abs=1e-4)


@pytest.mark.asyncio
async def test_exhausted_retries_raise_external_service_error():
    def handler(request):
        return httpx.Response(500, text="boom")

    with patch("research_graph.services.retry.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(ExternalServiceError) as excinfo:
            await _service(handler, max_attempts=2).embed_texts(["a"])

    assert excinfo.value.upstream_status == 500
    assert excinfo.value.detail == "boom"
    assert excinfo.value.message == "OpenRouter/embeddings is temporarily unavailable"


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(401, text="bad key")

    with pytest.raises(ExternalServiceError) as excinfo:
        await _service(handler).embed_texts(["a"])

    assert len(calls) == 1
    assert excinfo.value.retryable is False


@pytest.mark.asyncio
async def test_missing_api_key_fails_fast():
    with pytest.raises(RuntimeError):
        await _service(lambda request: httpx.Response(200), api_key="").embed_texts(["a"])


@pytest.mark.asyncio
async def test_empty_input_makes_no_request():
    def handler(request):
        raise AssertionError("no request expected")

    assert await _service(handler).embed_texts([]) == []


def test_backend_selection():
    assert isinstance(get_embedding_service(Settings(embedding_backend="openrouter")), OpenRouterEmbeddingService)
    assert isinstance(get_embedding_service(Settings(embedding_backend="local")), LocalEmbeddingService)
    with pytest.raises(ValueError):
        get_embedding_service(Settings(embedding_backend="hashed"))
