from __future__ import annotations

import asyncio
import time
from typing import Any, Protocol

import httpx
from loguru import logger

from research_graph.config import Settings, settings
from research_graph.errors import ExternalServiceError
from research_graph.graph.vectors import normalize, parse_embedding
from research_graph.services.retry import with_retry


class EmbeddingService(Protocol):
    async def embed_texts(self, texts: list[str]) -> list[list[float]]: ...
    async def embed_text(self, text: str) -> list[float]: ...


class OpenRouterEmbeddingService:
    """Batched embeddings over OpenRouter's OpenAI-compatible ``/embeddings`` endpoint."""

    service_name = "OpenRouter/embeddings"

    def __init__(
        self,
        *,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        dimensions: int | None = None,
        timeout: float | None = None,
        max_attempts: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.openrouter_api_key
        self.base_url = (base_url or settings.openrouter_base_url).rstrip("/")
        self.model = model or settings.embedding_model
        self.dimensions = int(dimensions or settings.embedding_dimensions)
        self.timeout = float(timeout or settings.embedding_timeout_seconds)
        self.max_attempts = int(max_attempts or settings.embedding_max_attempts)
        self._transport = transport

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        if not self.api_key:
            raise RuntimeError("OPENROUTER_API_KEY is not configured")

        started = time.monotonic()
        logger.debug(f"Embedding {len(texts)} texts with {self.model}")
        try:
            payload = await with_retry(
                lambda: self._request(texts),
                max_attempts=self.max_attempts,
                label=self.service_name,
            )
        except httpx.HTTPStatusError as exc:
            raise ExternalServiceError(
                self.service_name,
                upstream_status=exc.response.status_code,
                detail=exc.response.text[:500],
            ) from exc
        except (httpx.TransportError, asyncio.TimeoutError) as exc:
            raise ExternalServiceError(self.service_name, detail=str(exc)) from exc

        vectors = self._parse_response(payload, expected=len(texts))
        logger.info(
            f"Embedded {len(vectors)} texts in {int((time.monotonic() - started) * 1000)}ms"
        )
        return vectors

    async def embed_text(self, text: str) -> list[float]:
        vectors = await self.embed_texts([text])
        return vectors[0]

    async def _request(self, texts: list[str]) -> dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            response = await client.post(
                f"{self.base_url}/embeddings",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.model,
                    "input": texts,
                    "dimensions": self.dimensions,
                },
            )
            response.raise_for_status()
            return response.json()

    def _parse_response(self, payload: dict[str, Any], *, expected: int) -> list[list[float]]:
        items = payload.get("data") or []
        if len(items) != expected:
            raise ExternalServiceError(
                self.service_name,
                detail=f"expected {expected} embeddings, got {len(items)}",
            )
        ordered = sorted(items, key=lambda item: int(item.get("index", 0)))
        vectors: list[list[float]] = []
        for item in ordered:
            vector = parse_embedding(item.get("embedding"))
            if len(vector) != self.dimensions:
                raise ExternalServiceError(
                    self.service_name,
                    detail=f"expected {self.dimensions} dimensions, got {len(vector)}",
                )
            vectors.append(normalize(vector))
        return vectors


class LocalEmbeddingService:
    """sentence-transformers model run in a worker thread."""

    def __init__(self, model_name: str | None = None, batch_size: int | None = None):
        self.model_name = model_name or settings.local_embed_model
        self.batch_size = batch_size or int(settings.embedding_batch_size)
        self._model: Any | None = None
        self._lock = asyncio.Lock()

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        async with self._lock:
            if self._model is None:
                await asyncio.to_thread(self._load_model)
        return await asyncio.to_thread(self._embed_sync, texts)

    async def embed_text(self, text: str) -> list[float]:
        vectors = await self.embed_texts([text])
        return vectors[0]

    def _load_model(self) -> None:
        # Optional dependency: installed with the ``local`` extra.
        from sentence_transformers import SentenceTransformer

        self._model = SentenceTransformer(self.model_name)

    def _embed_sync(self, texts: list[str]) -> list[list[float]]:
        vectors = self._model.encode(
            texts,
            batch_size=self.batch_size,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return [list(map(float, row)) for row in vectors]


def get_embedding_service(config: Settings | None = None) -> EmbeddingService:
    config = config or settings
    backend = config.embedding_backend.lower().strip()
    if backend == "openrouter":
        return OpenRouterEmbeddingService(
            api_key=config.openrouter_api_key,
            base_url=config.openrouter_base_url,
            model=config.embedding_model,
            dimensions=config.embedding_dimensions,
            timeout=config.embedding_timeout_seconds,
            max_attempts=config.embedding_max_attempts,
        )
    if backend == "local":
        return LocalEmbeddingService(
            model_name=config.local_embed_model,
            batch_size=config.embedding_batch_size,
        )
    raise ValueError(f"Unsupported EMBEDDING_BACKEND: {config.embedding_backend}")
