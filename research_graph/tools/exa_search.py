from __future__ import annotations

from typing import Any

import httpx
from loguru import logger

from research_graph.config import settings
from research_graph.errors import ExternalServiceError
from research_graph.models.graph import SearchResult
from research_graph.services.retry import with_retry

SERVICE_NAME = "Exa/search"
TEXT_MAX_CHARACTERS = 3000


def build_payload(query: str, max_results: int) -> dict[str, Any]:
    return {
        "query": query,
        "numResults": max_results,
        "type": "auto",
        "contents": {
            "text": {"maxCharacters": TEXT_MAX_CHARACTERS},
            "highlights": {"numSentences": 3, "highlightsPerUrl": 3},
            "summary": {"query": query},
        },
    }


def map_results(payload: dict[str, Any]) -> list[SearchResult]:
    mapped: list[SearchResult] = []
    for item in payload.get("results", []) or []:
        url = item.get("url") or ""
        if not url:
            continue
        score = item.get("score")
        mapped.append(
            SearchResult(
                url=url,
                title=item.get("title") or url,
                text=item.get("text") or "",
                summary=item.get("summary") or "",
                highlights=list(item.get("highlights") or []),
                author=item.get("author"),
                published_date=item.get("publishedDate"),
                score=float(score) if score is not None else 0.0,
            )
        )
    return mapped


async def search(
    query: str,
    *,
    max_results: int = 10,
    api_key: str | None = None,
    base_url: str | None = None,
    timeout: float | None = None,
    max_attempts: int | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[SearchResult]:
    """Execute an Exa neural search with text, highlights and summary contents."""
    key = api_key if api_key is not None else settings.exa_api_key
    if not key:
        raise RuntimeError("EXA_API_KEY is not configured")
    url = f"{(base_url or settings.exa_base_url).rstrip('/')}/search"

    async def _request() -> dict[str, Any]:
        async with httpx.AsyncClient(
            timeout=timeout or settings.search_timeout_seconds, transport=transport
        ) as client:
            response = await client.post(
                url,
                json=build_payload(query, max_results),
                headers={"x-api-key": key, "Content-Type": "application/json"},
            )
            response.raise_for_status()
            return response.json()

    try:
        payload = await with_retry(
            _request,
            max_attempts=max_attempts or settings.search_max_attempts,
            label=SERVICE_NAME,
        )
    except httpx.HTTPStatusError as exc:
        raise ExternalServiceError(
            SERVICE_NAME,
            upstream_status=exc.response.status_code,
            detail=exc.response.text[:500],
        ) from exc
    except httpx.TransportError as exc:
        raise ExternalServiceError(SERVICE_NAME, detail=str(exc)) from exc

    results = map_results(payload)
    logger.info(f"Exa returned {len(results)} results for query of {len(query)} chars")
    return results
