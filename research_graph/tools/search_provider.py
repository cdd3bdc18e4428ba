from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import httpx

from research_graph.config import Settings, settings
from research_graph.models.graph import SearchResult
from research_graph.tools import exa_search


@dataclass
class SearchResponse:
    results: list[SearchResult]
    provider: str


class SearchProvider(Protocol):
    async def search(self, query: str, *, max_results: int = 10) -> SearchResponse: ...


class ConfiguredSearchProvider:
    def __init__(
        self,
        config: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.config = config or settings
        self.provider = self.config.search_provider.lower().strip()
        self._transport = transport
        if self.provider != "exa":
            raise ValueError(f"Unsupported SEARCH_PROVIDER: {self.config.search_provider}")

    async def search(self, query: str, *, max_results: int = 10) -> SearchResponse:
        results = await exa_search.search(
            query,
            max_results=max_results,
            api_key=self.config.exa_api_key,
            base_url=self.config.exa_base_url,
            timeout=self.config.search_timeout_seconds,
            max_attempts=self.config.search_max_attempts,
            transport=self._transport,
        )
        return SearchResponse(results=results, provider=self.provider)


def get_search_provider(config: Settings | None = None) -> SearchProvider:
    return ConfiguredSearchProvider(config)
