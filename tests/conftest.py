from __future__ import annotations

import pytest

from research_graph.models.analysis import AnalysisResult
from research_graph.models.graph import SearchResult
from research_graph.services.graph_memory import InMemoryGraphStore
from research_graph.tools.search_provider import SearchResponse


class FakeEmbedder:
    def __init__(self, vectors: dict[str, list[float]] | None = None, default: list[float] | None = None):
        self.vectors = vectors or {}
        self.default = default or [1.0, 0.0, 0.0, 0.0]
        self.calls: list[list[str]] = []

    async def embed_texts(self, texts: list[str]) -> list[list[float]]:
        self.calls.append(list(texts))
        return [list(self.vectors.get(text, self.default)) for text in texts]

    async def embed_text(self, text: str) -> list[float]:
        return (await self.embed_texts([text]))[0]


class FakeSearch:
    def __init__(self, results: dict[str, list[SearchResult]] | None = None, default_count: int = 3):
        self.results = results or {}
        self.default_count = default_count
        self.errors: dict[str, Exception] = {}
        self.calls: list[tuple[str, int]] = []

    async def search(self, query: str, *, max_results: int = 10) -> SearchResponse:
        self.calls.append((query, max_results))
        if query in self.errors:
            raise self.errors[query]
        if query in self.results:
            return SearchResponse(results=self.results[query][:max_results], provider="fake")
        generated = [
            SearchResult(
                url=f"https://example.com/{abs(hash(query))}/{i}",
                title=f"{query} result {i}",
                summary=f"summary {i}",
                highlights=[f"highlight {i}"],
            )
            for i in range(min(self.default_count, max_results))
        ]
        return SearchResponse(results=generated, provider="fake")


class FakeAnalysis:
    analysis_model = "test/analysis-model"

    def __init__(self, connections: list[dict] | None = None):
        self.connections = connections or []
        self.analyze_error: Exception | None = None
        self.bridge_error: Exception | None = None
        self.labels_issued = 0
        self.bridge_calls: list[dict] = []

    async def analyze(self, query: str, sources: list[SearchResult]) -> AnalysisResult:
        if self.analyze_error is not None:
            raise self.analyze_error
        return AnalysisResult.model_validate(
            {
                "connections": self.connections,
                "synthesis": f"synthesis of {query}",
                "gaps": ["missing angle"],
                "follow_up_questions": ["what next?"],
            }
        )

    async def generate_topic_label(self, query_text: str) -> str:
        self.labels_issued += 1
        return f"Label {self.labels_issued}"

    async def generate_bridge_query(
        self,
        topic_a_label: str,
        topic_b_label: str,
        topic_similarity: float,
        *,
        topic_a_description: str | None = None,
        topic_b_description: str | None = None,
    ) -> str:
        self.bridge_calls.append(
            {
                "topic_a_label": topic_a_label,
                "topic_b_label": topic_b_label,
                "topic_a_description": topic_a_description,
                "topic_b_description": topic_b_description,
            }
        )
        if self.bridge_error is not None:
            raise self.bridge_error
        return f"{topic_a_label} meets {topic_b_label}"


@pytest.fixture
def store() -> InMemoryGraphStore:
    return InMemoryGraphStore()


@pytest.fixture
def embedder() -> FakeEmbedder:
    return FakeEmbedder()


@pytest.fixture
def search() -> FakeSearch:
    return FakeSearch()


@pytest.fixture
def analysis() -> FakeAnalysis:
    return FakeAnalysis()
