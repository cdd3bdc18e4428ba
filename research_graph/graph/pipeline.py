from __future__ import annotations

import asyncio
import time
from datetime import datetime
from typing import Protocol

from loguru import logger

from research_graph.config import settings
from research_graph.errors import ExternalServiceError, ValidationError
from research_graph.graph.cross_query import CrossQueryMatcher
from research_graph.graph.topics import TopicClassifier
from research_graph.models.analysis import AnalysisResult
from research_graph.models.graph import (
    Connection,
    OriginType,
    PipelineResult,
    Query,
    Relationship,
    SearchResult,
    Source,
    SourceDraft,
    Synthesis,
)
from research_graph.services import logger as log_service
from research_graph.services.embeddings import EmbeddingService
from research_graph.services.graph_store import GraphStore
from research_graph.tools.search_provider import SearchProvider


class Analyzer(Protocol):
    analysis_model: str

    async def analyze(self, query: str, sources: list[SearchResult]) -> AnalysisResult: ...
    async def generate_topic_label(self, query_text: str) -> str: ...


def validate_query_text(text: str | None) -> str:
    cleaned = (text or "").strip()
    if len(cleaned) < settings.query_min_chars:
        raise ValidationError(f"Query must be at least {settings.query_min_chars} characters")
    if len(cleaned) > settings.query_max_chars:
        raise ValidationError(f"Query must be at most {settings.query_max_chars} characters")
    return cleaned


def source_embedding_text(result: SearchResult) -> str:
    return f"{result.title}\n{result.summary}\n{' '.join(result.highlights)}".strip()


def _parse_published(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else None


def build_connections(
    analysis: AnalysisResult, sources: list[Source], query_id: str
) -> list[Connection]:
    """Map index-based connections onto stored source ids, dropping out-of-range and self pairs."""
    connections: list[Connection] = []
    for item in analysis.connections:
        a, b = item.source_a_index, item.source_b_index
        if a == b or not (0 <= a < len(sources)) or not (0 <= b < len(sources)):
            continue
        if sources[a].id == sources[b].id:
            continue
        connections.append(
            Connection(
                query_id=query_id,
                source_a_id=sources[a].id,
                source_b_id=sources[b].id,
                relationship=Relationship(item.relationship),
                explanation=item.explanation,
                strength=min(1.0, max(0.0, item.strength)),
            )
        )
    return connections


class ResearchPipeline:
    """Search, embed, store, then classify / match / analyze concurrently."""

    def __init__(
        self,
        store: GraphStore,
        embedder: EmbeddingService,
        search_provider: SearchProvider,
        analyzer: Analyzer,
        *,
        classifier: TopicClassifier | None = None,
        matcher: CrossQueryMatcher | None = None,
    ):
        self.store = store
        self.embedder = embedder
        self.search_provider = search_provider
        self.analyzer = analyzer
        self.classifier = classifier or TopicClassifier(store, analyzer)
        self.matcher = matcher or CrossQueryMatcher(store)

    async def run(self, user_id: str, text: str, *, max_results: int | None = None) -> PipelineResult:
        query_text = validate_query_text(text)
        query = await self.store.create_query(user_id, query_text)
        return await self.run_for_query(query, max_results=max_results)

    async def run_for_query(self, query: Query, *, max_results: int | None = None) -> PipelineResult:
        started = time.monotonic()
        limit = int(max_results or settings.search_max_results)

        response = await self.search_provider.search(query.text, max_results=limit)
        results = response.results
        if not results:
            logger.info(f"Search returned no results for query {query.id}")
            return PipelineResult(query=query, provider=response.provider)

        texts = [query.text, *(source_embedding_text(r) for r in results)]
        vectors = await self.embedder.embed_texts(texts)
        if len(vectors) != len(texts):
            raise ExternalServiceError(
                "embeddings", detail=f"expected {len(texts)} vectors, got {len(vectors)}"
            )
        query_embedding, source_embeddings = vectors[0], vectors[1:]

        drafts = [
            SourceDraft(
                origin=OriginType.SEARCH,
                url=r.url,
                title=r.title,
                snippet=r.summary,
                full_text=r.text,
                query_id=query.id,
                author=r.author,
                published_at=_parse_published(r.published_date),
                embedding=embedding,
            )
            for r, embedding in zip(results, source_embeddings)
        ]
        sources = await self.store.insert_sources(drafts)

        topic, related, analysis = await asyncio.gather(
            self.classifier.classify(query.text, query_embedding, query.user_id, query.id),
            self.matcher.find_related(source_embeddings, query.id),
            self.analyzer.analyze(query.text, results),
            return_exceptions=True,
        )
        if isinstance(analysis, BaseException):
            logger.error(f"Analysis failed for query {query.id}: {analysis}")
            raise analysis
        if isinstance(topic, BaseException):
            logger.warning(f"Topic classification failed for query {query.id}: {topic!r}")
            topic = None
        else:
            query.topic_id = topic.topic_id
        if isinstance(related, BaseException):
            logger.warning(f"Cross-query matching failed for query {query.id}: {related!r}")
            related = []

        connections = build_connections(analysis, sources, query.id)
        if connections:
            try:
                await self.store.insert_connections(connections)
            except Exception as exc:
                logger.warning(f"Storing {len(connections)} connections failed for query {query.id}: {exc}")
                connections = []

        synthesis = Synthesis(
            query_id=query.id,
            summary=analysis.synthesis,
            gaps=list(analysis.gaps),
            follow_up_questions=list(analysis.follow_up_questions),
            model=self.analyzer.analysis_model,
        )
        try:
            await self.store.insert_synthesis(synthesis)
        except Exception as exc:
            logger.warning(f"Storing synthesis failed for query {query.id}: {exc}")

        log_service.log_event(
            "pipeline_complete",
            f"Query {query.id} processed",
            sources=len(sources),
            connections=len(connections),
            related=len(related),
            new_topic=bool(topic and topic.is_new),
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        return PipelineResult(
            query=query,
            sources=sources,
            topic=topic,
            related=related,
            connections=connections,
            synthesis=synthesis,
            provider=response.provider,
        )
