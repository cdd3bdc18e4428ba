from __future__ import annotations

import asyncio

from loguru import logger

from research_graph.config import settings
from research_graph.models.graph import CrossQueryMatch
from research_graph.services.graph_store import GraphStore


class CrossQueryMatcher:
    """Finds earlier sources (from other queries) that echo this query's sources."""

    def __init__(
        self,
        store: GraphStore,
        *,
        threshold: float | None = None,
        limit: int | None = None,
        max_parallel: int | None = None,
        lookup_timeout: float | None = None,
    ):
        self.store = store
        self.threshold = settings.cross_query_threshold if threshold is None else threshold
        self.limit = int(limit or settings.cross_query_limit)
        self.max_parallel = max(int(max_parallel or settings.cross_query_max_parallel), 1)
        self.lookup_timeout = (
            settings.vector_lookup_timeout_seconds if lookup_timeout is None else lookup_timeout
        )

    async def find_related(
        self,
        source_embeddings: list[list[float]],
        current_query_id: str,
    ) -> list[CrossQueryMatch]:
        if not source_embeddings:
            return []
        semaphore = asyncio.Semaphore(self.max_parallel)

        async def _lookup(index: int, embedding: list[float]) -> list[CrossQueryMatch]:
            async with semaphore:
                try:
                    hits = await asyncio.wait_for(
                        self.store.match_sources(
                            embedding,
                            threshold=self.threshold,
                            limit=self.limit,
                            exclude_query_id=current_query_id,
                        ),
                        timeout=self.lookup_timeout,
                    )
                except Exception as exc:
                    logger.warning(f"Cross-query lookup failed for source {index}: {exc!r}")
                    return []

            matches = [
                CrossQueryMatch(
                    source_index=index,
                    matched_source_id=hit.source_id,
                    matched_title=hit.title,
                    matched_url=hit.url,
                    matched_query_text=hit.query_text,
                    similarity=hit.similarity,
                )
                for hit in hits
                if hit.query_id != current_query_id and hit.similarity >= self.threshold
            ]
            matches.sort(key=lambda match: match.similarity, reverse=True)
            return matches[: self.limit]

        per_source = await asyncio.gather(
            *(_lookup(idx, embedding) for idx, embedding in enumerate(source_embeddings))
        )
        related = [match for matches in per_source for match in matches]
        logger.info(
            f"Cross-query matching found {len(related)} echoes for {len(source_embeddings)} sources"
        )
        return related
