"""Online topic clustering with running-mean centroids.

Each query either joins the single closest topic of its owner (when the
centroid is similar enough) or seeds a new topic. Centroids are never
recomputed from scratch: every member is folded in exactly once.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

from loguru import logger

from research_graph.config import settings
from research_graph.models.graph import TopicMatch, TopicResult
from research_graph.services import logger as log_service
from research_graph.services.graph_store import GraphStore


class TopicLabeler(Protocol):
    async def generate_topic_label(self, query_text: str) -> str: ...


class TopicClassifier:
    def __init__(
        self,
        store: GraphStore,
        labeler: TopicLabeler,
        *,
        threshold: float | None = None,
        lookup_timeout: float | None = None,
    ):
        self.store = store
        self.labeler = labeler
        self.threshold = settings.topic_match_threshold if threshold is None else threshold
        self.lookup_timeout = (
            settings.vector_lookup_timeout_seconds if lookup_timeout is None else lookup_timeout
        )

    async def classify(
        self,
        query_text: str,
        query_embedding: list[float],
        user_id: str,
        query_id: str,
    ) -> TopicResult:
        match = await self._best_match(user_id, query_embedding)

        if match is not None:
            topic = await self.store.absorb_into_topic(match.topic_id, query_embedding)
            await self.store.assign_query_topic(query_id, topic.id)
            log_service.log_graph_operation(
                "absorb",
                "topic",
                "success",
                details=f"topic={topic.id} similarity={match.similarity:.3f} members={topic.query_count}",
            )
            return TopicResult(topic_id=topic.id, label=topic.label, is_new=False)

        label = await self.labeler.generate_topic_label(query_text)
        description = query_text.strip()[: settings.topic_description_max_chars]
        topic = await self.store.create_topic(user_id, label, query_embedding, description)
        await self.store.assign_query_topic(query_id, topic.id)
        log_service.log_graph_operation(
            "create", "topic", "success", details=f"topic={topic.id} label={label!r}"
        )
        return TopicResult(topic_id=topic.id, label=topic.label, is_new=True)

    async def _best_match(self, user_id: str, embedding: list[float]) -> TopicMatch | None:
        # A failed lookup creates a new topic rather than blocking the request.
        try:
            return await asyncio.wait_for(
                self.store.match_user_topic(user_id, embedding, self.threshold),
                timeout=self.lookup_timeout,
            )
        except Exception as exc:
            logger.warning(f"Topic lookup failed for user {user_id}, treating as no match: {exc!r}")
            return None
