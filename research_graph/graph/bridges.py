"""Bridge and gap scoring between a user's topics.

A bridge is one source relevant to two topics at once: its score for the
pair is the smaller of its two centroid similarities, and it only counts
when both clear ``min_similarity``. A gap is a pair of topics whose
centroids are close but that no source bridges. Everything here is
read-only over stored topics and sources.
"""

from __future__ import annotations

import statistics
from dataclasses import dataclass, field
from typing import Iterable

from loguru import logger

from research_graph.config import settings
from research_graph.errors import TopicNotFoundError
from research_graph.graph.vectors import cosine_similarity
from research_graph.models.graph import (
    Bridge,
    Contradiction,
    DirectionCandidate,
    GraphEdge,
    GraphNode,
    GraphView,
    ScopedSource,
    Topic,
    TopicDensity,
    TopicGap,
    TrajectoryPoint,
)
from research_graph.services.graph_store import GraphStore, canonical_pair


def bridge_score(sim_a: float, sim_b: float, min_similarity: float) -> float | None:
    if sim_a < min_similarity or sim_b < min_similarity:
        return None
    return min(sim_a, sim_b)


@dataclass(slots=True)
class _UserGraph:
    """Topics and sources of one user with every source-to-centroid similarity."""

    topics: dict[str, Topic]
    sources: list[ScopedSource]
    similarities: list[dict[str, float]] = field(default_factory=list)

    @classmethod
    def build(cls, topics: list[Topic], sources: list[ScopedSource]) -> _UserGraph:
        by_id = {t.id: t for t in topics}
        sims = [
            {t.id: cosine_similarity(source.embedding, t.embedding) for t in topics}
            for source in sources
        ]
        return cls(topics=by_id, sources=sources, similarities=sims)

    def source_counts(self) -> dict[str, int]:
        counts = {topic_id: 0 for topic_id in self.topics}
        for source in self.sources:
            if source.topic_id in counts:
                counts[source.topic_id] += 1
        return counts

    def best_bridge(self, topic_a_id: str, topic_b_id: str, min_similarity: float) -> float:
        best = 0.0
        for sims in self.similarities:
            score = bridge_score(sims[topic_a_id], sims[topic_b_id], min_similarity)
            if score is not None and score > best:
                best = score
        return best

    def raw_best_bridge(self, topic_a_id: str, topic_b_id: str) -> float:
        return max(
            (min(sims[topic_a_id], sims[topic_b_id]) for sims in self.similarities),
            default=0.0,
        )

    def canonical_pairs(self) -> Iterable[tuple[Topic, Topic]]:
        ordered = sorted(self.topics.values(), key=lambda t: t.id)
        for i, first in enumerate(ordered):
            for second in ordered[i + 1 :]:
                yield first, second


class BridgeGapAnalyzer:
    def __init__(
        self,
        store: GraphStore,
        *,
        min_similarity: float | None = None,
        gap_topic_similarity: float | None = None,
        gap_min_sources: int | None = None,
        research_bridge_floor: float | None = None,
    ):
        self.store = store
        self.min_similarity = (
            settings.bridge_min_similarity if min_similarity is None else min_similarity
        )
        self.gap_topic_similarity = (
            settings.gap_topic_similarity if gap_topic_similarity is None else gap_topic_similarity
        )
        self.gap_min_sources = (
            settings.gap_min_sources if gap_min_sources is None else int(gap_min_sources)
        )
        self.research_bridge_floor = (
            settings.research_bridge_floor
            if research_bridge_floor is None
            else research_bridge_floor
        )

    async def _load(self, user_id: str) -> _UserGraph:
        topics = await self.store.list_user_topics(user_id)
        sources = await self.store.list_user_sources(user_id) if topics else []
        return _UserGraph.build(topics, sources)

    async def semantic_bridges(
        self,
        user_id: str,
        min_similarity: float | None = None,
        limit: int | None = 10,
    ) -> list[Bridge]:
        threshold = self.min_similarity if min_similarity is None else min_similarity
        graph = await self._load(user_id)
        bridges = self._all_bridges(graph, threshold)
        bridges.sort(key=lambda b: (-b.score, b.source_id, b.topic_a_id, b.topic_b_id))
        return bridges if limit is None else bridges[:limit]

    def _all_bridges(self, graph: _UserGraph, threshold: float) -> list[Bridge]:
        bridges: list[Bridge] = []
        for source, sims in zip(graph.sources, graph.similarities):
            relevant = sorted(topic_id for topic_id, sim in sims.items() if sim >= threshold)
            for i, a_id in enumerate(relevant):
                for b_id in relevant[i + 1 :]:
                    topic_a, topic_b = graph.topics[a_id], graph.topics[b_id]
                    bridges.append(
                        Bridge(
                            source_id=source.source_id,
                            title=source.title,
                            url=source.url,
                            topic_a_id=a_id,
                            topic_a_label=topic_a.label,
                            topic_b_id=b_id,
                            topic_b_label=topic_b.label,
                            similarity_a=sims[a_id],
                            similarity_b=sims[b_id],
                            score=min(sims[a_id], sims[b_id]),
                        )
                    )
        return bridges

    async def pair_bridge_score(
        self,
        topic_a_id: str,
        topic_b_id: str,
        min_similarity: float | None = None,
    ) -> float:
        """Best bridge score for one topic pair; 0.0 when nothing qualifies."""
        threshold = self.min_similarity if min_similarity is None else min_similarity
        if topic_a_id == topic_b_id:
            return 0.0
        topic_a = await self.store.get_topic(topic_a_id)
        if topic_a is None:
            raise TopicNotFoundError(topic_a_id)
        topic_b = await self.store.get_topic(topic_b_id)
        if topic_b is None:
            raise TopicNotFoundError(topic_b_id)
        if topic_a.user_id != topic_b.user_id:
            return 0.0

        best = 0.0
        for source in await self.store.list_user_sources(topic_a.user_id):
            score = bridge_score(
                cosine_similarity(source.embedding, topic_a.embedding),
                cosine_similarity(source.embedding, topic_b.embedding),
                threshold,
            )
            if score is not None and score > best:
                best = score
        return best

    async def topic_gaps(self, user_id: str, limit: int | None = 10) -> list[TopicGap]:
        graph = await self._load(user_id)
        gaps = self._gaps(user_id, graph)
        return gaps if limit is None else gaps[:limit]

    def _gaps(self, user_id: str, graph: _UserGraph) -> list[TopicGap]:
        counts = graph.source_counts()
        gaps: list[TopicGap] = []
        for topic_a, topic_b in graph.canonical_pairs():
            if counts[topic_a.id] < self.gap_min_sources or counts[topic_b.id] < self.gap_min_sources:
                continue
            similarity = cosine_similarity(topic_a.embedding, topic_b.embedding)
            if similarity < self.gap_topic_similarity:
                continue
            best = graph.raw_best_bridge(topic_a.id, topic_b.id)
            if best >= self.min_similarity:
                continue
            gaps.append(
                TopicGap(
                    user_id=user_id,
                    topic_a_id=topic_a.id,
                    topic_a_label=topic_a.label,
                    topic_b_id=topic_b.id,
                    topic_b_label=topic_b.label,
                    topic_similarity=similarity,
                    best_bridge_score=best,
                )
            )
        gaps.sort(key=lambda g: (-g.topic_similarity, g.topic_a_id, g.topic_b_id))
        return gaps

    async def prioritize_directions(
        self,
        max_directions: int,
        exclude_pairs: Iterable[tuple[str, str]] = (),
    ) -> list[DirectionCandidate]:
        """Rank gaps across all users; close topics with no bridge at all come first."""
        excluded = {canonical_pair(a, b) for a, b in exclude_pairs}
        candidates: list[DirectionCandidate] = []
        for user_id in await self.store.list_topic_owners():
            graph = await self._load(user_id)
            for gap in self._gaps(user_id, graph):
                if (gap.topic_a_id, gap.topic_b_id) in excluded:
                    continue
                existing = graph.best_bridge(
                    gap.topic_a_id, gap.topic_b_id, self.research_bridge_floor
                )
                candidates.append(
                    DirectionCandidate(
                        user_id=user_id,
                        topic_a_id=gap.topic_a_id,
                        topic_a_label=gap.topic_a_label,
                        topic_b_id=gap.topic_b_id,
                        topic_b_label=gap.topic_b_label,
                        topic_similarity=gap.topic_similarity,
                        best_existing_bridge=existing,
                        priority=gap.topic_similarity * (1.0 - existing),
                        topic_a_description=graph.topics[gap.topic_a_id].description,
                        topic_b_description=graph.topics[gap.topic_b_id].description,
                    )
                )
        candidates.sort(key=lambda c: (-c.priority, c.topic_a_id, c.topic_b_id))
        selected = candidates[: max(int(max_directions), 0)]
        logger.info(f"Prioritized {len(selected)} of {len(candidates)} research directions")
        return selected

    async def knowledge_density(self, user_id: str) -> list[TopicDensity]:
        graph = await self._load(user_id)
        members: dict[str, list[float]] = {topic_id: [] for topic_id in graph.topics}
        for source, sims in zip(graph.sources, graph.similarities):
            if source.topic_id in members:
                members[source.topic_id].append(sims[source.topic_id])

        density: list[TopicDensity] = []
        for topic_id, sims in members.items():
            topic = graph.topics[topic_id]
            density.append(
                TopicDensity(
                    topic_id=topic_id,
                    label=topic.label,
                    query_count=topic.query_count,
                    source_count=len(sims),
                    avg_similarity=statistics.fmean(sims) if sims else 0.0,
                    stddev_similarity=statistics.pstdev(sims) if len(sims) > 1 else 0.0,
                    min_similarity=min(sims, default=0.0),
                    max_similarity=max(sims, default=0.0),
                )
            )
        density.sort(key=lambda d: (-d.source_count, d.label))
        return density

    async def graph_view(self, user_id: str) -> GraphView:
        graph = await self._load(user_id)
        counts = graph.source_counts()
        nodes = [
            GraphNode(
                id=topic.id,
                label=topic.label,
                query_count=topic.query_count,
                source_count=counts[topic.id],
            )
            for topic in sorted(graph.topics.values(), key=lambda t: t.created_at)
        ]

        bridged: dict[tuple[str, str], GraphEdge] = {}
        for bridge in self._all_bridges(graph, self.min_similarity):
            key = (bridge.topic_a_id, bridge.topic_b_id)
            edge = bridged.get(key)
            if edge is None:
                bridged[key] = GraphEdge(
                    source=key[0], target=key[1], kind="bridge", score=bridge.score, count=1
                )
            else:
                edge.score = max(edge.score, bridge.score)
                edge.count += 1

        edges = list(bridged.values())
        for gap in self._gaps(user_id, graph):
            if (gap.topic_a_id, gap.topic_b_id) in bridged:
                continue
            edges.append(
                GraphEdge(
                    source=gap.topic_a_id,
                    target=gap.topic_b_id,
                    kind="gap",
                    score=gap.topic_similarity,
                )
            )
        return GraphView(nodes=nodes, edges=edges)

    async def find_contradictions(self, user_id: str, limit: int = 10) -> list[Contradiction]:
        return await self.store.list_contradictions(user_id, limit)

    async def query_trajectory(self, user_id: str, limit: int = 30) -> list[TrajectoryPoint]:
        """How a user's recent queries move between topics, oldest first.

        Each step is compared with the previous query's topic: ``deepen`` stays
        in it, ``adjacent`` moves to a topic whose centroid similarity is at
        least ``gap_topic_similarity`` and ``jump`` moves anywhere else.
        """
        queries = await self.store.recent_user_queries(user_id, limit)
        if not queries:
            return []
        topics = {t.id: t for t in await self.store.list_user_topics(user_id)}

        points: list[TrajectoryPoint] = []
        previous: Topic | None = None
        for query in queries:
            topic = topics.get(query.topic_id)
            if topic is None:
                continue
            if previous is None:
                movement, similarity = "start", None
            elif previous.id == topic.id:
                movement, similarity = "deepen", 1.0
            else:
                similarity = cosine_similarity(previous.embedding, topic.embedding)
                movement = "adjacent" if similarity >= self.gap_topic_similarity else "jump"
            points.append(
                TrajectoryPoint(
                    query_id=query.id,
                    text=query.text,
                    topic_id=topic.id,
                    topic_label=topic.label,
                    movement_type=movement,
                    similarity_to_previous=similarity,
                    created_at=query.created_at,
                )
            )
            previous = topic
        return points
