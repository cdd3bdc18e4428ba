from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import timedelta
from typing import Iterable

from research_graph.errors import (
    DirectionStateError,
    NotFoundError,
    SourceNotFoundError,
    TopicNotFoundError,
    ValidationError,
)
from research_graph.graph.vectors import cosine_similarity, running_mean
from research_graph.models.graph import (
    Connection,
    Contradiction,
    DirectionStatus,
    DuplicatePair,
    MergeResult,
    OriginType,
    Query,
    Relationship,
    ResearchDirection,
    ScopedSource,
    Source,
    SourceDraft,
    SourceMatch,
    Synthesis,
    Topic,
    TopicMatch,
    new_id,
    utcnow,
)
from research_graph.services.graph_store import STALE_DIRECTION_ERROR, canonical_pair


class InMemoryGraphStore:
    """Process-local graph store with brute-force cosine search.

    Topic centroids are guarded by one lock per topic; source inserts and
    merges share a single write lock so a merge is never observed half done.
    """

    def __init__(self) -> None:
        self._queries: dict[str, Query] = {}
        self._sources: dict[str, Source] = {}
        self._topics: dict[str, Topic] = {}
        self._connections: dict[str, Connection] = {}
        self._syntheses: dict[str, Synthesis] = {}
        self._directions: dict[str, ResearchDirection] = {}
        self._topic_locks: dict[str, asyncio.Lock] = {}
        self._write_lock = asyncio.Lock()
        self.refresh_count = 0

    # --- Queries ---

    async def create_query(self, user_id: str, text: str) -> Query:
        query = Query(id=new_id(), user_id=user_id, text=text)
        self._queries[query.id] = query
        return replace(query)

    async def get_query(self, query_id: str) -> Query | None:
        query = self._queries.get(query_id)
        return replace(query) if query else None

    async def recent_user_queries(self, user_id: str, limit: int = 30) -> list[Query]:
        owned = [q for q in self._queries.values() if q.user_id == user_id and q.topic_id]
        owned.sort(key=lambda q: q.created_at)
        return [replace(q) for q in owned[-limit:]] if limit > 0 else []

    async def assign_query_topic(self, query_id: str, topic_id: str) -> None:
        query = self._queries.get(query_id)
        if query is None:
            raise NotFoundError(f"Query {query_id} not found")
        if query.topic_id is None:
            query.topic_id = topic_id

    # --- Sources ---

    async def insert_sources(self, drafts: list[SourceDraft]) -> list[Source]:
        stored: list[Source] = []
        async with self._write_lock:
            for draft in drafts:
                existing = self._find_existing(draft)
                if existing is not None:
                    stored.append(replace(existing))
                    continue
                source = Source.from_draft(draft)
                self._sources[source.id] = source
                stored.append(replace(source))
        return stored

    def _find_existing(self, draft: SourceDraft) -> Source | None:
        for source in self._sources.values():
            if draft.external_id and source.origin == draft.origin and source.external_id == draft.external_id:
                return source
            if draft.doi and source.doi == draft.doi:
                return source
        return None

    async def existing_external_ids(self, origin: OriginType, external_ids: list[str]) -> set[str]:
        wanted = set(external_ids)
        return {
            source.external_id
            for source in self._sources.values()
            if source.origin == origin and source.external_id in wanted
        }

    async def existing_dois(self, dois: list[str]) -> set[str]:
        wanted = set(dois)
        return {source.doi for source in self._sources.values() if source.doi in wanted}

    async def get_source(self, source_id: str) -> Source | None:
        source = self._sources.get(source_id)
        return replace(source) if source else None

    async def match_sources(
        self,
        embedding: list[float],
        *,
        threshold: float,
        limit: int,
        exclude_query_id: str | None = None,
    ) -> list[SourceMatch]:
        matches: list[SourceMatch] = []
        for source in self._sources.values():
            if exclude_query_id is not None and source.query_id == exclude_query_id:
                continue
            similarity = cosine_similarity(embedding, source.embedding)
            if similarity < threshold:
                continue
            query = self._queries.get(source.query_id) if source.query_id else None
            matches.append(
                SourceMatch(
                    source_id=source.id,
                    title=source.title,
                    url=source.url,
                    similarity=similarity,
                    query_id=source.query_id,
                    query_text=query.text if query else None,
                )
            )
        matches.sort(key=lambda match: (-match.similarity, match.source_id))
        return matches[: max(int(limit), 0)]

    async def find_duplicate_sources(
        self, *, threshold: float, scan_batch_size: int, max_pairs: int
    ) -> list[DuplicatePair]:
        recent = sorted(self._sources.values(), key=lambda s: s.created_at, reverse=True)
        window = recent[: max(int(scan_batch_size), 0)]
        best: dict[tuple[str, str], DuplicatePair] = {}
        for source in window:
            for other in self._sources.values():
                if other.id == source.id:
                    continue
                similarity = cosine_similarity(source.embedding, other.embedding)
                if similarity < threshold:
                    continue
                key = canonical_pair(source.id, other.id)
                first, second = (source, other) if key[0] == source.id else (other, source)
                current = best.get(key)
                if current is None or similarity > current.similarity:
                    best[key] = DuplicatePair(
                        source_a=first.ref(), source_b=second.ref(), similarity=similarity
                    )
        pairs = sorted(best.values(), key=lambda p: (-p.similarity, p.source_a.id, p.source_b.id))
        return pairs[: max(int(max_pairs), 0)]

    async def merge_sources(self, winner_id: str, loser_id: str) -> MergeResult:
        if winner_id == loser_id:
            raise ValidationError("Cannot merge a source into itself")
        async with self._write_lock:
            winner = self._sources.get(winner_id)
            if winner is None:
                raise SourceNotFoundError(winner_id)
            loser = self._sources.get(loser_id)
            if loser is None:
                raise SourceNotFoundError(loser_id)

            repointed = 0
            for connection in self._connections.values():
                if connection.source_a_id == loser_id:
                    connection.source_a_id = winner_id
                    repointed += 1
            for connection in self._connections.values():
                if connection.source_b_id == loser_id:
                    connection.source_b_id = winner_id
                    repointed += 1

            doi_copied = False
            if loser.doi and not winner.doi:
                winner.doi = loser.doi
                doi_copied = True
            if loser.query_id and not winner.query_id:
                winner.query_id = loser.query_id

            del self._sources[loser_id]
            return MergeResult(
                winner=winner.ref(),
                loser=loser.ref(),
                connections_repointed=repointed,
                doi_copied=doi_copied,
            )

    # --- Topics ---

    async def match_user_topic(
        self, user_id: str, embedding: list[float], threshold: float
    ) -> TopicMatch | None:
        best: TopicMatch | None = None
        for topic in self._topics.values():
            if topic.user_id != user_id:
                continue
            similarity = cosine_similarity(embedding, topic.embedding)
            if similarity < threshold:
                continue
            if (
                best is None
                or similarity > best.similarity
                or (similarity == best.similarity and topic.id < best.topic_id)
            ):
                best = TopicMatch(topic_id=topic.id, label=topic.label, similarity=similarity)
        return best

    async def create_topic(
        self, user_id: str, label: str, embedding: list[float], description: str | None = None
    ) -> Topic:
        topic = Topic(
            id=new_id(),
            user_id=user_id,
            label=label,
            embedding=list(embedding),
            query_count=1,
            description=description,
        )
        self._topics[topic.id] = topic
        return replace(topic, embedding=list(topic.embedding))

    async def absorb_into_topic(self, topic_id: str, embedding: list[float]) -> Topic:
        lock = self._topic_locks.setdefault(topic_id, asyncio.Lock())
        async with lock:
            topic = self._topics.get(topic_id)
            if topic is None:
                raise TopicNotFoundError(topic_id)
            topic.embedding = running_mean(topic.embedding, topic.query_count, embedding)
            topic.query_count += 1
            topic.updated_at = utcnow()
            return replace(topic, embedding=list(topic.embedding))

    async def get_topic(self, topic_id: str) -> Topic | None:
        topic = self._topics.get(topic_id)
        return replace(topic, embedding=list(topic.embedding)) if topic else None

    async def list_user_topics(self, user_id: str) -> list[Topic]:
        topics = [t for t in self._topics.values() if t.user_id == user_id]
        topics.sort(key=lambda t: t.created_at)
        return [replace(t, embedding=list(t.embedding)) for t in topics]

    async def list_topic_owners(self) -> list[str]:
        return sorted({topic.user_id for topic in self._topics.values()})

    async def list_user_sources(self, user_id: str) -> list[ScopedSource]:
        scoped: list[ScopedSource] = []
        for source in self._sources.values():
            query = self._queries.get(source.query_id) if source.query_id else None
            if query is None or query.user_id != user_id:
                continue
            scoped.append(
                ScopedSource(
                    source_id=source.id,
                    title=source.title,
                    url=source.url,
                    embedding=source.embedding,
                    query_id=query.id,
                    topic_id=query.topic_id,
                )
            )
        return scoped

    # --- Analysis artifacts ---

    async def insert_connections(self, connections: list[Connection]) -> int:
        async with self._write_lock:
            for connection in connections:
                for source_id in (connection.source_a_id, connection.source_b_id):
                    if source_id not in self._sources:
                        raise SourceNotFoundError(source_id)
            for connection in connections:
                self._connections[connection.id] = replace(connection)
        return len(connections)

    async def connections_referencing(self, source_id: str) -> list[Connection]:
        return [
            replace(c)
            for c in self._connections.values()
            if c.source_a_id == source_id or c.source_b_id == source_id
        ]

    async def list_contradictions(self, user_id: str, limit: int = 10) -> list[Contradiction]:
        found: list[Contradiction] = []
        for connection in self._connections.values():
            if connection.relationship != Relationship.CONTRADICTS:
                continue
            query = self._queries.get(connection.query_id)
            source_a = self._sources.get(connection.source_a_id)
            source_b = self._sources.get(connection.source_b_id)
            if query is None or query.user_id != user_id or source_a is None or source_b is None:
                continue
            found.append(
                Contradiction(
                    query_id=query.id,
                    source_a_id=source_a.id,
                    source_a_title=source_a.title,
                    source_b_id=source_b.id,
                    source_b_title=source_b.title,
                    explanation=connection.explanation,
                    strength=connection.strength,
                )
            )
        found.sort(key=lambda c: (-c.strength, c.source_a_id, c.source_b_id))
        return found[: max(int(limit), 0)]

    async def insert_synthesis(self, synthesis: Synthesis) -> None:
        self._syntheses[synthesis.query_id] = replace(synthesis)

    async def get_synthesis(self, query_id: str) -> Synthesis | None:
        synthesis = self._syntheses.get(query_id)
        return replace(synthesis) if synthesis else None

    # --- Research directions ---

    async def create_direction(self, direction: ResearchDirection) -> ResearchDirection:
        stored = replace(direction, status=DirectionStatus.SEARCHING)
        self._directions[stored.id] = stored
        return replace(stored)

    async def finish_direction(
        self,
        direction_id: str,
        status: DirectionStatus,
        *,
        sources_found: int = 0,
        bridge_score_after: float | None = None,
        error: str | None = None,
        query_id: str | None = None,
    ) -> ResearchDirection:
        if not DirectionStatus(status).is_terminal:
            raise ValidationError(f"{status} is not a terminal direction status")
        direction = self._directions.get(direction_id)
        if direction is None:
            raise NotFoundError(f"Research direction {direction_id} not found")
        if direction.status.is_terminal:
            raise DirectionStateError(direction_id, direction.status.value)
        direction.status = DirectionStatus(status)
        direction.sources_found = sources_found
        direction.bridge_score_after = bridge_score_after
        direction.error = error
        direction.query_id = query_id or direction.query_id
        direction.completed_at = utcnow()
        return replace(direction)

    async def get_direction(self, direction_id: str) -> ResearchDirection | None:
        direction = self._directions.get(direction_id)
        return replace(direction) if direction else None

    async def active_direction_pairs(self) -> set[tuple[str, str]]:
        return {
            canonical_pair(d.topic_a_id, d.topic_b_id)
            for d in self._directions.values()
            if d.status == DirectionStatus.SEARCHING
        }

    async def expire_stale_directions(self, older_than_seconds: float) -> int:
        cutoff = utcnow() - timedelta(seconds=older_than_seconds)
        expired = 0
        for direction in self._directions.values():
            if direction.status == DirectionStatus.SEARCHING and direction.created_at < cutoff:
                direction.status = DirectionStatus.FAILED
                direction.error = STALE_DIRECTION_ERROR
                direction.completed_at = utcnow()
                expired += 1
        return expired

    async def recent_directions(
        self,
        user_id: str,
        limit: int = 10,
        statuses: Iterable[DirectionStatus] | None = None,
    ) -> list[ResearchDirection]:
        wanted = {DirectionStatus(s) for s in statuses} if statuses is not None else None
        owned = [
            d
            for d in self._directions.values()
            if d.user_id == user_id and (wanted is None or d.status in wanted)
        ]
        owned.sort(key=lambda d: d.completed_at or d.created_at, reverse=True)
        return [replace(d) for d in owned[:limit]]

    async def refresh_topic_similarities(self) -> None:
        self.refresh_count += 1

    async def close(self) -> None:
        return None
