from __future__ import annotations

from typing import Iterable, Protocol

from research_graph.config import Settings, settings
from research_graph.models.graph import (
    Connection,
    Contradiction,
    DirectionStatus,
    DuplicatePair,
    MergeResult,
    OriginType,
    Query,
    ResearchDirection,
    ScopedSource,
    Source,
    SourceDraft,
    SourceMatch,
    Synthesis,
    Topic,
    TopicMatch,
)


class GraphStore(Protocol):
    # Queries
    async def create_query(self, user_id: str, text: str) -> Query: ...
    async def get_query(self, query_id: str) -> Query | None: ...
    # Latest topic-assigned queries, returned oldest first
    async def recent_user_queries(self, user_id: str, limit: int = 30) -> list[Query]: ...
    async def assign_query_topic(self, query_id: str, topic_id: str) -> None: ...

    # Sources
    async def insert_sources(self, drafts: list[SourceDraft]) -> list[Source]: ...
    async def existing_external_ids(self, origin: OriginType, external_ids: list[str]) -> set[str]: ...
    async def existing_dois(self, dois: list[str]) -> set[str]: ...
    async def get_source(self, source_id: str) -> Source | None: ...
    async def match_sources(
        self,
        embedding: list[float],
        *,
        threshold: float,
        limit: int,
        exclude_query_id: str | None = None,
    ) -> list[SourceMatch]: ...
    async def find_duplicate_sources(
        self, *, threshold: float, scan_batch_size: int, max_pairs: int
    ) -> list[DuplicatePair]: ...
    async def merge_sources(self, winner_id: str, loser_id: str) -> MergeResult: ...

    # Topics
    async def match_user_topic(
        self, user_id: str, embedding: list[float], threshold: float
    ) -> TopicMatch | None: ...
    async def create_topic(
        self, user_id: str, label: str, embedding: list[float], description: str | None = None
    ) -> Topic: ...
    async def absorb_into_topic(self, topic_id: str, embedding: list[float]) -> Topic: ...
    async def get_topic(self, topic_id: str) -> Topic | None: ...
    async def list_user_topics(self, user_id: str) -> list[Topic]: ...
    async def list_topic_owners(self) -> list[str]: ...
    async def list_user_sources(self, user_id: str) -> list[ScopedSource]: ...

    # Analysis artifacts
    async def insert_connections(self, connections: list[Connection]) -> int: ...
    async def connections_referencing(self, source_id: str) -> list[Connection]: ...
    async def list_contradictions(self, user_id: str, limit: int = 10) -> list[Contradiction]: ...
    async def insert_synthesis(self, synthesis: Synthesis) -> None: ...

    # Research directions
    async def create_direction(self, direction: ResearchDirection) -> ResearchDirection: ...
    async def finish_direction(
        self,
        direction_id: str,
        status: DirectionStatus,
        *,
        sources_found: int = 0,
        bridge_score_after: float | None = None,
        error: str | None = None,
        query_id: str | None = None,
    ) -> ResearchDirection: ...
    async def get_direction(self, direction_id: str) -> ResearchDirection | None: ...
    async def active_direction_pairs(self) -> set[tuple[str, str]]: ...
    async def expire_stale_directions(self, older_than_seconds: float) -> int: ...
    async def recent_directions(
        self,
        user_id: str,
        limit: int = 10,
        statuses: Iterable[DirectionStatus] | None = None,
    ) -> list[ResearchDirection]: ...

    async def refresh_topic_similarities(self) -> None: ...
    async def close(self) -> None: ...


STALE_DIRECTION_ERROR = "stale: direction never finished"


def canonical_pair(a: str, b: str) -> tuple[str, str]:
    return (a, b) if a <= b else (b, a)


async def get_graph_store(config: Settings | None = None) -> GraphStore:
    """Build the configured store. The caller owns it and must ``close()`` it."""
    config = config or settings
    backend = config.graph_backend.lower().strip()
    if backend == "memory":
        from research_graph.services.graph_memory import InMemoryGraphStore

        return InMemoryGraphStore()
    if backend == "postgres":
        from research_graph.services.graph_postgres import PostgresGraphStore

        return await PostgresGraphStore.connect(
            config.database_url,
            min_size=config.database_pool_min_size,
            max_size=config.database_pool_max_size,
        )
    raise ValueError(f"Unsupported GRAPH_BACKEND: {config.graph_backend}")
