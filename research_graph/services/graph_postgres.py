"""PostgreSQL + pgvector graph store using asyncpg."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Iterable

import asyncpg
from loguru import logger

from research_graph.errors import (
    DirectionStateError,
    NotFoundError,
    SourceNotFoundError,
    TopicNotFoundError,
    ValidationError,
)
from research_graph.graph.vectors import parse_embedding, running_mean, to_pgvector
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
    SourceRef,
    Synthesis,
    Topic,
    TopicMatch,
)
from research_graph.services import logger as log_service
from research_graph.services.graph_store import STALE_DIRECTION_ERROR

SCHEMA_PATH = Path(__file__).resolve().parent.parent / "db" / "schema.sql"

# Nearest neighbours inspected per recent source when looking for duplicates
DUPLICATE_NEIGHBOURS = 5

SOURCE_COLUMNS = """
    id::text AS id, origin, external_id, doi, query_id::text AS query_id, url, title,
    snippet, full_text, author, published_at, embedding::text AS embedding, created_at
"""

TOPIC_COLUMNS = """
    id::text AS id, user_id, label, description, embedding::text AS embedding,
    query_count, created_at, updated_at
"""

QUERY_COLUMNS = "id::text AS id, user_id, raw_input, topic_id::text AS topic_id, created_at"

CONNECTION_COLUMNS = """
    id::text AS id, query_id::text AS query_id, source_a_id::text AS source_a_id,
    source_b_id::text AS source_b_id, relationship, explanation, strength
"""

DIRECTION_COLUMNS = """
    id::text AS id, user_id, topic_a_id::text AS topic_a_id, topic_b_id::text AS topic_b_id,
    bridge_query, status, bridge_score_before, bridge_score_after, sources_found, error,
    query_id::text AS query_id, created_at, completed_at
"""


def _affected(status: str) -> int:
    """Row count from an asyncpg command tag such as ``'UPDATE 3'``."""
    try:
        return int(status.split()[-1])
    except (AttributeError, IndexError, ValueError):
        return 0


def _row_to_source(row: Any) -> Source:
    return Source(
        id=row["id"],
        origin=OriginType(row["origin"]),
        url=row["url"],
        title=row["title"],
        snippet=row["snippet"] or "",
        full_text=row["full_text"] or "",
        external_id=row["external_id"],
        doi=row["doi"],
        query_id=row["query_id"],
        author=row["author"],
        published_at=row["published_at"],
        embedding=parse_embedding(row["embedding"]),
        created_at=row["created_at"],
    )


def _row_to_topic(row: Any) -> Topic:
    return Topic(
        id=row["id"],
        user_id=row["user_id"],
        label=row["label"],
        description=row["description"],
        embedding=parse_embedding(row["embedding"]),
        query_count=int(row["query_count"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_query(row: Any) -> Query:
    return Query(
        id=row["id"],
        user_id=row["user_id"],
        text=row["raw_input"],
        topic_id=row["topic_id"],
        created_at=row["created_at"],
    )


def _row_to_connection(row: Any) -> Connection:
    return Connection(
        id=row["id"],
        query_id=row["query_id"],
        source_a_id=row["source_a_id"],
        source_b_id=row["source_b_id"],
        relationship=Relationship(row["relationship"]),
        explanation=row["explanation"],
        strength=float(row["strength"]),
    )


def _row_to_direction(row: Any) -> ResearchDirection:
    after = row["bridge_score_after"]
    return ResearchDirection(
        id=row["id"],
        user_id=row["user_id"],
        topic_a_id=row["topic_a_id"],
        topic_b_id=row["topic_b_id"],
        bridge_query=row["bridge_query"],
        status=DirectionStatus(row["status"]),
        bridge_score_before=float(row["bridge_score_before"]),
        bridge_score_after=float(after) if after is not None else None,
        sources_found=int(row["sources_found"]),
        error=row["error"],
        query_id=row["query_id"],
        created_at=row["created_at"],
        completed_at=row["completed_at"],
    )


class PostgresGraphStore:
    def __init__(self, pool: Any):
        self._pool = pool

    @classmethod
    async def connect(cls, dsn: str, *, min_size: int = 1, max_size: int = 10) -> PostgresGraphStore:
        if not dsn:
            raise RuntimeError("Database not configured. Set DATABASE_URL in .env")
        pool = await asyncpg.create_pool(dsn, min_size=min_size, max_size=max_size)
        return cls(pool)

    async def close(self) -> None:
        await self._pool.close()

    async def init_schema(self) -> None:
        sql = SCHEMA_PATH.read_text(encoding="utf-8")
        async with self._pool.acquire() as conn:
            await conn.execute(sql)
        log_service.log_graph_operation("init_schema", "database", "success")

    # --- Queries ---

    async def create_query(self, user_id: str, text: str) -> Query:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO queries (user_id, raw_input)
                VALUES ($1, $2)
                RETURNING {QUERY_COLUMNS}
                """,
                user_id,
                text,
            )
            return _row_to_query(row)

    async def get_query(self, query_id: str) -> Query | None:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {QUERY_COLUMNS} FROM queries WHERE id = $1::uuid",
                query_id,
            )
            return _row_to_query(row) if row else None

    async def recent_user_queries(self, user_id: str, limit: int = 30) -> list[Query]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {QUERY_COLUMNS} FROM queries
                WHERE user_id = $1 AND topic_id IS NOT NULL
                ORDER BY created_at DESC
                LIMIT $2
                """,
                user_id,
                limit,
            )
        return [_row_to_query(r) for r in reversed(rows)]

    async def assign_query_topic(self, query_id: str, topic_id: str) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(
                """
                UPDATE queries SET topic_id = $2::uuid
                WHERE id = $1::uuid AND topic_id IS NULL
                """,
                query_id,
                topic_id,
            )

    # --- Sources ---

    async def insert_sources(self, drafts: list[SourceDraft]) -> list[Source]:
        """Insert drafts in order; a conflicting draft yields the row already stored."""
        if not drafts:
            return []
        stored: list[Source] = []
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                for draft in drafts:
                    row = await conn.fetchrow(
                        f"""
                        INSERT INTO sources (
                            origin, external_id, doi, query_id, url, title, snippet,
                            full_text, author, published_at, embedding
                        )
                        VALUES ($1, $2, $3, $4::uuid, $5, $6, $7, $8, $9, $10, $11::vector)
                        ON CONFLICT DO NOTHING
                        RETURNING {SOURCE_COLUMNS}
                        """,
                        OriginType(draft.origin).value,
                        draft.external_id,
                        draft.doi,
                        draft.query_id,
                        draft.url,
                        draft.title,
                        draft.snippet,
                        draft.full_text,
                        draft.author,
                        draft.published_at,
                        to_pgvector(draft.embedding),
                    )
                    if row is None:
                        row = await conn.fetchrow(
                            f"""
                            SELECT {SOURCE_COLUMNS} FROM sources
                            WHERE (origin = $1 AND external_id = $2) OR doi = $3
                            LIMIT 1
                            """,
                            OriginType(draft.origin).value,
                            draft.external_id,
                            draft.doi,
                        )
                    stored.append(_row_to_source(row))
        return stored

    async def existing_external_ids(self, origin: OriginType, external_ids: list[str]) -> set[str]:
        if not external_ids:
            return set()
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT external_id FROM sources
                WHERE origin = $1 AND external_id = ANY($2::text[])
                """,
                OriginType(origin).value,
                external_ids,
            )
            return {r["external_id"] for r in rows}

    async def existing_dois(self, dois: list[str]) -> set[str]:
        if not dois:
            return set()
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                "SELECT doi FROM sources WHERE doi = ANY($1::text[])",
                dois,
            )
            return {r["doi"] for r in rows}

    async def get_source(self, source_id: str) -> Source | None:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {SOURCE_COLUMNS} FROM sources WHERE id = $1::uuid",
                source_id,
            )
            return _row_to_source(row) if row else None

    async def match_sources(
        self,
        embedding: list[float],
        *,
        threshold: float,
        limit: int,
        exclude_query_id: str | None = None,
    ) -> list[SourceMatch]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT s.id::text AS id, s.title, s.url, s.query_id::text AS query_id,
                       q.raw_input AS query_text,
                       1 - (s.embedding <=> $1::vector) AS similarity
                FROM sources s
                LEFT JOIN queries q ON q.id = s.query_id
                WHERE ($4::uuid IS NULL OR s.query_id IS DISTINCT FROM $4::uuid)
                  AND 1 - (s.embedding <=> $1::vector) >= $2
                ORDER BY s.embedding <=> $1::vector, s.id
                LIMIT $3
                """,
                to_pgvector(embedding),
                threshold,
                limit,
                exclude_query_id,
            )
        return [
            SourceMatch(
                source_id=r["id"],
                title=r["title"],
                url=r["url"],
                similarity=float(r["similarity"]),
                query_id=r["query_id"],
                query_text=r["query_text"],
            )
            for r in rows
        ]

    async def find_duplicate_sources(
        self, *, threshold: float, scan_batch_size: int, max_pairs: int
    ) -> list[DuplicatePair]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                WITH recent AS (
                    SELECT id, embedding FROM sources
                    ORDER BY created_at DESC
                    LIMIT $2
                ),
                candidates AS (
                    SELECT DISTINCT ON (LEAST(r.id, n.id), GREATEST(r.id, n.id))
                        LEAST(r.id, n.id) AS a_id,
                        GREATEST(r.id, n.id) AS b_id,
                        n.similarity
                    FROM recent r
                    CROSS JOIN LATERAL (
                        SELECT s.id, 1 - (s.embedding <=> r.embedding) AS similarity
                        FROM sources s
                        WHERE s.id <> r.id
                        ORDER BY s.embedding <=> r.embedding
                        LIMIT $4
                    ) n
                    WHERE n.similarity >= $1
                    ORDER BY LEAST(r.id, n.id), GREATEST(r.id, n.id), n.similarity DESC
                )
                SELECT c.a_id::text AS a_id, a.origin AS a_origin, a.doi AS a_doi, a.title AS a_title,
                       c.b_id::text AS b_id, b.origin AS b_origin, b.doi AS b_doi, b.title AS b_title,
                       c.similarity
                FROM candidates c
                JOIN sources a ON a.id = c.a_id
                JOIN sources b ON b.id = c.b_id
                ORDER BY c.similarity DESC, c.a_id, c.b_id
                LIMIT $3
                """,
                threshold,
                scan_batch_size,
                max_pairs,
                DUPLICATE_NEIGHBOURS,
            )
        return [
            DuplicatePair(
                source_a=SourceRef(
                    id=r["a_id"], origin=OriginType(r["a_origin"]), doi=r["a_doi"], title=r["a_title"]
                ),
                source_b=SourceRef(
                    id=r["b_id"], origin=OriginType(r["b_origin"]), doi=r["b_doi"], title=r["b_title"]
                ),
                similarity=float(r["similarity"]),
            )
            for r in rows
        ]

    async def merge_sources(self, winner_id: str, loser_id: str) -> MergeResult:
        """Re-point connections, backfill identifiers, then delete the loser, in one transaction."""
        if winner_id == loser_id:
            raise ValidationError("Cannot merge a source into itself")
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                rows = await conn.fetch(
                    """
                    SELECT id::text AS id, origin, doi, title, query_id::text AS query_id
                    FROM sources
                    WHERE id = ANY($1::uuid[])
                    ORDER BY id
                    FOR UPDATE
                    """,
                    [winner_id, loser_id],
                )
                by_id = {r["id"]: r for r in rows}
                if winner_id not in by_id:
                    raise SourceNotFoundError(winner_id)
                if loser_id not in by_id:
                    raise SourceNotFoundError(loser_id)
                winner, loser = by_id[winner_id], by_id[loser_id]

                repointed = _affected(
                    await conn.execute(
                        "UPDATE connections SET source_a_id = $1::uuid WHERE source_a_id = $2::uuid",
                        winner_id,
                        loser_id,
                    )
                )
                repointed += _affected(
                    await conn.execute(
                        "UPDATE connections SET source_b_id = $1::uuid WHERE source_b_id = $2::uuid",
                        winner_id,
                        loser_id,
                    )
                )

                doi_copied = False
                if loser["doi"] and not winner["doi"]:
                    # Release the unique DOI on the loser before the winner takes it
                    await conn.execute(
                        "UPDATE sources SET doi = NULL WHERE id = $1::uuid",
                        loser_id,
                    )
                    await conn.execute(
                        "UPDATE sources SET doi = $2 WHERE id = $1::uuid",
                        winner_id,
                        loser["doi"],
                    )
                    doi_copied = True
                if loser["query_id"] and not winner["query_id"]:
                    await conn.execute(
                        "UPDATE sources SET query_id = $2::uuid WHERE id = $1::uuid",
                        winner_id,
                        loser["query_id"],
                    )

                await conn.execute("DELETE FROM sources WHERE id = $1::uuid", loser_id)

        return MergeResult(
            winner=SourceRef(
                id=winner_id,
                origin=OriginType(winner["origin"]),
                doi=winner["doi"] or (loser["doi"] if doi_copied else None),
                title=winner["title"],
            ),
            loser=SourceRef(
                id=loser_id, origin=OriginType(loser["origin"]), doi=loser["doi"], title=loser["title"]
            ),
            connections_repointed=repointed,
            doi_copied=doi_copied,
        )

    # --- Topics ---

    async def match_user_topic(
        self, user_id: str, embedding: list[float], threshold: float
    ) -> TopicMatch | None:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                """
                SELECT id::text AS id, label, 1 - (embedding <=> $2::vector) AS similarity
                FROM topics
                WHERE user_id = $1 AND 1 - (embedding <=> $2::vector) >= $3
                ORDER BY embedding <=> $2::vector, id
                LIMIT 1
                """,
                user_id,
                to_pgvector(embedding),
                threshold,
            )
        if row is None:
            return None
        return TopicMatch(topic_id=row["id"], label=row["label"], similarity=float(row["similarity"]))

    async def create_topic(
        self, user_id: str, label: str, embedding: list[float], description: str | None = None
    ) -> Topic:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO topics (user_id, label, description, embedding, query_count)
                VALUES ($1, $2, $3, $4::vector, 1)
                RETURNING {TOPIC_COLUMNS}
                """,
                user_id,
                label,
                description,
                to_pgvector(embedding),
            )
            return _row_to_topic(row)

    async def absorb_into_topic(self, topic_id: str, embedding: list[float]) -> Topic:
        """Running-mean update under a row lock so concurrent members are never lost."""
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                row = await conn.fetchrow(
                    f"SELECT {TOPIC_COLUMNS} FROM topics WHERE id = $1::uuid FOR UPDATE",
                    topic_id,
                )
                if row is None:
                    raise TopicNotFoundError(topic_id)
                current = _row_to_topic(row)
                centroid = running_mean(current.embedding, current.query_count, embedding)
                updated = await conn.fetchrow(
                    f"""
                    UPDATE topics
                    SET embedding = $2::vector, query_count = query_count + 1, updated_at = now()
                    WHERE id = $1::uuid
                    RETURNING {TOPIC_COLUMNS}
                    """,
                    topic_id,
                    to_pgvector(centroid),
                )
                return _row_to_topic(updated)

    async def get_topic(self, topic_id: str) -> Topic | None:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {TOPIC_COLUMNS} FROM topics WHERE id = $1::uuid",
                topic_id,
            )
            return _row_to_topic(row) if row else None

    async def list_user_topics(self, user_id: str) -> list[Topic]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"SELECT {TOPIC_COLUMNS} FROM topics WHERE user_id = $1 ORDER BY created_at",
                user_id,
            )
            return [_row_to_topic(r) for r in rows]

    async def list_topic_owners(self) -> list[str]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch("SELECT DISTINCT user_id FROM topics ORDER BY user_id")
            return [r["user_id"] for r in rows]

    async def list_user_sources(self, user_id: str) -> list[ScopedSource]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT s.id::text AS source_id, s.title, s.url, s.embedding::text AS embedding,
                       q.id::text AS query_id, q.topic_id::text AS topic_id
                FROM sources s
                JOIN queries q ON q.id = s.query_id
                WHERE q.user_id = $1
                """,
                user_id,
            )
        return [
            ScopedSource(
                source_id=r["source_id"],
                title=r["title"],
                url=r["url"],
                embedding=parse_embedding(r["embedding"]),
                query_id=r["query_id"],
                topic_id=r["topic_id"],
            )
            for r in rows
        ]

    # --- Analysis artifacts ---

    async def insert_connections(self, connections: list[Connection]) -> int:
        if not connections:
            return 0
        async with self._pool.acquire() as conn:
            async with conn.transaction():
                await conn.executemany(
                    """
                    INSERT INTO connections (
                        id, query_id, source_a_id, source_b_id, relationship, explanation, strength
                    )
                    VALUES ($1::uuid, $2::uuid, $3::uuid, $4::uuid, $5, $6, $7)
                    """,
                    [
                        (
                            c.id,
                            c.query_id,
                            c.source_a_id,
                            c.source_b_id,
                            Relationship(c.relationship).value,
                            c.explanation,
                            c.strength,
                        )
                        for c in connections
                    ],
                )
        return len(connections)

    async def connections_referencing(self, source_id: str) -> list[Connection]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {CONNECTION_COLUMNS} FROM connections
                WHERE source_a_id = $1::uuid OR source_b_id = $1::uuid
                """,
                source_id,
            )
            return [_row_to_connection(r) for r in rows]

    async def list_contradictions(self, user_id: str, limit: int = 10) -> list[Contradiction]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT c.query_id::text AS query_id,
                       a.id::text AS a_id, a.title AS a_title,
                       b.id::text AS b_id, b.title AS b_title,
                       c.explanation, c.strength
                FROM connections c
                JOIN queries q ON q.id = c.query_id
                JOIN sources a ON a.id = c.source_a_id
                JOIN sources b ON b.id = c.source_b_id
                WHERE q.user_id = $1 AND c.relationship = 'contradicts'
                ORDER BY c.strength DESC, c.created_at DESC
                LIMIT $2
                """,
                user_id,
                limit,
            )
        return [
            Contradiction(
                query_id=r["query_id"],
                source_a_id=r["a_id"],
                source_a_title=r["a_title"],
                source_b_id=r["b_id"],
                source_b_title=r["b_title"],
                explanation=r["explanation"],
                strength=float(r["strength"]),
            )
            for r in rows
        ]

    async def insert_synthesis(self, synthesis: Synthesis) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(
                """
                INSERT INTO syntheses (query_id, summary, gaps_identified, follow_up_questions, model)
                VALUES ($1::uuid, $2, $3::text[], $4::text[], $5)
                ON CONFLICT (query_id) DO NOTHING
                """,
                synthesis.query_id,
                synthesis.summary,
                synthesis.gaps,
                synthesis.follow_up_questions,
                synthesis.model,
            )

    # --- Research directions ---

    async def create_direction(self, direction: ResearchDirection) -> ResearchDirection:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                INSERT INTO research_directions (
                    id, user_id, topic_a_id, topic_b_id, bridge_query, status, bridge_score_before
                )
                VALUES ($1::uuid, $2, $3::uuid, $4::uuid, $5, 'searching', $6)
                RETURNING {DIRECTION_COLUMNS}
                """,
                direction.id,
                direction.user_id,
                direction.topic_a_id,
                direction.topic_b_id,
                direction.bridge_query,
                direction.bridge_score_before,
            )
            return _row_to_direction(row)

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
        status = DirectionStatus(status)
        if not status.is_terminal:
            raise ValidationError(f"{status.value} is not a terminal direction status")
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"""
                UPDATE research_directions
                SET status = $2, sources_found = $3, bridge_score_after = $4, error = $5,
                    query_id = COALESCE($6::uuid, query_id), completed_at = now()
                WHERE id = $1::uuid AND status = 'searching'
                RETURNING {DIRECTION_COLUMNS}
                """,
                direction_id,
                status.value,
                sources_found,
                bridge_score_after,
                error,
                query_id,
            )
            if row is not None:
                return _row_to_direction(row)
            current = await conn.fetchrow(
                "SELECT status FROM research_directions WHERE id = $1::uuid",
                direction_id,
            )
        if current is None:
            raise NotFoundError(f"Research direction {direction_id} not found")
        raise DirectionStateError(direction_id, current["status"])

    async def get_direction(self, direction_id: str) -> ResearchDirection | None:
        async with self._pool.acquire() as conn:
            row = await conn.fetchrow(
                f"SELECT {DIRECTION_COLUMNS} FROM research_directions WHERE id = $1::uuid",
                direction_id,
            )
            return _row_to_direction(row) if row else None

    async def active_direction_pairs(self) -> set[tuple[str, str]]:
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                """
                SELECT LEAST(topic_a_id, topic_b_id)::text AS a_id,
                       GREATEST(topic_a_id, topic_b_id)::text AS b_id
                FROM research_directions
                WHERE status = 'searching'
                """
            )
            return {(r["a_id"], r["b_id"]) for r in rows}

    async def expire_stale_directions(self, older_than_seconds: float) -> int:
        """Fail `searching` rows left behind by a crashed run so their pair frees up."""
        async with self._pool.acquire() as conn:
            status = await conn.execute(
                """
                UPDATE research_directions
                SET status = 'failed', error = $2, completed_at = now()
                WHERE status = 'searching' AND created_at < now() - make_interval(secs => $1)
                """,
                float(older_than_seconds),
                STALE_DIRECTION_ERROR,
            )
        return _affected(status)

    async def recent_directions(
        self,
        user_id: str,
        limit: int = 10,
        statuses: Iterable[DirectionStatus] | None = None,
    ) -> list[ResearchDirection]:
        wanted = [DirectionStatus(s).value for s in statuses] if statuses is not None else None
        async with self._pool.acquire() as conn:
            rows = await conn.fetch(
                f"""
                SELECT {DIRECTION_COLUMNS} FROM research_directions
                WHERE user_id = $1 AND ($3::text[] IS NULL OR status = ANY($3::text[]))
                ORDER BY COALESCE(completed_at, created_at) DESC
                LIMIT $2
                """,
                user_id,
                limit,
                wanted,
            )
            return [_row_to_direction(r) for r in rows]

    async def refresh_topic_similarities(self) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute("REFRESH MATERIALIZED VIEW CONCURRENTLY topic_similarities")
        logger.debug("Refreshed topic_similarities")
