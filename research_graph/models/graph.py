from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(UTC)


class OriginType(str, Enum):
    ARXIV = "arxiv"
    OPENALEX = "openalex"
    SEARCH = "search"


# Higher wins a dedup merge.
ORIGIN_PRIORITY: dict[str, int] = {
    OriginType.ARXIV.value: 3,
    OriginType.OPENALEX.value: 2,
    OriginType.SEARCH.value: 1,
}


def origin_priority(origin: OriginType | str) -> int:
    value = origin.value if isinstance(origin, OriginType) else str(origin)
    return ORIGIN_PRIORITY.get(value, 0)


class Relationship(str, Enum):
    AGREES = "agrees"
    CONTRADICTS = "contradicts"
    EXTENDS = "extends"
    GAP = "gap"


class DirectionStatus(str, Enum):
    SEARCHING = "searching"
    COMPLETED = "completed"
    EXHAUSTED = "exhausted"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not DirectionStatus.SEARCHING


# --- Persisted entities ---


@dataclass(slots=True)
class SourceDraft:
    origin: OriginType
    url: str
    title: str
    snippet: str = ""
    full_text: str = ""
    external_id: str | None = None
    doi: str | None = None
    query_id: str | None = None
    author: str | None = None
    published_at: datetime | None = None
    embedding: list[float] = field(default_factory=list)

    def embedding_text(self) -> str:
        body = self.full_text or self.snippet
        return f"{self.title}\n\n{body}".strip()


@dataclass(slots=True)
class Source:
    id: str
    origin: OriginType
    url: str
    title: str
    snippet: str = ""
    full_text: str = ""
    external_id: str | None = None
    doi: str | None = None
    query_id: str | None = None
    author: str | None = None
    published_at: datetime | None = None
    embedding: list[float] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_draft(cls, draft: SourceDraft, source_id: str | None = None) -> Source:
        return cls(
            id=source_id or new_id(),
            origin=OriginType(draft.origin),
            url=draft.url,
            title=draft.title,
            snippet=draft.snippet,
            full_text=draft.full_text,
            external_id=draft.external_id,
            doi=draft.doi,
            query_id=draft.query_id,
            author=draft.author,
            published_at=draft.published_at,
            embedding=list(draft.embedding),
        )

    def ref(self) -> SourceRef:
        return SourceRef(id=self.id, origin=self.origin, doi=self.doi, title=self.title)


@dataclass(slots=True)
class SourceRef:
    id: str
    origin: OriginType
    doi: str | None = None
    title: str = ""


@dataclass(slots=True)
class Topic:
    id: str
    user_id: str
    label: str
    embedding: list[float]
    query_count: int = 1
    description: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Query:
    id: str
    user_id: str
    text: str
    topic_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)


@dataclass(slots=True)
class Connection:
    query_id: str
    source_a_id: str
    source_b_id: str
    relationship: Relationship
    explanation: str
    strength: float
    id: str = field(default_factory=new_id)


@dataclass(slots=True)
class Synthesis:
    query_id: str
    summary: str
    gaps: list[str] = field(default_factory=list)
    follow_up_questions: list[str] = field(default_factory=list)
    model: str = ""


@dataclass(slots=True)
class ResearchDirection:
    id: str
    user_id: str
    topic_a_id: str
    topic_b_id: str
    bridge_query: str
    bridge_score_before: float
    status: DirectionStatus = DirectionStatus.SEARCHING
    bridge_score_after: float | None = None
    sources_found: int = 0
    error: str | None = None
    query_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    completed_at: datetime | None = None


# --- Lookup results ---


@dataclass(slots=True)
class SearchResult:
    url: str
    title: str
    text: str = ""
    summary: str = ""
    highlights: list[str] = field(default_factory=list)
    author: str | None = None
    published_date: str | None = None
    score: float = 0.0

    def snippet(self, limit: int = 500) -> str:
        if self.summary:
            return self.summary
        if self.highlights:
            return " ".join(self.highlights)
        return self.text[:limit]


@dataclass(slots=True)
class TopicMatch:
    topic_id: str
    label: str
    similarity: float


@dataclass(slots=True)
class TopicResult:
    topic_id: str
    label: str
    is_new: bool


@dataclass(slots=True)
class SourceMatch:
    source_id: str
    title: str
    url: str
    similarity: float
    query_id: str | None = None
    query_text: str | None = None


@dataclass(slots=True)
class CrossQueryMatch:
    source_index: int
    matched_source_id: str
    matched_title: str
    matched_url: str
    matched_query_text: str | None
    similarity: float


@dataclass(slots=True)
class DuplicatePair:
    source_a: SourceRef
    source_b: SourceRef
    similarity: float


@dataclass(slots=True)
class MergeResult:
    winner: SourceRef
    loser: SourceRef
    connections_repointed: int = 0
    doi_copied: bool = False


@dataclass(slots=True)
class DedupFailure:
    source_a_id: str
    source_b_id: str
    error: str


@dataclass(slots=True)
class DedupReport:
    dry_run: bool
    duplicates_found: int = 0
    merged: int = 0
    failed: int = 0
    skipped: int = 0
    pairs: list[DuplicatePair] = field(default_factory=list)
    merges: list[MergeResult] = field(default_factory=list)
    failures: list[DedupFailure] = field(default_factory=list)


@dataclass(slots=True)
class ScopedSource:
    """A source reached through one of a user's queries, tagged with that query's topic."""

    source_id: str
    title: str
    url: str
    embedding: list[float]
    query_id: str | None = None
    topic_id: str | None = None


@dataclass(slots=True)
class Bridge:
    source_id: str
    title: str
    url: str
    topic_a_id: str
    topic_a_label: str
    topic_b_id: str
    topic_b_label: str
    similarity_a: float
    similarity_b: float
    score: float


@dataclass(slots=True)
class TopicGap:
    user_id: str
    topic_a_id: str
    topic_a_label: str
    topic_b_id: str
    topic_b_label: str
    topic_similarity: float
    best_bridge_score: float


@dataclass(slots=True)
class TopicDensity:
    topic_id: str
    label: str
    query_count: int
    source_count: int
    avg_similarity: float
    stddev_similarity: float
    min_similarity: float
    max_similarity: float


@dataclass(slots=True)
class TrajectoryPoint:
    query_id: str
    text: str
    topic_id: str
    topic_label: str
    movement_type: str  # start | deepen | adjacent | jump
    similarity_to_previous: float | None
    created_at: datetime


@dataclass(slots=True)
class Contradiction:
    query_id: str
    source_a_id: str
    source_a_title: str
    source_b_id: str
    source_b_title: str
    explanation: str
    strength: float


@dataclass(slots=True)
class GraphNode:
    id: str
    label: str
    query_count: int
    source_count: int


@dataclass(slots=True)
class GraphEdge:
    source: str
    target: str
    kind: str  # bridge | gap
    score: float
    count: int = 0


@dataclass(slots=True)
class GraphView:
    nodes: list[GraphNode] = field(default_factory=list)
    edges: list[GraphEdge] = field(default_factory=list)


@dataclass(slots=True)
class DirectionCandidate:
    user_id: str
    topic_a_id: str
    topic_a_label: str
    topic_b_id: str
    topic_b_label: str
    topic_similarity: float
    best_existing_bridge: float
    priority: float
    topic_a_description: str | None = None
    topic_b_description: str | None = None


@dataclass(slots=True)
class DirectionOutcome:
    topic_a_label: str
    topic_b_label: str
    status: DirectionStatus
    bridge_query: str = ""
    direction_id: str | None = None
    sources_found: int = 0
    bridge_score_before: float = 0.0
    bridge_score_after: float | None = None
    error: str | None = None


@dataclass(slots=True)
class SchedulerReport:
    directions_attempted: int = 0
    outcomes: list[DirectionOutcome] = field(default_factory=list)
    refreshed: bool = False

    def count(self, status: DirectionStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)


@dataclass(slots=True)
class PipelineResult:
    query: Query
    sources: list[Source] = field(default_factory=list)
    topic: TopicResult | None = None
    related: list[CrossQueryMatch] = field(default_factory=list)
    connections: list[Connection] = field(default_factory=list)
    synthesis: Synthesis | None = None
    provider: str = ""

    @property
    def sources_found(self) -> int:
        return len(self.sources)


@dataclass(slots=True)
class IngestReport:
    received: int = 0
    inserted: int = 0
    skipped_existing: int = 0
    skipped_doi: int = 0
    skipped_in_batch: int = 0
