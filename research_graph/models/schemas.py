from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field

from research_graph.models.graph import OriginType, SourceDraft


# --- Requests ---


class SearchRequest(BaseModel):
    query: str
    max_results: int | None = Field(default=None, ge=1, le=25)


class AutoResearchRequest(BaseModel):
    max_directions: int | None = Field(default=None, ge=1)


class SourceRecord(BaseModel):
    """One harvested document per line of an ingest file."""

    origin: OriginType
    url: str
    title: str = Field(min_length=1)
    snippet: str = ""
    full_text: str = ""
    external_id: str | None = None
    doi: str | None = None
    author: str | None = None
    published_at: datetime | None = None

    def to_draft(self) -> SourceDraft:
        return SourceDraft(
            origin=self.origin,
            url=self.url,
            title=self.title,
            snippet=self.snippet,
            full_text=self.full_text,
            external_id=self.external_id or None,
            doi=self.doi.strip().lower() if self.doi else None,
            author=self.author,
            published_at=self.published_at,
        )


class DedupRequest(BaseModel):
    similarity_threshold: float | None = Field(default=None, gt=0, le=1)
    batch_size: int | None = Field(default=None, ge=1)
    max_pairs: int | None = Field(default=None, ge=1)
    dry_run: bool = False


# --- Responses ---


class SourceResponse(BaseModel):
    id: str
    origin: str
    title: str
    url: str
    snippet: str
    author: str | None = None
    published_at: datetime | None = None


class TopicResponse(BaseModel):
    id: str
    label: str
    is_new: bool


class ConnectionResponse(BaseModel):
    source_a_id: str
    source_b_id: str
    relationship: str
    explanation: str
    strength: float


class RelatedSourceResponse(BaseModel):
    source_index: int
    matched_source_id: str
    matched_title: str
    matched_url: str
    matched_query_text: str | None
    similarity: float


class SearchResponse(BaseModel):
    query_id: str
    provider: str
    topic: TopicResponse | None
    sources: list[SourceResponse]
    connections: list[ConnectionResponse]
    related: list[RelatedSourceResponse]
    synthesis: str | None
    gaps: list[str]
    follow_up_questions: list[str]


class GapResponse(BaseModel):
    topic_a_id: str
    topic_a_label: str
    topic_b_id: str
    topic_b_label: str
    topic_similarity: float
    best_bridge_score: float


class BridgeResponse(BaseModel):
    source_id: str
    source_title: str
    source_url: str
    topic_a_id: str
    topic_a_label: str
    topic_b_id: str
    topic_b_label: str
    bridge_score: float


class DensityResponse(BaseModel):
    topic_id: str
    topic_label: str
    query_count: int
    source_count: int
    avg_similarity: float
    stddev_similarity: float
    min_similarity: float
    max_similarity: float


class GraphNodeResponse(BaseModel):
    id: str
    label: str
    query_count: int
    source_count: int


class GraphEdgeResponse(BaseModel):
    source: str
    target: str
    kind: str
    score: float
    count: int


class GraphViewResponse(BaseModel):
    nodes: list[GraphNodeResponse]
    edges: list[GraphEdgeResponse]


class PairScoreResponse(BaseModel):
    topic_a_id: str
    topic_b_id: str
    min_similarity: float
    bridge_score: float


class DirectionResponse(BaseModel):
    id: str
    topic_a_id: str
    topic_b_id: str
    bridge_query: str
    status: str
    sources_found: int
    bridge_score_before: float
    bridge_score_after: float | None
    error: str | None
    created_at: datetime
    completed_at: datetime | None


class TrajectoryPointResponse(BaseModel):
    query_id: str
    raw_input: str
    topic_id: str
    topic_label: str
    movement_type: str
    similarity_to_previous: float | None
    created_at: datetime


class ContradictionResponse(BaseModel):
    source_a_id: str
    source_a_title: str
    source_b_id: str
    source_b_title: str
    explanation: str
    strength: float


class InsightsResponse(BaseModel):
    gaps: list[GapResponse]
    bridges: list[BridgeResponse]
    density: list[DensityResponse]
    trajectory: list[TrajectoryPointResponse]
    contradictions: list[ContradictionResponse]
    recent_research: list[DirectionResponse]


class DirectionOutcomeResponse(BaseModel):
    direction_id: str | None
    topic_a: str
    topic_b: str
    bridge_query: str
    status: str
    sources_found: int
    bridge_score_before: float
    bridge_score_after: float | None
    error: str | None = None


class AutoResearchResponse(BaseModel):
    directions_processed: int
    completed: int
    exhausted: int
    failed: int
    total_sources_added: int
    results: list[DirectionOutcomeResponse]


class DuplicatePairResponse(BaseModel):
    source_a_id: str
    source_a_origin: str
    source_b_id: str
    source_b_origin: str
    similarity: float


class MergeResponse(BaseModel):
    winner_id: str
    loser_id: str
    connections_repointed: int
    doi_copied: bool


class DedupFailureResponse(BaseModel):
    source_a_id: str
    source_b_id: str
    error: str


class DedupResponse(BaseModel):
    dry_run: bool
    duplicates_found: int
    merged: int
    failed: int
    skipped: int
    pairs: list[DuplicatePairResponse]
    merges: list[MergeResponse]
    failures: list[DedupFailureResponse]
