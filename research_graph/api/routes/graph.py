from __future__ import annotations

import asyncio

from fastapi import APIRouter, Depends, Query

from research_graph.api.deps import get_components, get_user_id
from research_graph.components import Components
from research_graph.errors import TopicNotFoundError
from research_graph.models.graph import (
    Bridge,
    Contradiction,
    DirectionStatus,
    ResearchDirection,
    TopicDensity,
    TopicGap,
    TrajectoryPoint,
)
from research_graph.models.schemas import (
    BridgeResponse,
    ContradictionResponse,
    DensityResponse,
    DirectionResponse,
    GapResponse,
    GraphEdgeResponse,
    GraphNodeResponse,
    GraphViewResponse,
    InsightsResponse,
    PairScoreResponse,
    TrajectoryPointResponse,
)

router = APIRouter(prefix="/api/graph", tags=["graph"])

FINISHED_RESEARCH = (DirectionStatus.COMPLETED, DirectionStatus.EXHAUSTED)


def _gap(gap: TopicGap) -> GapResponse:
    return GapResponse(
        topic_a_id=gap.topic_a_id,
        topic_a_label=gap.topic_a_label,
        topic_b_id=gap.topic_b_id,
        topic_b_label=gap.topic_b_label,
        topic_similarity=gap.topic_similarity,
        best_bridge_score=gap.best_bridge_score,
    )


def _bridge(bridge: Bridge) -> BridgeResponse:
    return BridgeResponse(
        source_id=bridge.source_id,
        source_title=bridge.title,
        source_url=bridge.url,
        topic_a_id=bridge.topic_a_id,
        topic_a_label=bridge.topic_a_label,
        topic_b_id=bridge.topic_b_id,
        topic_b_label=bridge.topic_b_label,
        bridge_score=bridge.score,
    )


def _density(row: TopicDensity) -> DensityResponse:
    return DensityResponse(
        topic_id=row.topic_id,
        topic_label=row.label,
        query_count=row.query_count,
        source_count=row.source_count,
        avg_similarity=row.avg_similarity,
        stddev_similarity=row.stddev_similarity,
        min_similarity=row.min_similarity,
        max_similarity=row.max_similarity,
    )


def _direction(direction: ResearchDirection) -> DirectionResponse:
    return DirectionResponse(
        id=direction.id,
        topic_a_id=direction.topic_a_id,
        topic_b_id=direction.topic_b_id,
        bridge_query=direction.bridge_query,
        status=direction.status.value,
        sources_found=direction.sources_found,
        bridge_score_before=direction.bridge_score_before,
        bridge_score_after=direction.bridge_score_after,
        error=direction.error,
        created_at=direction.created_at,
        completed_at=direction.completed_at,
    )


def _trajectory(point: TrajectoryPoint) -> TrajectoryPointResponse:
    return TrajectoryPointResponse(
        query_id=point.query_id,
        raw_input=point.text,
        topic_id=point.topic_id,
        topic_label=point.topic_label,
        movement_type=point.movement_type,
        similarity_to_previous=point.similarity_to_previous,
        created_at=point.created_at,
    )


def _contradiction(row: Contradiction) -> ContradictionResponse:
    return ContradictionResponse(
        source_a_id=row.source_a_id,
        source_a_title=row.source_a_title,
        source_b_id=row.source_b_id,
        source_b_title=row.source_b_title,
        explanation=row.explanation,
        strength=row.strength,
    )


@router.get("/gaps", response_model=list[GapResponse])
async def topic_gaps(
    limit: int = Query(default=10, ge=1, le=100),
    user_id: str = Depends(get_user_id),
    components: Components = Depends(get_components),
):
    gaps = await components.bridges.topic_gaps(user_id, limit=limit)
    return [_gap(g) for g in gaps]


@router.get("/bridges", response_model=list[BridgeResponse])
async def semantic_bridges(
    min_similarity: float | None = Query(default=None, gt=0, le=1),
    limit: int = Query(default=10, ge=1, le=100),
    user_id: str = Depends(get_user_id),
    components: Components = Depends(get_components),
):
    bridges = await components.bridges.semantic_bridges(user_id, min_similarity, limit)
    return [_bridge(b) for b in bridges]


@router.get("/pair-score", response_model=PairScoreResponse)
async def pair_score(
    topic_a: str,
    topic_b: str,
    min_similarity: float | None = Query(default=None, gt=0, le=1),
    user_id: str = Depends(get_user_id),
    components: Components = Depends(get_components),
):
    for topic_id in (topic_a, topic_b):
        topic = await components.store.get_topic(topic_id)
        if topic is None or topic.user_id != user_id:
            raise TopicNotFoundError(topic_id)
    threshold = components.bridges.min_similarity if min_similarity is None else min_similarity
    score = await components.bridges.pair_bridge_score(topic_a, topic_b, threshold)
    return PairScoreResponse(
        topic_a_id=topic_a, topic_b_id=topic_b, min_similarity=threshold, bridge_score=score
    )


@router.get("/density", response_model=list[DensityResponse])
async def knowledge_density(
    user_id: str = Depends(get_user_id),
    components: Components = Depends(get_components),
):
    rows = await components.bridges.knowledge_density(user_id)
    return [_density(r) for r in rows]


@router.get("/view", response_model=GraphViewResponse)
async def graph_view(
    user_id: str = Depends(get_user_id),
    components: Components = Depends(get_components),
):
    view = await components.bridges.graph_view(user_id)
    return GraphViewResponse(
        nodes=[
            GraphNodeResponse(
                id=n.id, label=n.label, query_count=n.query_count, source_count=n.source_count
            )
            for n in view.nodes
        ],
        edges=[
            GraphEdgeResponse(source=e.source, target=e.target, kind=e.kind, score=e.score, count=e.count)
            for e in view.edges
        ],
    )


@router.get("/insights", response_model=InsightsResponse)
async def insights(
    user_id: str = Depends(get_user_id),
    components: Components = Depends(get_components),
):
    """Everything the exploration view needs in one round trip."""
    gaps, bridges, density, trajectory, contradictions, directions = await asyncio.gather(
        components.bridges.topic_gaps(user_id, limit=10),
        components.bridges.semantic_bridges(user_id, limit=10),
        components.bridges.knowledge_density(user_id),
        components.bridges.query_trajectory(user_id, limit=30),
        components.bridges.find_contradictions(user_id, limit=10),
        components.store.recent_directions(user_id, limit=5, statuses=FINISHED_RESEARCH),
    )
    return InsightsResponse(
        gaps=[_gap(g) for g in gaps],
        bridges=[_bridge(b) for b in bridges],
        density=[_density(d) for d in density],
        trajectory=[_trajectory(p) for p in trajectory],
        contradictions=[_contradiction(c) for c in contradictions],
        recent_research=[_direction(d) for d in directions],
    )


@router.get("/trajectory", response_model=list[TrajectoryPointResponse])
async def query_trajectory(
    limit: int = Query(default=30, ge=1, le=200),
    user_id: str = Depends(get_user_id),
    components: Components = Depends(get_components),
):
    points = await components.bridges.query_trajectory(user_id, limit=limit)
    return [_trajectory(p) for p in points]


@router.get("/contradictions", response_model=list[ContradictionResponse])
async def contradictions(
    limit: int = Query(default=10, ge=1, le=100),
    user_id: str = Depends(get_user_id),
    components: Components = Depends(get_components),
):
    rows = await components.bridges.find_contradictions(user_id, limit=limit)
    return [_contradiction(c) for c in rows]
