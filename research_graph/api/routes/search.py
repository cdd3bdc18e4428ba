from __future__ import annotations

from fastapi import APIRouter, Depends

from research_graph.api.deps import get_components, get_user_id
from research_graph.components import Components
from research_graph.models.graph import PipelineResult
from research_graph.models.schemas import (
    ConnectionResponse,
    RelatedSourceResponse,
    SearchRequest,
    SearchResponse,
    SourceResponse,
    TopicResponse,
)

router = APIRouter(prefix="/api/search", tags=["search"])


def _to_response(result: PipelineResult) -> SearchResponse:
    synthesis = result.synthesis
    return SearchResponse(
        query_id=result.query.id,
        provider=result.provider,
        topic=(
            TopicResponse(id=result.topic.topic_id, label=result.topic.label, is_new=result.topic.is_new)
            if result.topic
            else None
        ),
        sources=[
            SourceResponse(
                id=s.id,
                origin=s.origin.value,
                title=s.title,
                url=s.url,
                snippet=s.snippet,
                author=s.author,
                published_at=s.published_at,
            )
            for s in result.sources
        ],
        connections=[
            ConnectionResponse(
                source_a_id=c.source_a_id,
                source_b_id=c.source_b_id,
                relationship=c.relationship.value,
                explanation=c.explanation,
                strength=c.strength,
            )
            for c in result.connections
        ],
        related=[
            RelatedSourceResponse(
                source_index=m.source_index,
                matched_source_id=m.matched_source_id,
                matched_title=m.matched_title,
                matched_url=m.matched_url,
                matched_query_text=m.matched_query_text,
                similarity=m.similarity,
            )
            for m in result.related
        ],
        synthesis=synthesis.summary if synthesis else None,
        gaps=list(synthesis.gaps) if synthesis else [],
        follow_up_questions=list(synthesis.follow_up_questions) if synthesis else [],
    )


@router.post("", response_model=SearchResponse)
async def search(
    request: SearchRequest,
    user_id: str = Depends(get_user_id),
    components: Components = Depends(get_components),
):
    """Run a query through search, embedding, topic classification and analysis."""
    result = await components.pipeline.run(user_id, request.query, max_results=request.max_results)
    return _to_response(result)
