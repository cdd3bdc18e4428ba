from __future__ import annotations

from fastapi import APIRouter, Depends

from research_graph.api.deps import get_components, require_daemon
from research_graph.components import Components
from research_graph.models.graph import DedupReport, DirectionStatus, SchedulerReport
from research_graph.models.schemas import (
    AutoResearchRequest,
    AutoResearchResponse,
    DedupFailureResponse,
    DedupRequest,
    DedupResponse,
    DirectionOutcomeResponse,
    DuplicatePairResponse,
    MergeResponse,
)

router = APIRouter(prefix="/api/daemon", tags=["daemon"], dependencies=[Depends(require_daemon)])


def scheduler_report_response(report: SchedulerReport) -> AutoResearchResponse:
    return AutoResearchResponse(
        directions_processed=len(report.outcomes),
        completed=report.count(DirectionStatus.COMPLETED),
        exhausted=report.count(DirectionStatus.EXHAUSTED),
        failed=report.count(DirectionStatus.FAILED),
        total_sources_added=sum(o.sources_found for o in report.outcomes),
        results=[
            DirectionOutcomeResponse(
                direction_id=o.direction_id,
                topic_a=o.topic_a_label,
                topic_b=o.topic_b_label,
                bridge_query=o.bridge_query,
                status=o.status.value,
                sources_found=o.sources_found,
                bridge_score_before=o.bridge_score_before,
                bridge_score_after=o.bridge_score_after,
                error=o.error,
            )
            for o in report.outcomes
        ],
    )


def dedup_report_response(report: DedupReport) -> DedupResponse:
    return DedupResponse(
        dry_run=report.dry_run,
        duplicates_found=report.duplicates_found,
        merged=report.merged,
        failed=report.failed,
        skipped=report.skipped,
        pairs=[
            DuplicatePairResponse(
                source_a_id=p.source_a.id,
                source_a_origin=p.source_a.origin.value,
                source_b_id=p.source_b.id,
                source_b_origin=p.source_b.origin.value,
                similarity=p.similarity,
            )
            for p in report.pairs
        ],
        merges=[
            MergeResponse(
                winner_id=m.winner.id,
                loser_id=m.loser.id,
                connections_repointed=m.connections_repointed,
                doi_copied=m.doi_copied,
            )
            for m in report.merges
        ],
        failures=[
            DedupFailureResponse(source_a_id=f.source_a_id, source_b_id=f.source_b_id, error=f.error)
            for f in report.failures
        ],
    )


@router.post("/auto-research", response_model=AutoResearchResponse)
async def auto_research(
    request: AutoResearchRequest | None = None,
    components: Components = Depends(get_components),
):
    max_directions = request.max_directions if request else None
    report = await components.scheduler.run_cycle(max_directions)
    return scheduler_report_response(report)


@router.post("/dedup", response_model=DedupResponse)
async def dedup_sources(
    request: DedupRequest | None = None,
    components: Components = Depends(get_components),
):
    request = request or DedupRequest()
    report = await components.dedup.sweep(
        request.similarity_threshold,
        request.batch_size,
        request.max_pairs,
        dry_run=request.dry_run,
    )
    return dedup_report_response(report)
