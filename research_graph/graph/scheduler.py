"""Autonomous gap-closing loop.

Each cycle asks the analyzer for the most promising gaps, turns every gap
into a bridge query and pushes it through the same pipeline a user query
takes. Directions are processed one after another: the scheduler shares
the search, embedding and analysis budget with live traffic.
"""

from __future__ import annotations

import asyncio
import time
from typing import Protocol

from loguru import logger

from research_graph.config import settings
from research_graph.graph.bridges import BridgeGapAnalyzer
from research_graph.graph.pipeline import ResearchPipeline
from research_graph.models.graph import (
    DirectionCandidate,
    DirectionOutcome,
    DirectionStatus,
    ResearchDirection,
    SchedulerReport,
    new_id,
)
from research_graph.services import logger as log_service
from research_graph.services.graph_store import GraphStore


class BridgeQueryWriter(Protocol):
    async def generate_bridge_query(
        self,
        topic_a_label: str,
        topic_b_label: str,
        topic_similarity: float,
        *,
        topic_a_description: str | None = None,
        topic_b_description: str | None = None,
    ) -> str: ...


def _error_text(exc: BaseException) -> str:
    return str(exc) or type(exc).__name__


class ResearchScheduler:
    def __init__(
        self,
        store: GraphStore,
        analyzer: BridgeGapAnalyzer,
        pipeline: ResearchPipeline,
        writer: BridgeQueryWriter,
        *,
        max_results: int | None = None,
    ):
        self.store = store
        self.analyzer = analyzer
        self.pipeline = pipeline
        self.writer = writer
        self.max_results = int(max_results or settings.auto_research_max_results)

    async def run_cycle(self, max_directions: int | None = None) -> SchedulerReport:
        started = time.monotonic()
        requested = settings.research_max_directions if max_directions is None else max_directions
        limit = max(1, min(int(requested), settings.research_max_directions_cap))

        await self._expire_stale()
        in_flight = await self.store.active_direction_pairs()
        candidates = await self.analyzer.prioritize_directions(limit, exclude_pairs=in_flight)
        report = SchedulerReport(directions_attempted=len(candidates))
        if not candidates:
            logger.info("No research directions found")
            return report

        for candidate in candidates:
            outcome = await self._process(candidate)
            report.outcomes.append(outcome)

        try:
            await self.store.refresh_topic_similarities()
            report.refreshed = True
        except Exception as exc:
            logger.warning(f"Refreshing topic similarities failed: {exc}")

        log_service.log_event(
            "research_cycle",
            "Research cycle finished",
            directions=len(report.outcomes),
            completed=report.count(DirectionStatus.COMPLETED),
            exhausted=report.count(DirectionStatus.EXHAUSTED),
            failed=report.count(DirectionStatus.FAILED),
            sources=sum(o.sources_found for o in report.outcomes),
            elapsed_ms=int((time.monotonic() - started) * 1000),
        )
        return report

    async def _process(self, candidate: DirectionCandidate) -> DirectionOutcome:
        outcome = DirectionOutcome(
            topic_a_label=candidate.topic_a_label,
            topic_b_label=candidate.topic_b_label,
            status=DirectionStatus.FAILED,
            bridge_score_before=candidate.best_existing_bridge,
            bridge_score_after=candidate.best_existing_bridge,
        )

        # Nothing is recorded until a bridge query exists.
        try:
            bridge_query = await self.writer.generate_bridge_query(
                candidate.topic_a_label,
                candidate.topic_b_label,
                candidate.topic_similarity,
                topic_a_description=candidate.topic_a_description,
                topic_b_description=candidate.topic_b_description,
            )
            direction = await self.store.create_direction(
                ResearchDirection(
                    id=new_id(),
                    user_id=candidate.user_id,
                    topic_a_id=candidate.topic_a_id,
                    topic_b_id=candidate.topic_b_id,
                    bridge_query=bridge_query,
                    bridge_score_before=candidate.best_existing_bridge,
                )
            )
        except Exception as exc:
            outcome.error = _error_text(exc)
            logger.error(
                f"Could not start direction '{candidate.topic_a_label}' / '{candidate.topic_b_label}': {exc}"
            )
            return outcome

        outcome.bridge_query = bridge_query
        outcome.direction_id = direction.id

        try:
            query = await self.store.create_query(candidate.user_id, bridge_query)
            result = await self.pipeline.run_for_query(query, max_results=self.max_results)

            if result.sources_found == 0:
                await self.store.finish_direction(
                    direction.id, DirectionStatus.EXHAUSTED, sources_found=0,
                    bridge_score_after=candidate.best_existing_bridge, query_id=query.id,
                )
                outcome.status = DirectionStatus.EXHAUSTED
                return outcome

            score_after = await self._score_after(candidate)
            await self.store.finish_direction(
                direction.id,
                DirectionStatus.COMPLETED,
                sources_found=result.sources_found,
                bridge_score_after=score_after,
                query_id=query.id,
            )
            outcome.status = DirectionStatus.COMPLETED
            outcome.sources_found = result.sources_found
            outcome.bridge_score_after = score_after
            return outcome
        except Exception as exc:
            outcome.error = _error_text(exc)
            logger.error(f"Research direction {direction.id} failed: {outcome.error}")
            try:
                await self.store.finish_direction(
                    direction.id, DirectionStatus.FAILED, error=outcome.error
                )
            except Exception as mark_exc:
                logger.error(f"Could not mark direction {direction.id} failed: {mark_exc}")
            return outcome
        except asyncio.CancelledError:
            # The direction still has to end in a terminal state
            logger.warning(f"Research direction {direction.id} cancelled")
            try:
                await asyncio.shield(
                    self.store.finish_direction(direction.id, DirectionStatus.FAILED, error="cancelled")
                )
            except (Exception, asyncio.CancelledError) as mark_exc:
                logger.error(f"Could not mark direction {direction.id} cancelled: {mark_exc!r}")
            raise

    async def _expire_stale(self) -> None:
        try:
            expired = await self.store.expire_stale_directions(
                settings.research_direction_stale_seconds
            )
        except Exception as exc:
            logger.warning(f"Expiring stale research directions failed: {exc}")
            return
        if expired:
            logger.warning(f"Marked {expired} stale research directions failed")

    async def _score_after(self, candidate: DirectionCandidate) -> float | None:
        try:
            return await self.analyzer.pair_bridge_score(
                candidate.topic_a_id,
                candidate.topic_b_id,
                self.analyzer.research_bridge_floor,
            )
        except Exception as exc:
            logger.warning(
                f"Recomputing bridge score for {candidate.topic_a_id}/{candidate.topic_b_id} failed: {exc}"
            )
            return None
