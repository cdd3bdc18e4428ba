"""Near-duplicate source discovery and merging.

Candidate pairs come pre-filtered from the store (nearest neighbours over a
bounded window of recent sources); this module only decides who wins and
drives the merges.
"""

from __future__ import annotations

from loguru import logger

from research_graph.config import settings
from research_graph.errors import ValidationError
from research_graph.models.graph import (
    DedupFailure,
    DedupReport,
    DuplicatePair,
    MergeResult,
    SourceRef,
    origin_priority,
)
from research_graph.services import logger as log_service
from research_graph.services.graph_store import GraphStore


def choose_winner(a: SourceRef, b: SourceRef) -> tuple[SourceRef, SourceRef]:
    """Return ``(winner, loser)``; the higher-priority origin wins and ties keep ``a``."""
    if origin_priority(a.origin) >= origin_priority(b.origin):
        return a, b
    return b, a


class DedupEngine:
    def __init__(self, store: GraphStore):
        self.store = store

    async def find_duplicates(
        self,
        similarity_threshold: float | None = None,
        scan_batch_size: int | None = None,
        max_pairs: int | None = None,
    ) -> list[DuplicatePair]:
        threshold = (
            settings.dedup_similarity_threshold
            if similarity_threshold is None
            else float(similarity_threshold)
        )
        if not 0.0 < threshold <= 1.0:
            raise ValidationError("similarity_threshold must be in (0, 1]")
        batch = _clamp(scan_batch_size, settings.dedup_batch_size, settings.dedup_batch_size_cap)
        pairs_cap = _clamp(max_pairs, settings.dedup_max_pairs, settings.dedup_max_pairs_cap)

        pairs = await self.store.find_duplicate_sources(
            threshold=threshold, scan_batch_size=batch, max_pairs=pairs_cap
        )
        logger.info(
            f"Found {len(pairs)} duplicate candidates (threshold={threshold}, window={batch})"
        )
        return pairs

    async def merge_pair(self, a: SourceRef, b: SourceRef) -> MergeResult:
        winner, loser = choose_winner(a, b)
        result = await self.store.merge_sources(winner.id, loser.id)
        log_service.log_graph_operation(
            "merge",
            "source",
            "success",
            details=(
                f"winner={winner.id} ({winner.origin.value}) loser={loser.id} ({loser.origin.value}) "
                f"repointed={result.connections_repointed} doi_copied={result.doi_copied}"
            ),
        )
        return result

    async def merge_pairs(self, pairs: list[DuplicatePair]) -> DedupReport:
        report = DedupReport(dry_run=False, duplicates_found=len(pairs), pairs=list(pairs))
        consumed: set[str] = set()

        for pair in pairs:
            a, b = pair.source_a, pair.source_b
            if a.id in consumed or b.id in consumed:
                report.skipped += 1
                continue
            try:
                result = await self.merge_pair(a, b)
            except Exception as exc:
                report.failed += 1
                report.failures.append(
                    DedupFailure(source_a_id=a.id, source_b_id=b.id, error=str(exc) or type(exc).__name__)
                )
                log_service.log_graph_operation(
                    "merge", "source", "failed", details=f"{a.id} / {b.id}", error=str(exc)
                )
                continue
            consumed.add(result.loser.id)
            report.merged += 1
            report.merges.append(result)

        return report

    async def sweep(
        self,
        similarity_threshold: float | None = None,
        scan_batch_size: int | None = None,
        max_pairs: int | None = None,
        *,
        dry_run: bool = False,
    ) -> DedupReport:
        pairs = await self.find_duplicates(similarity_threshold, scan_batch_size, max_pairs)
        if dry_run:
            report = DedupReport(dry_run=True, duplicates_found=len(pairs), pairs=pairs)
        else:
            report = await self.merge_pairs(pairs)
        log_service.log_event(
            "dedup_sweep",
            "Dedup sweep finished",
            dry_run=dry_run,
            duplicates_found=report.duplicates_found,
            merged=report.merged,
            failed=report.failed,
            skipped=report.skipped,
        )
        return report


def _clamp(value: int | None, default: int, cap: int) -> int:
    if value is None:
        return default
    return max(1, min(int(value), cap))
