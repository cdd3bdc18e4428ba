from __future__ import annotations

from pathlib import Path

from loguru import logger
from pydantic import ValidationError as PydanticValidationError

from research_graph.config import settings
from research_graph.errors import ValidationError
from research_graph.models.graph import IngestReport, OriginType, SourceDraft
from research_graph.models.schemas import SourceRecord
from research_graph.services.embeddings import EmbeddingService
from research_graph.services.graph_store import GraphStore


def read_drafts_jsonl(path: str | Path) -> list[SourceDraft]:
    """Parse a harvester dump: one JSON object per line, blank lines ignored."""
    drafts: list[SourceDraft] = []
    with open(path, encoding="utf-8") as f:
        for line_no, line in enumerate(f, start=1):
            if not line.strip():
                continue
            try:
                record = SourceRecord.model_validate_json(line)
            except PydanticValidationError as exc:
                first = exc.errors()[0]
                field = ".".join(str(part) for part in first.get("loc", ()))
                detail = f"{field}: {first['msg']}" if field else first["msg"]
                raise ValidationError(f"{path} line {line_no}: {detail}") from exc
            drafts.append(record.to_draft())
    return drafts


class CorpusIngestor:
    """Idempotent bulk ingestion of harvested documents.

    Drafts already stored under the same ``(origin, external_id)`` or DOI are
    skipped before any embedding money is spent; the store's conflict-ignoring
    insert covers anything that slips through concurrently.
    """

    def __init__(self, store: GraphStore, embedder: EmbeddingService, *, batch_size: int | None = None):
        self.store = store
        self.embedder = embedder
        self.batch_size = max(int(batch_size or settings.embedding_batch_size), 1)

    async def ingest(self, drafts: list[SourceDraft]) -> IngestReport:
        report = IngestReport(received=len(drafts))
        if not drafts:
            return report

        fresh = await self._filter_existing(drafts, report)
        for start in range(0, len(fresh), self.batch_size):
            batch = fresh[start : start + self.batch_size]
            vectors = await self.embedder.embed_texts([d.embedding_text() for d in batch])
            for draft, vector in zip(batch, vectors):
                draft.embedding = vector
            stored = await self.store.insert_sources(batch)
            report.inserted += len(stored)
            logger.info(f"Ingested batch of {len(stored)} sources ({start + len(batch)}/{len(fresh)})")

        logger.info(
            f"Ingestion done: received={report.received} inserted={report.inserted} "
            f"existing={report.skipped_existing} doi={report.skipped_doi} in_batch={report.skipped_in_batch}"
        )
        return report

    async def _filter_existing(self, drafts: list[SourceDraft], report: IngestReport) -> list[SourceDraft]:
        existing_ids: dict[OriginType, set[str]] = {}
        for origin in {OriginType(d.origin) for d in drafts}:
            ids = [d.external_id for d in drafts if OriginType(d.origin) == origin and d.external_id]
            existing_ids[origin] = await self.store.existing_external_ids(origin, ids)
        existing_dois = await self.store.existing_dois([d.doi for d in drafts if d.doi])

        fresh: list[SourceDraft] = []
        seen_ids: set[tuple[OriginType, str]] = set()
        seen_dois: set[str] = set()
        for draft in drafts:
            origin = OriginType(draft.origin)
            if draft.external_id and draft.external_id in existing_ids[origin]:
                report.skipped_existing += 1
                continue
            if draft.doi and draft.doi in existing_dois:
                report.skipped_doi += 1
                continue
            key = (origin, draft.external_id) if draft.external_id else None
            if (key and key in seen_ids) or (draft.doi and draft.doi in seen_dois):
                report.skipped_in_batch += 1
                continue
            if key:
                seen_ids.add(key)
            if draft.doi:
                seen_dois.add(draft.doi)
            fresh.append(draft)
        return fresh
