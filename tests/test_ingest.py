from __future__ import annotations

import json

import pytest

from conftest import FakeEmbedder
from research_graph.errors import ValidationError
from research_graph.graph.ingest import CorpusIngestor, read_drafts_jsonl
from research_graph.models.graph import OriginType, SourceDraft


def _draft(origin: OriginType, external_id: str | None, *, doi: str | None = None) -> SourceDraft:
    return SourceDraft(
        origin=origin,
        url=f"https://example.com/{external_id}",
        title=f"Paper {external_id}",
        snippet="abstract",
        external_id=external_id,
        doi=doi,
    )


@pytest.mark.asyncio
async def test_reingesting_the_same_batch_adds_nothing(store):
    embedder = FakeEmbedder()
    ingestor = CorpusIngestor(store, embedder, batch_size=10)
    drafts = [_draft(OriginType.ARXIV, f"2401.0000{i}") for i in range(3)]

    first = await ingestor.ingest(drafts)
    second = await ingestor.ingest([_draft(OriginType.ARXIV, f"2401.0000{i}") for i in range(3)])

    assert first.inserted == 3
    assert second.inserted == 0
    assert second.skipped_existing == 3
    assert len(embedder.calls) == 1


@pytest.mark.asyncio
async def test_same_work_from_another_origin_is_caught_by_doi(store):
    ingestor = CorpusIngestor(store, FakeEmbedder())
    await ingestor.ingest([_draft(OriginType.ARXIV, "2401.00001", doi="10.48550/arxiv.2401.00001")])

    report = await ingestor.ingest([_draft(OriginType.OPENALEX, "W42", doi="10.48550/arxiv.2401.00001")])

    assert report.skipped_doi == 1
    assert report.inserted == 0


@pytest.mark.asyncio
async def test_duplicates_inside_one_batch_are_dropped(store):
    ingestor = CorpusIngestor(store, FakeEmbedder())

    report = await ingestor.ingest(
        [
            _draft(OriginType.OPENALEX, "W1"),
            _draft(OriginType.OPENALEX, "W1"),
            _draft(OriginType.OPENALEX, "W2", doi="10.1/x"),
            _draft(OriginType.ARXIV, "2401.9", doi="10.1/x"),
        ]
    )

    assert report.inserted == 2
    assert report.skipped_in_batch == 2


@pytest.mark.asyncio
async def test_embeddings_are_requested_in_batches(store):
    embedder = FakeEmbedder()
    ingestor = CorpusIngestor(store, embedder, batch_size=2)

    report = await ingestor.ingest([_draft(OriginType.ARXIV, f"id{i}") for i in range(5)])

    assert report.inserted == 5
    assert [len(call) for call in embedder.calls] == [2, 2, 1]
    assert embedder.calls[0][0] == "Paper id0\n\nabstract"
    stored = await store.existing_external_ids(OriginType.ARXIV, [f"id{i}" for i in range(5)])
    assert len(stored) == 5


def test_read_drafts_from_jsonl(tmp_path):
    path = tmp_path / "harvest.jsonl"
    records = [
        {
            "origin": "arxiv",
            "url": "https://arxiv.org/abs/2401.00001",
            "title": "Paper",
            "snippet": "abstract",
            "external_id": "2401.00001",
            "doi": " 10.48550/ARXIV.2401.00001 ",
            "published_at": "2024-01-02T00:00:00Z",
        },
        {"origin": "openalex", "url": "https://openalex.org/W1", "title": "Work"},
    ]
    path.write_text("\n".join(json.dumps(r) for r in records[:1]) + "\n\n" + json.dumps(records[1]) + "\n")

    drafts = read_drafts_jsonl(path)

    assert [d.origin for d in drafts] == [OriginType.ARXIV, OriginType.OPENALEX]
    assert drafts[0].doi == "10.48550/arxiv.2401.00001"
    assert drafts[0].published_at.year == 2024
    assert drafts[1].external_id is None
    assert drafts[1].embedding == []


@pytest.mark.parametrize(
    "line",
    [
        '{"origin": "myspace", "url": "u", "title": "t"}',
        '{"origin": "arxiv", "url": "u"}',
        "not json",
    ],
)
def test_bad_jsonl_record_names_the_line(tmp_path, line):
    path = tmp_path / "harvest.jsonl"
    path.write_text('{"origin": "arxiv", "url": "u", "title": "ok"}\n' + line + "\n")

    with pytest.raises(ValidationError, match="line 2"):
        read_drafts_jsonl(path)
