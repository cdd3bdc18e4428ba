from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from research_graph.errors import ValidationError
from research_graph.graph.dedup import DedupEngine, choose_winner
from research_graph.models.graph import (
    Connection,
    DuplicatePair,
    OriginType,
    Relationship,
    SourceDraft,
    SourceRef,
)


def _ref(source_id: str, origin: OriginType) -> SourceRef:
    return SourceRef(id=source_id, origin=origin)


async def _insert(store, origin: OriginType, name: str, *, doi: str | None = None, embedding=None):
    [source] = await store.insert_sources(
        [
            SourceDraft(
                origin=origin,
                url=f"https://example.com/{name}",
                title=name,
                external_id=None if origin == OriginType.SEARCH else name,
                doi=doi,
                embedding=embedding or [1.0, 0.0, 0.0],
            )
        ]
    )
    return source


def test_higher_priority_origin_wins():
    arxiv, openalex, search = (
        _ref("a", OriginType.ARXIV),
        _ref("o", OriginType.OPENALEX),
        _ref("s", OriginType.SEARCH),
    )

    assert choose_winner(search, arxiv) == (arxiv, search)
    assert choose_winner(openalex, search) == (openalex, search)
    assert choose_winner(openalex, arxiv) == (arxiv, openalex)


def test_equal_priority_keeps_first_source():
    a, b = _ref("first", OriginType.SEARCH), _ref("second", OriginType.SEARCH)

    assert choose_winner(a, b) == (a, b)


@pytest.mark.asyncio
async def test_merge_repoints_connections_and_copies_doi(store):
    web = await _insert(store, OriginType.SEARCH, "web-copy", doi="10.1/abc")
    paper = await _insert(store, OriginType.ARXIV, "2401.00001")
    other = await _insert(store, OriginType.OPENALEX, "W1", embedding=[0.0, 1.0, 0.0])
    await store.insert_connections(
        [
            Connection("q", web.id, other.id, Relationship.AGREES, "x", 0.5),
            Connection("q", other.id, web.id, Relationship.EXTENDS, "y", 0.7),
        ]
    )
    engine = DedupEngine(store)

    result = await engine.merge_pair(web.ref(), paper.ref())

    assert result.winner.id == paper.id
    assert result.loser.id == web.id
    assert result.connections_repointed == 2
    assert result.doi_copied is True
    assert await store.get_source(web.id) is None
    assert (await store.get_source(paper.id)).doi == "10.1/abc"
    assert await store.connections_referencing(web.id) == []
    assert len(await store.connections_referencing(paper.id)) == 2


@pytest.mark.asyncio
async def test_source_already_merged_away_is_skipped(store):
    a = await _insert(store, OriginType.SEARCH, "a")
    b = await _insert(store, OriginType.ARXIV, "b")
    c = await _insert(store, OriginType.OPENALEX, "c")
    engine = DedupEngine(store)
    pairs = [
        DuplicatePair(a.ref(), b.ref(), 0.99),
        DuplicatePair(a.ref(), c.ref(), 0.98),
        DuplicatePair(b.ref(), c.ref(), 0.97),
    ]

    report = await engine.merge_pairs(pairs)

    assert report.merged == 2
    assert report.skipped == 1
    assert report.failed == 0
    assert await store.get_source(a.id) is None
    assert await store.get_source(c.id) is None
    assert await store.get_source(b.id) is not None


@pytest.mark.asyncio
async def test_failed_pair_is_reported_and_sweep_continues(store):
    a = await _insert(store, OriginType.SEARCH, "a")
    b = await _insert(store, OriginType.ARXIV, "b")
    missing = _ref("gone", OriginType.SEARCH)
    engine = DedupEngine(store)

    report = await engine.merge_pairs(
        [DuplicatePair(missing, b.ref(), 0.99), DuplicatePair(a.ref(), b.ref(), 0.98)]
    )

    assert report.failed == 1
    assert report.failures[0].source_a_id == "gone"
    assert "gone" in report.failures[0].error
    assert report.merged == 1


@pytest.mark.asyncio
async def test_dry_run_lists_pairs_without_merging(store):
    a = await _insert(store, OriginType.SEARCH, "a")
    b = await _insert(store, OriginType.ARXIV, "b")
    await _insert(store, OriginType.SEARCH, "unrelated", embedding=[0.0, 0.0, 1.0])
    engine = DedupEngine(store)

    report = await engine.sweep(0.95, dry_run=True)

    assert report.dry_run is True
    assert report.duplicates_found == 1
    assert {report.pairs[0].source_a.id, report.pairs[0].source_b.id} == {a.id, b.id}
    assert report.merged == 0
    assert await store.get_source(a.id) is not None


@pytest.mark.asyncio
async def test_sweep_merges_into_higher_priority_source(store):
    a = await _insert(store, OriginType.SEARCH, "a")
    b = await _insert(store, OriginType.ARXIV, "b")

    report = await DedupEngine(store).sweep(0.95)

    assert report.merged == 1
    assert report.merges[0].winner.id == b.id
    assert await store.get_source(a.id) is None


@pytest.mark.asyncio
async def test_threshold_outside_unit_interval_is_rejected():
    engine = DedupEngine(AsyncMock())

    with pytest.raises(ValidationError):
        await engine.find_duplicates(similarity_threshold=0)
    with pytest.raises(ValidationError):
        await engine.find_duplicates(similarity_threshold=1.5)


@pytest.mark.asyncio
async def test_scan_window_and_pair_count_are_capped():
    store = AsyncMock()
    store.find_duplicate_sources.return_value = []
    engine = DedupEngine(store)

    await engine.find_duplicates(0.9, scan_batch_size=100_000, max_pairs=100_000)

    store.find_duplicate_sources.assert_awaited_once_with(
        threshold=0.9, scan_batch_size=2000, max_pairs=500
    )
