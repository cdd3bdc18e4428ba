from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from research_graph.graph.cross_query import CrossQueryMatcher
from research_graph.models.graph import OriginType, SourceDraft, SourceMatch


async def _seed(store, user_id: str, text: str, embeddings: list[list[float]]):
    query = await store.create_query(user_id, text)
    drafts = [
        SourceDraft(
            origin=OriginType.SEARCH,
            url=f"https://example.com/{text}/{i}",
            title=f"{text} {i}",
            query_id=query.id,
            embedding=embedding,
        )
        for i, embedding in enumerate(embeddings)
    ]
    return query, await store.insert_sources(drafts)


@pytest.mark.asyncio
async def test_matches_come_only_from_other_queries(store):
    earlier, earlier_sources = await _seed(store, "u1", "earlier", [[1.0, 0.0, 0.0]])
    current, _ = await _seed(store, "u1", "current", [[1.0, 0.0, 0.0]])
    matcher = CrossQueryMatcher(store, threshold=0.54, limit=5)

    related = await matcher.find_related([[1.0, 0.0, 0.0]], current.id)

    assert [m.matched_source_id for m in related] == [earlier_sources[0].id]
    assert related[0].matched_query_text == "earlier"
    assert related[0].source_index == 0


@pytest.mark.asyncio
async def test_hits_from_current_query_or_below_threshold_are_dropped():
    store = AsyncMock()
    store.match_sources.return_value = [
        SourceMatch(source_id="own", title="own", url="u", similarity=0.99, query_id="q-now"),
        SourceMatch(source_id="weak", title="weak", url="u", similarity=0.40, query_id="q-old"),
        SourceMatch(source_id="echo", title="echo", url="u", similarity=0.80, query_id="q-old"),
    ]
    matcher = CrossQueryMatcher(store, threshold=0.54, limit=5)

    related = await matcher.find_related([[1.0, 0.0]], "q-now")

    assert [m.matched_source_id for m in related] == ["echo"]


@pytest.mark.asyncio
async def test_failed_lookup_only_loses_its_own_source():
    store = AsyncMock()
    store.match_sources.side_effect = [
        TimeoutError("slow index"),
        [SourceMatch(source_id="s9", title="t", url="u", similarity=0.7, query_id="q-old")],
    ]
    matcher = CrossQueryMatcher(store, threshold=0.54, limit=5, max_parallel=1)

    related = await matcher.find_related([[1.0, 0.0], [0.0, 1.0]], "q-now")

    assert len(related) == 1
    assert related[0].source_index == 1
    assert related[0].matched_source_id == "s9"


@pytest.mark.asyncio
async def test_matches_are_sorted_and_capped_per_source():
    store = AsyncMock()
    store.match_sources.return_value = [
        SourceMatch(source_id=f"s{i}", title="t", url="u", similarity=sim, query_id="q-old")
        for i, sim in enumerate([0.6, 0.9, 0.75])
    ]
    matcher = CrossQueryMatcher(store, threshold=0.54, limit=2)

    related = await matcher.find_related([[1.0, 0.0]], "q-now")

    assert [m.similarity for m in related] == [0.9, 0.75]


@pytest.mark.asyncio
async def test_no_embeddings_means_no_lookups():
    store = AsyncMock()
    matcher = CrossQueryMatcher(store, threshold=0.54, limit=5)

    assert await matcher.find_related([], "q-now") == []
    store.match_sources.assert_not_called()
