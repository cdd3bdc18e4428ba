"""Tests for API routes."""

from __future__ import annotations

import asyncio
from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from conftest import FakeEmbedder
from research_graph.components import assemble
from research_graph.config import settings
from research_graph.errors import ExternalServiceError
from research_graph.main import create_app
from research_graph.models.graph import DirectionStatus, ResearchDirection
from research_graph.services.graph_memory import InMemoryGraphStore

DAEMON_SECRET = "test-daemon-secret"


@pytest.fixture
def components(search, analysis):
    return assemble(InMemoryGraphStore(), FakeEmbedder(), search, analysis)


@pytest.fixture
def client(components):
    with patch.object(settings, "daemon_secret", DAEMON_SECRET):
        yield TestClient(create_app(components))


def _user(user_id: str = "u1") -> dict[str, str]:
    return {"x-user-id": user_id}


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
    assert data["service"] == "research-graph"


def test_request_id_is_echoed_or_generated(client):
    echoed = client.get("/api/health", headers={"x-request-id": "abc123"})
    generated = client.get("/api/health")

    assert echoed.headers["x-request-id"] == "abc123"
    assert generated.headers["x-request-id"]


def test_search_requires_user_identity(client):
    response = client.post("/api/search", json={"query": "protein folding"})

    assert response.status_code == 401
    assert response.json()["error"]["code"] == "UNAUTHORIZED"


def test_search_rejects_short_query(client):
    response = client.post("/api/search", json={"query": "ab"}, headers=_user())

    assert response.status_code == 400
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_search_rejects_malformed_body(client):
    response = client.post("/api/search", json={"max_results": 3}, headers=_user())

    assert response.status_code == 400
    body = response.json()
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert "query" in body["error"]["message"]


def test_search_runs_pipeline(client):
    response = client.post(
        "/api/search", json={"query": "protein folding", "max_results": 2}, headers=_user()
    )

    assert response.status_code == 200
    data = response.json()
    assert len(data["sources"]) == 2
    assert data["sources"][0]["origin"] == "search"
    assert data["topic"]["is_new"] is True
    assert data["synthesis"] == "synthesis of protein folding"
    assert data["gaps"] == ["missing angle"]
    assert data["provider"] == "fake"


def test_upstream_failure_hides_detail(client, search):
    search.errors["protein folding"] = ExternalServiceError("Exa/search", 503, detail="secret upstream body")

    response = client.post("/api/search", json={"query": "protein folding"}, headers=_user())

    assert response.status_code == 502
    body = response.json()
    assert body == {
        "error": {"code": "EXTERNAL_SERVICE_ERROR", "message": "Exa/search is temporarily unavailable"}
    }


def test_unexpected_error_is_generic_500(client, search):
    search.errors["protein folding"] = KeyError("internal detail")

    response = client.post(
        "/api/search",
        json={"query": "protein folding"},
        headers={**_user(), "x-request-id": "req-500"},
    )

    assert response.status_code == 500
    assert response.json() == {
        "error": {"code": "INTERNAL_ERROR", "message": "An internal error occurred"}
    }
    assert response.headers["x-request-id"] == "req-500"


def test_graph_endpoints_are_scoped_to_user(client):
    client.post("/api/search", json={"query": "protein folding"}, headers=_user("u1"))

    mine = client.get("/api/graph/density", headers=_user("u1"))
    theirs = client.get("/api/graph/density", headers=_user("u2"))

    assert mine.status_code == 200
    assert len(mine.json()) == 1
    assert mine.json()[0]["source_count"] == 3
    assert theirs.json() == []
    assert client.get("/api/graph/gaps", headers=_user()).json() == []
    assert client.get("/api/graph/bridges", headers=_user()).json() == []


def test_graph_view_and_insights(client):
    client.post("/api/search", json={"query": "protein folding"}, headers=_user())

    view = client.get("/api/graph/view", headers=_user()).json()
    insights = client.get("/api/graph/insights", headers=_user()).json()

    assert len(view["nodes"]) == 1
    assert view["edges"] == []
    assert set(insights) == {
        "gaps", "bridges", "density", "trajectory", "contradictions", "recent_research"
    }
    assert [p["movement_type"] for p in insights["trajectory"]] == ["start"]
    assert insights["trajectory"][0]["raw_input"] == "protein folding"


def test_pair_score_rejects_foreign_topic(client):
    created = client.post("/api/search", json={"query": "protein folding"}, headers=_user("u1")).json()
    topic_id = created["topic"]["id"]

    response = client.get(
        "/api/graph/pair-score",
        params={"topic_a": topic_id, "topic_b": topic_id},
        headers=_user("u2"),
    )

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_pair_score_for_own_topics(client):
    created = client.post("/api/search", json={"query": "protein folding"}, headers=_user()).json()
    topic_id = created["topic"]["id"]

    response = client.get(
        "/api/graph/pair-score", params={"topic_a": topic_id, "topic_b": topic_id}, headers=_user()
    )

    assert response.status_code == 200
    assert response.json()["bridge_score"] == 0.0
    assert response.json()["min_similarity"] == 0.4


def test_daemon_requires_secret(client):
    assert client.post("/api/daemon/auto-research").status_code == 401
    response = client.post(
        "/api/daemon/auto-research", headers={"Authorization": "Bearer wrong"}
    )
    assert response.status_code == 401


def test_auto_research_with_no_gaps(client):
    response = client.post(
        "/api/daemon/auto-research",
        json={"max_directions": 2},
        headers={"Authorization": f"Bearer {DAEMON_SECRET}"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["directions_processed"] == 0
    assert data["results"] == []


def test_dedup_dry_run_reports_pairs(client, components):
    client.post("/api/search", json={"query": "protein folding"}, headers=_user())

    response = client.post(
        "/api/daemon/dedup",
        json={"dry_run": True},
        headers={"Authorization": f"Bearer {DAEMON_SECRET}"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["dry_run"] is True
    # the fake embedder gives every source the same vector
    assert data["duplicates_found"] == 3
    assert data["merged"] == 0


def test_dedup_rejects_bad_threshold(client):
    response = client.post(
        "/api/daemon/dedup",
        json={"similarity_threshold": 1.5},
        headers={"Authorization": f"Bearer {DAEMON_SECRET}"},
    )

    assert response.status_code == 400


def test_insights_surface_contradictions(client, analysis):
    analysis.connections = [
        {"source_a_index": 0, "source_b_index": 2, "relationship": "contradicts", "explanation": "clash", "strength": 0.9},
        {"source_a_index": 0, "source_b_index": 1, "relationship": "agrees", "explanation": "same", "strength": 0.8},
    ]
    client.post("/api/search", json={"query": "protein folding"}, headers=_user())

    insights = client.get("/api/graph/insights", headers=_user()).json()
    listed = client.get("/api/graph/contradictions", headers=_user()).json()

    assert insights["contradictions"] == listed
    [row] = listed
    assert row["explanation"] == "clash"
    assert row["strength"] == 0.9
    assert row["source_a_title"] == "protein folding result 0"
    assert row["source_b_title"] == "protein folding result 2"
    assert client.get("/api/graph/contradictions", headers=_user("u2")).json() == []


async def _seed_directions(store):
    for direction_id, pair in [("d-done", ("t1", "t2")), ("d-live", ("t3", "t4")), ("d-bad", ("t5", "t6"))]:
        await store.create_direction(
            ResearchDirection(
                id=direction_id,
                user_id="u1",
                topic_a_id=pair[0],
                topic_b_id=pair[1],
                bridge_query=f"query {direction_id}",
                bridge_score_before=0.1,
            )
        )
    await store.finish_direction("d-done", DirectionStatus.COMPLETED, sources_found=2)
    await store.finish_direction("d-bad", DirectionStatus.FAILED, error="boom")


def test_insights_list_only_finished_research(client, components):
    asyncio.run(_seed_directions(components.store))

    recent = client.get("/api/graph/insights", headers=_user()).json()["recent_research"]

    assert [(d["id"], d["status"]) for d in recent] == [("d-done", "completed")]


def test_trajectory_endpoint(client):
    client.post("/api/search", json={"query": "protein folding"}, headers=_user())
    client.post("/api/search", json={"query": "protein folding again"}, headers=_user())

    points = client.get("/api/graph/trajectory", headers=_user()).json()

    assert [p["movement_type"] for p in points] == ["start", "deepen"]
    assert points[1]["similarity_to_previous"] == 1.0
