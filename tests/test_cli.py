from __future__ import annotations

import argparse
import json
from unittest.mock import AsyncMock, patch

import pytest
from loguru import logger

import main as cli
from conftest import FakeEmbedder
from research_graph.components import assemble
from research_graph.models.graph import OriginType
from research_graph.services.graph_memory import InMemoryGraphStore


@pytest.mark.asyncio
async def test_each_cli_run_binds_its_own_request_id():
    seen: list[str] = []
    sink = logger.add(lambda message: seen.append(message.record["extra"]["request_id"]), level="DEBUG")

    async def command(args):
        logger.info(f"running {args.command}")

    try:
        with patch.object(cli, "_dispatch", AsyncMock(side_effect=command)):
            await cli.dispatch(argparse.Namespace(command="gaps"))
            await cli.dispatch(argparse.Namespace(command="dedup"))
    finally:
        logger.remove(sink)

    assert len(seen) == 2
    assert all(len(request_id) == 32 for request_id in seen)
    assert seen[0] != seen[1]


@pytest.mark.asyncio
async def test_ingest_command_loads_jsonl_into_the_store(tmp_path, search, analysis, capsys):
    store = InMemoryGraphStore()
    components = assemble(store, FakeEmbedder(), search, analysis)
    path = tmp_path / "openalex.jsonl"
    path.write_text(
        "\n".join(
            json.dumps({"origin": "openalex", "url": f"https://openalex.org/W{i}", "title": f"Work {i}", "external_id": f"W{i}"})
            for i in range(3)
        )
    )

    await cli.run_ingest(components, str(path))
    await cli.run_ingest(components, str(path))

    assert await store.existing_external_ids(OriginType.OPENALEX, ["W0", "W1", "W2"]) == {"W0", "W1", "W2"}
    out = capsys.readouterr().out
    assert "inserted=3" in out
    assert "inserted=0 existing=3" in out
