"""Wiring of client handles into the graph components.

Entry points (the API lifespan and the CLI) build one ``Components`` and
close it on shutdown; nothing below this layer creates its own clients.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from research_graph.config import Settings, settings
from research_graph.graph.bridges import BridgeGapAnalyzer
from research_graph.graph.dedup import DedupEngine
from research_graph.graph.ingest import CorpusIngestor
from research_graph.graph.pipeline import ResearchPipeline
from research_graph.graph.scheduler import ResearchScheduler
from research_graph.services.analysis import AnalysisService
from research_graph.services.embeddings import EmbeddingService, get_embedding_service
from research_graph.services.graph_store import GraphStore, get_graph_store
from research_graph.tools.search_provider import SearchProvider, get_search_provider


@dataclass
class Components:
    store: GraphStore
    embedder: EmbeddingService
    search_provider: SearchProvider
    analysis: AnalysisService
    pipeline: ResearchPipeline
    bridges: BridgeGapAnalyzer
    dedup: DedupEngine
    scheduler: ResearchScheduler
    ingestor: CorpusIngestor
    llm_client: Any = None

    async def close(self) -> None:
        await self.store.close()
        if self.llm_client is not None:
            await self.llm_client.close()


def assemble(
    store: GraphStore,
    embedder: EmbeddingService,
    search_provider: SearchProvider,
    analysis: AnalysisService,
    *,
    llm_client: Any = None,
) -> Components:
    pipeline = ResearchPipeline(store, embedder, search_provider, analysis)
    bridges = BridgeGapAnalyzer(store)
    return Components(
        store=store,
        embedder=embedder,
        search_provider=search_provider,
        analysis=analysis,
        pipeline=pipeline,
        bridges=bridges,
        dedup=DedupEngine(store),
        scheduler=ResearchScheduler(store, bridges, pipeline, analysis),
        ingestor=CorpusIngestor(store, embedder),
        llm_client=llm_client,
    )


async def build_components(config: Settings | None = None) -> Components:
    from research_graph.llm_client import get_client

    config = config or settings
    store = await get_graph_store(config)
    llm_client = get_client(config)
    analysis = AnalysisService(
        llm_client,
        analysis_model=config.analysis_model,
        label_model=config.effective_label_model,
    )
    return assemble(
        store,
        get_embedding_service(config),
        get_search_provider(config),
        analysis,
        llm_client=llm_client,
    )
