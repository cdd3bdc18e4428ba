"""research-graph - semantic knowledge graph engine

Simple CLI for running queries and the background jobs by hand.
"""

import argparse
import asyncio
import sys
from uuid import uuid4

from loguru import logger

from research_graph.components import Components, build_components
from research_graph.config import settings
from research_graph.errors import AppError
from research_graph.graph.ingest import read_drafts_jsonl
from research_graph.models.graph import DirectionStatus


async def run_search(components: Components, user_id: str, query: str, max_results: int | None):
    print(f"Query: {query}")
    print("-" * 50)
    result = await components.pipeline.run(user_id, query, max_results=max_results)

    if not result.sources:
        print("[!] No sources found")
        return
    if result.topic:
        marker = "new" if result.topic.is_new else "existing"
        print(f"[*] Topic: {result.topic.label} ({marker})")
    print(f"[*] Sources ({len(result.sources)}):")
    for i, source in enumerate(result.sources):
        print(f"  {i}. {source.title[:80]}")
        print(f"     {source.url}")
    if result.connections:
        print(f"\n[*] Connections ({len(result.connections)}):")
        index = {s.id: i for i, s in enumerate(result.sources)}
        for c in result.connections:
            print(
                f"  [{index.get(c.source_a_id)}] {c.relationship.value} [{index.get(c.source_b_id)}]"
                f" ({c.strength:.2f}): {c.explanation[:100]}"
            )
    if result.related:
        print(f"\n[~] Echoes from earlier queries: {len(result.related)}")
        for m in result.related[:10]:
            print(f"  {m.source_index} ~ {m.matched_title[:60]} ({m.similarity:.3f})")
    if result.synthesis:
        print(f"\n{'=' * 50}")
        print("SYNTHESIS:")
        print(f"{'=' * 50}")
        print(result.synthesis.summary)
        for gap in result.synthesis.gaps:
            print(f"  - gap: {gap}")


async def run_auto_research(components: Components, max_directions: int | None):
    report = await components.scheduler.run_cycle(max_directions)
    if not report.outcomes:
        print("[*] No research directions found")
        return
    for outcome in report.outcomes:
        print(f"\n[{outcome.status.value}] {outcome.topic_a_label} <-> {outcome.topic_b_label}")
        if outcome.bridge_query:
            print(f"  Query: {outcome.bridge_query}")
        print(f"  Sources: {outcome.sources_found}")
        after = "n/a" if outcome.bridge_score_after is None else f"{outcome.bridge_score_after:.3f}"
        print(f"  Bridge score: {outcome.bridge_score_before:.3f} -> {after}")
        if outcome.error:
            print(f"  Error: {outcome.error}")
    print(
        f"\n[*] completed={report.count(DirectionStatus.COMPLETED)} "
        f"exhausted={report.count(DirectionStatus.EXHAUSTED)} failed={report.count(DirectionStatus.FAILED)}"
    )


async def run_dedup(components: Components, args: argparse.Namespace):
    report = await components.dedup.sweep(
        args.threshold, args.batch_size, args.max_pairs, dry_run=args.dry_run
    )
    label = "DRY RUN" if report.dry_run else "MERGE"
    print(f"[*] {label}: {report.duplicates_found} duplicate pairs")
    for pair in report.pairs[:20]:
        print(
            f"  {pair.source_a.origin.value}:{pair.source_a.id} ~ "
            f"{pair.source_b.origin.value}:{pair.source_b.id} ({pair.similarity:.3f})"
        )
    if not report.dry_run:
        print(f"[*] merged={report.merged} skipped={report.skipped} failed={report.failed}")
        for failure in report.failures:
            print(f"  [!] {failure.source_a_id} / {failure.source_b_id}: {failure.error}")


async def run_gaps(components: Components, user_id: str, limit: int):
    gaps = await components.bridges.topic_gaps(user_id, limit=limit)
    if not gaps:
        print("[*] No gaps found")
        return
    for gap in gaps:
        print(
            f"  {gap.topic_a_label} <-> {gap.topic_b_label}: similarity {gap.topic_similarity:.3f},"
            f" best bridge {gap.best_bridge_score:.3f}"
        )


async def run_ingest(components: Components, path: str):
    drafts = read_drafts_jsonl(path)
    print(f"[*] Read {len(drafts)} records from {path}")
    report = await components.ingestor.ingest(drafts)
    print(
        f"[*] inserted={report.inserted} existing={report.skipped_existing} "
        f"doi={report.skipped_doi} in_batch={report.skipped_in_batch}"
    )


async def run_init_db():
    from research_graph.services.graph_postgres import PostgresGraphStore

    store = await PostgresGraphStore.connect(
        settings.database_url,
        min_size=1,
        max_size=1,
    )
    try:
        await store.init_schema()
    finally:
        await store.close()
    print("[*] Schema applied")


async def dispatch(args: argparse.Namespace):
    with logger.contextualize(request_id=uuid4().hex):
        await _dispatch(args)


async def _dispatch(args: argparse.Namespace):
    if args.command == "init-db":
        await run_init_db()
        return

    components = await build_components(settings)
    try:
        if args.command == "search":
            await run_search(components, args.user, args.query, args.max_results)
        elif args.command == "auto-research":
            await run_auto_research(components, args.max_directions)
        elif args.command == "dedup":
            await run_dedup(components, args)
        elif args.command == "gaps":
            await run_gaps(components, args.user, args.limit)
        elif args.command == "ingest":
            await run_ingest(components, args.file)
    finally:
        await components.close()


def main():
    parser = argparse.ArgumentParser(description="research-graph knowledge graph engine")
    sub = parser.add_subparsers(dest="command", required=True)

    search_cmd = sub.add_parser("search", help="Run a query through the full pipeline")
    search_cmd.add_argument("--query", "-q", required=True, help="Research query")
    search_cmd.add_argument("--user", "-u", required=True, help="Owning user id")
    search_cmd.add_argument("--max-results", type=int, help="Search results to ingest")

    research_cmd = sub.add_parser("auto-research", help="Run one research scheduler cycle")
    research_cmd.add_argument("--max-directions", type=int, help="Directions to process (max 10)")

    dedup_cmd = sub.add_parser("dedup", help="Find and merge near-duplicate sources")
    dedup_cmd.add_argument("--dry-run", action="store_true", help="List pairs without merging")
    dedup_cmd.add_argument("--threshold", type=float, help="Cosine similarity threshold")
    dedup_cmd.add_argument("--batch-size", type=int, help="Recent sources to scan")
    dedup_cmd.add_argument("--max-pairs", type=int, help="Maximum pairs to process")

    gaps_cmd = sub.add_parser("gaps", help="List a user's topic gaps")
    gaps_cmd.add_argument("--user", "-u", required=True, help="Owning user id")
    gaps_cmd.add_argument("--limit", type=int, default=10)

    ingest_cmd = sub.add_parser("ingest", help="Ingest harvested sources from a JSONL file")
    ingest_cmd.add_argument("--file", "-f", required=True, help="One source record per line")

    sub.add_parser("init-db", help="Apply the PostgreSQL schema")

    args = parser.parse_args()

    try:
        asyncio.run(dispatch(args))
    except AppError as exc:
        print(f"\n[!] Error: {exc.message}")
        sys.exit(1)


if __name__ == "__main__":
    main()
