"""Celery tasks and an operator CLI for the crawl, scoring and embedding runs.

Each task builds a fresh ``RunContext``, runs its coroutine in a new event
loop and returns the run summary as a dict.

    python -m sitecorpus.workers.tasks crawl --mode failed_retry --jurisdiction CA
    python -m sitecorpus.workers.tasks embed --max-documents 1000
"""

import argparse
import asyncio
import json
import logging
from dataclasses import asdict
from typing import Any, Dict, Optional

from sitecorpus.config import Settings, get_settings
from sitecorpus.log_config import configure_logging
from sitecorpus.services.context import RunContext, open_context
from sitecorpus.services.crawler import CrawlOrchestrator, Fetcher, fetch_retry_policy, target_from_entity
from sitecorpus.services.crawler.reprocess import reprocess_binary_documents as reprocess_binaries
from sitecorpus.services.discovery import DiscoveryWaterfall, LivenessProber, WebSearch
from sitecorpus.services.embeddings import (
    EmbeddingDispatcher,
    EmbeddingPipeline,
    OpenAIEmbeddingBackend,
    SemanticSearch,
    embedding_retry_policy,
)
from sitecorpus.services.scoring.runner import ScoringRunner
from sitecorpus.store.corrections import UrlCorrectionStore
from sitecorpus.store.crawl_log import CrawlLog
from sitecorpus.store.documents import DocumentStore
from sitecorpus.store.embeddings import EmbeddingStore
from sitecorpus.store.entities import CRAWL_MODES, EntityStore
from sitecorpus.store.scores import KeywordScoreStore
from sitecorpus.workers.celery_app import celery_app

logger = logging.getLogger(__name__)


def build_crawl_orchestrator(ctx: RunContext) -> CrawlOrchestrator:
    settings = ctx.settings
    fetcher = Fetcher(
        ctx.http,
        user_agents=settings.user_agents,
        timeout=settings.fetch_timeout_seconds,
        max_bytes=settings.fetch_max_content_bytes,
        retry_policy=fetch_retry_policy(
            max_attempts=settings.fetch_retry_max_attempts,
            backoff_seconds=settings.fetch_retry_backoff_seconds,
        ),
    )
    search = None
    if settings.search_enabled:
        search = WebSearch(
            ctx.http,
            ctx.search_limiter,
            endpoint=settings.search_endpoint,
            user_agent=settings.user_agents[0],
            timeout=settings.fetch_timeout_seconds,
            cache=ctx.cache,
            cache_ttl_seconds=settings.search_cache_ttl_seconds,
        )
    waterfall = DiscoveryWaterfall(
        LivenessProber(
            ctx.http,
            dns_timeout=settings.dns_timeout_seconds,
            probe_timeout=settings.probe_timeout_seconds,
        ),
        fetcher,
        search=search,
        long_timeout=settings.fetch_long_timeout_seconds,
    )
    return CrawlOrchestrator(
        waterfall,
        fetcher,
        documents=DocumentStore(ctx.session_maker),
        crawl_log=CrawlLog(ctx.session_maker),
        corrections=UrlCorrectionStore(ctx.session_maker),
        embeddings=EmbeddingStore(ctx.session_maker, chunk_text_chars=settings.chunk_text_store_chars),
        concurrency=settings.crawl_concurrency,
        request_delay=settings.crawl_request_delay_seconds,
        max_internal_pages=settings.crawl_max_internal_pages,
        max_binary_links=settings.crawl_max_binary_links,
        max_extracted_links=settings.crawl_max_extracted_links,
        min_link_score=settings.crawl_min_link_score,
        max_document_chars=settings.crawl_max_document_chars,
        stop_event=ctx.stop_event,
    )


def build_dispatcher(settings: Settings) -> EmbeddingDispatcher:
    return EmbeddingDispatcher(
        OpenAIEmbeddingBackend(settings.openai_api_key, model=settings.embedding_model),
        retry_policy=embedding_retry_policy(
            max_attempts=settings.embed_max_retries,
            base_delay=settings.embed_retry_base_seconds,
        ),
    )


def build_embedding_pipeline(ctx: RunContext) -> EmbeddingPipeline:
    settings = ctx.settings
    return EmbeddingPipeline(
        EmbeddingStore(ctx.session_maker, chunk_text_chars=settings.chunk_text_store_chars),
        build_dispatcher(settings),
        batch_size=settings.embed_batch_size,
        page_size=settings.embed_page_size,
        concurrency=settings.embed_concurrency,
        group_delay=settings.embed_group_delay_seconds,
        write_batch_size=settings.embed_write_batch_size,
        min_text_length=settings.embed_min_text_length,
        exclusion_cap=settings.embed_skip_exclusion_cap,
        chunk_max_chars=settings.chunk_max_chars,
        chunk_overlap=settings.chunk_overlap_chars,
        chunk_min_chars=settings.chunk_min_chars,
        max_document_chars=settings.chunk_max_document_chars,
        index_min_total=settings.vector_index_min_total,
        index_min_lists=settings.vector_index_min_lists,
        index_max_lists=settings.vector_index_max_lists,
        stop_event=ctx.stop_event,
    )


async def run_crawl(
    settings: Settings,
    mode: str = "pending",
    jurisdiction: Optional[str] = None,
    limit: Optional[int] = None,
    batch_id: Optional[str] = None,
) -> Dict[str, Any]:
    async with open_context(settings) as ctx:
        ctx.install_signal_handlers()
        entities = await EntityStore(ctx.session_maker).select_for_crawl(mode, jurisdiction, limit)
        crawl_log = CrawlLog(ctx.session_maker)
        targets = []
        for entity in entities:
            # Retries start the waterfall from what failed last time
            last_failure = await crawl_log.last_failure(entity.id) if mode == "failed_retry" else None
            targets.append(target_from_entity(entity, last_failure))
        summary = await build_crawl_orchestrator(ctx).run(targets, batch_id=batch_id)
        return summary.as_dict()


async def run_scoring(settings: Settings, batch_id: Optional[str] = None) -> Dict[str, Any]:
    async with open_context(settings) as ctx:
        runner = ScoringRunner(DocumentStore(ctx.session_maker), KeywordScoreStore(ctx.session_maker))
        summary = await runner.run(batch_id=batch_id)
        return summary.as_dict()


async def run_embeddings(
    settings: Settings,
    max_documents: Optional[int] = None,
    category: Optional[str] = None,
) -> Dict[str, Any]:
    async with open_context(settings) as ctx:
        ctx.install_signal_handlers()
        stats = await build_embedding_pipeline(ctx).run(max_documents=max_documents, category=category)
        return stats.as_dict(settings.embedding_cost_per_million_tokens)


async def run_reprocess(settings: Settings, limit: Optional[int] = None) -> Dict[str, Any]:
    async with open_context(settings) as ctx:
        ctx.install_signal_handlers()
        summary = await reprocess_binaries(
            build_crawl_orchestrator(ctx),
            DocumentStore(ctx.session_maker),
            limit=limit,
            request_delay=settings.crawl_request_delay_seconds,
        )
        return summary.as_dict()


async def run_search(settings: Settings, query: str, limit: int = 10) -> Dict[str, Any]:
    async with open_context(settings) as ctx:
        search = SemanticSearch(build_dispatcher(settings), EmbeddingStore(ctx.session_maker))
        hits = await search.search(query, limit=limit)
        return {"query": query, "results": [asdict(hit) for hit in hits]}


def _run(coro) -> Dict[str, Any]:
    settings = get_settings()
    configure_logging(settings.log_level)
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@celery_app.task(name="sitecorpus.workers.tasks.crawl_entities")
def crawl_entities(
    mode: str = "pending",
    jurisdiction: Optional[str] = None,
    limit: Optional[int] = None,
    batch_id: Optional[str] = None,
):
    """Discover and crawl entity websites."""
    return _run(run_crawl(get_settings(), mode, jurisdiction, limit, batch_id))


@celery_app.task(name="sitecorpus.workers.tasks.score_keywords")
def score_keywords(batch_id: Optional[str] = None):
    """Recompute keyword taxonomy scores for every entity with documents."""
    return _run(run_scoring(get_settings(), batch_id))


@celery_app.task(name="sitecorpus.workers.tasks.generate_embeddings")
def generate_embeddings(max_documents: Optional[int] = None, category: Optional[str] = None):
    """Chunk and embed every document that has no chunks yet."""
    return _run(run_embeddings(get_settings(), max_documents, category))


@celery_app.task(name="sitecorpus.workers.tasks.reprocess_binary_documents")
def reprocess_binary_documents(limit: Optional[int] = None):
    """Re-fetch PDF links that downloaded but failed extraction."""
    return _run(run_reprocess(get_settings(), limit))


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Site corpus crawl, scoring and embedding runs")
    sub = parser.add_subparsers(dest="command", required=True)

    crawl = sub.add_parser("crawl", help="Discover and crawl entity websites")
    crawl.add_argument("--mode", choices=CRAWL_MODES, default="pending")
    crawl.add_argument("--jurisdiction", default=None)
    crawl.add_argument("--limit", type=int, default=None)
    crawl.add_argument("--batch-id", default=None)

    score = sub.add_parser("score", help="Recompute keyword scores")
    score.add_argument("--batch-id", default=None)

    embed = sub.add_parser("embed", help="Generate embeddings for unembedded documents")
    embed.add_argument("--max-documents", type=int, default=None)
    embed.add_argument("--category", default=None)

    reprocess = sub.add_parser("reprocess", help="Re-extract failed PDF downloads")
    reprocess.add_argument("--limit", type=int, default=None)

    search = sub.add_parser("search", help="Semantic search over embedded chunks")
    search.add_argument("query")
    search.add_argument("--limit", type=int, default=10)

    args = parser.parse_args(argv)
    settings = get_settings()

    if args.command == "crawl":
        result = _run(run_crawl(settings, args.mode, args.jurisdiction, args.limit, args.batch_id))
    elif args.command == "score":
        result = _run(run_scoring(settings, args.batch_id))
    elif args.command == "embed":
        result = _run(run_embeddings(settings, args.max_documents, args.category))
    elif args.command == "reprocess":
        result = _run(run_reprocess(settings, args.limit))
    else:
        result = _run(run_search(settings, args.query, args.limit))
    print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
