"""Collection and generation runs: the units of work the scheduler drives."""

from __future__ import annotations

import asyncio
import logging
import sqlite3
from datetime import datetime

from scribe.config import get_active_sources, get_pipeline_config
from scribe.db import (
    finish_stats,
    get_active_template,
    get_unprocessed_items,
    insert_raw_item,
    insert_stats,
    mark_items_processed,
)
from scribe.gate import QualityGate
from scribe.ingest import SOURCES
from scribe.llm.cost import CostTracker, start_tracking
from scribe.llm.prompts import DEFAULT_TEMPLATES
from scribe.models import (
    ArticleStatus,
    CollectionResult,
    GenerationResult,
    PipelineStats,
    PromptTemplate,
    RawItem,
)
from scribe.process.batcher import TopicBatcher
from scribe.process.duplicates import DuplicateFilter
from scribe.process.similarity import normalize
from scribe.retry import retry_write
from scribe.synthesize.synthesizer import ArticleSynthesizer

logger = logging.getLogger(__name__)


def _finish(
    conn: sqlite3.Connection,
    stats_id: int,
    stats: PipelineStats,
    tracker: CostTracker,
    status: str,
) -> None:
    stats.status = status
    stats.finished_at = datetime.utcnow()
    stats.llm_tokens_used = tracker.total_tokens
    stats.llm_cost_usd = tracker.total_cost_usd
    try:
        finish_stats(conn, stats_id, stats)
    except sqlite3.Error:
        logger.exception("Could not record %s run stats", stats.kind)


async def run_collection(config: dict, conn: sqlite3.Connection) -> CollectionResult:
    """Fetch every enabled source concurrently and store the new items."""
    tracker = start_tracking()
    stats = PipelineStats(kind="collection")
    stats_id = insert_stats(conn, stats)
    result = CollectionResult()

    try:
        active_sources = get_active_sources(config)
        valid_sources = [s for s in active_sources if s in SOURCES]
        for s in active_sources:
            if s not in SOURCES:
                logger.warning("Source '%s' enabled but not registered", s)

        async def _fetch(source_name: str) -> tuple[str, list[RawItem], str | None]:
            try:
                source = SOURCES[source_name](config)
                return source_name, await source.fetch(), None
            except Exception as exc:
                logger.exception("Source '%s' failed", source_name)
                return source_name, [], str(exc) or type(exc).__name__

        fetched = await asyncio.gather(*[_fetch(name) for name in valid_sources])

        for source_name, items, error in fetched:
            if error is not None:
                result.errors[source_name] = error
            new = 0
            for item in items:
                _, created = await retry_write(insert_raw_item, conn, item)
                new += int(created)
            result.by_source[source_name] = new
            result.total_fetched += len(items)
            result.total_new += new
            logger.info(
                "Source '%s': %d fetched, %d new", source_name, len(items), new,
                extra={"details": {"source": source_name, "fetched": len(items), "new": new}},
            )

        stats.items_collected = result.total_new
        _finish(conn, stats_id, stats, tracker, "completed")
        logger.info(
            "Collection completed: %d fetched, %d new from %d sources",
            result.total_fetched, result.total_new, len(valid_sources),
        )
        return result

    except Exception:
        logger.exception("Collection run failed")
        _finish(conn, stats_id, stats, tracker, "failed")
        raise


def _load_templates(conn: sqlite3.Connection) -> tuple[PromptTemplate, PromptTemplate]:
    """Active generation and evaluation templates, falling back to the defaults."""
    templates = []
    for template_type in ("generation", "evaluation"):
        template = get_active_template(conn, template_type)
        if template is None:
            logger.warning("No active %s template, using the default", template_type)
            template = PromptTemplate(
                type=template_type, template=DEFAULT_TEMPLATES[template_type],
            )
        templates.append(template)
    return templates[0], templates[1]


async def run_generation(config: dict, conn: sqlite3.Connection) -> GenerationResult:
    """Batch unprocessed items, pick the strongest fresh topics, and draft articles.

    Candidates are processed one at a time. A storage error aborts the run
    before the considered items are marked processed, so they are simply
    re-clustered next time.
    """
    tracker = start_tracking()
    stats = PipelineStats(kind="generation")
    stats_id = insert_stats(conn, stats)
    cfg = get_pipeline_config(config)

    try:
        items = get_unprocessed_items(conn, limit=cfg["max_unprocessed"])
        result = GenerationResult(items_considered=len(items))
        stats.items_considered = len(items)

        if len(items) < cfg["min_data_points"]:
            logger.info(
                "Only %d unprocessed items (need %d), skipping generation",
                len(items), cfg["min_data_points"],
            )
            result.status = "skipped"
            _finish(conn, stats_id, stats, tracker, "skipped")
            return result

        clusters = await TopicBatcher(config).batch(items)
        candidates = sorted(
            (c for c in clusters if c.is_candidate),
            key=lambda c: c.aggregate_score,
            reverse=True,
        )
        result.clusters_formed = len(clusters)
        result.candidates = len(candidates)
        stats.clusters_formed = len(clusters)

        duplicate_filter = DuplicateFilter(config)
        recent_titles = duplicate_filter.recent_titles(conn)
        fresh = duplicate_filter.filter(candidates, recent_titles)
        result.duplicates_skipped = len(candidates) - len(fresh)

        generation_template, evaluation_template = _load_templates(conn)
        synthesizer = ArticleSynthesizer(config, conn)
        gate = QualityGate(config, conn, synthesizer)

        for cluster in fresh[: cfg["articles_per_run"]]:
            collision = DuplicateFilter.find_collision(cluster, recent_titles)
            if collision is not None:
                logger.info(
                    "Skipping topic '%s', covered earlier in this run by '%s'",
                    cluster.keyword, collision,
                )
                result.duplicates_skipped += 1
                continue

            try:
                draft, report = await synthesizer.synthesize(
                    cluster, generation_template, evaluation_template,
                )
                article = await gate.process(
                    cluster, draft, report, generation_template, evaluation_template,
                )
            except sqlite3.Error:
                raise
            except Exception:
                logger.exception("Failed to produce an article for '%s'", cluster.keyword)
                continue

            result.articles.append(article)
            if article.status == ArticleStatus.PUBLISHED:
                recent_titles[normalize(article.title)] = article.title

        await retry_write(
            mark_items_processed, conn, [i.id for i in items if i.id is not None],
        )

        stats.articles_generated = result.articles_generated
        stats.articles_published = result.articles_published
        stats.average_score = result.average_score
        _finish(conn, stats_id, stats, tracker, "completed")
        logger.info(
            "Generation completed: %d items, %d clusters, %d candidates, "
            "%d articles (%d published), %d tokens, $%.4f",
            len(items), result.clusters_formed, result.candidates,
            result.articles_generated, result.articles_published,
            tracker.total_tokens, tracker.total_cost_usd,
        )
        return result

    except Exception:
        logger.exception("Generation run failed")
        _finish(conn, stats_id, stats, tracker, "failed")
        raise
