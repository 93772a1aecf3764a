"""Operational surface: manual triggers, status, and review actions.

Every function returns a plain dict with an ``ok`` flag; failures are
reported as ``{"ok": False, "error": msg}`` rather than raised.
"""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import asdict
from datetime import datetime, timedelta

from scribe.config import get_db_path
from scribe.db import (
    count_unprocessed,
    get_articles_created_since,
    get_connection,
    get_pending_reviews,
)
from scribe.gate import apply_review
from scribe.learning import apply_learning
from scribe.scheduler import Scheduler

logger = logging.getLogger(__name__)

TASK_ALIASES = {
    "collect": "collection",
    "collection": "collection",
    "generate": "generation",
    "generation": "generation",
    "learn": "learning",
    "learning": "learning",
}


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


async def trigger(scheduler: Scheduler, task: str) -> dict:
    """Run one collection, generation, or learning pass on demand."""
    kind = TASK_ALIASES.get(task)
    if kind is None:
        return {"ok": False, "error": f"Unknown task '{task}'"}
    if scheduler.is_busy(kind):
        return {"ok": False, "error": f"{kind} run already in progress"}

    runner = {
        "collection": scheduler.run_collection,
        "generation": scheduler.run_generation,
        "learning": scheduler.run_learning,
    }[kind]
    try:
        result = await runner()
    except Exception as exc:
        logger.error("Manual %s run failed: %s", kind, exc)
        return {"ok": False, "error": str(exc) or type(exc).__name__}

    response = {"ok": True, "task": kind}
    if kind == "collection" and result is not None:
        response.update(
            total_fetched=result.total_fetched,
            total_new=result.total_new,
            by_source=result.by_source,
            errors=result.errors,
        )
    elif kind == "generation" and result is not None:
        response.update(
            status=result.status,
            items_considered=result.items_considered,
            candidates=result.candidates,
            articles_generated=result.articles_generated,
            articles_published=result.articles_published,
            average_score=result.average_score,
        )
    elif kind == "learning":
        if result is None:
            response["status"] = "skipped"
        else:
            response.update(
                status="completed",
                analysis_id=result.analysis_id,
                articles_analyzed=result.articles_analyzed,
                templates_updated=result.templates_updated,
                improvement_score=result.improvement_score,
                applied=result.applied,
            )
    return response


def status(scheduler: Scheduler, now: datetime | None = None) -> dict:
    """Scheduler state plus article statistics for the last 24 hours."""
    state = scheduler.state
    response = {
        "ok": True,
        "is_running": state.is_running,
        "last_collection_run": _iso(state.last_collection_run),
        "last_generation_run": _iso(state.last_generation_run),
        "last_learning_run": _iso(state.last_learning_run),
        "config": asdict(state.config),
    }

    since = (now or datetime.utcnow()) - timedelta(hours=24)
    try:
        conn = get_connection(get_db_path(scheduler.config))
        try:
            articles = get_articles_created_since(conn, since)
            unprocessed = count_unprocessed(conn)
        finally:
            conn.close()
    except sqlite3.Error as exc:
        logger.error("Status query failed: %s", exc)
        return {"ok": False, "error": str(exc)}

    breakdown: dict[str, int] = {}
    for article in articles:
        breakdown[article.status.value] = breakdown.get(article.status.value, 0) + 1
    scores = [a.score_report.total for a in articles]
    response["stats"] = {
        "articles_last_24h": len(articles),
        "average_quality": round(sum(scores) / len(scores), 1) if scores else 0,
        "status_breakdown": breakdown,
        "unprocessed_items": unprocessed,
    }
    return response


def review(config: dict, article_id: int, decision: str) -> dict:
    """Apply a human review decision to one article."""
    try:
        conn = get_connection(get_db_path(config))
        try:
            article = apply_review(conn, article_id, decision)
        finally:
            conn.close()
    except (ValueError, LookupError, sqlite3.Error) as exc:
        return {"ok": False, "error": str(exc)}
    return {
        "ok": True,
        "article_id": article.id,
        "status": article.status.value,
        "published_at": _iso(article.published_at),
    }


def pending_reviews(config: dict) -> dict:
    try:
        conn = get_connection(get_db_path(config))
        try:
            reviews = get_pending_reviews(conn)
        finally:
            conn.close()
    except sqlite3.Error as exc:
        return {"ok": False, "error": str(exc)}
    return {"ok": True, "reviews": reviews}


def confirm_learning(config: dict, learning_id: int) -> dict:
    """Mark a stored analysis as applied after manual inspection."""
    try:
        conn = get_connection(get_db_path(config))
        try:
            applied = apply_learning(conn, learning_id)
        finally:
            conn.close()
    except (LookupError, sqlite3.Error) as exc:
        return {"ok": False, "error": str(exc)}
    return {"ok": True, "learning_id": learning_id, "applied": applied}
