"""Performance feedback loop that rewrites the active prompt templates."""

from __future__ import annotations

import json
import logging
import math
import sqlite3
from datetime import datetime, timedelta

import numpy as np

from scribe.config import get_learning_config
from scribe.db import (
    finish_stats,
    get_active_template,
    get_learning_data,
    get_published_articles,
    insert_learning_data,
    insert_stats,
    mark_learning_applied,
    replace_active_template,
)
from scribe.llm import complete_task
from scribe.llm.cost import start_tracking
from scribe.llm.prompts import DEFAULT_TEMPLATES, LEARN_FROM_PERFORMANCE, SYSTEM_EDITOR
from scribe.models import (
    LearningAnalysis,
    LearningResult,
    PerformanceMetrics,
    PipelineStats,
)
from scribe.synthesize.parsing import extract_json

logger = logging.getLogger(__name__)


def collect_performance(
    conn: sqlite3.Connection, window_days: int, now: datetime | None = None,
) -> list[PerformanceMetrics]:
    """Reader metrics for articles published inside the window, most viewed first."""
    since = (now or datetime.utcnow()) - timedelta(days=window_days)
    metrics = []
    for article in get_published_articles(conn, since):
        shares = sum(
            v for v in article.social_shares.values() if isinstance(v, (int, float))
        )
        metrics.append(
            PerformanceMetrics(
                article_id=article.id,
                title=article.title,
                view_count=article.view_count or 0,
                avg_time_on_page=article.avg_time_on_page or 0.0,
                bounce_rate=article.bounce_rate if article.bounce_rate is not None else 100.0,
                social_shares=int(shares),
                quality_score=article.score_report.total,
                published_at=article.published_at,
            )
        )
    return metrics


def summarize_metrics(metrics: list[PerformanceMetrics]) -> dict:
    """Mean/median/max of each metric plus the view-vs-quality correlation."""
    columns = {
        "views": np.array([m.view_count for m in metrics], dtype=float),
        "time_on_page": np.array([m.avg_time_on_page for m in metrics], dtype=float),
        "bounce_rate": np.array([m.bounce_rate for m in metrics], dtype=float),
        "shares": np.array([m.social_shares for m in metrics], dtype=float),
        "quality": np.array([m.quality_score for m in metrics], dtype=float),
    }
    summary = {
        name: {
            "mean": round(float(values.mean()), 2),
            "median": round(float(np.median(values)), 2),
            "max": round(float(values.max()), 2),
        }
        for name, values in columns.items()
    }

    views, quality = columns["views"], columns["quality"]
    correlation = 0.0
    if len(metrics) > 1 and views.std() > 0 and quality.std() > 0:
        correlation = float(np.corrcoef(views, quality)[0, 1])
    summary["views_quality_correlation"] = round(correlation, 3)
    summary["articles"] = len(metrics)
    return summary


def parse_analysis(data: dict | None) -> LearningAnalysis | None:
    """Turn the learn reply into a LearningAnalysis; None when it is unusable."""
    if not isinstance(data, dict):
        return None
    success = data.get("success_patterns")
    improvements = data.get("prompt_improvements")
    if not isinstance(success, dict) and not isinstance(improvements, dict):
        return None
    success = success if isinstance(success, dict) else {}
    improvements = improvements if isinstance(improvements, dict) else {}

    def _strings(value) -> list[str]:
        if not isinstance(value, list):
            return []
        return [str(v) for v in value if v]

    try:
        optimal_length = int(success.get("optimal_length") or 0)
    except (TypeError, ValueError, OverflowError):
        optimal_length = 0

    try:
        improvement_score = float(data["improvement_score"])
    except (KeyError, TypeError, ValueError, OverflowError):
        improvement_score = None
    if improvement_score is not None:
        improvement_score = (
            max(0.0, min(improvement_score, 100.0))
            if math.isfinite(improvement_score) else None
        )

    return LearningAnalysis(
        title_patterns=_strings(success.get("title_patterns")),
        content_patterns=_strings(success.get("content_patterns")),
        optimal_length=max(optimal_length, 0),
        best_posting_time=str(success.get("best_posting_time") or ""),
        failure_patterns=_strings(data.get("failure_patterns")),
        generation_template=str(improvements.get("generation") or "").strip(),
        evaluation_template=str(improvements.get("evaluation") or "").strip(),
        improvement_score=improvement_score,
    )


def estimate_improvement(analysis: LearningAnalysis) -> float:
    """Heuristic score from how much usable signal the analysis contains."""
    score = 0
    if analysis.title_patterns:
        score += 20
    if analysis.content_patterns:
        score += 20
    if analysis.optimal_length > 0:
        score += 15
    if analysis.best_posting_time:
        score += 15
    if analysis.generation_template:
        score += 15
    if analysis.evaluation_template:
        score += 15
    return float(min(score, 100))


class LearningLoop:
    """Analyze recent performance and install improved prompt templates."""

    def __init__(self, config: dict, conn: sqlite3.Connection):
        self.config = config
        self.conn = conn
        cfg = get_learning_config(config)
        self.window_days = cfg["window_days"]
        self.min_samples = cfg["min_samples"]
        self.apply_threshold = cfg["apply_threshold"]

    async def run(self, now: datetime | None = None) -> LearningResult | None:
        tracker = start_tracking()
        stats = PipelineStats(kind="learning")
        stats_id = insert_stats(self.conn, stats)
        status = "failed"
        try:
            status, result = await self._cycle(now)
            return result
        finally:
            stats.status = status
            stats.finished_at = datetime.utcnow()
            stats.llm_tokens_used = tracker.total_tokens
            stats.llm_cost_usd = tracker.total_cost_usd
            try:
                finish_stats(self.conn, stats_id, stats)
            except sqlite3.Error:
                logger.exception("Could not record learning run stats")

    async def _cycle(self, now: datetime | None) -> tuple[str, LearningResult | None]:
        """Return the run status alongside the result; only "completed" has one."""
        metrics = collect_performance(self.conn, self.window_days, now)
        if len(metrics) < self.min_samples:
            logger.info(
                "Insufficient data for learning: %d published articles (need %d)",
                len(metrics), self.min_samples,
            )
            return "skipped", None

        prompt = LEARN_FROM_PERFORMANCE.format(
            aggregates=json.dumps(summarize_metrics(metrics), indent=2),
            articles="\n".join(
                f"- \"{m.title}\": {m.view_count} views, "
                f"{m.avg_time_on_page:.0f}s on page, {m.bounce_rate:.0f}% bounce, "
                f"{m.social_shares} shares, quality {m.quality_score:.0f}"
                for m in metrics
            ),
            generation_template=self._current_template("generation"),
            evaluation_template=self._current_template("evaluation"),
        )

        try:
            response = await complete_task(self.config, "learn", prompt, system=SYSTEM_EDITOR)
        except Exception:
            logger.warning("Learning analysis call failed", exc_info=True)
            return "failed", None

        analysis = parse_analysis(extract_json(response.text))
        if analysis is None:
            logger.warning("Failed to parse learning analysis, templates unchanged")
            return "failed", None

        improvement_score = analysis.improvement_score
        if improvement_score is None:
            improvement_score = estimate_improvement(analysis)

        analysis_id = insert_learning_data(
            self.conn, analysis, len(metrics), improvement_score,
        )

        updated = 0
        for template_type, text in (
            ("generation", analysis.generation_template),
            ("evaluation", analysis.evaluation_template),
        ):
            if text:
                template = replace_active_template(self.conn, template_type, text)
                logger.info("Installed %s template v%d", template_type, template.version)
                updated += 1

        applied = False
        if improvement_score > self.apply_threshold:
            applied = mark_learning_applied(self.conn, analysis_id)

        logger.info(
            "Learning cycle completed: %d articles, %d templates updated, "
            "improvement %.0f%s",
            len(metrics), updated, improvement_score,
            "" if applied else " (awaiting manual apply)",
            extra={"details": {
                "analysis_id": analysis_id,
                "articles_analyzed": len(metrics),
                "templates_updated": updated,
                "improvement_score": improvement_score,
                "applied": applied,
            }},
        )
        return "completed", LearningResult(
            analysis_id=analysis_id,
            analysis=analysis,
            articles_analyzed=len(metrics),
            templates_updated=updated,
            improvement_score=improvement_score,
            applied=applied,
        )

    def _current_template(self, template_type: str) -> str:
        template = get_active_template(self.conn, template_type)
        return template.template if template else DEFAULT_TEMPLATES[template_type]


def apply_learning(conn: sqlite3.Connection, learning_id: int) -> bool:
    """Manually confirm an analysis that fell below the auto-apply threshold."""
    if get_learning_data(conn, learning_id) is None:
        raise LookupError(f"Learning analysis {learning_id} not found")
    applied = mark_learning_applied(conn, learning_id)
    logger.info(
        "Learning patterns applied", extra={"details": {"learning_id": learning_id}},
    )
    return applied
