"""Quality gate: map a score report to an article lifecycle state."""

from __future__ import annotations

import hashlib
import logging
import math
import re
import sqlite3
import unicodedata

from scribe.config import get_quality_config
from scribe.db import (
    close_review,
    enqueue_review,
    get_article,
    get_published_titles,
    insert_article,
    update_article_status,
)
from scribe.models import (
    Article,
    ArticleStatus,
    Draft,
    PromptTemplate,
    ScoreReport,
    TopicCluster,
)
from scribe.process.similarity import similarity
from scribe.retry import retry_write
from scribe.synthesize.synthesizer import ArticleSynthesizer

logger = logging.getLogger(__name__)

MAX_SLUG_LENGTH = 100

REVIEW_DECISIONS = {
    "approve": ArticleStatus.PUBLISHED,
    "reject": ArticleStatus.REJECTED,
    "revise": ArticleStatus.NEEDS_IMPROVEMENT,
}


def slugify(title: str) -> str:
    """URL-safe ASCII slug of at most 100 characters."""
    ascii_title = (
        unicodedata.normalize("NFKD", title).encode("ascii", "ignore").decode()
    )
    slug = re.sub(r"[^a-z0-9\s-]", "", ascii_title.lower())
    slug = re.sub(r"[\s-]+", "-", slug).strip("-")
    slug = slug[:MAX_SLUG_LENGTH].rstrip("-")
    if not slug:
        slug = "article-" + hashlib.sha256(title.encode()).hexdigest()[:10]
    return slug


class QualityGate:
    """Decide whether a draft is published, queued for review, or sent back."""

    def __init__(
        self,
        config: dict,
        conn: sqlite3.Connection,
        synthesizer: ArticleSynthesizer,
    ):
        cfg = get_quality_config(config)
        self.threshold = cfg["threshold"]
        self.auto_publish_threshold = cfg["auto_publish_threshold"]
        self.duplicate_similarity = cfg["duplicate_similarity"]
        self.conn = conn
        self.synthesizer = synthesizer

    async def process(
        self,
        cluster: TopicCluster,
        draft: Draft,
        report: ScoreReport,
        template: PromptTemplate,
        evaluation_template: PromptTemplate,
    ) -> Article:
        """Run the state machine for one draft and persist the resulting article."""
        if report.total < self.threshold:
            draft, report = await self._improve_once(
                draft, report, template, evaluation_template,
            )

        article = Article(
            title=draft.title,
            slug=slugify(draft.title),
            content=draft.body_text,
            summary=draft.summary,
            keywords=draft.keywords,
            keyword=cluster.keyword,
            source_item_ids=[m.id for m in cluster.members if m.id is not None],
            score_report=report,
        )
        self._route(article)

        article.id = await retry_write(insert_article, self.conn, article)
        if article.status == ArticleStatus.PENDING_REVIEW:
            await retry_write(
                enqueue_review, self.conn, article.id, math.ceil(report.total / 10),
            )

        logger.info(
            "Article '%s' -> %s (score %.0f)",
            article.title, article.status.value, report.total,
            extra={"details": {
                "article_id": article.id,
                "status": article.status.value,
                "quality_score": report.total,
            }},
        )
        return article

    async def _improve_once(
        self,
        draft: Draft,
        report: ScoreReport,
        template: PromptTemplate,
        evaluation_template: PromptTemplate,
    ) -> tuple[Draft, ScoreReport]:
        improved, improved_report = await self.synthesizer.improve(
            draft, report.improvements, template, evaluation_template,
        )
        logger.info(
            "Improvement attempt for '%s': %.0f -> %.0f",
            draft.title, report.total, improved_report.total,
        )
        if improved_report.total >= report.total:
            return improved, improved_report
        return draft, report

    def _route(self, article: Article) -> None:
        score = article.score_report.total
        if score < self.threshold:
            article.transition_to(ArticleStatus.NEEDS_IMPROVEMENT)
            return
        if score < self.auto_publish_threshold:
            article.transition_to(ArticleStatus.PENDING_REVIEW)
            return

        article.transition_to(ArticleStatus.APPROVED)
        duplicate = self.find_published_duplicate(article.title)
        if duplicate is None:
            article.transition_to(ArticleStatus.PUBLISHED)
            return

        existing, score_similarity = duplicate
        logger.warning(
            "Duplicate content detected: '%s' ~ '%s' (similarity %.2f)",
            article.title, existing, score_similarity,
            extra={"details": {
                "new_title": article.title,
                "existing_title": existing,
                "similarity": score_similarity,
            }},
        )
        article.transition_to(ArticleStatus.PENDING_REVIEW)

    def find_published_duplicate(self, title: str) -> tuple[str, float] | None:
        """First published title more similar than the configured ratio."""
        for existing in get_published_titles(self.conn):
            ratio = similarity(title, existing)
            if ratio > self.duplicate_similarity:
                return existing, ratio
        return None


def apply_review(conn: sqlite3.Connection, article_id: int, decision: str) -> Article:
    """External review action; the only path to ``rejected``."""
    if decision not in REVIEW_DECISIONS:
        raise ValueError(
            f"Unknown review decision '{decision}' (expected one of {', '.join(REVIEW_DECISIONS)})"
        )
    article = get_article(conn, article_id)
    if article is None:
        raise LookupError(f"Article {article_id} not found")

    article.transition_to(REVIEW_DECISIONS[decision])
    update_article_status(conn, article)
    close_review(conn, article_id, "done")
    logger.info("Review '%s' applied to article %d", decision, article_id)
    return article
