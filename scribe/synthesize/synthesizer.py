"""Draft and score one topic cluster via the generative-text service."""

from __future__ import annotations

import logging
import sqlite3

from scribe.config import get_pipeline_config
from scribe.db import increment_template_usage
from scribe.llm import complete_task
from scribe.llm.prompts import (
    EVALUATE_ARTICLE,
    GENERATE_ARTICLE,
    IMPROVE_ARTICLE,
    SYSTEM_EDITOR,
)
from scribe.models import Draft, PromptTemplate, ScoreReport, TopicCluster
from scribe.synthesize.parsing import (
    default_score_report,
    extract_json,
    parse_draft,
    parse_score_report,
    reading_minutes,
)

logger = logging.getLogger(__name__)

EXCERPT_CHARS = 500
EVALUATION_CHARS = 12000


def placeholder_draft(cluster: TopicCluster) -> Draft:
    """Deterministic draft assembled from the cluster itself."""
    keyword = cluster.keyword
    sources = ", ".join(sorted(cluster.sources)) or "collected sources"
    lines = [
        f"# {keyword.title()}: what the latest signals say",
        "",
        f"Recent coverage from {sources} points to growing activity around "
        f"**{keyword}**.",
        "",
        "## Highlights",
        "",
    ]
    lines.extend(f"- {m.title}" for m in cluster.members)
    body = "\n".join(lines)
    return Draft(
        title=f"{keyword.title()}: what the latest signals say",
        body_text=body,
        summary=f"{len(cluster.members)} recent items from {sources} about {keyword}."[:160],
        keywords=list(cluster.top_terms) or [keyword],
        estimated_reading_minutes=reading_minutes(body),
    )


class ArticleSynthesizer:
    """Turn a cluster into a (Draft, ScoreReport) pair without ever raising."""

    def __init__(self, config: dict, conn: sqlite3.Connection):
        self.config = config
        self.conn = conn
        self.excerpt_count = get_pipeline_config(config)["excerpt_count"]

    async def synthesize(
        self,
        cluster: TopicCluster,
        template: PromptTemplate,
        evaluation_template: PromptTemplate,
    ) -> tuple[Draft, ScoreReport]:
        draft = await self.generate(cluster, template)
        report = await self.evaluate(draft, evaluation_template)
        return draft, report

    async def generate(self, cluster: TopicCluster, template: PromptTemplate) -> Draft:
        excerpts = []
        for i, member in enumerate(cluster.members[: self.excerpt_count], 1):
            body = (member.body or "")[:EXCERPT_CHARS]
            excerpts.append(f"[{i}] {member.title} (Source: {member.source})\n{body}")

        prompt = GENERATE_ARTICLE.format(
            keyword=cluster.keyword,
            terms=", ".join(cluster.top_terms),
            sources=", ".join(sorted(cluster.sources)),
            excerpts="\n\n".join(excerpts),
            structure=template.template,
        )
        self._record_usage(template)

        draft = await self._request_draft("generate", prompt)
        if draft is None:
            logger.warning(
                "Generation output unusable for '%s', using placeholder draft",
                cluster.keyword,
            )
            return placeholder_draft(cluster)
        return draft

    async def evaluate(self, draft: Draft, template: PromptTemplate) -> ScoreReport:
        prompt = EVALUATE_ARTICLE.format(
            criteria=template.template,
            title=draft.title,
            summary=draft.summary,
            content=draft.body_text[:EVALUATION_CHARS],
        )
        self._record_usage(template)

        try:
            response = await complete_task(
                self.config, "evaluate", prompt, system=SYSTEM_EDITOR,
            )
        except Exception:
            logger.warning("Evaluation call failed for '%s'", draft.title, exc_info=True)
            return default_score_report()

        report = parse_score_report(extract_json(response.text))
        if report is None:
            logger.warning("Failed to parse evaluation for '%s', using default score", draft.title)
            return default_score_report()
        return report

    async def improve(
        self,
        draft: Draft,
        improvements: list[str],
        template: PromptTemplate,
        evaluation_template: PromptTemplate,
    ) -> tuple[Draft, ScoreReport]:
        """One corrective rewrite of ``draft`` followed by a fresh evaluation."""
        feedback = "\n".join(f"- {i}" for i in improvements) or (
            "- Strengthen accuracy, structure, and reader engagement."
        )
        prompt = IMPROVE_ARTICLE.format(
            structure=template.template,
            improvements=feedback,
            title=draft.title,
            summary=draft.summary,
            content=draft.body_text[:EVALUATION_CHARS],
        )
        self._record_usage(template)

        improved = await self._request_draft("improve", prompt)
        if improved is None:
            logger.warning("Improvement output unusable for '%s', keeping original", draft.title)
            improved = draft
        report = await self.evaluate(improved, evaluation_template)
        return improved, report

    async def _request_draft(self, task: str, prompt: str) -> Draft | None:
        try:
            response = await complete_task(self.config, task, prompt, system=SYSTEM_EDITOR)
        except Exception:
            logger.warning("LLM %s call failed", task, exc_info=True)
            return None
        return parse_draft(extract_json(response.text))

    def _record_usage(self, template: PromptTemplate) -> None:
        template.usage_count += 1
        if template.id is None:
            return
        try:
            increment_template_usage(self.conn, template.id)
        except sqlite3.Error:
            logger.warning("Could not record usage of %s template", template.type)
