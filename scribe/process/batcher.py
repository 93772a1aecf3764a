"""Group raw items into topic clusters by salient-term overlap."""

from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta

from scribe.config import get_pipeline_config
from scribe.llm import complete_task
from scribe.llm.prompts import CONFIRM_TOPIC, SYSTEM_EDITOR
from scribe.models import RawItem, TopicCluster
from scribe.process.similarity import RELATED_THRESHOLD, key_terms, term_overlap
from scribe.synthesize.parsing import extract_json

logger = logging.getLogger(__name__)

# Score components, all on a 0-100 scale
MEMBER_POINTS, MEMBER_CAP = 10, 50
SOURCE_POINTS, SOURCE_CAP = 5, 20
RECENT_POINTS, RECENT_CAP = 10, 30
RECENT_WINDOW = timedelta(hours=24)


def item_terms(item: RawItem) -> list[str]:
    return key_terms(f"{item.title} {item.body or ''}")


def aggregate_score(items: list[RawItem], now: datetime | None = None) -> float:
    """Member count + distinct sources + recency, each capped, clamped to 0-100."""
    now = now or datetime.utcnow()
    base = min(len(items) * MEMBER_POINTS, MEMBER_CAP)
    source_bonus = min(len({i.source for i in items}) * SOURCE_POINTS, SOURCE_CAP)
    recent = sum(
        1 for i in items
        if i.collected_at and now - i.collected_at < RECENT_WINDOW
    )
    recency_bonus = min(recent * RECENT_POINTS, RECENT_CAP)
    return float(max(0, min(base + source_bonus + recency_bonus, 100)))


class TopicBatcher:
    """Seeded greedy clustering of unprocessed items."""

    def __init__(self, config: dict):
        self.config = config
        cfg = get_pipeline_config(config)
        self.min_data_points = cfg["min_data_points"]
        self.candidate_threshold = cfg["candidate_threshold"]
        self.confirm_with_llm = cfg["confirm_with_llm"]
        self.excerpt_count = cfg["excerpt_count"]

    async def batch(
        self, items: list[RawItem], now: datetime | None = None,
    ) -> list[TopicCluster]:
        """Cluster items; clusters smaller than min_data_points are never formed."""
        pending = [i for i in items if not i.processed]
        if len(pending) < self.min_data_points:
            return []

        terms = [item_terms(i) for i in pending]
        assigned = [False] * len(pending)
        clusters = []

        for seed in range(len(pending)):
            if assigned[seed]:
                continue
            related = [
                j for j in range(len(pending))
                if not assigned[j]
                and term_overlap(terms[seed], terms[j]) > RELATED_THRESHOLD
            ]
            if len(related) < self.min_data_points:
                continue
            for j in related:
                assigned[j] = True
            cluster = self._build_cluster(
                [pending[j] for j in related],
                [terms[j] for j in related],
                now,
            )
            cluster.is_candidate = await self._is_candidate(cluster)
            clusters.append(cluster)

        logger.info(
            "Batched %d items into %d clusters (%d candidates)",
            len(pending), len(clusters), sum(c.is_candidate for c in clusters),
        )
        return clusters

    def _build_cluster(
        self,
        members: list[RawItem],
        member_terms: list[list[str]],
        now: datetime | None,
    ) -> TopicCluster:
        frequency = Counter(t for terms in member_terms for t in terms)
        top_terms = [term for term, _ in frequency.most_common(5)]
        return TopicCluster(
            keyword=top_terms[0] if top_terms else "trend",
            members=members,
            aggregate_score=aggregate_score(members, now),
            sources={m.source for m in members},
            top_terms=top_terms,
        )

    async def _is_candidate(self, cluster: TopicCluster) -> bool:
        numeric = (
            cluster.aggregate_score / 10 >= self.candidate_threshold
            and len(cluster.members) >= self.min_data_points
        )
        if not numeric or not self.confirm_with_llm:
            return numeric

        confirmed = await self._confirm(cluster)
        return numeric if confirmed is None else confirmed

    async def _confirm(self, cluster: TopicCluster) -> bool | None:
        """Ask the evaluation service for a second opinion; None on any failure."""
        excerpts = "\n".join(
            f"- [{m.source}] {m.title}" for m in cluster.members[: self.excerpt_count]
        )
        prompt = CONFIRM_TOPIC.format(keyword=cluster.keyword, excerpts=excerpts)
        try:
            response = await complete_task(
                self.config, "confirm", prompt, system=SYSTEM_EDITOR,
            )
        except Exception as exc:
            logger.debug("Topic confirmation failed for '%s': %s", cluster.keyword, exc)
            return None

        data = extract_json(response.text)
        if not data or "should_write_article" not in data:
            return None
        try:
            score = float(data.get("trend_score", 0))
        except (TypeError, ValueError):
            return None
        return bool(data["should_write_article"]) and score >= self.candidate_threshold
