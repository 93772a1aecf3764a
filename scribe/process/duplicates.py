"""Pre-generation guard against topics that were published recently."""

from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta

from scribe.config import get_pipeline_config
from scribe.db import get_published_titles
from scribe.models import TopicCluster
from scribe.process.similarity import normalize

logger = logging.getLogger(__name__)


class DuplicateFilter:
    """Drop candidates whose keyword appears in a recently published title.

    The match is a narrow case-insensitive substring test: missing a duplicate
    is acceptable, rejecting a fresh topic is not.
    """

    def __init__(self, config: dict):
        self.config = config
        self.window_days = get_pipeline_config(config)["duplicate_window_days"]

    def recent_titles(
        self, conn: sqlite3.Connection, now: datetime | None = None,
    ) -> dict[str, str]:
        """Normalized title -> title for articles published inside the window."""
        since = (now or datetime.utcnow()) - timedelta(days=self.window_days)
        return {normalize(t): t for t in get_published_titles(conn, since=since)}

    def filter(
        self, candidates: list[TopicCluster], recent_titles: dict[str, str],
    ) -> list[TopicCluster]:
        kept = []
        for cluster in candidates:
            collision = self.find_collision(cluster, recent_titles)
            if collision is None:
                kept.append(cluster)
            else:
                logger.info(
                    "Skipping duplicate topic '%s' (recently published: '%s')",
                    cluster.keyword, collision,
                )
        return kept

    @staticmethod
    def find_collision(
        cluster: TopicCluster, recent_titles: dict[str, str],
    ) -> str | None:
        keyword = cluster.keyword.lower()
        if not keyword:
            return None
        for title in recent_titles.values():
            if keyword in title.lower():
                return title
        return None
