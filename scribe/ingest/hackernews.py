"""Hacker News source fetcher via Algolia search API."""

from __future__ import annotations

import logging

import httpx

from scribe.ingest import register_source
from scribe.ingest.base import BaseSource
from scribe.ingest.scraper import enrich_body
from scribe.models import RawItem
from scribe.retry import retry_async

logger = logging.getLogger(__name__)

HN_ALGOLIA_URL = "https://hn.algolia.com/api/v1/search_by_date"


@register_source("hackernews")
class HackerNewsSource(BaseSource):
    """Fetch stories from Hacker News via Algolia search API."""

    @property
    def name(self) -> str:
        return "hackernews"

    async def fetch(self) -> list[RawItem]:
        cfg = self.source_config
        queries = cfg.get("queries", [])
        if not queries:
            return []

        min_points = cfg.get("min_points", 10)
        limit = cfg.get("limit", 15)
        extract = cfg.get("extract_content", True)

        items = []
        for query in queries:
            try:
                items.extend(await self._search(query, min_points, limit, extract))
            except Exception:
                logger.exception("HN search failed for query '%s'", query)

        logger.info("HN fetched %d items", len(items))
        return items

    async def _search(
        self, query: str, min_points: int, limit: int, extract: bool,
    ) -> list[RawItem]:
        """Execute a single Algolia search query."""
        data = await retry_async(self._fetch_api, query, limit)

        items = []
        for hit in data.get("hits", []):
            title = hit.get("title", "")
            if not title:
                continue

            points = hit.get("points") or 0
            if points < min_points:
                continue

            url = hit.get("url", "")
            story_id = hit.get("objectID", "")
            if not url and story_id:
                url = f"https://news.ycombinator.com/item?id={story_id}"
            if not url:
                continue

            body = await enrich_body(hit.get("story_text") or "", url, extract)
            items.append(
                RawItem(
                    source=self.name,
                    title=title,
                    body=body,
                    url=url,
                    author=hit.get("author", ""),
                    trend_score=float(points),
                ),
            )

        return items

    @staticmethod
    async def _fetch_api(query: str, limit: int) -> dict:
        params = {
            "query": query,
            "tags": "story",
            "hitsPerPage": limit,
        }
        async with httpx.AsyncClient(timeout=30) as client:
            resp = await client.get(HN_ALGOLIA_URL, params=params)
            resp.raise_for_status()
            return resp.json()
