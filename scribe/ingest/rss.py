"""RSS feed source fetcher."""

from __future__ import annotations

import logging

import feedparser

from scribe.ingest import register_source
from scribe.ingest.base import BaseSource
from scribe.ingest.scraper import enrich_body
from scribe.models import RawItem

logger = logging.getLogger(__name__)


@register_source("rss")
class RSSSource(BaseSource):
    """Fetch items from configured RSS feeds."""

    @property
    def name(self) -> str:
        return "rss"

    async def fetch(self) -> list[RawItem]:
        cfg = self.source_config
        extract = cfg.get("extract_content", True)
        items = []

        for feed_cfg in cfg.get("feeds", []):
            url = feed_cfg["url"]
            feed_name = feed_cfg.get("name", url)
            try:
                items.extend(await self._parse_feed(url, feed_name, extract))
            except Exception:
                logger.exception("Failed to fetch RSS feed: %s", url)

        logger.info("RSS fetched %d items", len(items))
        return items

    async def _parse_feed(
        self, url: str, feed_name: str, extract: bool,
    ) -> list[RawItem]:
        """Parse a single feed into raw items."""
        feed = feedparser.parse(url)
        if getattr(feed, "bozo", False) and not feed.entries:
            logger.warning("Feed %s could not be parsed", url)
            return []

        items = []
        for entry in feed.entries:
            link = entry.get("link", "")
            title = entry.get("title", "")
            if not link or not title:
                continue

            body = await enrich_body(entry.get("summary", ""), link, extract)
            items.append(
                RawItem(
                    source=self.name,
                    title=title,
                    body=body,
                    url=link,
                    author=entry.get("author", "") or feed_name,
                ),
            )

        return items
