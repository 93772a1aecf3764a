"""Reddit hot listings through the OAuth2 API (script-app client credentials)."""

from __future__ import annotations

import logging

import httpx

from scribe.ingest import register_source
from scribe.ingest.base import BaseSource
from scribe.ingest.scraper import enrich_body
from scribe.models import RawItem
from scribe.retry import retry_async

logger = logging.getLogger(__name__)

USER_AGENT = "scribe/0.1 (trend-driven article pipeline)"
TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
OAUTH_BASE = "https://oauth.reddit.com"


@register_source("reddit")
class RedditSource(BaseSource):
    """Hot posts per subreddit; the post score becomes the trend score."""

    @property
    def name(self) -> str:
        return "reddit"

    async def fetch(self) -> list[RawItem]:
        cfg = self.source_config
        subreddits = cfg.get("subreddits", [])
        credentials = (cfg.get("client_id", ""), cfg.get("client_secret", ""))
        if not all(credentials):
            logger.warning("Reddit client_id/client_secret not configured")
            return []
        if not subreddits:
            return []

        token = await self._get_token(*credentials)
        if not token:
            logger.warning("Failed to obtain Reddit OAuth token")
            return []

        items: list[RawItem] = []
        for subreddit in subreddits:
            try:
                listing = await retry_async(
                    self._fetch_json, subreddit, cfg.get("limit", 15), token,
                    max_retries=2,
                )
            except Exception:
                logger.exception("Reddit fetch failed for r/%s", subreddit)
                continue
            for post in _posts(listing, cfg.get("min_score", 10)):
                items.append(
                    await self._to_item(post, subreddit, cfg.get("extract_content", True)),
                )

        logger.info("Reddit fetched %d items", len(items))
        return items

    async def _to_item(self, post: dict, subreddit: str, extract: bool) -> RawItem:
        permalink = "https://www.reddit.com" + post.get("permalink", "")
        if post.get("is_self", False):
            url, body = permalink, post.get("selftext", "")
        else:
            link = post.get("url", "")
            url = link or permalink
            body = await enrich_body("", link, extract)
        return RawItem(
            source=self.name,
            title=post["title"],
            body=body,
            url=url,
            author=post.get("author", "") or f"r/{subreddit}",
            trend_score=float(post.get("score", 0)),
        )

    @staticmethod
    async def _get_token(client_id: str, client_secret: str) -> str | None:
        try:
            async with httpx.AsyncClient(timeout=15) as client:
                resp = await client.post(
                    TOKEN_URL,
                    data={"grant_type": "client_credentials"},
                    auth=(client_id, client_secret),
                    headers={"User-Agent": USER_AGENT},
                )
                resp.raise_for_status()
                return resp.json().get("access_token")
        except httpx.HTTPError:
            logger.exception("Reddit OAuth token request failed")
            return None

    @staticmethod
    async def _fetch_json(subreddit: str, limit: int, token: str) -> dict:
        async with httpx.AsyncClient(timeout=15, follow_redirects=True) as client:
            resp = await client.get(
                f"{OAUTH_BASE}/r/{subreddit}/hot.json",
                params={"limit": limit},
                headers={"User-Agent": USER_AGENT, "Authorization": f"Bearer {token}"},
            )
            resp.raise_for_status()
            return resp.json()


def _posts(listing: dict, min_score: int):
    """Titled, non-stickied posts at or above ``min_score``."""
    for child in listing.get("data", {}).get("children", []):
        post = child.get("data", {})
        if post.get("stickied") or not post.get("title"):
            continue
        if post.get("score", 0) < min_score:
            continue
        yield post
