"""Body enrichment for thin feed entries and link posts."""

from __future__ import annotations

import logging

import httpx
import trafilatura

from scribe.retry import retry_async

logger = logging.getLogger(__name__)

SHORT_BODY_CHARS = 200
MAX_BODY_CHARS = 8000


async def enrich_body(body: str, url: str | None, enabled: bool = True) -> str:
    """Swap a short body for the page's main text, capped at MAX_BODY_CHARS."""
    if not enabled or len(body) >= SHORT_BODY_CHARS:
        return body
    if not url or not url.startswith(("http://", "https://")):
        return body
    extracted = await extract_content(url)
    if not extracted:
        return body
    return extracted[:MAX_BODY_CHARS]


async def extract_content(url: str) -> str | None:
    """Main text of the page at ``url``, or None when it cannot be had."""
    try:
        html = await retry_async(_download, url, max_retries=2, base_delay=0.5)
    except (httpx.HTTPError, OSError) as exc:
        logger.debug("Could not download %s: %s", url, exc)
        return None
    if not html:
        return None
    return trafilatura.extract(html, include_comments=False, include_tables=False)


async def _download(url: str) -> str:
    async with httpx.AsyncClient(timeout=15, follow_redirects=True) as client:
        resp = await client.get(url)
        resp.raise_for_status()
        return resp.text
