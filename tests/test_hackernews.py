"""Tests for the Hacker News Algolia ingest source."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import pytest

from scribe.ingest.hackernews import HackerNewsSource

MOCK_ALGOLIA_RESPONSE = {
    "hits": [
        {
            "objectID": "12345",
            "title": "Show HN: New AI Framework",
            "url": "https://example.com/ai-framework",
            "author": "pg",
            "points": 150,
        },
        {
            "objectID": "12346",
            "title": "Ask HN: Best practices for LLM deployment?",
            "url": "",
            "author": "dang",
            "points": 42,
            "story_text": "We are deploying LLMs in production. " * 10,
        },
        {
            "objectID": "12347",
            "title": "Low quality post",
            "url": "https://example.com/low",
            "author": "newbie",
            "points": 3,
        },
    ],
}


@pytest.fixture
def hn_config():
    return {
        "sources": {
            "hackernews": {
                "enabled": True,
                "min_points": 10,
                "limit": 15,
                "queries": ["artificial intelligence"],
            }
        }
    }


@pytest.mark.asyncio
@patch("scribe.ingest.scraper.extract_content", new_callable=AsyncMock)
@patch(
    "scribe.ingest.hackernews.HackerNewsSource._fetch_api",
    new_callable=AsyncMock,
)
async def test_hn_fetches_items(mock_fetch, mock_extract, hn_config):
    """HN source parses Algolia response into RawItem objects."""
    mock_fetch.return_value = MOCK_ALGOLIA_RESPONSE
    mock_extract.return_value = "Extracted article content"

    items = await HackerNewsSource(hn_config).fetch()

    # Third hit is below min_points
    assert len(items) == 2

    assert items[0].title == "Show HN: New AI Framework"
    assert items[0].url == "https://example.com/ai-framework"
    assert items[0].source == "hackernews"
    assert items[0].author == "pg"
    assert items[0].body == "Extracted article content"
    assert items[0].trend_score == 150

    # Ask HN post with no URL gets constructed HN link and keeps its text
    assert "news.ycombinator.com/item?id=12346" in items[1].url
    assert items[1].body.startswith("We are deploying LLMs")
    mock_fetch.assert_awaited_once_with("artificial intelligence", 15)


@pytest.mark.asyncio
@patch(
    "scribe.ingest.hackernews.HackerNewsSource._fetch_api",
    new_callable=AsyncMock,
)
async def test_hn_no_queries(mock_fetch):
    items = await HackerNewsSource({"sources": {"hackernews": {"enabled": True}}}).fetch()
    assert items == []
    mock_fetch.assert_not_called()


@pytest.mark.asyncio
@patch(
    "scribe.ingest.hackernews.HackerNewsSource._fetch_api",
    new_callable=AsyncMock,
)
async def test_hn_query_failure_returns_partial(mock_fetch, hn_config):
    hn_config["sources"]["hackernews"]["queries"] = ["broken", "fine"]
    hn_config["sources"]["hackernews"]["extract_content"] = False
    mock_fetch.side_effect = [ValueError("bad json"), MOCK_ALGOLIA_RESPONSE]

    items = await HackerNewsSource(hn_config).fetch()
    assert len(items) == 2
