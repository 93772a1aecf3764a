"""Source fetcher registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from scribe.ingest.base import BaseSource

SOURCES: dict[str, type[BaseSource]] = {}


def register_source(name: str):
    """Decorator to register a source fetcher."""

    def decorator(cls):
        SOURCES[name] = cls
        return cls

    return decorator


# Import implementations to trigger registration
from scribe.ingest.hackernews import HackerNewsSource  # noqa: E402, F401
from scribe.ingest.reddit import RedditSource  # noqa: E402, F401
from scribe.ingest.rss import RSSSource  # noqa: E402, F401
