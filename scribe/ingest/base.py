"""Abstract base class for all source fetchers."""

from __future__ import annotations

from abc import ABC, abstractmethod

from scribe.models import RawItem


class BaseSource(ABC):
    """Base class for signal collectors.

    ``fetch`` is best effort: an adapter swallows and logs its own partial
    failures and returns whatever it managed to collect.
    """

    def __init__(self, config: dict):
        self.config = config

    @property
    def source_config(self) -> dict:
        return self.config.get("sources", {}).get(self.name, {})

    @abstractmethod
    async def fetch(self) -> list[RawItem]:
        """Collect the latest items from this source."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Identifier stored on every collected item."""
        ...
