"""Shared provider plumbing: request/response records, retry, and usage tracking."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from scribe.llm.cost import get_cost_tracker
from scribe.retry import retry_async


@dataclass
class ChatRequest:
    """One single-turn chat call, already resolved to a concrete model."""

    prompt: str
    system: str
    model: str
    temperature: float
    max_tokens: int


@dataclass
class LLMResponse:
    text: str
    input_tokens: int = 0
    output_tokens: int = 0
    model: str = ""


class BaseLLMProvider(ABC):
    """A chat backend reachable with an API key and an optional base URL.

    Subclasses implement ``_send`` for one attempt; ``complete`` wraps it in
    retries and reports token usage to the cost tracker of the current run.
    """

    name = "base"

    def __init__(
        self,
        api_key: str,
        base_url: str,
        default_model: str,
        max_retries: int = 3,
        timeout: int = 120,
    ):
        self.api_key = api_key
        self.base_url = base_url
        self.default_model = default_model
        self.max_retries = max_retries
        self.timeout = timeout

    async def complete(
        self,
        prompt: str,
        system: str = "",
        model: str | None = None,
        temperature: float = 0.7,
        max_tokens: int = 4000,
    ) -> LLMResponse:
        request = ChatRequest(
            prompt=prompt,
            system=system,
            model=model or self.default_model,
            temperature=temperature,
            max_tokens=max_tokens,
        )
        response = await retry_async(
            self._send, request, max_retries=self.max_retries,
        )
        tracker = get_cost_tracker()
        if tracker and (response.input_tokens or response.output_tokens):
            tracker.track(response.input_tokens, response.output_tokens, request.model)
        return response

    @abstractmethod
    async def _send(self, request: ChatRequest) -> LLMResponse:
        """Perform a single attempt; transient failures are raised for retry."""
