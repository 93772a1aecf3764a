"""Claude models through the official anthropic SDK."""

from __future__ import annotations

import anthropic

from scribe.llm import register_provider
from scribe.llm.base import BaseLLMProvider, ChatRequest, LLMResponse


@register_provider("anthropic")
class AnthropicProvider(BaseLLMProvider):
    name = "anthropic"

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._client: anthropic.AsyncAnthropic | None = None

    @property
    def client(self) -> anthropic.AsyncAnthropic:
        # Built lazily so a missing key only fails when Claude is actually used
        if self._client is None:
            options = {"api_key": self.api_key, "timeout": self.timeout}
            if self.base_url:
                options["base_url"] = self.base_url
            self._client = anthropic.AsyncAnthropic(**options)
        return self._client

    async def _send(self, request: ChatRequest) -> LLMResponse:
        params = {
            "model": request.model,
            "max_tokens": request.max_tokens,
            "temperature": request.temperature,
            "messages": [{"role": "user", "content": request.prompt}],
        }
        if request.system:
            params["system"] = request.system

        message = await self.client.messages.create(**params)
        parts = [
            block.text for block in message.content
            if getattr(block, "type", "") == "text"
        ]
        return LLMResponse(
            text="".join(parts),
            input_tokens=message.usage.input_tokens,
            output_tokens=message.usage.output_tokens,
            model=request.model,
        )
