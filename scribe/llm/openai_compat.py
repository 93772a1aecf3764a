"""Chat-completions provider for DeepSeek, Ollama, vLLM and other OpenAI-style APIs."""

from __future__ import annotations

import httpx

from scribe.llm import register_provider
from scribe.llm.base import BaseLLMProvider, ChatRequest, LLMResponse


def build_messages(request: ChatRequest) -> list[dict]:
    messages = [{"role": "user", "content": request.prompt}]
    if request.system:
        messages.insert(0, {"role": "system", "content": request.system})
    return messages


@register_provider("openai_compatible")
class OpenAICompatibleProvider(BaseLLMProvider):
    name = "openai_compatible"

    @property
    def endpoint(self) -> str:
        return self.base_url.rstrip("/") + "/chat/completions"

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _send(self, request: ChatRequest) -> LLMResponse:
        payload = {
            "model": request.model,
            "messages": build_messages(request),
            "temperature": request.temperature,
            "max_tokens": request.max_tokens,
        }
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            resp = await client.post(self.endpoint, json=payload, headers=self._headers())
            resp.raise_for_status()
            body = resp.json()

        usage = body.get("usage") or {}
        message = body["choices"][0]["message"]
        return LLMResponse(
            text=message.get("content") or "",
            input_tokens=usage.get("prompt_tokens", 0),
            output_tokens=usage.get("completion_tokens", 0),
            model=request.model,
        )
