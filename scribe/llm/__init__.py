"""LLM provider registry and task routing."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from scribe.llm.base import BaseLLMProvider, LLMResponse

PROVIDERS: dict[str, type[BaseLLMProvider]] = {}

_provider_instances: dict[str, BaseLLMProvider] = {}


def register_provider(name: str):
    """Decorator to register an LLM provider."""

    def decorator(cls):
        PROVIDERS[name] = cls
        return cls

    return decorator


def get_provider_for_task(config: dict, task: str) -> BaseLLMProvider:
    """Get the configured LLM provider instance for a given task."""
    from scribe.config import get_llm_task_config

    task_cfg = get_llm_task_config(config, task)
    provider_type = task_cfg["provider_type"]
    provider_name = task_cfg["provider_name"]

    # Cache key is provider_name so we reuse connections
    if provider_name not in _provider_instances:
        if provider_type not in PROVIDERS:
            raise ValueError(f"Unknown LLM provider type: {provider_type}")
        cls = PROVIDERS[provider_type]
        _provider_instances[provider_name] = cls(
            api_key=task_cfg["api_key"],
            base_url=task_cfg["base_url"],
            default_model=task_cfg["model"],
            max_retries=task_cfg["max_retries"],
            timeout=task_cfg["timeout"],
        )

    return _provider_instances[provider_name]


async def complete_task(
    config: dict, task: str, prompt: str, system: str = "",
) -> LLMResponse:
    """Route a prompt to the provider and model configured for ``task``."""
    from scribe.config import get_llm_task_config

    task_cfg = get_llm_task_config(config, task)
    provider = get_provider_for_task(config, task)
    return await provider.complete(
        prompt,
        system=system,
        model=task_cfg["model"] or None,
        temperature=task_cfg["temperature"],
        max_tokens=task_cfg["max_tokens"],
    )


def reset_providers() -> None:
    """Drop cached provider instances (config reloads and tests)."""
    _provider_instances.clear()


# Import implementations to trigger registration
from scribe.llm.anthropic_provider import AnthropicProvider  # noqa: E402, F401
from scribe.llm.openai_compat import OpenAICompatibleProvider  # noqa: E402, F401
