"""Token usage and cost accounting for LLM calls."""

from __future__ import annotations

import contextvars

# Known pricing per 1M tokens (input, output)
PRICING: dict[str, tuple[float, float]] = {
    "deepseek-chat": (0.14, 0.28),
    "claude-sonnet-4-5-20250514": (3.0, 15.0),
    "claude-opus-4-6": (15.0, 75.0),
    "claude-haiku-4-5-20251001": (0.80, 4.0),
}


def estimate_cost(input_tokens: int, output_tokens: int, model: str) -> float:
    """Rough cost estimate based on known pricing."""
    input_rate, output_rate = PRICING.get(model, (1.0, 2.0))
    return (input_tokens * input_rate + output_tokens * output_rate) / 1_000_000


class CostTracker:
    """Accumulate LLM token usage and cost across a pipeline run."""

    def __init__(self):
        self.total_input_tokens = 0
        self.total_output_tokens = 0
        self.total_cost_usd = 0.0

    @property
    def total_tokens(self) -> int:
        return self.total_input_tokens + self.total_output_tokens

    def track(self, input_tokens: int, output_tokens: int, model: str):
        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens
        self.total_cost_usd += estimate_cost(input_tokens, output_tokens, model)


# Each scheduler loop runs in its own asyncio task, so the tracker is
# coroutine-local rather than module-global.
_current_tracker: contextvars.ContextVar[CostTracker | None] = contextvars.ContextVar(
    "_current_tracker", default=None,
)


def start_tracking() -> CostTracker:
    tracker = CostTracker()
    _current_tracker.set(tracker)
    return tracker


def get_cost_tracker() -> CostTracker | None:
    return _current_tracker.get()
