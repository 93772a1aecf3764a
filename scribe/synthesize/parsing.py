"""Parse-or-fallback boundary between free LLM text and typed drafts/scores."""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any

from scribe.models import Draft, ScoreReport

logger = logging.getLogger(__name__)

_decoder = json.JSONDecoder()

WORDS_PER_MINUTE = 200


def _normalize_quotes(text: str) -> str:
    """Replace smart/curly quotes with straight quotes for JSON parsing."""
    return (
        text
        .replace("\u201c", '"')   # left double quote
        .replace("\u201d", '"')   # right double quote
        .replace("\u2018", "'")   # left single quote
        .replace("\u2019", "'")   # right single quote
        .replace("\u2033", '"')   # double prime
        .replace("\u2032", "'")   # prime
    )


def _try_parse(text: str) -> dict | None:
    """Try json.loads with and without quote normalization."""
    for candidate in (text, _normalize_quotes(text)):
        try:
            data = json.loads(candidate)
        except (json.JSONDecodeError, ValueError):
            continue
        if isinstance(data, dict):
            return data
    return None


def _largest_fragment(text: str) -> dict | None:
    """Return the largest JSON object embedded anywhere in ``text``."""
    best: dict | None = None
    best_span = 0
    for match in re.finditer(r"\{", text):
        try:
            obj, end = _decoder.raw_decode(text, match.start())
        except ValueError:
            continue
        span = end - match.start()
        if isinstance(obj, dict) and span > best_span:
            best, best_span = obj, span
    return best


def extract_json(text: str) -> dict | None:
    """Extract a JSON object from LLM output that may contain fences or prose."""
    if not text:
        return None

    result = _try_parse(text.strip())
    if result is not None:
        return result

    fenced = re.search(r"```(?:json)?\s*\n?(.*?)\n?```", text, re.DOTALL)
    if fenced:
        result = _try_parse(fenced.group(1))
        if result is not None:
            return result

    return _largest_fragment(text) or _largest_fragment(_normalize_quotes(text))


def _clamp(value: Any, low: float = 0.0, high: float = 100.0) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return low
    if not math.isfinite(number):
        return low
    return max(low, min(high, number))


def _str_list(value: Any) -> list[str]:
    if isinstance(value, str):
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(value, list):
        return [str(v).strip() for v in value if str(v).strip()]
    return []


def reading_minutes(text: str) -> int:
    return max(1, round(len(text.split()) / WORDS_PER_MINUTE))


def parse_draft(data: dict | None) -> Draft | None:
    """Build a Draft from parsed JSON; None when required fields are missing."""
    if not data:
        return None
    title = data.get("title")
    content = data.get("content") or data.get("body_text") or data.get("body")
    if not isinstance(title, str) or not title.strip():
        return None
    if not isinstance(content, str) or not content.strip():
        return None

    summary = data.get("meta_description") or data.get("summary") or ""
    minutes = data.get("estimated_reading_time") or data.get("estimated_reading_minutes")
    try:
        minutes = max(1, int(minutes))
    except (TypeError, ValueError, OverflowError):
        minutes = reading_minutes(content)

    return Draft(
        title=title.strip(),
        body_text=content.strip(),
        summary=str(summary).strip(),
        keywords=_str_list(data.get("keywords")),
        estimated_reading_minutes=minutes,
    )


def parse_score_report(data: dict | None) -> ScoreReport | None:
    """Build a ScoreReport from parsed JSON; None when there is no total score."""
    if not data:
        return None
    total = data.get("total_score", data.get("total"))
    if total is None:
        return None
    try:
        if not math.isfinite(float(total)):
            return None
    except (TypeError, ValueError, OverflowError):
        return None

    return ScoreReport(
        total=_clamp(total),
        seo=_clamp(data.get("seo_score", data.get("seo"))),
        readability=_clamp(data.get("readability_score", data.get("readability"))),
        accuracy=_clamp(data.get("accuracy_score", data.get("accuracy"))),
        originality=_clamp(data.get("originality_score", data.get("originality"))),
        engagement=_clamp(data.get("engagement_score", data.get("engagement"))),
        improvements=_str_list(data.get("improvements")),
        strengths=_str_list(data.get("strengths")),
    )


def default_score_report() -> ScoreReport:
    """Conservative mid-range score used when evaluation output is unusable."""
    return ScoreReport(
        total=50.0,
        seo=50.0,
        readability=50.0,
        accuracy=50.0,
        originality=50.0,
        engagement=50.0,
        improvements=["Automatic evaluation was unavailable; review manually."],
        strengths=[],
    )
