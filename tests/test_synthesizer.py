"""Tests for article drafting and scoring."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import pytest

from scribe.db import get_active_template
from scribe.llm.base import LLMResponse
from scribe.models import Draft, PromptTemplate
from scribe.synthesize.synthesizer import ArticleSynthesizer, placeholder_draft

DRAFT_JSON = json.dumps({
    "title": "Transformers Take Over",
    "content": "## Intro\n\nTransformer models are everywhere.",
    "meta_description": "Why transformer models dominate.",
    "keywords": ["transformer", "models"],
    "estimated_reading_time": 4,
})

SCORE_JSON = json.dumps({
    "total_score": 88,
    "seo_score": 80,
    "readability_score": 90,
    "accuracy_score": 92,
    "originality_score": 85,
    "engagement_score": 87,
    "improvements": ["Add a concrete example"],
    "strengths": ["Clear structure"],
})


def _templates(db_conn):
    return get_active_template(db_conn, "generation"), get_active_template(db_conn, "evaluation")


@pytest.mark.asyncio
@patch("scribe.synthesize.synthesizer.complete_task", new_callable=AsyncMock)
async def test_synthesize_happy_path(mock_complete, sample_config, db_conn, sample_cluster):
    mock_complete.side_effect = [LLMResponse(text=DRAFT_JSON), LLMResponse(text=SCORE_JSON)]
    generation, evaluation = _templates(db_conn)

    draft, report = await ArticleSynthesizer(sample_config, db_conn).synthesize(
        sample_cluster, generation, evaluation,
    )

    assert draft.title == "Transformers Take Over"
    assert draft.estimated_reading_minutes == 4
    assert report.total == 88
    assert report.improvements == ["Add a concrete example"]

    tasks = [call.args[1] for call in mock_complete.await_args_list]
    assert tasks == ["generate", "evaluate"]
    generate_prompt = mock_complete.await_args_list[0].args[2]
    assert generation.template in generate_prompt
    assert "Transformer models benchmark" in generate_prompt
    assert evaluation.template in mock_complete.await_args_list[1].args[2]


@pytest.mark.asyncio
@patch("scribe.synthesize.synthesizer.complete_task", new_callable=AsyncMock)
async def test_usage_counts_incremented(mock_complete, sample_config, db_conn, sample_cluster):
    mock_complete.side_effect = [LLMResponse(text=DRAFT_JSON), LLMResponse(text=SCORE_JSON)]
    generation, evaluation = _templates(db_conn)

    await ArticleSynthesizer(sample_config, db_conn).synthesize(
        sample_cluster, generation, evaluation,
    )

    assert generation.usage_count == 1
    assert evaluation.usage_count == 1
    assert get_active_template(db_conn, "generation").usage_count == 1
    assert get_active_template(db_conn, "evaluation").usage_count == 1


@pytest.mark.asyncio
@patch("scribe.synthesize.synthesizer.complete_task", new_callable=AsyncMock)
async def test_prose_around_json_is_tolerated(mock_complete, sample_config, db_conn, sample_cluster):
    mock_complete.side_effect = [
        LLMResponse(text=f"Sure! Here is the article:\n{DRAFT_JSON}\nHope it helps."),
        LLMResponse(text=f"```json\n{SCORE_JSON}\n```"),
    ]
    generation, evaluation = _templates(db_conn)

    draft, report = await ArticleSynthesizer(sample_config, db_conn).synthesize(
        sample_cluster, generation, evaluation,
    )
    assert draft.title == "Transformers Take Over"
    assert report.total == 88


@pytest.mark.asyncio
@patch("scribe.synthesize.synthesizer.complete_task", new_callable=AsyncMock)
async def test_unparseable_output_falls_back(mock_complete, sample_config, db_conn, sample_cluster):
    mock_complete.side_effect = [
        LLMResponse(text="I cannot write this article."),
        LLMResponse(text="Looks great, 9/10."),
    ]
    generation, evaluation = _templates(db_conn)

    draft, report = await ArticleSynthesizer(sample_config, db_conn).synthesize(
        sample_cluster, generation, evaluation,
    )

    assert draft == placeholder_draft(sample_cluster)
    assert report.total == 50
    assert report.seo == 50


@pytest.mark.asyncio
@patch("scribe.synthesize.synthesizer.complete_task", new_callable=AsyncMock)
async def test_service_errors_never_raise(mock_complete, sample_config, db_conn, sample_cluster):
    mock_complete.side_effect = RuntimeError("service unavailable")
    generation, evaluation = _templates(db_conn)

    draft, report = await ArticleSynthesizer(sample_config, db_conn).synthesize(
        sample_cluster, generation, evaluation,
    )
    assert draft.title == "Transformer: what the latest signals say"
    assert report.total == 50


def test_placeholder_draft_is_deterministic(sample_cluster):
    first = placeholder_draft(sample_cluster)
    second = placeholder_draft(sample_cluster)
    assert first == second
    for member in sample_cluster.members:
        assert member.title in first.body_text
    assert len(first.summary) <= 160


@pytest.mark.asyncio
@patch("scribe.synthesize.synthesizer.complete_task", new_callable=AsyncMock)
async def test_improve_rescores(mock_complete, sample_config, db_conn):
    improved = json.dumps({"title": "Better", "content": "Improved body"})
    mock_complete.side_effect = [
        LLMResponse(text=improved),
        LLMResponse(text=SCORE_JSON),
    ]
    generation, evaluation = _templates(db_conn)
    draft = Draft(title="Weak", body_text="Weak body")

    new_draft, report = await ArticleSynthesizer(sample_config, db_conn).improve(
        draft, ["Add sources"], generation, evaluation,
    )

    assert new_draft.title == "Better"
    assert report.total == 88
    improve_call = mock_complete.await_args_list[0]
    assert improve_call.args[1] == "improve"
    assert "- Add sources" in improve_call.args[2]


@pytest.mark.asyncio
@patch("scribe.synthesize.synthesizer.complete_task", new_callable=AsyncMock)
async def test_failed_improvement_keeps_original(mock_complete, sample_config, db_conn):
    mock_complete.side_effect = [RuntimeError("boom"), LLMResponse(text="not json")]
    draft = Draft(title="Weak", body_text="Weak body")

    new_draft, report = await ArticleSynthesizer(sample_config, db_conn).improve(
        draft, [], PromptTemplate(type="generation", template="g"),
        PromptTemplate(type="evaluation", template="e"),
    )
    assert new_draft is draft
    assert report.total == 50


@pytest.mark.asyncio
@patch("scribe.synthesize.synthesizer.complete_task", new_callable=AsyncMock)
async def test_non_finite_numbers_do_not_escape(mock_complete, sample_config, db_conn, sample_cluster):
    mock_complete.side_effect = [
        LLMResponse(text='{"title": "T", "content": "Body", "estimated_reading_time": 1e999}'),
        LLMResponse(text='{"total_score": NaN, "seo_score": 90}'),
    ]
    generation, evaluation = _templates(db_conn)

    draft, report = await ArticleSynthesizer(sample_config, db_conn).synthesize(
        sample_cluster, generation, evaluation,
    )

    assert draft.title == "T"
    assert draft.estimated_reading_minutes == 1
    assert report.total == 50
