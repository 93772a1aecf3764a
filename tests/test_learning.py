"""Tests for the performance learning loop."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, patch

import pytest

from scribe.db import (
    get_active_template,
    get_learning_data,
    get_recent_stats,
    get_template_history,
    insert_article,
    update_article_metrics,
)
from scribe.learning import (
    LearningLoop,
    apply_learning,
    collect_performance,
    estimate_improvement,
    parse_analysis,
    summarize_metrics,
)
from scribe.llm.base import LLMResponse
from scribe.llm.prompts import DEFAULT_TEMPLATES
from scribe.models import Article, ArticleStatus, LearningAnalysis, ScoreReport

FULL_ANALYSIS = {
    "success_patterns": {
        "title_patterns": ["Numbers in titles"],
        "content_patterns": ["Code samples"],
        "optimal_length": 2400,
        "best_posting_time": "09:00",
    },
    "failure_patterns": ["Vague intros"],
    "prompt_improvements": {
        "generation": "# Hook\n# Evidence\n# Takeaways",
        "evaluation": "Score depth and evidence (0-100)",
    },
    "improvement_score": 72,
}


def _seed_published(conn, count: int, days_ago: float = 1) -> list[int]:
    published_at = datetime.utcnow() - timedelta(days=days_ago)
    ids = []
    for i in range(count):
        article_id = insert_article(
            conn,
            Article(
                title=f"Published piece {i}",
                slug=f"published-piece-{i}",
                content="Body",
                score_report=ScoreReport(total=80 + i),
                status=ArticleStatus.PUBLISHED,
                published_at=published_at,
            ),
        )
        update_article_metrics(conn, article_id, 100 * (i + 1), 60.0 + i, 50.0, {"x": i, "hn": 1})
        ids.append(article_id)
    return ids


def test_collect_performance(db_conn):
    _seed_published(db_conn, 3)
    _seed_published(db_conn, 2, days_ago=30)

    metrics = collect_performance(db_conn, window_days=7)

    assert len(metrics) == 3
    assert [m.view_count for m in metrics] == [300, 200, 100]
    assert metrics[0].social_shares == 3
    assert metrics[0].quality_score == 82


def test_summarize_metrics(db_conn):
    _seed_published(db_conn, 5)
    summary = summarize_metrics(collect_performance(db_conn, 7))

    assert summary["articles"] == 5
    assert summary["views"]["mean"] == 300
    assert summary["views"]["max"] == 500
    assert summary["quality"]["median"] == 82
    assert summary["views_quality_correlation"] == pytest.approx(1.0)


def test_parse_analysis():
    analysis = parse_analysis(FULL_ANALYSIS)
    assert analysis.title_patterns == ["Numbers in titles"]
    assert analysis.optimal_length == 2400
    assert analysis.generation_template.startswith("# Hook")
    assert analysis.improvement_score == 72

    assert parse_analysis(None) is None
    assert parse_analysis({"unrelated": True}) is None


def test_estimate_improvement():
    assert estimate_improvement(parse_analysis(FULL_ANALYSIS)) == 100
    assert estimate_improvement(LearningAnalysis(title_patterns=["x"], best_posting_time="9")) == 35
    assert estimate_improvement(LearningAnalysis()) == 0


@pytest.mark.asyncio
@patch("scribe.learning.complete_task", new_callable=AsyncMock)
async def test_insufficient_data_is_a_noop(mock_complete, sample_config, db_conn, caplog):
    _seed_published(db_conn, 4)

    with caplog.at_level(logging.INFO, logger="scribe.learning"):
        result = await LearningLoop(sample_config, db_conn).run()

    assert result is None
    mock_complete.assert_not_called()
    assert "Insufficient data" in caplog.text
    assert get_recent_stats(db_conn)[0]["status"] == "skipped"


@pytest.mark.asyncio
@patch("scribe.learning.complete_task", new_callable=AsyncMock)
async def test_learning_cycle_installs_templates(mock_complete, sample_config, db_conn):
    _seed_published(db_conn, 6)
    mock_complete.return_value = LLMResponse(text=json.dumps(FULL_ANALYSIS))

    result = await LearningLoop(sample_config, db_conn).run()

    assert result.articles_analyzed == 6
    assert result.templates_updated == 2
    assert result.improvement_score == 72
    assert result.applied is True
    assert get_learning_data(db_conn, result.analysis_id)["applied"] == 1

    generation = get_active_template(db_conn, "generation")
    assert generation.template == "# Hook\n# Evidence\n# Takeaways"
    assert generation.version == 2
    assert generation.usage_count == 0
    assert sum(t.is_active for t in get_template_history(db_conn, "generation")) == 1

    assert mock_complete.await_args.args[1] == "learn"
    prompt = mock_complete.await_args.args[2]
    assert DEFAULT_TEMPLATES["generation"] in prompt
    assert "Published piece 5" in prompt
    assert get_recent_stats(db_conn)[0]["status"] == "completed"


@pytest.mark.asyncio
@patch("scribe.learning.complete_task", new_callable=AsyncMock)
async def test_low_improvement_waits_for_manual_apply(mock_complete, sample_config, db_conn):
    _seed_published(db_conn, 5)
    analysis = {
        "success_patterns": {"title_patterns": ["Questions"], "content_patterns": []},
        "prompt_improvements": {"generation": "", "evaluation": ""},
    }
    mock_complete.return_value = LLMResponse(text=json.dumps(analysis))

    result = await LearningLoop(sample_config, db_conn).run()

    # Derived score: title patterns only
    assert result.improvement_score == 20
    assert result.applied is False
    assert result.templates_updated == 0
    assert get_active_template(db_conn, "generation").version == 1

    assert apply_learning(db_conn, result.analysis_id) is True
    assert get_learning_data(db_conn, result.analysis_id)["applied"] == 1
    with pytest.raises(LookupError):
        apply_learning(db_conn, 9999)


@pytest.mark.asyncio
@patch("scribe.learning.complete_task", new_callable=AsyncMock)
async def test_unparseable_analysis_changes_nothing(mock_complete, sample_config, db_conn, caplog):
    _seed_published(db_conn, 5)
    mock_complete.return_value = LLMResponse(text="The articles did fine overall.")

    with caplog.at_level(logging.WARNING, logger="scribe.learning"):
        result = await LearningLoop(sample_config, db_conn).run()

    assert result is None
    assert "Failed to parse" in caplog.text
    assert get_recent_stats(db_conn)[0]["status"] == "failed"
    assert get_active_template(db_conn, "generation").version == 1
    assert get_active_template(db_conn, "evaluation").version == 1


def test_parse_analysis_non_finite_numbers():
    data = json.loads(
        '{"success_patterns": {"optimal_length": 1e999}, "improvement_score": NaN}',
    )
    analysis = parse_analysis(data)
    assert analysis.optimal_length == 0
    assert analysis.improvement_score is None


@pytest.mark.asyncio
@patch("scribe.learning.complete_task", new_callable=AsyncMock)
async def test_failed_analysis_call_is_recorded_as_failed(mock_complete, sample_config, db_conn):
    _seed_published(db_conn, 5)
    mock_complete.side_effect = RuntimeError("provider down")

    result = await LearningLoop(sample_config, db_conn).run()

    assert result is None
    assert get_recent_stats(db_conn)[0]["status"] == "failed"
    assert get_active_template(db_conn, "generation").version == 1
