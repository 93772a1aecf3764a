"""Shared test fixtures."""

from __future__ import annotations

from datetime import datetime, timedelta

import pytest

from scribe.config import load_config
from scribe.db import get_connection, init_db
from scribe.llm import reset_providers
from scribe.models import RawItem, TopicCluster


@pytest.fixture
def sample_config(tmp_path):
    """Minimal config for testing (no real API keys)."""
    config_text = """
llm:
  providers:
    mock:
      type: "openai_compatible"
      api_key: "test-key"
      base_url: "http://localhost:9999"
      default_model: "test-model"
  tasks:
    generate: { provider: "mock" }
    evaluate: { provider: "mock", temperature: 0.2 }
    improve: { provider: "mock" }
    learn: { provider: "mock" }
    confirm: { provider: "mock" }

sources:
  rss:
    enabled: true
    feeds:
      - url: "https://example.com/feed.xml"
        name: "Test Feed"
  hackernews:
    enabled: false
    queries: ["AI"]

scheduler:
  burst_threshold: 50
  learning_trigger_score: 75

pipeline:
  min_data_points: 3
  articles_per_run: 10

database:
  path: "DB_PATH_PLACEHOLDER"
"""
    db_path = str(tmp_path / "test.db")
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text(config_text.replace("DB_PATH_PLACEHOLDER", db_path))
    reset_providers()
    return load_config(str(cfg_path))


@pytest.fixture
def db_conn(sample_config):
    """Initialized test database connection."""
    db_path = sample_config["database"]["path"]
    init_db(db_path)
    conn = get_connection(db_path)
    yield conn
    conn.close()


@pytest.fixture
def transformer_items():
    """Twelve recent items about transformer models across three sources."""
    now = datetime.utcnow()
    sources = ["rss", "hackernews", "reddit"]
    words = [
        "benchmark", "release", "training", "inference", "scaling", "tokenizer",
        "attention", "pretraining", "finetuning", "distillation", "quantization",
        "evaluation",
    ]
    return [
        RawItem(
            id=i + 1,
            source=sources[i % 3],
            title=f"Transformer models {word}",
            body="",
            url=f"https://example.com/transformer-{i}",
            collected_at=now - timedelta(minutes=i),
        )
        for i, word in enumerate(words)
    ]


@pytest.fixture
def sample_cluster(transformer_items):
    return TopicCluster(
        keyword="transformer",
        members=transformer_items[:5],
        aggregate_score=95.0,
        sources={"rss", "hackernews", "reddit"},
        is_candidate=True,
        top_terms=["transformer", "models"],
    )
