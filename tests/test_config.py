"""Tests for config loading and env var resolution."""

from __future__ import annotations

import pytest

from scribe.config import (
    get_active_sources,
    get_db_path,
    get_learning_config,
    get_llm_task_config,
    get_pipeline_config,
    get_quality_config,
    get_scheduler_config,
    load_config,
)


def test_load_config(sample_config):
    """Config loads and has expected structure."""
    assert "llm" in sample_config
    assert "sources" in sample_config
    assert "pipeline" in sample_config


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nope.yaml"))


def test_env_var_resolution(tmp_path, monkeypatch):
    """Environment variables in ${VAR} format are resolved."""
    monkeypatch.setenv("TEST_API_KEY", "my-secret-key")
    cfg_path = tmp_path / "config.yaml"
    cfg_path.write_text("""
llm:
  providers:
    test:
      api_key: "${TEST_API_KEY}"
      base_url: "https://${TEST_API_KEY}.example.com"
""")
    config = load_config(str(cfg_path))
    provider = config["llm"]["providers"]["test"]
    assert provider["api_key"] == "my-secret-key"
    assert provider["base_url"] == "https://my-secret-key.example.com"


def test_dotenv_does_not_override_environment(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("SCRIBE_SET", "from-env")
    monkeypatch.setenv("SCRIBE_UNSET", "placeholder")
    monkeypatch.delenv("SCRIBE_UNSET")
    (tmp_path / ".env").write_text("SCRIBE_SET=from-file\nSCRIBE_UNSET='dotenv'\n")
    (tmp_path / "config.yaml").write_text("a: ${SCRIBE_SET}\nb: ${SCRIBE_UNSET}\n")

    config = load_config("config.yaml")
    assert config == {"a": "from-env", "b": "dotenv"}


def test_get_active_sources(sample_config):
    """Only enabled sources are returned."""
    sources = get_active_sources(sample_config)
    assert sources == ["rss"]


def test_get_llm_task_config(sample_config):
    """Task-to-provider mapping works."""
    cfg = get_llm_task_config(sample_config, "evaluate")
    assert cfg["provider_name"] == "mock"
    assert cfg["provider_type"] == "openai_compatible"
    assert cfg["model"] == "test-model"
    assert cfg["temperature"] == 0.2
    assert cfg["max_tokens"] == 4000


def test_get_llm_task_config_unknown_task_defaults_to_anthropic():
    cfg = get_llm_task_config({}, "generate")
    assert cfg["provider_name"] == "anthropic"
    assert cfg["provider_type"] == "anthropic"


def test_get_db_path(sample_config):
    """DB path is extracted from config."""
    path = get_db_path(sample_config)
    assert path.endswith("test.db")


def test_section_defaults():
    pipeline = get_pipeline_config({})
    assert pipeline["articles_per_run"] == 10
    assert pipeline["min_data_points"] == 5
    assert pipeline["candidate_threshold"] == 7.0
    assert pipeline["duplicate_window_days"] == 7
    assert pipeline["confirm_with_llm"] is False

    quality = get_quality_config({})
    assert quality == {
        "threshold": 80.0,
        "auto_publish_threshold": 90.0,
        "duplicate_similarity": 0.8,
    }

    learning = get_learning_config({})
    assert learning == {"window_days": 7, "min_samples": 5, "apply_threshold": 60.0}


def test_get_scheduler_config(sample_config):
    cfg = get_scheduler_config(sample_config)
    assert cfg.collect_interval_minutes == 30
    assert cfg.generate_interval_hours == 3
    assert cfg.learning_interval_hours == 24
    assert cfg.burst_threshold == 50
    assert cfg.learning_trigger_score == 75
    assert cfg.min_data_points == 3
    assert cfg.quality_threshold == 80
    assert cfg.auto_publish_threshold == 90
