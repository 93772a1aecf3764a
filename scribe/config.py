"""Load and validate configuration from YAML with env var substitution."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml

from scribe.models import SchedulerConfig

_ENV_PATTERN = re.compile(r"\$\{([^}]+)\}")


def _load_dotenv(path: str | Path = ".env") -> None:
    """Load a .env file into os.environ (without overwriting existing vars)."""
    env_path = Path(path)
    if not env_path.is_file():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#") or "=" not in line:
                continue
            key, _, value = line.partition("=")
            key = key.strip()
            value = value.strip().strip("'\"")
            if key and key not in os.environ:
                os.environ[key] = value


def _resolve_env_vars(value: Any) -> Any:
    """Recursively resolve ${ENV_VAR} patterns in config values."""
    if isinstance(value, str):
        match = _ENV_PATTERN.search(value)
        if not match:
            return value
        if match.group(0) == value:
            return os.environ.get(match.group(1), "")
        return _ENV_PATTERN.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def load_config(path: str | Path = "config.yaml") -> dict[str, Any]:
    """Load config from YAML file and resolve environment variables."""
    _load_dotenv()

    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        raw = yaml.safe_load(f) or {}

    return _resolve_env_vars(raw)


def get_active_sources(config: dict) -> list[str]:
    """Return list of enabled source names."""
    sources = config.get("sources", {})
    return [name for name, cfg in sources.items() if cfg.get("enabled", False)]


def get_pipeline_config(config: dict) -> dict:
    """Return the generation pipeline section with defaults filled in."""
    cfg = config.get("pipeline", {})
    return {
        "articles_per_run": int(cfg.get("articles_per_run", 10)),
        "min_data_points": int(cfg.get("min_data_points", 5)),
        "max_unprocessed": int(cfg.get("max_unprocessed", 200)),
        "candidate_threshold": float(cfg.get("candidate_threshold", 7.0)),
        "confirm_with_llm": bool(cfg.get("confirm_with_llm", False)),
        "duplicate_window_days": int(cfg.get("duplicate_window_days", 7)),
        "excerpt_count": int(cfg.get("excerpt_count", 10)),
    }


def get_quality_config(config: dict) -> dict:
    """Return quality gate thresholds."""
    cfg = config.get("quality", {})
    return {
        "threshold": float(cfg.get("threshold", 80)),
        "auto_publish_threshold": float(cfg.get("auto_publish_threshold", 90)),
        "duplicate_similarity": float(cfg.get("duplicate_similarity", 0.8)),
    }


def get_learning_config(config: dict) -> dict:
    """Return learning loop settings."""
    cfg = config.get("learning", {})
    return {
        "window_days": int(cfg.get("window_days", 7)),
        "min_samples": int(cfg.get("min_samples", 5)),
        "apply_threshold": float(cfg.get("apply_threshold", 60)),
    }


def get_scheduler_config(config: dict) -> SchedulerConfig:
    """Build the control loop settings from the scheduler/pipeline/quality sections."""
    sched = config.get("scheduler", {})
    pipeline = get_pipeline_config(config)
    quality = get_quality_config(config)
    return SchedulerConfig(
        collect_interval_minutes=float(sched.get("collect_interval_minutes", 30)),
        generate_interval_hours=float(sched.get("generate_interval_hours", 3)),
        learning_interval_hours=float(sched.get("learning_interval_hours", 24)),
        articles_per_run=pipeline["articles_per_run"],
        min_data_points=pipeline["min_data_points"],
        burst_threshold=int(sched.get("burst_threshold", 50)),
        learning_trigger_score=float(sched.get("learning_trigger_score", 75)),
        quality_threshold=quality["threshold"],
        auto_publish_threshold=quality["auto_publish_threshold"],
    )


def get_llm_task_config(config: dict, task: str) -> dict:
    """Get provider name and model for a given LLM task."""
    tasks = config.get("llm", {}).get("tasks", {})
    task_cfg = tasks.get(task, {})
    provider_name = task_cfg.get("provider", "anthropic")
    model_override = task_cfg.get("model")

    providers = config.get("llm", {}).get("providers", {})
    provider_cfg = providers.get(provider_name, {})

    return {
        "provider_name": provider_name,
        "provider_type": provider_cfg.get("type", "anthropic"),
        "api_key": provider_cfg.get("api_key", ""),
        "base_url": provider_cfg.get("base_url", ""),
        "model": model_override or provider_cfg.get("default_model", ""),
        "max_retries": provider_cfg.get("max_retries", 3),
        "timeout": provider_cfg.get("timeout", 120),
        "temperature": task_cfg.get("temperature", 0.7),
        "max_tokens": task_cfg.get("max_tokens", 4000),
    }


def get_db_path(config: dict) -> str:
    """Get database path from config."""
    return config.get("database", {}).get("path", "data/scribe.db")
