"""Configuration management with Pydantic Settings + optional YAML."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from stepwise.utils.platform import get_config_dir


class LLMConfig(BaseModel):
    provider: str = "anthropic"
    model: str = "claude-sonnet-4-20250514"
    api_key: str = ""
    base_url: str = "http://localhost:11434/v1"  # local provider only
    max_tokens: int = 4096
    temperature: float = 0.2


class AgentConfig(BaseModel):
    max_steps: int = 15
    tool_output_preview: int = 1000
    history_output_chars: int = 500
    gather_tools: list[str] = Field(default_factory=lambda: ["search", "view_file"])
    event_queue_size: int = 100


class MonitorConfig(BaseModel):
    stuck_threshold: float = 120.0
    timeout_threshold: float = 60.0
    failure_rate_threshold: float = 0.5
    failure_rate_min_steps: int = 5
    loop_window: int = 20
    max_retries: int = 3
    keep_recent: int = 200


class WorkerConfig(BaseModel):
    max_concurrency: int = 0  # 0 = unbounded
    timeout: float | None = None


class ToolsConfig(BaseModel):
    command_timeout: int = 30
    max_output_chars: int = 4000


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="STEPWISE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    llm: LLMConfig = Field(default_factory=LLMConfig)
    agent: AgentConfig = Field(default_factory=AgentConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    workers: WorkerConfig = Field(default_factory=WorkerConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    log_level: str = "INFO"
    log_json: bool = False


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_settings(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> Settings:
    """Load settings from env vars, optionally overlaying a YAML config."""
    yaml_data: dict[str, Any] = {}

    # Determine config file path
    if config_path is None:
        config_path = os.environ.get("STEPWISE_CONFIG")
    if config_path is None:
        default = get_config_dir() / "config.yaml"
        if default.exists():
            config_path = default

    # Load YAML if found
    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                yaml_data = yaml.safe_load(f) or {}

    if overrides:
        yaml_data = _deep_merge(yaml_data, overrides)

    # Init kwargs outrank env vars in pydantic-settings, so YAML keys win
    return Settings(**yaml_data)
