"""Runtime configuration for the assistant, loaded from YAML."""

from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

DEFAULT_CONFIG_PATH = Path("config/assistant.yaml")


@dataclass
class AssistantConfig:
    grammar_path: Path = Path("config/commands.yaml")
    directory_path: Path = Path("config/directory.yaml")
    default_model: str = "deepseek/deepseek-chat-v3-0324:free"
    default_api_url: str = "https://openrouter.ai/api/v1"
    temperature: float = 0.1
    max_tokens: int = 500
    test_max_tokens: int = 50
    request_timeout_seconds: float = 30.0
    context_ttl_seconds: int = 3600
    sweep_interval_seconds: int = 3600
    max_message_length: int = 10000
    fuzzy_max_distance: int = 2
    app_url: str = "http://localhost:3000"
    app_title: str = "Flowly AI Assistant"

    @classmethod
    def from_dict(
        cls, data: Dict, environ: Optional[Mapping[str, str]] = None
    ) -> "AssistantConfig":
        known = {f.name: f for f in fields(cls)}
        values = {}
        for key, value in (data or {}).items():
            if key not in known or value is None:
                continue
            if key.endswith("_path"):
                value = Path(value)
            values[key] = value
        config = cls(**values)
        env = os.environ if environ is None else environ
        if env.get("APP_URL"):
            config.app_url = env["APP_URL"]
        return config


def load_config(config_path: Optional[Path] = None) -> AssistantConfig:
    """Read ``config_path`` (or ``$FLOWLY_CONFIG``); defaults when absent."""

    path = config_path or Path(os.environ.get("FLOWLY_CONFIG", DEFAULT_CONFIG_PATH))
    if not path.exists():
        return AssistantConfig.from_dict({})
    with path.open("r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    return AssistantConfig.from_dict(data)


__all__ = ["AssistantConfig", "DEFAULT_CONFIG_PATH", "load_config"]
