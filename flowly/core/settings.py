"""Per-user settings collaborator."""

from __future__ import annotations

import os
from threading import RLock
from typing import Dict, Mapping, Optional, Protocol

AI_ENABLED = "ai_enabled"
AI_API_KEY = "ai_api_key"
AI_MODEL = "ai_model"
AI_API_URL = "ai_api_url"

ENV_DEFAULTS = {
    "FLOWLY_AI_ENABLED": AI_ENABLED,
    "FLOWLY_AI_API_KEY": AI_API_KEY,
    "FLOWLY_AI_MODEL": AI_MODEL,
    "FLOWLY_AI_API_URL": AI_API_URL,
}


class SettingsStore(Protocol):
    async def get(
        self, key: str, user_id: str, default: Optional[str] = None
    ) -> Optional[str]:
        ...


class InMemorySettingsStore:
    """User values layered over process-wide defaults."""

    def __init__(self, defaults: Optional[Mapping[str, str]] = None) -> None:
        self._lock = RLock()
        self._defaults: Dict[str, str] = dict(defaults or {})
        self._values: Dict[str, Dict[str, str]] = {}

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "InMemorySettingsStore":
        env = os.environ if environ is None else environ
        return cls({key: env[var] for var, key in ENV_DEFAULTS.items() if env.get(var)})

    def put(self, user_id: str, key: str, value: str) -> None:
        with self._lock:
            self._values.setdefault(user_id, {})[key] = value

    async def get(
        self, key: str, user_id: str, default: Optional[str] = None
    ) -> Optional[str]:
        with self._lock:
            value = self._values.get(user_id, {}).get(key)
            if value is None:
                value = self._defaults.get(key)
        return value if value is not None else default


__all__ = [
    "AI_API_KEY",
    "AI_API_URL",
    "AI_ENABLED",
    "AI_MODEL",
    "InMemorySettingsStore",
    "SettingsStore",
]
