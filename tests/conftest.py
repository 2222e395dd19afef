import json
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Callable, List, Optional

import httpx
import pytest

from flowly.core.config import AssistantConfig
from flowly.core.context import ContextStore
from flowly.core.directory import InMemoryDirectory, WorkspaceRecord
from flowly.core.engine import ChatEngine
from flowly.core.grammar import load_grammar
from flowly.core.providers import ProviderClient
from flowly.core.settings import InMemorySettingsStore

ROOT = Path(__file__).resolve().parents[1]

USER_ID = "user-1"


class FakeClock:
    """Manually advanced clock for deterministic timestamps."""

    def __init__(self) -> None:
        self.now = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class ProviderStub:
    """httpx handler returning canned OpenAI-style replies and recording requests."""

    def __init__(self) -> None:
        self.replies: List[str] = []
        self.status_code = 200
        self.requests: List[httpx.Request] = []
        self.error: Optional[Exception] = None

    def reply_with(self, *texts: str) -> None:
        self.replies.extend(texts)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": {"message": "boom"}})
        text = self.replies.pop(0) if self.replies else ""
        return httpx.Response(
            200, json={"choices": [{"message": {"role": "assistant", "content": text}}]}
        )

    def last_body(self) -> dict:
        return json.loads(self.requests[-1].content)


@pytest.fixture
def grammar():
    return load_grammar(ROOT / "config" / "commands.yaml")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(clock):
    return ContextStore(clock=clock)


@pytest.fixture
def directory():
    return InMemoryDirectory(
        [
            WorkspaceRecord(
                id="ws-1",
                slug="marketing",
                name="Marketing",
                organization_id="org-1",
                projects=["marketing", "test-123", "website-redesign"],
            ),
            WorkspaceRecord(
                id="ws-2",
                slug="beta",
                name="Beta",
                organization_id="org-1",
                projects=["alpha"],
            ),
        ]
    )


@pytest.fixture
def settings():
    store = InMemorySettingsStore()
    store.put(USER_ID, "ai_enabled", "true")
    store.put(USER_ID, "ai_api_key", "sk-test")
    store.put(USER_ID, "ai_api_url", "https://openrouter.ai/api/v1/")
    return store


@pytest.fixture
def provider():
    return ProviderStub()


@pytest.fixture
def client_factory(provider) -> Callable[[], ProviderClient]:
    def factory() -> ProviderClient:
        return ProviderClient(
            timeout=5,
            app_url="https://app.example.com",
            app_title="Flowly AI Assistant",
            transport=httpx.MockTransport(provider),
        )

    return factory


@pytest.fixture
def engine(grammar, store, directory, settings, client_factory):
    return ChatEngine(
        grammar=grammar,
        store=store,
        directory=directory,
        settings=settings,
        client=client_factory(),
        config=AssistantConfig(),
    )
