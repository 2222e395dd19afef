"""HTTP surface for the Flowly chat assistant."""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from pydantic import BaseModel, Field

from flowly.api.session import apply_command, identify_command, resolve_session_id
from flowly.core.config import DEFAULT_CONFIG_PATH, AssistantConfig, load_config
from flowly.core.context import ContextStore, ContextSweeper
from flowly.core.directory import load_directory
from flowly.core.engine import ChatEngine, ChatResult, ChatTurn
from flowly.core.grammar import load_grammar
from flowly.core.providers import ProviderClient
from flowly.core.settings import InMemorySettingsStore

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _resolve(path: Path) -> Path:
    return path if path.is_absolute() else PROJECT_ROOT / path


def build_engine(config: AssistantConfig) -> ChatEngine:
    """Wire the engine with in-memory collaborators; raises on a bad grammar."""

    grammar = load_grammar(_resolve(config.grammar_path))
    logger.info("Loaded %d commands from %s", len(grammar), config.grammar_path)
    return ChatEngine(
        grammar=grammar,
        store=ContextStore(retention=timedelta(seconds=config.context_ttl_seconds)),
        directory=load_directory(
            _resolve(config.directory_path),
            fuzzy_max_distance=config.fuzzy_max_distance,
        ),
        settings=InMemorySettingsStore.from_env(),
        client=ProviderClient(
            timeout=config.request_timeout_seconds,
            app_url=config.app_url,
            app_title=config.app_title,
        ),
        config=config,
    )


config = load_config(_resolve(Path(os.environ.get("FLOWLY_CONFIG", DEFAULT_CONFIG_PATH))))
engine = build_engine(config)
sweeper = ContextSweeper(engine.store, config.sweep_interval_seconds)


@asynccontextmanager
async def lifespan(_: FastAPI):
    sweeper.start()
    try:
        yield
    finally:
        await sweeper.stop()


app = FastAPI(title="Flowly Assistant", version="0.1.0", lifespan=lifespan)


def get_engine() -> ChatEngine:
    return engine


class HistoryMessage(BaseModel):
    role: str
    content: str


class ChatRequest(BaseModel):
    message: str
    session_id: Optional[str] = Field(
        default=None, description="Conversation id; 'default' when omitted"
    )
    history: List[HistoryMessage] = Field(default_factory=list)
    organization_id: Optional[str] = Field(
        default=None, description="Organization whose workspaces are visible"
    )


class ActionPayload(BaseModel):
    name: str
    parameters: Dict[str, Any]


class ChatResponse(BaseModel):
    message: str
    action: Optional[ActionPayload] = None
    success: bool
    error: Optional[str] = None


class TestConnectionRequest(BaseModel):
    api_key: str
    model: str
    api_url: str


class TestConnectionResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


class ClearSessionResponse(BaseModel):
    success: bool


@app.post("/v1/chat", response_model=ChatResponse)
async def chat(
    payload: ChatRequest,
    x_user_id: str = Header(default="anonymous"),
    chat_engine: ChatEngine = Depends(get_engine),
) -> ChatResponse:
    raw_message = payload.message.strip()
    if not raw_message:
        raise HTTPException(status_code=400, detail="Message cannot be empty")
    session_id = resolve_session_id(payload.session_id)

    command = identify_command(raw_message)
    if command:
        try:
            response_text = apply_command(chat_engine, session_id, command)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return ChatResponse(message=response_text, success=True)

    result = await chat_engine.chat(
        ChatTurn(
            message=raw_message,
            session_id=session_id,
            history=[{"role": m.role, "content": m.content} for m in payload.history],
            organization_id=payload.organization_id,
        ),
        user_id=x_user_id,
    )
    return _chat_response(result)


@app.post("/v1/chat/test-connection", response_model=TestConnectionResponse)
async def test_connection(
    payload: TestConnectionRequest,
    chat_engine: ChatEngine = Depends(get_engine),
) -> TestConnectionResponse:
    result = await chat_engine.test_connection(
        api_key=payload.api_key, model=payload.model, api_url=payload.api_url
    )
    return TestConnectionResponse(
        success=result.success, message=result.message, error=result.error
    )


@app.delete("/v1/chat/sessions/{session_id}", response_model=ClearSessionResponse)
def clear_session(
    session_id: str, chat_engine: ChatEngine = Depends(get_engine)
) -> ClearSessionResponse:
    chat_engine.clear_session(session_id)
    return ClearSessionResponse(success=True)


def _chat_response(result: ChatResult) -> ChatResponse:
    action = None
    if result.action is not None:
        action = ActionPayload(
            name=result.action.name, parameters=dict(result.action.parameters)
        )
    return ChatResponse(
        message=result.message,
        action=action,
        success=result.success,
        error=result.error,
    )


__all__ = ["app", "build_engine", "get_engine"]
