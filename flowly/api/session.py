"""Inline slash commands handled without a model call."""

from __future__ import annotations

import re
from typing import Callable, Dict, Optional

from flowly.core.context import DEFAULT_SESSION_ID
from flowly.core.engine import ChatEngine

COMMAND_CLEAR = "clear"
COMMAND_CONTEXT = "context"

_COMMAND_PATTERN = re.compile(r"^/(\w+)\s*$")


def resolve_session_id(session_id: Optional[str]) -> str:
    return (session_id or "").strip() or DEFAULT_SESSION_ID


def identify_command(message: str) -> Optional[str]:
    match = _COMMAND_PATTERN.match(message.strip())
    return match.group(1).lower() if match else None


def _clear(engine: ChatEngine, session_id: str) -> str:
    engine.clear_session(session_id)
    return "Conversation context cleared."


def _describe_context(engine: ChatEngine, session_id: str) -> str:
    context = engine.store.get(session_id)
    if context is None or not (context.workspace_slug or context.project_slug):
        return "No workspace or project selected yet."
    lines = []
    if context.workspace_slug:
        lines.append(
            f"Workspace: {context.workspace_name or context.workspace_slug} "
            f"({context.workspace_slug})"
        )
    if context.project_slug:
        lines.append(
            f"Project: {context.project_name or context.project_slug} "
            f"({context.project_slug})"
        )
    return "\n".join(lines)


SLASH_COMMANDS: Dict[str, Callable[[ChatEngine, str], str]] = {
    COMMAND_CLEAR: _clear,
    COMMAND_CONTEXT: _describe_context,
}


def apply_command(engine: ChatEngine, session_id: str, command: str) -> str:
    handler = SLASH_COMMANDS.get(command)
    if handler is None:
        raise ValueError(f"Unsupported command: /{command}")
    return handler(engine, session_id)


__all__ = [
    "COMMAND_CLEAR",
    "COMMAND_CONTEXT",
    "SLASH_COMMANDS",
    "apply_command",
    "identify_command",
    "resolve_session_id",
]
