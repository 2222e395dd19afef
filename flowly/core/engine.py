"""One chat turn, end to end.

``ChatEngine.chat`` is the turn boundary: whatever happens inside, the caller
gets a ``ChatResult`` back and never an exception (task cancellation aside).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import List, Mapping, Optional

from langchain_core.messages import HumanMessage

from .config import AssistantConfig
from .context import DEFAULT_SESSION_ID, ContextStore, SessionContext
from .directory import EntityDirectory, MatchStatus
from .errors import (
    AssistantError,
    FeatureDisabledError,
    MissingCredentialError,
    NetworkError,
    ParameterValidationError,
    ParseError,
    UnknownCommandError,
)
from .extractor import extract_command
from .grammar import CommandGrammar
from .guard import validate_endpoint
from .mutator import apply_action, apply_message
from .prompt import build_messages, compile_system_prompt
from .providers import GenerationSettings, ProviderClient
from .settings import AI_API_KEY, AI_API_URL, AI_ENABLED, AI_MODEL, SettingsStore
from .validator import Action, resolve_action

logger = logging.getLogger(__name__)

NAVIGATE_TO_PROJECT = "navigateToProject"
NAVIGATE_TO_WORKSPACE = "navigateToWorkspace"

CONNECTION_TEST_PROMPT = (
    'Hello, this is a connection test. Please respond with "Connection successful."'
)

_NETWORK_FAILURE = re.compile(
    r"failed to fetch|networkerror|connection (?:refused|reset|aborted)"
    r"|name or service not known|temporary failure in name resolution",
    re.IGNORECASE,
)


@dataclass
class ChatTurn:
    message: str
    session_id: Optional[str] = None
    history: List[Mapping[str, str]] = field(default_factory=list)
    organization_id: Optional[str] = None


@dataclass
class ChatResult:
    message: str = ""
    action: Optional[Action] = None
    success: bool = True
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str) -> "ChatResult":
        return cls(message="", success=False, error=error)


@dataclass
class ConnectionResult:
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None


def project_found_message(slug: str) -> str:
    return f"✅ Great! I found the project **{slug}**. Taking you there now."


def project_fuzzy_message(slug: str) -> str:
    return (
        "🤔 I couldn't find an exact match, but I found something close: "
        f"**{slug}**. Navigating there for you."
    )


PROJECT_NOT_FOUND_MESSAGE = (
    "⚠️ I couldn't find any project matching that name. Try again with a different "
    "project name, or use **list all projects** to see what's available."
)


class ChatEngine:
    def __init__(
        self,
        grammar: CommandGrammar,
        store: ContextStore,
        directory: EntityDirectory,
        settings: SettingsStore,
        client: ProviderClient,
        config: Optional[AssistantConfig] = None,
    ) -> None:
        self.grammar = grammar
        self.store = store
        self.directory = directory
        self.settings = settings
        self.client = client
        self.config = config or AssistantConfig()

    async def chat(self, turn: ChatTurn, user_id: str) -> ChatResult:
        try:
            return await self._chat(turn, user_id)
        except AssistantError as exc:
            logger.warning("Chat turn rejected: %s", exc)
            return ChatResult.failure(exc.user_message)
        except Exception as exc:
            logger.exception("Chat turn failed")
            if is_network_failure(exc):
                return ChatResult.failure(NetworkError().user_message)
            return ChatResult.failure(str(exc) or "Failed to process chat request")

    def clear_session(self, session_id: str) -> None:
        self.store.clear(session_id)

    async def test_connection(self, api_key: str, model: str, api_url: str) -> ConnectionResult:
        """Check a provider configuration without requiring AI to be enabled."""

        try:
            endpoint = validate_endpoint(api_url)
            messages = [HumanMessage(content=CONNECTION_TEST_PROMPT)]
            reply = await self.client.complete(
                endpoint,
                api_key,
                GenerationSettings(
                    model=model,
                    temperature=self.config.temperature,
                    max_tokens=self.config.test_max_tokens,
                ),
                messages,
            )
        except NetworkError as exc:
            logger.warning("Connection test failed: %s", exc)
            return ConnectionResult(
                success=False,
                error="Network error. Please check your internet connection and API URL.",
            )
        except AssistantError as exc:
            logger.warning("Connection test failed: %s", exc)
            return ConnectionResult(success=False, error=exc.user_message)
        except Exception as exc:
            logger.exception("Connection test failed")
            return ConnectionResult(
                success=False,
                error=str(exc) or "Connection test failed. Please check your configuration.",
            )
        if not reply:
            return ConnectionResult(
                success=False,
                error="Received empty response from AI provider. Please check your configuration.",
            )
        return ConnectionResult(
            success=True,
            message="Connection successful! Your AI configuration is working correctly.",
        )

    async def _chat(self, turn: ChatTurn, user_id: str) -> ChatResult:
        if await self.settings.get(AI_ENABLED, user_id) != "true":
            raise FeatureDisabledError()
        api_key = await self.settings.get(AI_API_KEY, user_id)
        if not api_key:
            raise MissingCredentialError()
        model = await self.settings.get(AI_MODEL, user_id) or self.config.default_model
        raw_url = await self.settings.get(AI_API_URL, user_id)
        api_url = validate_endpoint(raw_url or self.config.default_api_url)

        slugs = await self.directory.workspace_slugs(turn.organization_id or "")
        session_id = turn.session_id or DEFAULT_SESSION_ID
        context = self.store.get_or_create(session_id)
        system_prompt = compile_system_prompt(self.grammar, context, slugs)

        limit = self.config.max_message_length
        context = self.store.update(
            session_id,
            lambda ctx: apply_message(ctx, turn.message, limit, workspace_slugs=slugs),
        )

        messages = build_messages(system_prompt, turn.history, turn.message)
        reply = await self.client.complete(
            api_url,
            api_key,
            GenerationSettings(
                model=model,
                temperature=self.config.temperature,
                max_tokens=self.config.max_tokens,
            ),
            messages,
        )
        return await self._resolve_reply(session_id, reply, context)

    async def _resolve_reply(
        self, session_id: str, reply: str, context: SessionContext
    ) -> ChatResult:
        try:
            candidate = extract_command(reply, self.config.max_message_length)
        except ParseError as exc:
            logger.warning("Dropping command from reply: %s", exc)
            return ChatResult(message=reply)
        if candidate is None:
            return ChatResult(message=reply)

        try:
            action = resolve_action(
                self.grammar, candidate.name, candidate.parameters, context
            )
        except ParameterValidationError as exc:
            return ChatResult(message=f"{reply}\n\n{exc.clarification}")
        except UnknownCommandError as exc:
            logger.warning("Model emitted unknown command %s", exc.command_name)
            return ChatResult(message=f"{reply}\n\n{exc.user_message}")

        message = reply
        if action.name == NAVIGATE_TO_PROJECT:
            match = await self.directory.resolve_project_slug(
                action.parameters["projectSlug"]
            )
            if match.status is MatchStatus.NOT_FOUND:
                return ChatResult(message=PROJECT_NOT_FOUND_MESSAGE)
            action.parameters["projectSlug"] = match.slug
            if match.status is MatchStatus.EXACT:
                message = project_found_message(match.slug)
            else:
                message = project_fuzzy_message(match.slug)

        workspace_projects = await self._workspace_projects(action)
        self.store.update(
            session_id, lambda ctx: apply_action(ctx, action, workspace_projects)
        )
        return ChatResult(message=message, action=action)

    async def _workspace_projects(self, action: Action) -> Optional[List[str]]:
        if action.name != NAVIGATE_TO_WORKSPACE:
            return None
        workspace_id = await self.directory.workspace_id(action.parameters["workspaceSlug"])
        if workspace_id is None:
            return []
        return await self.directory.project_slugs(workspace_id)


def is_network_failure(exc: BaseException) -> bool:
    return bool(_NETWORK_FAILURE.search(str(exc))) or bool(
        _NETWORK_FAILURE.search(type(exc).__name__)
    )


__all__ = [
    "ChatEngine",
    "ChatResult",
    "ChatTurn",
    "ConnectionResult",
    "PROJECT_NOT_FOUND_MESSAGE",
    "is_network_failure",
]
