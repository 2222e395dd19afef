"""System prompt compilation and message assembly.

The system prompt bounds the model to the command grammar and to the entities
the caller can actually see. It is a pure function of its inputs, so the same
grammar, context and slug list always produce the same text.
"""

from __future__ import annotations

from typing import Iterable, List, Mapping, Optional, Sequence

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_core.prompts import ChatPromptTemplate, MessagesPlaceholder

from .context import SessionContext
from .grammar import CommandGrammar

NO_WORKSPACES_MARKER = "- No workspaces available"

CHAT_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", "{system_prompt}"),
        MessagesPlaceholder("history", optional=True),
        ("human", "{message}"),
    ]
)

_HISTORY_ROLES = {
    "system": SystemMessage,
    "user": HumanMessage,
    "human": HumanMessage,
    "assistant": AIMessage,
    "ai": AIMessage,
}

_RULES = """\
CRITICAL RULES:
1. Only use the [COMMAND: commandName] format with a command from AVAILABLE COMMANDS.
2. Never invent commands, shell snippets or command names that are not listed.
3. Match every request to one of the available commands. If nothing matches, explain which commands exist.

COMMAND EXECUTION FORMAT:
- Use exactly: [COMMAND: commandName] {"param": "value"}
- Example: [COMMAND: navigateToWorkspace] {"workspaceSlug": "marketing"}
- The command must be the last thing in your reply.

SLUG RULES:
1. "workspaceSlug" must be exactly one of the AVAILABLE WORKSPACE SLUGS.
2. Never create a slug that is not in the list. Fuzzy matching is only for small typos (e.g. "ramanq" -> "raman").
3. If nothing matches, reply: "The workspace you requested does not exist. Please choose one of the available workspaces." and show the available slugs.
4. Slugs are lowercase with spaces turned into hyphens: "My Test Space" -> "my-test-space".

PARAMETER RULES:
1. Check that every required parameter is present before emitting a command.
2. If any required parameter is missing, do not emit the command. Ask a specific follow-up question instead and remember the original intent.
3. "createWorkspace" always needs both name and description. Ask for the description if it is missing.
- User: "create workspace MySpace"
- Reply: "I'll create a workspace named 'MySpace'. What description would you like for it?"

CONTEXT RULES:
1. When a workspace is set in CURRENT CONTEXT, use it for every command that needs workspaceSlug and the user did not name one.
2. When a project is set in CURRENT CONTEXT, use it for every task command that needs projectSlug and the user did not name one.
3. Tell the user when you fill a value from context: "Using current workspace/project: <name>".
4. Never use workspaces or projects outside the lists in this prompt or outside this conversation.

COMMIT RULE:
- When all required parameters are known (from the user or from context), output the command in the same reply.
- Never say "I will create..." without the command; it must not be deferred to a later reply.
- Example: "Creating task 'Review Code' in project 'Alpha'... [COMMAND: createTask] {"workspaceSlug": "beta", "projectSlug": "alpha", "taskTitle": "Review Code"}\""""


def compile_system_prompt(
    grammar: CommandGrammar,
    context: Optional[SessionContext] = None,
    workspace_slugs: Sequence[str] = (),
) -> str:
    sections: List[str] = [
        "You are Flowly AI Assistant. You can only execute the predefined commands below.",
        f"AVAILABLE COMMANDS:\n{grammar.describe()}",
        _RULES,
        f"AVAILABLE WORKSPACE SLUGS:\n{_format_slugs(workspace_slugs)}",
    ]
    current = _format_context(context)
    if current:
        sections.append(current)
    if context is not None and context.workspace_projects is not None:
        projects = ", ".join(context.workspace_projects) or "none"
        sections.append(f"AVAILABLE PROJECTS IN CURRENT WORKSPACE: {projects}")
    return "\n\n".join(sections) + "\n"


def build_messages(
    system_prompt: str,
    history: Iterable[Mapping[str, str]],
    message: str,
) -> List[BaseMessage]:
    """Render the chat prompt: system instruction, prior turns, new user message."""

    return CHAT_PROMPT.format_messages(
        system_prompt=system_prompt,
        history=_history_messages(history),
        message=message,
    )


def _format_slugs(slugs: Sequence[str]) -> str:
    if not slugs:
        return NO_WORKSPACES_MARKER
    return "\n".join(f'-> slug: "{slug}"' for slug in slugs)


def _format_context(context: Optional[SessionContext]) -> str:
    if context is None:
        return ""
    lines: List[str] = []
    if context.workspace_slug:
        name = context.workspace_name or context.workspace_slug
        lines.append(f"- Current Workspace: {name} (slug: {context.workspace_slug})")
    if context.project_slug:
        name = context.project_name or context.project_slug
        lines.append(f"- Current Project: {name} (slug: {context.project_slug})")
    if not lines:
        return ""
    return "CURRENT CONTEXT:\n" + "\n".join(lines)


def _history_messages(history: Iterable[Mapping[str, str]]) -> List[BaseMessage]:
    messages: List[BaseMessage] = []
    for entry in history or []:
        factory = _HISTORY_ROLES.get(str(entry.get("role", "")).lower())
        if factory is None:
            continue
        messages.append(factory(content=str(entry.get("content", ""))))
    return messages


__all__ = [
    "CHAT_PROMPT",
    "NO_WORKSPACES_MARKER",
    "build_messages",
    "compile_system_prompt",
]
