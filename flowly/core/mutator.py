"""Session context updates driven by resolved actions and by raw user text.

Heuristic extraction is an ordered table of ``(entity, pattern)`` rows so each
phrase shape can be added or tested on its own. Input is capped before any
pattern runs.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Pattern, Sequence

from .context import SessionContext
from .validator import Action

MAX_MESSAGE_LENGTH = 10000

WORKSPACE = "workspace"
PROJECT = "project"

_SLUG_SPACES = re.compile(r"\s+")
_SLUG_INVALID = re.compile(r"[^a-z0-9-]")

STOPLIST = frozenset(
    {
        "yes",
        "no",
        "ok",
        "okay",
        "fine",
        "good",
        "sure",
        "right",
        "correct",
        "thanks",
        "thank you",
        "the",
        "a",
        "an",
        "and",
        "or",
        "but",
        "with",
        "without",
        "please",
        "help",
        "this",
        "that",
        "it",
        "one",
        "new",
        "current",
        "my",
        "your",
        "our",
        "in",
        "to",
        "for",
        "of",
        "which",
        "what",
        "any",
        "each",
        "every",
        "other",
        "another",
        "same",
        "create",
        "delete",
        "list",
        "show",
        "open",
        "edit",
        "rename",
        "add",
    }
)
REJECTED_PREFIXES = ("i want to", "can you", "could you", "please ", "let me")
_LEADING_ARTICLE = re.compile(r"^(?:the|a|an|my)\s+", re.IGNORECASE)

# a name runs until punctuation, a quote, a connective word or end of text
_NAME = r"[\"']?(?P<name>[A-Za-z0-9][A-Za-z0-9 _\-]{0,60}?)[\"']?"
_END = r"(?=\s+(?:in|and|for|with|to|under|on|please)\b|\s*[.,!?;:\n]|\s*$)"
_VERB = r"(?:in|into|to|use|using|with|open|inside)"


def slugify(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    lowered = _SLUG_SPACES.sub("-", str(value).strip().lower())
    return _SLUG_INVALID.sub("", lowered)


@dataclass(frozen=True)
class MessagePattern:
    entity: str
    pattern: Pattern[str]


MESSAGE_PATTERNS: Sequence[MessagePattern] = (
    # "in workspace Beta", "go to workspace 'Design'"
    MessagePattern(
        WORKSPACE,
        re.compile(rf"\b{_VERB}\s+(?:the\s+)?w[ou]rkspace\s+{_NAME}{_END}", re.IGNORECASE),
    ),
    # "workspace is Marketing"
    MessagePattern(WORKSPACE, re.compile(rf"\bw[ou]rkspace\s+is\s+{_NAME}{_END}", re.IGNORECASE)),
    # "use the Marketing workspace"
    MessagePattern(
        WORKSPACE,
        re.compile(rf"\b{_VERB}\s+(?:the\s+)?{_NAME}\s+w[ou]rkspace\b", re.IGNORECASE),
    ),
    # "take me to Marketing"
    MessagePattern(
        WORKSPACE,
        re.compile(
            rf"\b(?:take\s+me\s+to|navigate\s+to|go\s+to|switch\s+to)\s+{_NAME}{_END}",
            re.IGNORECASE,
        ),
    ),
    # "in project Alpha", "go to project Alpha"
    MessagePattern(
        PROJECT,
        re.compile(rf"\b{_VERB}\s+(?:the\s+)?project\s+{_NAME}{_END}", re.IGNORECASE),
    ),
    # "project is HIMS"
    MessagePattern(PROJECT, re.compile(rf"\bproject\s+is\s+{_NAME}{_END}", re.IGNORECASE)),
    # "go with HIMS project", "in the Website Redesign project"
    MessagePattern(
        PROJECT,
        re.compile(
            rf"\b(?:go\s+with|{_VERB})\s+(?:the\s+)?{_NAME}\s+project\b", re.IGNORECASE
        ),
    ),
    # "I choose hims"
    MessagePattern(
        PROJECT,
        re.compile(rf"\b(?:choose|select|pick)\s+(?:the\s+)?{_NAME}{_END}", re.IGNORECASE),
    ),
    # "HIMS project"
    MessagePattern(
        PROJECT, re.compile(r"(?P<name>[A-Za-z0-9][A-Za-z0-9_\-]{0,60})\s+project\b", re.IGNORECASE)
    ),
)

_ENTITY_KEYWORDS = re.compile(r"\b(?:w[ou]rkspaces?|projects?)\b", re.IGNORECASE)


def find_mentions(
    message: str, max_length: int = MAX_MESSAGE_LENGTH
) -> Dict[str, str]:
    """Entity names mentioned in ``message``; the first accepted match per entity wins."""

    sample = (message or "")[:max_length]
    found: Dict[str, str] = {}
    for row in MESSAGE_PATTERNS:
        if row.entity in found:
            continue
        for match in row.pattern.finditer(sample):
            name = clean_name(match.group("name"))
            if name and is_acceptable_name(name):
                found[row.entity] = name
                break
    return found


def clean_name(raw: Optional[str]) -> str:
    name = (raw or "").strip().strip("\"'").strip()
    return _LEADING_ARTICLE.sub("", name).strip()


def is_acceptable_name(name: str) -> bool:
    """Reject filler phrases and names that still contain an entity keyword."""

    lowered = name.lower()
    if lowered in STOPLIST or lowered.startswith(REJECTED_PREFIXES):
        return False
    if all(word in STOPLIST for word in lowered.split()):
        return False
    return not _ENTITY_KEYWORDS.search(lowered)


def apply_message(
    context: SessionContext,
    message: str,
    max_length: int = MAX_MESSAGE_LENGTH,
    workspace_slugs: Iterable[str] = (),
) -> bool:
    """Update ``context`` from entity names in the raw user message.

    A workspace mention is only adopted when its slug is one of
    ``workspace_slugs``; any other workspace mention is ignored.
    """

    mentions = find_mentions(message, max_length)
    workspace = mentions.get(WORKSPACE)
    project = mentions.get(PROJECT)
    slug = slugify(workspace) if workspace else None
    if slug not in set(workspace_slugs):
        workspace = None
    if not (workspace or project):
        return False
    if workspace:
        if slug != context.workspace_slug:
            context.workspace_projects = None
        context.workspace_name = workspace
        context.workspace_slug = slug
        if not project:
            context.clear_project()
    if project:
        context.project_name = project
        context.project_slug = slugify(project)
    return True


def apply_action(
    context: SessionContext,
    action: Action,
    workspace_projects: Optional[List[str]] = None,
) -> bool:
    """Update ``context`` after ``action`` has been resolved and validated."""

    handler = _ACTION_HANDLERS.get(action.name)
    if handler is not None:
        handler(context, action.parameters, workspace_projects)
    return True


def _navigate_to_workspace(
    context: SessionContext, params: Dict[str, Any], projects: Optional[List[str]]
) -> None:
    slug = params.get("workspaceSlug")
    if not slug:
        return
    context.workspace_slug = slug
    context.workspace_name = params.get("workspaceName") or slug
    context.workspace_projects = list(projects) if projects is not None else None
    context.clear_project()


def _create_workspace(
    context: SessionContext, params: Dict[str, Any], projects: Optional[List[str]]
) -> None:
    name = params.get("name")
    if not name:
        return
    context.workspace_slug = slugify(name)
    context.workspace_name = str(name)
    context.workspace_projects = []
    context.clear_project()


def _create_project(
    context: SessionContext, params: Dict[str, Any], projects: Optional[List[str]]
) -> None:
    name = params.get("name")
    slug = slugify(name) if name else params.get("projectSlug")
    _set_project(context, params, slug, name or params.get("projectSlug"))


def _navigate_to_project(
    context: SessionContext, params: Dict[str, Any], projects: Optional[List[str]]
) -> None:
    explicit = params.get("projectSlug")
    name = params.get("name")
    slug = explicit or (slugify(name) if name else None)
    _set_project(context, params, slug, explicit or name)


def _edit_workspace(
    context: SessionContext, params: Dict[str, Any], projects: Optional[List[str]]
) -> None:
    updates = params.get("updates")
    new_name = updates.get("name") if isinstance(updates, dict) else None
    slug = params.get("workspaceSlug")
    if new_name and slug:
        context.workspace_slug = slug
        context.workspace_name = str(new_name)


def _set_project(
    context: SessionContext,
    params: Dict[str, Any],
    slug: Optional[str],
    name: Optional[str],
) -> None:
    workspace = params.get("workspaceSlug")
    if workspace and workspace != context.workspace_slug:
        context.workspace_slug = workspace
        context.workspace_name = workspace
        context.workspace_projects = None
    context.project_slug = slug
    context.project_name = str(name) if name else slug


_ACTION_HANDLERS: Dict[
    str, Callable[[SessionContext, Dict[str, Any], Optional[List[str]]], None]
] = {
    "navigateToWorkspace": _navigate_to_workspace,
    "createWorkspace": _create_workspace,
    "createProject": _create_project,
    "navigateToProject": _navigate_to_project,
    "editWorkspace": _edit_workspace,
}


__all__ = [
    "MESSAGE_PATTERNS",
    "MessagePattern",
    "STOPLIST",
    "apply_action",
    "apply_message",
    "clean_name",
    "find_mentions",
    "is_acceptable_name",
    "slugify",
]
