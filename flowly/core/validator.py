"""Grammar validation of action candidates, with auto-fill from session context."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .context import SessionContext
from .errors import ParameterValidationError
from .grammar import CommandGrammar

logger = logging.getLogger(__name__)

WORKSPACE_SLUG = "workspaceSlug"
PROJECT_SLUG = "projectSlug"

CONTEXT_FREE_COMMANDS = frozenset({"listWorkspaces", "createWorkspace"})
PROJECT_SCOPED_MARKERS = ("Task", "Project")
PLACEHOLDER_VALUES = frozenset({"current"})


@dataclass
class Action:
    name: str
    parameters: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "parameters": dict(self.parameters)}


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (dict, list, tuple, set)):
        return not value
    return str(value).strip() == ""


def autofill(
    command_name: str,
    parameters: Mapping[str, Any],
    context: Optional[SessionContext],
) -> Dict[str, Any]:
    """Return a copy of ``parameters`` with workspace/project slugs taken from context.

    Explicit values always win. The project slug is only borrowed when the
    workspace in play is the context's own workspace.
    """

    filled = dict(parameters)
    for key in (WORKSPACE_SLUG, PROJECT_SLUG):
        if _is_placeholder(filled.get(key)):
            del filled[key]
    if context is None:
        return filled

    if command_name not in CONTEXT_FREE_COMMANDS and is_blank(filled.get(WORKSPACE_SLUG)):
        if context.workspace_slug:
            filled[WORKSPACE_SLUG] = context.workspace_slug

    if any(marker in command_name for marker in PROJECT_SCOPED_MARKERS):
        if (
            is_blank(filled.get(PROJECT_SLUG))
            and context.project_slug
            and filled.get(WORKSPACE_SLUG) == context.workspace_slug
        ):
            filled[PROJECT_SLUG] = context.project_slug
    return filled


def missing_parameters(
    grammar: CommandGrammar, command_name: str, parameters: Mapping[str, Any]
) -> List[str]:
    command = grammar.require(command_name)
    return [name for name in command.required if is_blank(parameters.get(name))]


def validate_parameters(
    grammar: CommandGrammar, command_name: str, parameters: Mapping[str, Any]
) -> None:
    missing = missing_parameters(grammar, command_name, parameters)
    if missing:
        logger.info("Rejected %s, missing %s", command_name, ", ".join(missing))
        raise ParameterValidationError(command_name, missing)


def resolve_action(
    grammar: CommandGrammar,
    command_name: str,
    parameters: Mapping[str, Any],
    context: Optional[SessionContext] = None,
) -> Action:
    """Auto-fill, then validate. Only fully specified actions come back."""

    filled = autofill(command_name, parameters, context)
    validate_parameters(grammar, command_name, filled)
    return Action(name=command_name, parameters=filled)


def _is_placeholder(value: Any) -> bool:
    return isinstance(value, str) and value.strip().lower() in PLACEHOLDER_VALUES


__all__ = [
    "Action",
    "CONTEXT_FREE_COMMANDS",
    "autofill",
    "is_blank",
    "missing_parameters",
    "resolve_action",
    "validate_parameters",
]
