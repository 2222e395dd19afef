"""Declarative command grammar.

The grammar is the single source of truth for what the assistant may invoke.
It is read once from YAML at startup; anything malformed raises
``GrammarError`` immediately so a broken table never reaches request time.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

import yaml

from .errors import GrammarError, UnknownCommandError

OPTIONAL_SUFFIX = "?"

_PARAM_PATTERN = re.compile(r"^[A-Za-z][A-Za-z0-9_]*\??$")


@dataclass(frozen=True)
class Command:
    name: str
    params: Tuple[str, ...] = ()

    @property
    def required(self) -> List[str]:
        return [p for p in self.params if not p.endswith(OPTIONAL_SUFFIX)]

    @property
    def optional(self) -> List[str]:
        return [p[:-1] for p in self.params if p.endswith(OPTIONAL_SUFFIX)]

    @property
    def parameter_names(self) -> List[str]:
        return [p.rstrip(OPTIONAL_SUFFIX) for p in self.params]

    def describe(self) -> str:
        """One prompt line: parameter hints plus the exact invocation format."""

        parts: List[str] = []
        if self.required:
            parts.append(f"needs {', '.join(self.required)}")
        if self.optional:
            parts.append(f"optional: {', '.join(self.optional)}")
        placeholders = {
            name: "slug" if "Slug" in name else "value" for name in self.parameter_names
        }
        hint = ", ".join(parts) or "no parameters"
        return f"- {self.name}: {hint} → [COMMAND: {self.name}] {json.dumps(placeholders)}"


class CommandGrammar:
    """Read-only, ordered lookup table of commands."""

    def __init__(self, commands: List[Command]) -> None:
        self._commands: Dict[str, Command] = {}
        for command in commands:
            if command.name in self._commands:
                raise GrammarError(f"Duplicate command '{command.name}'")
            self._commands[command.name] = command

    @classmethod
    def from_dict(cls, data: Dict) -> "CommandGrammar":
        if not isinstance(data, dict):
            raise GrammarError("Command grammar must be a mapping")
        entries = data.get("commands")
        if not isinstance(entries, list) or not entries:
            raise GrammarError("Command grammar defines no commands")
        return cls([_parse_command(entry) for entry in entries])

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name)

    def require(self, name: str) -> Command:
        command = self._commands.get(name)
        if command is None:
            raise UnknownCommandError(name)
        return command

    def describe(self) -> str:
        return "\n".join(command.describe() for command in self)

    def __iter__(self) -> Iterator[Command]:
        return iter(self._commands.values())

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, name: object) -> bool:
        return name in self._commands


def load_grammar(config_path: Path) -> CommandGrammar:
    if not config_path.exists():
        raise GrammarError(f"Command grammar not found: {config_path}")
    with config_path.open("r", encoding="utf-8") as handle:
        try:
            data = yaml.safe_load(handle)
        except yaml.YAMLError as exc:
            raise GrammarError(f"Command grammar is not valid YAML: {exc}") from exc
    return CommandGrammar.from_dict(data)


def _parse_command(entry: object) -> Command:
    if not isinstance(entry, dict):
        raise GrammarError(f"Command entry must be a mapping, got {entry!r}")
    name = entry.get("name")
    if not isinstance(name, str) or not name.strip():
        raise GrammarError(f"Command entry without a name: {entry!r}")
    params = entry.get("params") or []
    if not isinstance(params, list):
        raise GrammarError(f"Parameters of '{name}' must be a list")
    seen = set()
    for param in params:
        if not isinstance(param, str) or not _PARAM_PATTERN.match(param):
            raise GrammarError(f"Invalid parameter {param!r} in command '{name}'")
        bare = param.rstrip(OPTIONAL_SUFFIX)
        if bare in seen:
            raise GrammarError(f"Duplicate parameter '{bare}' in command '{name}'")
        seen.add(bare)
    return Command(name=name.strip(), params=tuple(params))


__all__ = [
    "Command",
    "CommandGrammar",
    "OPTIONAL_SUFFIX",
    "load_grammar",
]
