"""Find and parse the ``[COMMAND: name] {...}`` marker in model replies."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

from .errors import ParseError

logger = logging.getLogger(__name__)

MAX_MESSAGE_LENGTH = 10000

# most specific first; the last one tolerates a payload cut off mid-object
COMMAND_PATTERNS = (
    re.compile(r"\*\*\[COMMAND:\s*([^\]]+)\]\*\*\s*(\{.*\})\s*$", re.MULTILINE),
    re.compile(r"\[COMMAND:\s*([^\]]+)\]\s*(\{.*\})\s*$", re.MULTILINE),
    re.compile(r"\[COMMAND:\s*([^\]]+)\]\s*(\{.*)", re.DOTALL),
)

_decoder = json.JSONDecoder()


@dataclass
class ActionCandidate:
    name: str
    parameters: Dict[str, Any] = field(default_factory=dict)


def find_command(
    text: str, max_length: int = MAX_MESSAGE_LENGTH
) -> Optional[Tuple[str, str]]:
    """Return ``(command name, raw payload)`` for the first pattern that matches."""

    if not text:
        return None
    sample = text[:max_length]
    for pattern in COMMAND_PATTERNS:
        match = pattern.search(sample)
        if match:
            return match.group(1).strip(), match.group(2).strip()
    return None


def parse_parameters(raw: str) -> Dict[str, Any]:
    """Decode a parameter object, closing any braces a truncated reply left open."""

    payload = (raw or "").strip() or "{}"
    try:
        return _load_object(payload)
    except ValueError as original:
        missing = count_unclosed_braces(payload)
        if missing <= 0:
            raise ParseError(f"Invalid command parameters: {original}") from original
        try:
            return _load_object(payload + "}" * missing)
        except ValueError:
            logger.warning("Could not repair command payload: %.200s", payload)
            raise ParseError(f"Invalid command parameters: {original}") from original


def extract_command(
    text: str, max_length: int = MAX_MESSAGE_LENGTH
) -> Optional[ActionCandidate]:
    found = find_command(text, max_length)
    if found is None:
        return None
    name, raw = found
    return ActionCandidate(name=name, parameters=parse_parameters(raw))


def format_command(name: str, parameters: Dict[str, Any]) -> str:
    return f"[COMMAND: {name}] {json.dumps(parameters)}"


def count_unclosed_braces(payload: str) -> int:
    """Net ``{`` minus ``}`` outside of JSON string literals."""

    depth = 0
    in_string = False
    escaped = False
    for char in payload:
        if in_string:
            if escaped:
                escaped = False
            elif char == "\\":
                escaped = True
            elif char == '"':
                in_string = False
        elif char == '"':
            in_string = True
        elif char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
    return depth


def _load_object(payload: str) -> Dict[str, Any]:
    # raw_decode tolerates prose after the object
    value, _ = _decoder.raw_decode(payload)
    if not isinstance(value, dict):
        raise ValueError("command parameters must be a JSON object")
    return value


__all__ = [
    "ActionCandidate",
    "COMMAND_PATTERNS",
    "MAX_MESSAGE_LENGTH",
    "count_unclosed_braces",
    "extract_command",
    "find_command",
    "format_command",
    "parse_parameters",
]
