"""Error taxonomy for the chat assistant.

Every error raised while handling a chat turn derives from ``AssistantError``
and carries a message that is safe to show to the end user. The engine
converts them into ``{"success": False, "error": ...}`` payloads at the turn
boundary.
"""

from __future__ import annotations

from typing import List, Optional


class AssistantError(Exception):
    """Base class for user-facing assistant failures."""

    default_message = "Failed to process chat request"

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)

    @property
    def user_message(self) -> str:
        return str(self)


class GrammarError(RuntimeError):
    """Raised at startup when the command grammar cannot be loaded."""


class FeatureDisabledError(AssistantError):
    default_message = "AI chat is currently disabled. Please enable it in settings."


class MissingCredentialError(AssistantError):
    default_message = "AI API key not configured. Please set it in settings."


class InvalidEndpointError(AssistantError):
    default_message = "Invalid AI endpoint URL"


class InvalidModelNameError(AssistantError):
    default_message = "Model name contains invalid characters"


class ProviderError(AssistantError):
    """Non-2xx reply from the model provider."""

    def __init__(self, message: str, status_code: int) -> None:
        super().__init__(message)
        self.status_code = status_code


class NetworkError(AssistantError):
    default_message = "Network error. Please check your internet connection."


class ParseError(AssistantError):
    default_message = "Could not parse command parameters"


class UnknownCommandError(AssistantError):
    def __init__(self, command_name: str) -> None:
        super().__init__(f"Unknown command: {command_name}")
        self.command_name = command_name


class ParameterValidationError(AssistantError):
    """Required command parameters are missing or blank."""

    def __init__(self, command_name: str, missing: List[str]) -> None:
        super().__init__(
            f"Missing required parameters for {command_name}: {', '.join(missing)}"
        )
        self.command_name = command_name
        self.missing = list(missing)

    @property
    def clarification(self) -> str:
        return f"I need the following information to proceed: {', '.join(self.missing)}."


__all__ = [
    "AssistantError",
    "FeatureDisabledError",
    "GrammarError",
    "InvalidEndpointError",
    "InvalidModelNameError",
    "MissingCredentialError",
    "NetworkError",
    "ParameterValidationError",
    "ParseError",
    "ProviderError",
    "UnknownCommandError",
]
