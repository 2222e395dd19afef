"""Model provider profiles and the HTTP client that talks to them.

All vendor wire-format knowledge lives in ``PROVIDERS``: where to POST, how
to authenticate, how to shape the body and where the reply text sits in the
response. Supporting another vendor means adding a row, not a branch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import (
    Any,
    Callable,
    Dict,
    List,
    Mapping,
    Optional,
    Sequence,
    Tuple,
    Union,
)
from urllib.parse import quote, urlsplit

import httpx
from langchain_core.messages import BaseMessage

from .errors import NetworkError, ProviderError
from .guard import validate_model_name

logger = logging.getLogger(__name__)

CUSTOM_PROVIDER = "custom"


class AuthStyle(str, Enum):
    BEARER = "bearer"
    HEADER = "header"
    QUERY = "query"


class BodyShape(str, Enum):
    CHAT = "chat"
    SYSTEM_SPLIT = "system_split"
    CONTENT_PARTS = "content_parts"


@dataclass(frozen=True)
class GenerationSettings:
    model: str
    temperature: float = 0.1
    max_tokens: int = 500


@dataclass(frozen=True)
class ProviderProfile:
    name: str
    path: str
    body_shape: BodyShape = BodyShape.CHAT
    reply_path: Tuple[Union[str, int], ...] = ("choices", 0, "message", "content")
    auth: AuthStyle = AuthStyle.BEARER
    auth_field: str = "Authorization"
    headers: Mapping[str, str] = field(default_factory=dict)
    body_extras: Mapping[str, Any] = field(default_factory=dict)
    domains: Tuple[str, ...] = ()

    def matches(self, hostname: str) -> bool:
        return any(
            hostname == domain or hostname.endswith("." + domain) for domain in self.domains
        )


@dataclass
class ProviderRequest:
    provider: str
    url: str
    headers: Dict[str, str]
    body: Dict[str, Any]
    params: Dict[str, str] = field(default_factory=dict)


_SAMPLING_EXTRAS = {"top_p": 0.9, "frequency_penalty": 0, "presence_penalty": 0}

PROVIDERS: Tuple[ProviderProfile, ...] = (
    ProviderProfile(
        name="openrouter",
        path="/chat/completions",
        headers={"HTTP-Referer": "{app_url}", "X-Title": "{app_title}"},
        body_extras=_SAMPLING_EXTRAS,
        domains=("openrouter.ai",),
    ),
    ProviderProfile(
        name="openai",
        path="/chat/completions",
        body_extras=_SAMPLING_EXTRAS,
        domains=("api.openai.com",),
    ),
    ProviderProfile(
        name="anthropic",
        path="/messages",
        body_shape=BodyShape.SYSTEM_SPLIT,
        reply_path=("content", 0, "text"),
        auth=AuthStyle.HEADER,
        auth_field="x-api-key",
        headers={"anthropic-version": "2023-06-01"},
        domains=("api.anthropic.com",),
    ),
    ProviderProfile(
        name="google",
        path="/models/{model}:generateContent",
        body_shape=BodyShape.CONTENT_PARTS,
        reply_path=("candidates", 0, "content", "parts", 0, "text"),
        auth=AuthStyle.QUERY,
        auth_field="key",
        domains=("generativelanguage.googleapis.com",),
    ),
)

# Vertex AI and any other allowed host use the chat-completions shape
FALLBACK_PROVIDER = ProviderProfile(name=CUSTOM_PROVIDER, path="/chat/completions")

_PROFILES_BY_NAME = {profile.name: profile for profile in PROVIDERS + (FALLBACK_PROVIDER,)}

_ROLE_NAMES = {"system": "system", "human": "user", "ai": "assistant"}

_STATUS_MESSAGES = {
    401: "Invalid API key. Please check your API key in settings.",
    402: "Insufficient credits. Please check your AI provider account.",
    404: "Model not found. Please check the model name and try again.",
    429: "Rate limit exceeded by API provider. Please try again in a moment.",
}


def detect_provider(api_url: str) -> ProviderProfile:
    """Classify ``api_url`` by hostname; unknown hosts get the chat fallback."""

    try:
        hostname = (urlsplit(api_url).hostname or "").lower()
    except ValueError:
        return FALLBACK_PROVIDER
    for profile in PROVIDERS:
        if profile.matches(hostname):
            return profile
    return FALLBACK_PROVIDER


def get_profile(name: str) -> ProviderProfile:
    return _PROFILES_BY_NAME[name]


def build_request(
    profile: ProviderProfile,
    api_url: str,
    api_key: str,
    generation: GenerationSettings,
    messages: Sequence[BaseMessage],
    *,
    app_url: str = "",
    app_title: str = "",
) -> ProviderRequest:
    path = profile.path
    if "{model}" in path:
        model = validate_model_name(generation.model)
        path = path.format(model=quote(model, safe=""))

    headers = {"Content-Type": "application/json"}
    headers.update(
        {
            name: value.format(app_url=app_url, app_title=app_title)
            for name, value in profile.headers.items()
        }
    )
    params: Dict[str, str] = {}
    if profile.auth is AuthStyle.BEARER:
        headers[profile.auth_field] = f"Bearer {api_key}"
    elif profile.auth is AuthStyle.HEADER:
        headers[profile.auth_field] = api_key
    else:
        params[profile.auth_field] = api_key

    body = _BODY_BUILDERS[profile.body_shape](generation, list(messages))
    body.update(profile.body_extras)
    return ProviderRequest(
        provider=profile.name,
        url=f"{api_url.rstrip('/')}{path}",
        headers=headers,
        body=body,
        params=params,
    )


def extract_reply(profile: ProviderProfile, data: Any) -> str:
    """Follow ``profile.reply_path`` through the response; empty string if absent."""

    node = data
    for key in profile.reply_path:
        try:
            node = node[key]
        except (KeyError, IndexError, TypeError):
            return ""
    return node if isinstance(node, str) else ""


def error_for_status(response: httpx.Response) -> ProviderError:
    status = response.status_code
    message = _STATUS_MESSAGES.get(status)
    if message is None:
        message = _provider_error_message(response) or (
            f"API request failed with status {status}"
        )
    return ProviderError(message, status_code=status)


class ProviderClient:
    """Issues one POST per completion with httpx and normalizes the reply."""

    def __init__(
        self,
        timeout: float = 30.0,
        *,
        app_url: str = "",
        app_title: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.timeout = timeout
        self.app_url = app_url
        self.app_title = app_title
        self._transport = transport

    async def complete(
        self,
        api_url: str,
        api_key: str,
        generation: GenerationSettings,
        messages: Sequence[BaseMessage],
    ) -> str:
        profile = detect_provider(api_url)
        request = build_request(
            profile,
            api_url,
            api_key,
            generation,
            messages,
            app_url=self.app_url,
            app_title=self.app_title,
        )
        logger.info("Calling %s provider with model %s", profile.name, generation.model)
        data = await self.send(request)
        return extract_reply(profile, data)

    async def send(self, request: ProviderRequest) -> Any:
        try:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self._transport
            ) as client:
                response = await client.post(
                    request.url,
                    headers=request.headers,
                    params=request.params or None,
                    json=request.body,
                )
        except httpx.TimeoutException as exc:
            logger.warning("%s provider timed out: %s", request.provider, exc)
            raise NetworkError(
                "The AI provider did not respond in time. Please try again."
            ) from exc
        except httpx.TransportError as exc:
            logger.warning("%s provider unreachable: %s", request.provider, exc)
            raise NetworkError() from exc

        if not response.is_success:
            error = error_for_status(response)
            logger.warning(
                "%s provider returned %s: %s", request.provider, error.status_code, error
            )
            raise error
        try:
            return response.json()
        except ValueError as exc:
            raise ProviderError(
                "AI provider returned an invalid response", response.status_code
            ) from exc


def _chat_body(generation: GenerationSettings, messages: List[BaseMessage]) -> Dict[str, Any]:
    return {
        "model": generation.model,
        "messages": [_role_content(message) for message in messages],
        "temperature": generation.temperature,
        "max_tokens": generation.max_tokens,
        "stream": False,
    }


def _system_split_body(
    generation: GenerationSettings, messages: List[BaseMessage]
) -> Dict[str, Any]:
    system = [m for m in messages if m.type == "system"]
    body: Dict[str, Any] = {
        "model": generation.model,
        "messages": [_role_content(m) for m in messages if m.type != "system"],
        "max_tokens": generation.max_tokens,
        "temperature": generation.temperature,
    }
    if system:
        body["system"] = "\n\n".join(_text(m) for m in system)
    return body


def _content_parts_body(
    generation: GenerationSettings, messages: List[BaseMessage]
) -> Dict[str, Any]:
    system = [m for m in messages if m.type == "system"]
    body: Dict[str, Any] = {
        "contents": [
            {
                "role": "model" if m.type == "ai" else "user",
                "parts": [{"text": _text(m)}],
            }
            for m in messages
            if m.type != "system"
        ],
        "generationConfig": {
            "temperature": generation.temperature,
            "maxOutputTokens": generation.max_tokens,
        },
    }
    if system:
        body["systemInstruction"] = {"parts": [{"text": _text(m)} for m in system]}
    return body


_BODY_BUILDERS: Dict[
    BodyShape, Callable[[GenerationSettings, List[BaseMessage]], Dict[str, Any]]
] = {
    BodyShape.CHAT: _chat_body,
    BodyShape.SYSTEM_SPLIT: _system_split_body,
    BodyShape.CONTENT_PARTS: _content_parts_body,
}


def _role_content(message: BaseMessage) -> Dict[str, str]:
    return {"role": _ROLE_NAMES.get(message.type, "user"), "content": _text(message)}


def _text(message: BaseMessage) -> str:
    content = message.content
    return content if isinstance(content, str) else str(content)


def _provider_error_message(response: httpx.Response) -> Optional[str]:
    try:
        data = response.json()
    except ValueError:
        return None
    if isinstance(data, dict):
        error = data.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
    return None


__all__ = [
    "AuthStyle",
    "BodyShape",
    "CUSTOM_PROVIDER",
    "FALLBACK_PROVIDER",
    "GenerationSettings",
    "PROVIDERS",
    "ProviderClient",
    "ProviderProfile",
    "ProviderRequest",
    "build_request",
    "detect_provider",
    "error_for_status",
    "extract_reply",
    "get_profile",
]
