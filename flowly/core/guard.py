"""Outbound endpoint validation.

``validate_endpoint`` must run on every user-supplied AI endpoint before any
request is made. It is the only thing standing between a settings value and a
request aimed at internal infrastructure.
"""

from __future__ import annotations

import ipaddress
import re
from typing import Optional, Union
from urllib.parse import urlsplit

from .errors import InvalidEndpointError, InvalidModelNameError

HTTPS_PORT = 443

ALLOWED_HOSTS = frozenset(
    {
        "openrouter.ai",
        "api.openrouter.ai",
        "api.openai.com",
        "api.anthropic.com",
        "generativelanguage.googleapis.com",
        "aiplatform.googleapis.com",
    }
)

AWS_BEDROCK_PATTERN = re.compile(
    r"^(bedrock|bedrock-runtime|bedrock-agent|bedrock-agent-runtime"
    r"|bedrock-data-automation|bedrock-data-automation-runtime)(-fips)?"
    r"\.([a-z0-9-]+)\.amazonaws\.com$"
)
AZURE_OPENAI_PATTERN = re.compile(r"^[a-z0-9-]+\.openai\.azure\.com$")
# regional Vertex AI and Private Service Connect endpoints
GOOGLE_CLOUD_PATTERN = re.compile(
    r"^([a-z0-9-]+[.-])?aiplatform\.googleapis\.com$|^[a-z0-9-]+\.p\.googleapis\.com$"
)

HOST_PATTERNS = (AWS_BEDROCK_PATTERN, AZURE_OPENAI_PATTERN, GOOGLE_CLOUD_PATTERN)

SUPPORTED_HOSTS = frozenset(
    {
        "openrouter.ai",
        "api.openrouter.ai",
        "api.openai.com",
        "api.anthropic.com",
        "generativelanguage.googleapis.com",
    }
)

_BLOCKED_NAMES = frozenset({"localhost", "localhost.localdomain", "0.0.0.0", "::", "::1"})
_PRIVATE_PREFIXES = ("10.", "127.", "192.168.", "169.254.")
_PRIVATE_172 = re.compile(r"^172\.(1[6-9]|2[0-9]|3[01])\.")
_IPV6_LOCAL = re.compile(r"^(f[cd]|fe[89ab])[0-9a-f]*:", re.IGNORECASE)

_MODEL_PATTERN = re.compile(r"^[A-Za-z0-9.-]+$")
_WINDOWS_ABSOLUTE = re.compile(r"^[A-Za-z]:\\")
MAX_MODEL_NAME_LENGTH = 100


def validate_endpoint(url: str) -> str:
    """Return the canonical form of ``url`` or raise ``InvalidEndpointError``."""

    try:
        parts = urlsplit(str(url).strip())
        port = parts.port
    except ValueError as exc:
        raise InvalidEndpointError("Invalid URL format") from exc
    hostname = (parts.hostname or "").lower().strip("[]")
    if not parts.scheme or not hostname:
        raise InvalidEndpointError("Invalid URL format")
    if parts.username is not None or parts.password is not None:
        raise InvalidEndpointError("Credentials in the URL are not allowed")

    if parts.scheme.lower() != "https":
        raise InvalidEndpointError("Only HTTPS URLs allowed")

    if not is_allowed_host(hostname):
        raise InvalidEndpointError("Host not allowed")

    if is_internal_host(hostname):
        raise InvalidEndpointError("Internal IPs not allowed")

    if (port or HTTPS_PORT) != HTTPS_PORT:
        raise InvalidEndpointError("Only standard HTTPS port 443 is allowed")

    if not is_supported_host(hostname):
        raise InvalidEndpointError("Unsupported AI provider host")

    # query and fragment are dropped; provider paths are appended to this base
    return f"https://{hostname}{parts.path.rstrip('/')}"


def is_allowed_host(hostname: str) -> bool:
    return hostname in ALLOWED_HOSTS or any(p.match(hostname) for p in HOST_PATTERNS)


def is_supported_host(hostname: str) -> bool:
    return hostname in SUPPORTED_HOSTS or bool(GOOGLE_CLOUD_PATTERN.match(hostname))


def is_internal_host(hostname: str) -> bool:
    """Loopback, link-local, unspecified or private-range hosts (both families)."""

    if hostname in _BLOCKED_NAMES or hostname.endswith(".localhost"):
        return True
    if hostname.startswith(_PRIVATE_PREFIXES) or _PRIVATE_172.match(hostname):
        return True
    if _IPV6_LOCAL.match(hostname):
        return True
    address = _ip_literal(hostname)
    if address is None:
        return False
    mapped = getattr(address, "ipv4_mapped", None)
    if mapped is not None:
        address = mapped
    return (
        address.is_private
        or address.is_loopback
        or address.is_link_local
        or address.is_unspecified
        or address.is_reserved
    )


def validate_model_name(model: object) -> str:
    """Reject model names that could alter a URL path they are interpolated into."""

    if not model or not isinstance(model, str):
        raise InvalidModelNameError("Model name is required and must be a string")
    trimmed = model.strip()
    if not trimmed:
        raise InvalidModelNameError("Model name cannot be empty")
    if len(trimmed) > MAX_MODEL_NAME_LENGTH:
        raise InvalidModelNameError(
            f"Model name is too long (max {MAX_MODEL_NAME_LENGTH} characters)"
        )
    if ".." in trimmed:
        raise InvalidModelNameError(
            "Model name cannot contain path traversal sequences (..)"
        )
    if trimmed.startswith("/") or _WINDOWS_ABSOLUTE.match(trimmed):
        raise InvalidModelNameError("Model name cannot be an absolute path")
    if not _MODEL_PATTERN.match(trimmed):
        raise InvalidModelNameError()
    return trimmed


def _ip_literal(
    hostname: str,
) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    try:
        return ipaddress.ip_address(hostname)
    except ValueError:
        return None


__all__ = [
    "ALLOWED_HOSTS",
    "SUPPORTED_HOSTS",
    "is_allowed_host",
    "is_internal_host",
    "is_supported_host",
    "validate_endpoint",
    "validate_model_name",
]
