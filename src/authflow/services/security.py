"""Security utilities for OAuth2 flows.

Provides CSRF state generation and checking, redirect URI matching, and
the factory for new authorization attempts.
"""

from __future__ import annotations

import secrets
import string
from urllib.parse import SplitResult, urlsplit

from authflow.models.flow import AuthorizationAttempt
from authflow.primitives.pkce import PKCEManager

STATE_ALPHABET = string.ascii_letters + string.digits + "-._~"
STATE_LENGTH = 32

_DEFAULT_PORTS = {"http": 80, "https": 443}


def generate_state(length: int = STATE_LENGTH) -> str:
    """Generate cryptographically secure state parameter.

    The state parameter provides CSRF protection by ensuring the redirect
    matches the original authorization request.
    """
    if length < 8:
        raise ValueError("state must be at least 8 characters")
    return "".join(secrets.choice(STATE_ALPHABET) for _ in range(length))


def state_matches(expected: str, actual: str | None) -> bool:
    """Exact, case-sensitive comparison of the echoed state."""
    if actual is None:
        return False
    return secrets.compare_digest(expected.encode(), actual.encode())


def new_attempt(
    use_pkce: bool, pkce_manager: PKCEManager | None = None
) -> AuthorizationAttempt:
    """Create an authorization attempt with fresh state and PKCE pair."""
    pkce = None
    if use_pkce:
        pkce = (pkce_manager or PKCEManager()).generate_parameters()
    return AuthorizationAttempt(state=generate_state(), pkce=pkce)


def _effective_port(parts: SplitResult) -> int | None:
    try:
        port = parts.port
    except ValueError:
        return None
    return port if port is not None else _DEFAULT_PORTS.get(parts.scheme.lower())


def redirect_matches(redirect: SplitResult, expected: SplitResult) -> bool:
    """Check a redirect targets the registered redirect URI.

    Scheme and host compare case-insensitively, port after applying the
    scheme default, path exactly. Query and fragment are not inspected.
    """
    if redirect.scheme.lower() != expected.scheme.lower():
        return False
    if (redirect.hostname or "") != (expected.hostname or ""):
        return False
    if _effective_port(redirect) != _effective_port(expected):
        return False
    return (redirect.path or "/") == (expected.path or "/")


def is_absolute_url(url: str | None, schemes: tuple[str, ...] = ("https", "http")) -> bool:
    """True for an absolute URL with one of ``schemes`` and a host."""
    if not url:
        return False
    try:
        parts = urlsplit(url)
        parts.port  # Raises on a malformed port
    except ValueError:
        return False
    return parts.scheme.lower() in schemes and bool(parts.hostname)
