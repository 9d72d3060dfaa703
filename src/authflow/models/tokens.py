"""Token models for OAuth2.

``TokenResponse`` mirrors the token endpoint wire format (RFC 6749 Section 5).
``TokenResult`` is what a completed authorization hands back to the caller.
"""

from __future__ import annotations

import time

from pydantic import BaseModel, ConfigDict


class TokenResult(BaseModel):
    """An acquired access token with its absolute expiry.

    Immutable. ``expires_at`` is a Unix timestamp, or None when the server
    did not state a lifetime.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    token_type: str = "Bearer"
    expires_at: float | None = None
    refresh_token: str | None = None
    scope: str | None = None

    def is_expired(self, buffer_seconds: float = 0.0) -> bool:
        """Check if the access token has expired.

        Args:
            buffer_seconds: Treat the token as expired this many seconds early
        """
        if self.expires_at is None:
            return False  # No expiry means token doesn't expire
        return time.time() >= self.expires_at - buffer_seconds

    def expires_in(self) -> float | None:
        """Seconds until expiry, negative once expired."""
        if self.expires_at is None:
            return None
        return self.expires_at - time.time()

    def can_refresh(self) -> bool:
        return bool(self.refresh_token)

    def authorization_header(self) -> str:
        """Value for an ``Authorization`` request header."""
        return f"{self.token_type} {self.access_token}"


class TokenResponse(BaseModel):
    """OAuth2 token response (RFC 6749 Section 5).

    Represents the response from a token endpoint, including both
    successful responses (Section 5.1) and error responses (Section 5.2).
    The implicit grant returns the same fields in the redirect fragment.
    """

    # Success response fields (RFC 6749 Section 5.1)
    access_token: str | None = None
    token_type: str = "Bearer"
    expires_in: int | None = None  # Seconds until expiry
    refresh_token: str | None = None
    scope: str | None = None

    # Error response fields (RFC 6749 Section 5.2)
    error: str | None = None
    error_description: str | None = None
    error_uri: str | None = None

    def is_success(self) -> bool:
        """Check if token response indicates success."""
        return self.error is None and bool(self.access_token)

    def is_error(self) -> bool:
        """Check if token response indicates an error."""
        return self.error is not None

    def to_token_result(self, received_at: float) -> TokenResult:
        """Convert a successful response into a TokenResult.

        Args:
            received_at: Unix timestamp at which the response was received

        Raises:
            ValueError: If response is not successful
        """
        if not self.is_success():
            raise ValueError("Cannot convert error response to TokenResult")

        expires_at = None
        if self.expires_in is not None:
            expires_at = received_at + self.expires_in

        return TokenResult(
            access_token=self.access_token,
            token_type=self.token_type,
            expires_at=expires_at,
            refresh_token=self.refresh_token,
            scope=self.scope,
        )
