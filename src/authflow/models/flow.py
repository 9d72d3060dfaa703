"""Authorization attempt and redirect outcome models.

Contains the per-attempt state tracked by the flow controller and the
tagged outcomes produced when a redirect URL is validated.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum

from authflow.models.errors import (
    AuthorizationError,
    InvalidRedirectError,
    MalformedTokenResponseError,
    MissingCodeError,
    OAuth2Error,
    OAuth2ErrorCode,
    StateValidationError,
    UserAuthCancelledError,
)
from authflow.models.security import PKCEParameters
from authflow.models.tokens import TokenResult


class FlowState(str, Enum):
    IDLE = "idle"
    AWAITING_REDIRECT = "awaiting_redirect"
    EXCHANGING_TOKEN = "exchanging_token"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (FlowState.SUCCEEDED, FlowState.FAILED, FlowState.CANCELLED)


@dataclass
class AuthorizationAttempt:
    """One in-flight authorization cycle.

    Holds the CSRF state and PKCE pair sent with the authorize request.
    Once ``flow_state`` is terminal the attempt is never resolved again.
    """

    state: str = field(repr=False)
    pkce: PKCEParameters | None = None
    created_at: float = field(default_factory=time.time)
    attempt_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    flow_state: FlowState = FlowState.IDLE

    # Wiring owned by the flow controller
    result: asyncio.Future[TokenResult] | None = field(default=None, repr=False)
    task: asyncio.Task | None = field(default=None, repr=False)

    @property
    def is_terminal(self) -> bool:
        return self.flow_state.is_terminal

    @property
    def code_verifier(self) -> str | None:
        return self.pkce.code_verifier if self.pkce else None


@dataclass(frozen=True)
class AuthorizationCode:
    """Code-flow redirect carrying a code and a verified state."""

    code: str = field(repr=False)
    state: str


@dataclass(frozen=True)
class ImplicitToken:
    """Implicit-flow redirect carrying the access token in its fragment."""

    token: TokenResult


@dataclass(frozen=True)
class Cancelled:
    """The user abandoned the authorization screen."""

    def to_exception(self) -> OAuth2Error:
        return UserAuthCancelledError("Authorization was cancelled")


class RedirectErrorKind(str, Enum):
    INVALID_REDIRECT = "invalid_redirect"
    STATE_MISMATCH = "state_mismatch"
    MISSING_CODE = "missing_code"
    AUTHORIZATION_ERROR = "authorization_error"
    MALFORMED_TOKEN_RESPONSE = "malformed_token_response"


@dataclass(frozen=True)
class RedirectError:
    """A redirect that must fail the attempt."""

    kind: RedirectErrorKind
    description: str | None = None
    error: str | None = None  # Raw OAuth2 ``error`` value, if the server sent one
    error_uri: str | None = None

    @property
    def error_code(self) -> OAuth2ErrorCode | None:
        return OAuth2ErrorCode.from_value(self.error) if self.error else None

    def to_exception(self) -> OAuth2Error:
        """Build the exception delivered to the caller for this outcome."""
        message = self.description or self.kind.value
        if self.kind is RedirectErrorKind.AUTHORIZATION_ERROR:
            return AuthorizationError(
                f"Authorization failed: {self.error}"
                + (f" ({self.description})" if self.description else ""),
                error=self.error,
                error_description=self.description,
                error_uri=self.error_uri,
            )
        if self.kind is RedirectErrorKind.STATE_MISMATCH:
            return StateValidationError(message)
        if self.kind is RedirectErrorKind.MISSING_CODE:
            return MissingCodeError(message)
        if self.kind is RedirectErrorKind.MALFORMED_TOKEN_RESPONSE:
            return MalformedTokenResponseError(message)
        return InvalidRedirectError(message)


RedirectOutcome = AuthorizationCode | ImplicitToken | Cancelled | RedirectError


@dataclass(frozen=True)
class FlowResult:
    """Terminal result of an attempt, as passed to the completion callback."""

    token: TokenResult | None = None
    error: OAuth2Error | None = None

    def is_success(self) -> bool:
        return self.error is None and self.token is not None

    def is_cancelled(self) -> bool:
        return isinstance(self.error, UserAuthCancelledError)
