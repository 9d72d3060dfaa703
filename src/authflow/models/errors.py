"""Exception hierarchy for OAuth2 authorization flows.

Provides specific exception types for different failure modes to enable
precise error handling. Every failure of an authorization attempt is
delivered to the caller as one of these.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class OAuth2ErrorCode(str, Enum):
    """Error codes defined by RFC 6749 Sections 4.1.2.1, 4.2.2.1 and 5.2."""

    INVALID_REQUEST = "invalid_request"
    INVALID_CLIENT = "invalid_client"
    INVALID_GRANT = "invalid_grant"
    UNAUTHORIZED_CLIENT = "unauthorized_client"
    ACCESS_DENIED = "access_denied"
    UNSUPPORTED_RESPONSE_TYPE = "unsupported_response_type"
    UNSUPPORTED_GRANT_TYPE = "unsupported_grant_type"
    INVALID_SCOPE = "invalid_scope"
    SERVER_ERROR = "server_error"
    TEMPORARILY_UNAVAILABLE = "temporarily_unavailable"
    UNKNOWN = "unknown_error"

    @classmethod
    def from_value(cls, value: str | None) -> OAuth2ErrorCode:
        """Map a raw ``error`` value onto a known code, ``UNKNOWN`` otherwise."""
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


class OAuth2Error(Exception):
    """Base exception for all OAuth2 related errors."""

    pass


class ConfigurationError(OAuth2Error):
    """Raised when a flow configuration cannot produce a valid request.

    Covers malformed endpoints, an empty redirect URI and invalid scope
    values. Never retried.
    """

    pass


class AttemptAlreadyInProgressError(OAuth2Error):
    """Raised by ``start()`` when an authorization attempt is still pending."""

    pass


class PKCEError(OAuth2Error):
    """Raised when PKCE parameter generation fails."""

    pass


class PresentationError(OAuth2Error):
    """Raised when the authorize URL cannot be shown to the user."""

    pass


class CredentialStoreError(OAuth2Error):
    """Raised when tokens cannot be persisted."""

    pass


class AuthorizationCallbackError(OAuth2Error):
    """Raised when the redirect back from the authorization server is invalid.

    This indicates the redirect URL itself is unacceptable, not that the
    user or the server refused authorization.
    """

    pass


class InvalidRedirectError(AuthorizationCallbackError):
    """Raised when the redirect does not target the configured redirect URI."""

    pass


class StateValidationError(AuthorizationCallbackError):
    """Raised when OAuth state parameter validation fails.

    This indicates either a missing state parameter or a state mismatch,
    which could indicate a CSRF attack or authorization server issue.
    """

    pass


class MissingCodeError(AuthorizationCallbackError):
    """Raised when a code-flow redirect carries no authorization code."""

    pass


class AuthorizationError(OAuth2Error):
    """Raised when the authorization server reports an error in the redirect."""

    def __init__(
        self,
        message: str,
        error: str | None = None,
        error_description: str | None = None,
        error_uri: str | None = None,
    ):
        super().__init__(message)
        self.error = error
        self.error_code = OAuth2ErrorCode.from_value(error) if error else None
        self.error_description = error_description
        self.error_uri = error_uri


class UserAuthCancelledError(AuthorizationError):
    """Raised when the user or the caller cancels the authorization flow."""

    pass


class TokenError(OAuth2Error):
    """Raised when token operations fail."""

    pass


class TransportError(TokenError):
    """Raised when the token request fails at the network layer."""

    pass


class MalformedTokenResponseError(TokenError):
    """Raised when a successful token response cannot be used."""

    pass


class TokenEndpointError(TokenError):
    """Raised when the token endpoint answers with a non-2xx status.

    OAuth2 error codes are not generally transient, so these are never
    retried automatically.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        error: str | None = None,
        error_description: str | None = None,
        body: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.error_code = OAuth2ErrorCode.from_value(error) if error else None
        self.error_description = error_description
        self.body = body
