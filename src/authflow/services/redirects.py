"""Redirect URL validation.

Parses the URL the authorization server sent the user back to and turns
it into a ``RedirectOutcome``: an authorization code (RFC 6749 Section
4.1.2), an implicit token (Section 4.2.2), or an error.
"""

from __future__ import annotations

import logging
import time
from urllib.parse import parse_qs, urlsplit

from pydantic import ValidationError

from authflow.models.config import FlowConfig, GrantType
from authflow.models.flow import (
    AuthorizationAttempt,
    AuthorizationCode,
    ImplicitToken,
    RedirectError,
    RedirectErrorKind,
    RedirectOutcome,
)
from authflow.models.tokens import TokenResponse
from authflow.services.security import redirect_matches, state_matches

logger = logging.getLogger(__name__)

_SINGLE_VALUED = (
    "code",
    "state",
    "error",
    "error_description",
    "error_uri",
    "access_token",
    "token_type",
    "expires_in",
    "scope",
)


class _DuplicateParameter(Exception):
    pass


class RedirectValidator:
    """Validates redirect URLs against an attempt and its configuration.

    Never raises for a bad redirect; every problem is reported as a
    ``RedirectError`` outcome so the caller can resolve the attempt.
    """

    def validate(
        self,
        redirect_url: str,
        attempt: AuthorizationAttempt,
        config: FlowConfig,
    ) -> RedirectOutcome:
        try:
            redirect = urlsplit(redirect_url)
            expected = urlsplit(config.redirect_uri or "")
        except ValueError as e:
            return self._reject(RedirectErrorKind.INVALID_REDIRECT, f"Malformed URL: {e}")

        if not config.redirect_uri or not redirect_matches(redirect, expected):
            return self._reject(
                RedirectErrorKind.INVALID_REDIRECT,
                "Redirect does not match the configured redirect URI",
            )

        try:
            query = _parse_params(redirect.query)
            fragment = _parse_params(redirect.fragment)
        except _DuplicateParameter as e:
            return self._reject(
                RedirectErrorKind.INVALID_REDIRECT, f"Repeated parameter: {e}"
            )

        implicit = config.grant_type is GrantType.IMPLICIT
        params = fragment if implicit else query

        error_params = next((p for p in (params, query, fragment) if "error" in p), None)
        if error_params is not None:
            return self._authorization_error(error_params, attempt)

        if not state_matches(attempt.state, params.get("state")):
            return self._reject(
                RedirectErrorKind.STATE_MISMATCH,
                "State parameter mismatch - possible CSRF attack",
            )

        if implicit:
            return self._implicit_token(params)

        code = params.get("code")
        if not code:
            return self._reject(
                RedirectErrorKind.MISSING_CODE, "Redirect carries no authorization code"
            )

        logger.debug(f"Redirect accepted for attempt {attempt.attempt_id}")
        return AuthorizationCode(code=code, state=params["state"])

    def _authorization_error(
        self, params: dict[str, str], attempt: AuthorizationAttempt
    ) -> RedirectError:
        # An error response echoing the wrong state is treated as forged
        state = params.get("state")
        if state is not None and not state_matches(attempt.state, state):
            return self._reject(
                RedirectErrorKind.STATE_MISMATCH,
                f"State mismatch in error response ({params['error']})",
            )

        logger.warning(
            f"Authorization server returned error: {params['error']} - "
            f"{params.get('error_description', '')}"
        )
        return RedirectError(
            kind=RedirectErrorKind.AUTHORIZATION_ERROR,
            description=params.get("error_description"),
            error=params["error"],
            error_uri=params.get("error_uri"),
        )

    def _implicit_token(self, params: dict[str, str]) -> RedirectOutcome:
        if not params.get("access_token"):
            return self._reject(
                RedirectErrorKind.MALFORMED_TOKEN_RESPONSE,
                "Redirect fragment carries no access_token",
            )
        if not params.get("token_type"):
            return self._reject(
                RedirectErrorKind.MALFORMED_TOKEN_RESPONSE,
                "Redirect fragment carries no token_type",
            )

        received_at = time.time()
        try:
            response = TokenResponse(
                access_token=params["access_token"],
                token_type=params["token_type"],
                expires_in=params.get("expires_in"),
                scope=params.get("scope"),
            )
        except ValidationError as e:
            return self._reject(
                RedirectErrorKind.MALFORMED_TOKEN_RESPONSE,
                f"Invalid token parameters in redirect: {e.error_count()} error(s)",
            )

        return ImplicitToken(token=response.to_token_result(received_at))

    def _reject(self, kind: RedirectErrorKind, description: str) -> RedirectError:
        logger.warning(f"Rejecting redirect: {kind.value} - {description}")
        return RedirectError(kind=kind, description=description)


def _parse_params(component: str) -> dict[str, str]:
    """Parse a query or fragment, rejecting repeated OAuth2 parameters."""
    parsed = parse_qs(component, keep_blank_values=True)
    for key in _SINGLE_VALUED:
        if len(parsed.get(key, [])) > 1:
            raise _DuplicateParameter(key)
    return {key: values[0] for key, values in parsed.items()}
