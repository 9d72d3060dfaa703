"""Authorize URL and token request construction.

Builds RFC 6749 authorize requests (Sections 4.1.1 and 4.2.1) and token
request bodies (Sections 4.1.3, 4.4.2 and 6) from a flow configuration.
"""

from __future__ import annotations

import base64
import logging
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from authflow.models.config import FlowConfig, GrantType
from authflow.models.errors import ConfigurationError
from authflow.models.flow import AuthorizationAttempt
from authflow.services.security import is_absolute_url

logger = logging.getLogger(__name__)

PROTECTED_PARAMS = frozenset({"state", "code_challenge", "code_challenge_method"})


class URLBuilder:
    """Builds authorize URLs and token request bodies for a FlowConfig."""

    def build_authorize_url(
        self,
        config: FlowConfig,
        attempt: AuthorizationAttempt,
        extra_params: dict[str, str] | None = None,
    ) -> str:
        """Build the URL the resource owner visits to grant access.

        Caller-supplied parameters override the defaults, except for the
        state and PKCE challenge which always come from ``attempt``.

        Raises:
            ConfigurationError: If the endpoint or redirect URI is unusable,
                a scope element contains whitespace, or the grant has no
                authorization step
        """
        response_type = config.grant_type.response_type
        if response_type is None:
            raise ConfigurationError(
                f"Grant type {config.grant_type.value} has no authorize step"
            )
        if not is_absolute_url(config.authorize_endpoint):
            raise ConfigurationError(
                f"Authorize endpoint is not an absolute http(s) URL: "
                f"{config.authorize_endpoint!r}"
            )
        self._require_redirect_uri(config)

        endpoint = urlsplit(config.authorize_endpoint)
        if endpoint.fragment:
            raise ConfigurationError("Authorize endpoint must not contain a fragment")

        params = {
            "client_id": config.client_id,
            "redirect_uri": config.redirect_uri,
            "response_type": response_type,
        }
        scope = format_scope(config.scope)
        if scope:
            params["scope"] = scope

        overrides = {**config.extra_params, **(extra_params or {})}
        ignored = PROTECTED_PARAMS.intersection(overrides)
        if ignored:
            logger.warning(
                f"Ignoring caller-supplied protected parameters: {sorted(ignored)}"
            )
        params.update(
            {key: value for key, value in overrides.items() if key not in ignored}
        )

        params["state"] = attempt.state
        if attempt.pkce is not None:
            params.update(attempt.pkce.authorize_params())

        # Keep query parameters already present on the endpoint
        existing = [
            (key, value)
            for key, value in parse_qsl(endpoint.query, keep_blank_values=True)
            if key not in params
        ]
        query = urlencode(existing + list(params.items()), quote_via=quote)

        logger.debug(
            f"Built authorize URL for client {config.client_id} "
            f"(response_type={response_type}, attempt={attempt.attempt_id})"
        )
        return urlunsplit(
            (endpoint.scheme, endpoint.netloc, endpoint.path, query, "")
        )

    def build_token_request_body(
        self,
        config: FlowConfig,
        code: str | None = None,
        refresh_token: str | None = None,
        code_verifier: str | None = None,
    ) -> dict[str, str]:
        """Build the token request parameters.

        The grant is chosen from the arguments: a code selects
        ``authorization_code``, a refresh token selects ``refresh_token``,
        neither requires a client-credentials configuration.

        Raises:
            ConfigurationError: If the arguments don't fit the configuration
        """
        if code is not None and refresh_token is not None:
            raise ConfigurationError("Pass either a code or a refresh token, not both")

        if code is not None:
            self._require_redirect_uri(config)
            if config.uses_pkce and not code_verifier:
                raise ConfigurationError("PKCE flow requires a code_verifier")
            data = {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": config.redirect_uri,
                "client_id": config.client_id,
            }
            if code_verifier:
                data["code_verifier"] = code_verifier
        elif refresh_token is not None:
            data = {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "client_id": config.client_id,
            }
        elif config.grant_type is GrantType.CLIENT_CREDENTIALS:
            data = {
                "grant_type": "client_credentials",
                "client_id": config.client_id,
            }
            scope = format_scope(config.scope)
            if scope:
                data["scope"] = scope
        else:
            raise ConfigurationError(
                f"Grant type {config.grant_type.value} needs a code or refresh token"
            )

        if config.client_secret and config.client_secret_in_body:
            data["client_secret"] = config.client_secret

        return data

    def build_client_auth_headers(self, config: FlowConfig) -> dict[str, str]:
        """HTTP Basic client authentication (RFC 6749 Section 2.3.1).

        Empty for public clients and when the secret travels in the body.
        """
        if not config.client_secret or config.client_secret_in_body:
            return {}
        # Both parts are form-urlencoded before being joined
        user = quote(config.client_id, safe="")
        password = quote(config.client_secret, safe="")
        credentials = base64.b64encode(f"{user}:{password}".encode()).decode("ascii")
        return {"Authorization": f"Basic {credentials}"}

    def _require_redirect_uri(self, config: FlowConfig) -> None:
        if not config.redirect_uri:
            raise ConfigurationError("Redirect URI must not be empty")
        try:
            parts = urlsplit(config.redirect_uri)
        except ValueError as e:
            raise ConfigurationError(f"Redirect URI is malformed: {e}") from e
        if not parts.scheme:
            raise ConfigurationError(
                f"Redirect URI must be absolute: {config.redirect_uri!r}"
            )


def format_scope(scope: list[str]) -> str:
    """Join scope values with spaces (RFC 6749 Section 3.3).

    Raises:
        ConfigurationError: If an element is empty or contains whitespace
    """
    for value in scope:
        if not value or any(ch.isspace() for ch in value):
            raise ConfigurationError(f"Invalid scope value: {value!r}")
    return " ".join(scope)
