"""OAuth2 token endpoint exchange.

Implements RFC 6749 token endpoint interactions: authorization code
exchange (Section 4.1.3), client credentials (Section 4.4.2) and refresh
(Section 6). The HTTP transport is injected.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any
from urllib.parse import urlencode

from pydantic import ValidationError

from authflow.models.config import TokenRequestFormat
from authflow.models.errors import (
    ConfigurationError,
    MalformedTokenResponseError,
    TokenEndpointError,
    TokenError,
)
from authflow.models.tokens import TokenResponse, TokenResult
from authflow.services.security import is_absolute_url
from authflow.transport.base import HTTPResponse, HTTPTransport
from authflow.transport.httpx_transport import HttpxTransport

logger = logging.getLogger(__name__)


class TokenExchanger:
    """Exchanges grants for tokens at the token endpoint.

    Sends the request body form-encoded (or as JSON when asked to) and
    turns the response into a ``TokenResult``. Nothing is retried.
    """

    def __init__(self, transport: HTTPTransport | None = None, timeout: float = 30.0):
        """Initialize the token exchanger.

        Args:
            transport: HTTP transport to use, httpx-backed by default
            timeout: HTTP request timeout for the default transport
        """
        self._transport = transport or HttpxTransport(timeout=timeout)

    async def exchange(
        self,
        body: dict[str, str],
        token_endpoint: str | None,
        headers: dict[str, str] | None = None,
        request_format: TokenRequestFormat = TokenRequestFormat.FORM,
    ) -> TokenResult:
        """POST a token request and parse the response.

        Args:
            body: Token request parameters from the URL builder
            token_endpoint: Absolute token endpoint URL
            headers: Extra request headers, e.g. client authentication
            request_format: Form or JSON request encoding

        Returns:
            TokenResult with an absolute expiry computed at receipt

        Raises:
            ConfigurationError: If the token endpoint is unusable
            TransportError: If the request fails at the network layer
            TokenEndpointError: If the endpoint answers with a non-2xx status
            MalformedTokenResponseError: If a 2xx body is not a usable token
        """
        if not is_absolute_url(token_endpoint):
            raise ConfigurationError(
                f"Token endpoint is not an absolute http(s) URL: {token_endpoint!r}"
            )

        request_headers = {"Accept": "application/json", **(headers or {})}
        if request_format is TokenRequestFormat.JSON:
            request_headers["Content-Type"] = "application/json"
            payload = json.dumps(body).encode("utf-8")
        else:
            request_headers["Content-Type"] = "application/x-www-form-urlencoded"
            payload = urlencode(body).encode("ascii")

        # Log request details (without sensitive data)
        logger.debug(
            f"Token request to {token_endpoint}: "
            f"grant_type={body.get('grant_type')}, client_id={body.get('client_id')}"
        )

        try:
            response = await self._transport.send(
                "POST", token_endpoint, request_headers, payload
            )
        except TokenError:
            raise
        except Exception as e:
            raise TokenError(f"Unexpected error during token request: {e}") from e

        received_at = time.time()
        return self._parse_token_response(response, received_at)

    def _parse_token_response(
        self, response: HTTPResponse, received_at: float
    ) -> TokenResult:
        """Parse token endpoint response into a TokenResult.

        Handles both successful responses (2xx) and error responses
        according to RFC 6749 Section 5.
        """
        payload = _decode_json(response.body)

        if not response.is_success:
            error = description = None
            if isinstance(payload, dict):
                error = payload.get("error")
                description = payload.get("error_description")
            logger.warning(
                f"Token request failed with {response.status_code}: "
                f"{error or 'no error code'} - {description or ''}"
            )
            raise TokenEndpointError(
                f"Token endpoint returned {response.status_code}"
                + (f": {error}" if error else ""),
                status_code=response.status_code,
                error=error,
                error_description=description,
                body=payload,
            )

        if not isinstance(payload, dict):
            raise MalformedTokenResponseError("Token response body is not a JSON object")

        try:
            token_response = TokenResponse.model_validate(payload)
        except ValidationError as e:
            raise MalformedTokenResponseError(f"Invalid token response format: {e}") from e

        if token_response.is_error():
            raise TokenEndpointError(
                f"Token endpoint returned error: {token_response.error}",
                status_code=response.status_code,
                error=token_response.error,
                error_description=token_response.error_description,
                body=payload,
            )
        if not token_response.access_token:
            raise MalformedTokenResponseError("Token response missing required access_token")

        logger.info("Token request successful")
        return token_response.to_token_result(received_at)

    async def close(self) -> None:
        """Close the underlying transport."""
        await self._transport.close()


def _decode_json(body: bytes) -> Any:
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None
