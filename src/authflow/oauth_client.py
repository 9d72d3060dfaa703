"""High-level OAuth2 client.

Combines stored tokens, refresh and interactive authorization behind a
single ``authorize()`` call.
"""

from __future__ import annotations

import logging

from authflow.models.config import FlowConfig
from authflow.models.errors import ConfigurationError, TokenError
from authflow.models.tokens import TokenResult
from authflow.presentation.base import PresentationAdapter
from authflow.services.flow import CompletionCallback, FlowController
from authflow.services.tokens import TokenExchanger
from authflow.services.urls import URLBuilder
from authflow.storage.base import CredentialStore
from authflow.transport.base import HTTPTransport

logger = logging.getLogger(__name__)


class OAuth2Client:
    """OAuth2 client for one configuration.

    ``authorize()`` tries, in order:
    1. An unexpired stored token
    2. Refreshing a stored token that has a refresh token
    3. A new authorization attempt through the flow controller
    """

    def __init__(
        self,
        config: FlowConfig,
        presenter: PresentationAdapter | None = None,
        credential_store: CredentialStore | None = None,
        transport: HTTPTransport | None = None,
        timeout: float = 30.0,
        expiry_buffer: float = 30.0,
        on_complete: CompletionCallback | None = None,
    ):
        """Initialize OAuth client.

        Args:
            config: Client configuration
            presenter: Front-end for interactive grants
            credential_store: Optional token persistence
            transport: HTTP transport, httpx-backed by default
            timeout: HTTP request timeout for the default transport
            expiry_buffer: Consider tokens expired this many seconds early
            on_complete: Optional callback for each authorization attempt
        """
        self.config = config
        self.credential_store = credential_store
        self.expiry_buffer = expiry_buffer

        self.url_builder = URLBuilder()
        self.token_exchanger = TokenExchanger(transport=transport, timeout=timeout)
        self.flow = FlowController(
            config,
            presenter=presenter,
            exchanger=self.token_exchanger,
            credential_store=credential_store,
            on_complete=on_complete,
            url_builder=self.url_builder,
        )

    @property
    def access_token(self) -> str | None:
        """Stored access token if it has not expired."""
        token = self._stored_token()
        if token is None or token.is_expired(self.expiry_buffer):
            return None
        return token.access_token

    def has_unexpired_token(self) -> bool:
        return self.access_token is not None

    async def authorize(self, extra_params: dict[str, str] | None = None) -> TokenResult:
        """Return a usable token, authorizing the user if needed.

        Raises:
            OAuth2Error: If a new authorization attempt fails
        """
        token = self._stored_token()
        if token is not None and not token.is_expired(self.expiry_buffer):
            logger.debug("Using stored access token")
            return token

        if token is not None and token.can_refresh():
            try:
                return await self.refresh(token.refresh_token)
            except TokenError as e:
                logger.warning(f"Token refresh failed, re-authorizing: {e}")

        return await self.flow.start(extra_params)

    async def refresh(self, refresh_token: str | None = None) -> TokenResult:
        """Refresh the access token (RFC 6749 Section 6).

        Args:
            refresh_token: Token to use, the stored one by default

        Raises:
            ConfigurationError: If there is no refresh token to use
            TokenError: If the token endpoint refuses the refresh
        """
        if refresh_token is None:
            stored = self._stored_token()
            refresh_token = stored.refresh_token if stored else None
        if not refresh_token:
            raise ConfigurationError("No refresh token available")

        body = self.url_builder.build_token_request_body(
            self.config, refresh_token=refresh_token
        )
        token = await self.token_exchanger.exchange(
            body,
            self.config.token_endpoint,
            headers=self.url_builder.build_client_auth_headers(self.config),
            request_format=self.config.token_request_format,
        )
        if not token.refresh_token:
            token = token.model_copy(update={"refresh_token": refresh_token})

        if self.credential_store is not None:
            self.credential_store.save(token)

        logger.info("Successfully refreshed access token")
        return token

    def forget_tokens(self) -> None:
        """Drop stored tokens so the next ``authorize()`` starts over."""
        if self.credential_store is not None:
            self.credential_store.clear()
        logger.debug("Forgot stored tokens")

    def cancel(self) -> bool:
        """Cancel a pending authorization attempt."""
        return self.flow.cancel()

    async def close(self) -> None:
        """Close all service connections."""
        await self.token_exchanger.close()

    def _stored_token(self) -> TokenResult | None:
        if self.credential_store is None:
            return None
        return self.credential_store.load()
