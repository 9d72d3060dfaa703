"""OAuth2 authorization flow orchestration service.

Drives one authorization attempt end to end: builds the authorize URL,
hands it to a presentation adapter, validates the redirect, exchanges the
code for a token and reports the result exactly once.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Callable
from typing import Any

from authflow.models.config import FlowConfig, GrantType
from authflow.models.errors import (
    AttemptAlreadyInProgressError,
    ConfigurationError,
    CredentialStoreError,
    OAuth2Error,
    PresentationError,
    TokenError,
    UserAuthCancelledError,
)
from authflow.models.flow import (
    AuthorizationAttempt,
    AuthorizationCode,
    FlowResult,
    FlowState,
    ImplicitToken,
)
from authflow.models.tokens import TokenResult
from authflow.presentation.base import PresentationAdapter
from authflow.presentation.headless import HeadlessPresentationAdapter
from authflow.primitives.pkce import PKCEManager
from authflow.services.redirects import RedirectValidator
from authflow.services.security import is_absolute_url, new_attempt
from authflow.services.tokens import TokenExchanger
from authflow.services.urls import URLBuilder
from authflow.storage.base import CredentialStore

logger = logging.getLogger(__name__)

CompletionCallback = Callable[[FlowResult], Any]


class FlowController:
    """Orchestrates OAuth2 authorization attempts for one client configuration.

    Each attempt moves through ``AWAITING_REDIRECT`` and
    ``EXCHANGING_TOKEN`` into one terminal state. Only one attempt may be
    pending at a time: ``start()`` rejects a second one with
    ``AttemptAlreadyInProgressError``. The first terminal signal wins, be
    it a redirect, a cancellation or the token exchange finishing; later
    signals for the same attempt are logged and dropped.

    All methods must be called from the event loop that runs the attempt.
    """

    def __init__(
        self,
        config: FlowConfig,
        presenter: PresentationAdapter | None = None,
        exchanger: TokenExchanger | None = None,
        credential_store: CredentialStore | None = None,
        on_complete: CompletionCallback | None = None,
        url_builder: URLBuilder | None = None,
        validator: RedirectValidator | None = None,
        pkce_manager: PKCEManager | None = None,
    ):
        """Initialize the flow controller.

        Args:
            config: Client configuration, shared by reference
            presenter: Front-end that shows the authorize URL
            exchanger: Token endpoint client
            credential_store: Optional store that receives successful tokens
            on_complete: Optional callback invoked once per attempt
        """
        self._config = config
        self._presenter = presenter or HeadlessPresentationAdapter()
        self._exchanger = exchanger or TokenExchanger()
        self._credential_store = credential_store
        self._on_complete = on_complete
        self._url_builder = url_builder or URLBuilder()
        self._validator = validator or RedirectValidator()
        self._pkce_manager = pkce_manager or PKCEManager()

        self._attempt: AuthorizationAttempt | None = None

    @property
    def config(self) -> FlowConfig:
        return self._config

    @property
    def state(self) -> FlowState:
        """State of the current attempt, ``IDLE`` before the first one."""
        return self._attempt.flow_state if self._attempt else FlowState.IDLE

    @property
    def current_attempt(self) -> AuthorizationAttempt | None:
        return self._attempt

    def start(
        self, extra_params: dict[str, str] | None = None
    ) -> asyncio.Future[TokenResult]:
        """Start a new authorization attempt.

        Interactive grants present the authorize URL; client credentials
        and refresh grants go straight to the token endpoint. Cancelling
        the returned future cancels the attempt.

        Args:
            extra_params: Additional authorize URL parameters

        Returns:
            Future resolved with the TokenResult, or failed with the
            OAuth2Error that ended the attempt

        Raises:
            AttemptAlreadyInProgressError: If an attempt is still pending
            ConfigurationError: If no request can be built from the config
        """
        current = self._attempt
        if current is not None and not current.is_terminal:
            raise AttemptAlreadyInProgressError(
                f"Authorization attempt {current.attempt_id} is still "
                f"{current.flow_state.value}"
            )

        loop = asyncio.get_running_loop()
        attempt = new_attempt(self._config.uses_pkce, self._pkce_manager)

        # Build everything that can fail before any state changes
        self._require_token_endpoint()
        if (
            self._config.grant_type.response_type == "token"
            and not self._presenter.receives_fragment
        ):
            raise ConfigurationError(
                f"{type(self._presenter).__name__} cannot receive implicit grant tokens"
            )
        if self._config.grant_type.is_interactive:
            url = self._url_builder.build_authorize_url(
                self._config, attempt, extra_params
            )
            attempt.flow_state = FlowState.AWAITING_REDIRECT
            make_runner = functools.partial(self._present, attempt, url)
        else:
            body, stored_refresh_token = self._non_interactive_request()
            attempt.flow_state = FlowState.EXCHANGING_TOKEN
            make_runner = functools.partial(
                self._exchange, attempt, body, stored_refresh_token
            )

        attempt.result = loop.create_future()
        attempt.result.add_done_callback(
            functools.partial(self._on_result_done, attempt)
        )
        self._attempt = attempt
        attempt.task = loop.create_task(make_runner())

        logger.info(
            f"Started authorization attempt {attempt.attempt_id} "
            f"({self._config.grant_type.value}) for client {self._config.client_id}"
        )
        return attempt.result

    async def handle_redirect(self, redirect_url: str) -> bool:
        """Deliver a redirect received outside the presentation adapter.

        Returns:
            True if the redirect was consumed by the pending attempt
        """
        attempt = self._attempt
        if attempt is None:
            logger.warning("Ignoring redirect: no authorization attempt started")
            return False
        return await self._receive_redirect(attempt, redirect_url)

    def cancel(self) -> bool:
        """Cancel the pending attempt.

        Returns:
            True if an attempt was pending and is now cancelled
        """
        attempt = self._attempt
        if attempt is None or attempt.is_terminal:
            logger.debug("No pending authorization attempt to cancel")
            return False
        return self._resolve(
            attempt, error=UserAuthCancelledError("Authorization was cancelled")
        )

    async def _present(self, attempt: AuthorizationAttempt, url: str) -> None:
        logger.debug(f"Presenting authorize URL for attempt {attempt.attempt_id}")
        try:
            redirect_url = await self._presenter.present(url)
        except OAuth2Error as e:
            self._resolve(attempt, error=e)
            return
        except Exception as e:
            error = PresentationError(f"Failed to present authorize URL: {e}")
            error.__cause__ = e
            self._resolve(attempt, error=error)
            return

        if redirect_url is None:
            self._resolve(
                attempt,
                error=UserAuthCancelledError("Authorization was cancelled by the user"),
            )
            return

        await self._receive_redirect(attempt, redirect_url)

    async def _receive_redirect(
        self, attempt: AuthorizationAttempt, redirect_url: str
    ) -> bool:
        if attempt.flow_state is not FlowState.AWAITING_REDIRECT:
            logger.warning(
                f"Ignoring redirect for attempt {attempt.attempt_id}: "
                f"already {attempt.flow_state.value}"
            )
            return False

        outcome = self._validator.validate(redirect_url, attempt, self._config)

        if isinstance(outcome, ImplicitToken):
            self._resolve(attempt, token=outcome.token)
            return True
        if not isinstance(outcome, AuthorizationCode):
            self._resolve(attempt, error=outcome.to_exception())
            return True

        attempt.flow_state = FlowState.EXCHANGING_TOKEN
        self._stop_presenting(attempt)
        logger.debug(f"Exchanging authorization code for attempt {attempt.attempt_id}")

        try:
            body = self._url_builder.build_token_request_body(
                self._config, code=outcome.code, code_verifier=attempt.code_verifier
            )
        except OAuth2Error as e:
            self._resolve(attempt, error=e)
            return True

        if attempt.task is asyncio.current_task():
            await self._exchange(attempt, body)
        else:
            # Redirect arrived out of band; run the exchange where cancel() reaches it
            attempt.task = asyncio.get_running_loop().create_task(
                self._exchange(attempt, body)
            )
            await asyncio.wait([attempt.task])
        return True

    async def _exchange(
        self,
        attempt: AuthorizationAttempt,
        body: dict[str, str],
        stored_refresh_token: str | None = None,
    ) -> None:
        try:
            token = await self._exchanger.exchange(
                body,
                self._config.token_endpoint,
                headers=self._url_builder.build_client_auth_headers(self._config),
                request_format=self._config.token_request_format,
            )
        except OAuth2Error as e:
            self._resolve(attempt, error=e)
            return
        except Exception as e:
            error = TokenError(f"Unexpected error during token exchange: {e}")
            error.__cause__ = e
            self._resolve(attempt, error=error)
            return

        # Servers may omit the refresh token when it stays valid
        if stored_refresh_token and not token.refresh_token:
            token = token.model_copy(update={"refresh_token": stored_refresh_token})

        self._resolve(attempt, token=token)

    def _require_token_endpoint(self) -> None:
        """Fail before presenting if the grant will need an unusable token endpoint."""
        if self._config.grant_type.response_type == "token":
            return
        if not is_absolute_url(self._config.token_endpoint):
            raise ConfigurationError(
                f"Token endpoint is not an absolute http(s) URL: "
                f"{self._config.token_endpoint}"
            )

    def _non_interactive_request(self) -> tuple[dict[str, str], str | None]:
        if self._config.grant_type is GrantType.CLIENT_CREDENTIALS:
            return self._url_builder.build_token_request_body(self._config), None

        stored = self._credential_store.load() if self._credential_store else None
        if stored is None or not stored.refresh_token:
            raise ConfigurationError("Refresh grant requires a stored refresh token")
        body = self._url_builder.build_token_request_body(
            self._config, refresh_token=stored.refresh_token
        )
        return body, stored.refresh_token

    def _resolve(
        self,
        attempt: AuthorizationAttempt,
        token: TokenResult | None = None,
        error: OAuth2Error | None = None,
    ) -> bool:
        """Move ``attempt`` into its terminal state, at most once."""
        if attempt.is_terminal:
            logger.warning(
                f"Dropping late completion for attempt {attempt.attempt_id}: "
                f"already {attempt.flow_state.value}"
            )
            return False

        if token is not None and self._credential_store is not None:
            try:
                self._credential_store.save(token)
            except OAuth2Error as e:
                token, error = None, e
            except Exception as e:
                error = CredentialStoreError(f"Failed to save token: {e}")
                error.__cause__ = e
                token = None

        if token is not None:
            attempt.flow_state = FlowState.SUCCEEDED
            logger.info(f"Authorization attempt {attempt.attempt_id} succeeded")
        elif isinstance(error, UserAuthCancelledError):
            attempt.flow_state = FlowState.CANCELLED
            logger.info(f"Authorization attempt {attempt.attempt_id} cancelled")
        else:
            attempt.flow_state = FlowState.FAILED
            logger.warning(f"Authorization attempt {attempt.attempt_id} failed: {error}")

        if attempt.result is not None and not attempt.result.done():
            if token is not None:
                attempt.result.set_result(token)
            else:
                attempt.result.set_exception(error)

        self._stop_presenting(attempt)
        self._dismiss()
        self._notify(FlowResult(token=token, error=error))
        return True

    def _on_result_done(
        self, attempt: AuthorizationAttempt, future: asyncio.Future[TokenResult]
    ) -> None:
        if future.cancelled():
            if not attempt.is_terminal:
                self._resolve(
                    attempt,
                    error=UserAuthCancelledError("Authorization future was cancelled"),
                )
            return
        # Failures also reach on_complete; mark the exception as retrieved
        future.exception()

    def _stop_presenting(self, attempt: AuthorizationAttempt) -> None:
        task = attempt.task
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    def _dismiss(self) -> None:
        try:
            self._presenter.dismiss()
        except Exception:
            logger.exception("Presentation dismiss hook failed")

    def _notify(self, result: FlowResult) -> None:
        if self._on_complete is None:
            return
        try:
            self._on_complete(result)
        except Exception:
            logger.exception("Authorization completion callback failed")
