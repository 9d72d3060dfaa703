import asyncio
import json
from typing import Any
from urllib.parse import parse_qs, urlsplit

import pytest

from authflow.models.config import FlowConfig, GrantType
from authflow.presentation.base import PresentationAdapter
from authflow.transport.base import HTTPResponse, HTTPTransport


class RecordingTransport(HTTPTransport):
    """Mock HTTP transport that records requests and replays queued responses."""

    def __init__(self):
        self.requests: list[dict[str, Any]] = []
        self._responses: list[HTTPResponse | Exception] = []
        self.gate: asyncio.Event | None = None
        self.closed = False

    def queue_json(self, payload: Any, status_code: int = 200) -> None:
        self._responses.append(
            HTTPResponse(
                status_code=status_code,
                headers={"content-type": "application/json"},
                body=json.dumps(payload).encode(),
            )
        )

    def queue_raw(self, body: bytes, status_code: int = 200) -> None:
        self._responses.append(HTTPResponse(status_code=status_code, body=body))

    def queue_error(self, error: Exception) -> None:
        self._responses.append(error)

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> HTTPResponse:
        self.requests.append(
            {"method": method, "url": url, "headers": headers, "body": body}
        )
        if self.gate is not None:
            await self.gate.wait()
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def form(self, index: int = -1) -> dict[str, str]:
        """Decode a recorded form-encoded body."""
        body = self.requests[index]["body"].decode()
        return {key: values[0] for key, values in parse_qs(body).items()}

    async def close(self) -> None:
        self.closed = True


class ScriptedPresenter(PresentationAdapter):
    """Mock presentation adapter controlled by the test."""

    def __init__(self):
        self.presented_urls: list[str] = []
        self.dismiss_count = 0
        self._pending: asyncio.Future[str | None] | None = None
        self.presented = asyncio.Event()

    async def present(self, url: str) -> str | None:
        self.presented_urls.append(url)
        self._pending = asyncio.get_running_loop().create_future()
        self.presented.set()
        return await self._pending

    @property
    def is_waiting(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def redirect(self, url: str) -> bool:
        if not self.is_waiting:
            return False
        self._pending.set_result(url)
        return True

    def cancel(self) -> bool:
        if not self.is_waiting:
            return False
        self._pending.set_result(None)
        return True

    def fail(self, error: Exception) -> None:
        self._pending.set_exception(error)

    @property
    def state(self) -> str:
        """State parameter of the last presented authorize URL."""
        query = parse_qs(urlsplit(self.presented_urls[-1]).query)
        return query["state"][0]

    def dismiss(self) -> None:
        self.dismiss_count += 1


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def presenter() -> ScriptedPresenter:
    return ScriptedPresenter()


@pytest.fixture
def code_config() -> FlowConfig:
    return FlowConfig(
        grant_type=GrantType.AUTHORIZATION_CODE,
        client_id="client-123",
        authorize_endpoint="https://auth.example.com/authorize",
        token_endpoint="https://auth.example.com/token",
        redirect_uri="https://app.example/cb",
        scope=["read", "write"],
    )


@pytest.fixture
def pkce_config(code_config: FlowConfig) -> FlowConfig:
    return code_config.model_copy(
        update={"grant_type": GrantType.AUTHORIZATION_CODE_PKCE}
    )


@pytest.fixture
def implicit_config(code_config: FlowConfig) -> FlowConfig:
    return code_config.model_copy(update={"grant_type": GrantType.IMPLICIT})


@pytest.fixture
def client_credentials_config() -> FlowConfig:
    return FlowConfig(
        grant_type=GrantType.CLIENT_CREDENTIALS,
        client_id="service-1",
        client_secret="s3cret",
        token_endpoint="https://auth.example.com/token",
        scope="jobs:read",
    )


async def settle() -> None:
    """Let scheduled tasks run until they block."""
    for _ in range(10):
        await asyncio.sleep(0)


@pytest.fixture
def run_pending():
    return settle
