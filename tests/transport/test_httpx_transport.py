"""Tests for the httpx-backed HTTP transport."""

import json

import httpx
import pytest

from authflow.models.errors import TransportError
from authflow.transport.httpx_transport import HttpxTransport


class TestHttpxTransport:
    def setup_method(self):
        self.requests: list[httpx.Request] = []

    def make_transport(self, handler) -> HttpxTransport:
        def recording_handler(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(recording_handler))
        return HttpxTransport(http_client=client)

    async def test_send_returns_raw_response(self):
        # Arrange
        transport = self.make_transport(
            lambda request: httpx.Response(
                200, json={"access_token": "T"}, headers={"X-Trace": "abc"}
            )
        )

        # Act
        response = await transport.send(
            "POST",
            "https://auth.example.com/token",
            {"Content-Type": "application/x-www-form-urlencoded"},
            b"grant_type=client_credentials",
        )

        # Assert
        assert response.status_code == 200
        assert response.is_success
        assert json.loads(response.body) == {"access_token": "T"}
        assert response.headers["x-trace"] == "abc"

        request = self.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://auth.example.com/token"
        assert request.headers["content-type"] == "application/x-www-form-urlencoded"
        assert request.content == b"grant_type=client_credentials"

    async def test_error_status_is_returned(self):
        transport = self.make_transport(lambda request: httpx.Response(400, text="bad"))

        response = await transport.send("POST", "https://auth.example.com/token", {})

        assert response.status_code == 400
        assert not response.is_success
        assert response.body == b"bad"

    async def test_network_error_becomes_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        transport = self.make_transport(handler)

        with pytest.raises(TransportError) as exc_info:
            await transport.send("POST", "https://auth.example.com/token", {})

        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    async def test_close_closes_client(self):
        client = httpx.AsyncClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(204))
        )
        transport = HttpxTransport(http_client=client)

        await transport.close()

        assert client.is_closed

    async def test_default_client_uses_timeout(self):
        transport = HttpxTransport(timeout=5.0)

        assert transport._http_client.timeout.read == 5.0
        await transport.close()
