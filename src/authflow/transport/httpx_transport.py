"""HTTP transport backed by httpx."""

from __future__ import annotations

import logging

import httpx

from authflow.models.errors import TransportError
from authflow.transport.base import HTTPResponse, HTTPTransport

logger = logging.getLogger(__name__)


class HttpxTransport(HTTPTransport):
    """Sends token requests with a shared ``httpx.AsyncClient``."""

    def __init__(
        self, timeout: float = 30.0, http_client: httpx.AsyncClient | None = None
    ):
        """Initialize the transport.

        Args:
            timeout: HTTP request timeout in seconds
            http_client: Optional preconfigured client, e.g. with proxies
        """
        self.timeout = timeout
        self._http_client = http_client or httpx.AsyncClient(timeout=timeout)

    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> HTTPResponse:
        try:
            response = await self._http_client.request(
                method, url, headers=headers, content=body
            )
        except httpx.HTTPError as e:
            logger.warning(f"HTTP error during {method} {url}: {e}")
            raise TransportError(f"HTTP error during {method} {url}: {e}") from e

        return HTTPResponse(
            status_code=response.status_code,
            headers=dict(response.headers),
            body=response.content,
        )

    async def close(self) -> None:
        """Close the HTTP client and clean up resources."""
        await self._http_client.aclose()
