from abc import ABC, abstractmethod
from dataclasses import dataclass, field


@dataclass(frozen=True)
class HTTPResponse:
    """Raw HTTP response as seen by the token exchanger."""

    status_code: int
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes = b""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class HTTPTransport(ABC):
    """Abstract HTTP transport for token endpoint requests.

    Handles the mechanics of sending one request and returning the raw
    response, without knowledge of OAuth2 semantics. Non-2xx statuses are
    returned, not raised.
    """

    @abstractmethod
    async def send(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> HTTPResponse:
        """Send a request and return the response.

        Raises:
            TransportError: If the request could not be completed
        """

    async def close(self) -> None:
        """Release connections held by the transport."""
