from authflow.models.tokens import TokenResult
from authflow.storage.base import CredentialStore


class InMemoryCredentialStore(CredentialStore):
    """Keeps the token for the lifetime of the process."""

    def __init__(self, token: TokenResult | None = None):
        self._token = token

    def save(self, token: TokenResult) -> None:
        self._token = token

    def load(self) -> TokenResult | None:
        return self._token

    def clear(self) -> None:
        self._token = None
