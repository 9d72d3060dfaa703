from abc import ABC, abstractmethod

from authflow.models.tokens import TokenResult


class CredentialStore(ABC):
    """Persists the token obtained by an authorization flow."""

    @abstractmethod
    def save(self, token: TokenResult) -> None:
        """Persist ``token``, replacing any stored one.

        Raises:
            CredentialStoreError: If the token cannot be persisted
        """

    @abstractmethod
    def load(self) -> TokenResult | None:
        """Return the stored token, or None."""

    @abstractmethod
    def clear(self) -> None:
        """Forget the stored token."""
