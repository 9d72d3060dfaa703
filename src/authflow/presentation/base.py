from abc import ABC, abstractmethod


class PresentationAdapter(ABC):
    """Shows an authorize URL to the user and reports where they came back.

    Implementations exist per front-end: the system browser, an embedded
    redirect receiver, a caller-supplied handler, or none at all for
    non-interactive grants. The flow controller never inspects which one
    it was given.
    """

    # Implicit-grant tokens come back in the URL fragment, which browsers
    # never send to an HTTP server
    receives_fragment: bool = True

    @abstractmethod
    async def present(self, url: str) -> str | None:
        """Present the authorize URL and wait for the user to finish.

        Args:
            url: Authorization URL for the user to visit

        Returns:
            The redirect URL received from the authorization server, or
            None if the user cancelled

        Raises:
            PresentationError: If the URL cannot be shown
        """

    @abstractmethod
    def dismiss(self) -> None:
        """Tear down whatever ``present`` put on screen. Must be idempotent."""
