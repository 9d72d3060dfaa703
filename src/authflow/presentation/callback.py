"""Presentation adapter that delegates to caller-supplied callables.

Suitable for CLI tools that print the URL and read the redirect back, and
for custom UI integrations.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable

from authflow.presentation.base import PresentationAdapter

AuthorizationHandler = Callable[[str], Awaitable[str | None]]


class CallbackPresentationAdapter(PresentationAdapter):
    """Hands the authorize URL to ``handler`` and returns what it returns."""

    def __init__(
        self,
        handler: AuthorizationHandler,
        on_dismiss: Callable[[], None] | None = None,
    ):
        """Initialize the adapter.

        Args:
            handler: Async callable receiving the authorize URL and
                returning the redirect URL, or None if the user gave up
            on_dismiss: Optional hook run when the attempt resolves
        """
        self.handler = handler
        self.on_dismiss = on_dismiss

    async def present(self, url: str) -> str | None:
        return await self.handler(url)

    def dismiss(self) -> None:
        if self.on_dismiss is not None:
            self.on_dismiss()
