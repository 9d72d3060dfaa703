"""System browser presentation.

Opens the authorize URL in the user's default browser. The browser
returns to the application out of band (a registered URL scheme, a
desktop deep link, ...), so the host application forwards that URL with
``deliver_redirect``.
"""

from __future__ import annotations

import asyncio
import logging
import webbrowser
from collections.abc import Callable

from authflow.models.errors import PresentationError
from authflow.presentation.base import PresentationAdapter

logger = logging.getLogger(__name__)


class BrowserPresentationAdapter(PresentationAdapter):
    """Opens the system browser and waits for the redirect to be delivered."""

    def __init__(self, opener: Callable[[str], bool] = webbrowser.open):
        """Initialize the adapter.

        Args:
            opener: Callable opening a URL, returning False on failure
        """
        self._opener = opener
        self._pending: asyncio.Future[str | None] | None = None

    @property
    def is_presenting(self) -> bool:
        return self._pending is not None and not self._pending.done()

    async def present(self, url: str) -> str | None:
        pending = asyncio.get_running_loop().create_future()
        self._pending = pending

        # webbrowser may block while it spawns the browser process
        opened = await asyncio.to_thread(self._opener, url)
        if not opened:
            self._pending = None
            raise PresentationError("Could not open the system browser")

        logger.info("Opened authorize URL in the system browser")
        return await pending

    def deliver_redirect(self, redirect_url: str) -> bool:
        """Hand over the redirect URL the application was opened with.

        Returns:
            True if a presentation was waiting for it
        """
        if not self.is_presenting:
            logger.debug("Ignoring redirect: browser presentation not active")
            return False
        self._pending.set_result(redirect_url)
        return True

    def cancel(self) -> bool:
        """Report that the user abandoned the browser login."""
        if not self.is_presenting:
            return False
        self._pending.set_result(None)
        return True

    def dismiss(self) -> None:
        # The system browser cannot be closed from here; stop waiting
        if self.is_presenting:
            self._pending.cancel()
        self._pending = None
