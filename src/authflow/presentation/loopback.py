"""Loopback redirect receiver (RFC 8252 Section 7.3).

Serves the redirect URI path on a local Starlette app, opens the
authorize URL in the system browser and reports the redirect the browser
is sent to. Use a redirect URI such as ``http://127.0.0.1:8765/callback``.
"""

from __future__ import annotations

import asyncio
import logging
import socket
import webbrowser
from collections.abc import Callable
from urllib.parse import urlsplit

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, Response
from starlette.routing import Route

from authflow.models.errors import ConfigurationError, PresentationError
from authflow.presentation.base import PresentationAdapter

logger = logging.getLogger(__name__)

DONE_PAGE = """<!DOCTYPE html>
<html>
  <head><title>Authorization complete</title></head>
  <body>
    <h1>Authorization complete</h1>
    <p>You can close this window and return to the application.</p>
  </body>
</html>
"""


class LoopbackPresentationAdapter(PresentationAdapter):
    """Receives the redirect on a local HTTP server.

    Only the first request to the redirect path is reported; validating
    it is the flow controller's job, so error redirects are reported too.
    The browser keeps the URL fragment to itself, so this adapter cannot
    serve the implicit grant.
    """

    receives_fragment = False

    def __init__(
        self,
        redirect_uri: str,
        opener: Callable[[str], bool] = webbrowser.open,
        startup_timeout: float = 5.0,
    ):
        """Initialize the adapter.

        Args:
            redirect_uri: Loopback redirect URI registered for the client
            opener: Callable opening a URL, returning False on failure
            startup_timeout: Seconds to wait for the server to listen
        """
        parts = urlsplit(redirect_uri)
        if parts.scheme != "http" or parts.hostname not in (
            "127.0.0.1",
            "localhost",
            "::1",
        ):
            raise ConfigurationError(
                f"Loopback redirect URI must be http on a loopback host: {redirect_uri}"
            )
        if parts.port is None:
            raise ConfigurationError("Loopback redirect URI must name a port")

        self.redirect_uri = redirect_uri
        self.host = parts.hostname
        self.port = parts.port
        self.path = parts.path or "/"
        self._opener = opener
        self._startup_timeout = startup_timeout

        self._app = self._create_app()
        self._server: uvicorn.Server | None = None
        self._server_task: asyncio.Task | None = None
        self._pending: asyncio.Future[str | None] | None = None

    @property
    def app(self) -> Starlette:
        return self._app

    def _create_app(self) -> Starlette:
        """Create the Starlette application serving the redirect path."""
        routes = [Route(self.path, self._handle_redirect, methods=["GET"])]
        return Starlette(routes=routes)

    async def _handle_redirect(self, request: Request) -> Response:
        if self._pending is None or self._pending.done():
            return HTMLResponse("No authorization in progress", status_code=409)

        # Rebuild from the registered URI so the host header can't alter it
        redirect_url = self.redirect_uri
        if request.url.query:
            redirect_url = f"{redirect_url}?{request.url.query}"

        self._pending.set_result(redirect_url)
        return HTMLResponse(DONE_PAGE)

    async def present(self, url: str) -> str | None:
        pending = asyncio.get_running_loop().create_future()
        self._pending = pending

        await self._start_server()

        opened = await asyncio.to_thread(self._opener, url)
        if not opened:
            await self._stop_server()
            raise PresentationError("Could not open the system browser")

        logger.info(f"Waiting for authorization redirect on {self.redirect_uri}")
        return await pending

    def cancel(self) -> bool:
        """Report that the user abandoned the browser login."""
        if self._pending is None or self._pending.done():
            return False
        self._pending.set_result(None)
        return True

    def dismiss(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        if self._server is not None:
            self._server.should_exit = True

    async def _start_server(self) -> None:
        sock = self._bind_socket()
        config = uvicorn.Config(app=self._app, log_level="warning")
        server = uvicorn.Server(config)
        self._server = server
        self._server_task = asyncio.create_task(self._serve(server, sock))

        try:
            async with asyncio.timeout(self._startup_timeout):
                while not server.started:
                    if self._server_task.done():
                        await self._stop_server()
                        raise PresentationError(
                            f"Loopback server failed to start on {self.host}:{self.port}"
                        )
                    await asyncio.sleep(0.01)
        except TimeoutError as e:
            await self._stop_server()
            raise PresentationError("Loopback server did not start in time") from e

        logger.debug(f"Loopback server listening on {self.host}:{self.port}")

    def _bind_socket(self) -> socket.socket:
        family = socket.AF_INET6 if ":" in self.host else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind((self.host, self.port))
        except OSError as e:
            sock.close()
            raise PresentationError(
                f"Cannot listen on {self.host}:{self.port}: {e}"
            ) from e
        return sock

    async def _serve(self, server: uvicorn.Server, sock: socket.socket) -> None:
        try:
            await server.serve(sockets=[sock])
        except SystemExit as e:
            # uvicorn calls sys.exit() when startup fails
            logger.error(f"Loopback server exited with status {e.code}")
        finally:
            sock.close()

    async def _stop_server(self) -> None:
        if self._server is not None:
            self._server.should_exit = True
        if self._server_task is not None:
            await asyncio.gather(self._server_task, return_exceptions=True)
        self._server = None
        self._server_task = None
