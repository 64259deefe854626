"""Ephemeral loopback HTTP server for the login callback.

:class:`CallbackServer` binds an OS-assigned port on the loopback interface,
routes every request (any method, any path) to a single handler, and is torn
down when the login settles. It is built on :mod:`aiohttp.web` so that the
listener, the request handlers and the login timeout share one event loop.
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Optional

from aiohttp import web

from loopauth.exceptions import NetworkBindError

logger = logging.getLogger(__name__)

Handler = Callable[[web.Request], Awaitable[web.StreamResponse]]

LOOPBACK_HOST = "127.0.0.1"


class CallbackServer:
    """A single-use HTTP listener on an OS-assigned loopback port.

    :meth:`start` returns only once the socket is listening, so
    :attr:`port` is safe to embed in the authorization URL right after it.
    :meth:`close` may be called any number of times, including after a
    failed start.

    Args:
        handler: Coroutine called for every inbound request.
        host: Interface to bind; loopback by default.
        shutdown_timeout: Seconds to let an in-flight response finish when
            closing.

    Example::

        async with CallbackServer(handler) as server:
            print(server.port)
    """

    def __init__(
        self,
        handler: Handler,
        host: str = LOOPBACK_HOST,
        shutdown_timeout: float = 2.0,
    ) -> None:
        self._handler = handler
        self.host = host
        self._shutdown_timeout = shutdown_timeout
        self._runner: Optional[web.AppRunner] = None
        self._port: Optional[int] = None

    @property
    def is_listening(self) -> bool:
        return self._runner is not None

    @property
    def port(self) -> int:
        """The bound port.

        Raises:
            NetworkBindError: If the server is not listening.
        """
        if self._port is None:
            raise NetworkBindError("Callback server is not listening")
        return self._port

    async def start(self) -> "CallbackServer":
        """Bind port 0 and wait until the listener is up.

        Raises:
            NetworkBindError: If the socket cannot be bound.
        """
        if self._runner is not None:
            return self

        app = web.Application()
        app.router.add_route("*", "/{tail:.*}", self._handler)
        runner = web.AppRunner(
            app, access_log=None, shutdown_timeout=self._shutdown_timeout
        )
        await runner.setup()
        site = web.TCPSite(runner, self.host, 0)
        try:
            await site.start()
        except OSError as exc:
            await runner.cleanup()
            raise NetworkBindError(
                f"Cannot listen on {self.host}: {exc}"
            ) from exc

        self._runner = runner
        self._port = runner.addresses[0][1]
        logger.debug("Local server listening on %s:%s", self.host, self._port)
        return self

    async def close(self) -> None:
        """Stop listening and release the socket. Safe to call repeatedly."""
        runner, self._runner = self._runner, None
        self._port = None
        if runner is None:
            return
        await runner.cleanup()
        logger.debug("Local server closed")

    async def __aenter__(self) -> "CallbackServer":
        return await self.start()

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()


async def create_server(handler: Handler, host: str = LOOPBACK_HOST) -> CallbackServer:
    """Create and start a :class:`CallbackServer` for *handler*."""
    return await CallbackServer(handler, host=host).start()
