"""
HTTP Listeners

Sockets are bound up front by ``bind_listener`` so that bind errors abort
startup before anything is served. ``ListenerRunner`` then serves an
aiohttp route table on the pre-bound socket until shutdown is broadcast.
"""

import logging
import socket
from typing import Iterable, Tuple

from aiohttp import web

from oniongate.runtime.data import StartupError, ServiceRuntimeError
from oniongate.shutdown import Subscription

logger = logging.getLogger(__name__)

DEFAULT_SHUTDOWN_TIMEOUT = 10.0
LISTEN_BACKLOG = 128


def bind_listener(host: str, port: int, label: str) -> socket.socket:
    """
    Create, bind and listen on a TCP socket.

    :param host: Interface address, e.g. ``127.0.0.1`` or ``0.0.0.0``
    :param port: Port number, 0 for an ephemeral port
    :param label: Endpoint name used in errors and logs
    :returns: The listening socket
    :raises StartupError: If the address cannot be resolved or bound, or
        the bound address cannot be queried, or ``port`` is out of range
    """
    # getaddrinfo wraps out-of-range ports modulo 65536
    if not 0 <= port <= 65535:
        raise StartupError(f"Unable to bind {label} listener: port {port} is out of range")

    try:
        family, type_, proto, _, sockaddr = socket.getaddrinfo(
            host, port, type=socket.SOCK_STREAM, flags=socket.AI_PASSIVE
        )[0]
    except OSError as e:
        raise StartupError(f"Unable to resolve {label} listener address {host}:{port}: {e}") from e

    sock = socket.socket(family, type_, proto)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind(sockaddr)
        sock.listen(LISTEN_BACKLOG)
    except OSError as e:
        sock.close()
        raise StartupError(f"Unable to bind {label} listener: {e}") from e

    try:
        address = local_address(sock)
    except OSError as e:
        sock.close()
        raise StartupError(f"Unable to get local address: {e}") from e

    logger.info(f"{label} endpoint listening on {address[0]}:{address[1]}")
    return sock


def local_address(sock: socket.socket) -> Tuple[str, int]:
    name = sock.getsockname()
    return name[0], name[1]


class ListenerRunner:
    """
    Serves one route table on one pre-bound socket.

    ``run()`` returns after the shutdown subscription resolves and aiohttp
    has finished its graceful stop: no new connections are accepted and
    in-flight requests get up to ``shutdown_timeout`` seconds to finish.
    """

    def __init__(
        self,
        label: str,
        sock: socket.socket,
        routes: Iterable[web.AbstractRouteDef],
        shutdown_timeout: float = DEFAULT_SHUTDOWN_TIMEOUT,
    ):
        self.label = label
        self.sock = sock
        self.routes = list(routes)
        self.shutdown_timeout = shutdown_timeout

    def build_app(self) -> web.Application:
        app = web.Application()
        app.add_routes(self.routes)
        return app

    async def run(self, subscription: Subscription) -> None:
        """
        Serve until ``subscription`` resolves.

        :raises ServiceRuntimeError: If aiohttp fails to start serving or
            to shut down
        """
        runner = web.AppRunner(self.build_app(), shutdown_timeout=self.shutdown_timeout)
        try:
            try:
                await runner.setup()
                site = web.SockSite(runner, self.sock)
                await site.start()
            except Exception as e:
                raise ServiceRuntimeError(f"{self.label} endpoint service error: {e!r}") from e

            logger.debug(f"[listener] {self.label} serving")
            await subscription.wait()
            logger.info(f"[listener] {self.label} endpoint stopping")
        finally:
            try:
                await runner.cleanup()
            except Exception as e:
                raise ServiceRuntimeError(f"{self.label} endpoint shutdown error: {e!r}") from e
            finally:
                self.sock.close()

        logger.info(f"[listener] {self.label} endpoint stopped")
