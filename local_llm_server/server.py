"""
Listener/acceptor for the local HTTP server.

Binds a TCP port with asyncio, spawns one ConnectionHandler task per
accepted socket and tracks those tasks so stop() can cancel them. The
tracked set is only touched from callbacks running on the event loop,
so it has a single writer at any time.
"""

import asyncio
import logging
from enum import Enum
from typing import Callable, Optional

from .connection import ConnectionHandler
from .errors import BindError

logger = logging.getLogger(__name__)

DEFAULT_PORT = 11434


class ListenerState(str, Enum):
    STOPPED = "stopped"
    READY = "ready"
    FAILED = "failed"
    CANCELLED = "cancelled"


class LocalHTTPServer:
    """Accept loop plus the set of live connections."""

    def __init__(
        self,
        router,
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        on_state_change: Optional[Callable[[ListenerState], None]] = None,
    ):
        self.router = router
        self.host = host
        self.port = port
        self.on_state_change = on_state_change
        self.state = ListenerState.STOPPED
        self._server: Optional[asyncio.AbstractServer] = None
        self._accepting = False
        self._connections: set[asyncio.Task] = set()

    @property
    def is_running(self) -> bool:
        return self.state is ListenerState.READY

    @property
    def bound_port(self) -> Optional[int]:
        """Port actually bound (differs from `port` when it was 0)."""
        if self._server is None or not self._server.sockets:
            return None
        return self._server.sockets[0].getsockname()[1]

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    def set_port(self, port: int) -> None:
        """Takes effect on the next start()."""
        self.port = port

    async def start(self, port: Optional[int] = None) -> None:
        """
        Bind and start accepting connections. No-op when already running.

        Raises:
            BindError: the port is unavailable
        """
        if self._server is not None:
            return
        if port is not None:
            self.port = port

        self._accepting = True
        try:
            server = await asyncio.start_server(self._accept, self.host, self.port)
        except OSError as e:
            self._accepting = False
            logger.error("Listener failed on %s:%d: %s", self.host, self.port, e)
            self._set_state(ListenerState.FAILED)
            raise BindError(f"Cannot bind {self.host}:{self.port}: {e}") from e

        if not self._accepting:
            # stop() ran while the socket was being bound
            server.close()
            await server.wait_closed()
            logger.info("Listener closed before it became ready")
            return

        self._server = server
        logger.info("HTTP server listening on %s:%d", self.host, self.bound_port)
        self._set_state(ListenerState.READY)

    async def stop(self) -> None:
        """Close the listener and every tracked connection. Idempotent."""
        self._accepting = False
        server, self._server = self._server, None
        if server is not None:
            server.close()

        tasks = list(self._connections)
        self._connections.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
            logger.info("Cancelled %d open connections", len(tasks))

        if server is not None:
            await server.wait_closed()
            logger.info("Listener cancelled")
            self._set_state(ListenerState.CANCELLED)

    async def restart(self) -> None:
        await self.stop()
        await self.start()

    def _accept(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        if not self._accepting:
            writer.close()
            return
        handler = ConnectionHandler(reader, writer, self.router)
        task = asyncio.get_running_loop().create_task(handler.run())
        self._connections.add(task)
        task.add_done_callback(self._connections.discard)

    def _set_state(self, state: ListenerState) -> None:
        self.state = state
        if self.on_state_change is not None:
            # Reported asynchronously, never from inside start()/stop()
            asyncio.get_running_loop().call_soon(self.on_state_change, state)
