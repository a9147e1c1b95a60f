"""
Per-connection request assembly.

Each accepted socket gets its own ConnectionHandler. It buffers bytes
until one complete request is framed, hands it to the router, writes the
single response and closes the socket. There is no keep-alive.

    AWAITING_HEADERS -> AWAITING_BODY -> COMPLETE
            \\                 \\
             +-> ABORTED <-----+   (transport error or malformed input)
"""

import asyncio
import logging
from enum import Enum
from typing import Optional

from .errors import MalformedRequest
from .wire import (
    HEADER_TERMINATOR,
    HTTPRequest,
    HTTPResponse,
    declared_content_length,
    parse_request_head,
    text_response,
)

logger = logging.getLogger(__name__)

READ_CHUNK_SIZE = 64 * 1024


class ConnectionState(Enum):
    AWAITING_HEADERS = "awaiting_headers"
    AWAITING_BODY = "awaiting_body"
    COMPLETE = "complete"
    ABORTED = "aborted"


class RequestFramer:
    """Incrementally frames one HTTP request out of a byte stream."""

    def __init__(self):
        self.state = ConnectionState.AWAITING_HEADERS
        self._buffer = bytearray()
        self._method = ""
        self._path = ""
        self._headers: dict[str, str] = {}
        self._body_start = 0
        self._content_length: Optional[int] = None

    def feed(self, data: bytes) -> Optional[HTTPRequest]:
        """
        Append a chunk and try to frame the request.

        Returns the request once it is complete, None while more bytes
        are needed.

        Raises:
            MalformedRequest: the request line or Content-Length is invalid
        """
        if self.state in (ConnectionState.COMPLETE, ConnectionState.ABORTED):
            return None
        if data:
            self._buffer.extend(data)

        try:
            if self.state is ConnectionState.AWAITING_HEADERS and not self._parse_head():
                return None
        except MalformedRequest:
            self.state = ConnectionState.ABORTED
            raise

        available = len(self._buffer) - self._body_start
        # Without Content-Length whatever has arrived so far is the body, even
        # when more bytes are still in flight.
        expected = self._content_length if self._content_length is not None else available
        if available < expected:
            return None

        body = bytes(self._buffer[self._body_start:self._body_start + expected])
        del self._buffer[:self._body_start + expected]
        self.state = ConnectionState.COMPLETE
        return HTTPRequest(method=self._method, path=self._path, headers=self._headers, body=body)

    def _parse_head(self) -> bool:
        end = self._buffer.find(HEADER_TERMINATOR)
        if end < 0:
            return False
        self._method, self._path, self._headers = parse_request_head(bytes(self._buffer[:end]))
        self._content_length = declared_content_length(self._headers)
        self._body_start = end + len(HEADER_TERMINATOR)
        self.state = ConnectionState.AWAITING_BODY
        return True


class ConnectionHandler:
    """Serves exactly one request on one accepted connection."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter, router):
        self.reader = reader
        self.writer = writer
        self.router = router
        self.framer = RequestFramer()
        self.peer = writer.get_extra_info("peername")

    async def run(self) -> None:
        try:
            request = await self.read_request()
            if request is None:
                response = text_response(400, "Bad Request")
            else:
                response = await self.dispatch(request)
            await self.send(response)
        except (ConnectionError, OSError) as e:
            logger.debug("Connection %s dropped: %s", self.peer, e)
        finally:
            await self.close()

    async def read_request(self) -> Optional[HTTPRequest]:
        """Read until one request is framed; None when it never will be."""
        while True:
            try:
                data = await self.reader.read(READ_CHUNK_SIZE)
            except (ConnectionError, OSError) as e:
                logger.debug("Read error from %s: %s", self.peer, e)
                data = b""
            ended = not data

            try:
                request = self.framer.feed(data)
            except MalformedRequest as e:
                logger.warning("Malformed request from %s: %s", self.peer, e)
                return None

            if request is not None:
                return request
            if ended:
                self.framer.state = ConnectionState.ABORTED
                logger.warning("Failed to parse full HTTP request before connection ended (%s)", self.peer)
                return None

    async def dispatch(self, request: HTTPRequest) -> HTTPResponse:
        logger.debug("%s %s from %s (%d body bytes)", request.method, request.path, self.peer, len(request.body))
        try:
            return await self.router.handle(request)
        except Exception as e:
            logger.error("Unhandled error for %s %s: %s", request.method, request.path, e, exc_info=True)
            return text_response(500, "Internal Server Error")

    async def send(self, response: HTTPResponse) -> None:
        self.writer.write(response.serialize())
        await self.writer.drain()

    async def close(self) -> None:
        if self.writer.is_closing():
            return
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except (ConnectionError, OSError) as e:
            logger.debug("Error closing connection %s: %s", self.peer, e)
