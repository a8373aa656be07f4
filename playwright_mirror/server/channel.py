"""Connection handles held by the session.

A ``PartyChannel`` is the server's view of one client connection: it can
send frames, be closed, and notifies registered handlers about incoming
frames and about the connection closing. The websockets adapter is the
production implementation; tests use an in-memory one.
"""

import itertools
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable

import structlog
from websockets.asyncio.server import ServerConnection
from websockets.exceptions import ConnectionClosed

from ..protocol.messages import WireMessage

logger = structlog.get_logger()

MessageHandler = Callable[[WireMessage], Awaitable[None]]
CloseHandler = Callable[[], Awaitable[None]]

_channel_ids = itertools.count(1)


class PartyChannel(ABC):
    """A bidirectional connection to one party."""

    def __init__(self):
        self.channel_id = next(_channel_ids)
        self._message_handlers: list[MessageHandler] = []
        self._close_handlers: list[CloseHandler] = []
        self._closed = False
        self._close_dispatched = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def remote_address(self) -> str | None:
        return None

    @abstractmethod
    async def _send_text(self, text: str) -> None:
        """Write one text frame to the transport."""

    @abstractmethod
    async def _close_transport(self) -> None:
        """Close the underlying transport."""

    def on_message(self, handler: MessageHandler) -> None:
        self._message_handlers.append(handler)

    def on_close(self, handler: CloseHandler) -> None:
        self._close_handlers.append(handler)

    async def send(self, message: WireMessage) -> bool:
        """Send a frame, best effort.

        Returns:
            False if the connection was already closed.
        """
        if self._closed:
            return False
        try:
            await self._send_text(message.to_json())
            return True
        except ConnectionClosed:
            logger.debug(
                "Dropped frame for closed connection",
                channel_id=self.channel_id,
                type=message.type,
            )
            return False

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        await self._close_transport()

    async def dispatch_message(self, message: WireMessage) -> None:
        """Hand an incoming frame to the installed message handlers."""
        for handler in list(self._message_handlers):
            await handler(message)

    async def dispatch_close(self) -> None:
        """Run the close handlers; only the first call has an effect."""
        self._closed = True
        if self._close_dispatched:
            return
        self._close_dispatched = True
        for handler in list(self._close_handlers):
            await handler()


class WebSocketChannel(PartyChannel):
    """``PartyChannel`` backed by a websockets server connection."""

    def __init__(self, connection: ServerConnection):
        super().__init__()
        self.connection = connection

    @property
    def remote_address(self) -> str | None:
        address = self.connection.remote_address
        if not address:
            return None
        return f"{address[0]}:{address[1]}"

    async def _send_text(self, text: str) -> None:
        await self.connection.send(text)

    async def _close_transport(self) -> None:
        await self.connection.close()
