"""Signaling server for mirroring sessions.

Accepts leader and follower connections over WebSocket, hands registration
frames to the session state machine and leader frames to the change relay.

Architecture:
    Leader (recorder) ←→ Signaling Server ←→ Followers (appliers)

Usage:
    server = SignalingServer(port=8080, expected_followers=2)
    await server.serve_forever()
"""

import asyncio
import signal
from collections.abc import Iterable

import structlog
from websockets.asyncio.server import Server, ServerConnection, serve
from websockets.exceptions import ConnectionClosed

from ..config import DEFAULT_HOST, DEFAULT_PORT, MirrorSettings
from ..protocol.codes import MessageType, PartyRole
from ..protocol.errors import ProtocolError
from ..protocol.messages import WireMessage
from ..utils.logging import LogContext
from .channel import PartyChannel, WebSocketChannel
from .events import SessionEventBus
from .session import Party, Session
from .state_machine import SessionStateMachine

logger = structlog.get_logger()


class SignalingServer:
    """WebSocket front end of one mirroring session."""

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        expected_followers: int = 1,
        strict: bool = True,
        blocked_actions: Iterable[str] = (),
        events: SessionEventBus | None = None,
    ):
        """Initialize the signaling server.

        Args:
            host: Bind host.
            port: Bind port (0 picks an ephemeral port).
            expected_followers: Followers required to start the session.
            strict: Restart the session whenever it is compromised.
            blocked_actions: Leader action names that are not relayed.
            events: Event bus for lifecycle events (created if omitted).
        """
        self.host = host
        self._port = port
        self.state_machine = SessionStateMachine(
            expected_followers=expected_followers,
            strict=strict,
            blocked_actions=blocked_actions,
            events=events,
        )
        self._server: Server | None = None
        self._stopped = asyncio.Event()
        self._shutdown_task: asyncio.Task | None = None
        self.log = logger.bind(component="signaling_server")

    @classmethod
    def from_settings(cls, settings: MirrorSettings, **kwargs) -> "SignalingServer":
        return cls(
            host=settings.host,
            port=settings.port,
            expected_followers=settings.expected_followers,
            strict=settings.strict,
            blocked_actions=settings.blocked_actions,
            **kwargs,
        )

    # getters

    @property
    def events(self) -> SessionEventBus:
        return self.state_machine.events

    @property
    def session(self) -> Session:
        return self.state_machine.session

    @property
    def leader(self) -> Party | None:
        return self.session.leader

    @property
    def followers(self) -> list[Party]:
        return list(self.session.followers)

    @property
    def is_running(self) -> bool:
        return self._server is not None and not self._stopped.is_set()

    @property
    def port(self) -> int:
        """The bound port (useful when started on port 0)."""
        if self._server is not None:
            for sock in self._server.sockets:
                return sock.getsockname()[1]
        return self._port

    @property
    def url(self) -> str:
        return f"ws://{self.host}:{self.port}"

    def is_leader_connected(self) -> bool:
        return self.session.leader is not None

    def is_follower_connected(self) -> bool:
        return len(self.session.followers) > 0

    # lifecycle

    async def start(self) -> None:
        """Start listening for connections."""
        self._stopped.clear()
        self._shutdown_task = None
        self._server = await serve(self._handle_connection, self.host, self._port)
        self.log.info("Signaling server started", url=self.url)

    async def stop(self) -> None:
        """Broadcast CLOSE to every party, then stop listening."""
        if self._server is None or self._stopped.is_set():
            return

        self._stopped.set()
        await self.state_machine.shutdown()
        self._server.close()
        await self._server.wait_closed()
        self.log.info("Signaling server stopped")

    async def serve_forever(self) -> None:
        """Run until ``stop()`` is called or SIGINT/SIGTERM is received."""
        if self._server is None:
            await self.start()
        self.install_signal_handlers()
        await self._stopped.wait()

    def install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, self.request_shutdown)

    def request_shutdown(self) -> asyncio.Task:
        """Schedule ``stop()`` from a signal handler; later calls reuse the task."""
        if self._shutdown_task is None:
            self._shutdown_task = asyncio.create_task(self.stop())
        return self._shutdown_task

    async def __aenter__(self) -> "SignalingServer":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    # connections

    async def _handle_connection(self, connection: ServerConnection) -> None:
        """Serve one client connection until it closes."""
        channel = WebSocketChannel(connection)

        with LogContext(channel_id=channel.channel_id):
            self.log.debug("Connection opened", remote=channel.remote_address)
            try:
                async for raw in connection:
                    await self.handle_frame(channel, raw)
            except ConnectionClosed as e:
                self.log.info("Connection closed abnormally", code=e.rcvd.code if e.rcvd else None)
            except Exception as e:
                self.log.error("Connection error", error=str(e))
            finally:
                await channel.dispatch_close()
                self.log.debug("Connection closed")

    async def handle_frame(self, channel: PartyChannel, raw: str | bytes) -> None:
        """Route one incoming frame."""
        try:
            message = WireMessage.from_json(raw)
        except ProtocolError as e:
            self.log.warning("Malformed frame", error=str(e))
            return

        if message.type == MessageType.REGISTER.value:
            role = self._parse_role(message)
            if role is None:
                self.log.warning("Unknown registration role", data=message.data)
                return
            await self.state_machine.register(channel, role)
            return

        if message.type != MessageType.CHANGE.value:
            self.log.warning("Unknown message type", type=message.type)
            return

        await channel.dispatch_message(message)

    @staticmethod
    def _parse_role(message: WireMessage) -> PartyRole | None:
        if not isinstance(message.data, dict):
            return None
        try:
            return PartyRole(message.data.get("type"))
        except ValueError:
            return None
