"""Client side of the signaling protocol, shared by leaders and followers."""

import asyncio

import structlog
from websockets.asyncio.client import ClientConnection, connect
from websockets.exceptions import ConnectionClosed, InvalidHandshake, InvalidURI

from ..config import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    MAX_WAIT_FOR_SERVER_CONNECTION_SECONDS,
    SERVER_CONNECTION_POLL_INTERVAL_SECONDS,
)
from ..protocol.codes import ManagementCode, MessageType, PartyRole
from ..protocol.errors import (
    MirrorError,
    ProtocolError,
    RoleConflictError,
    SignalingServerDisconnectedError,
)
from ..protocol.messages import WireMessage, register_message

logger = structlog.get_logger()

DEFAULT_WS_ENDPOINT = f"ws://{DEFAULT_HOST}:{DEFAULT_PORT}"


class SignalingClient:
    """Registers with the signaling server and tracks the session lifecycle.

    Fatal conditions (bootstrap timeout, role conflicts, CLOSE on a client
    that does not expect it or before CONNECTION_SUCCESS, the connection
    dropping outside an announced shutdown, and PARTIES_CHANGED unless
    tolerated) are stored and surfaced from
    ``wait_for_server_connection()`` and ``wait_closed()``. They are never
    retried here.
    """

    role: PartyRole = PartyRole.FOLLOWER
    # Whether a CLOSE after CONNECTION_SUCCESS ends the session cleanly
    expects_server_close: bool = False

    def __init__(
        self,
        ws_endpoint: str = DEFAULT_WS_ENDPOINT,
        role: PartyRole | None = None,
        connection_timeout: float = MAX_WAIT_FOR_SERVER_CONNECTION_SECONDS,
        poll_interval: float = SERVER_CONNECTION_POLL_INTERVAL_SECONDS,
        tolerate_parties_changed: bool = False,
    ):
        """Initialize the client.

        Args:
            ws_endpoint: Signaling server URL.
            role: Role to register as (defaults to the class role).
            connection_timeout: Seconds to wait for CONNECTION_SUCCESS.
            poll_interval: Seconds between connection checks while waiting.
            tolerate_parties_changed: Keep going on PARTIES_CHANGED (for
                servers running in non-strict mode).
        """
        self.ws_endpoint = ws_endpoint
        self.role = role or type(self).role
        self.connection_timeout = connection_timeout
        self.poll_interval = poll_interval
        self.tolerate_parties_changed = tolerate_parties_changed

        self._connection: ClientConnection | None = None
        self._reader_task: asyncio.Task | None = None
        self._waiting_for_server_connection = True
        self._expecting_server_close = False
        self._closing = False
        self._closed = False
        self._failure: MirrorError | None = None
        self.log = logger.bind(component=self.role.value)

    # getters

    @property
    def connected(self) -> bool:
        """Whether CONNECTION_SUCCESS has been received."""
        return not self._waiting_for_server_connection

    @property
    def is_open(self) -> bool:
        return self._connection is not None and not self._closed and not self._closing

    @property
    def failure(self) -> MirrorError | None:
        return self._failure

    # lifecycle

    async def start(self) -> None:
        """Connect, register and wait until the server acknowledges us."""
        await self.connect()
        await self.wait_for_server_connection()

    async def connect(self) -> None:
        """Open the connection and send the registration frame."""
        try:
            self._connection = await connect(self.ws_endpoint)
        except (OSError, InvalidHandshake, InvalidURI) as e:
            raise SignalingServerDisconnectedError(f"cannot reach {self.ws_endpoint}: {e}") from e

        self._reader_task = asyncio.create_task(self._read_loop())
        await self.register()

    async def register(self) -> None:
        """(Re)send the registration frame for this client's role."""
        self._failure = None
        await self.send(register_message(self.role))

    async def wait_for_server_connection(self) -> None:
        """Wait for CONNECTION_SUCCESS.

        Raises:
            SignalingServerDisconnectedError: Not acknowledged within the
                connection timeout, or the connection dropped.
            RoleConflictError: The server refused the registration.
        """
        self.log.info("Waiting for signaling server connection")
        try:
            await asyncio.wait_for(
                self._poll_server_connection(),
                timeout=self.connection_timeout,
            )
        except TimeoutError:
            raise SignalingServerDisconnectedError(
                f"no CONNECTION_SUCCESS within {self.connection_timeout}s"
            )
        self.log.info("Signaling server connected")

    async def _poll_server_connection(self) -> None:
        while self._waiting_for_server_connection:
            self._raise_failure()
            await asyncio.sleep(self.poll_interval)

    async def wait_closed(self) -> None:
        """Wait for the connection to end and raise its fatal error, if any."""
        if self._reader_task is not None:
            await self._reader_task
        self._raise_failure()

    async def close(self) -> None:
        """Close the connection on our own initiative."""
        self._closing = True
        if self._connection is not None:
            await self._connection.close()

    async def send(self, message: WireMessage) -> bool:
        """Send a frame; returns False if the connection is gone."""
        if not self.is_open:
            return False
        try:
            await self._connection.send(message.to_json())
            return True
        except ConnectionClosed:
            return False

    # server messages

    async def _read_loop(self) -> None:
        try:
            async for raw in self._connection:
                try:
                    await self.process_server_message(raw)
                except SignalingServerDisconnectedError as e:
                    self._fail(e)
                    await self.close()
                except RoleConflictError as e:
                    self._fail(e)
        except ConnectionClosed:
            pass
        finally:
            self._closed = True
            if not (self._expecting_server_close or self._closing):
                self._fail(SignalingServerDisconnectedError("connection closed by server"))

    async def process_server_message(self, raw: str | bytes) -> None:
        """Route one frame received from the signaling server."""
        try:
            message = WireMessage.from_json(raw)
        except ProtocolError as e:
            self.log.warning("Malformed frame from server", error=str(e))
            return

        if message.type == MessageType.MANAGEMENT.value:
            await self.process_management_message(message.code)
        elif message.type == MessageType.ERROR.value:
            self.process_server_error(message.code)
        elif message.type == MessageType.LEADER_CHANGE.value:
            await self.on_leader_change(message.data)
        else:
            self.log.debug("Ignoring message", type=message.type)

    async def process_management_message(self, code: str | None) -> None:
        """Handle a management code.

        Raises:
            SignalingServerDisconnectedError: On PARTIES_CHANGED, unless
                tolerated, and on CLOSE unless this client expects it.
        """
        self.log.debug("Management message", code=code)
        if code == ManagementCode.CONNECTION_SUCCESS.value:
            self._waiting_for_server_connection = False
        elif code == ManagementCode.PARTIES_CHANGED.value:
            if not self.tolerate_parties_changed:
                raise SignalingServerDisconnectedError("parties changed")
            self.log.warning("Session parties changed")
        elif code == ManagementCode.CLOSE.value:
            if self._waiting_for_server_connection or not self.expects_server_close:
                raise SignalingServerDisconnectedError("server closed the session")
            self._expecting_server_close = True
            await self.on_server_close()
        else:
            self.log.warning("Unknown management code", code=code)

    def process_server_error(self, code: str | None) -> None:
        """Turn an ``error`` frame into the matching role conflict.

        Raises:
            RoleConflictError: For the four role conflict codes.
            SignalingServerDisconnectedError: For any other code.
        """
        try:
            error = RoleConflictError.from_code(code)
        except ProtocolError:
            raise SignalingServerDisconnectedError(f"server error {code}") from None
        raise error

    async def on_leader_change(self, data: dict) -> None:
        """Called for each relayed change; only followers act on it."""
        self.log.debug("Ignoring relayed change")

    async def on_server_close(self) -> None:
        """Called when the server announces its shutdown."""
        self.log.info("Signaling server closing the session")
        await self.close()

    def _fail(self, error: MirrorError) -> None:
        if self._failure is None:
            self._failure = error
            self.log.error("Signaling session failed", error=str(error))

    def _raise_failure(self) -> None:
        if self._failure is not None:
            raise self._failure
