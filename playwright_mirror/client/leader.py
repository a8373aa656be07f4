"""Leader client: publishes recorded changes to the signaling server."""

from ..config import MirrorSettings, SIGNAL_NAVIGATION_DELAY_MS
from ..protocol.changes import Change
from ..protocol.codes import PartyRole
from .base import DEFAULT_WS_ENDPOINT, SignalingClient
from .dispatcher import ChangeDispatcher
from .sources import ChangeSource


class LeaderClient(SignalingClient):
    """The party whose browser is the source of truth.

    Usage:
        leader = LeaderClient("ws://127.0.0.1:8080")
        await leader.start()
        await leader.mirror(JsonlChangeSource("recording.jsonl"))
        await leader.close()
    """

    role = PartyRole.LEADER

    def __init__(
        self,
        ws_endpoint: str = DEFAULT_WS_ENDPOINT,
        navigation_delay: float = SIGNAL_NAVIGATION_DELAY_MS / 1000,
        **kwargs,
    ):
        super().__init__(ws_endpoint, **kwargs)
        self.dispatcher = ChangeDispatcher(self, navigation_delay)

    @classmethod
    def from_settings(cls, settings: MirrorSettings, **kwargs) -> "LeaderClient":
        return cls(
            ws_endpoint=settings.ws_endpoint,
            navigation_delay=settings.navigation_signal_delay_ms / 1000,
            connection_timeout=settings.connection_timeout_seconds,
            poll_interval=settings.connection_poll_interval_seconds,
            tolerate_parties_changed=not settings.strict,
            **kwargs,
        )

    async def send_change(self, change: Change | None) -> bool:
        return await self.dispatcher.send_change(change)

    async def mirror(self, source: ChangeSource) -> int:
        """Dispatch every change from ``source``.

        Stops early if the session fails; the failure is raised.

        Returns:
            Number of changes written to the server.
        """
        sent = 0
        async for change in source.changes():
            self._raise_failure()
            if await self.send_change(change):
                sent += 1

        await self.dispatcher.drain()
        self._raise_failure()
        self.log.info("Recording mirrored", sent=sent)
        return sent

    async def close(self) -> None:
        self.dispatcher.cancel_pending()
        await super().close()
