"""Follower client: replays the leader's changes as they are relayed."""

from collections.abc import Awaitable, Callable
from typing import Optional

from pydantic import ValidationError

from ..config import MirrorSettings
from ..protocol.changes import Change
from ..protocol.codes import PartyRole
from .applier import ApplyResult, ChangeApplier
from .base import DEFAULT_WS_ENDPOINT, SignalingClient


class FollowerClient(SignalingClient):
    """A party that mirrors the leader.

    Changes are applied one at a time in arrival order. Once stopping,
    further changes are ignored. A ``CLOSE`` from the server is an expected
    shutdown once the session has started: ``on_stop`` runs and the
    connection is closed.
    """

    role = PartyRole.FOLLOWER
    expects_server_close = True

    def __init__(
        self,
        applier: ChangeApplier,
        ws_endpoint: str = DEFAULT_WS_ENDPOINT,
        on_stop: Optional[Callable[[], Awaitable[None]]] = None,
        **kwargs,
    ):
        super().__init__(ws_endpoint, **kwargs)
        self.applier = applier
        self.on_stop = on_stop
        self.results: list[ApplyResult] = []
        self._stopping = False

    @classmethod
    def from_settings(
        cls, settings: MirrorSettings, applier: ChangeApplier, **kwargs
    ) -> "FollowerClient":
        return cls(
            applier,
            ws_endpoint=settings.ws_endpoint,
            connection_timeout=settings.connection_timeout_seconds,
            poll_interval=settings.connection_poll_interval_seconds,
            tolerate_parties_changed=not settings.strict,
            **kwargs,
        )

    @property
    def stopping(self) -> bool:
        return self._stopping

    async def on_leader_change(self, data: dict) -> None:
        if self._stopping:
            return

        try:
            change = Change.from_wire(data)
        except ValidationError as e:
            self.log.warning("Invalid change from leader", error=str(e))
            return

        self.log.info("Leader changed", action=change.name)
        result = await self.applier.apply_change(change)
        self.results.append(result)
        if not result.success:
            self.log.warning("Failed to apply change", action=result.action, error=result.error)

    async def on_server_close(self) -> None:
        await self.stop()

    async def stop(self) -> None:
        """Stop applying changes, run ``on_stop`` and close the connection."""
        if self._stopping:
            return
        self._stopping = True
        self.log.info("Follower stopping")
        if self.on_stop is not None:
            await self.on_stop()
        await self.close()
