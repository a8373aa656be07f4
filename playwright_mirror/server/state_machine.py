"""Session state machine.

Derives the session state from registry changes and drives the lifecycle
broadcasts:

    WAITING_FOR_PARTIES --quorum met--> ACTIVE --party change--> COMPROMISED
    COMPROMISED --strict--> restart --> WAITING_FOR_PARTIES
    COMPROMISED --non-strict, next registration--> re-evaluated

All mutations of the session happen here, serialized by one asyncio lock,
so connection callbacks observe them one at a time.
"""

import asyncio
from collections.abc import Iterable

import structlog

from ..protocol.codes import ManagementCode, PartyRole
from ..protocol.errors import RoleConflictError
from ..protocol.messages import WireMessage, error_message, management_message
from .channel import PartyChannel
from .events import SessionEventBus, SessionEventType
from .registry import PartyRegistry
from .relay import ChangeRelay
from .session import Party, Session, SessionState

logger = structlog.get_logger()


class SessionStateMachine:
    """Owns the session and applies the coordination rules."""

    def __init__(
        self,
        expected_followers: int = 1,
        strict: bool = True,
        blocked_actions: Iterable[str] = (),
        events: SessionEventBus | None = None,
    ):
        """Initialize the state machine.

        Args:
            expected_followers: Quorum of followers needed with a leader.
            strict: Restart the whole session on compromise.
            blocked_actions: Leader action names the relay drops.
            events: Event bus to emit lifecycle events into.
        """
        if expected_followers < 0:
            raise ValueError("expected_followers must be >= 0")

        self.session = Session(expected_follower_count=expected_followers, strict=strict)
        self.events = events or SessionEventBus()
        self.registry = PartyRegistry(self.session, on_party_closed=self.handle_disconnect)
        self.relay = ChangeRelay(self.session, self.events, blocked_actions)
        self._lock = asyncio.Lock()
        self.log = logger.bind(component="session")

    @property
    def state(self) -> SessionState:
        return self.session.state

    # =========================================================================
    # Registration
    # =========================================================================

    async def register(self, channel: PartyChannel, role: PartyRole) -> Party | None:
        """Register ``channel`` under ``role``.

        Role conflicts are reported to the connection as an ``error`` frame
        and never raised to the caller.

        Returns:
            The new party, or None if the registration was refused.
        """
        async with self._lock:
            try:
                if role == PartyRole.LEADER:
                    return await self._register_leader(channel)
                return await self._register_follower(channel)
            except RoleConflictError as e:
                await self._reject(channel, e)
                return None

    async def _register_leader(self, channel: PartyChannel) -> Party:
        party = self.registry.register_leader(channel)
        self.events.emit(SessionEventType.LEADER_CONNECTED, {"id": party.id})
        self.relay.attach(party)

        await self._evaluate()
        return party

    async def _register_follower(self, channel: PartyChannel) -> Party:
        self.registry.check_follower(channel)

        # Late joiner: tell everyone before the new follower is merged in
        if self.session.state == SessionState.ACTIVE:
            await self._compromise(reason="late_joiner")

        party = self.registry.register_follower(channel)
        self.events.emit(SessionEventType.FOLLOWER_CONNECTED, {"id": party.id})
        await channel.send(management_message(ManagementCode.CONNECTION_SUCCESS))

        await self._evaluate()
        return party

    async def _reject(self, channel: PartyChannel, error: RoleConflictError) -> None:
        self.log.warning(
            "Registration refused",
            code=error.code.value,
            channel_id=channel.channel_id,
        )
        await channel.send(error_message(error.code))
        if error.fatal:
            await channel.close()

    # =========================================================================
    # Quorum
    # =========================================================================

    async def _evaluate(self) -> None:
        """Re-evaluate quorum after a successful registration."""
        if not self.session.quorum_met:
            self.session.state = SessionState.WAITING_FOR_PARTIES
            return

        if self.session.state == SessionState.ACTIVE:
            return

        self.session.state = SessionState.ACTIVE
        await self.session.leader.channel.send(
            management_message(ManagementCode.CONNECTION_SUCCESS)
        )
        self.log.info(
            "Session started",
            leader=self.session.leader.id,
            followers=len(self.session.followers),
        )
        self.events.emit(
            SessionEventType.SESSION_STARTED,
            {
                "leader": self.session.leader.id,
                "followers": [f.id for f in self.session.followers],
            },
        )

    # =========================================================================
    # Disconnects and compromise
    # =========================================================================

    async def handle_disconnect(self, party: Party) -> None:
        """Deregistration callback for a closed connection."""
        async with self._lock:
            # Parties dropped by a restart close afterwards; nothing left to do
            if not self.registry.deregister(party):
                return

            if party.role == PartyRole.LEADER:
                self.events.emit(SessionEventType.LEADER_DISCONNECTED, {"id": party.id})
                reason = "leader_disconnected"
            else:
                self.events.emit(SessionEventType.FOLLOWER_DISCONNECTED, {"id": party.id})
                reason = "follower_disconnected"

            await self._compromise(reason=reason)

    async def _compromise(self, reason: str) -> None:
        self.session.state = SessionState.COMPROMISED
        self.log.error("Mirroring session compromised", reason=reason)

        await self._broadcast(management_message(ManagementCode.PARTIES_CHANGED))
        self.events.emit(
            SessionEventType.SESSION_COMPROMISED,
            {
                "reason": reason,
                "leader_connected": self.session.leader is not None,
                "follower_connected": len(self.session.followers) > 0,
            },
        )

        if self.session.strict:
            await self._restart()

    async def _restart(self) -> None:
        parties = self.session.parties
        self.session.clear()
        for party in parties:
            await party.channel.close()
        self.log.info("Session restarted", closed=len(parties))

    async def restart(self) -> None:
        """Close every connection and wait for a new set of parties."""
        async with self._lock:
            await self._restart()

    async def shutdown(self) -> None:
        """Broadcast CLOSE, then close every connection."""
        async with self._lock:
            await self._broadcast(management_message(ManagementCode.CLOSE))
            await self._restart()

    async def _broadcast(self, message: WireMessage) -> None:
        for party in self.session.parties:
            await party.channel.send(message)
