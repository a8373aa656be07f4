"""Party registry: who holds the leader slot and who follows."""

from collections.abc import Awaitable, Callable

import structlog

from ..protocol.codes import PartyRole
from ..protocol.errors import (
    FollowerAlreadyConnectedError,
    FollowerCannotBeLeaderError,
    LeaderAlreadyConnectedError,
    LeaderCannotBeFollowerError,
)
from .channel import PartyChannel
from .session import Party, Session

logger = structlog.get_logger()

PartyClosedCallback = Callable[[Party], Awaitable[None]]


class PartyRegistry:
    """Enforces role exclusivity on the session's leader slot and follower set.

    On every successful registration the registry mints an opaque id and
    hooks ``on_party_closed`` to the connection's close event, so a party
    deregisters itself when its connection goes away.
    """

    def __init__(self, session: Session, on_party_closed: PartyClosedCallback):
        self.session = session
        self._on_party_closed = on_party_closed
        self.log = logger.bind(component="registry")

    def check_leader(self, channel: PartyChannel) -> None:
        """Raise if ``channel`` may not become the leader.

        Raises:
            LeaderAlreadyConnectedError: A leader is already registered.
            FollowerCannotBeLeaderError: The connection is a follower.
        """
        if self.session.leader is not None:
            raise LeaderAlreadyConnectedError()
        if self.session.find_follower(channel) is not None:
            raise FollowerCannotBeLeaderError()

    def check_follower(self, channel: PartyChannel) -> None:
        """Raise if ``channel`` may not become a follower.

        Raises:
            LeaderCannotBeFollowerError: The connection is the leader.
            FollowerAlreadyConnectedError: The connection already follows.
        """
        if self.session.is_leader(channel):
            raise LeaderCannotBeFollowerError()
        if self.session.find_follower(channel) is not None:
            raise FollowerAlreadyConnectedError()

    def register_leader(self, channel: PartyChannel) -> Party:
        self.check_leader(channel)

        party = Party(channel=channel, role=PartyRole.LEADER)
        self.session.leader = party
        self._watch(party)

        self.log.info("Leader connected", party_id=party.id)
        return party

    def register_follower(self, channel: PartyChannel) -> Party:
        self.check_follower(channel)

        party = Party(channel=channel, role=PartyRole.FOLLOWER)
        self.session.followers.append(party)
        self._watch(party)

        self.log.info(
            "Follower connected",
            party_id=party.id,
            followers=len(self.session.followers),
        )
        return party

    def deregister(self, party: Party) -> bool:
        """Remove ``party`` if it is still registered."""
        removed = self.session.remove(party)
        if removed:
            self.log.info(
                "Party disconnected",
                party_id=party.id,
                role=party.role.value,
            )
        return removed

    def _watch(self, party: Party) -> None:
        async def closed() -> None:
            await self._on_party_closed(party)

        party.channel.on_close(closed)
