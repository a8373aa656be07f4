"""Change relay: fans the leader's recorded actions out to every follower."""

from collections.abc import Iterable

import structlog

from ..protocol.codes import MessageType
from ..protocol.messages import WireMessage, leader_change_message
from .events import SessionEventBus, SessionEventType
from .session import Party, Session

logger = structlog.get_logger()


class ChangeRelay:
    """Forwards ``change`` frames from the leader to the followers.

    Delivery is at-most-once per follower, in follower join order, without
    acknowledgement or retry. The relay only reads the follower set; it
    never mutates the session.
    """

    def __init__(
        self,
        session: Session,
        events: SessionEventBus,
        blocked_actions: Iterable[str] = (),
    ):
        self.session = session
        self.events = events
        self.blocked_actions = frozenset(blocked_actions)
        self.log = logger.bind(component="relay")

    def attach(self, leader: Party) -> None:
        """Install the change handler on the leader's connection."""

        async def on_message(message: WireMessage) -> None:
            # A connection that lost the leader slot no longer drives followers
            if self.session.leader is not leader:
                return
            if message.type == MessageType.CHANGE.value:
                await self.relay(message.data)

        leader.channel.on_message(on_message)

    def is_blocked(self, change: dict) -> bool:
        return self.action_name(change) in self.blocked_actions

    @staticmethod
    def action_name(change: dict) -> str | None:
        if not isinstance(change, dict):
            return None
        action = change.get("action")
        if not isinstance(action, dict):
            return None
        return action.get("name")

    async def relay(self, change: dict) -> int:
        """Forward ``change`` verbatim to every follower.

        Returns:
            Number of followers the frame was written to.
        """
        if self.is_blocked(change):
            self.log.info("Blocked action", action=self.action_name(change))
            return 0

        self.events.emit(SessionEventType.LEADER_ACTION, change)

        message = leader_change_message(change)
        delivered = 0
        for follower in list(self.session.followers):
            if await follower.channel.send(message):
                delivered += 1

        self.log.debug(
            "Relayed change",
            action=self.action_name(change),
            delivered=delivered,
        )
        return delivered
