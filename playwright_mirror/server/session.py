"""Session data model: the leader slot, the follower set and the session state."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from ..protocol.codes import PartyRole
from .channel import PartyChannel


class SessionState(str, Enum):
    """Lifecycle of a mirroring session."""

    WAITING_FOR_PARTIES = "waiting_for_parties"
    ACTIVE = "active"
    COMPROMISED = "compromised"


def new_party_id() -> str:
    return uuid4().hex[:8]


@dataclass(eq=False)
class Party:
    """A registered connection and the role it holds."""

    channel: PartyChannel
    role: PartyRole
    id: str = field(default_factory=new_party_id)
    connected_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "role": self.role.value,
            "connected_at": self.connected_at.isoformat(),
            "remote_address": self.channel.remote_address,
        }


@dataclass
class Session:
    """The single mirroring session owned by a server instance.

    Invariants:
    - the leader is never also a follower
    - no two followers share a connection
    - ``state`` is ACTIVE only while ``quorum_met`` holds
    """

    expected_follower_count: int = 1
    strict: bool = True
    leader: Optional[Party] = None
    followers: list[Party] = field(default_factory=list)
    state: SessionState = SessionState.WAITING_FOR_PARTIES

    @property
    def quorum_met(self) -> bool:
        """Leader present and at least the expected number of followers."""
        if self.leader is None:
            return False
        return len(self.followers) >= self.expected_follower_count

    @property
    def parties(self) -> list[Party]:
        """Every registered party, leader first, followers in join order."""
        if self.leader is None:
            return list(self.followers)
        return [self.leader, *self.followers]

    def is_leader(self, channel: PartyChannel) -> bool:
        return self.leader is not None and self.leader.channel is channel

    def find_follower(self, channel: PartyChannel) -> Optional[Party]:
        for follower in self.followers:
            if follower.channel is channel:
                return follower
        return None

    def holds(self, party: Party) -> bool:
        """Whether ``party`` (this exact object) is still registered."""
        return party is self.leader or any(f is party for f in self.followers)

    def remove(self, party: Party) -> bool:
        """Drop ``party`` from its slot; returns False if it was not registered."""
        if party is self.leader:
            self.leader = None
            return True
        for index, follower in enumerate(self.followers):
            if follower is party:
                del self.followers[index]
                return True
        return False

    def clear(self) -> None:
        self.leader = None
        self.followers = []
        self.state = SessionState.WAITING_FOR_PARTIES

    def to_dict(self) -> dict:
        return {
            "state": self.state.value,
            "strict": self.strict,
            "expected_follower_count": self.expected_follower_count,
            "leader": self.leader.to_dict() if self.leader else None,
            "followers": [f.to_dict() for f in self.followers],
        }
