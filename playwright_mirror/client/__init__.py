"""Leader and follower clients of the signaling server."""

from .applier import ApplyResult, ChangeApplier, PlaywrightChangeApplier
from .base import DEFAULT_WS_ENDPOINT, SignalingClient
from .dispatcher import ChangeDispatcher
from .follower import FollowerClient
from .leader import LeaderClient
from .sources import ChangeSource, JsonlChangeSource, QueueChangeSource

__all__ = [
    "DEFAULT_WS_ENDPOINT",
    "ApplyResult",
    "ChangeApplier",
    "ChangeDispatcher",
    "ChangeSource",
    "FollowerClient",
    "JsonlChangeSource",
    "LeaderClient",
    "PlaywrightChangeApplier",
    "QueueChangeSource",
    "SignalingClient",
]
