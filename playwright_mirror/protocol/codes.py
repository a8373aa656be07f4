"""Enumerations shared by both ends of the signaling protocol."""

from enum import Enum


class MessageType(str, Enum):
    """Frame types exchanged with the signaling server."""

    REGISTER = "register"
    CHANGE = "change"
    MANAGEMENT = "management"
    ERROR = "error"
    LEADER_CHANGE = "leaderChange"


class PartyRole(str, Enum):
    """Role a connection asks for when registering."""

    LEADER = "leader"
    FOLLOWER = "follower"


class ManagementCode(str, Enum):
    """Session lifecycle codes sent by the server."""

    CONNECTION_SUCCESS = "CONNECTION_SUCCESS"
    PARTIES_CHANGED = "PARTIES_CHANGED"
    CLOSE = "CLOSE"


class ErrorCode(str, Enum):
    """Role conflict codes sent by the server."""

    LEADER_ALREADY_CONNECTED = "LEADER_ALREADY_CONNECTED"
    LEADER_CANNOT_BE_FOLLOWER = "LEADER_CANNOT_BE_FOLLOWER"
    FOLLOWER_ALREADY_CONNECTED = "FOLLOWER_ALREADY_CONNECTED"
    FOLLOWER_CANNOT_BE_LEADER = "FOLLOWER_CANNOT_BE_LEADER"
