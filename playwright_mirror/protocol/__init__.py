"""Signaling protocol shared by the server, the leader and the followers."""

from .changes import (
    BaseAction,
    Change,
    ClickAction,
    FillAction,
    FrameDescription,
    GenericAction,
    NavigateAction,
    Signal,
    navigate_change,
)
from .codes import ErrorCode, ManagementCode, MessageType, PartyRole
from .errors import (
    FollowerAlreadyConnectedError,
    FollowerCannotBeLeaderError,
    LeaderAlreadyConnectedError,
    LeaderCannotBeFollowerError,
    MirrorError,
    ProtocolError,
    RecordingError,
    RoleConflictError,
    SignalingServerDisconnectedError,
)
from .messages import (
    WireMessage,
    change_message,
    error_message,
    leader_change_message,
    management_message,
    register_message,
)

__all__ = [
    # Changes
    "BaseAction",
    "Change",
    "ClickAction",
    "FillAction",
    "FrameDescription",
    "GenericAction",
    "NavigateAction",
    "Signal",
    "navigate_change",
    # Codes
    "ErrorCode",
    "ManagementCode",
    "MessageType",
    "PartyRole",
    # Errors
    "MirrorError",
    "ProtocolError",
    "RecordingError",
    "RoleConflictError",
    "LeaderAlreadyConnectedError",
    "LeaderCannotBeFollowerError",
    "FollowerAlreadyConnectedError",
    "FollowerCannotBeLeaderError",
    "SignalingServerDisconnectedError",
    # Messages
    "WireMessage",
    "change_message",
    "error_message",
    "leader_change_message",
    "management_message",
    "register_message",
]
