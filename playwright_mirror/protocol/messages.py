"""Wire vocabulary for the signaling protocol.

Every frame is a JSON text message of the shape ``{"type": ..., "data": ...}``:

    client -> server   register      {"type": "leader" | "follower"}
    leader -> server   change        Change
    server -> client   management    {"code": ManagementCode}
    server -> client   error         {"code": ErrorCode}
    server -> follower leaderChange  Change
"""

import json
from dataclasses import dataclass
from typing import Any

from .codes import ErrorCode, ManagementCode, MessageType, PartyRole
from .errors import ProtocolError


@dataclass
class WireMessage:
    """A single protocol frame."""

    type: str
    data: Any = None

    def to_dict(self) -> dict:
        return {"type": self.type, "data": self.data}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, raw: str | bytes) -> "WireMessage":
        """Parse a frame.

        Raises:
            ProtocolError: If the frame is not a JSON object with a string type.
        """
        try:
            payload = json.loads(raw)
        except (TypeError, ValueError) as e:
            raise ProtocolError(f"Frame is not valid JSON: {e}") from e

        if not isinstance(payload, dict) or not isinstance(payload.get("type"), str):
            raise ProtocolError("Frame must be an object with a string 'type'")

        return cls(type=payload["type"], data=payload.get("data"))

    @property
    def code(self) -> str | None:
        """The ``data.code`` of management and error frames."""
        if isinstance(self.data, dict):
            return self.data.get("code")
        return None


def register_message(role: PartyRole) -> WireMessage:
    return WireMessage(type=MessageType.REGISTER.value, data={"type": role.value})


def change_message(change: dict) -> WireMessage:
    return WireMessage(type=MessageType.CHANGE.value, data=change)


def leader_change_message(change: dict) -> WireMessage:
    return WireMessage(type=MessageType.LEADER_CHANGE.value, data=change)


def management_message(code: ManagementCode) -> WireMessage:
    return WireMessage(type=MessageType.MANAGEMENT.value, data={"code": code.value})


def error_message(code: ErrorCode) -> WireMessage:
    return WireMessage(type=MessageType.ERROR.value, data={"code": code.value})
