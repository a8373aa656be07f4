"""Signaling server: party registry, session state machine, change relay, events."""

from .channel import PartyChannel, WebSocketChannel
from .events import SessionEvent, SessionEventBus, SessionEventType
from .registry import PartyRegistry
from .relay import ChangeRelay
from .session import Party, Session, SessionState
from .signaling import SignalingServer
from .state_machine import SessionStateMachine

__all__ = [
    "ChangeRelay",
    "Party",
    "PartyChannel",
    "PartyRegistry",
    "Session",
    "SessionEvent",
    "SessionEventBus",
    "SessionEventType",
    "SessionState",
    "SessionStateMachine",
    "SignalingServer",
    "WebSocketChannel",
]
