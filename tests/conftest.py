"""Shared fixtures for playwright-mirror tests."""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest

from playwright_mirror.protocol.changes import Change
from playwright_mirror.protocol.codes import MessageType
from playwright_mirror.server.channel import PartyChannel
from playwright_mirror.server.events import SessionEventBus
from playwright_mirror.server.state_machine import SessionStateMachine


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "e2e: mark test as end-to-end test over real websockets"
    )


# =============================================================================
# In-memory connections
# =============================================================================


class FakeChannel(PartyChannel):
    """In-memory ``PartyChannel`` recording every frame it is asked to send.

    Closing it only marks the transport closed; tests drive the close event
    explicitly with ``dispatch_close()``, the way the websocket handler does
    once the connection loop ends.
    """

    def __init__(self):
        super().__init__()
        self.sent: list[dict] = []
        self.transport_closed = False

    async def _send_text(self, text: str) -> None:
        self.sent.append(json.loads(text))

    async def _close_transport(self) -> None:
        self.transport_closed = True

    def frames(self, message_type: MessageType) -> list[dict]:
        return [frame for frame in self.sent if frame["type"] == message_type.value]

    def codes(self, message_type: MessageType = MessageType.MANAGEMENT) -> list[str]:
        return [frame["data"]["code"] for frame in self.frames(message_type)]


class RecordingConnection:
    """Stands in for the client side of a websocket (``is_open`` + ``send``)."""

    def __init__(self, is_open: bool = True):
        self.is_open = is_open
        self.sent = []

    async def send(self, message) -> bool:
        self.sent.append(message)
        return True


class ScriptedConnection:
    """Stands in for a client websocket that yields a fixed list of frames."""

    def __init__(self, frames: list[str]):
        self.frames = frames
        self.send = AsyncMock()
        self.close = AsyncMock()

    async def __aiter__(self):
        for raw in self.frames:
            await asyncio.sleep(0)
            yield raw


@pytest.fixture
def make_channel():
    """Factory for in-memory channels."""
    return FakeChannel


@pytest.fixture
def recording_connection():
    return RecordingConnection()


@pytest.fixture
def scripted_connection():
    """Factory for client connections replaying the given frames."""
    return ScriptedConnection


# =============================================================================
# Server fixtures
# =============================================================================


@pytest.fixture
def event_bus():
    return SessionEventBus()


@pytest.fixture
def captured_events(event_bus):
    """Every event emitted on ``event_bus``, in order."""
    events = []
    event_bus.subscribe(events.append)
    return events


@pytest.fixture
def state_machine(event_bus):
    """Strict session expecting one follower."""
    return SessionStateMachine(expected_followers=1, strict=True, events=event_bus)


# =============================================================================
# Changes
# =============================================================================


def make_change(action: dict, committed: bool = False, **frame) -> Change:
    return Change.from_wire(
        {
            "frame": {"pageAlias": "page", "framePath": [], **frame},
            "action": {"signals": [], **action},
            "committed": committed,
        }
    )


@pytest.fixture
def change_factory():
    return make_change


@pytest.fixture
def sample_change_dict():
    return {
        "frame": {"pageAlias": "page", "framePath": []},
        "action": {"name": "click", "selector": "#submit", "signals": []},
        "committed": True,
    }
