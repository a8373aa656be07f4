"""Tests for the shared signaling client."""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from websockets.exceptions import InvalidHandshake, InvalidURI

from playwright_mirror.client.base import DEFAULT_WS_ENDPOINT, SignalingClient
from playwright_mirror.protocol.codes import PartyRole
from playwright_mirror.protocol.errors import (
    FollowerCannotBeLeaderError,
    LeaderAlreadyConnectedError,
    SignalingServerDisconnectedError,
)
from playwright_mirror.protocol.messages import WireMessage


def frame(message_type: str, code: str) -> str:
    return json.dumps({"type": message_type, "data": {"code": code}})


@pytest.fixture
def client():
    return SignalingClient(role=PartyRole.LEADER, connection_timeout=0.2, poll_interval=0.01)


class TestSignalingClientInit:
    """Tests for SignalingClient construction."""

    def test_defaults(self):
        """Test default endpoint and timeouts."""
        client = SignalingClient()

        assert client.ws_endpoint == DEFAULT_WS_ENDPOINT == "ws://127.0.0.1:8080"
        assert client.role == PartyRole.FOLLOWER
        assert client.connection_timeout == 30.0
        assert client.poll_interval == 0.1
        assert client.connected is False
        assert client.is_open is False

    def test_role_override(self, client):
        """Test the role argument wins over the class role."""
        assert client.role == PartyRole.LEADER


class TestManagementMessages:
    """Tests for management frames."""

    @pytest.mark.asyncio
    async def test_connection_success(self, client):
        """Test CONNECTION_SUCCESS marks the client connected."""
        await client.process_server_message(frame("management", "CONNECTION_SUCCESS"))

        assert client.connected is True

    @pytest.mark.asyncio
    async def test_parties_changed_is_fatal(self, client):
        """Test PARTIES_CHANGED raises by default."""
        with pytest.raises(SignalingServerDisconnectedError, match="parties changed"):
            await client.process_server_message(frame("management", "PARTIES_CHANGED"))

    @pytest.mark.asyncio
    async def test_parties_changed_tolerated(self):
        """Test PARTIES_CHANGED can be tolerated for non-strict servers."""
        client = SignalingClient(tolerate_parties_changed=True)

        await client.process_server_message(frame("management", "PARTIES_CHANGED"))

    @pytest.mark.asyncio
    async def test_close_is_fatal_by_default(self, client):
        """Test CLOSE ends the session with an error for clients not expecting it."""
        await client.process_server_message(frame("management", "CONNECTION_SUCCESS"))

        with patch.object(client, "on_server_close", new_callable=AsyncMock) as on_close:
            with pytest.raises(SignalingServerDisconnectedError, match="server closed"):
                await client.process_server_message(frame("management", "CLOSE"))

        on_close.assert_not_awaited()
        assert client._expecting_server_close is False

    @pytest.mark.asyncio
    async def test_close_expected_after_connection(self, client):
        """Test CLOSE triggers the shutdown hook when the client expects it."""
        client.expects_server_close = True
        await client.process_server_message(frame("management", "CONNECTION_SUCCESS"))

        with patch.object(client, "on_server_close", new_callable=AsyncMock) as on_close:
            await client.process_server_message(frame("management", "CLOSE"))

        on_close.assert_awaited_once()
        assert client._expecting_server_close is True

    @pytest.mark.asyncio
    async def test_close_before_connection_success(self, client):
        """Test CLOSE while still bootstrapping is fatal even when expected later."""
        client.expects_server_close = True

        with pytest.raises(SignalingServerDisconnectedError, match="server closed"):
            await client.process_server_message(frame("management", "CLOSE"))

    @pytest.mark.asyncio
    async def test_unknown_code_ignored(self, client):
        """Test unknown management codes are ignored."""
        await client.process_server_message(frame("management", "RESYNC"))

        assert client.connected is False
        assert client.failure is None

    @pytest.mark.asyncio
    async def test_malformed_and_unknown_frames(self, client):
        """Test malformed frames and unknown types are ignored."""
        await client.process_server_message("not json")
        await client.process_server_message(json.dumps({"type": "hello"}))

        assert client.failure is None


class TestErrorMessages:
    """Tests for error frames."""

    @pytest.mark.asyncio
    async def test_role_conflict_raised(self, client):
        """Test error codes surface as the matching role conflict."""
        with pytest.raises(LeaderAlreadyConnectedError):
            await client.process_server_message(frame("error", "LEADER_ALREADY_CONNECTED"))

    @pytest.mark.asyncio
    async def test_unknown_error_code(self, client):
        """Test unknown error codes surface as a disconnection."""
        with pytest.raises(SignalingServerDisconnectedError):
            await client.process_server_message(frame("error", "SOMETHING_ELSE"))


class TestLeaderChange:
    """Tests for relayed changes."""

    @pytest.mark.asyncio
    async def test_routed_to_hook(self, client, sample_change_dict):
        """Test leaderChange frames reach on_leader_change."""
        raw = json.dumps({"type": "leaderChange", "data": sample_change_dict})

        with patch.object(client, "on_leader_change", new_callable=AsyncMock) as hook:
            await client.process_server_message(raw)

        hook.assert_awaited_once_with(sample_change_dict)


class TestBootstrap:
    """Tests for waiting on CONNECTION_SUCCESS."""

    @pytest.mark.asyncio
    async def test_timeout(self, client):
        """Test the bootstrap fails after the connection timeout."""
        with pytest.raises(SignalingServerDisconnectedError, match="CONNECTION_SUCCESS"):
            await client.wait_for_server_connection()

    @pytest.mark.asyncio
    async def test_connected_while_waiting(self, client):
        """Test the wait returns once CONNECTION_SUCCESS arrives."""

        async def acknowledge():
            await asyncio.sleep(0.03)
            await client.process_server_message(frame("management", "CONNECTION_SUCCESS"))

        task = asyncio.create_task(acknowledge())
        await client.wait_for_server_connection()
        await task

        assert client.connected

    @pytest.mark.asyncio
    async def test_stored_failure_raised(self, client):
        """Test a failure recorded by the reader is raised from the wait."""
        client._fail(FollowerCannotBeLeaderError())

        with pytest.raises(FollowerCannotBeLeaderError):
            await client.wait_for_server_connection()

    @pytest.mark.asyncio
    async def test_close_while_waiting_fails_fast(self, scripted_connection):
        """Test a CLOSE during bootstrap is raised without waiting for the timeout."""
        client = SignalingClient(role=PartyRole.LEADER, connection_timeout=5, poll_interval=0.01)
        client._connection = scripted_connection([frame("management", "CLOSE")])
        client._reader_task = asyncio.create_task(client._read_loop())

        with pytest.raises(SignalingServerDisconnectedError, match="server closed"):
            await client.wait_for_server_connection()

        client._connection.close.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            InvalidHandshake("rejected"),
            InvalidURI("http://mirror", "scheme isn't ws or wss"),
        ],
    )
    async def test_handshake_failure(self, error):
        """Test refused upgrades and bad endpoints fail with a disconnection error."""
        client = SignalingClient("ws://127.0.0.1:9")

        with patch(
            "playwright_mirror.client.base.connect",
            new_callable=AsyncMock,
            side_effect=error,
        ):
            with pytest.raises(SignalingServerDisconnectedError, match="cannot reach"):
                await client.connect()

    @pytest.mark.asyncio
    async def test_unreachable_server(self):
        """Test an unreachable endpoint fails with a disconnection error."""
        client = SignalingClient("ws://127.0.0.1:9")

        with patch(
            "playwright_mirror.client.base.connect",
            new_callable=AsyncMock,
            side_effect=ConnectionRefusedError("refused"),
        ):
            with pytest.raises(SignalingServerDisconnectedError, match="cannot reach"):
                await client.connect()


class TestSend:
    """Tests for sending frames."""

    @pytest.mark.asyncio
    async def test_send_without_connection(self, client):
        """Test send is a no-op before connecting."""
        assert await client.send(WireMessage(type="change", data={})) is False

    @pytest.mark.asyncio
    async def test_send_serializes(self, client):
        """Test frames are sent as JSON text."""
        client._connection = MagicMock()
        client._connection.send = AsyncMock()

        assert await client.send(WireMessage(type="change", data={"a": 1})) is True

        client._connection.send.assert_awaited_once_with('{"type": "change", "data": {"a": 1}}')

    @pytest.mark.asyncio
    async def test_send_after_close(self, client):
        """Test send is a no-op once the client is closing."""
        client._connection = MagicMock()
        client._connection.close = AsyncMock()

        await client.close()

        assert client.is_open is False
        assert await client.send(WireMessage(type="change", data={})) is False
