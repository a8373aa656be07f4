"""Tests for configuration."""

import pytest
from pydantic import ValidationError

from playwright_mirror.config import (
    MAX_WAIT_FOR_SERVER_CONNECTION_SECONDS,
    SIGNAL_NAVIGATION_DELAY_MS,
    MirrorSettings,
    get_settings,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    """Isolate settings from the developer's environment and .env file."""
    monkeypatch.chdir(tmp_path)
    for name in (
        "MIRROR_HOST",
        "MIRROR_PORT",
        "MIRROR_STRICT",
        "MIRROR_EXPECTED_FOLLOWERS",
        "MIRROR_BLOCKED_ACTIONS",
        "MIRROR_WS_ENDPOINT",
        "MIRROR_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


class TestMirrorSettings:
    """Tests for MirrorSettings."""

    def test_defaults(self):
        """Test default values."""
        settings = MirrorSettings()

        assert settings.host == "127.0.0.1"
        assert settings.port == 8080
        assert settings.expected_followers == 1
        assert settings.strict is True
        assert settings.blocked_actions == []
        assert settings.ws_endpoint == "ws://127.0.0.1:8080"
        assert settings.connection_timeout_seconds == MAX_WAIT_FOR_SERVER_CONNECTION_SECONDS
        assert settings.navigation_signal_delay_ms == SIGNAL_NAVIGATION_DELAY_MS == 500
        assert settings.browser_ws_endpoint is None
        assert settings.log_level == "INFO"

    def test_env_overrides(self, monkeypatch):
        """Test MIRROR_* environment variables."""
        monkeypatch.setenv("MIRROR_PORT", "9001")
        monkeypatch.setenv("MIRROR_STRICT", "false")
        monkeypatch.setenv("MIRROR_EXPECTED_FOLLOWERS", "0")

        settings = MirrorSettings()

        assert settings.port == 9001
        assert settings.strict is False
        assert settings.expected_followers == 0

    def test_blocked_actions_from_env(self, monkeypatch):
        """Test comma-separated block-lists."""
        monkeypatch.setenv("MIRROR_BLOCKED_ACTIONS", "closePage, openPage,")

        settings = MirrorSettings()

        assert settings.blocked_actions == ["closePage", "openPage"]

    def test_dotenv_file(self, tmp_path):
        """Test values are read from .env in the working directory."""
        (tmp_path / ".env").write_text("MIRROR_HOST=0.0.0.0\n")

        assert MirrorSettings().host == "0.0.0.0"

    def test_negative_followers_rejected(self):
        """Test validation of the quorum."""
        with pytest.raises(ValidationError):
            MirrorSettings(expected_followers=-1)


class TestGetSettings:
    """Tests for get_settings."""

    def test_overrides(self):
        """Test explicit overrides win."""
        settings = get_settings(port=0, strict=False, blocked_actions=["fill"])

        assert settings.port == 0
        assert settings.strict is False
        assert settings.blocked_actions == ["fill"]

    def test_none_overrides_ignored(self, monkeypatch):
        """Test None overrides fall back to the environment."""
        monkeypatch.setenv("MIRROR_PORT", "7000")

        settings = get_settings(port=None, host=None)

        assert settings.port == 7000
        assert settings.host == "127.0.0.1"
