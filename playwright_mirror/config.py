"""Configuration management for the mirroring session processes."""

from typing import Annotated, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080

# Maximum time a leader/follower waits for CONNECTION_SUCCESS
MAX_WAIT_FOR_SERVER_CONNECTION_SECONDS = 30.0
SERVER_CONNECTION_POLL_INTERVAL_SECONDS = 0.1

# Delay between a fill and the navigation it triggered
SIGNAL_NAVIGATION_DELAY_MS = 500


class MirrorSettings(BaseSettings):
    """Settings loaded from environment variables (MIRROR_*) or .env."""

    model_config = SettingsConfigDict(
        env_prefix="MIRROR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Signaling server
    host: str = Field(DEFAULT_HOST, description="Signaling server bind host")
    port: int = Field(DEFAULT_PORT, description="Signaling server port (0 = ephemeral)")
    expected_followers: int = Field(
        1,
        ge=0,
        description="Followers required, together with a leader, to start a session",
    )
    strict: bool = Field(
        True,
        description="Restart the whole session when it is compromised",
    )
    blocked_actions: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        description="Leader action names the relay drops",
    )

    # Clients
    ws_endpoint: str = Field(
        f"ws://{DEFAULT_HOST}:{DEFAULT_PORT}",
        description="Signaling server endpoint used by leader and followers",
    )
    connection_timeout_seconds: float = Field(
        MAX_WAIT_FOR_SERVER_CONNECTION_SECONDS,
        gt=0,
        description="How long to wait for CONNECTION_SUCCESS",
    )
    connection_poll_interval_seconds: float = Field(
        SERVER_CONNECTION_POLL_INTERVAL_SECONDS,
        gt=0,
        description="Poll interval while waiting for CONNECTION_SUCCESS",
    )
    navigation_signal_delay_ms: int = Field(
        SIGNAL_NAVIGATION_DELAY_MS,
        ge=0,
        description="Delay before sending a navigation embedded in a fill",
    )
    browser_ws_endpoint: Optional[str] = Field(
        None,
        description="Remote browser endpoint for followers (launch locally if unset)",
    )

    # Logging
    log_level: str = Field("INFO", description="Log level")
    log_json: bool = Field(False, description="Render logs as JSON")

    @field_validator("blocked_actions", mode="before")
    @classmethod
    def _split_blocked_actions(cls, value):
        # Allow MIRROR_BLOCKED_ACTIONS=closePage,openPage
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value


def get_settings(**overrides) -> MirrorSettings:
    """Get settings, with explicit overrides taking precedence."""
    return MirrorSettings(**{k: v for k, v in overrides.items() if v is not None})
