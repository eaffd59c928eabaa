"""Data models and schemas for LiveSync."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ConnectionState(str, Enum):
    """Chat channel connection state."""

    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSED = "CLOSED"


class PlaybackState(str, Enum):
    """Media playback state."""

    IDLE = "IDLE"
    LOADING = "LOADING"
    PLAYING = "PLAYING"
    UNAVAILABLE = "UNAVAILABLE"


class LivenessFact(BaseModel):
    """Snapshot of whether the room is live and what it is titled."""

    model_config = ConfigDict(frozen=True)

    is_live: bool
    title: str = ""

    def differs_from(self, other: Optional["LivenessFact"]) -> bool:
        """Check whether publishing this fact after `other` is a change."""
        if other is None:
            return True
        return self.is_live != other.is_live or self.title != other.title


class StreamStatus(BaseModel):
    """Status payload returned by the isLive endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(alias="Name")
    is_live: bool = Field(alias="IsLive")
    title: str = Field(default="", alias="Title")
    viewers: int = Field(default=0, alias="Viewers")

    def to_fact(self) -> LivenessFact:
        return LivenessFact(is_live=self.is_live, title=self.title)


class Config(BaseModel):
    """Configuration model."""

    # Remote origin serving isLive, chat and hls
    origin: str = "https://localhost:443"
    room: str = "jolsho"
    verify_ssl: bool = True

    # Poller settings
    poll_interval_sec: float = 10.0
    request_timeout_sec: float = 10.0

    # Chat reconnection settings
    max_reconnect_attempts: int = 5
    initial_backoff_ms: int = 1000
    max_backoff_ms: int = 10000

    # Playback settings
    load_timeout_sec: float = 10.0
    player_command: Optional[str] = None  # e.g. "mpv", enables native HLS playback
