"""
Message models for the room chat.
"""

import json
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ValidationError

from livesync.exceptions import ProtocolError


def format_clock(now: Optional[datetime] = None) -> str:
    """Local wall-clock "H:MM" stamp as the chat server expects it.

    Neither hour nor minute is zero padded, so 09:05 becomes "9:5".
    """
    if now is None:
        now = datetime.now()
    return f"{now.hour}:{now.minute}"


class ChatMessage(BaseModel):
    """Inbound chat message."""

    code: int
    text: str
    timestamp: str = ""  # server omits empty timestamps

    @classmethod
    def from_raw(cls, data: str) -> "ChatMessage":
        """
        Parse a ChatMessage from a websocket text frame.

        Raises:
            ProtocolError: If the frame is not a valid chat message
        """
        try:
            return cls.model_validate(json.loads(data))
        except (json.JSONDecodeError, ValidationError, TypeError) as e:
            raise ProtocolError(f"Invalid message format: {data!r}") from e


class OutboundMessage(BaseModel):
    """Outbound chat message."""

    timestamp: str
    text: str

    @classmethod
    def compose(cls, text: str, now: Optional[datetime] = None) -> "OutboundMessage":
        return cls(timestamp=format_clock(now), text=text)

    def to_frame(self) -> str:
        return self.model_dump_json()
