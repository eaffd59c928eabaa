"""Tests for data models."""

import json
from datetime import datetime

import pytest
from pydantic import ValidationError

from livesync.chat.models import ChatMessage, OutboundMessage, format_clock
from livesync.config import load_config
from livesync.exceptions import ProtocolError
from livesync.models import Config, LivenessFact, StreamStatus


def test_stream_status_from_endpoint_payload():
    """Test parsing the isLive payload."""
    status = StreamStatus.model_validate(
        {"Name": "jolsho", "IsLive": True, "Title": "Jam", "Viewers": 3}
    )

    assert status.name == "jolsho"
    assert status.viewers == 3
    assert status.to_fact() == LivenessFact(is_live=True, title="Jam")


def test_liveness_fact_is_immutable():
    """Test that a published fact cannot be mutated."""
    fact = LivenessFact(is_live=False, title="Will be back tomorrow.")

    with pytest.raises(ValidationError):
        fact.is_live = True


def test_liveness_fact_change_detection():
    """Test that only is_live and title count as a change."""
    fact = LivenessFact(is_live=True, title="Jam")

    assert fact.differs_from(None)
    assert not fact.differs_from(LivenessFact(is_live=True, title="Jam"))
    assert fact.differs_from(LivenessFact(is_live=False, title="Jam"))
    assert fact.differs_from(LivenessFact(is_live=True, title="Other"))


def test_chat_message_from_raw():
    """Test parsing inbound frames."""
    message = ChatMessage.from_raw('{"code": 1, "timestamp": "9:5", "text": "hi"}')

    assert message.code == 1
    assert message.timestamp == "9:5"
    assert message.text == "hi"


@pytest.mark.parametrize("frame", ["not json", "[]", '{"code": "x", "text": "hi"}', "null"])
def test_chat_message_rejects_malformed(frame):
    """Test that malformed frames raise ProtocolError."""
    with pytest.raises(ProtocolError):
        ChatMessage.from_raw(frame)


def test_format_clock_has_no_padding():
    """Test the H:MM wire format, which is not zero padded."""
    assert format_clock(datetime(2024, 1, 1, 9, 5)) == "9:5"
    assert format_clock(datetime(2024, 1, 1, 0, 0)) == "0:0"
    assert format_clock(datetime(2024, 1, 1, 23, 59)) == "23:59"


def test_outbound_frame():
    """Test the outbound message shape."""
    frame = OutboundMessage.compose("hello", now=datetime(2024, 1, 1, 14, 7)).to_frame()

    assert json.loads(frame) == {"timestamp": "14:7", "text": "hello"}


def test_load_config_defaults(tmp_path):
    """Test defaults when no config file exists."""
    cfg = load_config(tmp_path / "missing.yaml")

    assert cfg == Config()
    assert cfg.poll_interval_sec == 10.0
    assert cfg.max_reconnect_attempts == 5
    assert cfg.load_timeout_sec == 10.0


def test_load_config_overrides(tmp_path):
    """Test that CLI overrides win over the file."""
    path = tmp_path / "config.yaml"
    path.write_text("origin: https://example.com\nroom: studio\npoll_interval_sec: 5\n")

    cfg = load_config(path, room="other", origin=None)

    assert cfg.origin == "https://example.com"
    assert cfg.room == "other"
    assert cfg.poll_interval_sec == 5
