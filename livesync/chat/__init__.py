"""
Room chat channel and live-status transport.
"""

from livesync.chat.client import ResilientChannel
from livesync.chat.http import get_live_status
from livesync.chat.models import ChatMessage, OutboundMessage, format_clock
from livesync.chat.reconnect import ReconnectionManager
from livesync.chat.websocket import ChatSocket, chat_url

__all__ = [
    "ResilientChannel",
    "ChatMessage",
    "OutboundMessage",
    "format_clock",
    "ReconnectionManager",
    "ChatSocket",
    "chat_url",
    "get_live_status",
]
