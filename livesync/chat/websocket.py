"""
WebSocket connection management for the room chat.
"""

import asyncio
import logging
from typing import AsyncIterator

import aiohttp

from livesync.exceptions import TransportError

logger = logging.getLogger(__name__)


def chat_url(origin: str, room: str) -> str:
    """Build the chat websocket URL for a room from an http(s) origin."""
    origin = origin.rstrip("/")
    if origin.startswith("https://"):
        origin = "wss://" + origin[len("https://"):]
    elif origin.startswith("http://"):
        origin = "ws://" + origin[len("http://"):]
    return f"{origin}/chat?room={room}"


class ChatSocket:
    """
    WebSocket connection to the chat server.
    """

    def __init__(self, ws: aiohttp.ClientWebSocketResponse, url: str):
        self._ws = ws
        self._url = url
        self._closed = False

    @classmethod
    async def connect(
        cls,
        session: aiohttp.ClientSession,
        url: str,
        timeout: float = 10.0,
        verify_ssl: bool = True,
    ) -> "ChatSocket":
        """
        Establish WebSocket connection.

        Args:
            session: HTTP session that owns the connection
            url: Chat websocket URL
            timeout: Connection timeout in seconds
            verify_ssl: Whether to verify the server certificate

        Returns:
            Connected ChatSocket instance

        Raises:
            TransportError: If the connection fails
        """
        logger.info(f"Connecting to {url}")

        try:
            ws = await asyncio.wait_for(
                session.ws_connect(url, heartbeat=30.0, ssl=verify_ssl),
                timeout=timeout,
            )
        except aiohttp.ClientError as e:
            raise TransportError(f"WebSocket connection failed: {e}") from e
        except asyncio.TimeoutError as e:
            raise TransportError("Connection timeout") from e

        return cls(ws=ws, url=url)

    async def send(self, frame: str) -> None:
        """
        Send a text frame.

        Raises:
            TransportError: If the frame cannot be written
        """
        try:
            await self._ws.send_str(frame)
        except (aiohttp.ClientError, ConnectionResetError, RuntimeError) as e:
            raise TransportError(f"Failed to send message: {e}") from e

    async def frames(self) -> AsyncIterator[str]:
        """
        Yield text frames until the connection closes.

        Raises:
            TransportError: If the connection reports an error
        """
        while not self._closed:
            msg = await self._ws.receive()

            if msg.type == aiohttp.WSMsgType.TEXT:
                yield msg.data
            elif msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                logger.warning("WebSocket closed by server")
                return
            elif msg.type == aiohttp.WSMsgType.ERROR:
                raise TransportError(f"WebSocket error: {self._ws.exception()}")
            else:
                logger.debug(f"Ignoring frame of type {msg.type}")

    async def close(self) -> None:
        """Close the WebSocket connection."""
        if self._closed:
            return

        self._closed = True

        try:
            if not self._ws.closed:
                await self._ws.close()
        except Exception as e:
            logger.warning(f"Error closing WebSocket: {e}")

        logger.info("WebSocket connection closed")

    @property
    def closed(self) -> bool:
        """Check if connection is closed."""
        return self._closed
