"""
Room chat channel with reconnection logic.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional

import aiohttp

from livesync.chat.models import ChatMessage, OutboundMessage
from livesync.chat.reconnect import ReconnectionManager
from livesync.chat.websocket import ChatSocket, chat_url
from livesync.events import EventEmitter
from livesync.exceptions import ExhaustedRetries, ProtocolError, TransportError
from livesync.models import ConnectionState, LivenessFact
from livesync.timers import Scheduler

logger = logging.getLogger(__name__)

CONNECT_ERROR_STATUS = "Chat failed to connect... trying again"
RECONNECTING_STATUS = "Reconnecting to chat... attempt {attempt}"
EXHAUSTED_STATUS = "Unable to reconnect. Please refresh."

Connector = Callable[[str], Awaitable[ChatSocket]]


class ResilientChannel(EventEmitter):
    """
    Chat channel for one room that is only open while the room is live.

    The channel owns its ConnectionState. Callers may only request an open
    (`connect`, gated by liveness) or a close (`close`); every other
    transition comes from the channel's own socket events.

    Usage:
        @channel.event
        def on_message(message: ChatMessage):
            print(f"{message.timestamp} {message.text}")

    Supported events:
        - on_message(message: ChatMessage): Called for each inbound message
        - on_status(text: str): Called when the status text changes
        - on_state(state: ConnectionState): Called on state transitions
    """

    def __init__(
        self,
        origin: str,
        room: str,
        session: Optional[aiohttp.ClientSession] = None,
        connector: Optional[Connector] = None,
        max_reconnect_attempts: int = 5,
        initial_backoff_ms: int = 1000,
        max_backoff_ms: int = 10000,
        scheduler: Optional[Scheduler] = None,
        connect_timeout: float = 10.0,
        verify_ssl: bool = True,
    ):
        """
        Initialize chat channel.

        Args:
            origin: Server origin, e.g. https://localhost:443
            room: Room name
            session: HTTP session used by the default connector
            connector: Coroutine function opening a socket for a URL
            max_reconnect_attempts: Maximum reconnection attempts
            initial_backoff_ms: Backoff before the first reconnect
            max_backoff_ms: Maximum backoff
            scheduler: Scheduler for reconnect timers (defaults to the running loop)
            connect_timeout: Connection timeout in seconds
            verify_ssl: Whether to verify the server certificate
        """
        super().__init__()
        if connector is None and session is None:
            raise ValueError("ResilientChannel needs either a session or a connector")

        self._url = chat_url(origin, room)
        self._room = room
        self._session = session
        self._connector = connector or self._default_connector
        self._connect_timeout = connect_timeout
        self._verify_ssl = verify_ssl

        self._reconnection_manager = ReconnectionManager(
            initial_backoff_ms=initial_backoff_ms,
            max_backoff_ms=max_backoff_ms,
            max_attempts=max_reconnect_attempts,
            scheduler=scheduler,
        )

        self._state = ConnectionState.IDLE
        self._status = ""
        self._is_live = False
        self._socket: Optional[ChatSocket] = None
        self._task: Optional[asyncio.Task] = None
        self._generation = 0
        self._messages: List[ChatMessage] = []

        logger.info(f"Initialized chat channel for room {room}")

    async def _default_connector(self, url: str) -> ChatSocket:
        return await ChatSocket.connect(
            self._session,
            url,
            timeout=self._connect_timeout,
            verify_ssl=self._verify_ssl,
        )

    def _set_state(self, state: ConnectionState) -> None:
        if state == self._state:
            return
        logger.debug(f"Chat state {self._state.value} -> {state.value}")
        self._state = state
        self._dispatch_event("on_state", state)

    def _set_status(self, text: str) -> None:
        if text == self._status:
            return
        self._status = text
        self._dispatch_event("on_status", text)

    # -- caller requests -------------------------------------------------

    def on_liveness(self, fact: LivenessFact) -> None:
        """Open the channel when the room goes live, close it when it goes offline."""
        if fact.is_live == self._is_live:
            return

        self._is_live = fact.is_live
        if fact.is_live:
            self.connect()
        else:
            self.close()

    def connect(self) -> None:
        """Request an open. Ignored unless the channel is idle and the room is live."""
        if not self._is_live:
            logger.debug(f"Room {self._room} is not live, not connecting")
            return

        if self._state != ConnectionState.IDLE:
            logger.debug(f"Connect ignored in state {self._state.value}")
            return

        self._open_socket()

    def close(self) -> None:
        """Request a graceful close. Never schedules a reconnect."""
        self._generation += 1
        self._reconnection_manager.cancel()

        if self._task is not None and not self._task.done():
            self._task.cancel()

        self._set_state(ConnectionState.IDLE)

    async def wait_closed(self) -> None:
        """Wait until the socket task of a closed channel has finished."""
        if self._task is not None and not self._task.done():
            await asyncio.wait([self._task])

    async def send(self, text: str) -> bool:
        """
        Send a chat message.

        Messages are dropped, not queued, unless the channel is open.

        Returns:
            True if a frame was transmitted
        """
        if not text.strip():
            return False

        socket = self._socket
        if self._state != ConnectionState.OPEN or socket is None:
            logger.debug(f"Dropping outbound message in state {self._state.value}")
            return False

        frame = OutboundMessage.compose(text).to_frame()
        try:
            await socket.send(frame)
        except TransportError as e:
            logger.warning(f"Chat send failed: {e}")
            return False

        return True

    def clear_history(self) -> None:
        """Forget received messages, for when the hosting view is torn down."""
        self._messages = []

    # -- socket events ---------------------------------------------------

    def _open_socket(self) -> None:
        self._set_state(ConnectionState.CONNECTING)
        previous = self._task
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._generation, previous)
        )

    async def _run(self, generation: int, previous: Optional[asyncio.Task]) -> None:
        # one socket per room at a time
        if previous is not None and not previous.done():
            await asyncio.wait([previous])

        try:
            socket = await self._connector(self._url)
        except TransportError as e:
            logger.warning(f"Chat connection failed: {e}")
            self._handle_error()
        except Exception as e:
            logger.error(f"Unexpected error connecting to chat: {e}", exc_info=True)
            self._handle_error()
        else:
            try:
                if generation == self._generation:
                    self._socket = socket
                    self._handle_open()
                    async for frame in socket.frames():
                        self._handle_message(frame)
            except TransportError as e:
                logger.warning(f"Chat connection lost: {e}")
                self._handle_error()
            finally:
                if self._socket is socket:
                    self._socket = None
                await socket.close()

        if generation == self._generation:
            self._handle_close()

    def _handle_open(self) -> None:
        self._reconnection_manager.reset()
        self._set_status("")
        self._set_state(ConnectionState.OPEN)
        logger.info(f"Chat connected to room {self._room}")

    def _handle_message(self, frame: str) -> None:
        try:
            message = ChatMessage.from_raw(frame)
        except ProtocolError as e:
            logger.error(f"Dropping chat frame: {e}")
            return

        self._messages.append(message)
        self._dispatch_event("on_message", message)

    def _handle_error(self) -> None:
        self._set_status(CONNECT_ERROR_STATUS)

    def _handle_close(self) -> None:
        try:
            self._reconnection_manager.schedule(self._reconnect)
        except ExhaustedRetries as e:
            logger.error(f"Giving up on chat for room {self._room}: {e}")
            self._set_status(EXHAUSTED_STATUS)
            self._set_state(ConnectionState.CLOSED)
            return

        self._set_status(RECONNECTING_STATUS.format(attempt=self._reconnection_manager.attempts))
        self._set_state(ConnectionState.CONNECTING)

    def _reconnect(self) -> None:
        if not self._is_live or self._state != ConnectionState.CONNECTING:
            return
        self._open_socket()

    # -- observable state ------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def status(self) -> str:
        """Human-readable connection status, empty while healthy."""
        return self._status

    @property
    def messages(self) -> List[ChatMessage]:
        return list(self._messages)

    @property
    def attempts(self) -> int:
        return self._reconnection_manager.attempts
