"""Liveness poller that watches the room's status endpoint."""

import asyncio
import logging
import math
from typing import Awaitable, Callable, List, Optional

import aiohttp

from livesync.chat.http import get_live_status
from livesync.exceptions import LiveSyncError
from livesync.models import LivenessFact, StreamStatus

logger = logging.getLogger(__name__)

StatusFetcher = Callable[[str], Awaitable[StreamStatus]]
LivenessCallback = Callable[[LivenessFact], None]


class LivenessPoller:
    """Polls the room's live status and publishes changes to subscribers."""

    def __init__(
        self,
        origin: str,
        room: str,
        session: Optional[aiohttp.ClientSession] = None,
        fetcher: Optional[StatusFetcher] = None,
        poll_interval_sec: float = 10.0,
        request_timeout_sec: float = 10.0,
        verify_ssl: bool = True,
    ):
        if fetcher is None and session is None:
            raise ValueError("LivenessPoller needs either a session or a fetcher")

        self.origin = origin
        self.room = room
        self.poll_interval_sec = poll_interval_sec
        self._session = session
        self._fetcher = fetcher or self._default_fetcher
        self._request_timeout_sec = request_timeout_sec
        self._verify_ssl = verify_ssl

        self._subscribers: List[LivenessCallback] = []
        self._current: Optional[LivenessFact] = None
        self._last_status: Optional[StreamStatus] = None
        self._task: Optional[asyncio.Task] = None
        self.running = False

    async def _default_fetcher(self, room: str) -> StreamStatus:
        return await get_live_status(
            self._session,
            self.origin,
            room,
            timeout=self._request_timeout_sec,
            verify_ssl=self._verify_ssl,
        )

    def subscribe(self, callback: LivenessCallback) -> None:
        """Register a consumer of published liveness facts."""
        self._subscribers.append(callback)

    async def poll(self, room: Optional[str] = None) -> LivenessFact:
        """
        Fetch the current liveness of a room.

        Raises:
            TransportError: If the status request does not succeed
            ProtocolError: If the response is not a status document
        """
        status = await self._fetcher(room or self.room)
        self._last_status = status
        return status.to_fact()

    def publish(self, fact: LivenessFact) -> bool:
        """
        Publish a fact if it differs from the last published one.

        Returns:
            True if subscribers were notified
        """
        if not fact.differs_from(self._current):
            return False

        previous, self._current = self._current, fact
        if previous is None or previous.is_live != fact.is_live:
            logger.info(f"Room {self.room} is {'live' if fact.is_live else 'offline'}: {fact.title!r}")
        else:
            logger.info(f"Room {self.room} retitled: {fact.title!r}")

        for callback in list(self._subscribers):
            try:
                callback(fact)
            except Exception as e:
                logger.error(f"Liveness subscriber error: {e}", exc_info=True)
        return True

    async def _tick(self) -> None:
        try:
            fact = await self.poll()
        except LiveSyncError as e:
            logger.error(f"Failed to check live status: {e}")
            return
        self.publish(fact)

    async def _run(self) -> None:
        loop = asyncio.get_running_loop()
        next_at = loop.time()
        while self.running:
            await self._tick()

            # Ticks stay on the fixed grid; slots that passed entirely while a
            # poll was still in flight are skipped, a late one runs at once.
            next_at += self.poll_interval_sec
            now = loop.time()
            missed = math.floor((now - next_at) / self.poll_interval_sec)
            if missed > 0:
                logger.warning(f"Status poll overran, skipping {missed} tick(s)")
                next_at += missed * self.poll_interval_sec
            await asyncio.sleep(max(0.0, next_at - now))

    def start(self) -> None:
        """Poll immediately, then every poll interval until stop()."""
        if self._task is not None and not self._task.done():
            return
        self.running = True
        logger.info(f"Polling room {self.room} every {self.poll_interval_sec}s")
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        """Stop polling."""
        self.running = False
        task, self._task = self._task, None
        if task is None or task.done():
            return
        logger.info("Stopping liveness poller")
        task.cancel()
        await asyncio.wait([task])

    @property
    def current(self) -> Optional[LivenessFact]:
        """The last published fact."""
        return self._current

    @property
    def last_status(self) -> Optional[StreamStatus]:
        """The last successfully fetched status payload, including viewers."""
        return self._last_status
