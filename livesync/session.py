"""Live session: wires the poller, chat channel and playback controller together."""

import asyncio
import logging
from typing import Optional

import aiohttp

from livesync.chat.client import ResilientChannel
from livesync.models import Config
from livesync.playback import PlaybackController
from livesync.poller import LivenessPoller
from livesync.surfaces import ExternalPlayerSurface, HeadlessSurface, PlaybackSurface

logger = logging.getLogger(__name__)


def default_surface(config: Config) -> PlaybackSurface:
    if config.player_command:
        return ExternalPlayerSurface(config.player_command)
    return HeadlessSurface()


class LiveSession:
    """
    One viewer session for one room.

    The poller is the only writer of the liveness fact; the chat channel and
    the playback controller subscribe to it and never talk to each other.
    `start()` is the mount hook and `stop()` the unmount hook.

    Create it from inside a running event loop; it opens its own
    aiohttp session unless one is passed in.
    """

    def __init__(
        self,
        config: Config,
        surface: Optional[PlaybackSurface] = None,
        http_session: Optional[aiohttp.ClientSession] = None,
    ):
        self.config = config
        self.surface = surface or default_surface(config)

        self._owns_http_session = http_session is None
        self._http_session = http_session or aiohttp.ClientSession()

        self.poller = LivenessPoller(
            origin=config.origin,
            room=config.room,
            session=self._http_session,
            poll_interval_sec=config.poll_interval_sec,
            request_timeout_sec=config.request_timeout_sec,
            verify_ssl=config.verify_ssl,
        )
        self.channel = ResilientChannel(
            origin=config.origin,
            room=config.room,
            session=self._http_session,
            max_reconnect_attempts=config.max_reconnect_attempts,
            initial_backoff_ms=config.initial_backoff_ms,
            max_backoff_ms=config.max_backoff_ms,
            connect_timeout=config.request_timeout_sec,
            verify_ssl=config.verify_ssl,
        )
        self.playback = PlaybackController(
            surface=self.surface,
            origin=config.origin,
            room=config.room,
            http_session=self._http_session,
            load_timeout=config.load_timeout_sec,
            verify_ssl=config.verify_ssl,
        )

        self.poller.subscribe(self.channel.on_liveness)
        self.poller.subscribe(self.playback.on_liveness)

        self._stopped = asyncio.Event()
        self.running = False

    async def start(self) -> None:
        """Mount: start playback and begin polling."""
        if self.running:
            return
        self.running = True
        self._stopped.clear()
        logger.info(f"Starting live session for room {self.config.room} at {self.config.origin}")

        self.playback.mount()
        self.poller.start()

    async def stop(self) -> None:
        """Unmount: release every timer, socket and session."""
        if not self.running:
            return
        self.running = False
        logger.info("Stopping live session")

        await self.poller.stop()
        self.channel.close()
        await self.channel.wait_closed()
        self.channel.clear_history()
        self.playback.teardown()

        if self._owns_http_session:
            await self._http_session.close()

        self._stopped.set()

    async def run(self) -> None:
        """Start and wait until stop() is called."""
        await self.start()
        await self._stopped.wait()

    async def __aenter__(self) -> "LiveSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()
