"""Playback controller: loads and plays the room's HLS manifest."""

import asyncio
import logging
from typing import Any, Optional

import aiohttp

from livesync.events import EventEmitter
from livesync.exceptions import PlaybackUnavailable
from livesync.hls import HLS_MIME_TYPE, HlsErrorData, HlsEvent, HlsSession
from livesync.models import LivenessFact, PlaybackState
from livesync.surfaces import PlaybackSurface
from livesync.timers import Scheduler, ScopedTimer

logger = logging.getLogger(__name__)

UNAVAILABLE_MESSAGE = "No live stream or VOD available currently."


def manifest_url(source_root: str, room: str) -> str:
    return f"{source_root.rstrip('/')}/hls/{room}/index.m3u8"


class PlaybackController(EventEmitter):
    """
    Drives one playback surface through IDLE -> LOADING -> PLAYING/UNAVAILABLE.

    Every load acquires the streaming session and the load timer together and
    releases both on every exit path. A change of the room's liveness restarts
    the whole sequence; nothing else retries a failed load.

    Supported events:
        - on_state(state: PlaybackState): Called on state transitions
    """

    def __init__(
        self,
        surface: PlaybackSurface,
        origin: str,
        room: str,
        http_session: Optional[aiohttp.ClientSession] = None,
        session_cls: Any = HlsSession,
        load_timeout: float = 10.0,
        scheduler: Optional[Scheduler] = None,
        verify_ssl: bool = True,
    ):
        """
        Initialize playback controller.

        Args:
            surface: Surface the media is played on
            origin: Server origin serving /hls
            room: Room name
            http_session: HTTP session handed to streaming sessions
            session_cls: Streaming session class (HlsSession)
            load_timeout: Seconds to wait for the manifest to parse
            scheduler: Scheduler for the load timer (defaults to the running loop)
            verify_ssl: Whether to verify the server certificate
        """
        super().__init__()
        self._surface = surface
        self._origin = origin
        self._room = room
        self._http_session = http_session
        self._session_cls = session_cls
        self._load_timeout = load_timeout
        self._scheduler = scheduler
        self._verify_ssl = verify_ssl

        self._state = PlaybackState.IDLE
        self._last_is_live: Optional[bool] = None
        self._generation = 0
        self._session: Any = None
        self._load_timer: Optional[ScopedTimer] = None
        self._play_task: Optional[asyncio.Task] = None

    def _set_state(self, state: PlaybackState) -> None:
        if state == self._state:
            return
        logger.debug(f"Playback state {self._state.value} -> {state.value}")
        self._state = state
        self._dispatch_event("on_state", state)

    def mount(self) -> None:
        """First load, before any liveness fact is known."""
        self.load_and_play(self._origin, self._room)

    def on_liveness(self, fact: LivenessFact) -> None:
        """Restart playback whenever the room's liveness flips."""
        if fact.is_live == self._last_is_live:
            return
        self._last_is_live = fact.is_live
        self.load_and_play(self._origin, self._room)

    def load_and_play(self, source_root: str, room: str) -> None:
        self._release()
        self._generation += 1
        generation = self._generation

        self._set_state(PlaybackState.IDLE)
        self._set_state(PlaybackState.LOADING)

        url = manifest_url(source_root, room)

        if self._surface.can_play_native(HLS_MIME_TYPE):
            logger.info(f"Playing {url} natively")
            self._surface.on_error = lambda: self._unavailable(generation, "native playback error")
            self._surface.set_source(url)
            self._start_play(generation)
            return

        if self._session_cls.is_supported():
            session = self._session_cls(
                self._http_session,
                timeout=self._load_timeout,
                verify_ssl=self._verify_ssl,
            )
            self._session = session
            session.on(
                HlsEvent.MANIFEST_PARSED,
                lambda event, playlist: self._on_manifest_parsed(generation),
            )
            session.on(
                HlsEvent.ERROR,
                lambda event, data: self._on_session_error(generation, data),
            )
            session.load_source(url)
            session.attach_media(self._surface)

            self._load_timer = ScopedTimer(
                self._load_timeout,
                lambda: self._on_load_timeout(generation),
                scheduler=self._scheduler,
                name="manifest load timer",
            ).start()
            return

        logger.error("Neither native HLS nor a streaming session is supported")
        self._unavailable(generation, "HLS not supported")

    def teardown(self) -> None:
        """Release the current session and timer. Safe to call repeatedly."""
        self._generation += 1
        self._release()
        self._set_state(PlaybackState.IDLE)

    def _release(self) -> None:
        if self._load_timer is not None:
            self._load_timer.cancel()
            self._load_timer = None

        session, self._session = self._session, None
        if session is not None:
            session.destroy()

        task, self._play_task = self._play_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

        self._surface.on_error = None
        self._surface.stop()

    def _on_manifest_parsed(self, generation: int) -> None:
        if generation != self._generation:
            return
        if self._load_timer is not None:
            self._load_timer.cancel()
            self._load_timer = None
        self._start_play(generation)

    def _on_session_error(self, generation: int, data: HlsErrorData) -> None:
        if generation != self._generation:
            return
        if not data.fatal:
            logger.warning(f"Non-fatal HLS error: {data.type.value} {data.details}")
            return
        logger.error(f"fatal: {data.type.value} {data.details} {data.response}")
        self._unavailable(generation, data.details)

    def _on_load_timeout(self, generation: int) -> None:
        if generation != self._generation:
            return
        logger.warning("HLS manifest load timed out")
        self._unavailable(generation, "manifest load timed out")

    def _start_play(self, generation: int) -> None:
        self._play_task = asyncio.get_running_loop().create_task(self._play(generation))

    async def _play(self, generation: int) -> None:
        try:
            await self._surface.play()
        except PlaybackUnavailable as e:
            logger.error(f"Video play failed: {e}")
            self._unavailable(generation, str(e))
            return

        if generation == self._generation and self._state == PlaybackState.LOADING:
            self._set_state(PlaybackState.PLAYING)

    def _unavailable(self, generation: int, reason: str) -> None:
        if generation != self._generation:
            return
        self._release()
        logger.warning(f"{UNAVAILABLE_MESSAGE} ({reason})")
        self._set_state(PlaybackState.UNAVAILABLE)

    @property
    def state(self) -> PlaybackState:
        return self._state

    @property
    def session(self) -> Any:
        """The active streaming session, if any."""
        return self._session
