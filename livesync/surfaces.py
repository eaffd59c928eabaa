"""Playback surfaces the controller drives: the stand-ins for a video element."""

import asyncio
import logging
import shlex
import shutil
from typing import Any, Callable, List, Optional

from livesync.exceptions import PlaybackUnavailable
from livesync.hls import HLS_MIME_TYPE

logger = logging.getLogger(__name__)


class PlaybackSurface:
    """
    Base class for something that can show the room's media.

    A surface either plays an HLS URL natively (`can_play_native` plus
    `set_source`) or renders a streaming session attached to it. A native
    playback failure after `play()` has returned is reported through
    `on_error`.
    """

    def __init__(self) -> None:
        self.on_error: Optional[Callable[[], None]] = None
        self._source: Optional[str] = None
        self._session: Any = None

    def can_play_native(self, mime_type: str) -> bool:
        return False

    def set_source(self, url: str) -> None:
        self._source = url

    def attach(self, session: Any) -> None:
        self._session = session

    def detach(self) -> None:
        self._session = None

    async def play(self) -> None:
        """
        Start playback.

        Raises:
            PlaybackUnavailable: If playback cannot start
        """
        raise NotImplementedError

    def stop(self) -> None:
        """Stop playback and forget the source."""
        self._source = None

    def _notify_error(self) -> None:
        if self.on_error is not None:
            self.on_error()

    @property
    def source(self) -> Optional[str]:
        return self._source


class HeadlessSurface(PlaybackSurface):
    """Surface without a display: playing means the attached session has media."""

    async def play(self) -> None:
        playlist = getattr(self._session, "playlist", None)
        if playlist is None:
            raise PlaybackUnavailable("No streaming session attached")
        if not playlist.segments and not playlist.playlists:
            raise PlaybackUnavailable("Manifest has no segments")
        logger.info(f"Following {len(playlist.segments)} segments")


class ExternalPlayerSurface(PlaybackSurface):
    """Hands the manifest URL to an external player such as mpv or ffplay."""

    def __init__(self, command: str):
        super().__init__()
        self._argv: List[str] = shlex.split(command)
        self._process: Optional[asyncio.subprocess.Process] = None
        self._watch_task: Optional[asyncio.Task] = None

    def can_play_native(self, mime_type: str) -> bool:
        return mime_type == HLS_MIME_TYPE and shutil.which(self._argv[0]) is not None

    def set_source(self, url: str) -> None:
        self.stop()
        super().set_source(url)

    async def play(self) -> None:
        if self._source is None:
            raise PlaybackUnavailable("No source set")

        try:
            process = await asyncio.create_subprocess_exec(
                *self._argv,
                self._source,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            raise PlaybackUnavailable(f"Failed to start {self._argv[0]}: {e}") from e

        logger.info(f"Started {self._argv[0]} (pid={process.pid})")
        self._process = process
        self._watch_task = asyncio.get_running_loop().create_task(self._watch(process))

    async def _watch(self, process: asyncio.subprocess.Process) -> None:
        returncode = await process.wait()
        if process is not self._process:
            return
        self._process = None
        if returncode != 0:
            logger.warning(f"{self._argv[0]} exited with code {returncode}")
            self._notify_error()

    def stop(self) -> None:
        process, self._process = self._process, None
        if self._watch_task is not None:
            self._watch_task.cancel()
            self._watch_task = None
        if process is not None and process.returncode is None:
            try:
                process.terminate()
            except ProcessLookupError:
                pass
        super().stop()
