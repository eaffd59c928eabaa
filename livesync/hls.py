"""HLS streaming session: loads and parses the room's adaptive stream manifest."""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import aiohttp
import m3u8

logger = logging.getLogger(__name__)

HLS_MIME_TYPE = "application/vnd.apple.mpegurl"


class HlsEvent(str, Enum):
    """Events emitted by an HlsSession."""

    MANIFEST_PARSED = "hlsManifestParsed"
    ERROR = "hlsError"


class HlsErrorType(str, Enum):
    NETWORK_ERROR = "networkError"
    MEDIA_ERROR = "mediaError"
    OTHER_ERROR = "otherError"


@dataclass
class HlsErrorData:
    """Payload of an ERROR event. Fatal errors need a full session rebuild."""

    type: HlsErrorType
    details: str
    fatal: bool
    response: Optional[int] = None


class HlsSession:
    """
    Streaming session for one manifest URL.

    Mirrors the browser streaming libraries: `load_source` starts fetching the
    manifest, `attach_media` binds a playback surface, and the outcome arrives
    as MANIFEST_PARSED or ERROR events. Manifest load and parse failures are
    fatal; a variant playlist that fails to load is not.
    """

    def __init__(
        self,
        session: aiohttp.ClientSession,
        timeout: float = 10.0,
        verify_ssl: bool = True,
    ):
        self._session = session
        self._timeout = timeout
        self._verify_ssl = verify_ssl
        self._handlers: Dict[HlsEvent, List[Callable]] = {}
        self._task: Optional[asyncio.Task] = None
        self._url: Optional[str] = None
        self._media: Any = None
        self._playlist: Optional[m3u8.M3U8] = None
        self._destroyed = False

    @staticmethod
    def is_supported() -> bool:
        """Manifest parsing is always available through the m3u8 library."""
        return True

    def on(self, event: HlsEvent, handler: Callable) -> None:
        self._handlers.setdefault(event, []).append(handler)

    def _emit(self, event: HlsEvent, *args: Any) -> None:
        if self._destroyed:
            return
        for handler in list(self._handlers.get(event, [])):
            try:
                handler(event, *args)
            except Exception as e:
                logger.error(f"Error in {event.value} handler: {e}", exc_info=True)

    def load_source(self, url: str) -> None:
        if self._destroyed:
            raise RuntimeError("HlsSession has been destroyed")
        self._url = url
        self._task = asyncio.get_running_loop().create_task(self._load(url))

    def attach_media(self, media: Any) -> None:
        self._media = media
        media.attach(self)

    async def _fetch(self, url: str) -> str:
        async with self._session.get(
            url,
            timeout=aiohttp.ClientTimeout(total=self._timeout),
            ssl=self._verify_ssl,
        ) as response:
            if not 200 <= response.status < 300:
                raise aiohttp.ClientResponseError(
                    response.request_info,
                    response.history,
                    status=response.status,
                    message=f"HTTP {response.status}",
                )
            return await response.text()

    async def _load(self, url: str) -> None:
        logger.info(f"Loading manifest {url}")

        try:
            text = await self._fetch(url)
        except aiohttp.ClientResponseError as e:
            self._fail(HlsErrorType.NETWORK_ERROR, "manifestLoadError", True, e.status)
            return
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Manifest request failed: {e}")
            self._fail(HlsErrorType.NETWORK_ERROR, "manifestLoadError", True)
            return
        except UnicodeDecodeError as e:
            logger.debug(f"Manifest is not valid text: {e}")
            self._fail(HlsErrorType.NETWORK_ERROR, "manifestParsingError", True)
            return

        if not text.lstrip().startswith("#EXTM3U"):
            self._fail(HlsErrorType.NETWORK_ERROR, "manifestParsingError", True)
            return

        try:
            playlist = m3u8.loads(text, uri=url)
        except (ValueError, AttributeError, IndexError) as e:
            logger.debug(f"Manifest parse failed: {e}")
            self._fail(HlsErrorType.NETWORK_ERROR, "manifestParsingError", True)
            return

        if playlist.is_variant and playlist.playlists:
            variant_url = playlist.playlists[0].absolute_uri
            try:
                variant = m3u8.loads(await self._fetch(variant_url), uri=variant_url)
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as e:
                logger.debug(f"Variant request failed: {e}")
                self._fail(HlsErrorType.NETWORK_ERROR, "levelLoadError", False)
            else:
                playlist = variant

        self._playlist = playlist
        logger.info(
            f"Manifest parsed: {len(playlist.segments)} segments, "
            f"{len(playlist.playlists)} variants"
        )
        self._emit(HlsEvent.MANIFEST_PARSED, playlist)

    def _fail(
        self,
        error_type: HlsErrorType,
        details: str,
        fatal: bool,
        response: Optional[int] = None,
    ) -> None:
        self._emit(HlsEvent.ERROR, HlsErrorData(error_type, details, fatal, response))

    def destroy(self) -> None:
        """Stop loading and detach from the surface. Safe to call twice."""
        if self._destroyed:
            return
        self._destroyed = True

        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None

        if self._media is not None:
            self._media.detach()
            self._media = None

        self._handlers.clear()
        logger.debug(f"Destroyed HLS session for {self._url}")

    @property
    def playlist(self) -> Optional[m3u8.M3U8]:
        return self._playlist

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    @property
    def url(self) -> Optional[str]:
        return self._url
