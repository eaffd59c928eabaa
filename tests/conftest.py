"""Shared fixtures and test doubles."""

import asyncio
from typing import Any, Callable, List, Optional

import pytest

from livesync.exceptions import PlaybackUnavailable, TransportError
from livesync.hls import HlsErrorData, HlsErrorType, HlsEvent
from livesync.surfaces import PlaybackSurface


async def settle(rounds: int = 10) -> None:
    """Let pending tasks on the loop run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


class FakeHandle:
    def __init__(self, when: float, delay: float, callback: Callable[[], Any]):
        self.when = when
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Scheduler with a manual clock."""

    def __init__(self) -> None:
        self.now = 0.0
        self.handles: List[FakeHandle] = []

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> FakeHandle:
        handle = FakeHandle(self.now + delay, delay, lambda: callback(*args))
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> List[FakeHandle]:
        return [h for h in self.handles if not h.cancelled and not h.fired]

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.pending if h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self.now = handle.when
            handle.fired = True
            handle.callback()
        self.now = target


class FakeSocket:
    """Chat socket fed by the test."""

    def __init__(self) -> None:
        self.sent: List[str] = []
        self.closed = False
        self._frames: asyncio.Queue = asyncio.Queue()

    def push(self, frame: str) -> None:
        self._frames.put_nowait(frame)

    def drop(self) -> None:
        """Simulate the server closing the connection."""
        self._frames.put_nowait(None)

    async def frames(self):
        while True:
            frame = await self._frames.get()
            if frame is None:
                return
            yield frame

    async def send(self, frame: str) -> None:
        self.sent.append(frame)

    async def close(self) -> None:
        self.closed = True


class FakeConnector:
    """Returns queued outcomes; fails with TransportError once they run out."""

    def __init__(self, *outcomes: Any):
        self.outcomes = list(outcomes)
        self.urls: List[str] = []

    async def __call__(self, url: str) -> FakeSocket:
        self.urls.append(url)
        outcome = self.outcomes.pop(0) if self.outcomes else TransportError("refused")
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    @property
    def calls(self) -> int:
        return len(self.urls)


class FakeSurface(PlaybackSurface):
    def __init__(self, native: bool = False, play_error: bool = False):
        super().__init__()
        self.native = native
        self.play_error = play_error
        self.play_calls = 0
        self.stop_calls = 0

    def can_play_native(self, mime_type: str) -> bool:
        return self.native

    async def play(self) -> None:
        self.play_calls += 1
        if self.play_error:
            raise PlaybackUnavailable("play() rejected")

    def stop(self) -> None:
        self.stop_calls += 1
        super().stop()


class FakeHlsSession:
    """Streaming session the test drives by hand."""

    supported = True
    instances: List["FakeHlsSession"] = []

    def __init__(self, http_session: Any, timeout: float = 10.0, verify_ssl: bool = True):
        self.http_session = http_session
        self.timeout = timeout
        self.handlers: dict = {}
        self.url: Optional[str] = None
        self.media: Any = None
        self.destroy_count = 0
        self.instances.append(self)

    @classmethod
    def is_supported(cls) -> bool:
        return cls.supported

    def on(self, event: HlsEvent, handler: Callable) -> None:
        self.handlers.setdefault(event, []).append(handler)

    def load_source(self, url: str) -> None:
        self.url = url

    def attach_media(self, media: Any) -> None:
        self.media = media
        media.attach(self)

    def destroy(self) -> None:
        self.destroy_count += 1

    def parse(self) -> None:
        for handler in self.handlers.get(HlsEvent.MANIFEST_PARSED, []):
            handler(HlsEvent.MANIFEST_PARSED, None)

    def fail(self, fatal: bool = True, details: str = "manifestLoadError") -> None:
        data = HlsErrorData(HlsErrorType.NETWORK_ERROR, details, fatal, 404)
        for handler in self.handlers.get(HlsEvent.ERROR, []):
            handler(HlsEvent.ERROR, data)


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def session_cls():
    """A fresh FakeHlsSession subclass with its own instance registry."""

    class Session(FakeHlsSession):
        supported = True
        instances: List[FakeHlsSession] = []

    return Session
