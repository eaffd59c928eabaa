"""Tests for the playback controller."""

import pytest

from conftest import FakeSurface, settle
from livesync.models import LivenessFact, PlaybackState
from livesync.playback import PlaybackController, manifest_url

ORIGIN = "https://localhost:443"


def make_controller(surface, session_cls, scheduler) -> PlaybackController:
    return PlaybackController(
        surface=surface,
        origin=ORIGIN,
        room="jolsho",
        http_session=object(),
        session_cls=session_cls,
        scheduler=scheduler,
    )


def test_manifest_url():
    assert manifest_url("https://localhost:443/", "jolsho") == (
        "https://localhost:443/hls/jolsho/index.m3u8"
    )


@pytest.mark.asyncio
async def test_manifest_parsed_starts_playback(session_cls, scheduler):
    """Test Loading -> Playing through the streaming session path."""
    surface = FakeSurface()
    controller = make_controller(surface, session_cls, scheduler)

    controller.mount()

    assert controller.state == PlaybackState.LOADING
    [session] = session_cls.instances
    assert session.url == f"{ORIGIN}/hls/jolsho/index.m3u8"
    assert session.media is surface
    assert [h.delay for h in scheduler.pending] == [10.0]

    session.parse()
    assert scheduler.pending == []
    await settle()

    assert controller.state == PlaybackState.PLAYING
    assert surface.play_calls == 1


@pytest.mark.asyncio
async def test_load_timeout_destroys_session_once(session_cls, scheduler):
    """Test that a manifest that never parses ends in Unavailable after 10 seconds."""
    controller = make_controller(FakeSurface(), session_cls, scheduler)
    controller.mount()
    [session] = session_cls.instances

    scheduler.advance(9.5)
    assert controller.state == PlaybackState.LOADING

    scheduler.advance(0.5)
    assert controller.state == PlaybackState.UNAVAILABLE
    assert session.destroy_count == 1

    controller.teardown()
    controller.teardown()
    assert session.destroy_count == 1


@pytest.mark.asyncio
async def test_fatal_error_bypasses_timeout(session_cls, scheduler):
    """Test that a fatal error tears the session down immediately."""
    controller = make_controller(FakeSurface(), session_cls, scheduler)
    controller.mount()
    [session] = session_cls.instances

    session.fail(fatal=True)

    assert controller.state == PlaybackState.UNAVAILABLE
    assert session.destroy_count == 1
    assert scheduler.pending == []


@pytest.mark.asyncio
async def test_non_fatal_error_is_ignored(session_cls, scheduler):
    """Test that non-fatal errors leave the load running."""
    controller = make_controller(FakeSurface(), session_cls, scheduler)
    controller.mount()
    [session] = session_cls.instances

    session.fail(fatal=False, details="levelLoadError")

    assert controller.state == PlaybackState.LOADING
    assert session.destroy_count == 0
    assert len(scheduler.pending) == 1


@pytest.mark.asyncio
async def test_play_failure_is_unavailable(session_cls, scheduler):
    """Test that a rejected play() ends in Unavailable."""
    controller = make_controller(FakeSurface(play_error=True), session_cls, scheduler)
    controller.mount()
    session_cls.instances[0].parse()
    await settle()

    assert controller.state == PlaybackState.UNAVAILABLE
    assert session_cls.instances[0].destroy_count == 1


@pytest.mark.asyncio
async def test_liveness_flip_restarts_from_idle(session_cls, scheduler):
    """Test offline -> live resets to Idle then Loading with a fresh timer."""
    controller = make_controller(FakeSurface(), session_cls, scheduler)
    states = []

    @controller.event
    def on_state(state):
        states.append(state)

    controller.mount()
    controller.on_liveness(LivenessFact(is_live=False, title="Will be back tomorrow."))
    scheduler.advance(10.0)
    assert controller.state == PlaybackState.UNAVAILABLE

    states.clear()
    controller.on_liveness(LivenessFact(is_live=True, title="Jam"))

    assert states == [PlaybackState.IDLE, PlaybackState.LOADING]
    assert len(session_cls.instances) == 3
    assert all(s.destroy_count == 1 for s in session_cls.instances[:2])
    assert [h.delay for h in scheduler.pending] == [10.0]


@pytest.mark.asyncio
async def test_same_liveness_does_not_reload(session_cls, scheduler):
    """Test that a title-only change leaves playback alone."""
    controller = make_controller(FakeSurface(), session_cls, scheduler)
    controller.on_liveness(LivenessFact(is_live=True, title="Jam"))
    controller.on_liveness(LivenessFact(is_live=True, title="Jam"))
    controller.on_liveness(LivenessFact(is_live=True, title="Renamed"))

    assert len(session_cls.instances) == 1


@pytest.mark.asyncio
async def test_stale_session_events_are_ignored(session_cls, scheduler):
    """Test that a superseded session cannot move the state machine."""
    controller = make_controller(FakeSurface(), session_cls, scheduler)
    controller.mount()
    old = session_cls.instances[0]
    controller.on_liveness(LivenessFact(is_live=True, title="Jam"))

    old.fail(fatal=True)
    old.parse()
    await settle()

    assert controller.state == PlaybackState.LOADING
    assert old.destroy_count == 1


@pytest.mark.asyncio
async def test_native_playback(session_cls, scheduler):
    """Test the native path sets the source and plays without a session."""
    surface = FakeSurface(native=True)
    controller = make_controller(surface, session_cls, scheduler)

    controller.mount()
    assert surface.source == f"{ORIGIN}/hls/jolsho/index.m3u8"
    await settle()

    assert controller.state == PlaybackState.PLAYING
    assert session_cls.instances == []
    assert scheduler.pending == []

    surface.on_error()
    assert controller.state == PlaybackState.UNAVAILABLE


@pytest.mark.asyncio
async def test_native_play_rejected(session_cls, scheduler):
    controller = make_controller(FakeSurface(native=True, play_error=True), session_cls, scheduler)
    controller.mount()
    await settle()

    assert controller.state == PlaybackState.UNAVAILABLE


@pytest.mark.asyncio
async def test_no_capability_is_unavailable(session_cls, scheduler):
    """Test that with neither path available the controller goes straight to Unavailable."""
    session_cls.supported = False
    controller = make_controller(FakeSurface(), session_cls, scheduler)

    controller.mount()

    assert controller.state == PlaybackState.UNAVAILABLE
    assert session_cls.instances == []
