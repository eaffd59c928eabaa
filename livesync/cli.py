"""Command-line interface for LiveSync."""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional

import aiohttp
import click

from livesync.chat.http import get_live_status
from livesync.chat.models import ChatMessage
from livesync.config import load_config
from livesync.events import log_task_exception
from livesync.exceptions import LiveSyncError
from livesync.models import Config, ConnectionState, LivenessFact, PlaybackState
from livesync.playback import UNAVAILABLE_MESSAGE
from livesync.session import LiveSession

logger = logging.getLogger(__name__)

NOT_LIVE_TITLE = "Not Currently Live"


def describe(fact: Optional[LivenessFact]) -> str:
    """Header line for the current fact."""
    if fact is None:
        return f"[ ] {NOT_LIVE_TITLE}"
    light = "[LIVE]" if fact.is_live else "[ ]"
    return f"{light} {fact.title or NOT_LIVE_TITLE}"


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


config_option = click.option(
    "--config",
    type=click.Path(path_type=Path),
    default="config.yaml",
    help="Path to config YAML file",
)
room_option = click.option("--room", help="Room to watch (overrides config)")
origin_option = click.option("--origin", help="Server origin, e.g. https://localhost:443")


@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose: bool):
    """LiveSync - keep a viewer session in sync with a live broadcast."""
    _configure_logging(verbose)


async def _read_lines(session: LiveSession) -> None:
    """Send stdin lines to the chat until EOF."""
    loop = asyncio.get_running_loop()
    lines: asyncio.Queue = asyncio.Queue()
    try:
        fd = sys.stdin.fileno()
        loop.add_reader(fd, lambda: lines.put_nowait(sys.stdin.readline()))
    except (OSError, ValueError) as e:
        logger.warning(f"Chat input disabled, stdin cannot be watched: {e}")
        return
    try:
        while True:
            line = await lines.get()
            if not line:
                break
            if not await session.channel.send(line.rstrip("\n")):
                click.echo("(message not sent: chat is not connected)")
    finally:
        loop.remove_reader(fd)


async def _watch(cfg: Config, chat: bool) -> None:
    session = LiveSession(cfg)

    @session.channel.event
    def on_message(message: ChatMessage):
        click.echo(f"{message.timestamp} {message.text}")

    @session.channel.event
    def on_status(text: str):
        if text:
            click.echo(f"chat: {text}")

    @session.channel.event
    def on_state(state: ConnectionState):
        logger.info(f"Chat {state.value.lower()}")

    @session.playback.event
    def on_state(state: PlaybackState):  # noqa: F811
        if state == PlaybackState.UNAVAILABLE:
            click.echo(UNAVAILABLE_MESSAGE)
        else:
            logger.info(f"Playback {state.value.lower()}")

    session.poller.subscribe(lambda fact: click.echo(describe(fact)))

    await session.start()
    reader = None
    if chat:
        reader = asyncio.get_running_loop().create_task(_read_lines(session), name="stdin reader")
        reader.add_done_callback(log_task_exception)
    try:
        await session.run()
    finally:
        if reader is not None:
            reader.cancel()
            await asyncio.wait([reader])
        await session.stop()


@cli.command()
@config_option
@room_option
@origin_option
@click.option("--player", help="External player command for native HLS playback, e.g. mpv")
@click.option("--chat/--no-chat", default=True, help="Send lines typed on stdin to the chat")
def watch(config: Path, room: Optional[str], origin: Optional[str], player: Optional[str], chat: bool):
    """Follow a room: live status, chat and playback."""
    cfg = load_config(config, room=room, origin=origin, player_command=player)
    logger.info(f"Watching room {cfg.room} at {cfg.origin}")

    try:
        asyncio.run(_watch(cfg, chat))
    except KeyboardInterrupt:
        logger.info("Received interrupt signal, stopping session")


async def _status(cfg: Config) -> int:
    async with aiohttp.ClientSession() as session:
        try:
            status = await get_live_status(
                session,
                cfg.origin,
                cfg.room,
                timeout=cfg.request_timeout_sec,
                verify_ssl=cfg.verify_ssl,
            )
        except LiveSyncError as e:
            click.echo(f"Failed to check live status: {e}", err=True)
            return 1

    click.echo(describe(status.to_fact()))
    click.echo(status.model_dump_json(by_alias=True, indent=2))
    return 0


@cli.command()
@config_option
@room_option
@origin_option
def status(config: Path, room: Optional[str], origin: Optional[str]):
    """Check once whether a room is live."""
    cfg = load_config(config, room=room, origin=origin)
    sys.exit(asyncio.run(_status(cfg)))


if __name__ == "__main__":
    cli()
