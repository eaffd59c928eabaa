"""
HTTP API for the room's live status.
"""

import asyncio
import logging

import aiohttp
from pydantic import ValidationError

from livesync.exceptions import ProtocolError, TransportError
from livesync.models import StreamStatus

logger = logging.getLogger(__name__)


def status_url(origin: str) -> str:
    return f"{origin.rstrip('/')}/isLive"


async def get_live_status(
    session: aiohttp.ClientSession,
    origin: str,
    room: str,
    timeout: float = 10.0,
    verify_ssl: bool = True,
) -> StreamStatus:
    """
    Get the live status for a room.

    Args:
        session: HTTP session used for the request
        origin: Server origin, e.g. https://localhost:443
        room: Room name
        timeout: Request timeout in seconds
        verify_ssl: Whether to verify the server certificate

    Returns:
        Parsed status payload

    Raises:
        TransportError: On a non-success response or network failure
        ProtocolError: If the body is not a status document
    """
    url = status_url(origin)

    try:
        async with session.get(
            url,
            params={"room": room},
            timeout=aiohttp.ClientTimeout(total=timeout),
            ssl=verify_ssl,
        ) as response:
            if not 200 <= response.status < 300:
                raise TransportError(
                    f"Failed to get live status: HTTP {response.status}"
                )

            # unknown rooms answer 204 with a plain "OK" body
            try:
                data = await response.json(content_type=None)
            except ValueError as e:
                raise ProtocolError(f"Live status is not JSON: {e}") from e

    except aiohttp.ClientError as e:
        raise TransportError(f"Network error: {e}") from e
    except asyncio.TimeoutError as e:
        raise TransportError("Live status request timed out") from e

    if not isinstance(data, dict):
        raise ProtocolError(f"Unexpected live status payload: {data!r}")

    try:
        return StreamStatus.model_validate(data)
    except ValidationError as e:
        raise ProtocolError(f"Invalid live status payload: {e}") from e
