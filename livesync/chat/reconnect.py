"""
Reconnection manager with capped exponential backoff.
"""

import logging
from typing import Any, Callable, Optional

from livesync.exceptions import ExhaustedRetries
from livesync.timers import Scheduler, ScopedTimer

logger = logging.getLogger(__name__)


class ReconnectionManager:
    """
    Manages reconnection attempts with exponential backoff.

    Implements the strategy:
    - 1s -> 2s -> 4s -> 8s -> 10s (max), then give up after 5 attempts
    - Reset counter on successful connection
    """

    def __init__(
        self,
        initial_backoff_ms: int = 1000,
        max_backoff_ms: int = 10000,
        max_attempts: int = 5,
        scheduler: Optional[Scheduler] = None,
    ):
        """
        Initialize reconnection manager.

        Args:
            initial_backoff_ms: Backoff before the first reconnect in milliseconds
            max_backoff_ms: Maximum backoff in milliseconds
            max_attempts: Maximum number of reconnection attempts
            scheduler: Scheduler the reconnect timers are armed on
        """
        self._initial_backoff_ms = initial_backoff_ms
        self._max_backoff_ms = max_backoff_ms
        self._max_attempts = max_attempts
        self._scheduler = scheduler

        self._attempts = 0
        self._timer: Optional[ScopedTimer] = None

    def backoff_ms(self, attempts: int) -> int:
        """Backoff for a reconnect made after `attempts` failed attempts."""
        return min(self._initial_backoff_ms * 2 ** attempts, self._max_backoff_ms)

    def schedule(self, callback: Callable[[], Any]) -> ScopedTimer:
        """
        Schedule one reconnect and count the attempt.

        Returns:
            The armed timer

        Raises:
            ExhaustedRetries: If max attempts were already used up
        """
        if self._attempts >= self._max_attempts:
            logger.error(f"Max reconnection attempts ({self._max_attempts}) exceeded")
            raise ExhaustedRetries(
                f"Failed to reconnect after {self._attempts} attempts"
            )

        delay_ms = self.backoff_ms(self._attempts)
        self._attempts += 1

        logger.info(
            f"Reconnection attempt {self._attempts}/{self._max_attempts} in {delay_ms}ms"
        )

        self.cancel()
        self._timer = ScopedTimer(
            delay_ms / 1000,
            callback,
            scheduler=self._scheduler,
            name="reconnect timer",
        ).start()
        return self._timer

    def cancel(self) -> None:
        """Cancel a pending reconnect, if any."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def reset(self) -> None:
        """Reset reconnection state after successful connection."""
        if self._attempts > 0:
            logger.info(
                f"Connection established after {self._attempts} attempts, "
                "resetting reconnection state"
            )

        self._attempts = 0

    @property
    def attempts(self) -> int:
        """Get the number of reconnection attempts."""
        return self._attempts
