"""
One-shot timers with a single creation point and idempotent cancellation.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Anything that can run a callback later, e.g. an asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle: ...


class ScopedTimer:
    """
    A one-shot timer guarding a scheduled callback.

    The timer is armed once by `start()` and released by `cancel()`, which is
    safe to call any number of times, before or after the callback fired.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], Any],
        scheduler: Optional[Scheduler] = None,
        name: str = "timer",
    ):
        """
        Initialize timer.

        Args:
            delay: Delay in seconds
            callback: Function called when the timer fires
            scheduler: Scheduler to arm the timer on (defaults to the running loop)
            name: Label used in log messages
        """
        self._delay = delay
        self._callback = callback
        self._scheduler = scheduler
        self._name = name
        self._handle: Optional[TimerHandle] = None
        self._fired = False
        self._cancelled = False

    def start(self) -> "ScopedTimer":
        if self._handle is not None or self._cancelled:
            return self

        scheduler = self._scheduler or asyncio.get_running_loop()
        self._handle = scheduler.call_later(self._delay, self._fire)
        logger.debug(f"Armed {self._name} for {self._delay:.1f}s")
        return self

    def _fire(self) -> None:
        if self._cancelled or self._fired:
            return
        self._fired = True
        self._handle = None
        self._callback()

    def cancel(self) -> None:
        if self._cancelled:
            return
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
            logger.debug(f"Cancelled {self._name}")

    @property
    def active(self) -> bool:
        """Check if the timer is armed and has neither fired nor been cancelled."""
        return self._handle is not None and not self._fired and not self._cancelled

    @property
    def delay(self) -> float:
        return self._delay
