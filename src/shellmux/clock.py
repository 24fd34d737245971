"""Delayed-callback scheduling.

Sessions never call asyncio timers directly; they receive a Clock so that
reconnect timing can be driven by hand in tests.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    """Handle returned by Clock.call_later"""

    def cancel(self) -> None:
        ...


class Clock(ABC):
    """Schedules callbacks after a delay"""

    @abstractmethod
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        """
        Schedule callback to run once after delay seconds.

        Args:
            delay: Delay in seconds
            callback: Zero-argument callable

        Returns:
            Handle whose cancel() guarantees the callback will not run
        """


class AsyncioClock(Clock):
    """Clock backed by the running asyncio event loop"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        logger.debug(f"Scheduling callback in {delay:.3f}s: {callback!r}")
        return loop.call_later(delay, callback)
