# backend/modules/realtime/services/scheduler.py

"""
Timer abstraction so reconnection timing can run on asyncio or a manual clock.
"""

from abc import ABC, abstractmethod
from typing import Callable, Optional
import asyncio


class TimerHandle(ABC):
    @abstractmethod
    def cancel(self) -> None:
        ...


class Scheduler(ABC):
    """Runs a callback once after a delay"""

    @abstractmethod
    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        ...


class AsyncioTimerHandle(TimerHandle):
    def __init__(self, handle: asyncio.TimerHandle):
        self._handle = handle

    def cancel(self) -> None:
        self._handle.cancel()

    @property
    def cancelled(self) -> bool:
        return self._handle.cancelled()


class AsyncioScheduler(Scheduler):
    """Scheduler backed by an event loop's call_later"""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def call_later(self, delay_seconds: float, callback: Callable[[], None]) -> TimerHandle:
        return AsyncioTimerHandle(self.loop.call_later(delay_seconds, callback))
