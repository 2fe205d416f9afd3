# backend/modules/realtime/tests/conftest.py

import pytest

from modules.realtime.services.channel import ChannelStatus, RealtimeChannel
from modules.realtime.services.scheduler import Scheduler, TimerHandle


class FakeTimer(TimerHandle):
    def __init__(self, due, delay, callback):
        self.due = due
        self.delay = delay
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler(Scheduler):
    """Manual clock; timers only run when the test advances time"""

    def __init__(self):
        self.now = 0.0
        self.timers = []

    def call_later(self, delay_seconds, callback):
        timer = FakeTimer(self.now + delay_seconds, delay_seconds, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def advance(self, seconds):
        """Move the clock forward, firing due timers in order"""
        target = self.now + seconds
        while True:
            due = [t for t in self.pending if t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self.now = timer.due
            timer.fired = True
            timer.callback()
        self.now = target


class FakeChannel(RealtimeChannel):
    def __init__(self):
        self._status = ChannelStatus.CLOSED
        self.handler = None
        self.unsubscribed = False

    @property
    def status(self):
        return self._status

    def set_status(self, status):
        self._status = status

    def subscribe(self, on_signal):
        self.handler = on_signal
        self._status = ChannelStatus.JOINING

    def unsubscribe(self):
        self.unsubscribed = True
        self._status = ChannelStatus.CLOSED

    def emit(self, signal):
        self.handler(signal)


class ChannelFactory:
    """Records every channel it creates"""

    def __init__(self):
        self.channels = []

    def __call__(self):
        channel = FakeChannel()
        self.channels.append(channel)
        return channel

    @property
    def latest(self):
        return self.channels[-1]


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def channel_factory():
    return ChannelFactory()


@pytest.fixture
def states():
    return []
