# backend/modules/realtime/services/channel.py

"""
Transport-neutral channel contract used by the reconnection controller.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import Callable, Optional


class ChannelSignal(str, Enum):
    """Lifecycle events a channel reports to its subscriber"""
    SUBSCRIBED = "SUBSCRIBED"
    TIMED_OUT = "TIMED_OUT"
    CLOSED = "CLOSED"
    CHANNEL_ERROR = "CHANNEL_ERROR"


class ChannelStatus(str, Enum):
    """The channel's own last known state"""
    JOINING = "joining"
    JOINED = "joined"
    LEAVING = "leaving"
    CLOSED = "closed"
    ERRORED = "errored"


class ConnectionState(str, Enum):
    """State reported by the reconnection controller"""
    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    BACKING_OFF = "backing_off"
    FAILED = "failed"


FAILURE_SIGNALS = frozenset({
    ChannelSignal.TIMED_OUT,
    ChannelSignal.CLOSED,
    ChannelSignal.CHANNEL_ERROR,
})

ACTIVE_STATUSES = frozenset({ChannelStatus.JOINED, ChannelStatus.JOINING})


SignalHandler = Callable[[ChannelSignal], None]


class RealtimeChannel(ABC):
    """A subscription to one realtime topic"""

    @property
    @abstractmethod
    def status(self) -> ChannelStatus:
        ...

    @abstractmethod
    def subscribe(self, on_signal: SignalHandler) -> None:
        """Start joining; lifecycle changes are reported through on_signal."""

    @abstractmethod
    def unsubscribe(self) -> None:
        """Release the channel. No signals are delivered afterwards."""


ChannelFactory = Callable[[], RealtimeChannel]

StateChangeHandler = Callable[[ConnectionState], None]
