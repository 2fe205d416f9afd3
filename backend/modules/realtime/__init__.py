# backend/modules/realtime/__init__.py

"""
Realtime channel supervision: backoff reconnection and health checks.
"""

from .services.channel import (
    ChannelSignal,
    ChannelStatus,
    ConnectionState,
    RealtimeChannel,
)
from .services.scheduler import AsyncioScheduler, Scheduler, TimerHandle
from .services.reconnection_controller import ReconnectionController, backoff_delay
from .services.websocket_channel import WebSocketChannel

__all__ = [
    "ChannelSignal",
    "ChannelStatus",
    "ConnectionState",
    "RealtimeChannel",
    "AsyncioScheduler",
    "Scheduler",
    "TimerHandle",
    "ReconnectionController",
    "backoff_delay",
    "WebSocketChannel",
]
