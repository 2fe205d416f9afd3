# backend/modules/realtime/services/websocket_channel.py

"""
RealtimeChannel over a plain WebSocket connection.

Protocol: after connecting the client sends
``{"type": "join", "topic": <topic>}`` and waits for
``{"type": "join_ack", "topic": <topic>}``. An ``{"type": "error"}`` reply
rejects the join. Every other JSON message is handed to ``on_message``.

When ``on_settled`` is given it is called once a burst of messages is over,
that is after ``debounce_ms`` without a new message. Consumers use it to
refresh cached views once per burst instead of once per message.
"""

from typing import Any, Callable, Dict, Optional
import asyncio
import json
import logging

import websockets
from websockets.exceptions import ConnectionClosedOK, WebSocketException

from core.config import settings

from .channel import ChannelSignal, ChannelStatus, RealtimeChannel, SignalHandler

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Dict[str, Any]], None]
SettledHandler = Callable[[], None]


class ChannelJoinError(Exception):
    """Server refused the join request"""


class WebSocketChannel(RealtimeChannel):
    """One topic subscription over its own WebSocket connection"""

    def __init__(
        self,
        url: str,
        topic: str,
        on_message: Optional[MessageHandler] = None,
        join_timeout: Optional[float] = None,
        on_settled: Optional[SettledHandler] = None,
        debounce_ms: Optional[int] = None,
    ):
        self.url = url
        self.topic = topic
        self.on_message = on_message
        self.join_timeout = (
            join_timeout if join_timeout is not None else settings.REALTIME_JOIN_TIMEOUT_SECONDS
        )
        self.on_settled = on_settled
        self.debounce_ms = (
            debounce_ms if debounce_ms is not None else settings.REALTIME_MESSAGE_DEBOUNCE_MS
        )
        self._status = ChannelStatus.CLOSED
        self._on_signal: Optional[SignalHandler] = None
        self._task: Optional[asyncio.Task] = None
        self._settle_timer: Optional[asyncio.TimerHandle] = None
        self._released = False

    @property
    def status(self) -> ChannelStatus:
        return self._status

    def subscribe(self, on_signal: SignalHandler) -> None:
        if self._task is not None:
            raise RuntimeError("Channel is already subscribed")
        self._on_signal = on_signal
        self._status = ChannelStatus.JOINING
        self._task = asyncio.get_running_loop().create_task(self._run())

    def unsubscribe(self) -> None:
        if self._released:
            return
        self._released = True
        self._on_signal = None
        self._status = ChannelStatus.LEAVING
        if self._task is not None and not self._task.done():
            self._task.cancel()
        if self._settle_timer is not None:
            self._settle_timer.cancel()
            self._settle_timer = None
        self._status = ChannelStatus.CLOSED

    async def _run(self):
        try:
            async with websockets.connect(
                self.url,
                ping_interval=30,  # Keep connection alive
                ping_timeout=10,
                close_timeout=10,
            ) as websocket:
                await websocket.send(json.dumps({"type": "join", "topic": self.topic}))

                try:
                    await asyncio.wait_for(self._wait_for_ack(websocket), timeout=self.join_timeout)
                except asyncio.TimeoutError:
                    logger.warning(f"Join for topic {self.topic} timed out after {self.join_timeout}s")
                    self._status = ChannelStatus.ERRORED
                    self._emit(ChannelSignal.TIMED_OUT)
                    return

                self._status = ChannelStatus.JOINED
                self._emit(ChannelSignal.SUBSCRIBED)

                async for raw in websocket:
                    self._dispatch(raw)

            self._status = ChannelStatus.CLOSED
            self._emit(ChannelSignal.CLOSED)

        except asyncio.CancelledError:
            raise
        except ConnectionClosedOK:
            self._status = ChannelStatus.CLOSED
            self._emit(ChannelSignal.CLOSED)
        except asyncio.TimeoutError:
            # Opening handshake timed out
            logger.warning(f"Connecting to {self.url} for topic {self.topic} timed out")
            self._status = ChannelStatus.ERRORED
            self._emit(ChannelSignal.TIMED_OUT)
        except (ChannelJoinError, WebSocketException, OSError) as e:
            logger.error(f"Realtime channel error on topic {self.topic}: {e}")
            self._status = ChannelStatus.ERRORED
            self._emit(ChannelSignal.CHANNEL_ERROR)
        except Exception:
            logger.exception(f"Unexpected realtime channel failure on topic {self.topic}")
            self._status = ChannelStatus.ERRORED
            self._emit(ChannelSignal.CHANNEL_ERROR)

    async def _wait_for_ack(self, websocket):
        while True:
            data = self._decode(await websocket.recv())
            if data is None:
                continue
            message_type = data.get("type")
            if message_type == "join_ack" and data.get("topic") == self.topic:
                return
            if message_type == "error":
                raise ChannelJoinError(data.get("message", "join rejected"))
            self._deliver(data)

    def _decode(self, raw) -> Optional[Dict[str, Any]]:
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning(f"Dropping non-JSON message on topic {self.topic}")
            return None
        if not isinstance(data, dict):
            logger.warning(f"Dropping non-object message on topic {self.topic}")
            return None
        return data

    def _dispatch(self, raw):
        data = self._decode(raw)
        if data is not None:
            self._deliver(data)

    def _deliver(self, data: Dict[str, Any]):
        if self._released:
            return
        if self.on_message is not None:
            try:
                self.on_message(data)
            except Exception:
                logger.exception(f"Message handler failed on topic {self.topic}")
        self._schedule_settled()

    def _schedule_settled(self):
        if self.on_settled is None:
            return
        if self._settle_timer is not None:
            self._settle_timer.cancel()
        self._settle_timer = asyncio.get_running_loop().call_later(
            self.debounce_ms / 1000, self._fire_settled
        )

    def _fire_settled(self):
        self._settle_timer = None
        if self._released or self.on_settled is None:
            return
        try:
            self.on_settled()
        except Exception:
            logger.exception(f"Settled handler failed on topic {self.topic}")

    def _emit(self, signal: ChannelSignal):
        handler = self._on_signal
        if self._released or handler is None:
            return
        try:
            handler(signal)
        except Exception:
            logger.exception(f"Signal handler failed for {signal.value}")
