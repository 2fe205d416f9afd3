# backend/modules/realtime/services/reconnection_controller.py

"""
Keeps one realtime channel alive.

Failed joins are retried with capped exponential backoff up to a fixed number
of attempts. A periodic health check reopens a channel that has silently gone
stale. After ``dispose()`` nothing fires: no timer, no signal handling and no
state notification.
"""

from datetime import datetime
from typing import Optional
import logging

from core.config import settings

from .channel import (
    ACTIVE_STATUSES,
    FAILURE_SIGNALS,
    ChannelFactory,
    ChannelSignal,
    ConnectionState,
    RealtimeChannel,
    StateChangeHandler,
)
from .scheduler import AsyncioScheduler, Scheduler, TimerHandle

logger = logging.getLogger(__name__)


def backoff_delay(attempt: int, base_delay_ms: int, max_delay_ms: int) -> int:
    """Delay in milliseconds before retry number ``attempt`` (1-based)."""
    if attempt < 1:
        raise ValueError("attempt must be at least 1")
    return min(base_delay_ms * (2 ** (attempt - 1)), max_delay_ms)


class ReconnectionController:
    """Reconnection and health-check loop for a single channel"""

    def __init__(
        self,
        channel_factory: ChannelFactory,
        on_state_change: Optional[StateChangeHandler] = None,
        scheduler: Optional[Scheduler] = None,
        max_attempts: Optional[int] = None,
        base_delay_ms: Optional[int] = None,
        max_delay_ms: Optional[int] = None,
        health_check_interval_ms: Optional[int] = None,
    ):
        self.channel_factory = channel_factory
        self.on_state_change = on_state_change
        self.scheduler = scheduler or AsyncioScheduler()

        self.max_attempts = (
            max_attempts if max_attempts is not None
            else settings.REALTIME_MAX_RECONNECT_ATTEMPTS
        )
        self.base_delay_ms = (
            base_delay_ms if base_delay_ms is not None
            else settings.REALTIME_RECONNECT_BASE_DELAY_MS
        )
        self.max_delay_ms = (
            max_delay_ms if max_delay_ms is not None
            else settings.REALTIME_RECONNECT_MAX_DELAY_MS
        )
        self.health_check_interval_ms = (
            health_check_interval_ms if health_check_interval_ms is not None
            else settings.REALTIME_HEALTH_CHECK_INTERVAL_MINUTES * 60 * 1000
        )

        if self.max_attempts < 0:
            raise ValueError("max_attempts must not be negative")
        if self.base_delay_ms <= 0 or self.max_delay_ms < self.base_delay_ms:
            raise ValueError("Backoff delays must be positive and max_delay_ms >= base_delay_ms")
        if self.health_check_interval_ms <= 0:
            raise ValueError("health_check_interval_ms must be positive")

        self._state = ConnectionState.IDLE
        self._attempts = 0
        self._channel: Optional[RealtimeChannel] = None
        self._retry_timer: Optional[TimerHandle] = None
        self._health_timer: Optional[TimerHandle] = None
        self._disposed = False
        self._started = False
        self.last_connected_at: Optional[datetime] = None

    # ========== Public state ==========

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def attempts(self) -> int:
        return self._attempts

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def channel(self) -> Optional[RealtimeChannel]:
        return self._channel

    @property
    def has_pending_retry(self) -> bool:
        return self._retry_timer is not None

    # ========== Lifecycle ==========

    def start(self):
        """Open the first channel and arm the health check. Repeated calls are ignored."""
        if self._disposed or self._started:
            return
        self._started = True
        self._arm_health_check()
        self._open_channel()

    def reconnect(self):
        """Manually reopen the channel with a fresh attempt budget, also from FAILED."""
        if self._disposed:
            return
        if not self._started:
            self.start()
            return
        logger.info("Manual realtime reconnect requested")
        self._force_cycle()

    def dispose(self):
        """Stop everything. Safe to call any number of times."""
        if self._disposed:
            return
        self._disposed = True
        self._cancel_retry_timer()
        self._cancel_health_timer()
        self._release_channel()
        self._state = ConnectionState.IDLE
        logger.debug("Realtime reconnection controller disposed")

    # ========== Channel handling ==========

    def _open_channel(self):
        self._release_channel()
        self._set_state(ConnectionState.CONNECTING)
        if self._disposed:
            return

        try:
            channel = self.channel_factory()
        except Exception:
            logger.exception("Failed to create realtime channel")
            self._schedule_retry(ChannelSignal.CHANNEL_ERROR)
            return

        self._channel = channel
        try:
            channel.subscribe(lambda signal: self._handle_signal(channel, signal))
        except Exception:
            logger.exception("Failed to subscribe realtime channel")
            self._handle_signal(channel, ChannelSignal.CHANNEL_ERROR)

    def _release_channel(self):
        channel, self._channel = self._channel, None
        if channel is None:
            return
        try:
            channel.unsubscribe()
        except Exception:
            logger.exception("Error releasing realtime channel")

    def _handle_signal(self, channel: RealtimeChannel, signal: ChannelSignal):
        if self._disposed:
            return
        if channel is not self._channel:
            logger.debug(f"Ignoring {signal} from a replaced channel")
            return

        signal = ChannelSignal(signal)
        if signal == ChannelSignal.SUBSCRIBED:
            self._attempts = 0
            self._cancel_retry_timer()
            self.last_connected_at = datetime.utcnow()
            logger.info("Realtime channel subscribed")
            self._set_state(ConnectionState.CONNECTED)
        elif signal in FAILURE_SIGNALS:
            logger.warning(f"Realtime channel reported {signal.value}")
            self._schedule_retry(signal)

    # ========== Retry ==========

    def _schedule_retry(self, reason: ChannelSignal):
        if self._retry_timer is not None:
            return

        if self._attempts >= self.max_attempts:
            logger.error(
                f"Realtime reconnection gave up after {self._attempts} attempts "
                f"(last signal: {reason.value})"
            )
            self._set_state(ConnectionState.FAILED)
            return

        self._attempts += 1
        delay_ms = backoff_delay(self._attempts, self.base_delay_ms, self.max_delay_ms)
        logger.info(
            f"Reconnecting realtime channel in {delay_ms}ms "
            f"(attempt {self._attempts}/{self.max_attempts})"
        )
        self._retry_timer = self.scheduler.call_later(delay_ms / 1000, self._on_retry_timer)
        self._set_state(ConnectionState.BACKING_OFF)

    def _on_retry_timer(self):
        self._retry_timer = None
        if self._disposed:
            return
        self._open_channel()

    def _cancel_retry_timer(self):
        timer, self._retry_timer = self._retry_timer, None
        if timer is not None:
            timer.cancel()

    def _force_cycle(self):
        self._cancel_retry_timer()
        self._attempts = 0
        self._open_channel()

    # ========== Health check ==========

    def _arm_health_check(self):
        if self._disposed:
            return
        self._health_timer = self.scheduler.call_later(
            self.health_check_interval_ms / 1000, self._on_health_check
        )

    def _cancel_health_timer(self):
        timer, self._health_timer = self._health_timer, None
        if timer is not None:
            timer.cancel()

    def _on_health_check(self):
        self._health_timer = None
        if self._disposed:
            return

        channel = self._channel
        try:
            status = channel.status if channel is not None else None
        except Exception:
            logger.exception("Could not read realtime channel status")
            status = None

        if status not in ACTIVE_STATUSES:
            status_name = status.value if status is not None else "none"
            logger.warning(f"Realtime health check failed, channel status: {status_name}")
            self._force_cycle()

        self._arm_health_check()

    # ========== Notifications ==========

    def _set_state(self, state: ConnectionState):
        if self._disposed or state == self._state:
            return
        self._state = state
        if self.on_state_change is None:
            return
        try:
            self.on_state_change(state)
        except Exception:
            logger.exception(f"State change callback failed for {state.value}")
