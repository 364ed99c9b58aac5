"""
Classification and de-duplication of wake signals
"""

from datetime import datetime, timedelta
from typing import Awaitable, Callable, Dict, Optional

from .host import SchedulerHost
from .logging_utils import get_logger, log_error, log_wake_signal
from .models import Trigger, WakeSignal, WakeSource, is_alarm_payload
from .scheduler import WakeScheduler

logger = get_logger(__name__)


class WakeDispatcher:
    """Turns delivered, tapped and resumed signals into alarm-fired events.

    A trigger identity emits at most one event within ``dedup_window_s``,
    whether the host delivered it, the user tapped it, or both.
    """

    def __init__(self, scheduler: WakeScheduler, host: SchedulerHost,
                 on_alarm_fired: Callable[[Trigger], Awaitable[None]],
                 should_reconcile: Callable[[], bool],
                 reschedule: Callable[[], Optional[Trigger]],
                 dedup_window_s: float = 3600.0,
                 clock: Callable[[], datetime] = datetime.now):
        self.scheduler = scheduler
        self.host = host
        self.on_alarm_fired = on_alarm_fired
        self.should_reconcile = should_reconcile
        self.reschedule = reschedule
        self.dedup_window = timedelta(seconds=dedup_window_s)
        self.clock = clock
        self._fired: Dict[str, datetime] = {}

    async def on_wake_signal(self, signal: WakeSignal) -> bool:
        """
        Handle a wake signal from the host.

        Args:
            signal: Incoming signal

        Returns:
            True if an alarm-fired event was emitted
        """
        if signal.source is WakeSource.RESUMED:
            self.reconcile()
            log_wake_signal(logger, signal.source.value, None, False)
            return False

        if not is_alarm_payload(signal.payload):
            logger.debug(f"Ignoring foreign {signal.source.value} payload")
            return False

        try:
            trigger = Trigger.from_payload(signal.payload)
        except (KeyError, ValueError) as e:
            logger.warning(f"Malformed alarm payload ignored: {e}")
            return False

        now = self.clock()
        self._prune(now)
        if trigger.identity in self._fired:
            log_wake_signal(logger, signal.source.value, trigger.identity, False, duplicate=True)
            return False

        self._fired[trigger.identity] = now
        log_wake_signal(logger, signal.source.value, trigger.identity, True)
        await self.on_alarm_fired(trigger)
        return True

    def has_fired(self, trigger: Trigger) -> bool:
        return trigger.identity in self._fired

    def reconcile(self) -> bool:
        """Re-register the wake trigger if the host lost it while the alarm is enabled"""
        if not self.should_reconcile():
            return False

        current = self.scheduler.current
        if current is not None and self.has_fired(current):
            return False

        if self.host.pending_triggers():
            return False

        logger.info("Host reports no pending trigger for an enabled alarm, re-registering")
        try:
            self.reschedule()
        except Exception as e:
            log_error(logger, "dispatcher", e)
            return False
        return True

    def _prune(self, now: datetime) -> None:
        expired = [identity for identity, seen in self._fired.items() if now - seen > self.dedup_window]
        for identity in expired:
            del self._fired[identity]
