"""
Wake-time scheduling with day rollover
"""

from datetime import datetime, time, timedelta
from typing import Callable, Optional

from .errors import SchedulingError
from .host import SchedulerHost
from .logging_utils import get_logger, log_error
from .models import ALARM_ACTION, ALARM_KIND, SoundId, Trigger

logger = get_logger(__name__)


def next_fire_time(time_of_day: time, now: datetime) -> datetime:
    """
    Next occurrence of ``time_of_day`` strictly after ``now``.

    A time equal to ``now`` rolls over to tomorrow. ``time_of_day`` is used
    as given; callers parsing HH:MM input already carry zero seconds.
    """
    candidate = datetime.combine(now.date(), time_of_day)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


class WakeScheduler:
    """Keeps at most one wake trigger registered with the host"""

    def __init__(self, host: SchedulerHost, clock: Callable[[], datetime] = datetime.now):
        self.host = host
        self.clock = clock
        self._current: Optional[Trigger] = None

    @property
    def current(self) -> Optional[Trigger]:
        return self._current

    def schedule(self, time_of_day: time, sound_id: SoundId) -> Trigger:
        """
        Replace the pending trigger with one at the next ``time_of_day``.

        Args:
            time_of_day: Local wall-clock wake time
            sound_id: Alarm tone to ring with

        Returns:
            The newly registered trigger

        Raises:
            SchedulingError: The host refused the registration
        """
        self.cancel()

        fire_at = next_fire_time(time_of_day, self.clock())
        payload = {
            "kind": ALARM_KIND,
            "action": ALARM_ACTION,
            "scheduled_at": fire_at.isoformat(),
            "sound_id": sound_id.value,
        }
        try:
            handle = self.host.register_trigger(fire_at, payload)
        except Exception as e:
            log_error(logger, "scheduler", e, {"fire_at": fire_at.isoformat()})
            raise SchedulingError(f"Failed to register wake trigger for {fire_at.isoformat()}: {e}") from e

        self._current = Trigger(scheduled_at=fire_at, sound_id=sound_id, registration_handle=handle)
        logger.info(f"Alarm scheduled for {fire_at.isoformat()} ({sound_id.value})")
        return self._current

    def cancel(self, trigger: Optional[Trigger] = None) -> None:
        """Cancel ``trigger`` (default: the current one); never raises"""
        target = trigger or self._current
        if target is None:
            return

        try:
            self.host.cancel_trigger(target.registration_handle)
        except Exception as e:
            logger.warning(f"Host failed to cancel trigger {target.registration_handle}: {e}")

        if self._current is not None and self._current.registration_handle == target.registration_handle:
            self._current = None

    def adopt(self, trigger: Optional[Trigger]) -> None:
        """Take over a trigger restored from persisted state"""
        self._current = trigger
        if trigger is not None:
            logger.info(f"Adopted trigger {trigger.registration_handle} for {trigger.scheduled_at.isoformat()}")

    def forget(self) -> None:
        self._current = None
