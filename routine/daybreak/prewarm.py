"""
Background task that warms the audio subsystem before a wake trigger
"""

import asyncio
from datetime import datetime
from typing import Callable

from .audio import AudioSessionManager
from .config import Timings
from .errors import AudioBusyError
from .host import SchedulerHost
from .logging_utils import get_logger, log_error
from .models import AudioOwner, TaskResult

logger = get_logger(__name__)

TASK_NAME = "daybreak-prewarm"


class PrewarmTask:
    """Periodic probe that primes audio output as a trigger approaches.

    Runs alongside foreground work and only prepares resources; it never
    takes the output away from a ringer, speech or podcast owner.
    """

    def __init__(self, host: SchedulerHost, audio: AudioSessionManager, timings: Timings,
                 clock: Callable[[], datetime] = datetime.now):
        self.host = host
        self.audio = audio
        self.timings = timings
        self.clock = clock

    def register(self) -> None:
        """Register with the host background-task facility"""
        self.host.register_periodic_task(TASK_NAME, self.run, self.timings.prewarm_interval_s)

    async def run(self) -> TaskResult:
        """One bounded pre-warm pass; failures are reported, never raised"""
        try:
            return await asyncio.wait_for(self._run_once(), timeout=self.timings.prewarm_bound_s)
        except asyncio.TimeoutError:
            logger.warning(f"Pre-warm run exceeded {self.timings.prewarm_bound_s}s")
            return TaskResult.FAILED
        except Exception as e:
            log_error(logger, "prewarm", e)
            return TaskResult.FAILED

    async def _run_once(self) -> TaskResult:
        pending = self.host.pending_triggers()
        if not pending:
            return TaskResult.NO_DATA

        now = self.clock()
        acted = False
        for trigger in pending:
            if trigger.fire_at is None:
                logger.debug(f"Skipping trigger {trigger.handle} without a fire time")
                continue

            seconds_until_fire = (trigger.fire_at - now).total_seconds()
            if seconds_until_fire <= 0 or seconds_until_fire >= self.timings.prewarm_window_s:
                continue

            logger.info(f"Trigger {trigger.handle} fires in {seconds_until_fire:.0f}s, preparing audio")
            if await self.audio.prepare():
                acted = True

            if seconds_until_fire <= self.timings.prewarm_escalate_s:
                try:
                    await self.audio.reenable(owner=AudioOwner.PREWARM_PROBE)
                    acted = True
                except AudioBusyError as e:
                    logger.info(f"Skipping forced re-enable: {e}")

        return TaskResult.NEW_DATA if acted else TaskResult.NO_DATA
