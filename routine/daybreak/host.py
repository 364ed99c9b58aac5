"""
Host alarm and background-task facility backed by APScheduler
"""

import logging
import uuid
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from apscheduler.triggers.interval import IntervalTrigger

from .models import PendingTrigger, TaskResult, WakeSignal, WakeSource, is_alarm_payload

logger = logging.getLogger(__name__)

WakeHandler = Callable[[WakeSignal], Awaitable[Any]]
PeriodicTask = Callable[[], Awaitable[TaskResult]]

ALARM_JOB_PREFIX = "alarm_"


class SchedulerHost:
    """Schedules wake triggers and periodic tasks on an asyncio scheduler.

    Triggers are one-shot ``DateTrigger`` jobs whose kwargs carry the alarm
    payload; the job id is the registration handle. When a trigger fires
    while the process runs, the payload is delivered to the wake handler as
    a ``delivered`` signal.
    """

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self.scheduler = scheduler or AsyncIOScheduler()
        self._wake_handler: Optional[WakeHandler] = None
        self.task_results: Dict[str, TaskResult] = {}

    def init(self) -> None:
        """Start the scheduler; must run inside the event loop"""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Scheduler host started")

    def teardown(self) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Scheduler host stopped")

    def set_wake_handler(self, handler: Optional[WakeHandler]) -> None:
        self._wake_handler = handler

    def register_trigger(self, at: datetime, payload: Dict[str, Any]) -> str:
        """
        Register a one-shot wake trigger.

        Args:
            at: Local fire time
            payload: Alarm payload; the handle is added by the host

        Returns:
            Registration handle required to cancel the trigger
        """
        handle = f"{ALARM_JOB_PREFIX}{uuid.uuid4().hex[:12]}"
        job_payload = dict(payload, handle=handle)
        self.scheduler.add_job(
            self._deliver,
            trigger=DateTrigger(run_date=at),
            kwargs={"payload": job_payload},
            id=handle,
            name="morning alarm",
            misfire_grace_time=None  # A late alarm still rings
        )
        logger.info(f"Registered trigger {handle} for {at.isoformat()}")
        return handle

    def cancel_trigger(self, handle: str) -> bool:
        """Cancel a trigger; returns False if the host no longer has it"""
        try:
            self.scheduler.remove_job(handle)
        except JobLookupError:
            logger.debug(f"Trigger {handle} not registered, nothing to cancel")
            return False
        logger.info(f"Cancelled trigger {handle}")
        return True

    def pending_triggers(self) -> List[PendingTrigger]:
        """Every registered alarm trigger, stale entries included"""
        pending = []
        for job in self.scheduler.get_jobs():
            payload = job.kwargs.get("payload")
            if not is_alarm_payload(payload):
                continue
            try:
                fire_at = datetime.fromisoformat(payload["scheduled_at"])
            except (TypeError, ValueError):
                fire_at = None
            pending.append(PendingTrigger(handle=job.id, fire_at=fire_at, payload=dict(payload)))
        return pending

    def register_periodic_task(self, name: str, func: PeriodicTask, interval_s: float) -> None:
        """Run ``func`` every ``interval_s`` seconds on a best-effort cadence"""
        self.scheduler.add_job(
            self._run_periodic,
            trigger=IntervalTrigger(seconds=interval_s),
            args=(name, func),
            id=name,
            name=name,
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        logger.info(f"Registered periodic task {name} every {interval_s}s")

    async def _run_periodic(self, name: str, func: PeriodicTask) -> None:
        result = await func()
        self.task_results[name] = result
        if result is TaskResult.FAILED:
            logger.warning(f"Periodic task {name} reported failure")

    async def _deliver(self, payload: Dict[str, Any]) -> None:
        if self._wake_handler is None:
            logger.warning(f"Trigger {payload.get('handle')} fired with no wake handler attached")
            return
        await self._wake_handler(WakeSignal(source=WakeSource.DELIVERED, payload=payload))
