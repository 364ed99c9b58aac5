"""
Process-wide alarm service wiring the wake and routine components
"""

from datetime import datetime, time
from typing import Any, Callable, Dict, Optional

from .audio import AudioBackend, AudioSessionManager
from .calendar import CalendarSummaryClient
from .config import RoutineConfig
from .dispatcher import WakeDispatcher
from .errors import PermissionDeniedError, SchedulingError
from .host import SchedulerHost
from .logging_utils import get_logger, log_error
from .models import PodcastControl, RingerState, RoutineReport, SoundId, Trigger, WakeSignal, WakeSource
from .orchestrator import CalendarSource, MorningRoutineOrchestrator, PodcastControlTarget
from .player import Mpg123Backend
from .podcast import PodcastFeedClient, PodcastPlayer
from .prewarm import TASK_NAME, PrewarmTask
from .ringer import AlarmRinger
from .scheduler import WakeScheduler
from .speech import Pyttsx3Speaker, Speaker
from .store import AlarmState, AlarmStateStore

logger = get_logger(__name__)

PERMISSION_MESSAGE = "Audio output is not available; the alarm stays disabled until it is"


class AlarmService:
    """Owns the single alarm and the morning routine it starts.

    Construction has no side effects; ``init()`` starts the host, registers
    the pre-warm task and reconciles persisted state with the host, and
    ``teardown()`` undoes it. Both run inside the event loop.
    """

    def __init__(self, cfg: RoutineConfig,
                 host: Optional[SchedulerHost] = None,
                 backend: Optional[AudioBackend] = None,
                 calendar: Optional[CalendarSource] = None,
                 speaker: Optional[Speaker] = None,
                 podcast: Optional[PodcastControlTarget] = None,
                 store: Optional[AlarmStateStore] = None,
                 report_sink: Optional[Callable[[Dict[str, Any]], None]] = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.cfg = cfg
        self.clock = clock
        self.report_sink = report_sink

        self.host = host or SchedulerHost()
        self.backend = backend or Mpg123Backend(cfg.audio_binary)
        self.audio = AudioSessionManager(self.backend, settle_s=cfg.timings.audio_settle_s)
        self.store = store or AlarmStateStore(cfg.state_file)

        self.scheduler = WakeScheduler(self.host, clock=clock)
        self.prewarm = PrewarmTask(self.host, self.audio, cfg.timings, clock=clock)

        self.calendar = calendar or CalendarSummaryClient(cfg.calendar)
        self.speaker = speaker or Pyttsx3Speaker(cfg.speech)
        self.podcast = podcast or PodcastPlayer(self.audio, PodcastFeedClient(cfg.podcast), cfg.podcast)

        self.orchestrator = MorningRoutineOrchestrator(
            cfg.timings, self.audio, self.calendar, self.speaker, self.podcast,
            on_finished=self._on_routine_finished
        )
        self.ringer = AlarmRinger(self.audio, cfg.sounds, on_dismissed=self.orchestrator.start)
        self.dispatcher = WakeDispatcher(
            self.scheduler, self.host,
            on_alarm_fired=self._on_alarm_fired,
            should_reconcile=self._should_reconcile,
            reschedule=self._reschedule,
            dedup_window_s=cfg.timings.dedup_window_s,
            clock=clock
        )

        self.state = AlarmState()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def init(self) -> None:
        """One-time start-up; repeated calls are no-ops"""
        if self._initialized:
            return

        self.host.init()
        self.host.set_wake_handler(self.dispatcher.on_wake_signal)
        self.prewarm.register()

        self.state = self.store.load()
        if self.state.enabled and self.state.trigger is not None:
            self.scheduler.adopt(self.state.trigger)

        self._initialized = True
        logger.info("Alarm service initialized")

        # In-memory host jobs do not survive a restart
        self.dispatcher.reconcile()

    async def teardown(self) -> None:
        if not self._initialized:
            return
        await self.orchestrator.reset()
        await self.audio.release_all()
        self.host.set_wake_handler(None)
        self.host.teardown()
        self._initialized = False
        logger.info("Alarm service stopped")

    def set_alarm(self, time_of_day: time, sound_id: SoundId = SoundId.GENTLE_WAKEUP,
                  enabled: bool = True) -> AlarmState:
        """
        Update the alarm and its host registration.

        Args:
            time_of_day: Local wake time
            sound_id: Alarm tone
            enabled: Arm the alarm, or only store the settings

        Returns:
            The persisted alarm state

        Raises:
            PermissionDeniedError: Audio output is unavailable; alarm force-disabled
            SchedulingError: The host rejected the trigger; alarm left disabled
        """
        self.state.time_of_day = time_of_day
        self.state.sound_id = sound_id

        if not enabled:
            return self.disable()

        if not self.backend.check_permission():
            self.scheduler.cancel()
            self.state.enabled = False
            self.state.trigger = None
            self.state.permission_denied = True
            self.state.last_error = PERMISSION_MESSAGE
            self._persist()
            logger.warning("Alarm force-disabled: audio permission missing")
            raise PermissionDeniedError(PERMISSION_MESSAGE)

        try:
            trigger = self.scheduler.schedule(time_of_day, sound_id)
        except SchedulingError as e:
            self.state.enabled = False
            self.state.trigger = None
            self.state.last_error = str(e)
            self._persist()
            raise

        self.state.enabled = True
        self.state.trigger = trigger
        self.state.fired_at = None
        self.state.permission_denied = False
        self.state.last_error = None
        self._persist()
        return self.state

    def disable(self) -> AlarmState:
        """Cancel the pending trigger and disarm the alarm"""
        self.scheduler.cancel(self.state.trigger)
        self.state.enabled = False
        self.state.trigger = None
        self._persist()
        logger.info("Alarm disabled")
        return self.state

    async def dismiss(self) -> bool:
        return await self.ringer.dismiss()

    async def handle_tap(self, payload: Optional[Dict[str, Any]] = None) -> bool:
        """
        The user opened the alarm notification.

        Without a payload the persisted trigger is used, as the host would
        hand back the payload it was registered with.
        """
        if payload is None:
            if self.state.trigger is None:
                logger.info("Tap without a pending trigger ignored")
                return False
            payload = self.state.trigger.to_payload()
        return await self.dispatcher.on_wake_signal(WakeSignal(source=WakeSource.TAPPED, payload=payload))

    async def handle_resume(self) -> None:
        await self.dispatcher.on_wake_signal(WakeSignal(source=WakeSource.RESUMED))

    async def start_routine(self):
        """Run the morning routine now, without an alarm"""
        return await self.orchestrator.start()

    async def podcast_control(self, control: PodcastControl) -> None:
        await self.podcast.set_control(control)

    def status(self) -> Dict[str, Any]:
        """Snapshot of the alarm, ringer, routine and audio owner"""
        trigger = self.state.trigger
        routine = self.orchestrator.state
        prewarm_result = self.host.task_results.get(TASK_NAME)
        return {
            "enabled": self.state.enabled,
            "time_of_day": self.state.time_of_day.strftime("%H:%M") if self.state.time_of_day else None,
            "sound_id": self.state.sound_id.value,
            "next_fire": trigger.scheduled_at.isoformat() if trigger else None,
            "handle": trigger.registration_handle if trigger else None,
            "fired_at": self.state.fired_at.isoformat() if self.state.fired_at else None,
            "permission_denied": self.state.permission_denied,
            "last_error": self.state.last_error,
            "ringer": {
                "state": self.ringer.state.value,
                "last_error": self.ringer.last_error,
            },
            "routine": {
                "step": routine.step.value,
                "run_id": routine.run_id,
                "error": routine.error,
            },
            "audio_owner": self.audio.is_held().value,
            "pending_triggers": len(self.host.pending_triggers()) if self._initialized else 0,
            "prewarm": prewarm_result.value if prewarm_result else None,
        }

    async def _on_alarm_fired(self, trigger: Trigger) -> None:
        self.state.fired_at = self.clock()
        self._persist()
        await self.ringer.ring(trigger)

    def _should_reconcile(self) -> bool:
        return (
            self._initialized
            and self.state.enabled
            and self.state.time_of_day is not None
            and self.state.fired_at is None
        )

    def _reschedule(self) -> Optional[Trigger]:
        trigger = self.scheduler.schedule(self.state.time_of_day, self.state.sound_id)
        self.state.trigger = trigger
        self._persist()
        return trigger

    async def _on_routine_finished(self, report: RoutineReport) -> None:
        # Single-shot: a fired alarm is disarmed once its routine has run
        if self.state.fired_at is not None and self.state.enabled:
            self.scheduler.cancel(self.state.trigger)
            self.scheduler.forget()
            self.state.enabled = False
            self.state.trigger = None
            self._persist()
            logger.info("Alarm cycle complete, alarm disabled until re-enabled")

        if self.ringer.state is RingerState.DISMISSED:
            self.ringer.reset()

        if self.report_sink is not None:
            try:
                self.report_sink(report.to_dict())
            except Exception as e:
                log_error(logger, "report_sink", e)

    def _persist(self) -> None:
        try:
            self.store.save(self.state)
        except OSError as e:
            log_error(logger, "store", e, {"path": self.store.path})


_SERVICE: Optional[AlarmService] = None


def get_service(cfg: Optional[RoutineConfig] = None) -> AlarmService:
    """The process-wide service, created on first use"""
    global _SERVICE
    if _SERVICE is None:
        _SERVICE = AlarmService(cfg or RoutineConfig.from_env())
    return _SERVICE


def reset_service() -> None:
    global _SERVICE
    _SERVICE = None
