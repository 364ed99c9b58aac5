"""
Morning routine orchestrator: calendar summary, speech, podcast
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional, Protocol

from .audio import AudioSessionManager
from .config import Timings
from .errors import AudioResourceError, SpeechError
from .logging_utils import get_logger, log_error, log_report, log_stage_end, log_stage_start
from .machine import INITIAL_STATE, RoutineEvent, RoutineState, next_state
from .models import AudioOwner, PodcastControl, RoutineReport, RoutineStep
from .speech import Speaker, SpeechCallbacks

logger = get_logger(__name__)


class CalendarSource(Protocol):

    async def fetch_summary(self) -> str: ...


class PodcastControlTarget(Protocol):

    async def set_control(self, control: PodcastControl) -> None: ...


def _elapsed_ms(since: float) -> int:
    return int((time.time() - since) * 1000)


class MorningRoutineOrchestrator:
    """Runs one routine at a time through the pure state machine in ``machine``.

    ``start()`` is re-entrant: it tears down the active run (task, safety
    timeout, speech and routine audio) before launching a new one, so events
    from a superseded run are rejected by run id.
    """

    def __init__(self, timings: Timings, audio: AudioSessionManager, calendar: CalendarSource,
                 speaker: Speaker, podcast: PodcastControlTarget,
                 on_finished: Optional[Callable[[RoutineReport], Awaitable[None]]] = None):
        self.timings = timings
        self.audio = audio
        self.calendar = calendar
        self.speaker = speaker
        self.podcast = podcast
        self.on_finished = on_finished

        self._state: RoutineState = INITIAL_STATE
        self._task: Optional[asyncio.Task] = None
        self._speech_timeout: Optional[asyncio.TimerHandle] = None
        self._report: Optional[RoutineReport] = None

        logger.info("Initialized morning routine orchestrator")

    @property
    def state(self) -> RoutineState:
        return self._state

    @property
    def report(self) -> Optional[RoutineReport]:
        return self._report

    @property
    def last_error(self) -> Optional[str]:
        return self._state.error

    @property
    def speech_timeout(self) -> Optional[asyncio.TimerHandle]:
        """Armed safety timeout of the speaking stage, if any"""
        return self._speech_timeout

    async def start(self) -> asyncio.Task:
        """
        Begin a new routine run, resetting any run in progress.

        Returns:
            Task driving the new run
        """
        await self.reset()
        self._apply(RoutineEvent.START)
        run_id = self._state.run_id
        self._report = RoutineReport(run_id=run_id)
        logger.info(f"Starting morning routine run {run_id}")
        self._task = asyncio.create_task(self._run(run_id, self._report))
        return self._task

    async def reset(self) -> None:
        """Cancel the active run and release everything it holds"""
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            await asyncio.wait([task])

        self._clear_speech_timeout()

        try:
            self.speaker.stop()
        except Exception as e:
            logger.warning(f"Failed to stop speech: {e}")

        await self.audio.release(AudioOwner.SPEECH)
        await self.audio.release(AudioOwner.PODCAST)
        self._apply(RoutineEvent.RESET)

    async def wait_until_settled(self) -> None:
        """Wait for the current run to reach its terminal stage"""
        if self._task is not None:
            await asyncio.wait([self._task])

    def _apply(self, event: RoutineEvent, run_id: Optional[int] = None, **data) -> bool:
        new_state = next_state(self._state, event, run_id=run_id, **data)
        if new_state is None:
            logger.debug(f"Ignoring {event.value} in {self._state.step.value} (run {run_id})")
            return False
        self._state = new_state
        return True

    def _clear_speech_timeout(self) -> None:
        if self._speech_timeout is not None:
            self._speech_timeout.cancel()
            self._speech_timeout = None

    async def _run(self, run_id: int, report: RoutineReport) -> None:
        summary = await self._fetch_calendar(run_id, report)
        if summary is not None:
            await self._speak(run_id, summary, report)
            await self._play_podcast(run_id, report)

        report.finish(self._state.step)
        log_report(logger, report.to_dict())
        if self.on_finished is not None:
            try:
                await self.on_finished(report)
            except Exception as e:
                log_error(logger, "orchestrator", e, {"run_id": run_id})

    async def _prime_audio(self) -> None:
        try:
            await self.audio.prepare()
        except Exception as e:
            logger.warning(f"Audio priming failed, continuing: {e}")

    async def _fetch_calendar(self, run_id: int, report: RoutineReport) -> Optional[str]:
        stage = RoutineStep.FETCHING_CALENDAR.value
        log_stage_start(logger, stage, run_id)
        await self._prime_audio()

        started = time.time()
        try:
            summary = await self.calendar.fetch_summary()
        except Exception as e:
            report.calendar_ms = _elapsed_ms(started)
            report.add_error(str(e), stage)
            log_error(logger, stage, e, {"run_id": run_id})
            self._apply(RoutineEvent.CALENDAR_FAILED, run_id, error=str(e))
            log_stage_end(logger, stage, run_id, report.calendar_ms, success=False)
            return None

        report.calendar_ms = _elapsed_ms(started)
        self._apply(RoutineEvent.CALENDAR_READY, run_id, summary=summary)
        log_stage_end(logger, stage, run_id, report.calendar_ms)
        return summary

    async def _speak(self, run_id: int, summary: str, report: RoutineReport) -> None:
        stage = RoutineStep.SPEAKING.value
        log_stage_start(logger, stage, run_id, characters=len(summary))
        loop = asyncio.get_running_loop()
        outcome: asyncio.Future = loop.create_future()

        def settle(event: RoutineEvent, error: Optional[SpeechError] = None) -> None:
            # First of done, error and timeout wins
            if not outcome.done():
                outcome.set_result((event, error))

        def fail(error: Exception) -> None:
            if not isinstance(error, SpeechError):
                error = SpeechError(str(error))
            settle(RoutineEvent.SPEECH_FAILED, error)

        started = time.time()
        self._clear_speech_timeout()
        self._speech_timeout = loop.call_later(
            self.timings.speech_timeout_s, settle, RoutineEvent.SPEECH_TIMED_OUT
        )
        try:
            await asyncio.sleep(self.timings.speech_start_delay_s)

            try:
                await self.audio.acquire(AudioOwner.SPEECH)
            except AudioResourceError as e:
                logger.warning(f"Speaking without audio ownership: {e}")
                report.add_error(str(e), stage)

            callbacks = SpeechCallbacks(
                on_start=lambda: logger.info("Speech started"),
                on_done=lambda: settle(RoutineEvent.SPEECH_FINISHED),
                on_stopped=lambda: logger.info("Speech stopped"),
                on_error=fail,
            )
            try:
                self.speaker.speak(summary, callbacks)
            except Exception as e:
                fail(e)

            event, error = await outcome
        finally:
            self._clear_speech_timeout()

        report.speech_ms = _elapsed_ms(started)
        if event is RoutineEvent.SPEECH_TIMED_OUT:
            report.speech_outcome = "timeout"
            logger.warning(f"Speech did not finish within {self.timings.speech_timeout_s}s, moving on")
            try:
                self.speaker.stop()
            except Exception as e:
                logger.warning(f"Failed to stop speech: {e}")
        elif event is RoutineEvent.SPEECH_FAILED:
            report.speech_outcome = "error"
            report.add_error(str(error), stage)
            log_error(logger, stage, error, {"run_id": run_id})
        else:
            report.speech_outcome = "done"

        self._apply(event, run_id, error=str(error) if error is not None else None)
        log_stage_end(logger, stage, run_id, report.speech_ms,
                      success=event is RoutineEvent.SPEECH_FINISHED, outcome=report.speech_outcome)

    async def _play_podcast(self, run_id: int, report: RoutineReport) -> None:
        stage = RoutineStep.PLAYING_PODCAST.value
        log_stage_start(logger, stage, run_id)
        await self.audio.release(AudioOwner.SPEECH)
        await asyncio.sleep(self.timings.podcast_settle_s)

        started = time.time()
        success = True
        try:
            await self.podcast.set_control(PodcastControl.PLAY)
        except Exception as e:
            success = False
            report.add_error(str(e), stage)
            log_error(logger, stage, e, {"run_id": run_id})
            self._apply(RoutineEvent.PODCAST_FAILED, run_id, error=str(e))

        report.podcast_ms = _elapsed_ms(started)
        log_stage_end(logger, stage, run_id, report.podcast_ms, success=success)
