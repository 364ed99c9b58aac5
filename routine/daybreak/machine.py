"""
Pure transition table for the morning routine
"""

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from .models import RoutineStep


class RoutineEvent(Enum):
    START = "start"
    CALENDAR_READY = "calendar-ready"
    CALENDAR_FAILED = "calendar-failed"
    SPEECH_FINISHED = "speech-finished"
    SPEECH_FAILED = "speech-failed"
    SPEECH_TIMED_OUT = "speech-timed-out"
    PODCAST_FAILED = "podcast-failed"
    RESET = "reset"


@dataclass(frozen=True)
class RoutineState:
    """Snapshot of the routine; ``error`` overlays any step"""
    step: RoutineStep = RoutineStep.IDLE
    run_id: int = 0
    summary: Optional[str] = None
    error: Optional[str] = None

    @property
    def has_error(self) -> bool:
        return self.error is not None


INITIAL_STATE = RoutineState()

# Events accepted per step, and where they lead
_TRANSITIONS = {
    RoutineStep.FETCHING_CALENDAR: {
        RoutineEvent.CALENDAR_READY: RoutineStep.SPEAKING,
        RoutineEvent.CALENDAR_FAILED: RoutineStep.IDLE,
    },
    RoutineStep.SPEAKING: {
        RoutineEvent.SPEECH_FINISHED: RoutineStep.PLAYING_PODCAST,
        RoutineEvent.SPEECH_FAILED: RoutineStep.PLAYING_PODCAST,
        RoutineEvent.SPEECH_TIMED_OUT: RoutineStep.PLAYING_PODCAST,
    },
    RoutineStep.PLAYING_PODCAST: {
        RoutineEvent.PODCAST_FAILED: RoutineStep.PLAYING_PODCAST,
    },
}


def next_state(state: RoutineState, event: RoutineEvent, run_id: Optional[int] = None,
               summary: Optional[str] = None, error: Optional[str] = None) -> Optional[RoutineState]:
    """
    Apply ``event`` to ``state``.

    Args:
        state: Current state
        event: Event to apply
        run_id: Run that produced the event; a stale run is rejected
        summary: Calendar summary carried by ``CALENDAR_READY``
        error: Error text carried by failure events

    Returns:
        The new state, or None if the event does not apply
    """
    if event is RoutineEvent.START:
        return RoutineState(step=RoutineStep.FETCHING_CALENDAR, run_id=state.run_id + 1)

    if event is RoutineEvent.RESET:
        return RoutineState(run_id=state.run_id)

    if run_id is not None and run_id != state.run_id:
        return None

    target = _TRANSITIONS.get(state.step, {}).get(event)
    if target is None:
        return None

    if event is RoutineEvent.CALENDAR_READY:
        return replace(state, step=target, summary=summary)
    if error is not None:
        return replace(state, step=target, error=error)
    return replace(state, step=target)
