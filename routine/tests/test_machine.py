"""
Tests for the routine transition table
"""

from daybreak.machine import INITIAL_STATE, RoutineEvent, RoutineState, next_state
from daybreak.models import RoutineStep


class TestNextState:
    """Test pure routine transitions"""

    def test_start_begins_new_run(self):
        """Start always enters fetching-calendar with a new run id"""
        state = next_state(INITIAL_STATE, RoutineEvent.START)
        assert state.step is RoutineStep.FETCHING_CALENDAR
        assert state.run_id == 1

        speaking = RoutineState(step=RoutineStep.SPEAKING, run_id=4, summary="x")
        restarted = next_state(speaking, RoutineEvent.START)
        assert restarted == RoutineState(step=RoutineStep.FETCHING_CALENDAR, run_id=5)

    def test_forward_path(self):
        """fetching-calendar, speaking, playing-podcast in order"""
        state = next_state(INITIAL_STATE, RoutineEvent.START)
        state = next_state(state, RoutineEvent.CALENDAR_READY, run_id=1, summary="Standup at 9")
        assert state.step is RoutineStep.SPEAKING
        assert state.summary == "Standup at 9"

        state = next_state(state, RoutineEvent.SPEECH_FINISHED, run_id=1)
        assert state.step is RoutineStep.PLAYING_PODCAST
        assert not state.has_error

    def test_calendar_failure_returns_to_idle_with_error(self):
        state = next_state(INITIAL_STATE, RoutineEvent.START)
        state = next_state(state, RoutineEvent.CALENDAR_FAILED, run_id=1, error="offline")
        assert state.step is RoutineStep.IDLE
        assert state.error == "offline"

    def test_speech_outcomes_all_advance(self):
        """Done, error and timeout each lead to the podcast"""
        speaking = RoutineState(step=RoutineStep.SPEAKING, run_id=1, summary="s")
        for event in (RoutineEvent.SPEECH_FINISHED, RoutineEvent.SPEECH_FAILED, RoutineEvent.SPEECH_TIMED_OUT):
            assert next_state(speaking, event, run_id=1).step is RoutineStep.PLAYING_PODCAST

        failed = next_state(speaking, RoutineEvent.SPEECH_FAILED, run_id=1, error="voice missing")
        assert failed.error == "voice missing"

    def test_stale_run_rejected(self):
        """Events from a superseded run do not apply"""
        speaking = RoutineState(step=RoutineStep.SPEAKING, run_id=2)
        assert next_state(speaking, RoutineEvent.SPEECH_FINISHED, run_id=1) is None

    def test_no_backward_or_repeated_stage(self):
        """Events that do not belong to the current stage are rejected"""
        podcast = RoutineState(step=RoutineStep.PLAYING_PODCAST, run_id=1)
        assert next_state(podcast, RoutineEvent.CALENDAR_READY, run_id=1) is None
        assert next_state(podcast, RoutineEvent.SPEECH_FINISHED, run_id=1) is None
        assert next_state(INITIAL_STATE, RoutineEvent.SPEECH_TIMED_OUT) is None

    def test_podcast_failure_overlays_error(self):
        podcast = RoutineState(step=RoutineStep.PLAYING_PODCAST, run_id=1)
        state = next_state(podcast, RoutineEvent.PODCAST_FAILED, run_id=1, error="feed down")
        assert state.step is RoutineStep.PLAYING_PODCAST
        assert state.error == "feed down"

    def test_reset_keeps_run_counter(self):
        speaking = RoutineState(step=RoutineStep.SPEAKING, run_id=3, summary="s", error="e")
        assert next_state(speaking, RoutineEvent.RESET) == RoutineState(run_id=3)
