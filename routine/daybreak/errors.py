"""
Exception hierarchy for the wake and morning routine core
"""

from typing import Optional


class DaybreakError(Exception):
    """Base class for every error raised by the core"""


class PermissionDeniedError(DaybreakError):
    """Audio output or notification delivery is not permitted.

    Not retriable without user action; the alarm is force-disabled until the
    permission is granted again.
    """


class SchedulingError(DaybreakError):
    """The host alarm facility rejected a trigger registration"""

    def __init__(self, message: str, handle: Optional[str] = None):
        super().__init__(message)
        self.handle = handle


class StageError(DaybreakError):
    """A routine stage failed; the orchestrator recovers locally"""

    stage = "unknown"


class CalendarError(StageError):
    """Calendar events could not be read or summarized"""

    stage = "fetching-calendar"


class SpeechError(StageError):
    """Speech backend failed to start or finish"""

    stage = "speaking"


class PodcastError(StageError):
    """Podcast feed could not be resolved or played"""

    stage = "playing-podcast"


class AudioResourceError(DaybreakError):
    """Audio device busy, missing or failed to load a source"""


class AudioBusyError(AudioResourceError):
    """Another owner holds the audio output and may not be pre-empted"""

    def __init__(self, requested: str, holder: str):
        super().__init__(f"Audio output held by '{holder}', '{requested}' may not pre-empt it")
        self.requested = requested
        self.holder = holder
