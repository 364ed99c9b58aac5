"""
Data models and enums for the wake and morning routine system
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Dict, Any, List
import time

ALARM_KIND = "morning-alarm"
ALARM_ACTION = "startMyDay"


class SoundId(Enum):
    """Alarm tones the user can pick from"""
    GENTLE_WAKEUP = "gentle_wakeup"
    HEAVY_SLEEPER = "heavy_sleeper_joke"
    NOTIFICATION_SPAM = "notif_spam_joke"
    SILENT = "silent"

    @property
    def is_silent(self) -> bool:
        return self is SoundId.SILENT


class AudioOwner(Enum):
    """Logical role currently controlling the audio output"""
    NONE = "none"
    RINGER = "ringer"
    SPEECH = "speech"
    PODCAST = "podcast"
    PREWARM_PROBE = "prewarm-probe"


class RoutineStep(Enum):
    """Morning routine stage"""
    IDLE = "idle"
    FETCHING_CALENDAR = "fetching-calendar"
    SPEAKING = "speaking"
    PLAYING_PODCAST = "playing-podcast"


class RingerState(Enum):
    """Alarm ringer state"""
    IDLE = "idle"
    RINGING = "ringing"
    DISMISSED = "dismissed"


class WakeSource(Enum):
    """How the host delivered a wake signal"""
    DELIVERED = "delivered"
    TAPPED = "tapped"
    RESUMED = "resumed"


class PodcastControl(Enum):
    """Control signal understood by the podcast player"""
    PLAY = "play"
    PAUSE = "pause"
    REFRESH = "refresh"


class TaskResult(Enum):
    """Status reported back to the host background-task facility"""
    NEW_DATA = "new-data"
    NO_DATA = "no-data"
    FAILED = "failed"


@dataclass(frozen=True)
class Trigger:
    """The single pending wake request"""
    scheduled_at: datetime
    sound_id: SoundId
    registration_handle: str

    @property
    def identity(self) -> str:
        """Key used to recognise the same logical wake across signals"""
        return f"{self.registration_handle}@{self.scheduled_at.isoformat()}"

    def to_payload(self) -> Dict[str, Any]:
        """Payload attached to the host registration"""
        return {
            "kind": ALARM_KIND,
            "action": ALARM_ACTION,
            "handle": self.registration_handle,
            "scheduled_at": self.scheduled_at.isoformat(),
            "sound_id": self.sound_id.value,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "Trigger":
        """Rebuild a trigger from a host payload"""
        return cls(
            scheduled_at=datetime.fromisoformat(payload["scheduled_at"]),
            sound_id=SoundId(payload.get("sound_id", SoundId.GENTLE_WAKEUP.value)),
            registration_handle=payload["handle"],
        )


def is_alarm_payload(payload: Optional[Dict[str, Any]]) -> bool:
    """Check whether a host payload belongs to this system's alarm type"""
    if not payload:
        return False
    return (
        payload.get("kind") == ALARM_KIND
        and payload.get("action") == ALARM_ACTION
        and "handle" in payload
        and "scheduled_at" in payload
    )


@dataclass(frozen=True)
class WakeSignal:
    """A wake notification from the host, before classification"""
    source: WakeSource
    payload: Dict[str, Any] = field(default_factory=dict)
    received_at: datetime = field(default_factory=datetime.now)


@dataclass(frozen=True)
class PendingTrigger:
    """A trigger as reported by the host facility"""
    handle: str
    fire_at: Optional[datetime]
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RoutineReport:
    """Timing and error record for one routine run"""
    run_id: int
    started_at: float = field(default_factory=time.time)
    calendar_ms: Optional[int] = None
    speech_ms: Optional[int] = None
    speech_outcome: Optional[str] = None  # "done", "error", "timeout"
    podcast_ms: Optional[int] = None
    final_step: Optional[str] = None
    errors: List[Dict[str, Any]] = field(default_factory=list)
    total_duration_ms: Optional[int] = None

    def add_error(self, error: str, stage: str = None):
        """Add an error with optional stage context"""
        self.errors.append({"error": error, "stage": stage, "timestamp": time.time()})

    def finish(self, step: RoutineStep):
        self.final_step = step.value
        self.total_duration_ms = int((time.time() - self.started_at) * 1000)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for logging and persistence"""
        return {
            "run_id": self.run_id,
            "started_at": self.started_at,
            "calendar_ms": self.calendar_ms,
            "speech_ms": self.speech_ms,
            "speech_outcome": self.speech_outcome,
            "podcast_ms": self.podcast_ms,
            "final_step": self.final_step,
            "total_duration_ms": self.total_duration_ms,
            "error_count": len(self.errors),
            "errors": self.errors,
        }
