"""
Configuration models for the wake and morning routine system
"""

from pydantic import BaseModel, Field
from typing import Optional
import os
import logging

from .models import SoundId

logger = logging.getLogger(__name__)

# Use BASE_DIR for all file paths
BASE_DIR = os.getenv("DAYBREAK_BASE_DIR", "/data/daybreak")
DATA_DIR = os.path.join(BASE_DIR, "data")

DEFAULT_FEED_URL = "https://feeds.npr.org/510318/podcast.xml"


class Timings(BaseModel):
    """Timing configuration for wake handling and the routine"""
    speech_timeout_s: float = Field(default=30.0, gt=0, le=600.0, description="Safety timeout for the speaking stage")
    speech_start_delay_s: float = Field(default=0.8, ge=0, le=10.0, description="Delay before audio setup for speech")
    audio_settle_s: float = Field(default=0.3, ge=0, le=5.0, description="Pause between audio teardown and new setup")
    podcast_settle_s: float = Field(default=0.5, ge=0, le=5.0, description="Pause after releasing speech before podcast")
    prewarm_interval_s: int = Field(default=60, ge=15, le=900, description="Pre-warm task cadence")
    prewarm_window_s: float = Field(default=60.0, gt=0, le=600.0, description="Prepare audio when the trigger is this close")
    prewarm_escalate_s: float = Field(default=10.0, gt=0, le=120.0, description="Force audio re-enable when this close")
    prewarm_bound_s: float = Field(default=5.0, gt=0, le=30.0, description="Upper bound for one pre-warm run")
    dedup_window_s: float = Field(default=3600.0, ge=0, le=86400.0, description="How long a fired trigger identity is remembered")


class SoundLibrary(BaseModel):
    """Location of the alarm tone assets"""
    assets_dir: str = Field(default_factory=lambda: os.path.join(BASE_DIR, "sounds"), description="Directory holding alarm tones")
    extension: str = Field(default=".mp3", description="Alarm tone file extension")

    def path_for(self, sound_id: SoundId) -> Optional[str]:
        """Asset path for a tone; None for the silent variant"""
        if sound_id.is_silent:
            return None
        return os.path.join(self.assets_dir, f"{sound_id.value}{self.extension}")


class CalendarConfig(BaseModel):
    """Calendar summary collaborator configuration"""
    events_file: str = Field(default_factory=lambda: os.path.join(DATA_DIR, "events.json"), description="JSON file with calendar events")
    summary_url: str = Field(default="", description="Summary backend endpoint; empty speaks the raw event list")
    request_timeout_s: float = Field(default=15.0, gt=0, le=120.0, description="Summary request timeout")


class SpeechConfig(BaseModel):
    """Text-to-speech configuration"""
    language: str = Field(default="en", description="Preferred voice language")
    rate: float = Field(default=0.9, gt=0, le=2.0, description="Speech rate multiplier")
    volume: float = Field(default=1.0, ge=0, le=1.0, description="Speech volume")


class PodcastConfig(BaseModel):
    """Podcast feed configuration"""
    feed_url: str = Field(default=DEFAULT_FEED_URL, description="RSS feed of the morning podcast")
    request_timeout_s: float = Field(default=10.0, gt=0, le=120.0, description="Feed request timeout")
    volume: float = Field(default=1.0, ge=0, le=1.0, description="Podcast playback volume")


class RoutineConfig(BaseModel):
    """Main configuration for the wake and morning routine system"""
    timings: Timings = Field(default_factory=Timings, description="Timing configuration")
    sounds: SoundLibrary = Field(default_factory=SoundLibrary, description="Alarm tone assets")
    calendar: CalendarConfig = Field(default_factory=CalendarConfig, description="Calendar collaborator")
    speech: SpeechConfig = Field(default_factory=SpeechConfig, description="Speech collaborator")
    podcast: PodcastConfig = Field(default_factory=PodcastConfig, description="Podcast collaborator")
    state_file: str = Field(default_factory=lambda: os.path.join(DATA_DIR, "alarm_state.json"), description="Persisted alarm state")
    audio_binary: str = Field(default="mpg123", description="Player used for alarm tones and podcasts")
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(default="json", description="Log format (json|text)")

    @classmethod
    def from_env(cls) -> "RoutineConfig":
        """Create configuration from environment variables"""
        timings = Timings(
            speech_timeout_s=float(os.getenv("DAYBREAK_SPEECH_TIMEOUT_S", "30")),
            speech_start_delay_s=float(os.getenv("DAYBREAK_SPEECH_START_DELAY_S", "0.8")),
            audio_settle_s=float(os.getenv("DAYBREAK_AUDIO_SETTLE_S", "0.3")),
            podcast_settle_s=float(os.getenv("DAYBREAK_PODCAST_SETTLE_S", "0.5")),
            prewarm_interval_s=int(os.getenv("DAYBREAK_PREWARM_INTERVAL_S", "60")),
            prewarm_window_s=float(os.getenv("DAYBREAK_PREWARM_WINDOW_S", "60")),
            prewarm_escalate_s=float(os.getenv("DAYBREAK_PREWARM_ESCALATE_S", "10")),
            prewarm_bound_s=float(os.getenv("DAYBREAK_PREWARM_BOUND_S", "5")),
            dedup_window_s=float(os.getenv("DAYBREAK_DEDUP_WINDOW_S", "3600")),
        )
        sounds = SoundLibrary(
            assets_dir=os.getenv("DAYBREAK_SOUNDS_DIR", os.path.join(BASE_DIR, "sounds")),
        )
        calendar = CalendarConfig(
            events_file=os.getenv("DAYBREAK_EVENTS_FILE", os.path.join(DATA_DIR, "events.json")),
            summary_url=os.getenv("DAYBREAK_SUMMARY_URL", ""),
        )
        speech = SpeechConfig(
            language=os.getenv("DAYBREAK_SPEECH_LANGUAGE", "en"),
            rate=float(os.getenv("DAYBREAK_SPEECH_RATE", "0.9")),
        )
        podcast = PodcastConfig(
            feed_url=os.getenv("DAYBREAK_PODCAST_FEED_URL", DEFAULT_FEED_URL),
        )
        return cls(
            timings=timings,
            sounds=sounds,
            calendar=calendar,
            speech=speech,
            podcast=podcast,
            state_file=os.getenv("DAYBREAK_STATE_FILE", os.path.join(DATA_DIR, "alarm_state.json")),
            audio_binary=os.getenv("DAYBREAK_AUDIO_BINARY", "mpg123"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )
