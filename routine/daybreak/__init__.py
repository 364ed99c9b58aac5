"""
Daybreak

Wake at a chosen time, then read the day's calendar aloud and start the
morning podcast.
"""

__version__ = "1.0.0"
__author__ = "Daybreak"

from .config import RoutineConfig
from .errors import DaybreakError, PermissionDeniedError, SchedulingError
from .models import AudioOwner, RoutineStep, SoundId, Trigger
from .orchestrator import MorningRoutineOrchestrator
from .service import AlarmService, get_service

__all__ = [
    "AlarmService",
    "AudioOwner",
    "DaybreakError",
    "MorningRoutineOrchestrator",
    "PermissionDeniedError",
    "RoutineConfig",
    "RoutineStep",
    "SchedulingError",
    "SoundId",
    "Trigger",
    "get_service"
]
