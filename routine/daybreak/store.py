"""
Persisted alarm settings
"""

import json
import os
from datetime import datetime, time
from typing import Optional

from pydantic import BaseModel, Field, ValidationError

from .logging_utils import get_logger
from .models import SoundId, Trigger

logger = get_logger(__name__)


class AlarmState(BaseModel):
    """Alarm settings that survive a process restart"""
    enabled: bool = Field(default=False, description="Whether the alarm is armed")
    time_of_day: Optional[time] = Field(default=None, description="Local wake time")
    sound_id: SoundId = Field(default=SoundId.GENTLE_WAKEUP, description="Selected alarm tone")
    trigger: Optional[Trigger] = Field(default=None, description="Pending host registration")
    fired_at: Optional[datetime] = Field(default=None, description="When the pending trigger last fired")
    permission_denied: bool = Field(default=False, description="Alarm force-disabled for missing permission")
    last_error: Optional[str] = Field(default=None, description="Last user-visible error")


class AlarmStateStore:
    """Reads and writes ``AlarmState`` as JSON"""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> AlarmState:
        """Saved state, or defaults if the file is missing or unreadable"""
        if not os.path.exists(self.path):
            logger.info(f"No alarm state at {self.path}, using defaults")
            return AlarmState()

        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
            state = AlarmState.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.error(f"Failed to load alarm state from {self.path}: {e}")
            return AlarmState()

        logger.info(f"Loaded alarm state (enabled: {state.enabled})")
        return state

    def save(self, state: AlarmState) -> None:
        """Write atomically through a temporary file"""
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, 'w') as f:
            f.write(state.model_dump_json(indent=2))
        os.replace(tmp_path, self.path)
        logger.debug(f"Saved alarm state to {self.path}")
