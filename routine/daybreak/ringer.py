"""
Alarm ringer: loops the alarm tone until the user dismisses it
"""

from typing import Awaitable, Callable, Optional

from .audio import AudioSessionManager
from .config import SoundLibrary
from .logging_utils import get_logger, log_error
from .models import AudioOwner, RingerState, Trigger

logger = get_logger(__name__)


class AlarmRinger:
    """Owns the audio output while the alarm rings"""

    def __init__(self, audio: AudioSessionManager, sounds: SoundLibrary,
                 on_dismissed: Callable[[], Awaitable[object]]):
        self.audio = audio
        self.sounds = sounds
        self.on_dismissed = on_dismissed
        self.state = RingerState.IDLE
        self.trigger: Optional[Trigger] = None
        self.last_error: Optional[str] = None

    async def ring(self, trigger: Trigger) -> None:
        """
        Start ringing for ``trigger``.

        Audio failures are recorded in ``last_error``; the ringer still
        enters the ringing state so the user can dismiss it.
        """
        if self.state is RingerState.RINGING:
            logger.info(f"Already ringing, ignoring trigger {trigger.registration_handle}")
            return

        self.trigger = trigger
        self.last_error = None
        self.state = RingerState.RINGING
        logger.info(f"Ringing with {trigger.sound_id.value}")

        try:
            session = await self.audio.acquire(AudioOwner.RINGER)
            path = self.sounds.path_for(trigger.sound_id)
            if path is None:
                return
            sound = await session.load(path, loop=True, volume=1.0)
            await sound.play()
        except Exception as e:
            self.last_error = str(e)
            log_error(logger, "ringer", e, {"sound_id": trigger.sound_id.value})

    async def dismiss(self) -> bool:
        """
        Stop the alarm and hand off to the morning routine.

        Returns:
            False if the ringer was not ringing
        """
        if self.state is not RingerState.RINGING:
            logger.debug(f"Dismiss ignored in state {self.state.value}")
            return False

        self.state = RingerState.DISMISSED
        try:
            await self.audio.release(AudioOwner.RINGER)
        except Exception as e:
            self.last_error = str(e)
            log_error(logger, "ringer", e)

        logger.info("Alarm dismissed, starting morning routine")
        await self.on_dismissed()
        return True

    def reset(self) -> None:
        self.state = RingerState.IDLE
        self.trigger = None
