"""
Exclusive-ownership broker for the audio output device
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Protocol

from .errors import AudioBusyError, AudioResourceError
from .logging_utils import log_owner_change
from .models import AudioOwner

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AudioMode:
    """Output routing requested from the audio device"""
    plays_in_silent_mode: bool = True
    stays_active_in_background: bool = True
    duck_others: bool = False
    exclusive: bool = True
    route: str = "speaker"  # never the earpiece


# Routing used by pre-warm and routine priming; no owner attached
BACKGROUND_MODE = AudioMode(duck_others=True, exclusive=False)

OWNER_MODES: Dict[AudioOwner, AudioMode] = {
    AudioOwner.RINGER: AudioMode(),
    AudioOwner.SPEECH: AudioMode(),
    AudioOwner.PODCAST: AudioMode(duck_others=True, exclusive=False),
    AudioOwner.PREWARM_PROBE: AudioMode(exclusive=False),
}


class Sound(Protocol):
    """A loaded audio source"""

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def stop(self) -> None: ...

    async def unload(self) -> None: ...


class AudioBackend(Protocol):
    """The device audio subsystem"""

    def check_permission(self) -> bool: ...

    async def set_enabled(self, enabled: bool) -> None: ...

    async def configure(self, mode: AudioMode) -> None: ...

    async def load(self, source: str, *, loop: bool = False, volume: float = 1.0) -> Sound: ...


class AudioSession:
    """Resources loaded by one owner; closed when ownership ends"""

    def __init__(self, owner: AudioOwner, backend: AudioBackend):
        self.owner = owner
        self._backend = backend
        self._sounds: List[Sound] = []
        self.closed = False

    async def load(self, source: str, loop: bool = False, volume: float = 1.0) -> Sound:
        """Load a source on behalf of the session owner"""
        if self.closed:
            raise AudioResourceError(f"Audio session for '{self.owner.value}' was already released")
        try:
            sound = await self._backend.load(source, loop=loop, volume=volume)
        except AudioResourceError:
            raise
        except Exception as exc:
            raise AudioResourceError(f"Failed to load '{source}': {exc}") from exc
        self._sounds.append(sound)
        return sound

    async def close(self) -> None:
        """Stop and unload every sound, newest first"""
        self.closed = True
        while self._sounds:
            sound = self._sounds.pop()
            try:
                await sound.stop()
            except Exception as exc:
                logger.warning(f"Failed to stop sound for {self.owner.value}: {exc}")
            try:
                await sound.unload()
            except Exception as exc:
                logger.warning(f"Failed to unload sound for {self.owner.value}: {exc}")


class AudioSessionManager:
    """Hands the audio output to one owner at a time.

    Switching owners always tears down the previous session (stop, unload),
    waits ``settle_s`` and only then configures routing for the new owner.
    Skipping the settle pause garbles the first seconds of playback on real
    hardware, so it is applied even when it is short.
    """

    def __init__(self, backend: AudioBackend, settle_s: float = 0.3):
        self._backend = backend
        self._settle_s = settle_s
        self._owner = AudioOwner.NONE
        self._session: Optional[AudioSession] = None
        self._lock = asyncio.Lock()
        self.history: List[AudioOwner] = []

    def is_held(self) -> AudioOwner:
        """Current owner of the audio output"""
        return self._owner

    @property
    def session(self) -> Optional[AudioSession]:
        return self._session

    async def acquire(self, owner: AudioOwner) -> AudioSession:
        """
        Take the audio output for ``owner``.

        Args:
            owner: Role requesting the output

        Returns:
            The owner's session (the existing one if it already holds the output)

        Raises:
            AudioBusyError: A prewarm probe asked while another owner holds the output
            AudioResourceError: The device refused the routing for the new owner
        """
        if owner is AudioOwner.NONE:
            raise ValueError("Cannot acquire audio output for owner 'none'")

        async with self._lock:
            if self._owner is owner and self._session is not None:
                return self._session

            if self._owner is not AudioOwner.NONE:
                if owner is AudioOwner.PREWARM_PROBE:
                    raise AudioBusyError(owner.value, self._owner.value)
                logger.info(f"{owner.value} takes audio output from {self._owner.value}")
                await self._teardown()
                await asyncio.sleep(self._settle_s)

            try:
                await self._backend.configure(OWNER_MODES[owner])
            except Exception as exc:
                raise AudioResourceError(f"Failed to configure audio for '{owner.value}': {exc}") from exc

            self._session = AudioSession(owner, self._backend)
            self._set_owner(owner)
            return self._session

    async def release(self, owner: AudioOwner) -> None:
        """Release the output if ``owner`` holds it; otherwise a no-op"""
        async with self._lock:
            if self._owner is not owner or owner is AudioOwner.NONE:
                logger.debug(f"Release by {owner.value} ignored (held by {self._owner.value})")
                return
            await self._teardown()

    async def release_all(self) -> None:
        """Release whoever holds the output"""
        async with self._lock:
            if self._owner is not AudioOwner.NONE:
                await self._teardown()

    async def prepare(self) -> bool:
        """
        Configure routing for background and silent-mode playback.

        Does not take ownership and leaves an existing owner's routing alone.

        Returns:
            True if the device was prepared, False if an owner already holds it
        """
        if self._owner is not AudioOwner.NONE:
            logger.debug(f"Skipping audio prepare, output held by {self._owner.value}")
            return False
        await self._backend.set_enabled(True)
        await self._backend.configure(BACKGROUND_MODE)
        return True

    async def reenable(self, owner: AudioOwner = AudioOwner.PREWARM_PROBE) -> None:
        """
        Force a full disable, settle, enable cycle of the audio subsystem.

        Covers output devices that were put to sleep. Runs under ``owner``
        so it cannot overlap another owner's playback; an owner arriving
        mid-cycle waits for the lock and then pre-empts.
        """
        await self.acquire(owner)
        try:
            async with self._lock:
                if self._owner is not owner:
                    return
                await self._backend.set_enabled(False)
                await asyncio.sleep(self._settle_s)
                await self._backend.set_enabled(True)
        finally:
            await self.release(owner)

    async def _teardown(self) -> None:
        session, self._session = self._session, None
        try:
            if session is not None:
                await session.close()
        finally:
            self._set_owner(AudioOwner.NONE)

    def _set_owner(self, owner: AudioOwner) -> None:
        old, self._owner = self._owner, owner
        self.history.append(owner)
        log_owner_change(logger, old.value, owner.value)
