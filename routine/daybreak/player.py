"""
Audio backend driving mpg123 subprocesses
"""

import asyncio
import logging
import os
import shutil
import signal
import weakref
from typing import List, Optional

from .audio import AudioMode
from .errors import AudioResourceError

logger = logging.getLogger(__name__)

_FULL_SCALE = 32768
_STOP_WAIT_S = 0.5


def _is_stream(source: str) -> bool:
    return source.startswith(("http://", "https://"))


class Mpg123Sound:
    """One mpg123 process playing a file or stream"""

    def __init__(self, binary: str, source: str, loop: bool = False, volume: float = 1.0):
        self.binary = binary
        self.source = source
        self.loop = loop
        self.volume = max(0.0, min(1.0, volume))
        self._process: Optional[asyncio.subprocess.Process] = None
        self._paused = False

    @property
    def is_playing(self) -> bool:
        return self._running() and not self._paused

    def command(self) -> List[str]:
        cmd = [self.binary, "-q", "-f", str(int(_FULL_SCALE * self.volume))]
        if self.loop:
            cmd += ["--loop", "-1"]
        cmd.append(self.source)
        return cmd

    def _running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def play(self) -> None:
        """Start playback, or resume it if paused"""
        if self._running():
            if self._paused:
                self._process.send_signal(signal.SIGCONT)
                self._paused = False
                logger.info(f"AudioPlayer: Resumed '{self.source}' (PID: {self._process.pid})")
            return

        try:
            self._process = await asyncio.create_subprocess_exec(
                *self.command(),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.DEVNULL,
            )
        except FileNotFoundError as exc:
            raise AudioResourceError(f"{self.binary} command not found") from exc
        self._paused = False
        logger.info(f"AudioPlayer: Started playback of '{self.source}' with PID: {self._process.pid}")

    async def pause(self) -> None:
        if self._running() and not self._paused:
            self._process.send_signal(signal.SIGSTOP)
            self._paused = True
            logger.info(f"AudioPlayer: Paused '{self.source}' (PID: {self._process.pid})")

    async def stop(self) -> None:
        """Terminate the player, escalating to SIGKILL if it lingers"""
        process = self._process
        if process is None or process.returncode is not None:
            return
        pid = process.pid
        try:
            if self._paused:
                process.send_signal(signal.SIGCONT)
                self._paused = False
            process.terminate()
            try:
                await asyncio.wait_for(process.wait(), timeout=_STOP_WAIT_S)
                logger.info(f"AudioPlayer: Playback process (PID: {pid}) terminated.")
            except asyncio.TimeoutError:
                logger.warning(f"AudioPlayer: Process (PID: {pid}) did not terminate quickly. Sending SIGKILL.")
                process.kill()
                await process.wait()
        except ProcessLookupError:
            logger.info(f"AudioPlayer: Process with PID {pid} already terminated.")

    async def unload(self) -> None:
        await self.stop()
        self._process = None


class Mpg123Backend:
    """Audio subsystem backed by the mpg123 command line player"""

    def __init__(self, binary: str = "mpg123"):
        self.binary = binary
        self.enabled = True
        self.mode: Optional[AudioMode] = None
        self._live: "weakref.WeakSet[Mpg123Sound]" = weakref.WeakSet()

    def check_permission(self) -> bool:
        """Whether audio output can be used at all on this host"""
        return shutil.which(self.binary) is not None

    async def set_enabled(self, enabled: bool) -> None:
        if not enabled:
            for sound in list(self._live):
                await sound.stop()
        self.enabled = enabled
        logger.debug(f"Audio output {'enabled' if enabled else 'disabled'}")

    async def configure(self, mode: AudioMode) -> None:
        # mpg123 always plays through the default sink; record the request
        self.mode = mode
        logger.debug(f"Audio mode set: {mode}")

    async def load(self, source: str, *, loop: bool = False, volume: float = 1.0) -> Mpg123Sound:
        if not self.enabled:
            raise AudioResourceError("Audio output is disabled")
        if not _is_stream(source) and not os.path.exists(source):
            raise AudioResourceError(f"File not found - {source}")
        sound = Mpg123Sound(self.binary, source, loop=loop, volume=volume)
        self._live.add(sound)
        return sound
