"""
Shared fakes for the routine tests
"""

import asyncio
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest

from daybreak.config import Timings
from daybreak.models import AudioOwner, PendingTrigger, PodcastControl, WakeSignal, WakeSource


class FakeSound:
    """Records what was done to it in the backend call log"""

    def __init__(self, source: str, log: List[tuple], loop: bool = False, volume: float = 1.0):
        self.source = source
        self.log = log
        self.loop = loop
        self.volume = volume
        self.playing = False

    async def play(self):
        self.playing = True
        self.log.append(("play", self.source))

    async def pause(self):
        self.playing = False
        self.log.append(("pause", self.source))

    async def stop(self):
        self.playing = False
        self.log.append(("stop", self.source))

    async def unload(self):
        self.log.append(("unload", self.source))


class FakeBackend:
    """In-memory audio device"""

    def __init__(self, permission: bool = True, fail_load: bool = False, fail_configure: bool = False):
        self.permission = permission
        self.fail_load = fail_load
        self.fail_configure = fail_configure
        self.enabled = True
        self.calls: List[tuple] = []
        self.sounds: List[FakeSound] = []

    def check_permission(self) -> bool:
        return self.permission

    async def set_enabled(self, enabled: bool):
        self.enabled = enabled
        self.calls.append(("set_enabled", enabled))

    async def configure(self, mode):
        self.calls.append(("configure", mode))
        if self.fail_configure:
            raise RuntimeError("route unavailable")

    async def load(self, source: str, *, loop: bool = False, volume: float = 1.0):
        self.calls.append(("load", source))
        if self.fail_load:
            raise RuntimeError(f"cannot decode {source}")
        sound = FakeSound(source, self.calls, loop=loop, volume=volume)
        self.sounds.append(sound)
        return sound


class FakeHost:
    """Host alarm facility keeping triggers in a dict"""

    def __init__(self, fail_register: bool = False):
        self.fail_register = fail_register
        self.triggers: Dict[str, tuple] = {}
        self.periodic: Dict[str, tuple] = {}
        self.task_results: Dict[str, Any] = {}
        self.wake_handler = None
        self.started = False
        self.cancelled: List[str] = []
        self._counter = 0

    def init(self):
        self.started = True

    def teardown(self):
        self.started = False

    def set_wake_handler(self, handler):
        self.wake_handler = handler

    def register_trigger(self, at: datetime, payload: Dict[str, Any]) -> str:
        if self.fail_register:
            raise RuntimeError("registration rejected")
        self._counter += 1
        handle = f"alarm_{self._counter}"
        self.triggers[handle] = (at, dict(payload, handle=handle))
        return handle

    def cancel_trigger(self, handle: str) -> bool:
        self.cancelled.append(handle)
        return self.triggers.pop(handle, None) is not None

    def pending_triggers(self) -> List[PendingTrigger]:
        return [PendingTrigger(handle=h, fire_at=at, payload=p) for h, (at, p) in self.triggers.items()]

    def register_periodic_task(self, name, func, interval_s):
        self.periodic[name] = (func, interval_s)

    async def fire(self, handle: str):
        """Consume a trigger and deliver it like the real host"""
        _, payload = self.triggers.pop(handle)
        return await self.wake_handler(WakeSignal(source=WakeSource.DELIVERED, payload=payload))


class FakeSpeaker:
    """Speech backend that completes on the next loop iteration, or never"""

    def __init__(self, auto_complete: bool = True, fail: bool = False, error_callback: bool = False):
        self.auto_complete = auto_complete
        self.fail = fail
        self.error_callback = error_callback
        self.spoken: List[str] = []
        self.callbacks = None
        self.stop_count = 0

    def speak(self, text, callbacks):
        self.spoken.append(text)
        self.callbacks = callbacks
        if self.fail:
            raise RuntimeError("speech engine missing")
        loop = asyncio.get_running_loop()
        loop.call_soon(callbacks.on_start)
        if self.error_callback:
            loop.call_soon(callbacks.on_error, RuntimeError("voice unavailable"))
        elif self.auto_complete:
            loop.call_soon(callbacks.on_done)

    def stop(self):
        self.stop_count += 1


class FakeCalendar:

    def __init__(self, summary: str = "No events scheduled for today", error: Optional[Exception] = None):
        self.summary = summary
        self.error = error
        self.calls = 0

    async def fetch_summary(self) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.summary


class FakePodcastPlayer:
    """Takes the podcast owner on play, like the real player"""

    def __init__(self, audio=None, error: Optional[Exception] = None):
        self.audio = audio
        self.error = error
        self.controls: List[PodcastControl] = []

    async def set_control(self, control: PodcastControl):
        self.controls.append(control)
        if self.error is not None:
            raise self.error
        if control is PodcastControl.PLAY and self.audio is not None:
            await self.audio.acquire(AudioOwner.PODCAST)


@pytest.fixture
def fast_timings():
    """Timings with the waits shrunk so tests run in milliseconds"""
    return Timings(
        speech_timeout_s=0.2,
        speech_start_delay_s=0,
        audio_settle_s=0,
        podcast_settle_s=0,
        prewarm_bound_s=0.5,
    )


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def host():
    return FakeHost()
