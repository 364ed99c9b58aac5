"""
Tests for audio output ownership
"""

import asyncio

import pytest

from conftest import FakeBackend
from daybreak.audio import BACKGROUND_MODE, OWNER_MODES, AudioSessionManager
from daybreak.errors import AudioBusyError, AudioResourceError
from daybreak.models import AudioOwner


class TestAudioSessionManager:
    """Test acquire, release and pre-emption"""

    def test_acquire_and_release(self):
        """Ownership is recorded and released back to none"""
        async def scenario():
            backend = FakeBackend()
            audio = AudioSessionManager(backend, settle_s=0)
            await audio.acquire(AudioOwner.SPEECH)
            assert audio.is_held() is AudioOwner.SPEECH
            await audio.release(AudioOwner.SPEECH)
            return audio, backend

        audio, backend = asyncio.run(scenario())
        assert audio.is_held() is AudioOwner.NONE
        assert audio.history == [AudioOwner.SPEECH, AudioOwner.NONE]
        assert ("configure", OWNER_MODES[AudioOwner.SPEECH]) in backend.calls

    def test_takeover_stops_and_unloads_before_configuring(self):
        """The previous owner's sounds are torn down before the new owner's routing"""
        async def scenario():
            backend = FakeBackend()
            audio = AudioSessionManager(backend, settle_s=0)
            session = await audio.acquire(AudioOwner.RINGER)
            sound = await session.load("tone.mp3", loop=True)
            await sound.play()
            await audio.acquire(AudioOwner.SPEECH)
            return audio, backend

        audio, backend = asyncio.run(scenario())
        names = [call[0] for call in backend.calls]
        stop_at = backend.calls.index(("stop", "tone.mp3"))
        unload_at = backend.calls.index(("unload", "tone.mp3"))
        speech_configure_at = len(names) - 1
        assert names[speech_configure_at] == "configure"
        assert stop_at < unload_at < speech_configure_at
        assert audio.history == [AudioOwner.RINGER, AudioOwner.NONE, AudioOwner.SPEECH]

    def test_settle_delay_between_owners(self):
        """Switching owners waits the settle delay"""
        async def scenario():
            audio = AudioSessionManager(FakeBackend(), settle_s=0.05)
            await audio.acquire(AudioOwner.RINGER)
            loop = asyncio.get_running_loop()
            started = loop.time()
            await audio.acquire(AudioOwner.PODCAST)
            return loop.time() - started

        assert asyncio.run(scenario()) >= 0.05

    def test_same_owner_reuses_session(self):
        """Acquiring twice for the same owner returns the same session"""
        async def scenario():
            audio = AudioSessionManager(FakeBackend(), settle_s=0)
            first = await audio.acquire(AudioOwner.PODCAST)
            second = await audio.acquire(AudioOwner.PODCAST)
            return audio, first, second

        audio, first, second = asyncio.run(scenario())
        assert first is second
        assert audio.history == [AudioOwner.PODCAST]

    def test_release_by_non_owner_is_noop(self):
        """Only the holder can release the output"""
        async def scenario():
            audio = AudioSessionManager(FakeBackend(), settle_s=0)
            await audio.acquire(AudioOwner.RINGER)
            await audio.release(AudioOwner.SPEECH)
            return audio

        assert asyncio.run(scenario()).is_held() is AudioOwner.RINGER

    def test_probe_never_preempts(self):
        """A prewarm probe is refused while another owner holds the output"""
        async def scenario():
            audio = AudioSessionManager(FakeBackend(), settle_s=0)
            await audio.acquire(AudioOwner.SPEECH)
            with pytest.raises(AudioBusyError):
                await audio.acquire(AudioOwner.PREWARM_PROBE)
            return audio

        assert asyncio.run(scenario()).is_held() is AudioOwner.SPEECH

    def test_ringer_preempts_probe(self):
        """The ringer always takes the output from a prewarm probe"""
        async def scenario():
            audio = AudioSessionManager(FakeBackend(), settle_s=0)
            await audio.acquire(AudioOwner.PREWARM_PROBE)
            await audio.acquire(AudioOwner.RINGER)
            return audio

        audio = asyncio.run(scenario())
        assert audio.is_held() is AudioOwner.RINGER
        assert audio.history == [AudioOwner.PREWARM_PROBE, AudioOwner.NONE, AudioOwner.RINGER]

    def test_configure_failure_raises_resource_error(self):
        """A refused routing leaves nobody holding the output"""
        async def scenario():
            audio = AudioSessionManager(FakeBackend(fail_configure=True), settle_s=0)
            with pytest.raises(AudioResourceError):
                await audio.acquire(AudioOwner.SPEECH)
            return audio

        assert asyncio.run(scenario()).is_held() is AudioOwner.NONE

    def test_load_failure_wrapped(self):
        """Backend load errors become resource errors"""
        async def scenario():
            audio = AudioSessionManager(FakeBackend(fail_load=True), settle_s=0)
            session = await audio.acquire(AudioOwner.RINGER)
            with pytest.raises(AudioResourceError):
                await session.load("missing.mp3")

        asyncio.run(scenario())

    def test_prepare_skips_when_owned(self):
        """Prepare configures background routing only when nobody owns the output"""
        async def scenario():
            backend = FakeBackend()
            audio = AudioSessionManager(backend, settle_s=0)
            prepared_idle = await audio.prepare()
            await audio.acquire(AudioOwner.SPEECH)
            prepared_owned = await audio.prepare()
            return backend, prepared_idle, prepared_owned

        backend, prepared_idle, prepared_owned = asyncio.run(scenario())
        assert prepared_idle is True
        assert prepared_owned is False
        assert backend.calls.count(("configure", BACKGROUND_MODE)) == 1

    def test_reenable_cycles_output(self):
        """Reenable disables then enables under the probe owner and releases it"""
        async def scenario():
            backend = FakeBackend()
            audio = AudioSessionManager(backend, settle_s=0)
            await audio.reenable()
            return audio, backend

        audio, backend = asyncio.run(scenario())
        toggles = [call for call in backend.calls if call[0] == "set_enabled"]
        assert toggles == [("set_enabled", False), ("set_enabled", True)]
        assert audio.is_held() is AudioOwner.NONE
        assert audio.history == [AudioOwner.PREWARM_PROBE, AudioOwner.NONE]

    def test_owner_arriving_mid_reenable_waits_for_cycle(self):
        """The ringer pre-empts the probe only after the output is back on"""
        async def scenario():
            backend = FakeBackend()
            audio = AudioSessionManager(backend, settle_s=0.05)
            probe = asyncio.create_task(audio.reenable())
            await asyncio.sleep(0.01)
            await audio.acquire(AudioOwner.RINGER)
            await probe
            return audio, backend

        audio, backend = asyncio.run(scenario())
        last_enable = max(i for i, call in enumerate(backend.calls) if call == ("set_enabled", True))
        ringer_configure = backend.calls.index(("configure", OWNER_MODES[AudioOwner.RINGER]))
        assert last_enable < ringer_configure
        assert audio.is_held() is AudioOwner.RINGER
