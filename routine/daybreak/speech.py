"""
Text-to-speech collaborator
"""

import asyncio
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import pyttsx3

from .config import SpeechConfig
from .errors import SpeechError
from .logging_utils import get_logger

logger = get_logger(__name__)

# pyttsx3 rates are words per minute
_BASE_RATE_WPM = 200


def _noop(*_args) -> None:
    return None


@dataclass
class SpeechCallbacks:
    """Callbacks a speech backend reports through; invoked on the event loop"""
    on_start: Callable[[], None] = _noop
    on_done: Callable[[], None] = _noop
    on_stopped: Callable[[], None] = _noop
    on_error: Callable[[Exception], None] = _noop


class Speaker(Protocol):

    def speak(self, text: str, callbacks: SpeechCallbacks) -> None: ...

    def stop(self) -> None: ...


class Pyttsx3Speaker:
    """Speaks through pyttsx3 on a worker thread.

    ``speak`` returns immediately; completion is reported only through the
    callbacks, which are posted back to the loop that called ``speak``.
    """

    def __init__(self, cfg: SpeechConfig):
        self.cfg = cfg
        self._engine = None
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None

    def speak(self, text: str, callbacks: SpeechCallbacks) -> None:
        loop = asyncio.get_running_loop()

        def post(callback, *args):
            loop.call_soon_threadsafe(callback, *args)

        def run():
            try:
                with self._lock:
                    engine = pyttsx3.init()
                    self._engine = engine
                    self._apply_voice(engine)
                    engine.connect('started-utterance', lambda name: post(callbacks.on_start))
                    engine.connect('finished-utterance',
                                   lambda name, completed: post(callbacks.on_done if completed else callbacks.on_stopped))
                    engine.say(text)
                    engine.runAndWait()
            except Exception as e:
                logger.warning(f"Speech backend failed: {e}")
                post(callbacks.on_error, SpeechError(f"Speech backend failed: {e}"))
            finally:
                self._engine = None

        logger.info(f"Speaking {len(text)} characters")
        self._thread = threading.Thread(target=run, name="daybreak-speech", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        engine = self._engine
        if engine is not None:
            logger.info("Stopping speech")
            engine.stop()

    def _apply_voice(self, engine) -> None:
        engine.setProperty('rate', int(_BASE_RATE_WPM * self.cfg.rate))
        engine.setProperty('volume', self.cfg.volume)
        try:
            for voice in engine.getProperty('voices'):
                languages = [str(lang).lower() for lang in (getattr(voice, 'languages', None) or [])]
                if any(self.cfg.language.lower() in lang for lang in languages) or \
                        self.cfg.language.lower() in str(voice.id).lower():
                    engine.setProperty('voice', voice.id)
                    break
        except Exception as e:
            logger.debug(f"Voice selection skipped: {e}")
