"""
Podcast collaborator: latest episode resolution and playback control
"""

import asyncio
from dataclasses import dataclass
from typing import Optional

import feedparser
import requests
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from .audio import AudioSessionManager, Sound
from .config import PodcastConfig
from .errors import PodcastError
from .http_client import RETRYABLE_ERRORS, http_session
from .logging_utils import get_logger, log_error
from .models import AudioOwner, PodcastControl

logger = get_logger(__name__)


@dataclass
class Episode:
    """Latest feed entry with a playable enclosure"""
    title: str
    audio_url: str
    published: Optional[str] = None


class PodcastFeedClient:
    """Reads the podcast RSS feed"""

    def __init__(self, cfg: PodcastConfig, session: Optional[requests.Session] = None):
        self.cfg = cfg
        self.session = session or http_session()

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        reraise=True
    )
    def _download(self) -> bytes:
        logger.debug(f"GET {self.cfg.feed_url}")
        response = self.session.get(self.cfg.feed_url, timeout=self.cfg.request_timeout_s)
        response.raise_for_status()
        return response.content

    def latest_episode(self) -> Episode:
        """
        Newest episode in the feed.

        Raises:
            PodcastError: Feed unreachable, empty, or the episode has no audio
        """
        try:
            content = self._download()
        except requests.exceptions.RequestException as e:
            raise PodcastError(f"Failed to fetch podcast feed: {e}") from e

        feed = feedparser.parse(content)
        if not feed.entries:
            raise PodcastError("No episodes found in the feed")

        entry = feed.entries[0]
        for enclosure in entry.get("enclosures", []):
            if enclosure.get("type", "").startswith("audio/") and enclosure.get("href"):
                return Episode(
                    title=entry.get("title", "Untitled episode"),
                    audio_url=enclosure["href"],
                    published=entry.get("published"),
                )
        raise PodcastError("No audio found for the latest episode")

    async def resolve_latest_episode_url(self) -> str:
        episode = await asyncio.to_thread(self.latest_episode)
        return episode.audio_url


class PodcastPlayer:
    """Plays the latest episode under the ``podcast`` audio owner"""

    def __init__(self, audio: AudioSessionManager, client: PodcastFeedClient, cfg: PodcastConfig):
        self.audio = audio
        self.client = client
        self.cfg = cfg
        self.control: Optional[PodcastControl] = None
        self.episode: Optional[Episode] = None
        self._sound: Optional[Sound] = None
        self._paused = False

    @property
    def is_playing(self) -> bool:
        return self._sound is not None and not self._paused

    async def set_control(self, control: PodcastControl) -> None:
        """Apply a play, pause or refresh control signal"""
        self.control = control
        logger.info(f"Podcast control: {control.value}")
        if control is PodcastControl.PLAY:
            await self.play()
        elif control is PodcastControl.PAUSE:
            await self.pause()
        else:
            await self.refresh()

    async def refresh(self) -> Episode:
        self.episode = await asyncio.to_thread(self.client.latest_episode)
        logger.info(f"Latest episode: {self.episode.title}")
        return self.episode

    async def play(self) -> None:
        """
        Start the latest episode, or resume the paused one.

        A fresh start always re-resolves the feed, so a long-lived player
        moves on to newer episodes between routines.

        Raises:
            PodcastError: The episode could not be resolved or played
        """
        if self._sound is not None and self.audio.is_held() is AudioOwner.PODCAST:
            if self._paused:
                await self._sound.play()
                self._paused = False
            return

        try:
            await self.refresh()
            session = await self.audio.acquire(AudioOwner.PODCAST)
            self._sound = await session.load(self.episode.audio_url, volume=self.cfg.volume)
            await self._sound.play()
            self._paused = False
        except Exception as e:
            self._sound = None
            log_error(logger, "podcast", e)
            await self.audio.release(AudioOwner.PODCAST)
            if isinstance(e, PodcastError):
                raise
            raise PodcastError(f"Failed to play podcast: {e}") from e

    async def pause(self) -> None:
        if self._sound is None or self._paused:
            return
        await self._sound.pause()
        self._paused = True
