"""
Calendar summary collaborator: today's events, summarized for speech
"""

import asyncio
import json
import os
from datetime import date, datetime
from typing import List, Optional

import requests
from pydantic import BaseModel, Field, ValidationError
from tenacity import retry, stop_after_attempt, wait_exponential, retry_if_exception_type

from .config import CalendarConfig
from .errors import CalendarError
from .http_client import RETRYABLE_ERRORS, http_session
from .logging_utils import get_logger

logger = get_logger(__name__)

NO_EVENTS_TEXT = "No events scheduled for today"


class CalendarEvent(BaseModel):
    """One calendar entry as stored in the events file"""
    title: str = Field(description="Event title")
    start: datetime = Field(description="Start time (local)")
    end: datetime = Field(description="End time (local)")
    all_day: bool = Field(default=False, description="All-day event")
    location: Optional[str] = Field(default=None, description="Event location")
    notes: Optional[str] = Field(default=None, description="Free-form notes")

    def occurs_on(self, day: date) -> bool:
        return self.start.date() <= day <= self.end.date()


def _clock(value: datetime) -> str:
    # 9:05 AM, not 09:05 AM
    return value.strftime("%I:%M %p").lstrip("0")


def format_events(events: List[CalendarEvent]) -> str:
    """
    Render events one per line, sorted by start.

    Example line: ``Standup (9:00 AM - 9:15 AM) at Room 4 - bring notes``
    """
    if not events:
        return NO_EVENTS_TEXT

    lines = []
    for event in sorted(events, key=lambda e: e.start):
        when = "All day" if event.all_day else f"{_clock(event.start)} - {_clock(event.end)}"
        line = f"{event.title} ({when})"
        if event.location:
            line += f" at {event.location}"
        if event.notes:
            line += f" - {event.notes}"
        lines.append(line)
    return "\n".join(lines)


def load_events(path: str, day: date) -> List[CalendarEvent]:
    """
    Read events occurring on ``day`` from a JSON list.

    A missing file means an empty calendar.

    Raises:
        CalendarError: The file exists but cannot be parsed
    """
    if not os.path.exists(path):
        logger.info(f"No events file at {path}, assuming an empty calendar")
        return []

    try:
        with open(path, "r") as f:
            raw = json.load(f)
        events = [CalendarEvent(**item) for item in raw]
    except (OSError, json.JSONDecodeError, TypeError, ValidationError) as e:
        raise CalendarError(f"Failed to fetch calendar events: {e}") from e

    return [event for event in events if event.occurs_on(day)]


class CalendarSummaryClient:
    """Fetches today's events and asks the summary backend to condense them"""

    def __init__(self, cfg: CalendarConfig, session: Optional[requests.Session] = None,
                 today=date.today):
        self.cfg = cfg
        self.session = session or http_session()
        self.today = today

    async def fetch_summary(self) -> str:
        """
        Summary text for today's calendar.

        Raises:
            CalendarError: Events could not be read or the backend refused
        """
        return await asyncio.to_thread(self._fetch_summary)

    def _fetch_summary(self) -> str:
        events = load_events(self.cfg.events_file, self.today())
        text = format_events(events)
        logger.info(f"Loaded {len(events)} calendar events for today")

        if not self.cfg.summary_url:
            return text
        return self._post_summary(text)

    def _post_summary(self, text: str) -> str:
        try:
            response = self._post(text)
        except requests.exceptions.RequestException as e:
            raise CalendarError(f"API request failed: {e}") from e

        try:
            data = response.json()
        except ValueError:
            data = {}

        if not response.ok:
            raise CalendarError(data.get("error") or "Failed to get summary")

        summary = data.get("summary")
        if not summary:
            raise CalendarError("Summary backend returned no summary")
        return summary

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=1, max=10),
        retry=retry_if_exception_type(RETRYABLE_ERRORS),
        reraise=True
    )
    def _post(self, text: str) -> requests.Response:
        logger.debug(f"POST {self.cfg.summary_url}")
        return self.session.post(
            self.cfg.summary_url,
            json={"calendarEvents": text},
            timeout=self.cfg.request_timeout_s
        )
