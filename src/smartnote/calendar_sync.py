"""
Google Calendar sync for SmartNote.

Mirrors meeting and event notes into the user's calendar. Token state is
stored in its own blob and is independent of the notes: a note never depends
on calendar sync succeeding.
"""

import json
import logging
import sqlite3
import time
from contextlib import asynccontextmanager
from datetime import date, datetime, timedelta, timezone
from typing import Any, AsyncIterator

import httpx
from pydantic import ValidationError

from smartnote.config import load_config
from smartnote.db import CALENDAR_TOKEN_KEY, Database
from smartnote.errors import CalendarError, PersistenceError
from smartnote.models import CalendarTokens, EventResult, Note, strip_markup

logger = logging.getLogger(__name__)

TOKEN_LIFETIME_SECONDS = 3600  # assumed, never checked against the server
DEFAULT_EVENT_DURATION = timedelta(hours=1)
REMINDER_MINUTES = (30, 10)
DESCRIPTION_FOOTER = "---\nCreated from SmartNote"

NOT_CONNECTED = "Not connected to Google Calendar"
NO_EVENT_DATE = "No event date specified"
SESSION_EXPIRED = "Session expired. Please reconnect Google Calendar."


class CalendarSync:
    """Google Calendar adapter with locally stored tokens."""

    def __init__(
        self,
        db: Database | None = None,
        config: dict[str, Any] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.db = db or Database()
        self.config = config or load_config()
        cal_config = self.config.get("calendar", {})

        self.base_url = cal_config.get(
            "base_url", "https://www.googleapis.com/calendar/v3"
        ).rstrip("/")
        self.calendar_id = cal_config.get("calendar_id", "primary")
        self.timezone: str | None = cal_config.get("timezone")
        self.timeout = float(cal_config.get("timeout", 15.0))
        self._http_client = http_client
        self._tokens = self._load_tokens()

    # =====================================================================
    # Token state
    # =====================================================================

    def _load_tokens(self) -> CalendarTokens | None:
        try:
            raw = self.db.get_blob(CALENDAR_TOKEN_KEY)
        except sqlite3.Error as e:
            logger.error("Failed to load calendar token: %s", e)
            return None
        if raw is None:
            return None
        try:
            return CalendarTokens.model_validate(json.loads(raw))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.warning("Discarding unreadable calendar token: %s", e)
            return None

    def is_connected(self) -> bool:
        """True iff an access token is stored."""
        return bool(self._tokens and self._tokens.access_token)

    @property
    def tokens(self) -> CalendarTokens | None:
        return self._tokens

    def connect(self, access_token: str, refresh_token: str | None = None) -> None:
        """
        Store tokens from a completed OAuth flow.

        The token is assumed to expire in one hour and is not validated here;
        a bad token is only discovered when the next request is rejected.

        Raises:
            PersistenceError: if the token could not be saved.
        """
        tokens = CalendarTokens(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=int((time.time() + TOKEN_LIFETIME_SECONDS) * 1000),
        )
        try:
            self.db.set_blob(CALENDAR_TOKEN_KEY, tokens.model_dump_json())
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to save calendar token: {e}") from e
        self._tokens = tokens
        logger.info("Connected to Google Calendar")

    def disconnect(self) -> None:
        """Forget stored tokens."""
        self._tokens = None
        try:
            self.db.delete_blob(CALENDAR_TOKEN_KEY)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to clear calendar token: {e}") from e
        logger.info("Disconnected from Google Calendar")

    # =====================================================================
    # Event payloads
    # =====================================================================

    def _timed(self, start: datetime) -> dict[str, str]:
        if self.timezone:
            return {"dateTime": start.isoformat(), "timeZone": self.timezone}
        # No configured zone: send the local UTC offset instead.
        return {"dateTime": start.astimezone().isoformat()}

    def build_event(self, note: Note) -> dict[str, Any]:
        """
        Build the Calendar API event body for a note.

        A note with ``event_time`` becomes a timed event lasting until
        ``event_end_time`` or one hour; otherwise an all-day event.

        Raises:
            ValueError: if the note's date or times do not parse.
        """
        if not note.event_date:
            raise ValueError(NO_EVENT_DATE)

        description = f"{strip_markup(note.body)}\n\n{DESCRIPTION_FOOTER}".lstrip()
        if note.attendees:
            description = f"Attendees: {', '.join(note.attendees)}\n\n{description}"

        event: dict[str, Any] = {
            "summary": note.title,
            "description": description,
            "reminders": {
                "useDefault": False,
                "overrides": [
                    {"method": "popup", "minutes": minutes} for minutes in REMINDER_MINUTES
                ],
            },
        }
        if note.location:
            event["location"] = note.location

        day = date.fromisoformat(note.event_date)
        if note.event_time:
            start = datetime.combine(day, datetime.strptime(note.event_time, "%H:%M").time())
            if note.event_end_time:
                end = datetime.combine(day, datetime.strptime(note.event_end_time, "%H:%M").time())
                if end <= start:
                    end += timedelta(days=1)
            else:
                end = start + DEFAULT_EVENT_DURATION
            event["start"] = self._timed(start)
            event["end"] = self._timed(end)
        else:
            # All-day events end on the following (exclusive) date.
            event["start"] = {"date": day.isoformat()}
            event["end"] = {"date": (day + timedelta(days=1)).isoformat()}

        return event

    # =====================================================================
    # Remote calls
    # =====================================================================

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    def _events_url(self) -> str:
        return f"{self.base_url}/calendars/{self.calendar_id}/events"

    def _check_response(self, response: httpx.Response, default: str) -> None:
        """Raise CalendarError for a rejected request; clear tokens on 401."""
        if not response.is_error:
            return

        if response.status_code == 401:
            logger.warning("Calendar token rejected; clearing stored token")
            try:
                self.disconnect()
            except PersistenceError as e:
                logger.error("%s", e.message)
            raise CalendarError(SESSION_EXPIRED, session_expired=True)

        message = default
        try:
            error = response.json().get("error")
            if isinstance(error, dict) and error.get("message"):
                message = str(error["message"])
        except (ValueError, AttributeError):
            pass
        raise CalendarError(message)

    async def _insert_event(self, event: dict[str, Any], access_token: str) -> str:
        try:
            async with self._client() as client:
                response = await client.post(
                    self._events_url(),
                    headers={
                        "Authorization": f"Bearer {access_token}",
                        "Content-Type": "application/json",
                    },
                    json=event,
                )
        except httpx.HTTPError as e:
            raise CalendarError(str(e) or "Failed to create event") from e

        self._check_response(response, "Failed to create event")
        try:
            return response.json()["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise CalendarError(f"Unexpected calendar response: {e}") from e

    async def create_event_from_note(self, note: Note) -> EventResult:
        """
        Create a calendar event for a note.

        Never raises: skips (without a request) when disconnected or when the
        note has no event date, and reports remote failures in the result.
        """
        if not self._tokens or not self._tokens.access_token:
            return EventResult(success=False, error=NOT_CONNECTED)

        if not note.event_date:
            return EventResult(success=False, error=NO_EVENT_DATE)

        try:
            event = self.build_event(note)
        except ValueError as e:
            return EventResult(success=False, error=f"Invalid event date or time: {e}")

        try:
            event_id = await self._insert_event(event, self._tokens.access_token)
        except CalendarError as e:
            logger.warning("Calendar event for note %s failed: %s", note.id, e.message)
            return EventResult(success=False, error=e.message, session_expired=e.session_expired)

        logger.info("Created calendar event %s for note %s", event_id, note.id)
        return EventResult(success=True, event_id=event_id)

    async def get_upcoming_events(self, max_results: int = 10) -> list[dict[str, Any]]:
        """Upcoming events from now on, or an empty list on any failure."""
        if not self._tokens or not self._tokens.access_token:
            return []
        access_token = self._tokens.access_token

        params = {
            "maxResults": max_results,
            "orderBy": "startTime",
            "singleEvents": "true",
            "timeMin": datetime.now(timezone.utc).isoformat(),
        }
        try:
            async with self._client() as client:
                response = await client.get(
                    self._events_url(),
                    headers={"Authorization": f"Bearer {access_token}"},
                    params=params,
                )
            self._check_response(response, "Failed to list events")
            return response.json().get("items", [])
        except (httpx.HTTPError, CalendarError, ValueError, AttributeError) as e:
            logger.debug("Listing calendar events failed: %s", e)
            return []
