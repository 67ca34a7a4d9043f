"""
Capture pipeline for SmartNote.

Drives one capture from raw input to a stored note:

    raw text / audio → structuring → NoteStore.upsert → calendar sync
    (meetings and events only) → discover items recomputed → listeners

Structuring and transcription failures abort the capture before anything is
stored. Calendar sync is an optional collaborator; its failures are logged
and never block the note.
"""

import logging
from pathlib import Path
from typing import Any, Callable, Literal

from smartnote.calendar_sync import CalendarSync
from smartnote.config import load_config
from smartnote.db import Database
from smartnote.errors import ConfigurationError, PersistenceError, SmartNoteError
from smartnote.models import DiscoverItem, EventResult, Note
from smartnote.store import NoteStore
from smartnote.structuring import StructuringClient
from smartnote.surfacing import RandomSource, compute_discover_items

logger = logging.getLogger(__name__)

CaptureState = Literal["idle", "processing", "structured", "error"]
DiscoverListener = Callable[[list[DiscoverItem]], None]

CALENDAR_CATEGORIES = ("meeting", "event")


class CapturePipeline:
    """Composes the store, structuring client, calendar and discovery."""

    def __init__(
        self,
        store: NoteStore,
        structurer: StructuringClient,
        calendar: CalendarSync | None = None,
        rng: RandomSource | None = None,
    ):
        self.store = store
        self.structurer = structurer
        self.calendar = calendar
        self._rng = rng

        self.state: CaptureState = "idle"
        self.error: str | None = None
        # Input of the capture in flight, kept after a failure for retry
        self.pending_text: str | None = None
        self.last_calendar_result: EventResult | None = None

        self._listeners: list[DiscoverListener] = []
        self._discover_items = compute_discover_items(self.store.list(), self._rng)

    # =====================================================================
    # Read side
    # =====================================================================

    @property
    def notes(self) -> list[Note]:
        return self.store.list()

    @property
    def discover_items(self) -> list[DiscoverItem]:
        return list(self._discover_items)

    def subscribe(self, listener: DiscoverListener) -> Callable[[], None]:
        """
        Call listener with fresh discover items after every change.

        Returns:
            A function that removes the listener.
        """
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def search(self, query: str) -> list[Note]:
        return self.store.search(query)

    def _refresh_discovery(self) -> None:
        self._discover_items = compute_discover_items(self.store.list(), self._rng)
        for listener in list(self._listeners):
            try:
                listener(self.discover_items)
            except Exception:
                logger.exception("Discover listener %r failed", listener)

    # =====================================================================
    # Capture
    # =====================================================================

    def _fail(self, error: SmartNoteError) -> None:
        self.state = "error"
        self.error = error.message
        logger.error("Capture failed: %s", error.message)

    async def capture_text(self, text: str) -> Note:
        """
        Structure and store typed text.

        Raises:
            ValueError: if the text is blank.
            ConfigurationError, StructuringError, PersistenceError: the
                capture failed; ``pending_text`` still holds the input.
        """
        if not text or not text.strip():
            raise ValueError("Empty note")
        return await self._capture(text, "text")

    async def capture_voice(self, audio: bytes | Path | str, filename: str = "recording.m4a") -> Note:
        """
        Transcribe, then structure and store, a voice recording.

        A failed transcription leaves nothing to retry from: the recording
        has to be made again.
        """
        self.state = "processing"
        self.error = None
        self.pending_text = None
        try:
            transcript = await self.structurer.transcribe_audio(audio, filename)
        except SmartNoteError as e:
            self._fail(e)
            raise

        logger.debug("Transcribed %.1fs of audio", transcript.duration)
        return await self._capture(transcript.text, "voice")

    async def _capture(self, text: str, note_type: Literal["text", "voice"]) -> Note:
        self.state = "processing"
        self.error = None
        self.pending_text = text
        self.last_calendar_result = None

        try:
            note = await self.structurer.structure_note(text, note_type)
            stored = await self.add_note(note)
        except SmartNoteError as e:
            self._fail(e)
            raise

        self.state = "structured"
        self.pending_text = None
        return stored

    async def add_note(self, note: Note) -> Note:
        """
        Upsert a note, sync it to the calendar if it is new, refresh discovery.

        Raises:
            PersistenceError: if the store could not be written.
        """
        is_new = note.id not in self.store
        try:
            stored = self.store.upsert(note)
        except PersistenceError:
            self._refresh_discovery()
            raise

        if is_new:
            self.last_calendar_result = await self._sync_calendar(stored)

        self._refresh_discovery()
        return stored

    async def _sync_calendar(self, note: Note) -> EventResult | None:
        if self.calendar is None or not self.calendar.is_connected():
            return None
        if note.category not in CALENDAR_CATEGORIES or not note.event_date:
            return None

        result = await self.calendar.create_event_from_note(note)
        if result.success:
            logger.info("Added %r to Google Calendar (%s)", note.title, result.event_id)
        else:
            logger.warning("Calendar sync skipped for %s: %s", note.id, result.error)
        return result

    def delete_note(self, note_id: str) -> bool:
        """Delete a note. Returns False if it did not exist."""
        try:
            return self.store.delete(note_id)
        finally:
            self._refresh_discovery()

    def refresh(self) -> None:
        """Reload notes from disk."""
        self.store.reload()
        self._refresh_discovery()

    async def find_related(self, note_id: str) -> list[Note]:
        """Notes the service considers related; empty on any failure."""
        note = self.store.get(note_id)
        if note is None:
            return []
        ids = await self.structurer.find_related_notes(note, self.store.list())
        return [related for related in map(self.store.get, ids) if related is not None]

    # =====================================================================
    # Calendar
    # =====================================================================

    @property
    def is_calendar_connected(self) -> bool:
        return self.calendar is not None and self.calendar.is_connected()

    def _require_calendar(self) -> CalendarSync:
        if self.calendar is None:
            raise ConfigurationError("Calendar sync is disabled. Set enabled = true under [calendar].")
        return self.calendar

    def connect_calendar(self, access_token: str, refresh_token: str | None = None) -> None:
        self._require_calendar().connect(access_token, refresh_token)

    def disconnect_calendar(self) -> None:
        self._require_calendar().disconnect()


def create_pipeline(
    config: dict[str, Any] | None = None,
    db: Database | None = None,
) -> CapturePipeline:
    """Build a pipeline from configuration, sharing one database."""
    config = config or load_config()
    db = db or Database()

    calendar = None
    if config.get("calendar", {}).get("enabled", True):
        calendar = CalendarSync(db=db, config=config)

    return CapturePipeline(
        store=NoteStore(db),
        structurer=StructuringClient(config),
        calendar=calendar,
    )
