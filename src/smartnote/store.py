"""
Note store for SmartNote.

Owns the note collection. The whole collection is held in memory, newest
first, and rewritten to the ``notes`` blob after every mutation. Upsert by id
is the only way a note changes.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

from pydantic import ValidationError

from smartnote.db import NOTES_KEY, Database
from smartnote.errors import PersistenceError
from smartnote.models import Note

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NoteStore:
    """Durable, ordered collection of notes."""

    def __init__(
        self,
        db: Database | None = None,
        clock: Callable[[], datetime] | None = None,
    ):
        self.db = db or Database()
        self._clock = clock or _utcnow
        self._notes: list[Note] = []
        self.reload()

    def reload(self) -> None:
        """Re-read the collection from disk, replacing what is in memory."""
        try:
            raw = self.db.get_blob(NOTES_KEY)
        except sqlite3.Error as e:
            raise PersistenceError(f"Failed to load notes: {e}") from e

        if raw is None:
            self._notes = []
            return

        try:
            self._notes = [Note.model_validate(item) for item in json.loads(raw)]
        except (json.JSONDecodeError, TypeError, ValidationError) as e:
            raise PersistenceError(f"Stored notes are corrupt: {e}") from e

        logger.debug("Loaded %d notes", len(self._notes))

    def _persist(self) -> None:
        payload = json.dumps([note.to_json() for note in self._notes])
        try:
            self.db.set_blob(NOTES_KEY, payload)
        except sqlite3.Error as e:
            # Memory already holds the change; the caller decides whether to retry.
            logger.error("Failed to persist %d notes: %s", len(self._notes), e)
            raise PersistenceError(f"Failed to save notes: {e}") from e

    def _index_of(self, note_id: str) -> int | None:
        for i, note in enumerate(self._notes):
            if note.id == note_id:
                return i
        return None

    def _next_updated_at(self, previous: str | None) -> str:
        now = self._clock()
        if previous:
            last = datetime.fromisoformat(previous)
            if last.tzinfo is None:
                last = last.replace(tzinfo=timezone.utc)
            if now <= last:
                now = last + timedelta(microseconds=1)
        return now.isoformat()

    def upsert(self, note: Note) -> Note:
        """
        Insert or replace a note by id.

        An existing note is replaced in place, keeping its position; a new
        note is prepended. ``updated_at`` is refreshed either way.

        Returns:
            The note as stored.

        Raises:
            PersistenceError: if the collection could not be written.
        """
        index = self._index_of(note.id)
        previous = self._notes[index].updated_at if index is not None else note.updated_at
        stored = note.model_copy(update={"updated_at": self._next_updated_at(previous)})

        if index is None:
            self._notes.insert(0, stored)
        else:
            self._notes[index] = stored

        self._persist()
        return stored

    def delete(self, note_id: str) -> bool:
        """Remove a note. Returns False (not an error) if it was absent."""
        index = self._index_of(note_id)
        if index is None:
            return False

        del self._notes[index]
        self._persist()
        return True

    def get(self, note_id: str) -> Note | None:
        """Get a single note by ID."""
        index = self._index_of(note_id)
        return self._notes[index] if index is not None else None

    def list(self) -> list[Note]:
        """All notes in store order (newest first)."""
        return list(self._notes)

    def search(self, query: str) -> list[Note]:
        """
        Case-insensitive substring search.

        Matches title, content, summary, structured content, original text
        and tags. A blank query returns everything. Results keep store order.
        """
        if not query.strip():
            return self.list()

        needle = query.lower()

        def matches(note: Note) -> bool:
            fields = (
                note.title, note.content, note.summary,
                note.structured_content, note.original_text,
            )
            if any(field and needle in field.lower() for field in fields):
                return True
            return any(needle in tag.lower() for tag in note.tags)

        return [note for note in self._notes if matches(note)]

    def stats(self) -> dict[str, Any]:
        """Get collection statistics."""
        by_category = Counter(note.category for note in self._notes)
        by_type = Counter(note.note_type for note in self._notes)
        return {
            "total_notes": len(self._notes),
            "by_category": dict(by_category.most_common()),
            "by_type": dict(by_type),
            "learning_notes": by_category.get("learning", 0),
            "with_action_items": sum(1 for note in self._notes if note.action_items),
        }

    def __len__(self) -> int:
        return len(self._notes)

    def __contains__(self, note_id: object) -> bool:
        return isinstance(note_id, str) and self._index_of(note_id) is not None
