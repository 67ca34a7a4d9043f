"""Unit tests for the note store: ordering, upsert, delete, search, persistence."""

import sqlite3
from datetime import datetime, timezone

import pytest

from smartnote.db import NOTES_KEY, Database
from smartnote.errors import PersistenceError
from smartnote.store import NoteStore


def test_empty_store_lists_nothing(store: NoteStore) -> None:
    """A fresh database yields an empty collection."""
    assert store.list() == []
    assert len(store) == 0


def test_upsert_new_note_is_prepended(store: NoteStore, make_note) -> None:
    """The most recently inserted note comes first."""
    first = make_note()
    second = make_note()

    store.upsert(first)
    store.upsert(second)

    assert [note.id for note in store.list()] == [second.id, first.id]


def test_upsert_existing_note_keeps_position(store: NoteStore, make_note) -> None:
    """Replacing a note leaves it where it was and changes only that note."""
    a, b, c = make_note(), make_note(), make_note()
    for note in (a, b, c):
        store.upsert(note)

    store.upsert(b.model_copy(update={"title": "Renamed"}))

    notes = store.list()
    assert [note.id for note in notes] == [c.id, b.id, a.id]
    assert notes[1].title == "Renamed"
    assert notes[0].title == c.title
    assert len(store) == 3


def test_upsert_sets_updated_at(store: NoteStore, make_note) -> None:
    """Stored notes always carry updated_at."""
    stored = store.upsert(make_note())
    assert stored.updated_at is not None


def test_updated_at_strictly_advances_with_frozen_clock(db: Database, make_note) -> None:
    """Two upserts in the same instant still produce increasing timestamps."""
    frozen = datetime(2026, 10, 1, 12, 0, tzinfo=timezone.utc)
    store = NoteStore(db, clock=lambda: frozen)
    note = make_note()

    first = store.upsert(note)
    second = store.upsert(first.model_copy(update={"title": "Again"}))

    assert datetime.fromisoformat(second.updated_at) > datetime.fromisoformat(first.updated_at)


def test_notes_survive_reload(db: Database, make_note) -> None:
    """A new store over the same database sees the same notes in the same order."""
    store = NoteStore(db)
    a = make_note(tags=["budget"], category="meeting", event_date="2026-10-02")
    b = make_note()
    store.upsert(a)
    store.upsert(b)

    reloaded = NoteStore(db)

    assert [note.id for note in reloaded.list()] == [b.id, a.id]
    restored = reloaded.get(a.id)
    assert restored.tags == ["budget"]
    assert restored.category == "meeting"
    assert restored.event_date == "2026-10-02"


def test_blob_uses_camel_case_keys(store: NoteStore, db: Database, make_note) -> None:
    """The persisted JSON uses camelCase field names."""
    store.upsert(make_note(event_date="2026-10-02", action_items=["Send agenda"]))

    raw = db.get_blob(NOTES_KEY)

    assert '"eventDate": "2026-10-02"' in raw
    assert '"actionItems": ["Send agenda"]' in raw
    assert '"originalText"' in raw


def test_delete_removes_note(store: NoteStore, make_note) -> None:
    """Deleted notes are gone from memory and from disk."""
    note = make_note()
    store.upsert(note)

    assert store.delete(note.id) is True
    assert store.get(note.id) is None
    assert note.id not in NoteStore(store.db)


def test_delete_missing_note_is_not_an_error(store: NoteStore, make_note) -> None:
    """Deleting an unknown id returns False and leaves the collection alone."""
    store.upsert(make_note())

    assert store.delete("nope") is False
    assert len(store) == 1


@pytest.mark.parametrize(
    "query",
    ["BUDGET", "budget", "Q3 planning", "quarterly", "finance"],
)
def test_search_matches_fields_case_insensitively(store: NoteStore, make_note, query: str) -> None:
    """Title, content, summary, original text and tags are all searchable."""
    store.upsert(make_note(
        title="Budget review",
        content="<p>Q3 planning</p>",
        summary="Quarterly numbers",
        tags=["finance"],
    ))
    store.upsert(make_note(title="Unrelated"))

    results = store.search(query)

    assert [note.title for note in results] == ["Budget review"]


def test_search_matches_original_text(store: NoteStore, make_note) -> None:
    """The raw input stays searchable after structuring."""
    store.upsert(make_note(original_text="call the plumber about the leak"))
    assert len(store.search("plumber")) == 1


def test_blank_search_returns_everything(store: NoteStore, make_note) -> None:
    """An empty or whitespace query is not a filter."""
    store.upsert(make_note())
    store.upsert(make_note())

    assert len(store.search("")) == 2
    assert len(store.search("   ")) == 2


def test_search_keeps_store_order(store: NoteStore, make_note) -> None:
    """Results are in store order, newest first."""
    older = make_note(tags=["garden"])
    newer = make_note(tags=["garden"])
    store.upsert(older)
    store.upsert(newer)

    assert [note.id for note in store.search("garden")] == [newer.id, older.id]


def test_stats_counts_categories_and_types(store: NoteStore, make_note) -> None:
    """Statistics break the collection down by category and note type."""
    store.upsert(make_note(category="learning"))
    store.upsert(make_note(category="learning", note_type="voice"))
    store.upsert(make_note(category="task", action_items=["Do it"]))

    stats = store.stats()

    assert stats["total_notes"] == 3
    assert stats["by_category"] == {"learning": 2, "task": 1}
    assert stats["by_type"] == {"text": 2, "voice": 1}
    assert stats["learning_notes"] == 2
    assert stats["with_action_items"] == 1


def test_corrupt_blob_raises_persistence_error(db: Database) -> None:
    """Unreadable stored notes surface as PersistenceError, not a crash."""
    db.set_blob(NOTES_KEY, "{not json")

    with pytest.raises(PersistenceError, match="corrupt"):
        NoteStore(db)


def test_write_failure_raises_but_keeps_memory(
    store: NoteStore, make_note, monkeypatch: pytest.MonkeyPatch
) -> None:
    """A failed write is reported; the in-memory collection still has the note."""
    def broken(key: str, value: str) -> None:
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(store.db, "set_blob", broken)
    note = make_note()

    with pytest.raises(PersistenceError, match="Failed to save notes"):
        store.upsert(note)

    assert note.id in store


@pytest.mark.parametrize("query", ["work", "WORK", "Work"])
def test_search_matches_tags_in_any_case(store: NoteStore, make_note, query: str) -> None:
    store.upsert(make_note(tags=["Work"]))
    assert len(store.search(query)) == 1
