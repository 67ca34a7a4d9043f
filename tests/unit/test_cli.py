"""Unit tests for CLI dispatch and command output."""

from __future__ import annotations

import io
import sys
from typing import Any

import pytest

import smartnote.cli as cli
from smartnote.calendar_sync import CalendarSync
from smartnote.db import Database
from smartnote.pipeline import CapturePipeline
from smartnote.store import NoteStore
from smartnote.structuring import StructuringClient

TASK = {
    "title": "Email Sarah",
    "content": "<p>Email Sarah about the offsite</p>",
    "tags": ["offsite"],
    "category": "task",
    "actionItems": ["Email Sarah"],
}


@pytest.fixture
def pipeline(db: Database, config, stub_http, monkeypatch: Any) -> CapturePipeline:
    """Pipeline the CLI will use instead of the default database."""
    pipeline = CapturePipeline(
        NoteStore(db),
        StructuringClient(config, http_client=stub_http.client),
        CalendarSync(db=db, config=config, http_client=stub_http.client),
    )
    monkeypatch.setattr(cli, "get_pipeline", lambda: pipeline)
    return pipeline


def run(monkeypatch: Any, *args: str) -> int:
    monkeypatch.setattr(sys, "argv", ["smartnote", *args])
    return cli.main()


def test_help(monkeypatch: Any, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(monkeypatch, "--help") == 0
    assert "smartnote - AI-structured personal notes" in capsys.readouterr().out


def test_version(monkeypatch: Any, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(monkeypatch, "--version") == 0
    assert capsys.readouterr().out.strip() == "smartnote 0.1.0"


def test_bare_words_are_captured(
    monkeypatch: Any, capsys: pytest.CaptureFixture[str], pipeline: CapturePipeline, stub_http
) -> None:
    """Unrecognized arguments are joined into one thought."""
    stub_http.respond_chat(TASK)

    assert run(monkeypatch, "Remember", "to", "email", "Sarah") == 0

    note = pipeline.notes[0]
    assert note.original_text == "Remember to email Sarah"
    assert f"{note.id}  Email Sarah" in capsys.readouterr().out


def test_piped_input_is_captured(
    monkeypatch: Any, pipeline: CapturePipeline, stub_http
) -> None:
    monkeypatch.setattr(sys, "stdin", io.StringIO("Email Sarah about the offsite\n"))
    stub_http.respond_chat(TASK)

    assert run(monkeypatch) == 0
    assert pipeline.notes[0].original_text == "Email Sarah about the offsite"


def test_failed_capture_exits_nonzero(
    monkeypatch: Any, capsys: pytest.CaptureFixture[str], pipeline: CapturePipeline, stub_http
) -> None:
    stub_http.respond(503, {"error": {"message": "Service unavailable"}})

    assert run(monkeypatch, "Buy milk") == 1

    err = capsys.readouterr().err
    assert "Error: Service unavailable" in err
    assert "Nothing was saved" in err
    assert pipeline.notes == []


def test_list_and_filter(
    monkeypatch: Any, capsys: pytest.CaptureFixture[str], pipeline: CapturePipeline, make_note
) -> None:
    pipeline.store.upsert(make_note(title="Pay rent", category="task"))
    pipeline.store.upsert(make_note(title="Poem idea", category="idea"))

    assert run(monkeypatch, "list", "--category", "task") == 0

    out = capsys.readouterr().out
    assert "TASK NOTES" in out
    assert "Pay rent" in out
    assert "Poem idea" not in out


def test_list_rejects_unknown_category(
    monkeypatch: Any, capsys: pytest.CaptureFixture[str], pipeline: CapturePipeline
) -> None:
    assert run(monkeypatch, "list", "--category", "shopping") == 1
    assert "Invalid category" in capsys.readouterr().err


def test_show_and_find(
    monkeypatch: Any, capsys: pytest.CaptureFixture[str], pipeline: CapturePipeline, make_note
) -> None:
    note = pipeline.store.upsert(make_note(title="Dentist appointment", tags=["health"]))

    assert run(monkeypatch, "show", note.id) == 0
    assert "Dentist appointment" in capsys.readouterr().out

    assert run(monkeypatch, "find", "HEALTH") == 0
    assert note.id in capsys.readouterr().out

    assert run(monkeypatch, "show", "missing") == 1
    assert "Note not found: missing" in capsys.readouterr().err


def test_delete(
    monkeypatch: Any, capsys: pytest.CaptureFixture[str], pipeline: CapturePipeline, make_note
) -> None:
    note = pipeline.store.upsert(make_note())

    assert run(monkeypatch, "delete", note.id) == 0
    assert f"Deleted: {note.id}" in capsys.readouterr().out
    assert run(monkeypatch, "delete", note.id) == 1


def test_discover_and_threads(
    monkeypatch: Any, capsys: pytest.CaptureFixture[str], pipeline: CapturePipeline, make_note
) -> None:
    pipeline.store.upsert(make_note(tags=["garden"]))
    pipeline.store.upsert(make_note(tags=["garden"]))
    pipeline.refresh()

    assert run(monkeypatch, "discover") == 0
    assert "Thread: garden" in capsys.readouterr().out

    assert run(monkeypatch, "threads") == 0
    assert "#garden  2 notes" in capsys.readouterr().out


def test_stats(
    monkeypatch: Any, capsys: pytest.CaptureFixture[str], pipeline: CapturePipeline, make_note
) -> None:
    pipeline.store.upsert(make_note(category="learning", action_items=["Read chapter 3"]))

    assert run(monkeypatch, "stats") == 0

    out = capsys.readouterr().out
    assert "Total notes: 1" in out
    assert "Learning notes: 1" in out
    assert "- [ ] Read chapter 3" in out


def test_calendar_connect_status_disconnect(
    monkeypatch: Any, capsys: pytest.CaptureFixture[str], pipeline: CapturePipeline
) -> None:
    assert run(monkeypatch, "calendar") == 0
    assert "not connected" in capsys.readouterr().out

    assert run(monkeypatch, "calendar", "connect", "access-123") == 0
    assert pipeline.is_calendar_connected

    assert run(monkeypatch, "calendar", "status") == 0
    assert "Google Calendar: connected" in capsys.readouterr().out

    assert run(monkeypatch, "calendar", "disconnect") == 0
    assert not pipeline.is_calendar_connected


def test_calendar_upcoming_requires_connection(
    monkeypatch: Any, capsys: pytest.CaptureFixture[str], pipeline: CapturePipeline
) -> None:
    assert run(monkeypatch, "calendar", "upcoming") == 1
    assert "Not connected" in capsys.readouterr().err


def test_calendar_upcoming_lists_events(
    monkeypatch: Any, capsys: pytest.CaptureFixture[str], pipeline: CapturePipeline, stub_http
) -> None:
    pipeline.connect_calendar("access-123")
    stub_http.respond(json_body={"items": [
        {"summary": "Standup", "start": {"dateTime": "2026-10-20T09:00:00Z"}},
    ]})

    assert run(monkeypatch, "calendar", "upcoming") == 0
    assert "2026-10-20T09:00  Standup" in capsys.readouterr().out


def test_health_without_setup(monkeypatch: Any, capsys: pytest.CaptureFixture[str]) -> None:
    assert run(monkeypatch, "health") == 0

    out = capsys.readouterr().out
    assert "Database: Not found" in out
    assert "Structuring: No API key" in out
    assert "Telegram: Not configured" in out


def test_bad_provider_is_reported_not_raised(monkeypatch: Any, capsys: pytest.CaptureFixture[str]) -> None:
    """Read-only commands report configuration errors instead of crashing."""
    from smartnote.config import ensure_dirs, get_config_path

    ensure_dirs()
    get_config_path().write_text('[llm]\nprovider = "nope"\n')

    assert run(monkeypatch, "list") == 1
    assert "Error: Unknown LLM provider: nope" in capsys.readouterr().err
