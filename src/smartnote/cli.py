"""
CLI for SmartNote.

Minimal CLI using stdlib argument handling. Subcommands are imported lazily
so that --help and --version stay fast.

Usage:
    smartnote "your thought here"      # Capture (primary interface)
    smartnote voice memo.m4a           # Capture a voice recording
    smartnote --help                   # Show help
"""

import asyncio
import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from smartnote.pipeline import CapturePipeline


def print_help() -> None:
    """Print help message."""
    print("""smartnote - AI-structured personal notes

Usage:
    smartnote "your thought here"     Capture and structure a thought

Commands:
    smartnote voice <file>            Transcribe and capture a recording
    smartnote list [options]          List notes (--category, --limit)
    smartnote show <id>               Show a single note
    smartnote find <query>            Search notes
    smartnote delete <id>             Delete a note
    smartnote discover                Resurfaced notes, threads, tags to explore
    smartnote related <id>            Ask the AI for related notes
    smartnote threads                 Notes by category and shared tag
    smartnote stats                   Collection statistics
    smartnote calendar <action>       status | connect <token> [refresh] |
                                      disconnect | upcoming
    smartnote health                  Check configuration and services

Options:
    smartnote --help, -h              Show this help
    smartnote --version, -v           Show version

Examples:
    smartnote "Meeting with John tomorrow at 3pm about budget"
    smartnote list --category task
    smartnote find budget
    smartnote calendar connect ya29.a0Af...

Meetings and events with a date are added to Google Calendar
automatically once it is connected.""")


def print_version() -> None:
    """Print version."""
    from smartnote import __version__
    print(f"smartnote {__version__}")


def configure_logging() -> None:
    """Set up logging from the [logging] config section."""
    from smartnote.config import load_config

    level = load_config().get("logging", {}).get("level", "WARNING")
    logging.basicConfig(
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        level=getattr(logging, str(level).upper(), logging.WARNING),
    )


def get_pipeline() -> "CapturePipeline":
    """Build the capture pipeline against the default database."""
    from smartnote.config import ensure_dirs
    from smartnote.pipeline import create_pipeline

    ensure_dirs()
    return create_pipeline()


def _print_error(message: str) -> None:
    print(f"Error: {message}", file=sys.stderr)


def _report_capture(pipeline: "CapturePipeline", note_id: str, title: str) -> None:
    print(f"{note_id}  {title}")
    result = pipeline.last_calendar_result
    if result and result.success:
        print("Added to Google Calendar")


def capture(text: str) -> int:
    """Structure and store a thought. Prints the new note's id and title."""
    from smartnote.errors import SmartNoteError

    try:
        pipeline = get_pipeline()
        note = asyncio.run(pipeline.capture_text(text))
    except SmartNoteError as e:
        _print_error(e.message)
        print("Nothing was saved. Run the same command again to retry.", file=sys.stderr)
        return 1

    _report_capture(pipeline, note.id, note.title)
    return 0


def cmd_voice(args: list[str]) -> int:
    """Transcribe and capture a recording."""
    from smartnote.errors import SmartNoteError

    if not args:
        print("Usage: smartnote voice <file>", file=sys.stderr)
        return 1

    try:
        pipeline = get_pipeline()
        note = asyncio.run(pipeline.capture_voice(args[0]))
    except SmartNoteError as e:
        _print_error(e.message)
        return 1

    _report_capture(pipeline, note.id, note.title)
    return 0


def cmd_list(args: list[str]) -> int:
    """List notes with optional filters."""
    from smartnote.models import CATEGORIES
    from smartnote.surfacing import format_note_list

    category = None
    limit = 20

    # Parse arguments
    i = 0
    while i < len(args):
        arg = args[i]
        if arg in ("--category", "-c") and i + 1 < len(args):
            category = args[i + 1].lower()
            i += 2
        elif arg in ("--limit", "-n") and i + 1 < len(args):
            try:
                limit = int(args[i + 1])
            except ValueError:
                _print_error(f"Invalid limit: {args[i + 1]}")
                return 1
            i += 2
        else:
            i += 1

    if category and category not in CATEGORIES:
        _print_error(f"Invalid category: {category}. Valid: {', '.join(CATEGORIES)}")
        return 1

    notes = get_pipeline().notes
    if category:
        notes = [note for note in notes if note.category == category]

    header = f"{category.upper()} NOTES" if category else "NOTES"
    print(format_note_list(notes[:limit], header))
    return 0


def cmd_show(args: list[str]) -> int:
    """Show one note in full."""
    from smartnote.surfacing import format_note_detail

    if not args:
        print("Usage: smartnote show <id>", file=sys.stderr)
        return 1

    note = get_pipeline().store.get(args[0])
    if note is None:
        _print_error(f"Note not found: {args[0]}")
        return 1

    print(format_note_detail(note))
    return 0


def cmd_find(args: list[str]) -> int:
    """Search notes."""
    from smartnote.surfacing import format_note_list

    if not args:
        print("Usage: smartnote find <query>", file=sys.stderr)
        return 1

    query = " ".join(args)
    notes = get_pipeline().search(query)
    print(format_note_list(notes, f"SEARCH: {query}"))
    return 0


def cmd_delete(args: list[str]) -> int:
    """Delete a note."""
    from smartnote.errors import PersistenceError

    if not args:
        print("Usage: smartnote delete <id>", file=sys.stderr)
        return 1

    note_id = args[0]
    try:
        deleted = get_pipeline().delete_note(note_id)
    except PersistenceError as e:
        _print_error(e.message)
        return 1

    if not deleted:
        _print_error(f"Note not found: {note_id}")
        return 1
    print(f"Deleted: {note_id}")
    return 0


def cmd_discover() -> int:
    """Show discover items."""
    from smartnote.surfacing import format_discover_items

    print(format_discover_items(get_pipeline().discover_items))
    return 0


def cmd_related(args: list[str]) -> int:
    """Show notes related to a note."""
    from smartnote.surfacing import format_note_list

    if not args:
        print("Usage: smartnote related <id>", file=sys.stderr)
        return 1

    pipeline = get_pipeline()
    note = pipeline.store.get(args[0])
    if note is None:
        _print_error(f"Note not found: {args[0]}")
        return 1

    related = asyncio.run(pipeline.find_related(note.id))
    print(format_note_list(related, f"RELATED: {note.title[:40]}"))
    return 0


def cmd_threads() -> int:
    """Show category breakdown and tag threads."""
    from smartnote.surfacing import format_threads

    print(format_threads(get_pipeline().notes))
    return 0


def cmd_stats() -> int:
    """Show collection statistics."""
    from smartnote.surfacing import format_stats, learning_summary

    pipeline = get_pipeline()
    print(format_stats(pipeline.store.stats(), learning_summary(pipeline.notes)))
    return 0


def cmd_calendar(args: list[str]) -> int:
    """Manage the Google Calendar connection."""
    from smartnote.errors import SmartNoteError

    action = args[0] if args else "status"
    pipeline = get_pipeline()

    try:
        if action == "status":
            state = "connected" if pipeline.is_calendar_connected else "not connected"
            print(f"Google Calendar: {state}")
            return 0

        if action == "connect":
            if len(args) < 2:
                print("Usage: smartnote calendar connect <access-token> [refresh-token]", file=sys.stderr)
                return 1
            pipeline.connect_calendar(args[1], args[2] if len(args) > 2 else None)
            print("Connected to Google Calendar")
            return 0

        if action == "disconnect":
            pipeline.disconnect_calendar()
            print("Disconnected from Google Calendar")
            return 0

        if action == "upcoming":
            if not pipeline.is_calendar_connected:
                _print_error("Not connected to Google Calendar")
                return 1
            events = asyncio.run(pipeline.calendar.get_upcoming_events())
            if not events:
                print("No upcoming events.")
            for event in events:
                start = event.get("start", {})
                when = start.get("dateTime") or start.get("date") or "?"
                print(f"{when[:16]:16}  {event.get('summary', '(no title)')}")
            return 0
    except SmartNoteError as e:
        _print_error(e.message)
        return 1

    _print_error(f"Unknown calendar action: {action}")
    return 1


def cmd_health() -> int:
    """Run health checks."""
    from smartnote.health import format_health_report, run_health_check

    print(format_health_report(run_health_check()))
    return 0


def main() -> int:
    """Main entry point."""
    args = sys.argv[1:]

    # No args - check for piped input
    if not args:
        if not sys.stdin.isatty():
            text = sys.stdin.read().strip()
            if text:
                configure_logging()
                return capture(text)
        print_help()
        return 0

    first_arg = args[0]

    if first_arg in ("--help", "-h", "help"):
        print_help()
        return 0

    if first_arg in ("--version", "-v", "version"):
        print_version()
        return 0

    configure_logging()

    from smartnote.errors import SmartNoteError

    commands = {
        "voice": lambda: cmd_voice(args[1:]),
        "list": lambda: cmd_list(args[1:]),
        "show": lambda: cmd_show(args[1:]),
        "find": lambda: cmd_find(args[1:]),
        "delete": lambda: cmd_delete(args[1:]),
        "discover": cmd_discover,
        "related": lambda: cmd_related(args[1:]),
        "threads": cmd_threads,
        "stats": cmd_stats,
        "calendar": lambda: cmd_calendar(args[1:]),
        "health": cmd_health,
    }

    if first_arg in commands:
        try:
            return commands[first_arg]()
        except SmartNoteError as e:
            _print_error(e.message)
            return 1

    # Everything else is a thought to capture
    # Join all args (allows: smartnote Remember to email Sarah)
    text = " ".join(args)

    if not text.strip():
        _print_error("Empty note")
        return 1

    return capture(text)


if __name__ == "__main__":
    sys.exit(main())
