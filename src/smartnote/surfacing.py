"""
Surfacing module for SmartNote.

Push-first discovery: derive suggestions from the note collection (an old
note worth another look, threads of notes sharing a tag, a tag mentioned
once and never followed up), plus terminal formatting for notes.
"""

import os
import random
from collections import Counter
from typing import Any, Iterable, Protocol, Sequence

from smartnote.models import DiscoverItem, Note

MAX_DISCOVER_ITEMS = 3
RESURFACE_MIN_NOTES = 6  # more than 5
RESURFACE_SKIP_RECENT = 3
RESURFACE_QUOTE_CHARS = 60
MAX_THREAD_ITEMS = 2


class RandomSource(Protocol):
    def randrange(self, start: int, stop: int) -> int: ...


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    WHITE = "\033[37m"

    BRIGHT_BLACK = "\033[90m"  # Gray
    BRIGHT_RED = "\033[91m"
    BRIGHT_GREEN = "\033[92m"
    BRIGHT_YELLOW = "\033[93m"
    BRIGHT_BLUE = "\033[94m"
    BRIGHT_MAGENTA = "\033[95m"
    BRIGHT_CYAN = "\033[96m"

    @classmethod
    def enabled(cls) -> bool:
        """Check if colors should be enabled."""
        if os.environ.get("NO_COLOR"):
            return False
        return True


def c(text: str, *codes: str) -> str:
    """Apply color codes to text if colors are enabled."""
    if not Colors.enabled():
        return text
    return "".join(codes) + text + Colors.RESET


CATEGORY_COLORS = {
    "meeting": Colors.BRIGHT_BLUE,
    "event": Colors.BRIGHT_GREEN,
    "task": Colors.BRIGHT_YELLOW,
    "reminder": Colors.BRIGHT_RED,
    "idea": Colors.BRIGHT_MAGENTA,
    "learning": Colors.BRIGHT_CYAN,
    "personal": Colors.GREEN,
    "work": Colors.BLUE,
    "other": Colors.BRIGHT_BLACK,
}

DISCOVER_COLORS = {
    "resurfacing": Colors.YELLOW,
    "thread": Colors.BRIGHT_MAGENTA,
    "explore": Colors.GREEN,
}


# =========================================================================
# Discovery
# =========================================================================


def tag_threads(notes: Iterable[Note]) -> dict[str, list[str]]:
    """
    Map each tag to the ids of the notes carrying it.

    Tags keep first-seen order and each note is counted once per tag.
    """
    threads: dict[str, list[str]] = {}
    for note in notes:
        for tag in note.tags:
            ids = threads.setdefault(tag, [])
            if note.id not in ids:
                ids.append(note.id)
    return threads


def _resurfacing_item(notes: Sequence[Note], rng: RandomSource) -> DiscoverItem | None:
    if len(notes) < RESURFACE_MIN_NOTES:
        return None

    old_note = notes[rng.randrange(RESURFACE_SKIP_RECENT, len(notes))]
    quote = old_note.plain_text()[:RESURFACE_QUOTE_CHARS]
    return DiscoverItem(
        id=f"resurface-{old_note.id}",
        type="resurfacing",
        title=f"Resurfacing: {old_note.title}",
        description=f'"{quote}..." might be relevant to your recent work',
        note_ids=[old_note.id],
    )


def compute_discover_items(
    notes: Sequence[Note],
    rng: RandomSource | None = None,
) -> list[DiscoverItem]:
    """
    Derive discover items from the collection (newest first).

    Produces, in order: one resurfaced note (only with more than five notes,
    never one of the three newest), up to two tag threads, and one tag to
    explore; the result is cut to three items.

    Args:
        notes: The collection in store order.
        rng: Random source for the resurfacing pick (default: ``random``).
    """
    items: list[DiscoverItem] = []

    resurfaced = _resurfacing_item(notes, rng or random)
    if resurfaced:
        items.append(resurfaced)

    threads = tag_threads(notes)
    for tag, ids in [(t, ids) for t, ids in threads.items() if len(ids) >= 2][:MAX_THREAD_ITEMS]:
        items.append(DiscoverItem(
            id=f"thread-{tag}",
            type="thread",
            title=f"Thread: {tag}",
            description=f"{len(ids)} notes connected about {tag}",
            note_ids=list(ids),
        ))

    lone_tag = next(
        (tag for note in notes for tag in note.tags if len(threads[tag]) == 1),
        None,
    )
    if lone_tag is not None:
        items.append(DiscoverItem(
            id=f"explore-{lone_tag}",
            type="explore",
            title="Explore More",
            description=f'You mentioned "{lone_tag}" but haven\'t explored it yet',
        ))

    return items[:MAX_DISCOVER_ITEMS]


def category_breakdown(notes: Iterable[Note]) -> list[tuple[str, int]]:
    """Category counts, most common first."""
    return Counter(note.category for note in notes).most_common()


def learning_summary(notes: Sequence[Note]) -> dict[str, Any]:
    """Learning notes and outstanding action items."""
    learning = [note for note in notes if note.category == "learning"]
    with_actions = [note for note in notes if note.action_items]
    return {
        "learning_notes": learning,
        "notes_with_actions": with_actions,
        "action_items": [item for note in with_actions for item in note.action_items],
    }


# =========================================================================
# Formatting
# =========================================================================


def _when(note: Note) -> str:
    """Short scheduling hint for list views."""
    if note.event_date:
        return f" [{note.event_date}{' ' + note.event_time if note.event_time else ''}]"
    if note.due_date:
        return f" [due:{note.due_date}]"
    if note.reminder_date:
        return f" [remind:{note.reminder_date}]"
    return ""


def format_note_list(notes: Sequence[Note], header: str = "NOTES") -> str:
    """Format notes as a colored table."""
    if not notes:
        return c("No notes found.", Colors.DIM)

    lines = [c(f"━━━ {header} ━━━", Colors.BOLD, Colors.BLUE), ""]
    lines.append(c(f"{'ID':24}  {'CATEGORY':9}  TITLE", Colors.DIM))
    lines.append(c("─" * 76, Colors.DIM))

    for note in notes:
        category = c(f"{note.category:9}", CATEGORY_COLORS.get(note.category, ""))
        voice = c(" 🎤", Colors.DIM) if note.note_type == "voice" else ""
        extra = c(_when(note), Colors.YELLOW)
        lines.append(f"{c(f'{note.id:24}', Colors.DIM)}  {category}  {note.title[:40]}{extra}{voice}")

    return "\n".join(lines)


def format_note_detail(note: Note) -> str:
    """Format a single note with all of its fields."""
    lines = [
        c(note.title, Colors.BOLD),
        c(f"{note.id}  {note.category}  {note.note_type}  {note.created_at[:16]}", Colors.DIM),
    ]
    if note.tags:
        lines.append(" ".join(c(f"#{tag}", Colors.BRIGHT_CYAN) for tag in note.tags))
    lines.append("")

    body = note.plain_text()
    if body:
        lines.extend([body, ""])

    details = [
        ("Date", note.event_date),
        ("Time", f"{note.event_time}-{note.event_end_time}" if note.event_end_time else note.event_time),
        ("Location", note.location),
        ("Attendees", ", ".join(note.attendees) or None),
        ("Due", note.due_date),
        ("Priority", note.priority),
        ("Reminder", " ".join(filter(None, [note.reminder_date, note.reminder_time])) or None),
        ("Repeats", note.recurrence if note.is_recurring else None),
    ]
    for label, value in details:
        if value:
            lines.append(f"{c(label + ':', Colors.DIM)} {value}")

    if note.action_items:
        lines.append("")
        lines.append(c("Action items", Colors.BOLD))
        lines.extend(f"- [ ] {item}" for item in note.action_items)

    lines.append("")
    lines.append(c(f"Original: {note.original_text}", Colors.DIM))
    return "\n".join(lines)


def format_discover_items(items: Sequence[DiscoverItem]) -> str:
    """Format discover items."""
    if not items:
        return c("Nothing to discover yet. Capture a few more notes.", Colors.DIM)

    lines = [c("━━━ DISCOVER ━━━", Colors.BOLD, Colors.BLUE), ""]
    for item in items:
        lines.append(c(item.title, Colors.BOLD, DISCOVER_COLORS.get(item.type, "")))
        lines.append(f"  {item.description}")
        if item.note_ids:
            lines.append(c(f"  {', '.join(item.note_ids)}", Colors.DIM))
        lines.append("")
    return "\n".join(lines).rstrip()


def format_threads(notes: Sequence[Note]) -> str:
    """Format the category breakdown and every tag thread."""
    if not notes:
        return c("No threads yet.", Colors.DIM)

    lines = [c("━━━ CATEGORIES ━━━", Colors.BOLD, Colors.BLUE)]
    for category, count in category_breakdown(notes):
        lines.append(f"  {c(f'{category:9}', CATEGORY_COLORS.get(category, ''))}  {count}")

    threads = {tag: ids for tag, ids in tag_threads(notes).items() if len(ids) >= 2}
    lines.append("")
    lines.append(c("━━━ THREADS ━━━", Colors.BOLD, Colors.BLUE))
    if not threads:
        lines.append(c("  No tag is shared by two notes yet.", Colors.DIM))
    for tag, ids in sorted(threads.items(), key=lambda x: -len(x[1])):
        lines.append(f"  {c('#' + tag, Colors.BRIGHT_CYAN)}  {len(ids)} notes")
    return "\n".join(lines)


def format_stats(stats: dict[str, Any], summary: dict[str, Any]) -> str:
    """Format store statistics with the learning summary."""
    lines = ["SmartNote Statistics", "-" * 30]
    lines.append(f"Total notes: {stats['total_notes']}")
    for note_type, count in stats.get("by_type", {}).items():
        lines.append(f"  {note_type}: {count}")
    lines.append("\nBy category:")
    for category, count in stats.get("by_category", {}).items():
        lines.append(f"  {category}: {count}")
    lines.append(f"\nLearning notes: {stats['learning_notes']}")
    lines.append(f"Notes with action items: {stats['with_action_items']}")

    action_items = summary.get("action_items", [])
    if action_items:
        lines.append("\nAction items:")
        lines.extend(f"  - [ ] {item}" for item in action_items[:10])
        if len(action_items) > 10:
            lines.append(f"  ... and {len(action_items) - 10} more")
    return "\n".join(lines)
