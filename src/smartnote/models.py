"""
Data model for SmartNote.

Attributes are snake_case; JSON (both the persisted blob and the structuring
service's response) uses the camelCase aliases.
"""

import html
import re
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator
from pydantic.alias_generators import to_camel

NoteType = Literal["text", "voice"]
Category = Literal[
    "meeting", "event", "task", "reminder", "idea", "learning", "personal", "work", "other"
]
Priority = Literal["low", "medium", "high", "urgent"]
Recurrence = Literal["daily", "weekly", "monthly"]
DiscoverType = Literal["resurfacing", "thread", "explore"]

CATEGORIES: tuple[str, ...] = (
    "meeting", "event", "task", "reminder", "idea", "learning", "personal", "work", "other",
)
PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "urgent")
RECURRENCES: tuple[str, ...] = ("daily", "weekly", "monthly")

_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")


def strip_markup(text: str | None) -> str:
    """Strip tags from note markup and collapse whitespace."""
    if not text:
        return ""
    plain = html.unescape(_TAG_RE.sub(" ", text))
    return _WS_RE.sub(" ", plain).strip()


class NoteFields(BaseModel):
    """Fields shared by a stored note and a structuring response."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    title: str = Field(min_length=1, description="Short title")
    content: str | None = Field(default=None, description="Renderable note markup")
    summary: str | None = Field(default=None, description="2-3 sentence summary")
    structured_content: str | None = Field(default=None, description="Organized plain content")
    tags: list[str] = Field(default_factory=list, description="Topic tags")
    category: Category = "other"

    # Meeting / event
    event_date: str | None = Field(default=None, description="YYYY-MM-DD")
    event_time: str | None = Field(default=None, description="HH:MM, 24-hour")
    event_end_time: str | None = Field(default=None, description="HH:MM, 24-hour")
    location: str | None = None
    attendees: list[str] = Field(default_factory=list)

    # Task
    due_date: str | None = Field(default=None, description="YYYY-MM-DD")
    priority: Priority | None = None

    # Reminder
    reminder_date: str | None = Field(default=None, description="YYYY-MM-DD")
    reminder_time: str | None = Field(default=None, description="HH:MM, 24-hour")
    is_recurring: bool | None = None
    recurrence: Recurrence | None = None

    action_items: list[str] = Field(default_factory=list)

    @field_validator("title", mode="before")
    @classmethod
    def _strip_title(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: Any) -> str:
        if isinstance(value, str) and value.strip().lower() in CATEGORIES:
            return value.strip().lower()
        return "other"

    @field_validator("priority", "recurrence", mode="before")
    @classmethod
    def _normalize_choice(cls, value: Any, info: ValidationInfo) -> str | None:
        allowed = PRIORITIES if info.field_name == "priority" else RECURRENCES
        if isinstance(value, str) and value.strip().lower() in allowed:
            return value.strip().lower()
        return None

    @field_validator("tags", "attendees", "action_items", mode="before")
    @classmethod
    def _clean_string_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if not isinstance(value, list):
            return value  # let pydantic reject it
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]

    @field_validator(
        "content", "summary", "structured_content", "event_date", "event_time",
        "event_end_time", "location", "due_date", "reminder_date", "reminder_time",
        "is_recurring",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        if isinstance(value, str) and value.strip().lower() in ("", "null", "none"):
            return None
        return value

    @property
    def body(self) -> str:
        """The richest body text available."""
        return self.content or self.structured_content or self.summary or ""


class StructuredNote(NoteFields):
    """Schema the structuring service's JSON response must satisfy."""

    @model_validator(mode="after")
    def _require_body(self) -> "StructuredNote":
        if not (self.content or self.summary or self.structured_content):
            raise ValueError("response has no content, summary or structuredContent")
        return self


class Note(NoteFields):
    """A captured, AI-structured note."""

    id: str
    original_text: str
    note_type: NoteType = "text"
    created_at: str
    updated_at: str | None = None

    def plain_text(self) -> str:
        """Body with markup stripped, falling back to the original input."""
        return strip_markup(self.body) or strip_markup(self.original_text)

    def to_json(self) -> dict[str, Any]:
        """Serialize with camelCase keys."""
        return self.model_dump(by_alias=True, mode="json")


class DiscoverItem(BaseModel):
    """Ephemeral suggestion derived from the note collection."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    id: str
    type: DiscoverType
    title: str
    description: str
    note_ids: list[str] = Field(default_factory=list)


class Transcript(BaseModel):
    """Result of an audio transcription."""

    text: str
    duration: float = 0


class CalendarTokens(BaseModel):
    """Stored calendar credentials."""

    access_token: str
    refresh_token: str | None = None
    expires_at: int | None = Field(default=None, description="Epoch milliseconds")


class EventResult(BaseModel):
    """Outcome of mirroring a note into the calendar."""

    success: bool
    event_id: str | None = None
    error: str | None = None
    session_expired: bool = False
