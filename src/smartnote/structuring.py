"""
Structuring service client for SmartNote.

Turns raw thoughts into structured notes, transcribes voice recordings and
asks for related notes. Talks to any OpenAI-compatible API; Groq is the
default provider.
"""

import json
import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, AsyncIterator, Iterable

import httpx
from pydantic import ValidationError

from smartnote.config import load_config
from smartnote.errors import (
    ConfigurationError,
    RelatednessError,
    StructuringError,
    TranscriptionError,
)
from smartnote.ingress import generate_id, now_iso, read_audio
from smartnote.models import Note, NoteType, StructuredNote, Transcript

logger = logging.getLogger(__name__)


# Defaults for each provider
DEFAULT_MODELS = {
    "groq": "llama-3.3-70b-versatile",
    "openai": "gpt-4o-mini",
}

DEFAULT_TRANSCRIPTION_MODELS = {
    "groq": "whisper-large-v3",
    "openai": "whisper-1",
}

DEFAULT_BASE_URLS = {
    "groq": "https://api.groq.com/openai/v1",
    "openai": "https://api.openai.com/v1",
}

API_KEY_ENV_VARS = {
    "groq": "GROQ_API_KEY",
    "openai": "OPENAI_API_KEY",
}

STRUCTURE_MAX_TOKENS = 2048
RELATED_MAX_TOKENS = 512
MAX_RELATED_CANDIDATES = 20


STRUCTURE_PROMPT = """You are an intelligent note-taking assistant.
Turn this {source} into a well-organized note.

## Input
```
{input}
```

## Context
Today's date: {today} ({weekday})

## Categories (pick exactly ONE)
meeting, event, task, reminder, idea, learning, personal, work, other

## Content markup
Write `content` as HTML using ONLY these elements:
- <div class='info-card'> for a block of metadata rows
- <div class='info-row'><span class='icon'>📅</span><span class='label'>Date:</span><span class='value'>...</span></div>
- <div class='highlight'> for the most important information
- <h3> for section headers, <p> for paragraphs, <ul><li> for lists, <strong> for emphasis

## Rules
- Keep the user's voice and intent
- Resolve relative dates ("tomorrow", "next Monday") against today's date into YYYY-MM-DD
- Resolve times ("3pm", "8 in the morning") into 24-hour HH:MM
- 2-4 short topic tags
- Extract action items, empty list if there are none
- Title max 50 chars

## Output
Return ONLY valid JSON matching this schema:
```json
{{
  "title": "clear title",
  "content": "HTML content",
  "summary": "2-3 sentence summary",
  "tags": ["tag1", "tag2"],
  "category": "meeting|event|task|reminder|idea|learning|personal|work|other",
  "eventDate": "YYYY-MM-DD or null",
  "eventTime": "HH:MM or null",
  "eventEndTime": "HH:MM or null",
  "location": "location or null",
  "attendees": ["names"],
  "dueDate": "YYYY-MM-DD or null",
  "priority": "low|medium|high|urgent or null",
  "reminderDate": "YYYY-MM-DD or null",
  "reminderTime": "HH:MM or null",
  "isRecurring": true|false|null,
  "recurrence": "daily|weekly|monthly or null",
  "actionItems": ["action item"]
}}
```"""


RELATED_PROMPT = """Given this note:
Title: "{title}"
Content: "{content}"
Tags: {tags}

Find which of these other notes are related. Only include notes that are
genuinely related by topic, theme, or context.
Return JSON: {{ "relatedIds": ["id1", "id2"] }}

Other notes:
{candidates}"""


def strip_code_fences(text: str) -> str:
    """Remove a surrounding markdown code block, if present."""
    text = text.strip()
    if text.startswith("```"):
        # Remove opening ``` and optional language tag
        lines = text.split("\n")[1:]
        if lines and lines[-1].strip() == "```":
            lines = lines[:-1]
        text = "\n".join(lines)
    return text


def parse_structured_note(response_text: str) -> StructuredNote:
    """
    Parse and validate the structuring service's JSON.

    Raises:
        StructuringError: if the text is not a JSON object or does not
            satisfy the note schema.
    """
    try:
        data = json.loads(strip_code_fences(response_text))
    except json.JSONDecodeError as e:
        raise StructuringError(f"Structuring service returned malformed JSON: {e}") from e

    if not isinstance(data, dict):
        raise StructuringError("Structuring service returned JSON that is not an object")

    try:
        return StructuredNote.model_validate(data)
    except ValidationError as e:
        raise StructuringError(f"Structuring response failed validation: {e}") from e


def _error_message(response: httpx.Response, default: str) -> str:
    """Pull ``error.message`` out of an API error body, if there is one."""
    try:
        body = response.json()
    except ValueError:
        return default
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return default


def _completion_text(response: httpx.Response) -> str:
    """Extract the assistant message from a chat completion response."""
    content = response.json()["choices"][0]["message"]["content"]
    if content is None:
        return ""
    if not isinstance(content, str):
        raise ValueError(f"message content is {type(content).__name__}, not text")
    return content


class StructuringClient:
    """Client for the structuring, transcription and relatedness endpoints."""

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        self.config = config or load_config()
        self.llm_config = self.config.get("llm", {})

        self.provider = self.llm_config.get("provider", "groq")
        if self.provider not in DEFAULT_MODELS:
            raise ConfigurationError(
                f"Unknown LLM provider: {self.provider}. Use one of: {', '.join(DEFAULT_MODELS)}"
            )

        self.api_key = (
            self.llm_config.get("api_key")
            or os.environ.get(API_KEY_ENV_VARS[self.provider])
        )
        self.model = self.llm_config.get("model", DEFAULT_MODELS[self.provider])
        self.transcription_model = self.llm_config.get(
            "transcription_model", DEFAULT_TRANSCRIPTION_MODELS[self.provider]
        )
        self.base_url = self.llm_config.get(
            "base_url", DEFAULT_BASE_URLS[self.provider]
        ).rstrip("/")
        self.timeout = float(self.llm_config.get("timeout", 30.0))
        self._http_client = http_client

    @property
    def has_credentials(self) -> bool:
        """Whether an API key is available."""
        return bool(self.api_key)

    def _require_api_key(self) -> str:
        if not self.api_key:
            env_var = API_KEY_ENV_VARS[self.provider]
            raise ConfigurationError(
                f"{self.provider} API key not found. Set {env_var} env var or add api_key to [llm] in config."
            )
        return self.api_key

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        """Yield the injected client, or a short-lived one."""
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                yield client

    async def _post_chat(self, prompt: str, max_tokens: int) -> httpx.Response:
        """POST a single-message JSON-mode chat completion."""
        async with self._client() as client:
            return await client.post(
                f"{self.base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self.api_key}",
                    "Content-Type": "application/json",
                },
                json={
                    "model": self.model,
                    "messages": [{"role": "user", "content": prompt}],
                    "response_format": {"type": "json_object"},
                    "max_tokens": max_tokens,
                },
            )

    async def structure_note(self, raw_text: str, note_type: NoteType = "text") -> Note:
        """
        Structure raw text into a note.

        The service supplies title, content, tags, category and scheduling
        fields; id, original text, note type and creation time are filled in
        here.

        Raises:
            ConfigurationError: no API key (checked before any request).
            StructuringError: the request failed or the response was unusable.
        """
        self._require_api_key()
        if not raw_text or not raw_text.strip():
            raise StructuringError("No text provided")

        today = datetime.now().astimezone()
        prompt = STRUCTURE_PROMPT.format(
            source="voice transcription" if note_type == "voice" else "text input",
            input=raw_text,
            today=today.strftime("%Y-%m-%d"),
            weekday=today.strftime("%A"),
        )

        try:
            response = await self._post_chat(prompt, STRUCTURE_MAX_TOKENS)
        except httpx.HTTPError as e:
            raise StructuringError(f"Failed to structure note: {e}") from e

        if response.is_error:
            raise StructuringError(_error_message(response, "Failed to structure note"))

        try:
            text = _completion_text(response)
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise StructuringError(f"Unexpected structuring response: {e}") from e

        structured = parse_structured_note(text)
        logger.debug("Structured %s input as %r (%s)", note_type, structured.title, structured.category)

        return Note(
            id=generate_id(),
            original_text=raw_text,
            note_type=note_type,
            created_at=now_iso(),
            **structured.model_dump(),
        )

    async def transcribe_audio(
        self,
        audio: bytes | Path | str,
        filename: str = "recording.m4a",
    ) -> Transcript:
        """
        Transcribe a voice recording.

        Args:
            audio: Raw audio bytes, or a path to a recording.
            filename: Upload name; its extension tells the service the format.

        Raises:
            ConfigurationError: no API key (checked before any request).
            TranscriptionError: the recording could not be read, the request
                failed, or no text came back.
        """
        self._require_api_key()

        if isinstance(audio, (str, Path)):
            try:
                audio, filename = read_audio(Path(audio))
            except OSError as e:
                raise TranscriptionError(f"Failed to read recording: {e}") from e

        try:
            async with self._client() as client:
                response = await client.post(
                    f"{self.base_url}/audio/transcriptions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    files={"file": (filename, audio)},
                    data={
                        "model": self.transcription_model,
                        "response_format": "verbose_json",
                    },
                )
        except httpx.HTTPError as e:
            raise TranscriptionError(f"Failed to transcribe audio: {e}") from e

        if response.is_error:
            raise TranscriptionError(_error_message(response, "Transcription failed"))

        try:
            payload = response.json()
        except ValueError as e:
            raise TranscriptionError(f"Transcription service returned malformed JSON: {e}") from e

        text = payload.get("text") if isinstance(payload, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise TranscriptionError("Transcription returned no text")

        try:
            duration = float(payload.get("duration") or 0)
        except (TypeError, ValueError):
            duration = 0.0
        return Transcript(text=text.strip(), duration=duration)

    async def find_related_notes(self, note: Note, candidates: Iterable[Note]) -> list[str]:
        """
        Ask the service which candidates relate to a note.

        Best effort: returns an empty list when there is no API key, nothing
        to compare against, or the lookup fails. Only ids of the candidates
        that were offered are returned.
        """
        if not self.api_key:
            return []

        others = [c for c in candidates if c.id != note.id][:MAX_RELATED_CANDIDATES]
        if not others:
            return []

        try:
            return await self._request_related(note, others)
        except RelatednessError as e:
            logger.debug("Related-note lookup failed: %s", e.message)
            return []

    async def _request_related(self, note: Note, others: list[Note]) -> list[str]:
        candidate_lines = "\n".join(
            f'- ID: {other.id}, Title: "{other.title}", Tags: {", ".join(other.tags) or "none"}'
            for other in others
        )
        prompt = RELATED_PROMPT.format(
            title=note.title,
            content=note.summary or note.plain_text()[:200],
            tags=", ".join(note.tags) or "none",
            candidates=candidate_lines,
        )

        try:
            response = await self._post_chat(prompt, RELATED_MAX_TOKENS)
        except httpx.HTTPError as e:
            raise RelatednessError(str(e)) from e

        if response.is_error:
            raise RelatednessError(_error_message(response, f"HTTP {response.status_code}"))

        try:
            result = json.loads(strip_code_fences(_completion_text(response)) or "{}")
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise RelatednessError(f"Malformed relatedness response: {e}") from e

        related = result.get("relatedIds") if isinstance(result, dict) else None
        if not isinstance(related, list):
            raise RelatednessError("Relatedness response has no relatedIds list")

        offered = {other.id for other in others}
        seen: set[str] = set()
        ids = []
        for note_id in related:
            if isinstance(note_id, str) and note_id in offered and note_id not in seen:
                seen.add(note_id)
                ids.append(note_id)
        return ids
