"""Global fixtures: isolated home, temp DB, note factory, stubbed HTTP."""

import itertools
import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from smartnote.db import Database
from smartnote.models import Note
from smartnote.store import NoteStore


class StubHTTP:
    """Records requests and answers them from a queue (last answer repeats)."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self._answers: list[Callable[[], httpx.Response] | Exception] = []
        self.client = httpx.AsyncClient(transport=httpx.MockTransport(self._handle))

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if not self._answers:
            raise AssertionError(f"Unexpected request: {request.method} {request.url}")
        answer = self._answers.pop(0) if len(self._answers) > 1 else self._answers[0]
        if isinstance(answer, Exception):
            raise answer
        return answer()

    def respond(self, status_code: int = 200, json_body: Any = None, text: str | None = None) -> None:
        if text is not None:
            self._answers.append(lambda: httpx.Response(status_code, text=text))
        else:
            self._answers.append(lambda: httpx.Response(status_code, json=json_body))

    def respond_chat(self, content: dict[str, Any] | str) -> None:
        """Answer with an OpenAI-style chat completion carrying content."""
        message = content if isinstance(content, str) else json.dumps(content)
        self.respond(json_body={"choices": [{"message": {"role": "assistant", "content": message}}]})

    def fail(self, error: Exception) -> None:
        self._answers.append(error)

    def json_body(self, index: int = -1) -> Any:
        return json.loads(self.requests[index].content)


@pytest.fixture(autouse=True)
def isolated_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point data and config dirs at tmp and drop real credentials."""
    home = tmp_path / "home"
    monkeypatch.setenv("SMARTNOTE_HOME", str(home))
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("NO_COLOR", "1")
    for var in ("GROQ_API_KEY", "OPENAI_API_KEY", "SMARTNOTE_TELEGRAM_TOKEN", "SMARTNOTE_TELEGRAM_USERS"):
        monkeypatch.delenv(var, raising=False)
    return home


@pytest.fixture
def db(tmp_path: Path) -> Database:
    """Database in a temp directory."""
    return Database(tmp_path / "test.db")


@pytest.fixture
def store(db: Database) -> NoteStore:
    """Empty note store."""
    return NoteStore(db)


@pytest.fixture
def make_note() -> Callable[..., Note]:
    """Factory for notes with unique ids; keyword args override fields."""
    counter = itertools.count(1)

    def factory(**fields: Any) -> Note:
        n = next(counter)
        values: dict[str, Any] = {
            "id": f"note-{n}",
            "original_text": f"raw thought {n}",
            "title": f"Note {n}",
            "content": f"<p>Content of note {n}</p>",
            "created_at": "2026-10-01T09:00:00+00:00",
        }
        values.update(fields)
        return Note(**values)

    return factory


@pytest.fixture
def config() -> dict[str, Any]:
    """Config with a fake API key and stub endpoints."""
    return {
        "llm": {
            "provider": "groq",
            "api_key": "test-key",
            "base_url": "https://llm.test/v1",
        },
        "calendar": {
            "base_url": "https://calendar.test/v3",
            "calendar_id": "primary",
            "timezone": "UTC",
        },
    }


@pytest.fixture
def stub_http() -> StubHTTP:
    """Stubbed HTTP client; queue answers with respond()/respond_chat()/fail()."""
    return StubHTTP()
