"""Shared fixtures for Pointer API PAR loop tests."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable
from unittest.mock import MagicMock, patch

import httpx
import pytest
import pytest_asyncio

REPO_DIR = Path(__file__).resolve().parent.parent

DEFAULT_REPLY = "Test response"
DEFAULT_CHUNKS = ["Hello ", "world, ", "this is ", "a test."]


def make_mock_litellm_response(content: str = DEFAULT_REPLY):
    """Build a mock LiteLLM ModelResponse."""
    msg = MagicMock()
    msg.content = content

    choice = MagicMock()
    choice.message = msg

    resp = MagicMock()
    resp.choices = [choice]
    return resp


def make_mock_stream_response(chunks: list[str] | None = None):
    """Build a mock streaming response (iterable of chunks)."""
    if chunks is None:
        chunks = DEFAULT_CHUNKS

    mock_chunks = []
    for text in chunks:
        delta = MagicMock()
        delta.content = text
        choice = MagicMock()
        choice.delta = delta
        chunk = MagicMock()
        chunk.choices = [choice]
        mock_chunks.append(chunk)
    return mock_chunks


class FakeLLM:
    """Side effect for litellm.completion; tests set ``reply``/``chunks``/``error``."""

    def __init__(self) -> None:
        self.reply = DEFAULT_REPLY
        self.chunks = list(DEFAULT_CHUNKS)
        self.error: Exception | None = None

    def __call__(self, **kwargs):
        if self.error is not None:
            raise self.error
        if kwargs.get("stream"):
            return iter(make_mock_stream_response(self.chunks))
        return make_mock_litellm_response(self.reply)


@pytest.fixture()
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture()
def mock_llm(fake_llm):
    """Patch litellm.completion to return deterministic responses."""
    with patch("litellm.completion", side_effect=fake_llm) as m:
        yield m


@pytest.fixture()
def config_file(tmp_path) -> Path:
    """Write a throwaway config.yaml pointing all state into ``tmp_path``."""
    config_dir = tmp_path / "config"
    config_dir.mkdir()
    config_content = f"""
data_dir: {tmp_path}/data
log_dir: {tmp_path}/logs
ollama:
  base_url: http://ollama.test:11434
  timeout: 5
default_speed_mode: fast
google_calendar:
  client_id: test-client-id
  client_secret: test-client-secret
  redirect_uri: http://test/api/google-calendar/callback
  timezone: UTC
  sync_interval: 0
"""
    path = config_dir / "config.yaml"
    path.write_text(config_content)
    return path


@pytest_asyncio.fixture()
async def client(mock_llm, config_file):
    """Async httpx client bound to the FastAPI app with mocked LLM and temp store."""
    with patch("src.server.deps.CONFIG_PATH", config_file):

        from src.quiz.routes import _quiz_last_active, _quiz_sessions
        _quiz_sessions.clear()
        _quiz_last_active.clear()

        from src.server.app import app
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
            yield c


@pytest.fixture()
def store(config_file):
    """The LocalStore the app under test reads and writes."""
    with patch("src.server.deps.CONFIG_PATH", config_file):
        from src.server.deps import get_store
        yield get_store()


async def par_loop(
    act_fn: Callable,
    review_fn: Callable,
    max_retries: int = 3,
    label: str = "PAR",
) -> Any:
    """Plan-Act-Review loop with auto-retry.

    act_fn: async callable that returns a result
    review_fn: callable(result) -> (ok: bool, diagnosis: str)
    """
    last_diagnosis = ""
    for attempt in range(1, max_retries + 1):
        result = await act_fn()
        ok, diagnosis = review_fn(result)
        if ok:
            return result
        last_diagnosis = f"[{label} attempt {attempt}/{max_retries}] {diagnosis}"
    raise AssertionError(f"PAR loop failed: {last_diagnosis}")


def parse_sse_events(raw: str) -> list[dict[str, Any]]:
    """Parse SSE text into a list of {event, data} dicts."""
    events: list[dict[str, Any]] = []
    current_event = ""
    for line in raw.split("\n"):
        if line.startswith("event: "):
            current_event = line[7:].strip()
        elif line.startswith("data: "):
            try:
                data = json.loads(line[6:])
                events.append({"event": current_event, "data": data})
            except json.JSONDecodeError:
                pass
    return events
