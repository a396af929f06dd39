"""Prompt dispatch for the AI tools.

Each tool turns a mapping of request fields into one prompt, calls the
generation backend once and hands back text (or, for the coding quiz, a
parsed JSON structure with fallback content). Input validation happens
before any network call.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Generator

from src.agents import llm_provider, output_parsing, prompts
from src.agents.speed_profiles import SpeedProfile

logger = logging.getLogger("pointer.agents.dispatcher")

QUIZ_TYPES = ("multiple-choice", "short-answer")
QUIZ_MODES = ("notes", "topic")
MAX_QUIZ_QUESTIONS = 20


class ToolInputError(ValueError):
    """A required request field is missing or empty."""


@dataclass(frozen=True)
class Tool:
    name: str
    required: tuple[str, ...]
    missing_message: str
    build: Callable[[str, dict[str, Any]], str]


def _opt(fields: dict[str, Any], key: str) -> str | None:
    value = fields.get(key)
    return value if isinstance(value, str) else None


def quiz_question_count(value: Any, default: int = 5) -> int:
    try:
        count = int(value)
    except (TypeError, ValueError):
        return default
    return max(1, min(count, MAX_QUIZ_QUESTIONS))


TOOLS: dict[str, Tool] = {
    "chat": Tool(
        "chat", ("message",), "Message is required",
        lambda text, f: text,
    ),
    "essay": Tool(
        "essay", ("topic",), "Topic is required",
        lambda text, f: prompts.essay_prompt(text, _opt(f, "type"), _opt(f, "length")),
    ),
    "essay-tools": Tool(
        "essay-tools", ("text", "essay"), "Essay text is required",
        lambda text, f: prompts.essay_tool_prompt(text, _opt(f, "mode")),
    ),
    "essay-draft": Tool(
        "essay-draft", ("thesis",), "Thesis is required",
        lambda text, f: prompts.essay_draft_prompt(text),
    ),
    "email": Tool(
        "email", ("content",), "Email content is required",
        lambda text, f: prompts.email_prompt(text, _opt(f, "tone"), _opt(f, "action")),
    ),
    "explain": Tool(
        "explain", ("topic", "concept"), "Topic is required",
        lambda text, f: prompts.explain_prompt(text, _opt(f, "style")),
    ),
    "answer-critic": Tool(
        "answer-critic", ("answer",), "Answer is required",
        lambda text, f: prompts.answer_critic_prompt(text, _opt(f, "question")),
    ),
    "coding-quiz": Tool(
        "coding-quiz", ("code",), "Code is required",
        lambda text, f: prompts.coding_quiz_prompt(text, f.get("quiz_id") or new_quiz_id()),
    ),
    "quiz": Tool(
        "quiz", ("content",), "Content is required",
        lambda text, f: prompts.quiz_prompt(
            f.get("quiz_type") if f.get("quiz_type") in QUIZ_TYPES else "multiple-choice",
            text,
            quiz_question_count(f.get("num_questions")),
            f.get("mode") if f.get("mode") in QUIZ_MODES else "notes",
        ),
    ),
}


def new_quiz_id() -> str:
    return f"quiz_{int(time.time() * 1000)}"


def required_text(tool: str, fields: dict[str, Any]) -> str:
    """Return the first non-empty required field of ``tool``."""
    tool_def = TOOLS[tool]
    for name in tool_def.required:
        value = fields.get(name)
        if isinstance(value, str) and value.strip():
            return value
    raise ToolInputError(tool_def.missing_message)


def build_prompt(tool: str, fields: dict[str, Any]) -> str:
    """Validate ``fields`` and render the tool's prompt."""
    if tool not in TOOLS:
        raise KeyError(f"Unknown tool: {tool}")
    text = required_text(tool, fields)
    return TOOLS[tool].build(text, fields)


async def generate_text(
    tool: str,
    fields: dict[str, Any],
    profile: SpeedProfile,
    cfg: dict[str, Any] | None = None,
) -> str:
    """Run one blocking generation for ``tool``.

    Raises :class:`ToolInputError` before any call when input is missing and
    :class:`llm_provider.GenerationError` when the backend fails.
    """
    prompt = build_prompt(tool, fields)
    logger.info("Dispatching %s (profile=%s)", tool, profile.name)
    return await asyncio.to_thread(llm_provider.complete, prompt, profile, cfg)


def stream_text(
    tool: str,
    fields: dict[str, Any],
    profile: SpeedProfile,
    cfg: dict[str, Any] | None = None,
) -> Generator[str, None, None]:
    """Streaming variant of :func:`generate_text`. Validation runs eagerly."""
    prompt = build_prompt(tool, fields)
    logger.info("Dispatching %s as stream (profile=%s)", tool, profile.name)
    return llm_provider.complete_streaming(prompt, profile, cfg)


async def generate_coding_quiz(
    fields: dict[str, Any],
    profile: SpeedProfile,
    cfg: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """Build a 5-question coding quiz. Never fails once input is valid.

    Unparseable output yields a quiz shaped by the submitted code; a backend
    failure or a reply without a question list yields the static quiz and a
    ``note`` explaining why.
    """
    code = required_text("coding-quiz", fields)
    quiz_id = new_quiz_id()
    fields = {**fields, "quiz_id": quiz_id}

    try:
        text = await generate_text("coding-quiz", fields, profile, cfg)
    except llm_provider.GenerationError as exc:
        logger.error("Coding quiz generation error: %s", exc)
        return _fallback_quiz_response(quiz_id)

    if not text:
        logger.error("Coding quiz generation error: empty response")
        return _fallback_quiz_response(quiz_id)

    data = output_parsing.extract_embedded_json(text)
    if data is None:
        logger.warning("Failed to parse coding quiz JSON, using code-based fallback")
        return {"success": True, "quiz": output_parsing.code_aware_coding_quiz(code, quiz_id)}

    quiz = output_parsing.normalize_coding_quiz(data, quiz_id)
    if quiz is None:
        logger.error("Invalid coding quiz structure generated")
        return _fallback_quiz_response(quiz_id)
    return {"success": True, "quiz": quiz}


def _fallback_quiz_response(quiz_id: str) -> dict[str, Any]:
    return {
        "success": True,
        "quiz": output_parsing.static_coding_quiz(quiz_id),
        "note": "Generated fallback quiz due to AI service issues",
    }


def essay_draft_from_output(text: str, thesis: str) -> dict[str, Any]:
    """Turn streamed essay output into a draft, falling back to prose splitting."""
    data = output_parsing.extract_embedded_json(text)
    if data is not None:
        return output_parsing.normalize_essay_draft(data, thesis)
    if text.strip():
        return output_parsing.essay_draft_from_text(text, thesis)
    return output_parsing.essay_draft_error(thesis)
