"""FastAPI router for the quiz generator -- generate, answer, review."""

from __future__ import annotations

import logging
import time
import uuid

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse

from src.agents import dispatcher
from src.agents.llm_provider import GenerationError
from src.quiz.grader import QUIZ_TYPES, QuizCompleteError, QuizSession, parse_quiz
from src.server.deps import get_config, get_store, read_json, request_profile

logger = logging.getLogger("pointer.quiz.routes")

router = APIRouter(prefix="/api", tags=["quiz"])

_quiz_sessions: dict[str, QuizSession] = {}
_quiz_last_active: dict[str, float] = {}
_DEFAULT_IDLE_TIMEOUT = 1800


def _get_session(quiz_id: str) -> QuizSession:
    session = _quiz_sessions.get(quiz_id)
    if session is None:
        raise HTTPException(404, "Quiz not found")
    _quiz_last_active[quiz_id] = time.time()
    return session


@router.post("/quiz")
async def create_quiz(request: Request) -> JSONResponse:
    """Generate a quiz and start taking it.

    Request body::

        {
            "content": "Photosynthesis converts light into chemical energy...",
            "mode": "notes",
            "quiz_type": "multiple-choice",
            "num_questions": 5
        }
    """
    body = await read_json(request)
    quiz_type = body.get("quiz_type") if body.get("quiz_type") in QUIZ_TYPES else "multiple-choice"
    count = dispatcher.quiz_question_count(body.get("num_questions"))
    fields = {**body, "quiz_type": quiz_type, "num_questions": count}

    cfg = get_config()
    profile = request_profile(body, cfg, get_store(cfg))

    try:
        text = await dispatcher.generate_text("quiz", fields, profile, cfg)
    except dispatcher.ToolInputError as exc:
        raise HTTPException(400, str(exc))
    except GenerationError as exc:
        logger.error("Quiz generation error: %s", exc)
        return JSONResponse({"error": "Error generating quiz. Please try again."}, status_code=500)

    questions = parse_quiz(text, quiz_type, count)
    session = QuizSession(
        id=uuid.uuid4().hex[:12],
        quiz_type=quiz_type,
        questions=questions,
        raw_text=text,
    )
    _quiz_sessions[session.id] = session
    _quiz_last_active[session.id] = time.time()

    payload = session.to_dict()
    payload["raw_text"] = text
    return JSONResponse(payload, status_code=201)


@router.get("/quiz/{quiz_id}")
async def get_quiz(quiz_id: str) -> JSONResponse:
    return JSONResponse(_get_session(quiz_id).to_dict())


@router.post("/quiz/{quiz_id}/answer")
async def answer_question(quiz_id: str, request: Request) -> JSONResponse:
    body = await read_json(request)
    answer = body.get("answer")
    if not isinstance(answer, str) or not answer.strip():
        raise HTTPException(400, "answer is required")

    session = _get_session(quiz_id)
    question_id = session.questions[session.current_index].id if session.questions else None
    try:
        is_correct = session.submit(answer)
    except QuizCompleteError as exc:
        raise HTTPException(409, str(exc))

    return JSONResponse({
        "question_id": question_id,
        "is_correct": is_correct,
        "quiz": session.to_dict(),
    })


@router.delete("/quiz/{quiz_id}")
async def discard_quiz(quiz_id: str) -> JSONResponse:
    removed = _quiz_sessions.pop(quiz_id, None)
    _quiz_last_active.pop(quiz_id, None)
    if removed is None:
        raise HTTPException(404, "Quiz not found")
    return JSONResponse({"ok": True})


async def prune_idle_quizzes(idle_timeout: float | None = None) -> None:
    """Drop quiz sessions idle longer than the configured timeout."""
    if idle_timeout is None:
        try:
            idle_timeout = float(get_config()["quiz"]["session_idle_timeout"])
        except (FileNotFoundError, KeyError, TypeError, ValueError):
            idle_timeout = _DEFAULT_IDLE_TIMEOUT
    now = time.time()
    stale = [
        qid for qid, ts in _quiz_last_active.items()
        if (now - ts) > idle_timeout
    ]
    for qid in stale:
        _quiz_sessions.pop(qid, None)
        _quiz_last_active.pop(qid, None)
        logger.info("Pruned idle quiz session: %s", qid)
