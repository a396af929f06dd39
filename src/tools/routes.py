"""FastAPI router for the AI writing/study tools, models and speed mode."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Iterator

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, StreamingResponse

from src.agents import dispatcher, llm_provider
from src.agents.llm_provider import GenerationError
from src.agents.speed_profiles import FAST_MODELS, SPEED_MODES, is_valid_mode, load_profiles
from src.common import store as store_keys
from src.server.deps import current_speed_mode, get_config, get_store, read_json, request_profile

logger = logging.getLogger("pointer.tools")

router = APIRouter(prefix="/api", tags=["tools"])

_CHAT_UNAVAILABLE = "Sorry, I'm having trouble connecting to the AI model. Please try again."

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _sse_event(event_type: str, data: dict[str, Any]) -> str:
    return f"event: {event_type}\ndata: {json.dumps(data)}\n\n"


async def _run_text_tool(
    request: Request,
    tool: str,
    result_key: str,
    error_message: str,
) -> JSONResponse:
    """Shared body of the one-shot text tools: validate, generate, wrap."""
    body = await read_json(request)
    cfg = get_config()
    profile = request_profile(body, cfg, get_store(cfg))

    try:
        text = await dispatcher.generate_text(tool, body, profile, cfg)
    except dispatcher.ToolInputError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except GenerationError as exc:
        logger.error("%s generation error: %s", tool, exc)
        return JSONResponse({"error": error_message}, status_code=500)

    return JSONResponse({"success": True, result_key: text})


# ------------------------------------------------------------------
# Chat
# ------------------------------------------------------------------

@router.post("/chat")
async def chat(request: Request):
    """Forward a free-form message to the model.

    Request body::

        {"message": "Explain recursion", "stream": false, "speed_mode": "fast"}

    With ``stream: true`` the reply is an SSE stream of ``content`` events
    followed by ``done``.
    """
    body = await read_json(request)
    cfg = get_config()
    profile = request_profile(body, cfg, get_store(cfg))

    if body.get("stream"):
        try:
            chunks = dispatcher.stream_text("chat", body, profile, cfg)
        except dispatcher.ToolInputError as exc:
            raise HTTPException(400, str(exc))
        return StreamingResponse(_chat_stream(chunks), media_type="text/event-stream", headers=_SSE_HEADERS)

    try:
        text = await dispatcher.generate_text("chat", body, profile, cfg)
    except dispatcher.ToolInputError as exc:
        raise HTTPException(400, str(exc))
    except GenerationError as exc:
        logger.error("Error calling Ollama: %s", exc)
        return JSONResponse({"message": _CHAT_UNAVAILABLE}, status_code=500)

    return JSONResponse({"message": text})


def _chat_stream(chunks: Iterator[str]) -> Iterator[str]:
    final_content = ""
    try:
        for chunk in chunks:
            final_content += chunk
            yield _sse_event("content", {"text": chunk})
    except GenerationError as exc:
        logger.error("Chat stream error: %s", exc)
        yield _sse_event("error", {"message": _CHAT_UNAVAILABLE})
        return
    yield _sse_event("done", {"message": final_content})


# ------------------------------------------------------------------
# Writing tools
# ------------------------------------------------------------------

@router.post("/essay")
async def essay(request: Request) -> JSONResponse:
    return await _run_text_tool(request, "essay", "essay", "Failed to generate essay")


@router.post("/essay/tools")
async def essay_tools(request: Request) -> JSONResponse:
    """Outline, format, improve or summarize an essay (``mode``)."""
    return await _run_text_tool(request, "essay-tools", "result", "Error processing essay. Please try again.")


@router.post("/essay/draft")
async def essay_draft(request: Request) -> StreamingResponse:
    """Stream a structured essay draft for a thesis.

    Emits ``content`` events while the model writes, then one ``draft`` event
    holding the parsed draft (fallback content if parsing fails), then ``done``.
    """
    body = await read_json(request)
    cfg = get_config()
    profile = request_profile(body, cfg, get_store(cfg))

    try:
        thesis = dispatcher.required_text("essay-draft", body)
        chunks = dispatcher.stream_text("essay-draft", body, profile, cfg)
    except dispatcher.ToolInputError as exc:
        raise HTTPException(400, str(exc))

    def event_stream() -> Iterator[str]:
        streamed = ""
        try:
            for chunk in chunks:
                streamed += chunk
                yield _sse_event("content", {"text": chunk})
        except GenerationError as exc:
            logger.error("Essay draft stream error: %s", exc)
            streamed = ""
        draft = dispatcher.essay_draft_from_output(streamed, thesis)
        yield _sse_event("draft", {"draft": draft})
        yield _sse_event("done", {"length": len(streamed)})

    return StreamingResponse(event_stream(), media_type="text/event-stream", headers=_SSE_HEADERS)


@router.post("/email")
async def email(request: Request) -> JSONResponse:
    return await _run_text_tool(request, "email", "email", "Failed to generate email")


@router.post("/explain")
async def explain(request: Request) -> JSONResponse:
    return await _run_text_tool(request, "explain", "explanation", "Failed to generate explanation")


@router.post("/answer-critic")
async def answer_critic(request: Request) -> JSONResponse:
    return await _run_text_tool(request, "answer-critic", "feedback", "Failed to generate feedback")


@router.post("/coding-quiz")
async def coding_quiz(request: Request) -> JSONResponse:
    """Generate a 5-question quiz about submitted code.

    Backend or parse failures still answer ``success: true`` with fallback
    questions; only a missing ``code`` field is an error.
    """
    body = await read_json(request)
    cfg = get_config()
    profile = request_profile(body, cfg, get_store(cfg))

    try:
        result = await dispatcher.generate_coding_quiz(body, profile, cfg)
    except dispatcher.ToolInputError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    return JSONResponse(result)


# ------------------------------------------------------------------
# Models
# ------------------------------------------------------------------

@router.get("/models")
async def list_models() -> JSONResponse:
    cfg = get_config()
    try:
        models = await asyncio.to_thread(llm_provider.list_local_models, cfg)
    except GenerationError:
        return JSONResponse({"models": []}, status_code=500)
    return JSONResponse({"models": models, "suggested": FAST_MODELS})


@router.post("/install-model")
async def install_model(request: Request) -> JSONResponse:
    body = await read_json(request)
    model = body.get("model")
    if not isinstance(model, str) or not model.strip():
        return JSONResponse({"error": "Model name is required"}, status_code=400)

    cfg = get_config()
    try:
        await asyncio.to_thread(llm_provider.pull_model, model.strip(), cfg)
    except GenerationError:
        return JSONResponse({"error": "Failed to install model"}, status_code=500)
    return JSONResponse({"success": True, "message": f"Started installing {model.strip()}"})


# ------------------------------------------------------------------
# Speed mode
# ------------------------------------------------------------------

def _speed_mode_payload(mode: str, cfg: dict[str, Any]) -> dict[str, Any]:
    profiles = load_profiles(cfg)
    return {
        "current_mode": mode,
        "available_modes": list(SPEED_MODES),
        "profile": profiles[mode].to_dict() if mode in profiles else None,
    }


@router.get("/speed-mode")
async def get_speed_mode() -> JSONResponse:
    cfg = get_config()
    mode = current_speed_mode(cfg, get_store(cfg))
    return JSONResponse(_speed_mode_payload(mode, cfg))


@router.post("/speed-mode")
async def set_speed_mode(request: Request) -> JSONResponse:
    body = await read_json(request)
    mode = body.get("mode")
    if not is_valid_mode(mode):
        return JSONResponse(
            {"error": "Invalid mode. Must be 'fast', 'balanced', or 'quality'"},
            status_code=400,
        )

    cfg = get_config()
    get_store(cfg).set(store_keys.SPEED_MODE, mode)
    logger.info("Speed mode updated to %s", mode)
    payload = _speed_mode_payload(mode, cfg)
    payload.update({"success": True, "message": f"Speed mode updated to {mode}"})
    return JSONResponse(payload)
