#!/usr/bin/env python3
"""Pointer API -- FastAPI backend for the AI study tools and organizer.

Run with:
    python3 -m uvicorn src.server.app:app --host 127.0.0.1 --port 3000
"""

from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Allow running from repo root
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from src.common.config import load_env_local, setup_logging
from src.gcal.routes import periodic_sync, router as gcal_router
from src.organizer.routes import router as organizer_router
from src.quiz.routes import prune_idle_quizzes, router as quiz_router
from src.server.deps import get_config
from src.tools.routes import router as tools_router

logger = logging.getLogger("pointer.server")

_DEFAULT_ORIGINS = ["http://localhost:3000", "http://127.0.0.1:3000"]
_QUIZ_PRUNE_INTERVAL = 120

load_env_local()


def _cors_origins() -> list[str]:
    try:
        return list(get_config().get("cors_origins") or _DEFAULT_ORIGINS)
    except FileNotFoundError:
        logger.warning("No config.yaml found, using default CORS origins")
        return list(_DEFAULT_ORIGINS)


app = FastAPI(title="Pointer", version="1.0.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(tools_router)
app.include_router(quiz_router)
app.include_router(gcal_router)
app.include_router(organizer_router)


@app.on_event("startup")
async def _start_background_loops() -> None:
    cfg = get_config()
    setup_logging(cfg)
    sync_interval = cfg["google_calendar"]["sync_interval"]

    async def _quiz_cleanup_loop() -> None:
        while True:
            await asyncio.sleep(_QUIZ_PRUNE_INTERVAL)
            try:
                await prune_idle_quizzes()
            except Exception:
                logger.exception("Quiz cleanup error")

    async def _calendar_sync_loop() -> None:
        while True:
            await asyncio.sleep(sync_interval)
            try:
                await periodic_sync()
            except Exception:
                logger.exception("Periodic calendar sync error")

    asyncio.create_task(_quiz_cleanup_loop())
    if sync_interval > 0:
        asyncio.create_task(_calendar_sync_loop())
    logger.info("Pointer API started (calendar sync every %ds)", sync_interval)


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "src.server.app:app",
        host="127.0.0.1",
        port=3000,
        reload=False,
        log_level="info",
    )
