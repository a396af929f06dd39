"""FastAPI router for tasks, docs and local calendar events.

Every mutation rewrites the whole collection through ``LocalStore``.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, HTTPException, Query, Request
from fastapi.responses import JSONResponse

from src.common import store as store_keys
from src.gcal.routes import get_reconciler
from src.organizer import models
from src.organizer.models import OrganizerInputError
from src.server.deps import get_config, get_store, read_json

logger = logging.getLogger("pointer.organizer")

router = APIRouter(prefix="/api", tags=["organizer"])


def _index_of(items: list[dict], item_id: str, label: str) -> int:
    for i, item in enumerate(items):
        if item["id"] == item_id:
            return i
    raise HTTPException(404, f"{label} not found")


# ------------------------------------------------------------------
# Tasks
# ------------------------------------------------------------------

@router.get("/tasks")
async def list_tasks(status: str = Query("all", alias="filter"), q: str = "") -> JSONResponse:
    try:
        tasks = models.filter_tasks(get_store().tasks(), status, q)
    except OrganizerInputError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    return JSONResponse({"tasks": tasks})


@router.post("/tasks")
async def create_task(request: Request) -> JSONResponse:
    body = await read_json(request)
    store = get_store()
    tasks = store.tasks()
    try:
        task = models.new_task(body, tasks)
    except OrganizerInputError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    tasks.append(task)
    store.set(store_keys.TASKS, tasks)
    return JSONResponse(task, status_code=201)


# Registered before /tasks/{task_id} so the literal path wins.
@router.post("/tasks/clear-completed")
async def clear_completed_tasks() -> JSONResponse:
    store = get_store()
    tasks = store.tasks()
    remaining = [t for t in tasks if not t["completed"]]
    store.set(store_keys.TASKS, remaining)
    return JSONResponse({"removed": len(tasks) - len(remaining)})


@router.put("/tasks/{task_id}")
async def update_task(task_id: str, request: Request) -> JSONResponse:
    body = await read_json(request)
    store = get_store()
    tasks = store.tasks()
    i = _index_of(tasks, task_id, "Task")
    try:
        tasks[i] = models.update_task(tasks[i], body)
    except OrganizerInputError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    store.set(store_keys.TASKS, tasks)
    return JSONResponse(tasks[i])


@router.delete("/tasks/{task_id}")
async def delete_task(task_id: str) -> JSONResponse:
    store = get_store()
    tasks = store.tasks()
    del tasks[_index_of(tasks, task_id, "Task")]
    store.set(store_keys.TASKS, tasks)
    return JSONResponse({"ok": True})


# ------------------------------------------------------------------
# Docs
# ------------------------------------------------------------------

@router.get("/docs")
async def list_docs(tags: str = "") -> JSONResponse:
    wanted = [t.strip() for t in tags.split(",") if t.strip()]
    docs = get_store().docs()
    return JSONResponse({"docs": models.filter_docs(docs, wanted), "tags": models.all_tags(docs)})


@router.post("/docs")
async def create_doc(request: Request) -> JSONResponse:
    body = await read_json(request)
    store = get_store()
    try:
        doc = models.new_doc(body)
    except OrganizerInputError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    # Newest first.
    store.set(store_keys.DOCS, [doc] + store.docs())
    return JSONResponse(doc, status_code=201)


@router.put("/docs/{doc_id}")
async def update_doc(doc_id: str, request: Request) -> JSONResponse:
    body = await read_json(request)
    store = get_store()
    docs = store.docs()
    i = _index_of(docs, doc_id, "Doc")
    try:
        docs[i] = models.update_doc(docs[i], body)
    except OrganizerInputError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    store.set(store_keys.DOCS, docs)
    return JSONResponse(docs[i])


@router.delete("/docs/{doc_id}")
async def delete_doc(doc_id: str) -> JSONResponse:
    store = get_store()
    docs = store.docs()
    del docs[_index_of(docs, doc_id, "Doc")]
    store.set(store_keys.DOCS, docs)
    return JSONResponse({"ok": True})


# ------------------------------------------------------------------
# Calendar events
# ------------------------------------------------------------------

@router.get("/calendar/events")
async def list_events(date: str | None = None, upcoming: int | None = None) -> JSONResponse:
    """All events, or those on ``date``, or the next ``upcoming`` ones."""
    events = get_store().events()
    try:
        if date:
            events = models.events_on(events, date)
        elif upcoming is not None:
            events = models.upcoming_events(events, upcoming)
    except OrganizerInputError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    return JSONResponse({"events": events})


@router.post("/calendar/events")
async def create_event(request: Request) -> JSONResponse:
    body = await read_json(request)
    store = get_store()
    events = store.events()
    try:
        event = models.new_event(body, events)
    except OrganizerInputError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    events.append(event)
    store.set(store_keys.CALENDAR_EVENTS, events)
    return JSONResponse(event, status_code=201)


@router.put("/calendar/events/{event_id}")
async def update_event(event_id: str, request: Request, background_tasks: BackgroundTasks) -> JSONResponse:
    """Edit an event; a linked Google copy is updated in the background."""
    body = await read_json(request)
    cfg = get_config()
    store = get_store(cfg)
    events = store.events()
    i = _index_of(events, event_id, "Event")
    try:
        events[i] = models.update_event(events[i], body)
    except OrganizerInputError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    store.set(store_keys.CALENDAR_EVENTS, events)

    if events[i]["remote_id"]:
        logger.info("Queued Google update for event %s", event_id)
        background_tasks.add_task(get_reconciler(cfg).push_update, events[i])
    return JSONResponse(events[i])


@router.delete("/calendar/events/{event_id}")
async def delete_event(event_id: str, remote: bool = False) -> JSONResponse:
    """Remove an event locally; ``?remote=true`` also deletes the Google copy."""
    cfg = get_config()
    store = get_store(cfg)
    events = store.events()
    event = events.pop(_index_of(events, event_id, "Event"))
    store.set(store_keys.CALENDAR_EVENTS, events)

    remote_deleted = False
    if remote and event["remote_id"]:
        remote_deleted = await get_reconciler(cfg).push_delete(event["remote_id"])
    return JSONResponse({"ok": True, "remote_deleted": remote_deleted})
