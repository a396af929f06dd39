"""Record builders, edits and filters for tasks, docs and calendar events.

Everything here is pure: functions take and return plain dicts in the shape
``src.common.store`` persists, and raise ``OrganizerInputError`` for bad input.
"""

from __future__ import annotations

import time
import uuid
from datetime import date, datetime, timezone
from typing import Any, Iterable

from src.common.store import coerce_doc, coerce_event, coerce_task

PRIORITIES = ("low", "medium", "high")
TASK_FILTERS = ("all", "active", "completed")
UNTITLED_DOC = "Untitled Document"


class OrganizerInputError(ValueError):
    """A create or edit request carried missing or malformed fields."""


def _millis_id(existing: Iterable[dict[str, Any]]) -> str:
    taken = {item.get("id") for item in existing}
    candidate = int(time.time() * 1000)
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)


def _check_date(value: Any, field: str) -> str:
    try:
        return date.fromisoformat(str(value)).isoformat()
    except ValueError:
        raise OrganizerInputError(f"{field} must be an ISO date (YYYY-MM-DD)")


def _check_time(value: Any) -> str:
    text = str(value or "").strip()
    if not text:
        return ""
    try:
        return datetime.strptime(text[:5], "%H:%M").strftime("%H:%M")
    except ValueError:
        raise OrganizerInputError("time must be HH:MM")


# ------------------------------------------------------------------
# Tasks
# ------------------------------------------------------------------

def new_task(fields: dict[str, Any], existing: list[dict[str, Any]]) -> dict[str, Any]:
    title = str(fields.get("title") or "").strip()
    if not title:
        raise OrganizerInputError("Task title is required")
    task = coerce_task({
        "id": _millis_id(existing),
        "title": title,
        "completed": False,
        "priority": "medium",
        "created_at": datetime.now(timezone.utc).isoformat(),
    })
    return update_task(task, {k: v for k, v in fields.items() if k != "title"})


def update_task(task: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    updated = dict(task)
    if "title" in fields:
        title = str(fields["title"] or "").strip()
        if not title:
            raise OrganizerInputError("Task title is required")
        updated["title"] = title
    if "completed" in fields:
        updated["completed"] = bool(fields["completed"])
    if "priority" in fields:
        if fields["priority"] not in PRIORITIES:
            raise OrganizerInputError("priority must be one of: low, medium, high")
        updated["priority"] = fields["priority"]
    if "due_date" in fields:
        updated["due_date"] = _check_date(fields["due_date"], "due_date") if fields["due_date"] else None
    if "notes" in fields:
        updated["notes"] = str(fields["notes"]) if fields["notes"] else None
    return updated


def filter_tasks(tasks: list[dict[str, Any]], status: str = "all", query: str = "") -> list[dict[str, Any]]:
    """Filter by completion state and a case-insensitive title search."""
    if status not in TASK_FILTERS:
        raise OrganizerInputError("filter must be one of: all, active, completed")
    query = query.strip().lower()
    out = []
    for task in tasks:
        if status == "active" and task["completed"]:
            continue
        if status == "completed" and not task["completed"]:
            continue
        if query and query not in task["title"].lower():
            continue
        out.append(task)
    return out


# ------------------------------------------------------------------
# Docs
# ------------------------------------------------------------------

def _clean_tags(tags: Any) -> list[str]:
    if not isinstance(tags, list):
        raise OrganizerInputError("tags must be a list of strings")
    out: list[str] = []
    for tag in tags:
        tag = str(tag).strip()
        if tag and tag not in out:
            out.append(tag)
    return out


def new_doc(fields: dict[str, Any]) -> dict[str, Any]:
    doc = coerce_doc({"id": uuid.uuid4().hex[:8], "title": UNTITLED_DOC})
    return update_doc(doc, fields)


def update_doc(doc: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    updated = dict(doc)
    if "title" in fields:
        updated["title"] = str(fields["title"] or "").strip() or UNTITLED_DOC
    if "content" in fields:
        updated["content"] = str(fields["content"] or "")
    if "description" in fields:
        updated["description"] = str(fields["description"] or "")
    if "tags" in fields:
        updated["tags"] = _clean_tags(fields["tags"])
    return updated


def filter_docs(docs: list[dict[str, Any]], tags: list[str]) -> list[dict[str, Any]]:
    """Docs carrying every one of ``tags``."""
    if not tags:
        return list(docs)
    return [doc for doc in docs if all(tag in doc["tags"] for tag in tags)]


def all_tags(docs: list[dict[str, Any]]) -> list[str]:
    seen: list[str] = []
    for doc in docs:
        for tag in doc["tags"]:
            if tag not in seen:
                seen.append(tag)
    return seen


# ------------------------------------------------------------------
# Calendar events
# ------------------------------------------------------------------

def new_event(fields: dict[str, Any], existing: list[dict[str, Any]]) -> dict[str, Any]:
    if not str(fields.get("title") or "").strip() or not fields.get("date"):
        raise OrganizerInputError("Please fill in the title and date")
    event = coerce_event({"id": _millis_id(existing)})
    return update_event(event, fields)


def update_event(event: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
    """Apply user edits. ``id``, ``remote_id`` and ``is_remote`` are not editable."""
    updated = dict(event)
    if "title" in fields:
        title = str(fields["title"] or "").strip()
        if not title:
            raise OrganizerInputError("Please fill in the title and date")
        updated["title"] = title
    if "description" in fields:
        updated["description"] = str(fields["description"] or "")
    if "date" in fields:
        updated["date"] = _check_date(fields["date"], "date")
    if "time" in fields:
        updated["time"] = _check_time(fields["time"])
    if "color" in fields and fields["color"]:
        updated["color"] = str(fields["color"])
    return updated


def events_on(events: list[dict[str, Any]], day: str) -> list[dict[str, Any]]:
    day = _check_date(day, "date")
    return [e for e in events if e["date"] == day]


def upcoming_events(events: list[dict[str, Any]], limit: int = 5, today: date | None = None) -> list[dict[str, Any]]:
    """The next ``limit`` events from today on, soonest first."""
    if limit < 1:
        raise OrganizerInputError("upcoming must be a positive number")
    today_str = (today or date.today()).isoformat()
    future = [e for e in events if e["date"] >= today_str]
    future.sort(key=lambda e: (e["date"], e["time"]))
    return future[:limit]
