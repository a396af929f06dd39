"""Local persistence for Pointer collections.

Each feature area owns one fixed key, stored as a whole JSON blob in
``<data_dir>/<key>.json``. Writes overwrite the full blob atomically; there
are no partial updates and no versioning. Records are coerced to safe
defaults on read so older files keep loading after fields are added.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Callable

logger = logging.getLogger("pointer.store")

TASKS = "tasks"
DOCS = "docs"
CALENDAR_EVENTS = "calendar-events"
CALENDAR_SYNC = "google-calendar-sync"
CALENDAR_LAST_SYNC = "google-calendar-last-sync"
CALENDAR_TOKENS = "google-calendar-tokens"
SPEED_MODE = "ollama-speed-mode"

KEYS: tuple[str, ...] = (
    TASKS,
    DOCS,
    CALENDAR_EVENTS,
    CALENDAR_SYNC,
    CALENDAR_LAST_SYNC,
    CALENDAR_TOKENS,
    SPEED_MODE,
)

_PRIORITIES = ("low", "medium", "high")


def coerce_task(raw: dict[str, Any]) -> dict[str, Any]:
    priority = raw.get("priority")
    return {
        "id": str(raw.get("id", "")),
        "title": str(raw.get("title") or ""),
        "completed": bool(raw.get("completed", False)),
        "priority": priority if priority in _PRIORITIES else "medium",
        "due_date": raw.get("due_date", raw.get("dueDate")) or None,
        "created_at": raw.get("created_at", raw.get("createdAt")) or "",
        "notes": raw.get("notes") or None,
    }


def coerce_doc(raw: dict[str, Any]) -> dict[str, Any]:
    tags = raw.get("tags")
    return {
        "id": str(raw.get("id", "")),
        "title": str(raw.get("title") or "Untitled Document"),
        "content": str(raw.get("content") or ""),
        "description": str(raw.get("description") or ""),
        "tags": [str(t) for t in tags] if isinstance(tags, list) else [],
    }


def coerce_event(raw: dict[str, Any]) -> dict[str, Any]:
    remote_id = raw.get("remote_id", raw.get("googleEventId")) or None
    return {
        "id": str(raw.get("id", "")),
        "title": str(raw.get("title") or ""),
        "description": str(raw.get("description") or ""),
        "date": str(raw.get("date") or ""),
        "time": str(raw.get("time") or ""),
        "color": str(raw.get("color") or "bg-blue-500"),
        "remote_id": remote_id,
        "is_remote": bool(raw.get("is_remote", raw.get("isGoogleEvent", False))),
    }


def _coerce_list(coerce: Callable[[dict[str, Any]], dict[str, Any]]) -> Callable[[Any], list[dict[str, Any]]]:
    def _apply(value: Any) -> list[dict[str, Any]]:
        if not isinstance(value, list):
            return []
        return [coerce(item) for item in value if isinstance(item, dict)]
    return _apply


_COERCERS: dict[str, Callable[[Any], Any]] = {
    TASKS: _coerce_list(coerce_task),
    DOCS: _coerce_list(coerce_doc),
    CALENDAR_EVENTS: _coerce_list(coerce_event),
    CALENDAR_SYNC: lambda v: bool(v),
    CALENDAR_TOKENS: lambda v: v if isinstance(v, dict) else {},
}


class LocalStore:
    """Whole-collection JSON blob store under fixed keys."""

    def __init__(self, data_dir: str | Path) -> None:
        self._dir = Path(data_dir)
        self._dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        if key not in KEYS:
            raise KeyError(f"Unknown store key: {key}")
        return self._dir / f"{key}.json"

    def get(self, key: str, default: Any = None) -> Any:
        """Read one blob. Missing or corrupt files return ``default``."""
        path = self._path(key)
        if not path.exists():
            return default
        try:
            with open(path, encoding="utf-8") as fh:
                value = json.load(fh)
        except (json.JSONDecodeError, OSError) as exc:
            logger.warning("Corrupt store blob %s, resetting: %s", path, exc)
            return default
        coerce = _COERCERS.get(key)
        return coerce(value) if coerce else value

    def set(self, key: str, value: Any) -> None:
        """Atomically overwrite one blob."""
        path = self._path(key)
        tmp = path.with_suffix(".tmp")
        with open(tmp, "w", encoding="utf-8") as fh:
            json.dump(value, fh, indent=2, default=str)
        tmp.replace(path)

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    # Convenience accessors for the collection keys

    def tasks(self) -> list[dict[str, Any]]:
        return self.get(TASKS, [])

    def docs(self) -> list[dict[str, Any]]:
        return self.get(DOCS, [])

    def events(self) -> list[dict[str, Any]]:
        return self.get(CALENDAR_EVENTS, [])
