"""PAR loop tests for tasks, docs and local calendar events."""

from __future__ import annotations

from datetime import date, timedelta
from unittest.mock import MagicMock, patch

import httpx
import pytest

from src.common import store as store_keys
from tests.conftest import par_loop

# ---------------------------------------------------------------------------
# 1. Tasks
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
class TestTasks:
    async def test_create_task(self, client: httpx.AsyncClient, store) -> None:
        async def act():
            return await client.post("/api/tasks", json={"title": "  Read chapter 4 ", "priority": "high"})

        def review(r: httpx.Response):
            if r.status_code != 201:
                return False, f"Expected 201, got {r.status_code}: {r.text}"
            data = r.json()
            if data["title"] != "Read chapter 4" or data["priority"] != "high" or data["completed"]:
                return False, f"Unexpected task: {data}"
            if not data["created_at"]:
                return False, "created_at not set"
            return True, ""

        task = (await par_loop(act, review, label="create_task")).json()
        assert store.tasks()[-1]["id"] == task["id"]

    async def test_ids_are_unique(self, client: httpx.AsyncClient) -> None:
        ids = {(await client.post("/api/tasks", json={"title": f"T{i}"})).json()["id"] for i in range(5)}
        assert len(ids) == 5

    async def test_title_required(self, client: httpx.AsyncClient) -> None:
        r = await client.post("/api/tasks", json={"title": "  "})
        assert r.status_code == 400

    async def test_update_toggle_and_due_date(self, client: httpx.AsyncClient) -> None:
        tid = (await client.post("/api/tasks", json={"title": "Essay"})).json()["id"]
        r = await client.put(f"/api/tasks/{tid}", json={"completed": True, "due_date": "2025-09-01"})
        assert r.status_code == 200
        assert r.json()["completed"] is True
        assert r.json()["due_date"] == "2025-09-01"

        r = await client.put(f"/api/tasks/{tid}", json={"priority": "urgent"})
        assert r.status_code == 400
        r = await client.put(f"/api/tasks/{tid}", json={"due_date": "next week"})
        assert r.status_code == 400

    async def test_filter_and_search(self, client: httpx.AsyncClient) -> None:
        a = (await client.post("/api/tasks", json={"title": "Physics homework"})).json()["id"]
        await client.post("/api/tasks", json={"title": "Buy groceries"})
        await client.put(f"/api/tasks/{a}", json={"completed": True})

        r = await client.get("/api/tasks", params={"filter": "completed"})
        assert [t["title"] for t in r.json()["tasks"]] == ["Physics homework"]
        r = await client.get("/api/tasks", params={"filter": "active"})
        assert [t["title"] for t in r.json()["tasks"]] == ["Buy groceries"]
        r = await client.get("/api/tasks", params={"q": "HOMEWORK"})
        assert len(r.json()["tasks"]) == 1
        r = await client.get("/api/tasks", params={"filter": "someday"})
        assert r.status_code == 400

    async def test_clear_completed(self, client: httpx.AsyncClient, store) -> None:
        for title in ("a", "b", "c"):
            await client.post("/api/tasks", json={"title": title})
        first = store.tasks()[0]["id"]
        await client.put(f"/api/tasks/{first}", json={"completed": True})

        r = await client.post("/api/tasks/clear-completed")
        assert r.json() == {"removed": 1}
        assert [t["title"] for t in store.tasks()] == ["b", "c"]

    async def test_delete_task(self, client: httpx.AsyncClient) -> None:
        tid = (await client.post("/api/tasks", json={"title": "Gone"})).json()["id"]
        r = await client.delete(f"/api/tasks/{tid}")
        assert r.json() == {"ok": True}
        r = await client.delete(f"/api/tasks/{tid}")
        assert r.status_code == 404


# ---------------------------------------------------------------------------
# 2. Docs
# ---------------------------------------------------------------------------

@pytest.mark.asyncio
class TestDocs:
    async def test_create_untitled_doc_first(self, client: httpx.AsyncClient) -> None:
        await client.post("/api/docs", json={"title": "Older"})
        r = await client.post("/api/docs", json={})
        assert r.status_code == 201
        assert r.json()["title"] == "Untitled Document"
        assert r.json()["tags"] == []

        docs = (await client.get("/api/docs")).json()["docs"]
        assert [d["title"] for d in docs] == ["Untitled Document", "Older"]

    async def test_rename_content_and_tags(self, client: httpx.AsyncClient) -> None:
        did = (await client.post("/api/docs", json={"title": "Notes"})).json()["id"]

        async def act():
            return await client.put(f"/api/docs/{did}", json={
                "title": "", "content": "# Lecture 3", "description": "Week 3", "tags": ["bio", " bio ", "exam"],
            })

        def review(r: httpx.Response):
            if r.status_code != 200:
                return False, f"Expected 200, got {r.status_code}: {r.text}"
            data = r.json()
            if data["title"] != "Untitled Document":
                return False, f"Blank rename should fall back to default title: {data['title']}"
            if data["tags"] != ["bio", "exam"]:
                return False, f"Tags not cleaned: {data['tags']}"
            return True, ""

        await par_loop(act, review, label="update_doc")

        r = await client.put(f"/api/docs/{did}", json={"tags": "bio"})
        assert r.status_code == 400

    async def test_filter_by_tags(self, client: httpx.AsyncClient) -> None:
        await client.post("/api/docs", json={"title": "A", "tags": ["bio", "exam"]})
        await client.post("/api/docs", json={"title": "B", "tags": ["bio"]})
        await client.post("/api/docs", json={"title": "C", "tags": ["history"]})

        data = (await client.get("/api/docs", params={"tags": "bio,exam"})).json()
        assert [d["title"] for d in data["docs"]] == ["A"]
        assert sorted(data["tags"]) == ["bio", "exam", "history"]

    async def test_delete_doc(self, client: httpx.AsyncClient) -> None:
        did = (await client.post("/api/docs", json={})).json()["id"]
        assert (await client.delete(f"/api/docs/{did}")).status_code == 200
        assert (await client.put(f"/api/docs/{did}", json={"title": "x"})).status_code == 404


# ---------------------------------------------------------------------------
# 3. Calendar events
# ---------------------------------------------------------------------------

def _ok(payload: dict | None = None) -> MagicMock:
    resp = MagicMock()
    resp.status_code = 200
    resp.ok = True
    resp.content = b"{}"
    resp.json.return_value = payload or {}
    return resp


@pytest.mark.asyncio
class TestCalendarEvents:
    async def test_create_event(self, client: httpx.AsyncClient) -> None:
        async def act():
            return await client.post("/api/calendar/events", json={
                "title": "Lab report due", "date": "2025-06-10", "time": "9:05", "color": "bg-red-500",
            })

        def review(r: httpx.Response):
            if r.status_code != 201:
                return False, f"Expected 201, got {r.status_code}: {r.text}"
            data = r.json()
            if data["time"] != "09:05" or data["remote_id"] is not None or data["is_remote"]:
                return False, f"Unexpected event: {data}"
            return True, ""

        await par_loop(act, review, label="create_event")

    async def test_title_and_date_required(self, client: httpx.AsyncClient) -> None:
        r = await client.post("/api/calendar/events", json={"title": "No date"})
        assert r.status_code == 400
        assert r.json()["error"] == "Please fill in the title and date"
        r = await client.post("/api/calendar/events", json={"title": "Bad", "date": "10/06/2025"})
        assert r.status_code == 400

    async def test_list_by_date_and_upcoming(self, client: httpx.AsyncClient) -> None:
        today = date.today()
        for offset, title in ((-3, "past"), (2, "soon"), (1, "tomorrow"), (40, "later")):
            day = (today + timedelta(days=offset)).isoformat()
            await client.post("/api/calendar/events", json={"title": title, "date": day})

        r = await client.get("/api/calendar/events", params={"upcoming": 2})
        assert [e["title"] for e in r.json()["events"]] == ["tomorrow", "soon"]

        day = (today - timedelta(days=3)).isoformat()
        r = await client.get("/api/calendar/events", params={"date": day})
        assert [e["title"] for e in r.json()["events"]] == ["past"]

        r = await client.get("/api/calendar/events")
        assert len(r.json()["events"]) == 4

    @pytest.mark.parametrize("upcoming", [0, -1])
    async def test_upcoming_must_be_positive(self, client: httpx.AsyncClient, upcoming: int) -> None:
        await client.post("/api/calendar/events", json={"title": "soon", "date": date.today().isoformat()})
        r = await client.get("/api/calendar/events", params={"upcoming": upcoming})
        assert r.status_code == 400
        assert "error" in r.json()

    async def test_edit_linked_event_updates_google(self, client: httpx.AsyncClient, store) -> None:
        store.set(store_keys.CALENDAR_TOKENS, {"access_token": "tok", "refresh_token": "ref"})
        store.set(store_keys.CALENDAR_EVENTS, [{
            "id": "google_R1", "title": "Seminar", "date": "2025-06-10", "time": "10:00",
            "remote_id": "R1", "is_remote": True,
        }])

        with patch("src.gcal.client.requests.request", return_value=_ok()) as req:
            r = await client.put("/api/calendar/events/google_R1", json={"title": "Seminar (moved)", "time": "11:00"})

        assert r.status_code == 200
        assert r.json()["remote_id"] == "R1"
        method, url = req.call_args.args[:2]
        assert method == "PUT"
        assert url.endswith("/events/R1")
        assert req.call_args.kwargs["json"]["summary"] == "Seminar (moved)"

    async def test_edit_local_event_stays_local(self, client: httpx.AsyncClient) -> None:
        eid = (await client.post("/api/calendar/events", json={"title": "Gym", "date": "2025-06-10"})).json()["id"]
        with patch("src.gcal.client.requests.request") as req:
            r = await client.put(f"/api/calendar/events/{eid}", json={"description": "leg day"})
        assert r.json()["description"] == "leg day"
        req.assert_not_called()

    async def test_google_update_failure_does_not_fail_edit(self, client: httpx.AsyncClient, store) -> None:
        store.set(store_keys.CALENDAR_TOKENS, {"access_token": "tok"})
        store.set(store_keys.CALENDAR_EVENTS, [{"id": "e1", "title": "X", "date": "2025-06-10", "remote_id": "R1"}])
        failing = _ok()
        failing.status_code = 500
        failing.ok = False
        with patch("src.gcal.client.requests.request", return_value=failing):
            r = await client.put("/api/calendar/events/e1", json={"title": "Y"})
        assert r.status_code == 200
        assert store.events()[0]["title"] == "Y"

    async def test_delete_is_local_by_default(self, client: httpx.AsyncClient, store) -> None:
        store.set(store_keys.CALENDAR_TOKENS, {"access_token": "tok"})
        store.set(store_keys.CALENDAR_EVENTS, [{"id": "e1", "title": "X", "date": "2025-06-10", "remote_id": "R1"}])
        with patch("src.gcal.client.requests.request") as req:
            r = await client.delete("/api/calendar/events/e1")
        assert r.json() == {"ok": True, "remote_deleted": False}
        assert store.events() == []
        req.assert_not_called()

    async def test_delete_remote_opt_in(self, client: httpx.AsyncClient, store) -> None:
        store.set(store_keys.CALENDAR_TOKENS, {"access_token": "tok"})
        store.set(store_keys.CALENDAR_EVENTS, [{"id": "e1", "title": "X", "date": "2025-06-10", "remote_id": "R1"}])
        with patch("src.gcal.client.requests.request", return_value=_ok()) as req:
            r = await client.delete("/api/calendar/events/e1", params={"remote": "true"})
        assert r.json() == {"ok": True, "remote_deleted": True}
        assert req.call_args.args[0] == "DELETE"
