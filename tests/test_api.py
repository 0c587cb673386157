import dataclasses
import os
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

# Ensure we default to memory backend for tests to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")

from todo_reminder.errors import StorageError  # noqa: E402
from todo_reminder.main import app  # noqa: E402
from todo_reminder.services import build_services, get_services  # noqa: E402
from todo_reminder.settings import get_settings  # noqa: E402
from todo_reminder.storage import InMemoryKeyValueStore  # noqa: E402


@pytest.fixture
def services(tmp_path, clock, timers):
    settings = dataclasses.replace(
        get_settings(),
        persistence_backend="memory",
        task_log_path=str(tmp_path / "tasks.txt"),
        seed_sample_todos=False,
        overdue_check_interval=0,
    )
    svc = build_services(settings, kv=InMemoryKeyValueStore(), now=clock, timer_factory=timers)
    svc.start()
    yield svc
    svc.shutdown()


@pytest.fixture
def client(services):
    app.dependency_overrides[get_services] = lambda: services
    yield TestClient(app)
    app.dependency_overrides.clear()


def create_todo_payload(text="Test Task", **fields):
    payload = {"text": text}
    payload.update(fields)
    return payload


def create(client, text="Test Task", **fields):
    res = client.post("/api/v1/todos/", json=create_todo_payload(text, **fields))
    assert res.status_code == 201, res.text
    return res.json()


def assert_todo_shape(todo: dict):
    for key in ["id", "text", "completed", "created_at", "due_date", "reminder", "priority", "project_name"]:
        assert key in todo
    assert isinstance(todo["id"], str)
    assert isinstance(todo["completed"], bool)
    datetime.fromisoformat(todo["created_at"])
    if todo["due_date"] is not None:
        datetime.fromisoformat(todo["due_date"])


class TestHealth:
    def test_health_check(self, client):
        res = client.get("/")
        assert res.status_code == 200
        data = res.json()
        assert data["message"] == "Healthy"
        assert data["backend"] in ("memory", "sqlite")


class TestTodosCRUD:
    def test_create_todo_minimal(self, client):
        todo = create(client, "Buy milk")
        assert_todo_shape(todo)
        assert todo["text"] == "Buy milk"
        assert todo["priority"] == "medium"
        assert todo["completed"] is False
        assert todo["project_name"] is None
        assert todo["created_at"] == "2024-01-10T08:00:00"

    def test_create_todo_with_due_date_date_string(self, client):
        todo = create(client, "Pay bills", due_date="2024-01-12", priority="high", project_name="Home")
        # Due date should be promoted to midnight
        assert todo["due_date"] == "2024-01-12T00:00:00"
        assert todo["priority"] == "high"
        assert todo["project_name"] == "Home"

    def test_create_todo_with_date_phrase(self, client):
        todo = create(client, "Pay bills", due_date="tomorrow")
        assert todo["due_date"] is not None

    def test_create_rejects_blank_text(self, client):
        res = client.post("/api/v1/todos/", json=create_todo_payload("   "))
        assert res.status_code == 422
        body = res.json()
        assert body["error"] == "ValidationError"
        assert body["message"] == "Request validation failed"

    def test_create_rejects_bad_due_date(self, client):
        res = client.post("/api/v1/todos/", json=create_todo_payload(due_date="someday"))
        assert res.status_code == 422

    def test_create_rejects_out_of_range_date_phrase(self, client):
        res = client.post("/api/v1/todos/", json=create_todo_payload(due_date="in 9999999999 days"))
        assert res.status_code == 422
        assert res.json()["error"] == "ValidationError"

    def test_create_rejects_past_reminder(self, client, timers):
        res = client.post("/api/v1/todos/", json=create_todo_payload(reminder="2024-01-09T09:00:00"))
        assert res.status_code == 422
        assert res.json()["detail"] == "Reminder time must be in the future"
        assert timers.timers == []

    def test_create_with_reminder_arms_it(self, client, timers):
        todo = create(client, "Stand-up", reminder="2024-01-10T09:00:00")
        assert todo["reminder"] == "2024-01-10T09:00:00"
        assert len(timers.live) == 1
        assert timers.live[0].delay == pytest.approx(3600)

    def test_get_todo_and_not_found(self, client):
        todo = create(client, "Read book")
        res = client.get(f"/api/v1/todos/{todo['id']}")
        assert res.status_code == 200
        assert res.json()["text"] == "Read book"

        res = client.get("/api/v1/todos/does-not-exist")
        assert res.status_code == 404
        assert res.json()["detail"] == "Todo not found"

    def test_patch_todo(self, client):
        todo = create(client, "Draft", due_date="2024-01-12", project_name="Work")
        res = client.patch(f"/api/v1/todos/{todo['id']}", json={"text": "Final", "priority": "low"})
        assert res.status_code == 200
        patched = res.json()
        assert patched["text"] == "Final"
        assert patched["priority"] == "low"
        assert patched["due_date"] == "2024-01-12T00:00:00"
        assert patched["project_name"] == "Work"

        res = client.patch(f"/api/v1/todos/{todo['id']}", json={"due_date": None, "project_name": None})
        assert res.json()["due_date"] is None
        assert res.json()["project_name"] is None

        assert client.patch("/api/v1/todos/missing", json={"text": "x"}).status_code == 404

    def test_complete_toggles(self, client):
        todo = create(client)
        res = client.post(f"/api/v1/todos/{todo['id']}/complete")
        assert res.status_code == 200
        assert res.json()["completed"] is True
        res = client.post(f"/api/v1/todos/{todo['id']}/complete")
        assert res.json()["completed"] is False
        assert client.post("/api/v1/todos/missing/complete").status_code == 404

    def test_delete_todo(self, client):
        todo = create(client)
        res = client.delete(f"/api/v1/todos/{todo['id']}")
        assert res.status_code == 204
        assert client.get(f"/api/v1/todos/{todo['id']}").status_code == 404
        assert client.delete(f"/api/v1/todos/{todo['id']}").status_code == 404

    def test_delete_cancels_pending_reminder(self, client, timers):
        todo = create(client, "Stand-up", reminder="2024-01-10T09:00:00")
        assert len(timers.live) == 1
        assert client.delete(f"/api/v1/todos/{todo['id']}").status_code == 204
        assert timers.live == []


class TestListTodos:
    def test_list_is_sorted_and_paginated(self, client):
        create(client, "low", priority="low")
        create(client, "high", priority="high")
        create(client, "medium")

        res = client.get("/api/v1/todos/", params={"limit": 2, "offset": 0})
        assert res.status_code == 200
        data = res.json()
        assert data["total"] == 3
        assert data["limit"] == 2
        assert [t["text"] for t in data["items"]] == ["high", "medium"]

        data = client.get("/api/v1/todos/", params={"limit": 2, "offset": 2}).json()
        assert [t["text"] for t in data["items"]] == ["low"]

    def test_list_filters(self, client):
        done = create(client, "Ship release", project_name="Work")
        client.post(f"/api/v1/todos/{done['id']}/complete")
        create(client, "Buy milk")
        create(client, "Pay rent", due_date="2024-01-09")

        def texts(**params):
            return [t["text"] for t in client.get("/api/v1/todos/", params=params).json()["items"]]

        assert texts(status="completed") == ["Ship release"]
        assert texts(status="overdue") == ["Pay rent"]
        assert sorted(texts(status=["pending", "overdue"])) == ["Buy milk", "Pay rent"]
        assert sorted(texts(project="No Project")) == ["Buy milk", "Pay rent"]
        assert texts(q="MILK") == ["Buy milk"]
        assert texts(date_range="overdue") == ["Pay rent"]

    def test_list_rejects_unknown_status(self, client):
        res = client.get("/api/v1/todos/", params={"status": "archived"})
        assert res.status_code == 422


class TestReminders:
    def test_set_reminder(self, client, timers):
        todo = create(client, "Stand-up")
        res = client.put(f"/api/v1/todos/{todo['id']}/reminder", json={"reminder": "2024-01-10T08:30:00"})
        assert res.status_code == 200
        assert res.json()["reminder"] == "2024-01-10T08:30:00"
        assert timers.live[0].delay == pytest.approx(1800)

    def test_set_reminder_rejects_past_time(self, client, timers):
        todo = create(client, "Stand-up")
        res = client.put(f"/api/v1/todos/{todo['id']}/reminder", json={"reminder": "2024-01-10T07:00:00"})
        assert res.status_code == 422
        assert timers.timers == []

    def test_set_reminder_unknown_todo(self, client):
        res = client.put("/api/v1/todos/missing/reminder", json={"reminder": "2024-01-10T09:00:00"})
        assert res.status_code == 404

    def test_fired_reminder_can_be_completed(self, client, clock, timers):
        todo = create(client, "Stand-up", reminder="2024-01-10T08:05:00")
        clock.advance(minutes=5)
        timers.live[0].fire()

        pending = client.get("/api/v1/reminders/pending").json()
        assert len(pending) == 1
        assert pending[0]["todo_id"] == todo["id"]
        assert pending[0]["actions"] == ["complete", "snooze", "dismiss"]

        res = client.post(f"/api/v1/reminders/{todo['id']}/respond", json={"action": "complete"})
        assert res.status_code == 200
        assert res.json()["completed"] is True
        assert client.get("/api/v1/reminders/pending").json() == []

        res = client.post(f"/api/v1/reminders/{todo['id']}/respond", json={"action": "complete"})
        assert res.status_code == 404

    def test_snooze(self, client, clock, timers):
        todo = create(client, "Stand-up", reminder="2024-01-10T08:05:00")
        clock.advance(minutes=5)
        timers.live[0].fire()

        res = client.post(f"/api/v1/reminders/{todo['id']}/respond", json={"action": "snooze"})
        assert res.status_code == 200
        assert res.json()["reminder"] == "2024-01-10T08:15:00"
        assert len(timers.live) == 1

    def test_respond_rejects_unknown_action(self, client):
        todo = create(client)
        res = client.post(f"/api/v1/reminders/{todo['id']}/respond", json={"action": "later"})
        assert res.status_code == 422

    def test_overdue_check(self, client):
        create(client, "Pay rent", due_date="2024-01-09")
        create(client, "Buy milk")
        data = client.post("/api/v1/reminders/overdue-check").json()
        assert data["count"] == 1
        assert data["message"] == 'You have 1 overdue todo: "Pay rent"'
        assert [t["text"] for t in data["items"]] == ["Pay rent"]


class TestView:
    def test_default_view_groups_by_status(self, client):
        create(client, "Ship release", priority="high", due_date="2024-01-10T17:00:00")
        create(client, "Buy milk")

        data = client.get("/api/v1/view").json()
        assert data["total"] == 2
        assert data["grouping"]["primary"] == "status"
        assert [g["label"] for g in data["items"]] == ["Urgent", "Active"]
        urgent = data["items"][0]
        assert urgent["kind"] == "group"
        assert urgent["summary"] == {"total": 1, "urgent": 1, "overdue": 0, "completed": None}
        assert urgent["children"][0]["kind"] == "todo"
        assert urgent["children"][0]["todo"]["text"] == "Ship release"

    def test_project_level_renders_project_items(self, client):
        create(client, "Ship release", project_name="Work", priority="high")
        create(client, "Buy milk")

        data = client.get("/api/v1/view", params={"primary": "project", "secondary": "priority"}).json()
        assert [g["kind"] for g in data["items"]] == ["project", "project"]
        assert [g["project_name"] for g in data["items"]] == [None, "Work"]
        work = data["items"][1]
        assert work["children"][0]["kind"] == "group"
        assert work["children"][0]["label"] == "High Priority"

    def test_lower_level_override_keeps_saved_primary(self, client):
        create(client, "Ship release", priority="high", due_date="2024-01-10T17:00:00")
        create(client, "Buy milk")

        data = client.get("/api/v1/view", params={"secondary": "priority"}).json()
        assert data["grouping"] == {"primary": "status", "secondary": "priority", "tertiary": None}
        assert [g["label"] for g in data["items"]] == ["Urgent", "Active"]
        urgent, active = data["items"]
        assert [(c["kind"], c["label"]) for c in urgent["children"]] == [("group", "High Priority")]
        assert [(c["kind"], c["label"]) for c in active["children"]] == [("group", "Medium Priority")]
        assert active["children"][0]["children"][0]["todo"]["text"] == "Buy milk"

    def test_saved_grouping_is_used(self, client):
        assert client.get("/api/v1/view/grouping").json()["primary"] == "status"
        res = client.put("/api/v1/view/grouping", json={"primary": "priority"})
        assert res.status_code == 200
        assert client.get("/api/v1/view/grouping").json() == {
            "primary": "priority",
            "secondary": None,
            "tertiary": None,
        }

        create(client, "low", priority="low")
        create(client, "high", priority="high")
        labels = [g["label"] for g in client.get("/api/v1/view").json()["items"]]
        assert labels == ["High Priority", "Low Priority"]

    def test_saved_filter_is_used(self, client):
        create(client, "low", priority="low")
        create(client, "high", priority="high")
        res = client.put("/api/v1/view/filter", json={"priority": ["high"], "dateRange": "all"})
        assert res.status_code == 200
        assert res.json()["priority"] == ["high"]

        data = client.get("/api/v1/view").json()
        assert data["total"] == 1
        assert data["filter"]["priority"] == ["high"]

    def test_empty_collection(self, client):
        data = client.get("/api/v1/view").json()
        assert data["total"] == 0
        assert data["items"] == []

    def test_invalid_grouping_level(self, client):
        res = client.put("/api/v1/view/grouping", json={"primary": "colour"})
        assert res.status_code == 422


class TestTaskLog:
    def test_log_not_found_before_first_todo(self, client):
        res = client.get("/api/v1/todos/log")
        assert res.status_code == 404

    def test_log_lists_created_tasks(self, client):
        create(client, "Ship release", project_name="Work")
        create(client, "Buy milk")
        res = client.get("/api/v1/todos/log")
        assert res.status_code == 200
        assert res.headers["content-type"].startswith("text/plain")
        assert "Wednesday, January 10, 2024's tasks:" in res.text
        assert "#Work\n- Ship release" in res.text
        assert "#General\n- Buy milk" in res.text


class TestStorageFailures:
    def test_storage_error_maps_to_503(self, client, services, monkeypatch):
        def broken_save(key, value):
            raise StorageError("disk full")

        monkeypatch.setattr(services.kv, "save", broken_save)
        res = client.put("/api/v1/view/grouping", json={"primary": "date"})
        assert res.status_code == 503
        assert res.json() == {"error": "StorageError", "message": "disk full"}
