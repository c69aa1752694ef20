"""End-to-end tests through the HTTP API."""

from datetime import datetime, timezone

import orjson
from sqlalchemy import update

from cadence.api.v1.auth import get_current_user
from cadence.api.v1.errors import ACTION_FAILED_DETAIL
from cadence.models.todo import Todo
from cadence.models.user import User

API = "/api/v1"


async def create_todo(client, **overrides) -> dict:
    payload = {"title": "Water plants", "due_date": "2026-02-10T14:00:00", "priority": "high"}
    payload.update(overrides)
    response = await client.post(f"{API}/todos", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


async def test_health(client):
    response = await client.get(f"{API}/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.json()["civil_timezone"] == "Asia/Singapore"


async def test_readiness_reports_database_and_clock(client):
    response = await client.get(f"{API}/health/ready")
    assert response.status_code == 200
    assert response.json() == {
        "status": "healthy",
        "version": "0.1.0",
        "database": "ok",
        "clock": {"timezone": "Asia/Singapore", "now": "2026-02-01T09:00:00+08:00"},
    }


async def test_create_reads_naive_due_date_as_civil_time(client):
    todo = await create_todo(client, subtasks=["Fern", "Cactus"])
    assert todo["due_date"] == "2026-02-10T14:00:00+08:00"
    assert todo["priority"] == "high"
    assert todo["recurrence_pattern"] is None
    assert todo["is_overdue"] is False
    assert todo["progress"] == {"completed": 0, "total": 2, "percentage": 0}


async def test_create_rejects_past_due_date(client):
    response = await client.post(
        f"{API}/todos", json={"title": "Too late", "due_date": "2026-01-31T09:00:00"}
    )
    assert response.status_code == 400
    assert response.json()["detail"] == "Due date cannot be in the past"


async def test_create_validates_enumerations(client):
    for payload in (
        {"recurrence_pattern": "fortnightly"},
        {"reminder_minutes": 45},
        {"priority": "urgent"},
        {"title": "   "},
    ):
        body = {"title": "Bad", "due_date": "2026-02-10T14:00:00", **payload}
        response = await client.post(f"{API}/todos", json=body)
        assert response.status_code == 422, payload


async def test_complete_recurring_returns_next(client):
    tag = (await client.post(f"{API}/tags", json={"name": "home", "color": "#10B981"})).json()
    todo = await create_todo(
        client,
        recurrence_pattern="monthly",
        due_date="2026-03-31T17:00:00",
        reminder_minutes=60,
        tag_ids=[tag["id"]],
        subtasks=["Step one"],
    )

    response = await client.patch(f"{API}/todos/{todo['id']}", json={"completed": True})
    assert response.status_code == 200
    body = response.json()
    assert body["todo"]["completed"] is True
    assert body["todo"]["completed_at"] == "2026-02-01T09:00:00+08:00"

    next_todo = body["next_todo"]
    assert next_todo["due_date"] == "2026-04-30T17:00:00+08:00"
    assert next_todo["recurrence_pattern"] == "monthly"
    assert next_todo["reminder_minutes"] == 60
    assert next_todo["last_notification_sent"] is None
    assert [t["name"] for t in next_todo["tags"]] == ["home"]
    assert [s["title"] for s in next_todo["subtasks"]] == ["Step one"]

    listing = (await client.get(f"{API}/todos")).json()
    assert [t["id"] for t in listing["todos"]] == [next_todo["id"]]


async def test_complete_one_off_returns_no_next(client):
    todo = await create_todo(client)
    response = await client.patch(f"{API}/todos/{todo['id']}", json={"completed": True})
    assert response.status_code == 200
    assert response.json()["next_todo"] is None


async def test_failed_advancement_returns_generic_500(client, db):
    todo = await create_todo(client, recurrence_pattern="daily")
    await db.execute(
        update(Todo).where(Todo.id == todo["id"]).values(recurrence_pattern="fortnightly")
    )
    await db.commit()

    response = await client.patch(f"{API}/todos/{todo['id']}", json={"completed": True})
    assert response.status_code == 500
    assert response.json()["detail"] == ACTION_FAILED_DETAIL

    reloaded = (await client.get(f"{API}/todos/{todo['id']}")).json()
    assert reloaded["completed"] is False


async def test_other_users_todo_is_forbidden(client, db):
    stranger = User(username="mallory", display_name="Mallory")
    db.add(stranger)
    await db.commit()
    foreign = Todo(
        user_id=stranger.id,
        title="Secret",
        due_date=datetime(2026, 3, 1, tzinfo=timezone.utc),
    )
    db.add(foreign)
    await db.commit()

    assert (await client.get(f"{API}/todos/{foreign.id}")).status_code == 403
    assert (await client.patch(f"{API}/todos/{foreign.id}", json={"title": "Mine"})).status_code == 403
    assert (await client.delete(f"{API}/todos/{foreign.id}")).status_code == 403
    assert (await client.get(f"{API}/todos/99999")).status_code == 404


async def test_delete_todo(client):
    todo = await create_todo(client, subtasks=["a"])
    assert (await client.delete(f"{API}/todos/{todo['id']}")).status_code == 204
    assert (await client.get(f"{API}/todos/{todo['id']}")).status_code == 404


async def test_list_search_and_status(client):
    await create_todo(client, title="Buy milk", priority="low")
    done = await create_todo(client, title="Buy bread")
    await client.patch(f"{API}/todos/{done['id']}", json={"completed": True})

    body = (await client.get(f"{API}/todos", params={"q": "buy"})).json()
    assert [t["title"] for t in body["todos"]] == ["Buy milk"]

    body = (await client.get(f"{API}/todos", params={"q": "buy", "status": "all"})).json()
    assert body["total"] == 2

    body = (await client.get(f"{API}/todos", params={"include_completed": "true"})).json()
    assert [t["title"] for t in body["todos"]] == ["Buy milk", "Buy bread"]


async def test_list_filters_priority_tag_and_subtasks(client):
    tag = (await client.post(f"{API}/tags", json={"name": "garden"})).json()
    await create_todo(client, title="Mow lawn", priority="low", tag_ids=[tag["id"]])
    await create_todo(client, title="Weekly shop", subtasks=["Lawn feed"])

    body = (await client.get(f"{API}/todos", params={"priority": "high"})).json()
    assert [t["title"] for t in body["todos"]] == ["Weekly shop"]

    body = (await client.get(f"{API}/todos", params={"tag_id": tag["id"]})).json()
    assert [t["title"] for t in body["todos"]] == ["Mow lawn"]

    params = {"q": "lawn", "search_mode": "advanced"}
    body = (await client.get(f"{API}/todos", params=params)).json()
    assert [t["title"] for t in body["todos"]] == ["Weekly shop", "Mow lawn"]

    body = (await client.get(f"{API}/todos", params={**params, "search_subtasks": "false"})).json()
    assert [t["title"] for t in body["todos"]] == ["Mow lawn"]


async def test_recurrence_preview(client):
    response = await client.get(
        f"{API}/todos/recurrence-preview",
        params={"start": "2026-01-31T17:00:00", "pattern": "monthly", "count": 3},
    )
    assert response.status_code == 200
    assert response.json()["occurrences"] == [
        "2026-01-31T17:00:00+08:00",
        "2026-02-28T17:00:00+08:00",
        "2026-03-28T17:00:00+08:00",
    ]

    response = await client.get(
        f"{API}/todos/recurrence-preview",
        params={"start": "2026-01-31T17:00:00", "pattern": "monthly", "count": 500},
    )
    assert response.status_code == 400


async def test_subtask_flow(client):
    todo = await create_todo(client, subtasks=["one", "two"])
    created = await client.post(f"{API}/subtasks", json={"todo_id": todo["id"], "title": "three"})
    assert created.status_code == 201
    assert created.json()["position"] == 2

    reordered = await client.post(
        f"{API}/subtasks/reorder",
        json={"subtask_id": created.json()["id"], "new_position": 0},
    )
    assert [s["title"] for s in reordered.json()["subtasks"]] == ["three", "one", "two"]

    first = todo["subtasks"][0]
    response = await client.patch(f"{API}/subtasks/{first['id']}", json={"completed": True})
    assert response.json()["completed"] is True

    refreshed = (await client.get(f"{API}/todos/{todo['id']}")).json()
    assert refreshed["progress"] == {"completed": 1, "total": 3, "percentage": 33}


async def test_tag_conflict(client):
    assert (await client.post(f"{API}/tags", json={"name": "work"})).status_code == 201
    response = await client.post(f"{API}/tags", json={"name": "work"})
    assert response.status_code == 409
    assert response.json()["detail"] == "Tag name already exists"


async def test_reminder_check_marks_sent(client, clock):
    todo = await create_todo(client, due_date="2026-02-01T09:45:00", reminder_minutes=60)

    response = await client.get(f"{API}/notifications/check")
    [reminder] = response.json()["reminders"]
    assert reminder["todo"]["id"] == todo["id"]
    assert reminder["minutes_until_due"] == 45
    assert reminder["due_in"] == "45 minutes"
    assert reminder["todo"]["last_notification_sent"] == "2026-02-01T09:00:00+08:00"
    assert reminder["todo"]["updated_at"] == "2026-02-01T09:00:00+08:00"

    clock.advance(minutes=1)
    assert (await client.get(f"{API}/notifications/check")).json()["reminders"] == []


async def test_reminder_options(client):
    options = (await client.get(f"{API}/notifications/reminder-options")).json()
    assert [o["value"] for o in options] == [15, 30, 60, 120, 1440, 2880, 10080]


async def test_export_download(client):
    await create_todo(client)
    response = await client.get(f"{API}/todos/export")
    assert response.status_code == 200
    assert 'filename="todos-backup-2026-02-01.json"' in response.headers["content-disposition"]
    document = orjson.loads(response.content)
    assert document["metadata"]["total_todos"] == 1


async def test_import_invalid_returns_details(client):
    response = await client.post(f"{API}/todos/import", json={"version": "1.0"})
    assert response.status_code == 400
    assert response.json()["detail"] == {
        "error": "Invalid import data",
        "details": ["Missing data field"],
    }


async def test_import_bad_nested_shapes_returns_400(client):
    document = {
        "version": "1.0",
        "data": {
            "todos": [
                {
                    "title": "Renew passport",
                    "due_date": "2026-03-01T10:00:00+08:00",
                    "priority": "high",
                    "subtasks": [{"title": "Photos", "position": 1}, {"title": "Form", "position": "0"}],
                    "tag_ids": [[1]],
                },
            ],
            "tags": [{"id": {"old": 1}, "name": "Admin", "color": "#EF4444"}],
            "templates": [{"name": "Trip", "title": "Pack bags", "subtasks": [{"title": "s" * 201}]}],
        },
    }
    response = await client.post(f"{API}/todos/import", json=document)
    assert response.status_code == 400
    assert response.json()["detail"]["details"] == [
        "todos[0].subtasks[1]: invalid position",
        "todos[0]: invalid tag_ids",
        "tags[0]: invalid id",
        "templates[0].subtasks[0]: missing or invalid title",
    ]


async def test_template_use(client):
    created = await client.post(
        f"{API}/templates",
        json={"name": "Standup", "title": "Daily standup", "due_offset_days": 1, "subtasks": ["Yesterday"]},
    )
    assert created.status_code == 201
    response = await client.post(f"{API}/templates/{created.json()['id']}/use")
    assert response.status_code == 201
    todo = response.json()
    assert todo["title"] == "Daily standup"
    assert todo["due_date"] == "2026-02-02T09:00:00+08:00"


async def test_calendar_month(client):
    await create_todo(client, due_date="2026-02-14T12:00:00")
    response = await client.get(f"{API}/calendar", params={"month": "2026-02"})
    assert response.status_code == 200
    body = response.json()
    assert body["counts"] == {"2026-02-14": {"count": 1, "intensity": "low"}}
    assert len(body["weeks"]) == 4

    assert (await client.get(f"{API}/calendar", params={"month": "2026-2x"})).status_code == 400


async def test_dev_login_issues_working_token(app, client):
    app.dependency_overrides.pop(get_current_user)

    assert (await client.get(f"{API}/auth/me")).status_code == 401
    bad = await client.get(f"{API}/auth/me", headers={"Authorization": "Bearer nonsense"})
    assert bad.status_code == 401

    login = await client.post(f"{API}/auth/dev-login", json={"username": "carol"})
    assert login.status_code == 200
    token = login.json()["access_token"]

    me = await client.get(f"{API}/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert me.status_code == 200
    assert me.json()["username"] == "carol"
    assert me.json()["display_name"] == "carol"
