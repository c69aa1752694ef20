"""Tests for export and import."""

from datetime import date, datetime

import pytest

from cadence.exceptions import InvalidInputError
from cadence.services.tag import TagService
from cadence.services.template import TemplateService
from cadence.services.todo import TodoService
from cadence.services.transfer import TransferService, export_filename, validate_export_data


def backup(**overrides) -> dict:
    document = {
        "version": "1.0",
        "exported_at": "2026-01-30T10:00:00+08:00",
        "data": {
            "todos": [
                {
                    "id": 10,
                    "title": "Renew passport",
                    "due_date": "2026-03-01T10:00:00+08:00",
                    "priority": "high",
                    "completed": True,
                    "completed_at": "2026-01-29T12:00:00+08:00",
                    "recurrence_pattern": "yearly",
                    "reminder_minutes": 1440,
                    "subtasks": [
                        {"title": "Photos", "completed": True, "position": 1},
                        {"title": "Form", "completed": False, "position": 0},
                    ],
                    "tag_ids": [1, 2, 2],
                },
            ],
            "tags": [
                {"id": 1, "name": "Admin", "color": "#EF4444"},
                {"id": 2, "name": "travel", "color": "not-a-color"},
            ],
            "templates": [
                {
                    "name": "Trip",
                    "title": "Pack bags",
                    "priority": "low",
                    "category": "personal",
                    "due_offset_days": 3,
                    "subtasks_json": '[{"title": "Socks", "position": 0}]',
                },
            ],
        },
    }
    document.update(overrides)
    return document


def test_export_filename():
    assert export_filename(date(2026, 2, 1)) == "todos-backup-2026-02-01.json"


@pytest.mark.parametrize(
    "data, message",
    [
        ([], "Invalid data structure: expected object"),
        ({"data": {"todos": [], "tags": [], "templates": []}}, "Missing version field"),
        ({"version": "1.0"}, "Missing data field"),
        ({"version": "1.0", "data": {"tags": [], "templates": []}}, "data.todos must be an array"),
    ],
)
def test_validate_structure(data, message):
    assert message in validate_export_data(data)


def test_validate_todo_fields():
    data = backup()
    data["data"]["todos"][0].update(title="", priority="urgent", due_date="soon")
    assert validate_export_data(data) == [
        "todos[0]: missing or invalid title",
        "todos[0]: invalid priority",
        "todos[0]: missing or invalid due_date",
    ]


def _tag_id_as_list(data):
    data["data"]["tags"][0]["id"] = [1]


def _tag_ids_nested(data):
    data["data"]["todos"][0]["tag_ids"] = [[1], 2]


def _mixed_positions(data):
    data["data"]["todos"][0]["subtasks"][0]["position"] = "first"


def _long_subtask_title(data):
    data["data"]["todos"][0]["subtasks"][1]["title"] = "x" * 201


def _subtask_not_object(data):
    data["data"]["todos"][0]["subtasks"].append("Visa")


def _long_template_name(data):
    data["data"]["templates"][0]["name"] = "n" * 101


def _long_template_title(data):
    data["data"]["templates"][0]["title"] = "t" * 501


def _template_title_as_name_too_long(data):
    template = data["data"]["templates"][0]
    del template["name"]
    template["title"] = "t" * 150


def _template_subtask_position(data):
    data["data"]["templates"][0]["subtasks_json"] = '[{"title": "Socks", "position": "0"}]'


def _template_subtasks_broken_json(data):
    data["data"]["templates"][0]["subtasks_json"] = "[{"


def _template_not_object(data):
    data["data"]["templates"].append("Trip")


@pytest.mark.parametrize(
    "mutate, message",
    [
        (_tag_id_as_list, "tags[0]: invalid id"),
        (_tag_ids_nested, "todos[0]: invalid tag_ids"),
        (_mixed_positions, "todos[0].subtasks[0]: invalid position"),
        (_long_subtask_title, "todos[0].subtasks[1]: missing or invalid title"),
        (_subtask_not_object, "todos[0].subtasks[2]: expected object"),
        (_long_template_name, "templates[0]: missing or invalid name"),
        (_long_template_title, "templates[0]: missing or invalid title"),
        (_template_title_as_name_too_long, "templates[0]: missing or invalid name"),
        (_template_subtask_position, "templates[0].subtasks[0]: invalid position"),
        (_template_subtasks_broken_json, "templates[0]: invalid subtasks_json"),
        (_template_not_object, "templates[1]: expected object"),
    ],
)
def test_validate_nested_shapes(mutate, message):
    data = backup()
    mutate(data)
    assert validate_export_data(data) == [message]


def test_validate_accepts_string_ids():
    data = backup()
    data["data"]["tags"][0]["id"] = "a"
    data["data"]["todos"][0]["tag_ids"] = ["a", 2]
    assert validate_export_data(data) == []


async def test_import_rejects_bad_shapes_before_writing(db, user, clock):
    data = backup()
    _mixed_positions(data)
    _tag_ids_nested(data)
    with pytest.raises(InvalidInputError) as exc_info:
        await TransferService(db, clock).import_data(user.id, data)
    assert exc_info.value.details == [
        "todos[0].subtasks[0]: invalid position",
        "todos[0]: invalid tag_ids",
    ]
    assert await TodoService(db, clock).list_todos(user.id, include_completed=True) == []


async def test_preview_reports_merges(db, user, clock):
    await TagService(db).create_tag(user.id, "ADMIN")
    result = await TransferService(db, clock).preview(user.id, backup())
    assert result == {
        "valid": True,
        "preview": {
            "todos_to_import": 1,
            "tags_to_create": 1,
            "tags_to_merge": 1,
            "templates_to_import": 1,
            "subtasks_to_import": 2,
        },
        "merging_tags": ["Admin"],
    }


async def test_preview_invalid(db, user, clock):
    result = await TransferService(db, clock).preview(user.id, {"version": "1.0"})
    assert result == {"valid": False, "errors": ["Missing data field"]}


async def test_import_merges_tags_and_restores_state(db, user, clock):
    existing = await TagService(db).create_tag(user.id, "admin", "#3B82F6")
    service = TransferService(db, clock)

    counts = await service.import_data(user.id, backup())
    assert counts == {
        "todos": 1,
        "tags": 2,
        "tags_created": 1,
        "tags_merged": 1,
        "templates": 1,
        "subtasks": 2,
    }

    [todo] = await TodoService(db, clock).list_todos(user.id, include_completed=True)
    assert todo.title == "Renew passport"
    assert todo.completed is True
    assert todo.recurrence_pattern == "yearly"
    assert [(s.title, s.completed, s.position) for s in todo.subtasks] == [
        ("Form", False, 0),
        ("Photos", True, 1),
    ]
    assert sorted(t.name for t in todo.tags) == ["admin", "travel"]
    assert existing.id in {t.id for t in todo.tags}

    [template] = await TemplateService(db, clock).list_templates(user.id)
    assert template.subtasks == [{"title": "Socks", "position": 0}]
    assert template.category == "personal"


async def test_import_rejects_invalid(db, user, clock):
    with pytest.raises(InvalidInputError) as exc_info:
        await TransferService(db, clock).import_data(user.id, {"version": "1.0"})
    assert exc_info.value.details == ["Missing data field"]


async def test_export_round_trips_through_import(db, user, other_user, clock):
    tag = await TagService(db).create_tag(user.id, "home")
    await TodoService(db, clock).create_todo(
        user_id=user.id,
        title="Fix tap",
        due_date=datetime(2026, 2, 7, 10, 0),
        recurrence_pattern="monthly",
        tag_ids=[tag.id],
        subtask_titles=["Buy washer"],
    )
    document = await TransferService(db, clock).export(user.id)

    assert document["version"] == "1.0"
    assert document["metadata"] == {
        "total_todos": 1,
        "total_tags": 1,
        "total_templates": 0,
        "total_subtasks": 1,
    }
    assert document["data"]["todos"][0]["due_date"] == "2026-02-07T10:00:00+08:00"

    await TransferService(db, clock).import_data(other_user.id, document)
    [copy] = await TodoService(db, clock).list_todos(other_user.id)
    assert copy.title == "Fix tap"
    assert [t.name for t in copy.tags] == ["home"]
    assert copy.tags[0].id != tag.id
