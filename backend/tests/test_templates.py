"""Tests for todo templates."""

from datetime import datetime, timedelta

import pytest

from cadence.constants import TemplateCategory
from cadence.exceptions import InvalidInputError, PermissionDeniedError
from cadence.services.template import TemplateService
from cadence.services.todo import TodoService


@pytest.fixture
async def template(db, user, clock):
    return await TemplateService(db, clock).create_template(
        user_id=user.id,
        name="Weekly report",
        title="Write report",
        priority="high",
        category=TemplateCategory.WORK,
        due_offset_days=2,
        subtask_titles=["Collect numbers", "Draft"],
    )


async def test_use_template_offsets_from_now(db, user, clock, template):
    todo = await TemplateService(db, clock).use_template(template)
    assert todo.title == "Write report"
    assert todo.priority == "high"
    assert todo.due_date == clock.now() + timedelta(days=2)
    assert [(s.title, s.position, s.completed) for s in todo.subtasks] == [
        ("Collect numbers", 0, False),
        ("Draft", 1, False),
    ]


async def test_use_template_with_override(db, user, clock, template):
    todo = await TemplateService(db, clock).use_template(
        template, due_date_override=datetime(2026, 3, 1, 9, 0)
    )
    assert clock.format(todo.due_date) == "2026-03-01T09:00:00+08:00"


async def test_override_in_past_is_rejected(db, user, clock, template):
    with pytest.raises(InvalidInputError):
        await TemplateService(db, clock).use_template(
            template, due_date_override=datetime(2026, 1, 1, 9, 0)
        )


async def test_create_from_todo(db, user, clock):
    todo = await TodoService(db, clock).create_todo(
        user_id=user.id,
        title="Onboard hire",
        due_date=datetime(2026, 2, 9, 9, 0),
        priority="low",
        subtask_titles=["Laptop", "Badge"],
    )
    template = await TemplateService(db, clock).create_from_todo(todo, "Onboarding")
    assert template.title == "Onboard hire"
    assert template.priority == "low"
    assert template.subtasks == [
        {"title": "Laptop", "position": 0},
        {"title": "Badge", "position": 1},
    ]


async def test_update_skips_nulls_for_required_fields(db, user, clock, template):
    service = TemplateService(db, clock)
    template = await service.update_template(
        template, {"name": None, "category": None, "subtasks": ["Only"]}
    )
    assert template.name == "Weekly report"
    assert template.category is None
    assert template.subtasks == [{"title": "Only", "position": 0}]


async def test_list_by_category_and_ownership(db, user, other_user, clock, template):
    service = TemplateService(db, clock)
    assert [t.id for t in await service.list_templates(user.id, TemplateCategory.WORK)] == [template.id]
    assert await service.list_templates(user.id, TemplateCategory.PERSONAL) == []
    with pytest.raises(PermissionDeniedError):
        await service.get_template(template.id, other_user.id)
