"""API router package."""

from fastapi import APIRouter

from cadence.api.v1 import (
    auth,
    calendar,
    health,
    notifications,
    subtasks,
    tags,
    templates,
    todos,
)

router = APIRouter()

# Include all API routers
router.include_router(health.router, tags=["Health"])
router.include_router(auth.router, prefix="/auth", tags=["Authentication"])
router.include_router(todos.router, prefix="/todos", tags=["Todos"])
router.include_router(subtasks.router, prefix="/subtasks", tags=["Subtasks"])
router.include_router(tags.router, prefix="/tags", tags=["Tags"])
router.include_router(templates.router, prefix="/templates", tags=["Templates"])
router.include_router(calendar.router, prefix="/calendar", tags=["Calendar"])
router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
