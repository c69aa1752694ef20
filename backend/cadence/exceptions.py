"""Domain exceptions.

Services raise these; the API layer maps them onto HTTP responses in one
place (``cadence.api.v1.errors``).
"""

from typing import Optional


class CadenceError(Exception):
    """Base exception for domain errors."""

    def __init__(self, message: str, code: str = "CADENCE_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidRecurrencePatternError(CadenceError):
    """A recurrence computation received a value outside the closed pattern set.

    Also raised for ``none``/``None``: callers must not ask for the next
    occurrence of a todo that does not recur.
    """

    def __init__(self, pattern: object):
        self.pattern = pattern
        super().__init__(
            message=f"Invalid recurrence pattern: {pattern!r}",
            code="INVALID_RECURRENCE_PATTERN",
        )


class NotRecurringError(CadenceError):
    """The advancement orchestrator was invoked for a non-recurring todo."""

    def __init__(self, todo_id: Optional[int]):
        self.todo_id = todo_id
        super().__init__(
            message=f"Todo {todo_id} is not recurring",
            code="NOT_RECURRING",
        )


class RecurrenceAdvancementError(CadenceError):
    """Spawning the next instance of a recurring todo failed.

    The enclosing completion is rolled back when this is raised.
    """

    def __init__(self, todo_id: Optional[int], cause: Exception):
        self.todo_id = todo_id
        self.cause = cause
        super().__init__(
            message=f"Could not advance recurring todo {todo_id}: {cause}",
            code="RECURRENCE_ADVANCEMENT_FAILED",
        )


class InvalidInputError(CadenceError):
    """A business rule rejected otherwise well-formed input."""

    def __init__(self, message: str, details: Optional[list[str]] = None):
        self.details = details or []
        super().__init__(message=message, code="INVALID_INPUT")


class NotFoundError(CadenceError):
    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message=f"{entity} not found", code="NOT_FOUND")


class PermissionDeniedError(CadenceError):
    def __init__(self, entity: str, entity_id: object):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(message="Unauthorized", code="FORBIDDEN")


class ConflictError(CadenceError):
    def __init__(self, message: str):
        super().__init__(message=message, code="CONFLICT")
