"""Mapping from domain errors to HTTP responses."""

from fastapi import HTTPException, status

from cadence.exceptions import (
    CadenceError,
    ConflictError,
    InvalidInputError,
    InvalidRecurrencePatternError,
    NotFoundError,
    PermissionDeniedError,
)

ACTION_FAILED_DETAIL = "Could not complete this action"


def handle_domain_error(error: CadenceError) -> HTTPException:
    """Convert domain errors to HTTP exceptions."""
    if isinstance(error, NotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error.message,
        )
    elif isinstance(error, PermissionDeniedError):
        return HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=error.message,
        )
    elif isinstance(error, ConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=error.message,
        )
    elif isinstance(error, InvalidInputError):
        detail: str | dict = error.message
        if error.details:
            detail = {"error": error.message, "details": error.details}
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=detail,
        )
    elif isinstance(error, InvalidRecurrencePatternError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=error.message,
        )
    else:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=ACTION_FAILED_DETAIL,
        )
