"""Middleware package."""

from cadence.middleware.logging import LoggingMiddleware
from cadence.middleware.request_id import RequestIDMiddleware

__all__ = ["LoggingMiddleware", "RequestIDMiddleware"]
