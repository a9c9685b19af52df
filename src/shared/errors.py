"""Custom exception classes and FastAPI exception handlers.

``register_exception_handlers`` lets a FastAPI host that embeds the segment
engine render any ``AppError`` with its status code.
"""
from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.requests import Request


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str, status_code: int = 500) -> None:
        self.detail = detail
        self.status_code = status_code
        super().__init__(detail)


class ValidationError(AppError):
    """Structurally malformed input (422)."""

    def __init__(self, detail: str = "Validation error") -> None:
        super().__init__(detail=detail, status_code=422)


class BadDataError(AppError):
    """Input is well-formed but violates a business rule (400)."""

    def __init__(self, detail: str = "Bad data") -> None:
        super().__init__(detail=detail, status_code=400)


class EmptyNameError(BadDataError):
    """Segment name is empty (400)."""

    def __init__(self, detail: str = "Segment name cannot be empty") -> None:
        super().__init__(detail=detail)


class LimitExceededError(BadDataError):
    """A configured value-count or segment-count limit was exceeded (400)."""

    def __init__(self, detail: str = "Limit exceeded") -> None:
        super().__init__(detail=detail)


class InvalidProjectError(BadDataError):
    """Segment project conflicts with the strategies using it (400)."""

    def __init__(self, detail: str = "Invalid project") -> None:
        super().__init__(detail=detail)


class NotFoundError(AppError):
    """Resource not found (404)."""

    def __init__(self, detail: str = "Resource not found") -> None:
        super().__init__(detail=detail, status_code=404)


class ConflictError(AppError):
    """Conflict error (409)."""

    def __init__(self, detail: str = "Conflict") -> None:
        super().__init__(detail=detail, status_code=409)


class DuplicateNameError(ConflictError):
    """Another segment already holds this name (409)."""

    def __init__(self, detail: str = "Segment name already exists") -> None:
        super().__init__(detail=detail)


class StoreError(AppError):
    """Underlying persistence failure (500)."""

    def __init__(self, detail: str = "Store error") -> None:
        super().__init__(detail=detail, status_code=500)


def register_exception_handlers(app: FastAPI) -> None:
    """Register custom exception handlers with a FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
        )
