"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import (
    FieldValidationError,
    NotAuthenticatedError,
    SessionNotFoundError,
)

logger = logging.getLogger(__name__)


def _json(status_code: int, code: str, message: str, fields=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=error_response(code, message, fields).model_dump(mode="json"),
    )


def _request_fields(exc: RequestValidationError) -> dict[str, list[str]]:
    """Collapse pydantic error locations into {field: [messages]}."""
    fields: dict[str, list[str]] = {}
    for error in exc.errors():
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or "request"
        fields.setdefault(field, []).append(error.get("msg", "is invalid"))
    return fields


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(FieldValidationError)
    async def field_error_handler(request: Request, exc: FieldValidationError):
        return _json(422, ErrorCodes.VALIDATION_ERROR, "Validation failed", exc.errors)

    @app.exception_handler(NotAuthenticatedError)
    async def not_authenticated_handler(request: Request, exc: NotAuthenticatedError):
        return _json(401, ErrorCodes.NOT_AUTHENTICATED, "Authentication required")

    @app.exception_handler(SessionNotFoundError)
    async def session_not_found_handler(request: Request, exc: SessionNotFoundError):
        return _json(404, ErrorCodes.NOT_FOUND, "Session not found")

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return _json(
            422,
            ErrorCodes.VALIDATION_ERROR,
            "Validation failed",
            _request_fields(exc),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return _json(500, ErrorCodes.INTERNAL_ERROR, "An internal error occurred")
