"""
Exception handlers that give every error response the shape `{"error": str, ...}`.

Registered on the app in api.main. Stack traces and database details stay in
the server log.
"""
import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"

INVALID_EMAIL_MESSAGE = "Please enter a valid email address."
MISSING_PASSWORD_MESSAGE = "Please enter your password."
INVALID_URL_MESSAGE = "Valid URL is required"


def _error_response(
    status_code: int,
    body: dict[str, Any],
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(body),
        headers=headers,
    )


def friendly_validation_message(error: dict[str, Any]) -> str:
    """
    Turn one pydantic error into a message fit for a form.

    Email and URL problems get fixed wording, as does a missing password. Other
    messages lose pydantic's "Value error, " prefix.
    """
    loc = error.get("loc") or ()
    field = loc[-1] if loc else None
    message = str(error.get("msg", "Invalid request"))
    message = message.removeprefix("Value error, ")

    if field == "email":
        return INVALID_EMAIL_MESSAGE
    if field == "password" and error.get("type") == "missing":
        return MISSING_PASSWORD_MESSAGE
    if field == "url":
        return INVALID_URL_MESSAGE
    if error.get("type") == "missing" and field is not None:
        return f"{str(field).capitalize()} is required"
    return message


def _sqlstate(exc: IntegrityError) -> str | None:
    orig = exc.orig
    for attr in ("pgcode", "sqlstate"):
        code = getattr(orig, attr, None)
        if code:
            return str(code)
    # asyncpg errors arrive wrapped by SQLAlchemy's adapter
    cause = getattr(orig, "__cause__", None)
    code = getattr(cause, "sqlstate", None)
    return str(code) if code else None


async def http_exception_handler(
    _request: Request, exc: StarletteHTTPException,
) -> JSONResponse:
    """HTTPException: a dict detail is the body; anything else becomes `error`."""
    if isinstance(exc.detail, dict):
        body = dict(exc.detail)
        body.setdefault("error", "Request failed")
    elif exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == "Not Found":
        body = {"error": "Endpoint not found"}
    else:
        body = {"error": str(exc.detail)}
    return _error_response(exc.status_code, body, getattr(exc, "headers", None))


async def validation_exception_handler(
    _request: Request, exc: RequestValidationError,
) -> JSONResponse:
    """Request validation: 400 with the first problem only."""
    errors = exc.errors()
    message = friendly_validation_message(errors[0]) if errors else "Invalid request"
    return _error_response(status.HTTP_400_BAD_REQUEST, {"error": message})


async def integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    """Constraint violations that escaped the services."""
    code = _sqlstate(exc)
    logger.warning("Integrity error (sqlstate=%s): %s", code, exc.orig)
    if code == UNIQUE_VIOLATION:
        return _error_response(status.HTTP_409_CONFLICT, {"error": "Duplicate entry"})
    if code == FOREIGN_KEY_VIOLATION:
        return _error_response(status.HTTP_400_BAD_REQUEST, {"error": "Invalid reference"})
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, {"error": "Internal Server Error"},
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything else: log it, answer with a generic 500."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, {"error": "Internal Server Error"},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the handlers above on an application."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
