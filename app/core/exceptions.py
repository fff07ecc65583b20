"""
Error taxonomy and global exception handlers.

Every recognised failure is an ``AppError`` carrying a safe, client-facing
message and a status code. Anything else is logged and answered with a
generic message — stack traces only leave the process in development mode.
"""

from __future__ import annotations

import logging
import traceback

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings

logger = logging.getLogger(__name__)


# ── Taxonomy ────────────────────────────────────────────────────────
class AppError(Exception):
    """Operational error — the message is safe to show to the caller."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Something went wrong"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class ValidationFailed(AppError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid input"


class InvalidOrExpiredToken(BadRequest):
    default_message = "Token is invalid or has expired"


class Unauthorized(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "You are not logged in. Please log in to get access."


class InvalidToken(Unauthorized):
    default_message = "Invalid token. Please log in again."


class ExpiredToken(Unauthorized):
    default_message = "Your token has expired. Please log in again."


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "You do not have permission to perform this action"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Resource not found"


class Conflict(AppError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Duplicate value violates a uniqueness constraint"


class DeliveryFailed(AppError):
    default_message = "There was an error sending the email. Try again later."


class InternalError(AppError):
    default_message = "Something went very wrong!"


# ── Envelope ────────────────────────────────────────────────────────
def _error_response(
    status_code: int,
    message: str,
    exc: BaseException | None = None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    content: dict[str, object] = {"status": "error", "message": message}
    if settings.DEBUG and exc is not None:
        content["error"] = type(exc).__name__
        content["stack"] = "".join(traceback.format_exception(exc))
    return JSONResponse(status_code=status_code, content=content, headers=headers)


# ── Handlers ────────────────────────────────────────────────────────
async def _app_error_handler(_request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s: %s", type(exc).__name__, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, Unauthorized) else None
    return _error_response(exc.status_code, exc.message, exc, headers)


async def _validation_error_handler(
    _request: Request, exc: RequestValidationError
) -> JSONResponse:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return _error_response(
        ValidationFailed.status_code, f"Invalid input: {'; '.join(problems)}", exc
    )


async def _http_exception_handler(
    _request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    return _error_response(
        exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None)
    )


async def _rate_limit_handler(_request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return _error_response(
        status.HTTP_429_TOO_MANY_REQUESTS,
        f"Too many requests from this client, please try again later ({exc.detail}).",
    )


async def _integrity_error_handler(_request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Database integrity error: %s", exc.orig)
    return _error_response(Conflict.status_code, Conflict.default_message, exc)


async def _stale_data_handler(_request: Request, exc: StaleDataError) -> JSONResponse:
    logger.warning("Concurrent modification detected: %s", exc)
    return _error_response(
        status.HTTP_409_CONFLICT,
        "The record was modified by another request. Reload and try again.",
        exc,
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, InternalError.default_message, exc
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return _error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR, InternalError.default_message, exc
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(AppError, _app_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)  # type: ignore[arg-type]
    app.add_exception_handler(IntegrityError, _integrity_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(StaleDataError, _stale_data_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
