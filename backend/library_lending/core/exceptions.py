"""
Domain error taxonomy and the FastAPI handlers that render it.

Every failure carries a stable machine-readable ``reason`` plus a human
message. Clients branch on ``reason``; the message is for display only.
"""

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from library_lending.core.logging import get_logger

logger = get_logger(__name__)


class LibraryError(Exception):
    """Base class for all domain errors."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_reason = "internal"

    def __init__(self, message: str, reason: str | None = None):
        self.message = message
        self.reason = reason or self.default_reason
        super().__init__(message)

    def to_dict(self) -> dict:
        return {"reason": self.reason, "detail": self.message}


class InvalidArgument(LibraryError):
    """Malformed input. Caller's fault, never retried automatically."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_reason = "invalidArgument"


class NotFound(LibraryError):
    status_code = status.HTTP_404_NOT_FOUND
    default_reason = "notFound"


class Forbidden(LibraryError):
    status_code = status.HTTP_403_FORBIDDEN
    default_reason = "forbidden"


class Unauthorized(LibraryError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_reason = "unauthorized"


class Conflict(LibraryError):
    """State-based rejection. Retrying only helps once the state changes."""

    status_code = status.HTTP_409_CONFLICT
    default_reason = "conflict"


class Internal(LibraryError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_reason = "internal"


async def library_error_handler(request: Request, exc: LibraryError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("request_internal_error", reason=exc.reason, detail=exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    logger.info("request_validation_failed", errors=errors)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "reason": InvalidArgument.default_reason,
            "detail": "Invalid request parameters",
            "errors": errors,
        },
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("database_error", error=str(exc), error_type=type(exc).__name__)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"reason": Internal.default_reason, "detail": "Storage failure, please retry"},
    )
