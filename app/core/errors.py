# app/core/errors.py
from typing import Optional

from fastapi import FastAPI, Request, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from app.core.logger import logger


class InvitationError(HTTPException):
    """HTTPException carrying a stable machine-readable error code."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "invitation_error"
    default_detail = "Invitation error"

    def __init__(self, detail: Optional[str] = None, error_code: Optional[str] = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail)
        if error_code:
            self.error_code = error_code


class NotFound(InvitationError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"
    default_detail = "Invitation not found"


class Forbidden(InvitationError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "forbidden"
    default_detail = "You do not have access to this trip"


class InvalidState(InvitationError):
    error_code = "invitation_invalid"
    default_detail = "This invitation is no longer valid"


class InvalidCode(InvitationError):
    error_code = "invalid_code"
    default_detail = "Invitation code must be exactly 6 digits"


class Conflict(InvitationError):
    error_code = "already_participant"
    default_detail = "You are already a participant of this trip"


class RateLimited(InvitationError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error_code = "rate_limited"
    default_detail = "Too many attempts, try again later"


class GenerationExhausted(InvitationError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "generation_exhausted"
    default_detail = "Could not generate a unique invitation, try again"


class StorageFailure(InvitationError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "storage_failure"
    default_detail = "Internal server error"


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InvitationError)
    async def invitation_error_handler(request: Request, exc: InvitationError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}")
        else:
            logger.warning(f"{request.method} {request.url.path} -> {exc.status_code} {exc.error_code}: {exc.detail}")
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "error": exc.error_code},
        )

    @app.exception_handler(SQLAlchemyError)
    async def storage_error_handler(request: Request, exc: SQLAlchemyError):
        logger.exception(f"Storage failure on {request.method} {request.url.path}")
        failure = StorageFailure()
        return JSONResponse(
            status_code=failure.status_code,
            content={"detail": failure.detail, "error": failure.error_code},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal server error", "error": "internal_error"},
        )
