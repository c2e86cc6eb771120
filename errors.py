"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. Every error carries an explicit
``error_code`` (an ``ErrorCode`` member) so callers branch on the kind of
failure, never on the human-readable message. The class decides the HTTP
status; the code decides what the client can act on.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from shared.logging import get_logger

log = get_logger(__name__)


class ErrorCode(str, Enum):
    # generic
    VALIDATION_ERROR = "validation_error"
    AUTHENTICATION_ERROR = "authentication_error"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INTERNAL_ERROR = "internal_error"

    # registration / profile
    EMAIL_EXISTS = "email_exists"
    USERNAME_EXISTS = "username_exists"
    USER_NOT_FOUND = "user_not_found"
    ALREADY_VERIFIED = "already_verified"

    # one-time codes
    INVALID_OR_EXPIRED_CODE = "invalid_or_expired_code"
    MAX_ATTEMPTS_EXCEEDED = "max_attempts_exceeded"

    # credentials / account state
    INVALID_CREDENTIALS = "invalid_credentials"
    EMAIL_NOT_VERIFIED = "email_not_verified"
    ACCOUNT_INACTIVE = "account_inactive"
    INSUFFICIENT_ROLE = "insufficient_role"
    CURRENT_PASSWORD_INCORRECT = "current_password_incorrect"
    PASSWORD_UNCHANGED = "password_unchanged"

    # access tokens
    AUTHENTICATION_REQUIRED = "authentication_required"
    ACCESS_TOKEN_EXPIRED = "access_token_expired"
    MALFORMED_TOKEN = "malformed_token"

    # refresh tokens
    INVALID_FORMAT = "invalid_format"
    INVALID_REFRESH_TOKEN = "invalid_refresh_token"
    TOKEN_REVOKED = "token_revoked"
    TOKEN_EXPIRED = "token_expired"
    USER_INACTIVE = "user_inactive"

    # reset tokens
    INVALID_OR_EXPIRED_TOKEN = "invalid_or_expired_token"


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: ErrorCode = ErrorCode.INTERNAL_ERROR

    def __init__(
        self,
        message: str,
        *,
        code: Optional[ErrorCode] = None,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.error_code = code
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code.value}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = ErrorCode.VALIDATION_ERROR


class AuthenticationError(AppError):
    status_code = 401
    error_code = ErrorCode.AUTHENTICATION_ERROR


class ForbiddenError(AppError):
    status_code = 403
    error_code = ErrorCode.FORBIDDEN


class NotFoundError(AppError):
    status_code = 404
    error_code = ErrorCode.NOT_FOUND


class ConflictError(AppError):
    status_code = 409
    error_code = ErrorCode.CONFLICT


class ServerError(AppError):
    """Store or transport failure. The message is always generic."""

    status_code = 500
    error_code = ErrorCode.INTERNAL_ERROR


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        details = [
            {
                "field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"),
                "message": err.get("msg"),
            }
            for err in exc.errors()
        ]
        error = ValidationError("Validation failed", details=details)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        log.error(
            "unhandled_exception",
            path=request.url.path,
            error_type=type(exc).__name__,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "An internal server error occurred.",
                "code": ErrorCode.INTERNAL_ERROR.value,
            },
        )
