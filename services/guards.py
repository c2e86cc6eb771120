"""
Boundary guard for service entry points.

Raw pymongo failures (timeouts, lost primaries, network errors) must never
reach a caller. store_guard logs them and re-raises a generic ServerError;
AppError subclasses and DuplicateKey pass through untouched.
conflict_for_field turns a DuplicateKey into the conflict a client sees.
"""

from __future__ import annotations

import functools
from typing import Any, Awaitable, Callable, Optional, TypeVar

from pymongo.errors import PyMongoError

from errors import ConflictError, ErrorCode, ServerError
from shared.logging import get_logger

log = get_logger(__name__)

T = TypeVar("T")


def store_guard(fn: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    @functools.wraps(fn)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await fn(*args, **kwargs)
        except PyMongoError as exc:
            log.error(
                "store_operation_failed",
                operation=fn.__qualname__,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            raise ServerError("Service temporarily unavailable") from exc

    return wrapper


def conflict_for_field(field: Optional[str]) -> ConflictError:
    """Map the field of a violated unique index to the matching conflict."""
    if field == "username":
        return ConflictError(
            "Username already taken", code=ErrorCode.USERNAME_EXISTS, field="username"
        )
    return ConflictError(
        "Email already registered", code=ErrorCode.EMAIL_EXISTS, field="email"
    )
