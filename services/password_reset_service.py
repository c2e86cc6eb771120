"""
Reset token engine.

A reset token is a single-use 256-bit secret mailed to the account owner.
Issuing one supersedes any unused token for the same email. Consumption is
an atomic conditional update, so two concurrent resets with the same token
cannot both succeed.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from errors import ErrorCode, ValidationError
from repositories.reset_token_repository import ResetTokenRepository
from schemas.models.reset_token import ResetTokenDoc
from services.guards import store_guard
from shared.crypto import hash_token
from shared.datetime_utils import utcnow
from shared.generators import generate_secure_token
from shared.logging import get_logger
from shared.validators import is_well_formed_token

log = get_logger(__name__)


@dataclass(frozen=True)
class IssuedResetToken:
    token: str
    expires_at: datetime


def _invalid_token() -> ValidationError:
    return ValidationError(
        "Invalid or expired reset token", code=ErrorCode.INVALID_OR_EXPIRED_TOKEN
    )


class PasswordResetService:
    def __init__(
        self,
        reset_repo: ResetTokenRepository,
        *,
        expiry_minutes: int = 15,
        used_retention_hours: int = 24,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = reset_repo
        self._expiry = timedelta(minutes=expiry_minutes)
        self._used_retention = timedelta(hours=used_retention_hours)
        self._clock = clock

    @property
    def expiry_minutes(self) -> int:
        return int(self._expiry.total_seconds() // 60)

    @store_guard
    async def issue(self, email: str) -> IssuedResetToken:
        now = self._clock()
        superseded = await self._repo.invalidate_for_email(email)
        token = generate_secure_token(32)
        expires_at = now + self._expiry
        await self._repo.create(
            ResetTokenDoc(
                email=email,
                token_hash=hash_token(token),
                expires_at=expires_at,
                used=False,
                created_at=now,
            )
        )
        log.info("reset_token_issued", email=email, superseded_count=superseded)
        return IssuedResetToken(token=token, expires_at=expires_at)

    @store_guard
    async def find_valid(self, token: Optional[str]) -> ResetTokenDoc:
        """Return the unused, unexpired record for *token*.

        Raises:
            ValidationError: invalid_or_expired_token.
        """
        if not token or not is_well_formed_token(token.strip()):
            raise _invalid_token()
        record = await self._repo.find_valid(hash_token(token.strip()), self._clock())
        if record is None:
            raise _invalid_token()
        return record

    @store_guard
    async def consume(self, record: ResetTokenDoc) -> None:
        """Mark *record* used. Losing a concurrent race counts as invalid."""
        if not await self._repo.mark_used(record.id, self._clock()):
            log.warning("reset_token_rejected", email=record.email, reason="race_lost")
            raise _invalid_token()
        log.info("reset_token_consumed", email=record.email)

    @store_guard
    async def cleanup_expired(self) -> int:
        now = self._clock()
        deleted = await self._repo.cleanup(now, now - self._used_retention)
        log.info("reset_token_cleanup", deleted_count=deleted)
        return deleted
