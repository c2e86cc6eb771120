"""
One-time code engine.

Codes prove control of an email address. They are numeric, short-lived,
single-use and attempt-limited. Only SHA-256(code) is stored.

Attempt gate: a record whose attempts already reached ``max_attempts`` is
rejected before any comparison. With max_attempts=3, three wrong codes each
fail with invalid_or_expired_code; the fourth submission, right or wrong,
consumes the record and fails with max_attempts_exceeded.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from errors import ErrorCode, ValidationError
from repositories.otp_repository import OtpRepository
from schemas.models.otp import OtpDoc, OtpPurpose
from services.guards import store_guard
from shared.crypto import digests_match, hash_token
from shared.datetime_utils import utcnow
from shared.generators import generate_otp_code
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class IssuedOtp:
    code: str
    expires_at: datetime


def _invalid_code() -> ValidationError:
    return ValidationError(
        "Invalid or expired verification code",
        code=ErrorCode.INVALID_OR_EXPIRED_CODE,
    )


class OtpService:
    def __init__(
        self,
        otp_repo: OtpRepository,
        *,
        length: int = 6,
        expiry_minutes: int = 10,
        max_attempts: int = 3,
        used_retention_hours: int = 24,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = otp_repo
        self._length = length
        self._expiry = timedelta(minutes=expiry_minutes)
        self._max_attempts = max_attempts
        self._used_retention = timedelta(hours=used_retention_hours)
        self._clock = clock

    @property
    def expiry_minutes(self) -> int:
        return int(self._expiry.total_seconds() // 60)

    @store_guard
    async def issue(self, email: str, purpose: OtpPurpose) -> IssuedOtp:
        """Replace any outstanding code for (email, purpose) with a new one."""
        purpose = OtpPurpose(purpose).value
        now = self._clock()
        await self._repo.invalidate(email, purpose)

        code = generate_otp_code(self._length)
        expires_at = now + self._expiry
        await self._repo.create(
            OtpDoc(
                email=email,
                code_hash=hash_token(code),
                purpose=purpose,
                expires_at=expires_at,
                is_used=False,
                attempts=0,
                created_at=now,
            )
        )
        log.info("otp_issued", email=email, purpose=purpose)
        return IssuedOtp(code=code, expires_at=expires_at)

    @store_guard
    async def verify(self, email: str, code: str, purpose: OtpPurpose) -> None:
        """Consume the outstanding code for (email, purpose) if *code* matches.

        Raises:
            ValidationError: invalid_or_expired_code or max_attempts_exceeded.
        """
        purpose = OtpPurpose(purpose).value
        now = self._clock()
        record = await self._repo.find_active(email, purpose, now)
        if record is None:
            log.info("otp_rejected", email=email, purpose=purpose, reason="not_found")
            raise _invalid_code()

        if record.attempts >= self._max_attempts:
            await self._repo.mark_used(record.id, now)
            log.warning("otp_rejected", email=email, purpose=purpose, reason="max_attempts")
            raise ValidationError(
                "Too many failed attempts. Please request a new code.",
                code=ErrorCode.MAX_ATTEMPTS_EXCEEDED,
            )

        spent = await self._repo.increment_attempts(record.id, self._max_attempts)
        if spent is None:
            log.info("otp_rejected", email=email, purpose=purpose, reason="race_lost")
            raise _invalid_code()

        if not digests_match(hash_token((code or "").strip()), record.code_hash):
            log.info(
                "otp_rejected",
                email=email,
                purpose=purpose,
                reason="mismatch",
                attempt_count=spent.attempts,
            )
            raise _invalid_code()

        if not await self._repo.mark_used(record.id, now):
            log.info("otp_rejected", email=email, purpose=purpose, reason="race_lost")
            raise _invalid_code()

        log.info("otp_verified", email=email, purpose=purpose)

    @store_guard
    async def has_valid(self, email: str, purpose: OtpPurpose) -> bool:
        record = await self._repo.find_active(
            email, OtpPurpose(purpose).value, self._clock()
        )
        return record is not None

    @store_guard
    async def cleanup_expired(self) -> int:
        now = self._clock()
        deleted = await self._repo.cleanup(now, now - self._used_retention)
        log.info("otp_cleanup", deleted_count=deleted)
        return deleted
