"""
Refresh token manager.

Refresh tokens are opaque 256-bit strings. The client keeps the raw value in
an HttpOnly cookie; the store keeps SHA-256(token) plus the session's device
metadata.

State per record: active, then revoked or expired. Both are terminal.
A successful rotate leaves the record active, advances last_used_at and hands
back the *same* token string together with a fresh access token.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from errors import (
    AuthenticationError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from repositories.refresh_token_repository import RefreshTokenRepository
from repositories.user_repository import UserRepository
from schemas.models.base import to_object_id
from schemas.models.refresh_token import (
    DeviceInfo,
    RefreshTokenDoc,
    RevokedBy,
    is_expired,
)
from schemas.models.user import UserDoc
from services.access_token_service import AccessTokenService
from services.guards import store_guard
from shared.crypto import hash_token
from shared.datetime_utils import utcnow
from shared.generators import generate_secure_token
from shared.logging import get_logger
from shared.validators import is_well_formed_token

log = get_logger(__name__)


@dataclass(frozen=True)
class IssuedRefreshToken:
    token: str
    record: RefreshTokenDoc


@dataclass(frozen=True)
class RefreshResult:
    access_token: str
    refresh_token: str
    record: RefreshTokenDoc
    user: UserDoc


class RefreshTokenService:
    def __init__(
        self,
        refresh_repo: RefreshTokenRepository,
        user_repo: UserRepository,
        access_tokens: AccessTokenService,
        *,
        ttl_seconds: int = 2592000,
        single_session: bool = False,
        revoked_retention_days: int = 7,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._repo = refresh_repo
        self._users = user_repo
        self._access_tokens = access_tokens
        self._ttl = timedelta(seconds=ttl_seconds)
        self._single_session = single_session
        self._revoked_retention = timedelta(days=revoked_retention_days)
        self._clock = clock

    @store_guard
    async def create(
        self,
        user_id: Any,
        device_info: Optional[DeviceInfo] = None,
        *,
        revoke_existing: Optional[bool] = None,
        ttl_seconds: Optional[int] = None,
    ) -> IssuedRefreshToken:
        """Open a new session for *user_id*.

        ``revoke_existing`` (default: the single_session setting) first
        revokes every other active session of the user.
        """
        if revoke_existing is None:
            revoke_existing = self._single_session
        now = self._clock()

        if revoke_existing:
            revoked = await self._repo.revoke_all_for_user(
                user_id, RevokedBy.SYSTEM.value, now
            )
            if revoked:
                log.info(
                    "sessions_superseded", user_id=str(user_id), revoked_count=revoked
                )

        ttl = timedelta(seconds=ttl_seconds) if ttl_seconds else self._ttl
        token = generate_secure_token(32)
        record = await self._repo.create(
            RefreshTokenDoc(
                user_id=to_object_id(user_id),
                token_hash=hash_token(token),
                expires_at=now + ttl,
                is_active=True,
                device_info=device_info,
                created_at=now,
                last_used_at=now,
            )
        )
        log.info(
            "refresh_token_created",
            user_id=str(user_id),
            session_id=str(record.id),
            device_type=device_info.device_type if device_info else None,
        )
        return IssuedRefreshToken(token=token, record=record)

    @store_guard
    async def rotate(self, token: Optional[str]) -> RefreshResult:
        """Exchange a live refresh token for a new access token.

        Failure order: invalid_format, invalid_refresh_token, token_revoked,
        token_expired, user_not_found, user_inactive (the session is revoked
        as a side effect), email_not_verified (the session is left usable).
        """
        if not token or not is_well_formed_token(token):
            raise ValidationError(
                "Invalid refresh token format", code=ErrorCode.INVALID_FORMAT
            )

        now = self._clock()
        record = await self._repo.find_by_hash(hash_token(token))
        if record is None:
            raise AuthenticationError(
                "Invalid refresh token", code=ErrorCode.INVALID_REFRESH_TOKEN
            )
        if not record.is_active:
            if record.revoked_by == RevokedBy.EXPIRED.value:
                raise AuthenticationError(
                    "Refresh token expired", code=ErrorCode.TOKEN_EXPIRED
                )
            raise AuthenticationError(
                "Refresh token has been revoked", code=ErrorCode.TOKEN_REVOKED
            )
        if is_expired(record, now):
            await self._repo.revoke(record.id, RevokedBy.EXPIRED.value, now)
            raise AuthenticationError(
                "Refresh token expired", code=ErrorCode.TOKEN_EXPIRED
            )

        user = await self._users.find_by_id(record.user_id)
        if user is None:
            raise AuthenticationError("User not found", code=ErrorCode.USER_NOT_FOUND)
        if not user.is_active:
            await self._repo.revoke(record.id, RevokedBy.SYSTEM.value, now)
            log.warning(
                "refresh_rejected", user_id=str(user.id), reason="user_inactive"
            )
            raise ForbiddenError(
                "Account is deactivated", code=ErrorCode.USER_INACTIVE
            )
        if not user.email_verified:
            raise ForbiddenError(
                "Email not verified", code=ErrorCode.EMAIL_NOT_VERIFIED
            )

        await self._repo.touch(record.id, now)
        access_token = self._access_tokens.issue(user)
        log.info("refresh_success", user_id=str(user.id), session_id=str(record.id))
        return RefreshResult(
            access_token=access_token,
            refresh_token=token,
            record=record.model_copy(update={"last_used_at": now}),
            user=user,
        )

    @store_guard
    async def revoke(
        self, token: Optional[str], revoked_by: str = RevokedBy.USER.value
    ) -> bool:
        """Revoke one session by its raw token. Unknown, malformed or already
        revoked tokens return False instead of raising."""
        if not token or not is_well_formed_token(token):
            return False
        record = await self._repo.find_by_hash(hash_token(token))
        if record is None or not record.is_active:
            return False
        revoked = await self._repo.revoke(
            record.id, RevokedBy(revoked_by).value, self._clock()
        )
        if revoked:
            log.info(
                "refresh_token_revoked",
                user_id=str(record.user_id),
                session_id=str(record.id),
                revoked_by=RevokedBy(revoked_by).value,
            )
        return revoked

    @store_guard
    async def revoke_all(
        self, user_id: Any, revoked_by: str = RevokedBy.USER.value
    ) -> int:
        count = await self._repo.revoke_all_for_user(
            user_id, RevokedBy(revoked_by).value, self._clock()
        )
        log.info(
            "refresh_tokens_revoked_all",
            user_id=str(user_id),
            revoked_count=count,
            revoked_by=RevokedBy(revoked_by).value,
        )
        return count

    @store_guard
    async def list_sessions(self, user_id: Any) -> list[RefreshTokenDoc]:
        return await self._repo.list_active_for_user(user_id, self._clock())

    @store_guard
    async def revoke_session(self, user_id: Any, session_id: str) -> None:
        """Revoke one of *user_id*'s own sessions by id.

        Raises:
            NotFoundError: no active session with that id belongs to the user.
        """
        record = await self._repo.find_by_id(session_id)
        if (
            record is None
            or str(record.user_id) != str(user_id)
            or not record.is_active
        ):
            raise NotFoundError("Session not found")
        await self._repo.revoke(record.id, RevokedBy.USER.value, self._clock())
        log.info("session_revoked", user_id=str(user_id), session_id=str(record.id))

    @store_guard
    async def cleanup_expired(self) -> int:
        now = self._clock()
        deleted = await self._repo.cleanup(now, now - self._revoked_retention)
        log.info("refresh_token_cleanup", deleted_count=deleted)
        return deleted
