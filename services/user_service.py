"""
Profile, principal and admin operations on user accounts.

resolve_principal is the second half of access-token authentication: the
token proves who the caller was, this re-reads the account to decide whether
they may still act.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from errors import (
    AuthenticationError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    ValidationError,
)
from infrastructure.email.protocol import EmailProvider
from repositories.errors import DuplicateKey
from repositories.user_repository import UserRepository
from schemas.models.otp import OtpPurpose
from schemas.models.refresh_token import RevokedBy
from schemas.models.user import UserDoc, UserRole
from services.access_token_service import AccessClaims
from services.guards import conflict_for_field, store_guard
from services.otp_service import OtpService
from services.refresh_token_service import RefreshTokenService
from shared.datetime_utils import utcnow
from shared.logging import get_logger
from shared.validators import normalize_email

log = get_logger(__name__)


@dataclass(frozen=True)
class ProfileUpdate:
    user: UserDoc
    email_changed: bool = False
    verification_sent: bool = False


@dataclass(frozen=True)
class StatusChange:
    user: UserDoc
    revoked_sessions: int = 0


class UserService:
    def __init__(
        self,
        users: UserRepository,
        refresh_tokens: RefreshTokenService,
        otp: OtpService,
        email: EmailProvider,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._users = users
        self._refresh_tokens = refresh_tokens
        self._otp = otp
        self._email = email
        self._clock = clock

    @store_guard
    async def resolve_principal(self, claims: AccessClaims) -> UserDoc:
        """Load the account behind verified access-token *claims*.

        Raises:
            AuthenticationError: user_not_found.
            ForbiddenError: account_inactive, email_not_verified.
        """
        user = await self._users.find_by_id(claims.user_id)
        if user is None:
            raise AuthenticationError("User not found", code=ErrorCode.USER_NOT_FOUND)
        if not user.is_active:
            raise ForbiddenError(
                "Account is deactivated", code=ErrorCode.ACCOUNT_INACTIVE
            )
        if not user.email_verified:
            raise ForbiddenError(
                "Email not verified", code=ErrorCode.EMAIL_NOT_VERIFIED
            )
        return user

    @store_guard
    async def get_profile(self, user_id: Any) -> UserDoc:
        user = await self._users.find_by_id(user_id)
        if user is None:
            raise NotFoundError("User not found", code=ErrorCode.USER_NOT_FOUND)
        return user

    @store_guard
    async def update_profile(
        self,
        user_id: Any,
        fullname: Optional[str] = None,
        email: Optional[str] = None,
    ) -> ProfileUpdate:
        """Change the full name and/or email of *user_id*.

        A new email must be unique, resets ``email_verified`` and gets a
        fresh verification code; until it is confirmed the account cannot use
        its access or refresh tokens.
        """
        current = await self.get_profile(user_id)
        fields: dict = {}

        if fullname is not None and fullname.strip() != current.fullname:
            fields["fullname"] = fullname.strip()

        email_changed = False
        if email is not None:
            new_email = normalize_email(email)
            if new_email != current.email:
                holder = await self._users.find_by_email(new_email)
                if holder is not None and holder.id != current.id:
                    raise conflict_for_field("email")
                fields["email"] = new_email
                fields["email_verified"] = False
                email_changed = True

        if not fields:
            return ProfileUpdate(user=current)

        try:
            updated = await self._users.update(current.id, fields, self._clock())
        except DuplicateKey as exc:
            raise conflict_for_field(exc.field) from exc
        if updated is None:
            raise NotFoundError("User not found", code=ErrorCode.USER_NOT_FOUND)

        log.info(
            "profile_updated",
            user_id=str(updated.id),
            changed=sorted(k for k in fields if k != "email_verified"),
        )

        verification_sent = False
        if email_changed:
            verification_sent = await self._send_verification(updated)

        return ProfileUpdate(
            user=updated,
            email_changed=email_changed,
            verification_sent=verification_sent,
        )

    async def _send_verification(self, user: UserDoc) -> bool:
        try:
            issued = await self._otp.issue(user.email, OtpPurpose.EMAIL_VERIFICATION)
            return await self._email.send_verification_email(
                user.email, user.fullname, issued.code
            )
        except Exception as e:
            log.error(
                "verification_email_error",
                user_id=str(user.id),
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

    @store_guard
    async def set_active(
        self, user_id: Any, is_active: bool, actor: UserDoc
    ) -> StatusChange:
        """Activate or deactivate an account on behalf of an admin *actor*.

        Deactivation revokes every session of the account.

        Raises:
            ValidationError: the actor targeted their own account.
            ForbiddenError: insufficient_role (only a super admin may change
                another super admin).
            NotFoundError: user_not_found.
        """
        target = await self.get_profile(user_id)
        if target.id == actor.id:
            raise ValidationError("You cannot change the status of your own account")
        if (
            target.role == UserRole.SUPER_ADMIN.value
            and actor.role != UserRole.SUPER_ADMIN.value
        ):
            raise ForbiddenError(
                "Insufficient permissions", code=ErrorCode.INSUFFICIENT_ROLE
            )

        updated = await self._users.update(
            target.id, {"is_active": is_active}, self._clock()
        )
        if updated is None:
            raise NotFoundError("User not found", code=ErrorCode.USER_NOT_FOUND)

        revoked = 0
        if not is_active:
            revoked = await self._refresh_tokens.revoke_all(
                target.id, RevokedBy.ADMIN.value
            )

        log.info(
            "user_status_changed",
            user_id=str(target.id),
            actor_id=str(actor.id),
            is_active=is_active,
            revoked_count=revoked,
        )
        return StatusChange(user=updated, revoked_sessions=revoked)
