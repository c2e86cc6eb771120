"""
Authentication orchestrator.

Composes the credential hasher, OTP engine, token services and the email
provider into the account flows: register, verify email, resend OTP, login,
refresh, logout, change password, forgot and reset password.

Account-state gating happens here. Login never says which half of the
credentials was wrong; email_not_verified and account_inactive are only
disclosed after the password has been proven.
"""

from __future__ import annotations

import asyncio
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from errors import (
    AppError,
    AuthenticationError,
    ErrorCode,
    ForbiddenError,
    NotFoundError,
    ServerError,
    ValidationError,
)
from infrastructure.email.dispatcher import EmailDispatcher
from infrastructure.email.protocol import EmailProvider
from repositories.errors import DuplicateKey
from repositories.user_repository import UserRepository
from schemas.models.otp import OtpPurpose
from schemas.models.refresh_token import DeviceInfo, RevokedBy
from schemas.models.reset_token import ResetTokenDoc
from schemas.models.user import UserDoc, UserRole
from services.access_token_service import AccessTokenService
from services.guards import conflict_for_field, store_guard
from services.otp_service import OtpService
from services.password_reset_service import PasswordResetService
from services.refresh_token_service import RefreshResult, RefreshTokenService
from shared.crypto import CredentialHasher
from shared.datetime_utils import utcnow
from shared.logging import get_logger
from shared.validators import normalize_email, validate_password

log = get_logger(__name__)


@dataclass(frozen=True)
class RegistrationResult:
    user: UserDoc
    verification_sent: bool
    otp_expires_at: Optional[datetime] = None


@dataclass(frozen=True)
class OtpDelivery:
    email_sent: bool
    expires_at: datetime


@dataclass(frozen=True)
class LoginResult:
    user: UserDoc
    access_token: str
    expires_in: int
    refresh_token: str
    refresh_expires_at: datetime


def _invalid_credentials() -> AuthenticationError:
    return AuthenticationError(
        "Invalid username or password", code=ErrorCode.INVALID_CREDENTIALS
    )


class AuthService:
    def __init__(
        self,
        users: UserRepository,
        otp: OtpService,
        access_tokens: AccessTokenService,
        refresh_tokens: RefreshTokenService,
        password_resets: PasswordResetService,
        hasher: CredentialHasher,
        email: EmailProvider,
        dispatcher: EmailDispatcher,
        *,
        login_session_ttl_seconds: int = 604800,
        password_min_length: int = 6,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._users = users
        self._otp = otp
        self._access_tokens = access_tokens
        self._refresh_tokens = refresh_tokens
        self._password_resets = password_resets
        self._hasher = hasher
        self._email = email
        self._dispatcher = dispatcher
        self._login_session_ttl = login_session_ttl_seconds
        self._password_min_length = password_min_length
        self._clock = clock
        self._dummy_hash: Optional[str] = None

    # ── helpers ──────────────────────────────────────────────────────────────

    def _check_password(self, password: str, field: str = "password") -> None:
        missing = validate_password(password, self._password_min_length)
        if missing:
            raise ValidationError(
                "Password does not meet requirements", field=field, details=missing
            )

    async def _hash(self, password: str) -> str:
        return await asyncio.to_thread(self._hasher.hash, password)

    async def _verify(self, password: str, password_hash: str) -> bool:
        return await asyncio.to_thread(self._hasher.verify, password, password_hash)

    async def _burn_verification(self, password: str) -> None:
        """Spend one hash verification so unknown users cost as much as known ones."""
        if self._dummy_hash is None:
            self._dummy_hash = await self._hash(secrets.token_urlsafe(16))
        await self._verify(password, self._dummy_hash)

    async def _require_unverified_user(self, email: str) -> UserDoc:
        user = await self._users.find_by_email(email)
        if user is None:
            raise NotFoundError("User not found", code=ErrorCode.USER_NOT_FOUND)
        if user.email_verified:
            raise ValidationError(
                "Email is already verified", code=ErrorCode.ALREADY_VERIFIED
            )
        return user

    async def _send_verification(self, user: UserDoc) -> OtpDelivery:
        issued = await self._otp.issue(user.email, OtpPurpose.EMAIL_VERIFICATION)
        try:
            sent = await self._email.send_verification_email(
                user.email, user.fullname, issued.code
            )
        except Exception as e:
            log.error(
                "verification_email_error",
                user_id=str(user.id),
                error=str(e),
                error_type=type(e).__name__,
            )
            sent = False
        if not sent:
            log.warning("verification_email_failed", user_id=str(user.id))
        return OtpDelivery(email_sent=sent, expires_at=issued.expires_at)

    # ── registration & verification ──────────────────────────────────────────

    @store_guard
    async def register(
        self, username: str, fullname: str, email: str, password: str
    ) -> RegistrationResult:
        """Create an unverified account and mail it a verification code.

        Failing to issue or deliver the code does not undo the account; the
        result reports ``verification_sent=False`` and the client can ask for
        a resend.

        Raises:
            ConflictError: email_exists / username_exists.
            ValidationError: password too weak.
        """
        username = username.strip()
        email = normalize_email(email)
        self._check_password(password)

        if await self._users.find_by_email(email) is not None:
            raise conflict_for_field("email")
        if await self._users.find_by_username(username) is not None:
            raise conflict_for_field("username")

        now = self._clock()
        try:
            user = await self._users.create(
                UserDoc(
                    username=username,
                    fullname=fullname.strip(),
                    email=email,
                    password_hash=await self._hash(password),
                    role=UserRole.USER,
                    is_active=True,
                    email_verified=False,
                    created_at=now,
                    updated_at=now,
                )
            )
        except DuplicateKey as exc:
            log.warning("registration_failed", reason="duplicate_key", field=exc.field)
            raise conflict_for_field(exc.field) from exc

        user = user.model_copy(update={"password_hash": None})
        log.info("user_registered", user_id=str(user.id))

        try:
            delivery = await self._send_verification(user)
        except AppError as e:
            log.error(
                "verification_issue_failed", user_id=str(user.id), error=e.message
            )
            return RegistrationResult(user=user, verification_sent=False)

        return RegistrationResult(
            user=user,
            verification_sent=delivery.email_sent,
            otp_expires_at=delivery.expires_at,
        )

    @store_guard
    async def verify_email(self, email: str, code: str) -> UserDoc:
        """Confirm *email* with its OTP and mark the account verified.

        Raises:
            NotFoundError: user_not_found.
            ValidationError: already_verified, invalid_or_expired_code,
                max_attempts_exceeded.
        """
        email = normalize_email(email)
        user = await self._require_unverified_user(email)
        await self._otp.verify(email, code, OtpPurpose.EMAIL_VERIFICATION)

        updated = await self._users.update(
            user.id, {"email_verified": True}, self._clock()
        )
        if updated is None:
            raise NotFoundError("User not found", code=ErrorCode.USER_NOT_FOUND)

        log.info("email_verified", user_id=str(updated.id))
        self._dispatcher.dispatch(
            self._email.send_welcome_email(updated.email, updated.fullname),
            kind="welcome",
            email=updated.email,
        )
        return updated

    @store_guard
    async def resend_otp(self, email: str) -> OtpDelivery:
        """Issue a fresh verification code; the previous one stops working."""
        user = await self._require_unverified_user(normalize_email(email))
        delivery = await self._send_verification(user)
        log.info("otp_resent", user_id=str(user.id), email_sent=delivery.email_sent)
        return delivery

    # ── sessions ─────────────────────────────────────────────────────────────

    @store_guard
    async def login(
        self,
        username: str,
        password: str,
        device_info: Optional[DeviceInfo] = None,
    ) -> LoginResult:
        """Check credentials and open a session.

        Raises:
            AuthenticationError: invalid_credentials (unknown user or wrong
                password, indistinguishable).
            ForbiddenError: email_not_verified, then account_inactive.
        """
        user = await self._users.find_by_username(username.strip(), with_password=True)
        if user is None or not user.password_hash:
            await self._burn_verification(password)
            log.info("login_failed", reason="invalid_credentials")
            raise _invalid_credentials()

        if not await self._verify(password, user.password_hash):
            log.info("login_failed", reason="invalid_credentials", user_id=str(user.id))
            raise _invalid_credentials()

        if not user.email_verified:
            log.info("login_failed", reason="email_not_verified", user_id=str(user.id))
            raise ForbiddenError(
                "Please verify your email before logging in",
                code=ErrorCode.EMAIL_NOT_VERIFIED,
            )
        if not user.is_active:
            log.info("login_failed", reason="account_inactive", user_id=str(user.id))
            raise ForbiddenError(
                "Account is deactivated", code=ErrorCode.ACCOUNT_INACTIVE
            )

        now = self._clock()
        if self._hasher.needs_rehash(user.password_hash):
            await self._users.set_password(user.id, await self._hash(password), now)
            log.info("password_rehashed", user_id=str(user.id))

        access_token = self._access_tokens.issue(user)
        issued = await self._refresh_tokens.create(
            user.id, device_info, ttl_seconds=self._login_session_ttl
        )
        device_type = device_info.device_type if device_info else None
        await self._users.record_login(user.id, device_type, now)

        log.info(
            "login_success",
            user_id=str(user.id),
            session_id=str(issued.record.id),
            device_type=device_type,
        )
        return LoginResult(
            user=user.model_copy(
                update={
                    "password_hash": None,
                    "last_login_at": now,
                    "last_login_device": device_type,
                }
            ),
            access_token=access_token,
            expires_in=self._access_tokens.expires_in,
            refresh_token=issued.token,
            refresh_expires_at=issued.record.expires_at,
        )

    async def refresh(self, refresh_token: Optional[str]) -> RefreshResult:
        try:
            return await self._refresh_tokens.rotate(refresh_token)
        except AppError as e:
            log.info("refresh_rejected", reason=e.error_code.value)
            raise
        except Exception as e:
            log.error(
                "refresh_failed", error=str(e), error_type=type(e).__name__
            )
            raise ServerError("Service temporarily unavailable") from e

    async def logout(self, refresh_token: Optional[str]) -> bool:
        """Revoke the presented session. Never fails; returns whether a live
        session was actually revoked."""
        try:
            return await self._refresh_tokens.revoke(
                refresh_token, RevokedBy.USER.value
            )
        except Exception as e:
            log.warning(
                "logout_revoke_failed", error=str(e), error_type=type(e).__name__
            )
            return False

    async def logout_all(self, user_id: Any) -> int:
        return await self._refresh_tokens.revoke_all(user_id, RevokedBy.USER.value)

    # ── passwords ────────────────────────────────────────────────────────────

    @store_guard
    async def change_password(
        self, user_id: Any, current_password: str, new_password: str
    ) -> None:
        """Replace the password of an authenticated user.

        Raises:
            NotFoundError: user_not_found.
            ValidationError: current_password_incorrect, password_unchanged or
                a weak new password.
        """
        user = await self._users.find_by_id(user_id, with_password=True)
        if user is None:
            raise NotFoundError("User not found", code=ErrorCode.USER_NOT_FOUND)

        if not user.password_hash or not await self._verify(
            current_password, user.password_hash
        ):
            raise ValidationError(
                "Current password is incorrect",
                code=ErrorCode.CURRENT_PASSWORD_INCORRECT,
                field="current_password",
            )
        if new_password == current_password:
            raise ValidationError(
                "New password must be different from the current password",
                code=ErrorCode.PASSWORD_UNCHANGED,
                field="new_password",
            )
        self._check_password(new_password, field="new_password")

        await self._users.set_password(
            user.id, await self._hash(new_password), self._clock()
        )
        log.info("password_changed", user_id=str(user.id))
        self._dispatcher.dispatch(
            self._email.send_password_changed_email(user.email, user.fullname),
            kind="password_changed",
            email=user.email,
        )

    @store_guard
    async def forgot_password(self, email: str) -> None:
        """Start a reset for *email*.

        The caller sees the same outcome whether or not the account exists;
        only an existing, active account gets a token and an email.
        """
        email = normalize_email(email)
        user = await self._users.find_by_email(email)
        if user is None or not user.is_active:
            log.info("password_reset_skipped", account_usable=False)
            return

        try:
            issued = await self._password_resets.issue(email)
        except AppError as e:
            log.error(
                "password_reset_issue_failed", user_id=str(user.id), error=e.message
            )
            return

        self._dispatcher.dispatch(
            self._email.send_password_reset_email(email, user.fullname, issued.token),
            kind="password_reset",
            email=email,
        )
        log.info("password_reset_requested", user_id=str(user.id))

    async def verify_reset_token(self, token: Optional[str]) -> ResetTokenDoc:
        return await self._password_resets.find_valid(token)

    @store_guard
    async def reset_password(self, token: Optional[str], new_password: str) -> int:
        """Consume *token*, set the new password and sign out every session.

        Returns the number of refresh tokens revoked.

        Raises:
            ValidationError: invalid_or_expired_token or a weak password.
            NotFoundError: user_not_found.
            ForbiddenError: account_inactive.
        """
        self._check_password(new_password, field="new_password")
        record = await self._password_resets.find_valid(token)
        await self._password_resets.consume(record)

        user = await self._users.find_by_email(record.email)
        if user is None:
            raise NotFoundError("User not found", code=ErrorCode.USER_NOT_FOUND)
        if not user.is_active:
            raise ForbiddenError(
                "Account is deactivated", code=ErrorCode.ACCOUNT_INACTIVE
            )

        await self._users.set_password(
            user.id, await self._hash(new_password), self._clock()
        )
        revoked = await self._refresh_tokens.revoke_all(
            user.id, RevokedBy.SYSTEM.value
        )
        log.info("password_reset_completed", user_id=str(user.id), revoked_count=revoked)
        self._dispatcher.dispatch(
            self._email.send_password_changed_email(user.email, user.fullname),
            kind="password_changed",
            email=user.email,
        )
        return revoked
