"""
Service wiring.

build_container() constructs every collaborator once, from settings, and is
the only place that knows how the pieces fit together. The app lifespan,
the cleanup CLI and the tests all go through it.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from config import AppSettings
from infrastructure.email.dispatcher import EmailDispatcher
from infrastructure.email.protocol import EmailProvider
from repositories import Repositories, build_repositories
from services.access_token_service import AccessTokenService
from services.auth_service import AuthService
from services.otp_service import OtpService
from services.password_reset_service import PasswordResetService
from services.refresh_token_service import RefreshTokenService
from services.user_service import UserService
from shared.crypto import CredentialHasher
from shared.datetime_utils import utcnow


@dataclass(frozen=True)
class ServiceContainer:
    settings: AppSettings
    repos: Repositories
    hasher: CredentialHasher
    email: EmailProvider
    dispatcher: EmailDispatcher
    otp: OtpService
    access_tokens: AccessTokenService
    refresh_tokens: RefreshTokenService
    password_resets: PasswordResetService
    auth: AuthService
    users: UserService


def build_container(
    settings: AppSettings,
    db: Any,
    email: EmailProvider,
    *,
    repos: Optional[Repositories] = None,
    hasher: Optional[CredentialHasher] = None,
    clock: Callable[[], datetime] = utcnow,
) -> ServiceContainer:
    """Build all services on top of *db* (or pre-built *repos*)."""
    if repos is None:
        repos = build_repositories(db)
    if hasher is None:
        hasher = CredentialHasher(
            time_cost=settings.hashing.hash_time_cost,
            memory_cost=settings.hashing.hash_memory_cost,
            parallelism=settings.hashing.hash_parallelism,
        )
    dispatcher = EmailDispatcher()

    otp = OtpService(
        repos.otps,
        length=settings.otp.otp_length,
        expiry_minutes=settings.otp.otp_expiry_minutes,
        max_attempts=settings.otp.otp_max_attempts,
        used_retention_hours=settings.otp.otp_used_retention_hours,
        clock=clock,
    )
    access_tokens = AccessTokenService(settings.jwt, clock=clock)
    refresh_tokens = RefreshTokenService(
        repos.refresh_tokens,
        repos.users,
        access_tokens,
        ttl_seconds=settings.session.refresh_token_ttl_seconds,
        single_session=settings.session.single_session,
        revoked_retention_days=settings.session.revoked_retention_days,
        clock=clock,
    )
    password_resets = PasswordResetService(
        repos.reset_tokens,
        expiry_minutes=settings.reset.reset_token_expiry_minutes,
        used_retention_hours=settings.reset.reset_token_retention_hours,
        clock=clock,
    )
    auth = AuthService(
        repos.users,
        otp,
        access_tokens,
        refresh_tokens,
        password_resets,
        hasher,
        email,
        dispatcher,
        login_session_ttl_seconds=settings.session.login_session_ttl_seconds,
        password_min_length=settings.hashing.password_min_length,
        clock=clock,
    )
    users = UserService(repos.users, refresh_tokens, otp, email, clock=clock)

    return ServiceContainer(
        settings=settings,
        repos=repos,
        hasher=hasher,
        email=email,
        dispatcher=dispatcher,
        otp=otp,
        access_tokens=access_tokens,
        refresh_tokens=refresh_tokens,
        password_resets=password_resets,
        auth=auth,
        users=users,
    )
