"""
Mongo-backed repositories.

Each repository wraps one collection and speaks in document models. Expiry is
always part of the query (``expires_at > now``); nothing relies on TTL
indexes or on the cleanup sweep having run.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from repositories.otp_repository import OTPS_COLLECTION, OtpRepository
from repositories.refresh_token_repository import (
    REFRESH_TOKENS_COLLECTION,
    RefreshTokenRepository,
)
from repositories.reset_token_repository import (
    RESET_TOKENS_COLLECTION,
    ResetTokenRepository,
)
from repositories.user_repository import USERS_COLLECTION, UserRepository


@dataclass(frozen=True)
class Repositories:
    users: UserRepository
    otps: OtpRepository
    refresh_tokens: RefreshTokenRepository
    reset_tokens: ResetTokenRepository


def build_repositories(db: Any) -> Repositories:
    return Repositories(
        users=UserRepository(db[USERS_COLLECTION]),
        otps=OtpRepository(db[OTPS_COLLECTION]),
        refresh_tokens=RefreshTokenRepository(db[REFRESH_TOKENS_COLLECTION]),
        reset_tokens=ResetTokenRepository(db[RESET_TOKENS_COLLECTION]),
    )


async def ensure_indexes(db: Any) -> None:
    """Create the unique and lookup indexes every repository relies on."""
    repos = build_repositories(db)
    await repos.users.ensure_indexes()
    await repos.otps.ensure_indexes()
    await repos.refresh_tokens.ensure_indexes()
    await repos.reset_tokens.ensure_indexes()
