"""
Refresh token document model.

Maps to the `refresh-tokens` MongoDB collection.

token_hash stores SHA-256(token); the raw token only ever lives in the
client's HttpOnly cookie. A token is usable iff it is active and unexpired.
Revocation is terminal: nothing ever sets is_active back to True.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel

from schemas.models.base import MongoBaseModel, PyObjectId
from shared.datetime_utils import is_past


class RevokedBy(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SYSTEM = "system"
    EXPIRED = "expired"


class DeviceInfo(BaseModel):
    """Client metadata captured when the session was created."""

    user_agent: str = "unknown"
    ip_address: str = "unknown"
    device_type: str = "desktop"
    browser: str = "unknown"
    os: str = "unknown"


class RefreshTokenDoc(MongoBaseModel):
    """Document model for the `refresh-tokens` collection."""

    user_id: PyObjectId
    token_hash: str
    expires_at: datetime
    is_active: bool = True
    device_info: Optional[DeviceInfo] = None
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    revoked_at: Optional[datetime] = None
    revoked_by: Optional[RevokedBy] = None


def is_expired(token: RefreshTokenDoc, now: datetime) -> bool:
    return is_past(token.expires_at, now)


def is_usable(token: RefreshTokenDoc, now: datetime) -> bool:
    return token.is_active and not is_expired(token, now)
