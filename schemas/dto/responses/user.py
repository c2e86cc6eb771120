"""
Response DTOs for profile, session and admin endpoints.

ProfileResponse        — GET /user/profile
ProfileUpdateResponse  — PUT /user/profile
SessionResponse        — one entry of GET /user/sessions
SessionsResponse       — GET /user/sessions
UserStatusResponse     — PATCH /admin/users/{user_id}/status
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.dto.responses.auth import UserResponse
from schemas.models.refresh_token import DeviceInfo, RefreshTokenDoc


class ProfileResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user: UserResponse


class ProfileUpdateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    user: UserResponse
    email_changed: bool
    verification_sent: bool


class SessionResponse(BaseModel):
    """A signed-in device. The token itself is never exposed."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    device_info: Optional[DeviceInfo] = None
    created_at: Optional[datetime] = None
    last_used_at: Optional[datetime] = None
    expires_at: datetime

    @classmethod
    def from_doc(cls, token: RefreshTokenDoc) -> "SessionResponse":
        return cls(
            id=str(token.id),
            device_info=token.device_info,
            created_at=token.created_at,
            last_used_at=token.last_used_at,
            expires_at=token.expires_at,
        )


class SessionsResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    sessions: list[SessionResponse]
    total: int


class UserStatusResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    user: UserResponse
    revoked_sessions: int
