"""
Response DTOs for authentication endpoints.

UserResponse            — public user shape embedded in most responses
RegisterResponse        — POST /auth/register  (201)
VerifyEmailResponse     — POST /auth/verify-email  (200)
ResendOtpResponse       — POST /auth/resend-otp  (200)
LoginResponse           — POST /auth/login  (200)
RefreshResponse         — POST /auth/refresh  (200)
LogoutAllResponse       — POST /auth/logout-all  (200)
ResetTokenStatusResponse — GET /auth/reset-password/{token}  (200)

No response carries the refresh token; it only travels in the HttpOnly
cookie.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict

from schemas.models.user import UserDoc


class UserResponse(BaseModel):
    """Public view of a user. Never includes the password hash."""

    model_config = ConfigDict(populate_by_name=True)

    id: str
    username: str
    fullname: str
    email: str
    role: str
    is_active: bool
    email_verified: bool
    last_login_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_doc(cls, user: UserDoc) -> "UserResponse":
        return cls(
            id=str(user.id),
            username=user.username,
            fullname=user.fullname,
            email=user.email,
            role=user.role,
            is_active=user.is_active,
            email_verified=user.email_verified,
            last_login_at=user.last_login_at,
            created_at=user.created_at,
            updated_at=user.updated_at,
        )


class RegisterResponse(BaseModel):
    """Response body for POST /auth/register (201)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    user: UserResponse
    requires_verification: bool = True
    verification_sent: bool


class VerifyEmailResponse(BaseModel):
    """Response body for POST /auth/verify-email (200)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    user: UserResponse


class ResendOtpResponse(BaseModel):
    """Response body for POST /auth/resend-otp (200)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    message: str
    email_sent: bool
    expires_at: datetime


class LoginResponse(BaseModel):
    """Response body for POST /auth/login (200)."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserResponse


class RefreshResponse(BaseModel):
    """Response body for POST /auth/refresh (200)."""

    model_config = ConfigDict(populate_by_name=True)

    access_token: str
    token_type: str = "Bearer"
    expires_in: int
    user: UserResponse


class LogoutAllResponse(BaseModel):
    """Response body for POST /auth/logout-all (200)."""

    model_config = ConfigDict(populate_by_name=True)

    success: bool = True
    revoked_sessions: int


class ResetTokenStatusResponse(BaseModel):
    """Response body for GET /auth/reset-password/{token} (200)."""

    model_config = ConfigDict(populate_by_name=True)

    valid: bool = True
    expires_at: datetime
