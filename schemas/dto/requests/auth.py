"""
Request DTOs for authentication endpoints.

RegisterRequest        — POST /auth/register
VerifyEmailRequest     — POST /auth/verify-email
ResendOtpRequest       — POST /auth/resend-otp
LoginRequest           — POST /auth/login
ForgotPasswordRequest  — POST /auth/forgot-password
ResetPasswordRequest   — POST /auth/reset-password
ChangePasswordRequest  — POST /auth/change-password

Shape checks only. Password strength (which depends on configuration) and
every account-state rule live in the services.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.validators import (
    PASSWORD_MAX_LENGTH,
    normalize_email,
    validate_email,
    validate_fullname,
    validate_username,
)


def _email(value: str) -> str:
    if not validate_email(value):
        raise ValueError("Please provide a valid email address")
    return normalize_email(value)


class _EmailBody(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str

    @field_validator("email")
    @classmethod
    def _check_email(cls, v: str) -> str:
        return _email(v)


class RegisterRequest(_EmailBody):
    """Request body for POST /auth/register."""

    username: str
    fullname: str
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)

    @field_validator("username")
    @classmethod
    def _check_username(cls, v: str) -> str:
        v = v.strip()
        problems = validate_username(v)
        if problems:
            raise ValueError("; ".join(problems))
        return v

    @field_validator("fullname")
    @classmethod
    def _check_fullname(cls, v: str) -> str:
        problems = validate_fullname(v)
        if problems:
            raise ValueError("; ".join(problems))
        return v.strip()


class VerifyEmailRequest(_EmailBody):
    """Request body for POST /auth/verify-email.

    ``code`` is the numeric OTP mailed to ``email``.
    """

    code: str

    @field_validator("code")
    @classmethod
    def _check_code(cls, v: str) -> str:
        v = v.strip()
        if not v.isdigit():
            raise ValueError("Verification code must contain digits only")
        return v


class ResendOtpRequest(_EmailBody):
    """Request body for POST /auth/resend-otp."""


class LoginRequest(BaseModel):
    """Request body for POST /auth/login."""

    model_config = ConfigDict(populate_by_name=True)

    username: str = Field(min_length=1)
    password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)


class ForgotPasswordRequest(_EmailBody):
    """Request body for POST /auth/forgot-password."""


class ResetPasswordRequest(BaseModel):
    """Request body for POST /auth/reset-password."""

    model_config = ConfigDict(populate_by_name=True)

    token: str = Field(min_length=1)
    new_password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)


class ChangePasswordRequest(BaseModel):
    """Request body for POST /auth/change-password."""

    model_config = ConfigDict(populate_by_name=True)

    current_password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)
    new_password: str = Field(min_length=1, max_length=PASSWORD_MAX_LENGTH)
