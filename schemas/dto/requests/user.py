"""
Request DTOs for profile and admin endpoints.

UpdateProfileRequest    — PUT /user/profile
UpdateUserStatusRequest — PATCH /admin/users/{user_id}/status
"""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator

from shared.validators import normalize_email, validate_email, validate_fullname


class UpdateProfileRequest(BaseModel):
    """Request body for PUT /user/profile. At least one field is required."""

    model_config = ConfigDict(populate_by_name=True)

    fullname: Optional[str] = None
    email: Optional[str] = None

    @field_validator("fullname")
    @classmethod
    def _check_fullname(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        problems = validate_fullname(v)
        if problems:
            raise ValueError("; ".join(problems))
        return v.strip()

    @field_validator("email")
    @classmethod
    def _check_email(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        if not validate_email(v):
            raise ValueError("Please provide a valid email address")
        return normalize_email(v)

    @model_validator(mode="after")
    def _require_one_field(self) -> "UpdateProfileRequest":
        if self.fullname is None and self.email is None:
            raise ValueError("Provide fullname and/or email")
        return self


class UpdateUserStatusRequest(BaseModel):
    """Request body for PATCH /admin/users/{user_id}/status."""

    model_config = ConfigDict(populate_by_name=True)

    is_active: bool
