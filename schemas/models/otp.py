"""
One-time code document model.

Maps to the `otps` MongoDB collection.

code_hash stores SHA-256(code); the plain code is never stored.
At most one unused record per (email, purpose) is authoritative: issuing a
new code deletes the unused ones first.
attempts never exceeds the configured maximum; the attempt that finds the
budget spent consumes the record.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field

from schemas.models.base import MongoBaseModel


class OtpPurpose(str, Enum):
    EMAIL_VERIFICATION = "email_verification"
    PASSWORD_RESET = "password_reset"


class OtpDoc(MongoBaseModel):
    """Document model for the `otps` collection."""

    email: str
    code_hash: str
    purpose: OtpPurpose
    expires_at: datetime
    is_used: bool = False
    attempts: int = Field(default=0, ge=0)
    created_at: Optional[datetime] = None
    used_at: Optional[datetime] = None
