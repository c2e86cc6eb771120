"""
Password reset token document model.

Maps to the `reset-tokens` MongoDB collection.

token_hash stores SHA-256(token). A token is single-use: `used` flips once,
through a conditional update, and never back.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from schemas.models.base import MongoBaseModel


class ResetTokenDoc(MongoBaseModel):
    """Document model for the `reset-tokens` collection."""

    email: str
    token_hash: str
    expires_at: datetime
    used: bool = False
    used_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
