"""
User document model.

Maps to the `users` MongoDB collection.

password_hash is excluded from every repository read unless the caller asks
for it explicitly (login, password change), so a UserDoc handed to a route
normally carries ``password_hash=None``.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from schemas.models.base import MongoBaseModel


class UserRole(str, Enum):
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


ADMIN_ROLES = frozenset({UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value})


class UserDoc(MongoBaseModel):
    """Document model for the `users` collection."""

    username: str
    fullname: str
    email: str
    password_hash: Optional[str] = None
    role: UserRole = UserRole.USER
    is_active: bool = True
    email_verified: bool = False
    last_login_at: Optional[datetime] = None
    last_login_device: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def has_role(user: UserDoc, *roles: str) -> bool:
    return user.role in {str(getattr(r, "value", r)) for r in roles}


def is_admin(user: UserDoc) -> bool:
    return user.role in ADMIN_ROLES
