"""
Store-level errors the services are allowed to interpret.

Only DuplicateKey crosses the repository boundary on purpose. Everything else
pymongo raises is an unexpected store failure and is converted to a generic
ServerError by services.guards.store_guard.
"""

from __future__ import annotations

from typing import Optional

from pymongo.errors import DuplicateKeyError


class DuplicateKey(Exception):
    """A unique index rejected a write. ``field`` names the indexed key."""

    def __init__(self, field: Optional[str]) -> None:
        super().__init__(f"duplicate value for {field or 'unknown field'}")
        self.field = field


def duplicate_field(exc: DuplicateKeyError) -> Optional[str]:
    """Return the first field of the violated index from the server details."""
    details = exc.details or {}
    pattern = details.get("keyPattern") or details.get("keyValue") or {}
    for key in pattern:
        return key
    return None
