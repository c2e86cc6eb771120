"""Reset token repository: the `reset-tokens` collection."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pymongo import ASCENDING
from pymongo.errors import DuplicateKeyError

from repositories.errors import DuplicateKey, duplicate_field
from schemas.models.reset_token import ResetTokenDoc

RESET_TOKENS_COLLECTION = "reset-tokens"


class ResetTokenRepository:
    def __init__(self, collection: Any) -> None:
        self._col = collection

    async def create(self, token: ResetTokenDoc) -> ResetTokenDoc:
        try:
            result = await self._col.insert_one(token.to_mongo())
        except DuplicateKeyError as exc:
            raise DuplicateKey(duplicate_field(exc)) from exc
        return token.model_copy(update={"id": result.inserted_id})

    async def invalidate_for_email(self, email: str) -> int:
        """Drop unused tokens for *email*; a new request supersedes them."""
        result = await self._col.delete_many({"email": email, "used": False})
        return result.deleted_count

    async def find_valid(
        self, token_hash: str, now: datetime
    ) -> Optional[ResetTokenDoc]:
        doc = await self._col.find_one(
            {"token_hash": token_hash, "used": False, "expires_at": {"$gt": now}}
        )
        return ResetTokenDoc.from_mongo(doc)

    async def mark_used(self, token_id: Any, now: datetime) -> bool:
        result = await self._col.update_one(
            {"_id": token_id, "used": False},
            {"$set": {"used": True, "used_at": now}},
        )
        return result.modified_count == 1

    async def cleanup(self, now: datetime, used_before: datetime) -> int:
        result = await self._col.delete_many(
            {
                "$or": [
                    {"expires_at": {"$lte": now}},
                    {"used": True, "used_at": {"$lte": used_before}},
                ]
            }
        )
        return result.deleted_count

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("token_hash", ASCENDING)], unique=True)
        await self._col.create_index([("email", ASCENDING), ("used", ASCENDING)])
