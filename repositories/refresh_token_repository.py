"""
Refresh token repository: the `refresh-tokens` collection.

find_by_hash deliberately ignores is_active and expires_at so the caller can
tell "unknown" from "revoked" from "expired". Revocation only ever moves a
row from active to inactive.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError

from repositories.errors import DuplicateKey, duplicate_field
from schemas.models.base import to_object_id
from schemas.models.refresh_token import RefreshTokenDoc

REFRESH_TOKENS_COLLECTION = "refresh-tokens"


def _revocation(revoked_by: str, now: datetime) -> dict:
    return {"$set": {"is_active": False, "revoked_at": now, "revoked_by": revoked_by}}


class RefreshTokenRepository:
    def __init__(self, collection: Any) -> None:
        self._col = collection

    async def create(self, token: RefreshTokenDoc) -> RefreshTokenDoc:
        try:
            result = await self._col.insert_one(token.to_mongo())
        except DuplicateKeyError as exc:
            raise DuplicateKey(duplicate_field(exc)) from exc
        return token.model_copy(update={"id": result.inserted_id})

    async def find_by_hash(self, token_hash: str) -> Optional[RefreshTokenDoc]:
        doc = await self._col.find_one({"token_hash": token_hash})
        return RefreshTokenDoc.from_mongo(doc)

    async def find_by_id(self, token_id: Any) -> Optional[RefreshTokenDoc]:
        oid = to_object_id(token_id)
        if oid is None:
            return None
        doc = await self._col.find_one({"_id": oid})
        return RefreshTokenDoc.from_mongo(doc)

    async def touch(self, token_id: Any, now: datetime) -> bool:
        result = await self._col.update_one(
            {"_id": token_id, "is_active": True},
            {"$set": {"last_used_at": now}},
        )
        return result.matched_count == 1

    async def revoke(self, token_id: Any, revoked_by: str, now: datetime) -> bool:
        result = await self._col.update_one(
            {"_id": to_object_id(token_id), "is_active": True},
            _revocation(revoked_by, now),
        )
        return result.modified_count == 1

    async def revoke_all_for_user(
        self, user_id: Any, revoked_by: str, now: datetime
    ) -> int:
        result = await self._col.update_many(
            {"user_id": to_object_id(user_id), "is_active": True},
            _revocation(revoked_by, now),
        )
        return result.modified_count

    async def list_active_for_user(
        self, user_id: Any, now: datetime
    ) -> list[RefreshTokenDoc]:
        cursor = self._col.find(
            {
                "user_id": to_object_id(user_id),
                "is_active": True,
                "expires_at": {"$gt": now},
            }
        ).sort("created_at", DESCENDING)
        docs = await cursor.to_list(length=None)
        return [RefreshTokenDoc.from_mongo(doc) for doc in docs]

    async def cleanup(self, now: datetime, revoked_before: datetime) -> int:
        result = await self._col.delete_many(
            {
                "$or": [
                    {"expires_at": {"$lte": now}},
                    {"is_active": False, "revoked_at": {"$lte": revoked_before}},
                ]
            }
        )
        return result.deleted_count

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("token_hash", ASCENDING)], unique=True)
        await self._col.create_index([("user_id", ASCENDING), ("is_active", ASCENDING)])
        await self._col.create_index([("expires_at", ASCENDING)])
