"""
OTP repository: the `otps` collection.

Attempt counting and consumption are single conditional updates so two
concurrent verifications can never both spend the same attempt or both
consume the same code.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pymongo import ASCENDING, DESCENDING, ReturnDocument

from schemas.models.otp import OtpDoc

OTPS_COLLECTION = "otps"


class OtpRepository:
    def __init__(self, collection: Any) -> None:
        self._col = collection

    async def invalidate(self, email: str, purpose: str) -> int:
        """Delete every unused code for (email, purpose)."""
        result = await self._col.delete_many(
            {"email": email, "purpose": purpose, "is_used": False}
        )
        return result.deleted_count

    async def create(self, otp: OtpDoc) -> OtpDoc:
        result = await self._col.insert_one(otp.to_mongo())
        return otp.model_copy(update={"id": result.inserted_id})

    async def find_active(
        self, email: str, purpose: str, now: datetime
    ) -> Optional[OtpDoc]:
        """Newest unused, unexpired code for (email, purpose)."""
        doc = await self._col.find_one(
            {
                "email": email,
                "purpose": purpose,
                "is_used": False,
                "expires_at": {"$gt": now},
            },
            sort=[("created_at", DESCENDING)],
        )
        return OtpDoc.from_mongo(doc)

    async def increment_attempts(
        self, otp_id: Any, max_attempts: int
    ) -> Optional[OtpDoc]:
        """Spend one attempt. Returns None when the code was consumed or the
        budget was spent concurrently."""
        doc = await self._col.find_one_and_update(
            {"_id": otp_id, "is_used": False, "attempts": {"$lt": max_attempts}},
            {"$inc": {"attempts": 1}},
            return_document=ReturnDocument.AFTER,
        )
        return OtpDoc.from_mongo(doc)

    async def mark_used(self, otp_id: Any, now: datetime) -> bool:
        """Consume the code. False when someone else already did."""
        result = await self._col.update_one(
            {"_id": otp_id, "is_used": False},
            {"$set": {"is_used": True, "used_at": now}},
        )
        return result.modified_count == 1

    async def cleanup(self, now: datetime, used_before: datetime) -> int:
        result = await self._col.delete_many(
            {
                "$or": [
                    {"expires_at": {"$lte": now}},
                    {"is_used": True, "used_at": {"$lte": used_before}},
                ]
            }
        )
        return result.deleted_count

    async def ensure_indexes(self) -> None:
        await self._col.create_index(
            [("email", ASCENDING), ("purpose", ASCENDING), ("is_used", ASCENDING)]
        )
        await self._col.create_index([("expires_at", ASCENDING)])
