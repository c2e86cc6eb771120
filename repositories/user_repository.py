"""
User repository: all access to the `users` collection.

Reads leave out password_hash unless ``with_password=True``; only login and
password change ask for it.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pymongo import ASCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from repositories.errors import DuplicateKey, duplicate_field
from schemas.models.base import to_object_id
from schemas.models.user import UserDoc

USERS_COLLECTION = "users"

_WITHOUT_PASSWORD = {"password_hash": 0}


def _projection(with_password: bool) -> Optional[dict]:
    return None if with_password else _WITHOUT_PASSWORD


class UserRepository:
    def __init__(self, collection: Any) -> None:
        self._col = collection

    async def find_by_id(
        self, user_id: Any, with_password: bool = False
    ) -> Optional[UserDoc]:
        oid = to_object_id(user_id)
        if oid is None:
            return None
        doc = await self._col.find_one({"_id": oid}, _projection(with_password))
        return UserDoc.from_mongo(doc)

    async def find_by_email(
        self, email: str, with_password: bool = False
    ) -> Optional[UserDoc]:
        doc = await self._col.find_one({"email": email}, _projection(with_password))
        return UserDoc.from_mongo(doc)

    async def find_by_username(
        self, username: str, with_password: bool = False
    ) -> Optional[UserDoc]:
        doc = await self._col.find_one(
            {"username": username}, _projection(with_password)
        )
        return UserDoc.from_mongo(doc)

    async def create(self, user: UserDoc) -> UserDoc:
        """Insert *user* and return it with its generated id.

        Raises:
            DuplicateKey: username or email already taken.
        """
        try:
            result = await self._col.insert_one(user.to_mongo())
        except DuplicateKeyError as exc:
            raise DuplicateKey(duplicate_field(exc)) from exc
        return user.model_copy(update={"id": result.inserted_id})

    async def update(
        self, user_id: Any, fields: dict, now: datetime
    ) -> Optional[UserDoc]:
        """$set *fields* (plus updated_at) and return the new document.

        Raises:
            DuplicateKey: an email change collided with another account.
        """
        oid = to_object_id(user_id)
        if oid is None:
            return None
        try:
            doc = await self._col.find_one_and_update(
                {"_id": oid},
                {"$set": {**fields, "updated_at": now}},
                projection=_WITHOUT_PASSWORD,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError as exc:
            raise DuplicateKey(duplicate_field(exc)) from exc
        return UserDoc.from_mongo(doc)

    async def set_password(
        self, user_id: Any, password_hash: str, now: datetime
    ) -> bool:
        result = await self._col.update_one(
            {"_id": to_object_id(user_id)},
            {"$set": {"password_hash": password_hash, "updated_at": now}},
        )
        return result.matched_count == 1

    async def record_login(
        self, user_id: Any, device_type: Optional[str], now: datetime
    ) -> None:
        await self._col.update_one(
            {"_id": to_object_id(user_id)},
            {"$set": {"last_login_at": now, "last_login_device": device_type}},
        )

    async def ensure_indexes(self) -> None:
        await self._col.create_index([("username", ASCENDING)], unique=True)
        await self._col.create_index([("email", ASCENDING)], unique=True)
