"""User persistence.

``UserRepository`` is the narrow contract the auth services depend on. The
Mongo implementation is used in deployments; the in-memory one backs local
runs with ``USER_STORE=memory`` and the test suite.

Uniqueness violations on email/username surface as ``ConflictError``. The
refresh-token swap is a single-record compare-and-set so two concurrent
refreshes with the same token cannot both win.
"""
import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Protocol

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from .errors import ConflictError
from .models import Role, UserRecord


def _now() -> datetime:
    return datetime.now(timezone.utc)


class UserRepository(Protocol):
    async def find_by_id(self, user_id: str) -> Optional[UserRecord]: ...

    async def find_by_email(self, email: str) -> Optional[UserRecord]: ...

    async def find_by_username(self, username: str) -> Optional[UserRecord]: ...

    async def find_by_id_and_refresh_token(self, user_id: str, token: str) -> Optional[UserRecord]: ...

    async def find_by_id_and_live_reset_token(
        self, user_id: str, token: str, now: datetime
    ) -> Optional[UserRecord]: ...

    async def find_conflict(
        self, exclude_id: str, email: Optional[str], username: Optional[str]
    ) -> Optional[UserRecord]: ...

    async def list_users(self, role: Optional[Role] = None) -> List[UserRecord]: ...

    async def create(self, fields: Dict[str, Any]) -> UserRecord: ...

    async def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[UserRecord]: ...

    async def swap_refresh_token(self, user_id: str, expected: str, new_token: str) -> bool: ...

    async def consume_reset_token(
        self, user_id: str, token: str, now: datetime, changes: Dict[str, Any]
    ) -> Optional[UserRecord]: ...

    async def delete(self, user_id: str) -> bool: ...


def _conflict_for(fields: Dict[str, Any]) -> ConflictError:
    if "email" in fields and fields.get("email") is not None:
        return ConflictError("Email already registered")
    return ConflictError("Username already taken")


# ---------------------------------------------------------------- mongo

def _object_id(user_id: str) -> Optional[ObjectId]:
    try:
        return ObjectId(user_id)
    except (InvalidId, TypeError):
        return None


def _doc_to_record(doc: Optional[Dict[str, Any]]) -> Optional[UserRecord]:
    if not doc:
        return None
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    return UserRecord(**data)


class MongoUserRepository:
    def __init__(self, collection: AsyncIOMotorCollection):
        self.collection = collection

    async def ensure_indexes(self) -> None:
        await self.collection.create_index([("email", ASCENDING)], unique=True)
        # only string usernames take part in uniqueness
        await self.collection.create_index(
            [("username", ASCENDING)],
            unique=True,
            partialFilterExpression={"username": {"$type": "string"}},
        )

    async def _find_one(self, query: Dict[str, Any]) -> Optional[UserRecord]:
        return _doc_to_record(await self.collection.find_one(query))

    async def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        oid = _object_id(user_id)
        if oid is None:
            return None
        return await self._find_one({"_id": oid})

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        return await self._find_one({"email": email})

    async def find_by_username(self, username: str) -> Optional[UserRecord]:
        return await self._find_one({"username": username})

    async def find_by_id_and_refresh_token(self, user_id: str, token: str) -> Optional[UserRecord]:
        oid = _object_id(user_id)
        if oid is None or not token:
            return None
        return await self._find_one({"_id": oid, "refresh_token": token})

    async def find_by_id_and_live_reset_token(
        self, user_id: str, token: str, now: datetime
    ) -> Optional[UserRecord]:
        oid = _object_id(user_id)
        if oid is None or not token:
            return None
        return await self._find_one({"_id": oid, "reset_token": token, "reset_token_expiry": {"$gt": now}})

    async def find_conflict(
        self, exclude_id: str, email: Optional[str], username: Optional[str]
    ) -> Optional[UserRecord]:
        clauses = []
        if email:
            clauses.append({"email": email})
        if username:
            clauses.append({"username": username})
        if not clauses:
            return None
        query: Dict[str, Any] = {"$or": clauses}
        oid = _object_id(exclude_id)
        if oid is not None:
            query["_id"] = {"$ne": oid}
        return await self._find_one(query)

    async def list_users(self, role: Optional[Role] = None) -> List[UserRecord]:
        query: Dict[str, Any] = {}
        if role is not None:
            query["role"] = role.value
        items: List[UserRecord] = []
        async for doc in self.collection.find(query).sort("created_at", DESCENDING):
            items.append(_doc_to_record(doc))
        return items

    async def create(self, fields: Dict[str, Any]) -> UserRecord:
        now = _now()
        doc = {k: (v.value if isinstance(v, Role) else v) for k, v in fields.items()}
        doc.setdefault("role", Role.user.value)
        doc.setdefault("is_active", True)
        doc.setdefault("refresh_token", None)
        doc.setdefault("reset_token", None)
        doc.setdefault("reset_token_expiry", None)
        doc["created_at"] = now
        doc["updated_at"] = now
        try:
            result = await self.collection.insert_one(doc)
        except DuplicateKeyError as exc:
            raise _conflict_for(_duplicate_fields(exc, fields)) from exc
        doc["_id"] = result.inserted_id
        return _doc_to_record(doc)

    async def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[UserRecord]:
        oid = _object_id(user_id)
        if oid is None:
            return None
        update = {k: (v.value if isinstance(v, Role) else v) for k, v in changes.items()}
        update["updated_at"] = _now()
        try:
            doc = await self.collection.find_one_and_update(
                {"_id": oid}, {"$set": update}, return_document=ReturnDocument.AFTER
            )
        except DuplicateKeyError as exc:
            raise _conflict_for(_duplicate_fields(exc, changes)) from exc
        return _doc_to_record(doc)

    async def swap_refresh_token(self, user_id: str, expected: str, new_token: str) -> bool:
        oid = _object_id(user_id)
        if oid is None or not expected:
            return False
        result = await self.collection.update_one(
            {"_id": oid, "refresh_token": expected},
            {"$set": {"refresh_token": new_token, "updated_at": _now()}},
        )
        return result.modified_count == 1

    async def consume_reset_token(
        self, user_id: str, token: str, now: datetime, changes: Dict[str, Any]
    ) -> Optional[UserRecord]:
        oid = _object_id(user_id)
        if oid is None or not token:
            return None
        update = {**changes, "reset_token": None, "reset_token_expiry": None, "updated_at": _now()}
        doc = await self.collection.find_one_and_update(
            {"_id": oid, "reset_token": token, "reset_token_expiry": {"$gt": now}},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        return _doc_to_record(doc)

    async def delete(self, user_id: str) -> bool:
        oid = _object_id(user_id)
        if oid is None:
            return False
        result = await self.collection.delete_one({"_id": oid})
        return result.deleted_count == 1


def _duplicate_fields(exc: DuplicateKeyError, fields: Dict[str, Any]) -> Dict[str, Any]:
    key_pattern = (exc.details or {}).get("keyPattern") or {}
    if "username" in key_pattern:
        return {"username": fields.get("username")}
    return fields


# ---------------------------------------------------------------- memory

class InMemoryUserRepository:
    """Dict-backed store; each method runs without awaiting, so updates are atomic on the loop."""

    def __init__(self):
        self._users: Dict[str, UserRecord] = {}

    def _copy(self, record: Optional[UserRecord]) -> Optional[UserRecord]:
        return record.model_copy(deep=True) if record is not None else None

    def _check_unique(self, user_id: Optional[str], email: Optional[str], username: Optional[str]) -> None:
        for other in self._users.values():
            if other.id == user_id:
                continue
            if email is not None and other.email == email:
                raise ConflictError("Email already registered")
            if username is not None and other.username == username:
                raise ConflictError("Username already taken")

    async def find_by_id(self, user_id: str) -> Optional[UserRecord]:
        return self._copy(self._users.get(user_id))

    async def find_by_email(self, email: str) -> Optional[UserRecord]:
        for user in self._users.values():
            if user.email == email:
                return self._copy(user)
        return None

    async def find_by_username(self, username: str) -> Optional[UserRecord]:
        for user in self._users.values():
            if username is not None and user.username == username:
                return self._copy(user)
        return None

    async def find_by_id_and_refresh_token(self, user_id: str, token: str) -> Optional[UserRecord]:
        user = self._users.get(user_id)
        if user is None or not token or user.refresh_token != token:
            return None
        return self._copy(user)

    async def find_by_id_and_live_reset_token(
        self, user_id: str, token: str, now: datetime
    ) -> Optional[UserRecord]:
        user = self._users.get(user_id)
        if user is None or not token or user.reset_token != token:
            return None
        if user.reset_token_expiry is None or user.reset_token_expiry <= now:
            return None
        return self._copy(user)

    async def find_conflict(
        self, exclude_id: str, email: Optional[str], username: Optional[str]
    ) -> Optional[UserRecord]:
        for user in self._users.values():
            if user.id == exclude_id:
                continue
            if (email and user.email == email) or (username and user.username == username):
                return self._copy(user)
        return None

    async def list_users(self, role: Optional[Role] = None) -> List[UserRecord]:
        users = [u for u in self._users.values() if role is None or u.role == role]
        users.sort(key=lambda u: u.created_at or datetime.min.replace(tzinfo=timezone.utc), reverse=True)
        return [self._copy(u) for u in users]

    async def create(self, fields: Dict[str, Any]) -> UserRecord:
        self._check_unique(None, fields.get("email"), fields.get("username"))
        now = _now()
        record = UserRecord(id=uuid.uuid4().hex, created_at=now, updated_at=now, **copy.deepcopy(fields))
        self._users[record.id] = record
        return self._copy(record)

    async def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[UserRecord]:
        current = self._users.get(user_id)
        if current is None:
            return None
        self._check_unique(
            user_id,
            changes.get("email") if "email" in changes else None,
            changes.get("username") if "username" in changes else None,
        )
        updated = current.model_copy(update={**copy.deepcopy(changes), "updated_at": _now()})
        self._users[user_id] = UserRecord.model_validate(updated.model_dump())
        return self._copy(self._users[user_id])

    async def swap_refresh_token(self, user_id: str, expected: str, new_token: str) -> bool:
        current = self._users.get(user_id)
        if current is None or not expected or current.refresh_token != expected:
            return False
        self._users[user_id] = current.model_copy(update={"refresh_token": new_token, "updated_at": _now()})
        return True

    async def consume_reset_token(
        self, user_id: str, token: str, now: datetime, changes: Dict[str, Any]
    ) -> Optional[UserRecord]:
        current = self._users.get(user_id)
        if current is None or not token or current.reset_token != token:
            return None
        if current.reset_token_expiry is None or current.reset_token_expiry <= now:
            return None
        update = {**copy.deepcopy(changes), "reset_token": None, "reset_token_expiry": None, "updated_at": _now()}
        self._users[user_id] = current.model_copy(update=update)
        return self._copy(self._users[user_id])

    async def delete(self, user_id: str) -> bool:
        return self._users.pop(user_id, None) is not None
