"""Session persistence keyed by client MAC."""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from pymongo import ASCENDING, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase

from sulitwifi.core.db import store_errors
from sulitwifi.core.modules.session.models import Session


class SessionStore(ABC):
    async def setup(self) -> None:
        """Prepare the store (indexes); called once on startup."""

    @abstractmethod
    async def put(self, session: Session) -> Session:
        """Replace whatever session the MAC holds with this one."""

    @abstractmethod
    async def find(self, mac: str) -> Session | None:
        """Stored session for the MAC, live or not."""

    @abstractmethod
    async def delete(self, mac: str) -> bool:
        """Remove the MAC's session; returns False when there was none."""

    @abstractmethod
    async def delete_grant(self, mac: str, grant_id: UUID) -> bool:
        """Remove the session only if it is still this particular grant."""

    @abstractmethod
    async def count_live(self, now: datetime) -> int: ...

    @abstractmethod
    async def list_live(self, now: datetime) -> list[Session]: ...

    @abstractmethod
    async def list_expired(self, now: datetime) -> list[Session]: ...


class MongoSessionStore(SessionStore):
    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self._collection = database.get_collection("sessions")

    async def setup(self) -> None:
        with store_errors("session.setup"):
            await self._collection.create_index([("mac_address", 1)], unique=True)
            await self._collection.create_index([("expires_at", 1)])

    async def put(self, session: Session) -> Session:
        fields = session.to_mongo()
        fields.pop("_id")
        with store_errors("session.put"):
            doc = await self._collection.find_one_and_update(
                {"mac_address": session.mac_address},
                {"$set": fields, "$setOnInsert": {"_id": uuid4()}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        return Session.model_validate(doc)

    async def find(self, mac: str) -> Session | None:
        with store_errors("session.find"):
            doc = await self._collection.find_one({"mac_address": mac})
        return Session.model_validate(doc) if doc is not None else None

    async def delete(self, mac: str) -> bool:
        with store_errors("session.delete"):
            result = await self._collection.delete_one({"mac_address": mac})
        return result.deleted_count > 0

    async def delete_grant(self, mac: str, grant_id: UUID) -> bool:
        with store_errors("session.delete_grant"):
            result = await self._collection.delete_one({"mac_address": mac, "grant_id": grant_id})
        return result.deleted_count > 0

    async def count_live(self, now: datetime) -> int:
        with store_errors("session.count_live"):
            return await self._collection.count_documents({"expires_at": {"$gt": now}})

    async def list_live(self, now: datetime) -> list[Session]:
        with store_errors("session.list_live"):
            cursor = self._collection.find({"expires_at": {"$gt": now}}).sort("expires_at", ASCENDING)
            return await Session.list_cursor(cursor)

    async def list_expired(self, now: datetime) -> list[Session]:
        with store_errors("session.list_expired"):
            return await Session.list_cursor(self._collection.find({"expires_at": {"$lte": now}}))


class MemorySessionStore(SessionStore):
    """In-process store for development and tests."""

    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}
        self._lock = asyncio.Lock()

    async def put(self, session: Session) -> Session:
        async with self._lock:
            self._sessions[session.mac_address] = session
        return session

    async def find(self, mac: str) -> Session | None:
        return self._sessions.get(mac)

    async def delete(self, mac: str) -> bool:
        async with self._lock:
            return self._sessions.pop(mac, None) is not None

    async def delete_grant(self, mac: str, grant_id: UUID) -> bool:
        async with self._lock:
            session = self._sessions.get(mac)
            if session is None or session.grant_id != grant_id:
                return False
            del self._sessions[mac]
            return True

    async def count_live(self, now: datetime) -> int:
        return sum(1 for s in self._sessions.values() if s.is_live(now))

    async def list_live(self, now: datetime) -> list[Session]:
        return sorted((s for s in self._sessions.values() if s.is_live(now)), key=lambda s: s.expires_at)

    async def list_expired(self, now: datetime) -> list[Session]:
        return [s for s in self._sessions.values() if not s.is_live(now)]
