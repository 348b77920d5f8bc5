from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from pymongo.asynchronous.database import AsyncDatabase

from sulitwifi.core.db import store_errors
from sulitwifi.core.modules.admin.models import AdminSession


class AdminTokenStore(ABC):
    async def setup(self) -> None:
        """Prepare the store (indexes); called once on startup."""

    @abstractmethod
    async def insert(self, session: AdminSession) -> None: ...

    @abstractmethod
    async def find_valid(self, token: str, now: datetime) -> AdminSession | None: ...

    @abstractmethod
    async def delete(self, token: str) -> None: ...


class MongoAdminTokenStore(AdminTokenStore):
    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self._collection = database.get_collection("admin_tokens")

    async def setup(self) -> None:
        with store_errors("admin.setup"):
            await self._collection.create_index([("token", 1)], unique=True)
            # Mongo drops expired tokens on its own; find_valid still checks expires_at
            await self._collection.create_index([("expires_at", 1)], expireAfterSeconds=0)

    async def insert(self, session: AdminSession) -> None:
        with store_errors("admin.insert"):
            await self._collection.insert_one(session.to_mongo())

    async def find_valid(self, token: str, now: datetime) -> AdminSession | None:
        with store_errors("admin.find_valid"):
            doc = await self._collection.find_one({"token": token, "expires_at": {"$gt": now}})
        return AdminSession.model_validate(doc) if doc is not None else None

    async def delete(self, token: str) -> None:
        with store_errors("admin.delete"):
            await self._collection.delete_one({"token": token})


class MemoryAdminTokenStore(AdminTokenStore):
    """In-process store for development and tests; expired tokens are pruned on access."""

    def __init__(self) -> None:
        self._sessions: dict[str, AdminSession] = {}

    def _prune(self, now: datetime) -> None:
        for token in [t for t, s in self._sessions.items() if s.expires_at <= now]:
            del self._sessions[token]

    async def insert(self, session: AdminSession) -> None:
        self._prune(session.created_at)
        self._sessions[session.token] = session

    async def find_valid(self, token: str, now: datetime) -> AdminSession | None:
        self._prune(now)
        return self._sessions.get(token)

    async def delete(self, token: str) -> None:
        self._sessions.pop(token, None)

    def __len__(self) -> int:
        return len(self._sessions)
