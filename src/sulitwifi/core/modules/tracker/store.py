"""Single-slot tracker persistence.

Every operation is one atomic document update; there is no read-modify-write.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any
from uuid import uuid4

from pymongo import ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase

from sulitwifi.core.db import store_errors
from sulitwifi.core.modules.tracker.models import TrackerSlot


class TrackerStore(ABC):
    async def setup(self) -> None:
        """Prepare the store (indexes); called once on startup."""

    @abstractmethod
    async def record_seen(self, key: str, mac: str, at: datetime) -> None: ...

    @abstractmethod
    async def record_pulse(self, key: str, at: datetime) -> TrackerSlot: ...

    @abstractmethod
    async def consume(self, key: str, seen_after: datetime, pulse_after: datetime | None) -> TrackerSlot | None:
        """Clear the tracked MAC if the slot satisfies the bounds; return the slot as it was.

        `pulse_after` None means a pulse is not required.
        """

    @abstractmethod
    async def get(self, key: str) -> TrackerSlot | None: ...


class MongoTrackerStore(TrackerStore):
    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self._collection = database.get_collection("tracker")

    async def setup(self) -> None:
        with store_errors("tracker.setup"):
            await self._collection.create_index([("key", 1)], unique=True)

    async def record_seen(self, key: str, mac: str, at: datetime) -> None:
        with store_errors("tracker.record_seen"):
            await self._collection.update_one(
                {"key": key},
                {"$set": {"mac": mac, "seen_at": at}, "$setOnInsert": {"_id": uuid4(), "pulse_count": 0}},
                upsert=True,
            )

    async def record_pulse(self, key: str, at: datetime) -> TrackerSlot:
        with store_errors("tracker.record_pulse"):
            doc = await self._collection.find_one_and_update(
                {"key": key},
                {"$set": {"pulse_at": at, "seen_at": at}, "$inc": {"pulse_count": 1}, "$setOnInsert": {"_id": uuid4()}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        return TrackerSlot.model_validate(doc)

    async def consume(self, key: str, seen_after: datetime, pulse_after: datetime | None) -> TrackerSlot | None:
        query: dict[str, Any] = {"key": key, "mac": {"$ne": None}, "seen_at": {"$gte": seen_after}}
        if pulse_after is not None:
            query["pulse_at"] = {"$gte": pulse_after}
        with store_errors("tracker.consume"):
            doc = await self._collection.find_one_and_update(
                query,
                {"$set": {"mac": None, "pulse_at": None}},
                return_document=ReturnDocument.BEFORE,
            )
        return TrackerSlot.model_validate(doc) if doc is not None else None

    async def get(self, key: str) -> TrackerSlot | None:
        with store_errors("tracker.get"):
            doc = await self._collection.find_one({"key": key})
        return TrackerSlot.model_validate(doc) if doc is not None else None


class MemoryTrackerStore(TrackerStore):
    """In-process store for development and tests."""

    def __init__(self) -> None:
        self._slots: dict[str, TrackerSlot] = {}
        self._lock = asyncio.Lock()

    async def record_seen(self, key: str, mac: str, at: datetime) -> None:
        async with self._lock:
            slot = self._slots.get(key) or TrackerSlot(key=key)
            self._slots[key] = slot.model_copy(update={"mac": mac, "seen_at": at})

    async def record_pulse(self, key: str, at: datetime) -> TrackerSlot:
        async with self._lock:
            slot = self._slots.get(key) or TrackerSlot(key=key)
            slot = slot.model_copy(update={"pulse_at": at, "seen_at": at, "pulse_count": slot.pulse_count + 1})
            self._slots[key] = slot
            return slot

    async def consume(self, key: str, seen_after: datetime, pulse_after: datetime | None) -> TrackerSlot | None:
        async with self._lock:
            slot = self._slots.get(key)
            if slot is None or slot.mac is None or slot.seen_at is None or slot.seen_at < seen_after:
                return None
            if pulse_after is not None and (slot.pulse_at is None or slot.pulse_at < pulse_after):
                return None
            self._slots[key] = slot.model_copy(update={"mac": None, "pulse_at": None})
            return slot

    async def get(self, key: str) -> TrackerSlot | None:
        return self._slots.get(key)
