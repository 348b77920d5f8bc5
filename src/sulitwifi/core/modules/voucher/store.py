"""Voucher persistence with an atomic claim.

`claim` is the one operation that must never be read-then-write: the Mongo store
uses a single conditional find_one_and_update, the memory store holds its lock
across check and set.

A claim whose session was never stored (store failure between the two writes)
stays claimable by the same MAC until `mark_granted` records the session.
"""

import asyncio
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from pymongo import DESCENDING, ReturnDocument
from pymongo.asynchronous.database import AsyncDatabase
from pymongo.errors import DuplicateKeyError

from sulitwifi.core.db import store_errors
from sulitwifi.core.modules.voucher.models import Voucher, normalize_voucher_code
from sulitwifi.errors import InvalidVoucherError, VoucherAlreadyUsedError


class DuplicateVoucherCodeError(Exception):
    """Raised when inserting a voucher whose code already exists."""


class VoucherStore(ABC):
    async def setup(self) -> None:
        """Prepare the store (indexes); called once on startup."""

    @abstractmethod
    async def claim(self, code: str, mac: str, at: datetime) -> Voucher:
        """Atomically mark an unused voucher as used and return it.

        Raises InvalidVoucherError for unknown codes and VoucherAlreadyUsedError
        when the voucher was claimed before.
        """

    @abstractmethod
    async def mark_granted(self, code: str, at: datetime) -> None:
        """Record that the claimed voucher's session is stored; the claim becomes final."""

    @abstractmethod
    async def lookup(self, code: str) -> Voucher | None: ...

    @abstractmethod
    async def insert(self, voucher: Voucher) -> None:
        """Insert a new voucher; raises DuplicateVoucherCodeError on code collision."""

    @abstractmethod
    async def list_vouchers(self, used: bool | None = None) -> list[Voucher]:
        """Vouchers newest first, optionally filtered by used flag."""

    @abstractmethod
    async def count(self, used: bool | None = None) -> int: ...


class MongoVoucherStore(VoucherStore):
    def __init__(self, database: AsyncDatabase[dict[str, Any]]) -> None:
        self._collection = database.get_collection("vouchers")

    async def setup(self) -> None:
        with store_errors("voucher.setup"):
            await self._collection.create_index([("code", 1)], unique=True)
            await self._collection.create_index([("used", 1), ("created_at", -1)])

    async def claim(self, code: str, mac: str, at: datetime) -> Voucher:
        code = normalize_voucher_code(code)
        with store_errors("voucher.claim"):
            doc = await self._collection.find_one_and_update(
                {
                    "code": code,
                    "$or": [
                        {"used": False},
                        {"used": True, "used_by": mac, "session_granted_at": None},
                    ],
                },
                [{"$set": {"used": True, "used_by": mac, "used_at": {"$ifNull": ["$used_at", at]}}}],
                return_document=ReturnDocument.AFTER,
            )
            if doc is not None:
                return Voucher.model_validate(doc)
            existing = await self._collection.find_one({"code": code}, {"_id": 1})
        if existing is None:
            raise InvalidVoucherError
        raise VoucherAlreadyUsedError

    async def mark_granted(self, code: str, at: datetime) -> None:
        with store_errors("voucher.mark_granted"):
            await self._collection.update_one(
                {"code": normalize_voucher_code(code), "used": True, "session_granted_at": None},
                {"$set": {"session_granted_at": at}},
            )

    async def lookup(self, code: str) -> Voucher | None:
        with store_errors("voucher.lookup"):
            doc = await self._collection.find_one({"code": normalize_voucher_code(code)})
        return Voucher.model_validate(doc) if doc is not None else None

    async def insert(self, voucher: Voucher) -> None:
        with store_errors("voucher.insert"):
            try:
                await self._collection.insert_one(voucher.to_mongo())
            except DuplicateKeyError as e:
                raise DuplicateVoucherCodeError(voucher.code) from e

    async def list_vouchers(self, used: bool | None = None) -> list[Voucher]:
        query = {} if used is None else {"used": used}
        with store_errors("voucher.list_vouchers"):
            return await Voucher.list_cursor(self._collection.find(query).sort("created_at", DESCENDING))

    async def count(self, used: bool | None = None) -> int:
        query = {} if used is None else {"used": used}
        with store_errors("voucher.count"):
            return await self._collection.count_documents(query)


class MemoryVoucherStore(VoucherStore):
    """In-process store for development and tests."""

    def __init__(self) -> None:
        self._vouchers: dict[str, Voucher] = {}
        self._lock = asyncio.Lock()

    async def claim(self, code: str, mac: str, at: datetime) -> Voucher:
        code = normalize_voucher_code(code)
        async with self._lock:
            voucher = self._vouchers.get(code)
            if voucher is None:
                raise InvalidVoucherError
            if voucher.used and (voucher.used_by != mac or voucher.session_granted_at is not None):
                raise VoucherAlreadyUsedError
            claimed = voucher.model_copy(update={"used": True, "used_at": voucher.used_at or at, "used_by": mac})
            self._vouchers[code] = claimed
            return claimed

    async def mark_granted(self, code: str, at: datetime) -> None:
        code = normalize_voucher_code(code)
        async with self._lock:
            voucher = self._vouchers.get(code)
            if voucher is not None and voucher.used and voucher.session_granted_at is None:
                self._vouchers[code] = voucher.model_copy(update={"session_granted_at": at})

    async def lookup(self, code: str) -> Voucher | None:
        return self._vouchers.get(normalize_voucher_code(code))

    async def insert(self, voucher: Voucher) -> None:
        async with self._lock:
            if voucher.code in self._vouchers:
                raise DuplicateVoucherCodeError(voucher.code)
            self._vouchers[voucher.code] = voucher

    async def list_vouchers(self, used: bool | None = None) -> list[Voucher]:
        vouchers = [v for v in self._vouchers.values() if used is None or v.used == used]
        return sorted(vouchers, key=lambda v: v.created_at, reverse=True)

    async def count(self, used: bool | None = None) -> int:
        return sum(1 for v in self._vouchers.values() if used is None or v.used == used)
