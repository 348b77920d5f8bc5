from typing import Any
from uuid import UUID

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from sulitwifi.core.core import Service
from sulitwifi.core.locks import KeyedLock
from sulitwifi.core.modules.session.models import Session
from sulitwifi.core.modules.session.store import MemorySessionStore, MongoSessionStore, SessionStore

logger = structlog.get_logger(__name__)


class SessionService(Service):
    """One live session per client MAC, expired lazily on read.

    Writes for the same MAC are serialized; different MACs never wait on each other.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]] | None) -> None:
        super().__init__(database)
        self._store: SessionStore = MongoSessionStore(database) if database is not None else MemorySessionStore()
        self._locks = KeyedLock()
        # MACs the sweep still owes a NAC revoke: dropped by a read, or a revoke that failed
        self._lapsed: set[str] = set()

    async def on_start(self) -> None:
        await self._store.setup()
        logger.debug("session_service_started")

    async def put(self, mac: str, voucher_code: str | None, duration_seconds: int) -> Session:
        """Start a new grant for the MAC, replacing any previous one (time never stacks)."""
        async with self._locks.hold(mac):
            session = Session.grant(mac, voucher_code, duration_seconds, self.now())
            session = await self._store.put(session)
            self._lapsed.discard(mac)
        logger.info("session_started", mac=mac, voucher_code=voucher_code, duration_seconds=duration_seconds)
        return session

    async def get(self, mac: str) -> Session | None:
        """Live session for the MAC, or None; an expired record is deleted on the way."""
        session = await self._store.find(mac)
        if session is None:
            return None
        if session.is_live(self.now()):
            return session
        if await self._store.delete_grant(mac, session.grant_id):
            self._lapsed.add(mac)
            logger.debug("session_expired_on_read", mac=mac)
        return None

    async def is_live(self, mac: str) -> bool:
        """Whether the MAC holds a live session, without the lazy-expiry side effect."""
        session = await self._store.find(mac)
        return session is not None and session.is_live(self.now())

    def mark_lapsed(self, mac: str) -> None:
        """Queue a NAC revoke for the next sweep; a new grant for the MAC cancels it."""
        self._lapsed.add(mac)

    def take_lapsed(self) -> set[str]:
        """Hand over the MACs expired by reads since the last call."""
        lapsed, self._lapsed = self._lapsed, set()
        return lapsed

    async def delete(self, mac: str) -> bool:
        """Remove the MAC's session; missing sessions are not an error."""
        async with self._locks.hold(mac):
            deleted = await self._store.delete(mac)
        if deleted:
            logger.info("session_deleted", mac=mac)
        return deleted

    async def delete_grant(self, mac: str, grant_id: UUID) -> bool:
        """Remove one specific grant, leaving a newer replacement alone."""
        async with self._locks.hold(mac):
            return await self._store.delete_grant(mac, grant_id)

    async def count_live(self) -> int:
        return await self._store.count_live(self.now())

    async def list_live(self) -> list[Session]:
        return await self._store.list_live(self.now())

    async def list_expired(self) -> list[Session]:
        return await self._store.list_expired(self.now())
