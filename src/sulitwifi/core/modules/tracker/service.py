from datetime import timedelta
from typing import Any

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from sulitwifi.core.core import Service
from sulitwifi.core.modules.tracker.models import DEFAULT_SLOT, TrackerSlot
from sulitwifi.core.modules.tracker.store import MemoryTrackerStore, MongoTrackerStore, TrackerStore

logger = structlog.get_logger(__name__)


class TrackerService(Service):
    """Links an out-of-band coin pulse (no MAC) to the HTTP flow (MAC, no payment).

    A single slot holds the last unauthenticated MAC seen and the last pulse.
    A record is usable only inside the validity window (`coin_window_seconds`, 120 by default).
    When two clients probe inside the window the later one owns the slot; this is
    the accepted limitation of the heuristic.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]] | None) -> None:
        super().__init__(database)
        self._store: TrackerStore = MongoTrackerStore(database) if database is not None else MemoryTrackerStore()

    async def on_start(self) -> None:
        await self._store.setup()

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.core.config.coin_window_seconds)

    async def record_seen(self, mac: str, key: str = DEFAULT_SLOT) -> None:
        """Remember `mac` as the latest unauthenticated client (overwrites)."""
        await self._store.record_seen(key, mac, self.now())
        logger.debug("tracker_client_seen", mac=mac, slot=key)

    async def record_pulse(self, key: str = DEFAULT_SLOT) -> TrackerSlot:
        """Stamp a coin pulse and refresh the slot's validity."""
        slot = await self._store.record_pulse(key, self.now())
        logger.info("tracker_pulse_recorded", slot=key, tracked_mac=slot.mac, pulse_count=slot.pulse_count)
        return slot

    async def consume_if_valid(self, require_pulse: bool = False, key: str = DEFAULT_SLOT) -> str | None:
        """Return and invalidate the tracked MAC if it was seen within the window.

        With `require_pulse` a coin pulse inside the window is needed as well, so a
        probe alone never counts as payment.
        """
        cutoff = self.now() - self.window
        slot = await self._store.consume(key, cutoff, cutoff if require_pulse else None)
        if slot is None:
            logger.debug("tracker_nothing_to_consume", slot=key, require_pulse=require_pulse)
            return None
        return slot.mac

    async def get_slot(self, key: str = DEFAULT_SLOT) -> TrackerSlot | None:
        return await self._store.get(key)
