from typing import Any

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from sulitwifi.core.core import Service
from sulitwifi.core.modules.voucher.models import Voucher, normalize_voucher_code
from sulitwifi.core.modules.voucher.store import (
    DuplicateVoucherCodeError,
    MemoryVoucherStore,
    MongoVoucherStore,
    VoucherStore,
)
from sulitwifi.core.modules.voucher.utils import generate_voucher_code
from sulitwifi.errors import ConflictError, ValidationError

logger = structlog.get_logger(__name__)

MAX_VOUCHERS_PER_BATCH = 100
MAX_CODE_ATTEMPTS = 10


class VoucherService(Service):
    """Voucher redemption and the admin-side voucher inventory."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]] | None) -> None:
        super().__init__(database)
        self._store: VoucherStore = MongoVoucherStore(database) if database is not None else MemoryVoucherStore()

    async def on_start(self) -> None:
        await self._store.setup()
        logger.debug("voucher_service_started")

    async def claim(self, code: str, mac: str) -> Voucher:
        """Mark the voucher used by `mac`; exactly one concurrent caller wins.

        The same MAC may claim again while the voucher has no recorded session.
        """
        voucher = await self._store.claim(normalize_voucher_code(code), mac, self.now())
        logger.info("voucher_claimed", code=voucher.code, mac=mac, duration_seconds=voucher.duration_seconds)
        return voucher

    async def mark_granted(self, code: str) -> None:
        """Close the claim once the session exists; until then only the claiming MAC may resume it."""
        await self._store.mark_granted(code, self.now())

    async def lookup(self, code: str) -> Voucher | None:
        return await self._store.lookup(code)

    async def generate_vouchers(self, duration_seconds: int, count: int = 1) -> list[Voucher]:
        """Create `count` unused vouchers with unique codes."""
        if duration_seconds <= 0:
            raise ValidationError("Duration must be a positive number of seconds")
        if not 1 <= count <= MAX_VOUCHERS_PER_BATCH:
            raise ValidationError(f"Count must be between 1 and {MAX_VOUCHERS_PER_BATCH}")

        vouchers = [await self._create_voucher(duration_seconds) for _ in range(count)]
        logger.info("vouchers_generated", count=count, duration_seconds=duration_seconds)
        return vouchers

    async def add_voucher(self, code: str, duration_seconds: int) -> Voucher:
        """Store a voucher with a caller-chosen code (printed cards, promotions)."""
        code = normalize_voucher_code(code)
        if not code:
            raise ValidationError("Voucher code must not be empty")
        if duration_seconds <= 0:
            raise ValidationError("Duration must be a positive number of seconds")
        voucher = Voucher(code=code, duration_seconds=duration_seconds, created_at=self.now())
        try:
            await self._store.insert(voucher)
        except DuplicateVoucherCodeError as e:
            raise ConflictError(f"Voucher '{code}' already exists") from e
        logger.info("voucher_added", code=code, duration_seconds=duration_seconds)
        return voucher

    async def _create_voucher(self, duration_seconds: int) -> Voucher:
        for _ in range(MAX_CODE_ATTEMPTS):
            code = generate_voucher_code()
            if await self._store.lookup(code) is not None:
                continue
            voucher = Voucher(code=code, duration_seconds=duration_seconds, created_at=self.now())
            try:
                await self._store.insert(voucher)
            except DuplicateVoucherCodeError:
                # Lost a race with a concurrent generator
                continue
            return voucher
        raise RuntimeError(f"Could not allocate a unique voucher code after {MAX_CODE_ATTEMPTS} attempts")

    async def list_vouchers(self, used: bool | None = None) -> list[Voucher]:
        return await self._store.list_vouchers(used)

    async def count_vouchers(self, used: bool | None = None) -> int:
        return await self._store.count(used)
