import secrets
from datetime import timedelta
from typing import Any

import bcrypt
import structlog
from pymongo.asynchronous.database import AsyncDatabase

from sulitwifi.core.core import Service
from sulitwifi.core.modules.admin.models import AdminSession, AdminToken, DashboardStats
from sulitwifi.core.modules.admin.store import AdminTokenStore, MemoryAdminTokenStore, MongoAdminTokenStore
from sulitwifi.errors import AuthenticationError

logger = structlog.get_logger(__name__)


class AdminService(Service):
    """Single admin account with bearer tokens."""

    def __init__(self, database: AsyncDatabase[dict[str, Any]] | None) -> None:
        super().__init__(database)
        self._store: AdminTokenStore = MongoAdminTokenStore(database) if database is not None else MemoryAdminTokenStore()
        self._password_hash: bytes | None = None

    async def on_start(self) -> None:
        await self._store.setup()
        self._password_hash = bcrypt.hashpw(self.core.config.admin_password.encode("utf-8"), bcrypt.gensalt())
        logger.debug("admin_service_started")

    def verify_password(self, password: str) -> bool:
        """Verify password against the seeded hash."""
        if self._password_hash is None:
            return False
        return bcrypt.checkpw(password.encode("utf-8"), self._password_hash)

    async def login(self, password: str) -> AdminToken:
        if not self.verify_password(password):
            logger.warning("admin_login_failed")
            raise AuthenticationError("Invalid password")
        now = self.now()
        token = AdminToken(secrets.token_urlsafe(32))
        ttl = timedelta(seconds=self.core.config.admin_token_ttl_seconds)
        await self._store.insert(AdminSession(token=token, created_at=now, expires_at=now + ttl))
        logger.info("admin_logged_in")
        return token

    async def is_token_valid(self, token: AdminToken) -> bool:
        return await self._store.find_valid(token, self.now()) is not None

    async def logout(self, token: AdminToken) -> None:
        await self._store.delete(token)

    async def get_stats(self) -> DashboardStats:
        """Read-only taps for the dashboard."""
        services = self.core.services
        slot = await services.tracker.get_slot()
        return DashboardStats(
            active_sessions=await services.session.count_live(),
            vouchers_used=await services.voucher.count_vouchers(used=True),
            vouchers_available=await services.voucher.count_vouchers(used=False),
            coin_pulses=slot.pulse_count if slot is not None else 0,
        )
