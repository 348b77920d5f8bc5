from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sulitwifi.config import Config
from sulitwifi.core.core import Clock, Core
from sulitwifi.core.modules.admin.models import AdminToken, DashboardStats
from sulitwifi.core.modules.portal.models import CoinPulse, PublicSettings
from sulitwifi.core.modules.session.models import SessionView
from sulitwifi.core.modules.voucher.models import Voucher
from sulitwifi.errors import SessionNotFoundError
from sulitwifi.utils import now


class App:
    """Facade for all application operations, validates permissions before delegating to Core."""

    def __init__(self, config: Config, clock: Clock = now) -> None:
        self._core = Core(config, clock)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Application lifespan management - delegates to Core."""
        async with self._core.lifespan():
            yield

    # --- Portal (unauthenticated clients, identified by MAC) ---

    def get_public_settings(self) -> PublicSettings:
        return self._core.services.portal.get_public_settings()

    async def probe(self, mac: str) -> SessionView | None:
        """Register a portal visit; returns the live session if the client already has one."""
        session = await self._core.services.portal.record_probe(mac)
        return SessionView.from_domain(session, self._core.clock()) if session else None

    async def redeem_voucher(self, mac: str, code: str) -> SessionView:
        session = await self._core.services.portal.redeem_voucher(mac, code)
        return SessionView.from_domain(session, self._core.clock())

    async def redeem_coin(self, mac: str) -> SessionView:
        session = await self._core.services.portal.redeem_coin(mac)
        return SessionView.from_domain(session, self._core.clock())

    async def get_session(self, mac: str) -> SessionView:
        """Current session of the client, raises SessionNotFoundError when there is none."""
        session = await self._core.services.portal.get_status(mac)
        if session is None:
            raise SessionNotFoundError
        return SessionView.from_domain(session, self._core.clock())

    async def logout(self, mac: str) -> None:
        await self._core.services.portal.logout(mac)

    # --- Coin detector ---

    async def register_coin_pulse(self, api_key: str | None) -> CoinPulse:
        """Record a coin pulse (coin detector only)."""
        self._core.services.access.ensure_coin_device(api_key)
        return await self._core.services.portal.register_coin_pulse()

    # --- Admin ---

    async def is_admin_token_valid(self, token: AdminToken) -> bool:
        return await self._core.services.admin.is_token_valid(token)

    async def admin_login(self, password: str) -> AdminToken:
        return await self._core.services.admin.login(password)

    async def admin_logout(self, token: AdminToken) -> None:
        await self._core.services.access.ensure_admin(token)
        await self._core.services.admin.logout(token)

    async def get_stats(self, token: AdminToken) -> DashboardStats:
        await self._core.services.access.ensure_admin(token)
        return await self._core.services.admin.get_stats()

    async def list_vouchers(self, token: AdminToken, used: bool | None = None) -> list[Voucher]:
        await self._core.services.access.ensure_admin(token)
        return await self._core.services.voucher.list_vouchers(used)

    async def generate_vouchers(self, token: AdminToken, duration_seconds: int, count: int) -> list[Voucher]:
        await self._core.services.access.ensure_admin(token)
        return await self._core.services.voucher.generate_vouchers(duration_seconds, count)

    async def add_voucher(self, token: AdminToken, code: str, duration_seconds: int) -> Voucher:
        await self._core.services.access.ensure_admin(token)
        return await self._core.services.voucher.add_voucher(code, duration_seconds)

    async def list_sessions(self, token: AdminToken) -> list[SessionView]:
        await self._core.services.access.ensure_admin(token)
        sessions = await self._core.services.session.list_live()
        now = self._core.clock()
        return [SessionView.from_domain(session, now) for session in sessions]

    async def terminate_session(self, token: AdminToken, mac: str) -> None:
        """Disconnect a client (admin only); same flow as a client logout."""
        await self._core.services.access.ensure_admin(token)
        await self._core.services.portal.logout(mac)
