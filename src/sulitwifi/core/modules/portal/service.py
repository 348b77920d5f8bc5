"""Authorization engine: voucher and coin redemption, status, logout, expiry.

Per client the life cycle is Unauthenticated -> Active -> Expired | LoggedOut ->
Unauthenticated. A new grant always replaces the current one wholesale.

The session store is the source of truth. NAC commands run after the session
change is stored and outside any lock. A client request waits for one attempt
only; failures are logged, retried in the background and repaired by the periodic
jobs, never reported to the client.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta
from typing import Any

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from sulitwifi.core.core import Service
from sulitwifi.core.modules.portal.models import CoinPulse, PublicSettings
from sulitwifi.core.modules.session.models import COIN_CODE_PREFIX, Session
from sulitwifi.errors import CoinSlotDisabledError, NoRecentCoinError
from sulitwifi.utils import ceil_minutes

logger = structlog.get_logger(__name__)

COIN_SESSION_SECONDS = 15 * 60
PULSE_DEBOUNCE = timedelta(milliseconds=120)


class PortalService(Service):
    def __init__(self, database: AsyncDatabase[dict[str, Any]] | None) -> None:
        super().__init__(database)
        self._background_tasks: set[asyncio.Task[None]] = set()
        self._nac_retries: set[asyncio.Task[None]] = set()
        self._last_pulse_at: datetime | None = None

    async def on_start(self) -> None:
        config = self.core.config
        if config.sweep_interval_seconds > 0:
            self._spawn("expiry_sweep", config.sweep_interval_seconds, self.expire_sessions)
        if config.reconcile_interval_seconds > 0:
            self._spawn("reconcile", config.reconcile_interval_seconds, self.reconcile)
        logger.debug("portal_service_started", background_jobs=len(self._background_tasks))

    async def on_stop(self) -> None:
        tasks = self._background_tasks | self._nac_retries
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._background_tasks.clear()
        self._nac_retries.clear()

    def _spawn(self, name: str, interval: float, job: Callable[[], Awaitable[int]]) -> None:
        task = asyncio.create_task(self._run_periodically(name, interval, job), name=name)
        self._background_tasks.add(task)
        task.add_done_callback(self._background_tasks.discard)

    async def _run_periodically(self, name: str, interval: float, job: Callable[[], Awaitable[int]]) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                await job()
            except Exception as e:
                logger.exception("background_job_failed", job=name, error=str(e))

    async def _authorize(self, session: Session) -> None:
        """One inline NAC attempt; further attempts run in the background."""
        services = self.core.services
        result = await services.nac.authorize(session.mac_address, ceil_minutes(session.duration_seconds), retry=False)
        if not result.ok and self.core.config.nac_retries > 0:
            task = asyncio.create_task(self._retry_authorize(session), name=f"nac_retry:{session.mac_address}")
            self._nac_retries.add(task)
            task.add_done_callback(self._nac_retries.discard)

    async def _retry_authorize(self, session: Session) -> None:
        services = self.core.services
        mac = session.mac_address
        for attempt in range(1, self.core.config.nac_retries + 1):
            await asyncio.sleep(services.nac.backoff(attempt))
            current = await services.session.get(mac)
            if current is None or current.grant_id != session.grant_id:
                # Replaced, logged out or expired meanwhile
                return
            result = await services.nac.authorize(mac, ceil_minutes(current.remaining_seconds(self.now())), retry=False)
            if result.ok:
                if not await services.session.is_live(mac):
                    services.session.mark_lapsed(mac)
                return
        logger.error("nac_authorize_abandoned", mac=mac, attempts=1 + self.core.config.nac_retries)

    async def wait_for_nac_retries(self) -> None:
        """Wait until background NAC retries have finished."""
        await asyncio.gather(*self._nac_retries, return_exceptions=True)

    def get_public_settings(self) -> PublicSettings:
        config = self.core.config
        return PublicSettings(
            ssid=config.ssid,
            portal_title=config.portal_title,
            coin_slot_enabled=config.coin_slot_enabled,
            coin_session_seconds=COIN_SESSION_SECONDS,
        )

    async def redeem_voucher(self, mac: str, code: str) -> Session:
        """Claim the voucher for `mac` and open a session of the voucher's length.

        InvalidVoucherError / VoucherAlreadyUsedError leave every store untouched.
        If storing the session fails, the same MAC can retry the same code.
        """
        services = self.core.services
        voucher = await services.voucher.claim(code, mac)
        session = await services.session.put(mac, voucher.code, voucher.duration_seconds)
        await services.voucher.mark_granted(voucher.code)
        await self._authorize(session)
        logger.info("voucher_redeemed", mac=mac, code=voucher.code, duration_seconds=voucher.duration_seconds)
        return session

    async def redeem_coin(self, mac: str) -> Session:
        """Grant a coin session to the requesting MAC if a coin was inserted recently.

        The tracker only confirms that a coin dropped within the window; time always
        goes to the connection that asked for it, never to the tracked MAC.
        """
        config = self.core.config
        if not config.coin_slot_enabled:
            raise CoinSlotDisabledError
        services = self.core.services
        tracked_mac = await services.tracker.consume_if_valid(require_pulse=config.coin_requires_pulse)
        if tracked_mac is None:
            logger.info("coin_redeem_rejected", mac=mac)
            raise NoRecentCoinError
        if tracked_mac != mac:
            logger.warning("coin_client_mismatch", mac=mac, tracked_mac=tracked_mac)

        marker = f"{COIN_CODE_PREFIX}{int(self.now().timestamp() * 1000)}"
        session = await services.session.put(mac, marker, COIN_SESSION_SECONDS)
        await self._authorize(session)
        logger.info("coin_redeemed", mac=mac, marker=marker, duration_seconds=COIN_SESSION_SECONDS)
        return session

    async def register_coin_pulse(self) -> CoinPulse:
        """Record a pulse from the coin acceptor, ignoring contact bounce."""
        services = self.core.services
        if not self.core.config.coin_slot_enabled:
            slot = await services.tracker.get_slot()
            logger.info("coin_pulse_ignored", reason="coin_slot_disabled")
            return CoinPulse(accepted=False, pulse_count=slot.pulse_count if slot is not None else 0)

        now = self.now()
        if self._last_pulse_at is not None and timedelta(0) <= now - self._last_pulse_at < PULSE_DEBOUNCE:
            slot = await services.tracker.get_slot()
            logger.debug("coin_pulse_debounced")
            return CoinPulse(accepted=False, pulse_count=slot.pulse_count if slot is not None else 0)
        self._last_pulse_at = now

        slot = await services.tracker.record_pulse()
        return CoinPulse(accepted=True, pulse_count=slot.pulse_count)

    async def record_probe(self, mac: str) -> Session | None:
        """Portal probe from a client: remember it for coin correlation unless it is already online."""
        services = self.core.services
        session = await services.session.get(mac)
        if session is None:
            await services.tracker.record_seen(mac)
        return session

    async def get_status(self, mac: str) -> Session | None:
        return await self.core.services.session.get(mac)

    async def logout(self, mac: str) -> None:
        """End the client's session. The revoke is attempted even when there was no session.

        A failed revoke is left to the expiry sweep.
        """
        services = self.core.services
        deleted = await services.session.delete(mac)
        result = await services.nac.revoke(mac, retry=False)
        if not result.ok:
            services.session.mark_lapsed(mac)
        logger.info("client_logged_out", mac=mac, had_session=deleted, revoked=result.ok)

    async def expire_sessions(self) -> int:
        """Revoke and delete expired sessions, including those already dropped by reads.

        MACs whose revoke fails stay queued for the next run. Returns the number of
        clients a revoke was sent for.
        """
        services = self.core.services
        expired = {session.mac_address: session for session in await services.session.list_expired()}
        macs = set(expired) | services.session.take_lapsed()

        revoked = 0
        for mac in sorted(macs):
            if await services.session.is_live(mac):
                # Replaced by a new grant in the meantime
                continue
            result = await services.nac.revoke(mac)
            revoked += 1
            if mac in expired:
                await services.session.delete_grant(mac, expired[mac].grant_id)
            session = await services.session.get(mac)
            if session is not None:
                # Granted while the revoke was running; the revoke may have landed last
                logger.info("sweep_restoring_new_grant", mac=mac)
                await services.nac.authorize(mac, ceil_minutes(session.remaining_seconds(self.now())))
            elif not result.ok:
                services.session.mark_lapsed(mac)
        if revoked:
            logger.info("sessions_expired", count=revoked)
        return revoked

    async def reconcile(self) -> int:
        """Re-authorize every live session with its remaining time.

        The NAC may have restarted or lost state on its own. Returns the number of failures.
        """
        services = self.core.services
        failures = 0
        sessions = await services.session.list_live()
        for session in sessions:
            remaining = session.remaining_seconds(self.now())
            if remaining <= 0:
                continue
            result = await services.nac.authorize(session.mac_address, ceil_minutes(remaining))
            if not result.ok:
                failures += 1
        logger.info("reconcile_finished", sessions=len(sessions), failures=failures)
        return failures
