import asyncio
from typing import Any

import structlog
from pymongo.asynchronous.database import AsyncDatabase

from sulitwifi.core.core import Service
from sulitwifi.core.modules.nac.bridge import DryRunBridge, NacBridge, NdsctlBridge
from sulitwifi.core.modules.nac.models import NacAction, NacResult

logger = structlog.get_logger(__name__)


class NacService(Service):
    """Uniform timeout, retry and logging policy around the NAC bridge.

    Callers get a NacResult back; a failed command never raises, so it can not
    undo a session that is already stored.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]] | None) -> None:
        super().__init__(database)
        self._bridge: NacBridge | None = None

    @property
    def bridge(self) -> NacBridge:
        if self._bridge is None:
            config = self.core.config
            if config.nac_enabled:
                self._bridge = NdsctlBridge(config.nac_command, config.nac_use_sudo, config.nac_timeout_seconds)
            else:
                self._bridge = DryRunBridge()
        return self._bridge

    def set_bridge(self, bridge: NacBridge) -> None:
        """Replace the bridge (tests, alternative controllers)."""
        self._bridge = bridge

    async def on_start(self) -> None:
        logger.debug("nac_service_started", bridge=type(self.bridge).__name__)

    async def authorize(self, mac: str, minutes: int, *, retry: bool = True) -> NacResult:
        return await self._run(NacAction.AUTHORIZE, mac, minutes, retry)

    async def revoke(self, mac: str, *, retry: bool = True) -> NacResult:
        return await self._run(NacAction.REVOKE, mac, None, retry)

    async def _run(self, action: NacAction, mac: str, minutes: int | None, retry: bool) -> NacResult:
        config = self.core.config
        attempts = 1 + max(0, config.nac_retries) if retry else 1
        for attempt in range(1, attempts + 1):
            result = await self.bridge.run(action, mac, minutes)
            result.attempts = attempt
            if result.ok:
                logger.info("nac_command_succeeded", action=action, mac=mac, minutes=minutes, attempts=attempt)
                return result
            logger.warning(
                "nac_command_failed",
                action=action,
                mac=mac,
                minutes=minutes,
                attempt=attempt,
                exit_code=result.exit_code,
                error=result.error,
                output=result.output,
            )
            if attempt < attempts:
                await asyncio.sleep(self.backoff(attempt))
        return result

    def backoff(self, attempt: int) -> float:
        """Delay before the retry that follows failed attempt number `attempt`."""
        return self.core.config.nac_retry_backoff_seconds * 2 ** (attempt - 1)
