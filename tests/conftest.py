"""Shared pytest fixtures."""

import asyncio
from datetime import UTC, datetime, timedelta

import pytest

from sulitwifi.config import Config
from sulitwifi.core.core import Core
from sulitwifi.core.modules.nac.bridge import NacBridge
from sulitwifi.core.modules.nac.models import NacAction, NacResult

ADMIN_PASSWORD = "secret"
DEVICE_KEY = "device-secret"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime = datetime(2025, 1, 1, 8, 0, tzinfo=UTC)) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class FakeBridge(NacBridge):
    """Records every NAC command; fails the first `failures` calls.

    A command is recorded when it completes, after its optional per-action delay.
    """

    def __init__(self, failures: int = 0, delays: dict[NacAction, float] | None = None) -> None:
        self.calls: list[tuple[NacAction, str, int | None]] = []
        self.failures = failures
        self.delays = delays or {}

    async def run(self, action: NacAction, mac: str, minutes: int | None) -> NacResult:
        if action in self.delays:
            await asyncio.sleep(self.delays[action])
        self.calls.append((action, mac, minutes))
        ok = len(self.calls) > self.failures
        return NacResult(action=action, mac=mac, minutes=minutes, ok=ok, error=None if ok else "simulated failure")

    @property
    def authorized(self) -> list[tuple[str, int | None]]:
        return [(mac, minutes) for action, mac, minutes in self.calls if action is NacAction.AUTHORIZE]

    @property
    def revoked(self) -> list[str]:
        return [mac for action, mac, _ in self.calls if action is NacAction.REVOKE]


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def bridge():
    return FakeBridge()


@pytest.fixture
def config():
    """In-memory storage, no background loops, no real ndsctl."""
    return Config(
        database_url="memory://",
        admin_password=ADMIN_PASSWORD,
        device_api_key=DEVICE_KEY,
        nac_enabled=False,
        nac_retries=2,
        nac_retry_backoff_seconds=0,
        sweep_interval_seconds=0,
        reconcile_interval_seconds=0,
    )


@pytest.fixture
async def core(config, clock, bridge):
    """Started Core with the fake clock and fake NAC bridge."""
    core = Core(config, clock)
    core.services.nac.set_bridge(bridge)
    async with core.lifespan():
        yield core
