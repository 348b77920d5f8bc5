from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator, Callable
from contextlib import asynccontextmanager
from datetime import datetime
from typing import TYPE_CHECKING, Any, cast
from urllib.parse import urlparse

import structlog
from pymongo import AsyncMongoClient
from pymongo.asynchronous.database import AsyncDatabase

from sulitwifi.config import Config
from sulitwifi.utils import now

if TYPE_CHECKING:
    from sulitwifi.core.modules.access.service import AccessService
    from sulitwifi.core.modules.admin.service import AdminService
    from sulitwifi.core.modules.nac.service import NacService
    from sulitwifi.core.modules.portal.service import PortalService
    from sulitwifi.core.modules.session.service import SessionService
    from sulitwifi.core.modules.tracker.service import TrackerService
    from sulitwifi.core.modules.voucher.service import VoucherService

logger = structlog.get_logger(__name__)

Clock = Callable[[], datetime]


class Service:
    """Base class for services.

    `database` is None when the application runs on the in-process memory store;
    each service then picks the memory implementation of its store.
    """

    def __init__(self, database: AsyncDatabase[dict[str, Any]] | None) -> None:
        self.database = database
        self._core: Core | None = None

    async def on_start(self) -> None:
        """Initialize service on application startup."""

    async def on_stop(self) -> None:
        """Cleanup service on application shutdown."""

    @property
    def core(self) -> Core:
        """Get the core application context."""
        if self._core is None:
            raise RuntimeError("Core not set for service")
        return self._core

    def set_core(self, core: Core) -> None:
        """Set the core application context."""
        self._core = core

    def now(self) -> datetime:
        """Current time from the core clock (UTC, timezone-aware)."""
        return self.core.clock()


class Services:
    """Service registry that automatically discovers and initializes services."""

    voucher: VoucherService
    session: SessionService
    tracker: TrackerService
    nac: NacService
    admin: AdminService
    access: AccessService
    portal: PortalService

    def __init__(self, database: AsyncDatabase[dict[str, Any]] | None) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []
        self._database = database

        # Service configuration: (attribute_name, module_path, class_name)
        # Order matters: stores start before the portal engine begins its background loops
        service_configs = [
            ("voucher", "sulitwifi.core.modules.voucher.service", "VoucherService"),
            ("session", "sulitwifi.core.modules.session.service", "SessionService"),
            ("tracker", "sulitwifi.core.modules.tracker.service", "TrackerService"),
            ("nac", "sulitwifi.core.modules.nac.service", "NacService"),
            ("admin", "sulitwifi.core.modules.admin.service", "AdminService"),
            ("access", "sulitwifi.core.modules.access.service", "AccessService"),
            ("portal", "sulitwifi.core.modules.portal.service", "PortalService"),
        ]

        # Dynamically import and instantiate services
        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(database)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        """Start all services that have startup logic."""
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        """Stop services in reverse start order."""
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Container providing config, clock, storage, and all service instances."""

    config: Config
    clock: Clock
    mongo_client: AsyncMongoClient[dict[str, Any]] | None
    database: AsyncDatabase[dict[str, Any]] | None
    services: Services

    def __init__(self, config: Config, clock: Clock = now) -> None:
        """Initialize core with config, the configured store, and auto-register services."""
        self.config = config
        self.clock = clock
        if config.uses_memory_storage:
            self.mongo_client = None
            self.database = None
        else:
            self.mongo_client = AsyncMongoClient(
                config.database_url,
                uuidRepresentation="standard",
                tz_aware=True,
                timeoutMS=config.store_timeout_ms,
            )
            self.database = self.mongo_client.get_database(urlparse(config.database_url).path[1:])
        self.services = Services(self.database)
        self.services.set_core(self)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        """Start all services on application startup."""
        logger.info("core_starting", storage="memory" if self.database is None else "mongodb")
        await self.services.start_all()

    async def on_stop(self) -> None:
        """Stop services and close MongoDB connection on shutdown."""
        await self.services.stop_all()
        if self.mongo_client is not None:
            await self.mongo_client.aclose()
