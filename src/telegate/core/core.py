from __future__ import annotations

import importlib
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import TYPE_CHECKING, Any, cast
from urllib.parse import urlparse

import structlog
from pymongo import AsyncMongoClient

from telegate.config import Config
from telegate.core.modules.session.mongo_store import MongoSessionStore
from telegate.core.modules.session.store import MemorySessionStore, SessionStore

if TYPE_CHECKING:
    from telegate.core.modules.auth.service import AuthService
    from telegate.core.modules.cleanup.service import CleanupService

logger = structlog.get_logger(__name__)


class Service:
    """Base class for services working on the session store."""

    def __init__(self, store: SessionStore) -> None:
        self.store = store
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


class Services:
    """Service registry that automatically discovers and initializes services."""

    auth: AuthService
    cleanup: CleanupService

    def __init__(self, store: SessionStore) -> None:
        """Initialize all services automatically using service configuration."""
        self._services: list[Service] = []

        # Service configuration: (attribute_name, module_path, class_name)
        service_configs = [
            ("auth", "telegate.core.modules.auth.service", "AuthService"),
            ("cleanup", "telegate.core.modules.cleanup.service", "CleanupService"),
        ]

        for attr_name, module_path, class_name in service_configs:
            module = importlib.import_module(module_path)
            service_class = cast(type[Service], getattr(module, class_name))
            service_instance = service_class(store)
            setattr(self, attr_name, service_instance)
            self._services.append(service_instance)

    def set_core(self, core: Core) -> None:
        """Set core reference for all services."""
        for service in self._services:
            service.set_core(core)

    async def start_all(self) -> None:
        for service in self._services:
            await service.on_start()

    async def stop_all(self) -> None:
        # Reverse start order
        for service in reversed(self._services):
            await service.on_stop()


class Core:
    """Container providing config, the session store, and all service instances."""

    config: Config
    mongo_client: AsyncMongoClient[dict[str, Any]] | None
    store: SessionStore
    services: Services

    def __init__(self, config: Config, store: SessionStore | None = None) -> None:
        """Initialize core with config and a session store, and auto-register services.

        A store passed in explicitly wins; otherwise MongoDB is used when
        database_url is configured and process memory when it is not.
        """
        self.config = config
        self.mongo_client = None
        self.store = store if store is not None else self._create_store(config)
        self.services = Services(self.store)
        self.services.set_core(self)

    def _create_store(self, config: Config) -> SessionStore:
        timeout = timedelta(seconds=config.session_timeout_seconds)
        if config.database_url is None:
            return MemorySessionStore(timeout=timeout)
        self.mongo_client = AsyncMongoClient(config.database_url, tz_aware=True)
        database = self.mongo_client.get_database(urlparse(config.database_url).path[1:] or "telegate")
        return MongoSessionStore(database, timeout=timeout)

    @asynccontextmanager
    async def lifespan(self) -> AsyncGenerator[None]:
        """Manage application lifecycle - startup and shutdown."""
        await self.on_start()
        try:
            yield
        finally:
            await self.on_stop()

    async def on_start(self) -> None:
        await self.store.on_start()
        await self.services.start_all()
        logger.info("core_started", store=type(self.store).__name__)

    async def on_stop(self) -> None:
        """Stop services, then the store, then close the MongoDB connection."""
        await self.services.stop_all()
        await self.store.on_stop()
        if self.mongo_client is not None:
            await self.mongo_client.aclose()
