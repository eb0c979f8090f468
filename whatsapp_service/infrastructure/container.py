"""
Dependency Injection Container - Composition Root Pattern
========================================================
Assembles the session service from Settings. Created once by the API server.

RULES:
- NO business logic (only object assembly)
- Constructor injection only
- Every service is a singleton for the lifetime of the container
"""

import asyncio
from pathlib import Path
from typing import Any, Dict

from ..application.controllers.session_controller import SessionController
from ..core.logger import StructuredLogger
from ..domain.interfaces.storage import IObjectStore, IStatusStore
from ..domain.services.credential_store import CredentialStoreBridge
from ..domain.services.status_publisher import StatusPublisher
from .config.settings import AppSettings
from .storage.supabase_store import (
    SupabaseObjectStore,
    SupabaseStatusStore,
    create_supabase_client,
)
from .transport.loader import load_transport_factory


class Container:
    """
    Composition root for the session service.

    Storage adapters, the credential bridge, the status publisher and the
    session controller are each created once on first request.
    """

    def __init__(self, settings: AppSettings, logger: StructuredLogger):
        self.settings = settings
        self.logger = logger

        self._singleton_services: Dict[str, Any] = {}
        self._singleton_creations: Dict[str, asyncio.Task] = {}
        self._singleton_lock = asyncio.Lock()

    async def _get_or_create_singleton_async(self, service_name: str, factory_func) -> Any:
        """
        Create ``service_name`` once. Concurrent callers await the same
        creation task; the lock is not held while the factory runs, so
        factories may request other services.
        """
        existing = self._singleton_services.get(service_name)
        if existing is not None:
            return existing

        async with self._singleton_lock:
            existing = self._singleton_services.get(service_name)
            if existing is not None:
                return existing
            task = self._singleton_creations.get(service_name)
            if task is None:
                self.logger.debug("container.service_creation_started", {"service": service_name})
                task = asyncio.create_task(factory_func())
                self._singleton_creations[service_name] = task

        try:
            service = await task
        finally:
            self._singleton_creations.pop(service_name, None)

        if service is None:
            raise RuntimeError(f"Factory returned None for service: {service_name}")
        self._singleton_services[service_name] = service
        return service

    async def create_supabase_client(self):
        async def _create():
            client = await create_supabase_client(self.settings.supabase)
            self.logger.info("container.supabase_client_created", {"url": self.settings.supabase.url})
            return client

        return await self._get_or_create_singleton_async("supabase_client", _create)

    async def create_object_store(self) -> IObjectStore:
        async def _create():
            client = await self.create_supabase_client()
            return SupabaseObjectStore(client, self.settings.supabase.storage_bucket)

        return await self._get_or_create_singleton_async("object_store", _create)

    async def create_status_store(self) -> IStatusStore:
        async def _create():
            client = await self.create_supabase_client()
            return SupabaseStatusStore(client, self.settings.supabase.status_table)

        return await self._get_or_create_singleton_async("status_store", _create)

    async def create_credential_store(self) -> CredentialStoreBridge:
        async def _create():
            return CredentialStoreBridge(
                object_store=await self.create_object_store(),
                local_dir=Path(self.settings.whatsapp.credentials_dir),
                prefix=self.settings.whatsapp.session_id
            )

        return await self._get_or_create_singleton_async("credential_store", _create)

    async def create_status_publisher(self) -> StatusPublisher:
        async def _create():
            return StatusPublisher(
                status_store=await self.create_status_store(),
                row_id=self.settings.supabase.status_row_id,
                heartbeat_interval=self.settings.status.heartbeat_interval_seconds
            )

        return await self._get_or_create_singleton_async("status_publisher", _create)

    async def create_session_controller(self) -> SessionController:
        async def _create():
            transport_factory = load_transport_factory(self.settings.whatsapp.transport)
            controller = SessionController(
                credential_store=await self.create_credential_store(),
                publisher=await self.create_status_publisher(),
                transport_factory=transport_factory
            )
            self.logger.info("container.session_controller_created", {
                "session_id": self.settings.whatsapp.session_id,
                "transport": self.settings.whatsapp.transport
            })
            return controller

        return await self._get_or_create_singleton_async("session_controller", _create)
