"""
Status Publisher
================
Writes partial updates to the single status row and keeps a heartbeat going.

Writes tagged with a socket generation are dropped once that generation has
been superseded, so a late callback from a torn-down socket can never
overwrite the status published by its replacement. Writes are serialized and
the generation is checked again right before each store call.
"""

import asyncio
from typing import Any, Callable, Dict, Optional

from ...core.logger import StructuredLogger, get_logger
from ..interfaces.storage import IStatusStore
from ..models.connection_status import ConnectionSnapshot, utc_now_iso


class StatusPublisher:
    """Best-effort sink for connection status snapshots."""

    def __init__(
        self,
        status_store: IStatusStore,
        row_id: Any = 1,
        heartbeat_interval: float = 30.0,
        logger: Optional[StructuredLogger] = None
    ):
        self.status_store = status_store
        self.row_id = row_id
        self.heartbeat_interval = heartbeat_interval
        self.logger = logger or get_logger(__name__)

        # Supplied by the Session Controller; None means every write is current
        self._current_generation: Optional[Callable[[], int]] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        # Generation check and store write happen under one lock
        self._write_lock = asyncio.Lock()

    def bind_generation_source(self, current_generation: Callable[[], int]) -> None:
        self._current_generation = current_generation

    def is_current(self, generation: Optional[int]) -> bool:
        if generation is None or self._current_generation is None:
            return True
        return generation == self._current_generation()

    async def publish(self, updates: Dict[str, Any], generation: Optional[int] = None) -> bool:
        """
        Stamp ``updated_at`` and write ``updates`` to the status row.

        Returns False when the write was discarded as stale or failed. Never
        raises: a status write must not break the caller.
        """
        if not self.is_current(generation):
            self.logger.debug("status_publisher.stale_write_discarded", {
                "generation": generation,
                "fields": sorted(updates)
            })
            return False

        async with self._write_lock:
            # The generation may have moved on while this write waited its turn
            if not self.is_current(generation):
                self.logger.debug("status_publisher.stale_write_discarded", {
                    "generation": generation,
                    "fields": sorted(updates)
                })
                return False

            values = dict(updates)
            values["updated_at"] = utc_now_iso()
            try:
                await self.status_store.update(self.row_id, values)
                return True
            except Exception as e:
                self.logger.error("status_publisher.write_failed", {
                    "fields": sorted(values),
                    "error": str(e),
                    "error_type": type(e).__name__
                })
                return False

    async def heartbeat(self) -> bool:
        return await self.publish({"heartbeat_at": utc_now_iso()})

    async def fetch(self) -> Optional[ConnectionSnapshot]:
        """Read the status row. Raises if the store is unreachable."""
        row = await self.status_store.fetch(self.row_id)
        if not row:
            return None
        return ConnectionSnapshot.from_row(row)

    # Heartbeat lifecycle

    @property
    def heartbeat_running(self) -> bool:
        return self._heartbeat_task is not None and not self._heartbeat_task.done()

    def start_heartbeat(self) -> None:
        if self.heartbeat_running:
            self.logger.warning("status_publisher.heartbeat_already_running")
            return
        self._heartbeat_task = asyncio.create_task(self._heartbeat_loop())
        self.logger.info("status_publisher.heartbeat_started", {
            "interval_seconds": self.heartbeat_interval
        })

    async def stop_heartbeat(self) -> None:
        task, self._heartbeat_task = self._heartbeat_task, None
        if task is None:
            return
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        self.logger.info("status_publisher.heartbeat_stopped")

    async def _heartbeat_loop(self) -> None:
        while True:
            await self.heartbeat()
            await asyncio.sleep(self.heartbeat_interval)
