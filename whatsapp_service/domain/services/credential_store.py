"""
Credential Store Bridge
=======================
Moves the WhatsApp credential bundle between the local credential folder and
the remote object store.

- Local folder: write-through cache the transport library reads and writes.
- Remote prefix: durable copy, one object per local file, same names.

Every remote failure is logged per file and the surrounding operation keeps
going. There is no cross-file atomicity: a sync racing a load can observe a
mixed bundle, which ``clear()`` recovers from.
"""

import asyncio
import shutil
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import aiofiles
import aiofiles.os

from ...core.exceptions import StoreError
from ...core.logger import StructuredLogger, get_logger
from ..interfaces.storage import IObjectStore


@dataclass
class TransferReport:
    """Outcome of a load or sync pass."""
    attempted: int = 0
    succeeded: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, object]:
        return {
            "attempted": self.attempted,
            "succeeded": len(self.succeeded),
            "failed": dict(self.failed),
        }


class CredentialStoreBridge:
    """Keeps one credential bundle in sync between local disk and remote storage."""

    def __init__(
        self,
        object_store: IObjectStore,
        local_dir: Path,
        prefix: str,
        logger: Optional[StructuredLogger] = None
    ):
        self.object_store = object_store
        self.local_dir = Path(local_dir)
        self.prefix = prefix.strip("/")
        self.logger = logger or get_logger(__name__)

        # Uploads of the same key must never overlap
        self._sync_lock = asyncio.Lock()

    def _remote_key(self, name: str) -> str:
        return f"{self.prefix}/{name}"

    def _local_files(self) -> List[Path]:
        if not self.local_dir.is_dir():
            return []
        return sorted(p for p in self.local_dir.iterdir() if p.is_file())

    def has_local_credentials(self) -> bool:
        return bool(self._local_files())

    async def _list_remote(self) -> List[str]:
        try:
            names = await self.object_store.list(self.prefix)
        except StoreError as e:
            self.logger.warning("credential_store.list_failed", {
                "prefix": self.prefix,
                "error": str(e)
            })
            return []
        return list(names or [])

    async def load(self) -> TransferReport:
        """
        Restore the remote bundle into the local folder.

        Local files with the same name are overwritten. Local files absent
        remotely are left alone. An empty remote listing means no prior
        session and is not an error.

        Raises:
            OSError: the local folder cannot be created
        """
        await aiofiles.os.makedirs(self.local_dir, exist_ok=True)

        try:
            created = await self.object_store.ensure_container()
            if created:
                self.logger.info("credential_store.container_created", {"prefix": self.prefix})
        except StoreError as e:
            self.logger.warning("credential_store.ensure_container_failed", {"error": str(e)})

        report = TransferReport()
        names = await self._list_remote()
        if not names:
            self.logger.info("credential_store.no_remote_session", {"prefix": self.prefix})
            return report

        for name in names:
            report.attempted += 1
            try:
                data = await self.object_store.download(self._remote_key(name))
                async with aiofiles.open(self.local_dir / name, "wb") as f:
                    await f.write(data)
                report.succeeded.append(name)
            except (StoreError, OSError) as e:
                report.failed[name] = str(e)
                self.logger.warning("credential_store.download_failed", {
                    "file": name,
                    "error": str(e)
                })

        self.logger.info("credential_store.load_completed", report.to_dict())
        return report

    async def write_local(self, files: Mapping[str, bytes]) -> None:
        """Persist rotated credential files into the local folder."""
        if not files:
            return
        await aiofiles.os.makedirs(self.local_dir, exist_ok=True)
        for name, data in files.items():
            if Path(name).name != name:
                raise ValueError(f"Credential file name must be flat, got '{name}'")
            async with aiofiles.open(self.local_dir / name, "wb") as f:
                await f.write(data)

    async def sync(self) -> TransferReport:
        """
        Upload every local credential file with upsert semantics.

        Serialized: a call made while another sync runs waits for it. Never
        raises for a failed upload; failures land in the returned report.
        """
        async with self._sync_lock:
            report = TransferReport()
            for path in self._local_files():
                report.attempted += 1
                try:
                    async with aiofiles.open(path, "rb") as f:
                        data = await f.read()
                    await self.object_store.upload(self._remote_key(path.name), data, upsert=True)
                    report.succeeded.append(path.name)
                except (StoreError, OSError) as e:
                    report.failed[path.name] = str(e)
                    self.logger.warning("credential_store.upload_failed", {
                        "file": path.name,
                        "error": str(e)
                    })

            if report.failed:
                self.logger.warning("credential_store.sync_partial", report.to_dict())
            else:
                self.logger.debug("credential_store.sync_completed", report.to_dict())
            return report

    async def clear(self) -> None:
        """Delete the remote prefix in one batch and the local folder."""
        names = await self._list_remote()
        if names:
            keys = [self._remote_key(name) for name in names]
            try:
                await self.object_store.remove(keys)
            except StoreError as e:
                self.logger.error("credential_store.remote_clear_failed", {
                    "prefix": self.prefix,
                    "keys": len(keys),
                    "error": str(e)
                })

        await self.clear_local()
        self.logger.info("credential_store.cleared", {
            "prefix": self.prefix,
            "remote_keys": len(names)
        })

    async def clear_local(self) -> None:
        if self.local_dir.exists():
            await asyncio.to_thread(shutil.rmtree, self.local_dir, True)
