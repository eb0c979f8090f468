"""
Supabase Storage Adapters
=========================
``IObjectStore`` over a Supabase Storage bucket and ``IStatusStore`` over a
Supabase (PostgREST) table, both using the async client.

Every remote failure is re-raised as ``StoreError`` so the session core only
has to know one exception type.
"""

from typing import Any, Dict, List, Optional

from supabase import AsyncClient, acreate_client
from supabase.lib.client_options import AsyncClientOptions

from ...core.exceptions import StoreError
from ...core.logger import StructuredLogger, get_logger
from ...domain.interfaces.storage import IObjectStore, IStatusStore
from ..config.settings import SupabaseSettings


_ALREADY_EXISTS_MARKERS = ("already exists", "duplicate", "409")


async def create_supabase_client(settings: SupabaseSettings) -> AsyncClient:
    """Service-role client; no auth session is persisted or refreshed."""
    if not settings.url or not settings.service_role_key:
        raise ValueError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")
    return await acreate_client(
        settings.url,
        settings.service_role_key,
        options=AsyncClientOptions(persist_session=False, auto_refresh_token=False),
    )


def _is_already_exists(error: Exception) -> bool:
    text = str(error).lower()
    return any(marker in text for marker in _ALREADY_EXISTS_MARKERS)


class SupabaseObjectStore(IObjectStore):
    """Credential objects in one private bucket."""

    def __init__(self, client: AsyncClient, bucket: str, logger: Optional[StructuredLogger] = None):
        self.client = client
        self.bucket = bucket
        self.logger = logger or get_logger(__name__)

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    async def ensure_container(self) -> bool:
        try:
            await self.client.storage.create_bucket(self.bucket, options={"public": False})
        except Exception as e:
            if _is_already_exists(e):
                return False
            raise StoreError("create_bucket", self.bucket, str(e)) from e
        self.logger.info("supabase_store.bucket_created", {"bucket": self.bucket})
        return True

    async def list(self, prefix: str) -> List[str]:
        try:
            entries = await self._bucket().list(prefix)
        except Exception as e:
            raise StoreError("list", prefix, str(e)) from e
        # Folder placeholders come back without an id
        return [
            entry["name"]
            for entry in (entries or [])
            if entry.get("name") and entry.get("id") is not None
            and entry["name"] != ".emptyFolderPlaceholder"
        ]

    async def download(self, key: str) -> bytes:
        try:
            return await self._bucket().download(key)
        except Exception as e:
            raise StoreError("download", key, str(e)) from e

    async def upload(self, key: str, data: bytes, upsert: bool = True) -> None:
        try:
            await self._bucket().upload(
                key,
                data,
                file_options={
                    "content-type": "application/octet-stream",
                    "upsert": "true" if upsert else "false",
                },
            )
        except Exception as e:
            raise StoreError("upload", key, str(e)) from e

    async def remove(self, keys: List[str]) -> None:
        if not keys:
            return
        try:
            await self._bucket().remove(list(keys))
        except Exception as e:
            raise StoreError("remove", f"{len(keys)} keys", str(e)) from e


class SupabaseStatusStore(IStatusStore):
    """The status row in a Supabase table, keyed by ``id``."""

    def __init__(self, client: AsyncClient, table: str, logger: Optional[StructuredLogger] = None):
        self.client = client
        self.table = table
        self.logger = logger or get_logger(__name__)

    async def update(self, row_id: Any, values: Dict[str, Any]) -> None:
        try:
            response = await self.client.table(self.table).update(values).eq("id", row_id).execute()
            if not response.data:
                # Fresh database: create the row on first write
                await self.client.table(self.table).upsert({"id": row_id, **values}).execute()
                self.logger.info("supabase_store.status_row_created", {
                    "table": self.table,
                    "id": row_id
                })
        except Exception as e:
            raise StoreError("update", f"{self.table}:{row_id}", str(e)) from e

    async def fetch(self, row_id: Any) -> Optional[Dict[str, Any]]:
        try:
            response = await self.client.table(self.table).select("*").eq("id", row_id).limit(1).execute()
        except Exception as e:
            raise StoreError("fetch", f"{self.table}:{row_id}", str(e)) from e
        rows = response.data or []
        return rows[0] if rows else None
