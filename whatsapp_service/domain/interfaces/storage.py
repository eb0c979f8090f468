"""
Storage Interfaces - Ports for remote persistence
================================================
Abstract interfaces for the remote object store holding credential bundles
and the key-value store holding the status row.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class IObjectStore(ABC):
    """
    Interface for a bucket-style object store.

    Keys are slash-separated paths ("<prefix>/<file name>"). Adapters raise
    ``StoreError`` on remote failures.
    """

    @abstractmethod
    async def ensure_container(self) -> bool:
        """Create the bucket if missing. Returns True if it was created."""
        pass

    @abstractmethod
    async def list(self, prefix: str) -> List[str]:
        """Return file names (not full keys) directly under ``prefix``."""
        pass

    @abstractmethod
    async def download(self, key: str) -> bytes:
        pass

    @abstractmethod
    async def upload(self, key: str, data: bytes, upsert: bool = True) -> None:
        pass

    @abstractmethod
    async def remove(self, keys: List[str]) -> None:
        """Delete all ``keys`` in one batch call."""
        pass


class IStatusStore(ABC):
    """Interface for the single-row status record."""

    @abstractmethod
    async def update(self, row_id: Any, values: Dict[str, Any]) -> None:
        """Overwrite the given columns of the row in place."""
        pass

    @abstractmethod
    async def fetch(self, row_id: Any) -> Optional[Dict[str, Any]]:
        """Return the row or None when it does not exist."""
        pass
