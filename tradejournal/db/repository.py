"""Async repository interface over the data store."""

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Mapping, Optional

from tradejournal.db.store import DataStore, FindResult


def as_id(value: Any) -> int:
    """Resolve a record reference to its integer ID.

    Accepts an int, a numeric string, a mapping with an ``id`` key, or an
    object with an ``id`` attribute (e.g. a model instance).

    Raises:
        ValueError: If no integer ID can be resolved.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a record reference: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            raise ValueError(f"Not a record reference: {value!r}") from None
    if isinstance(value, Mapping):
        if "id" not in value:
            raise ValueError(f"Record reference has no id: {value!r}")
        return as_id(value["id"])
    if getattr(value, "id", None) is not None:
        return as_id(value.id)
    raise ValueError(f"Not a record reference: {value!r}")


class Repository(ABC):
    """Abstract base class for record repositories.

    The aggregate coordinator only needs these four operations. No
    isolation is assumed across calls.
    """

    @abstractmethod
    async def find(
        self,
        collection: str,
        where: Optional[dict[str, Any]] = None,
        limit: Optional[int] = None,
        page: int = 1,
        sort: Optional[str] = None,
    ) -> FindResult:
        """Query records; ``limit=0`` returns only the total count."""
        pass

    @abstractmethod
    async def find_by_id(self, collection: str, record_id: int) -> Optional[dict[str, Any]]:
        """Get a record by ID, or None."""
        pass

    @abstractmethod
    async def update(
        self, collection: str, record_id: int, data: dict[str, Any]
    ) -> dict[str, Any]:
        """Update some fields of a record and return it."""
        pass

    async def count(self, collection: str, where: Optional[dict[str, Any]] = None) -> int:
        """Count records matching a filter."""
        result = await self.find(collection, where, limit=0)
        return result.total_docs


class StoreRepository(Repository):
    """Repository backed by a DataStore.

    SQLite calls run in a worker thread so the event loop stays free.
    """

    def __init__(self, store: DataStore):
        self.store = store

    async def find(
        self,
        collection: str,
        where: Optional[dict[str, Any]] = None,
        limit: Optional[int] = None,
        page: int = 1,
        sort: Optional[str] = None,
    ) -> FindResult:
        return await asyncio.to_thread(self.store.find, collection, where, limit, page, sort)

    async def find_by_id(self, collection: str, record_id: int) -> Optional[dict[str, Any]]:
        return await asyncio.to_thread(self.store.find_by_id, collection, record_id)

    async def update(
        self, collection: str, record_id: int, data: dict[str, Any]
    ) -> dict[str, Any]:
        return await asyncio.to_thread(self.store.update, collection, record_id, data)

    async def insert(self, collection: str, data: dict[str, Any]) -> dict[str, Any]:
        return await asyncio.to_thread(self.store.insert, collection, data)

    async def delete(self, collection: str, record_id: int) -> Optional[dict[str, Any]]:
        return await asyncio.to_thread(self.store.delete, collection, record_id)
