"""Persistence for the trade journal."""

from tradejournal.db.repository import Repository, StoreRepository, as_id
from tradejournal.db.store import (
    DataStore,
    DuplicateRecordError,
    FindResult,
    RecordNotFoundError,
)

__all__ = [
    "DataStore",
    "DuplicateRecordError",
    "FindResult",
    "RecordNotFoundError",
    "Repository",
    "StoreRepository",
    "as_id",
]
