"""Persistence of devices and schedule jobs."""

from max_cube.storage.exceptions import DuplicateRecordError, StoreError, StoreNotOpenError
from max_cube.storage.sqlite_store import SQLiteStore

__all__ = [
    "DuplicateRecordError",
    "SQLiteStore",
    "StoreError",
    "StoreNotOpenError",
]
