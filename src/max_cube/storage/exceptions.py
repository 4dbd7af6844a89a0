"""Custom exception types for the persistence layer."""

from __future__ import annotations


class StoreError(Exception):
    """Base exception for persistence failures."""


class StoreNotOpenError(StoreError):
    """Store used before open() or after close()."""

    def __init__(self) -> None:
        """Initialize store-not-open error."""
        super().__init__("Store is not open")


class DuplicateRecordError(StoreError):
    """A record with the same primary key already exists.

    Attributes:
        table: Table the insert targeted
        key: Conflicting primary key value

    """

    def __init__(self, table: str, key: str) -> None:
        """Initialize duplicate record error."""
        self.table: str = table
        self.key: str = key
        super().__init__(f"Duplicate {table} record: {key}")
