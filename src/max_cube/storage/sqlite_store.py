"""SQLite-backed device and schedule store (aiosqlite)."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from types import TracebackType
from typing import Self

import aiosqlite

from max_cube.storage.exceptions import DuplicateRecordError, StoreNotOpenError
from max_cube.structs import ScheduleJob, StoredDevice

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS devices (
        rf_address TEXT PRIMARY KEY,
        name TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS jobs (
        name TEXT PRIMARY KEY,
        cron TEXT NOT NULL,
        addresses TEXT NOT NULL,
        temperature REAL NOT NULL,
        one_time BOOLEAN NOT NULL DEFAULT 0
    )
    """,
)


class SQLiteStore:
    """Implements DeviceStore and ScheduleStore on a single aiosqlite connection.

    Every operation is an independent single-row statement committed
    immediately; there are no multi-statement transactions.

    Usage:
        >>> async with SQLiteStore(":memory:") as store:
        ...     await store.add_job(job)
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path: str = str(db_path)
        self._conn: aiosqlite.Connection | None = None

    async def open(self) -> None:
        """Open the database and create the tables if needed."""
        if self._conn is not None:
            return
        if self.db_path != ":memory:":
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self.db_path)
        for statement in _SCHEMA:
            await self._conn.execute(statement)
        await self._conn.commit()
        logger.info("Opened store %s", self.db_path)

    async def close(self) -> None:
        if self._conn is not None:
            await self._conn.close()
            self._conn = None

    async def __aenter__(self) -> Self:
        await self.open()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    @property
    def _db(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise StoreNotOpenError
        return self._conn

    async def _insert(self, table: str, key: str, query: str, params: tuple[object, ...]) -> None:
        try:
            await self._db.execute(query, params)
        except aiosqlite.IntegrityError as e:
            raise DuplicateRecordError(table, key) from e
        await self._db.commit()

    # Devices

    async def add_device(self, device: StoredDevice) -> None:
        await self._insert(
            "devices",
            device.rf_address,
            "INSERT INTO devices (rf_address, name) VALUES (?, ?)",
            (device.rf_address, device.name),
        )

    async def remove_device(self, rf_address: str) -> None:
        await self._db.execute("DELETE FROM devices WHERE rf_address = ?", (rf_address,))
        await self._db.commit()

    async def list_devices(self) -> list[StoredDevice]:
        async with self._db.execute("SELECT rf_address, name FROM devices ORDER BY rowid") as cursor:
            rows = await cursor.fetchall()
        return [StoredDevice(rf_address=rf_address, name=name) for rf_address, name in rows]

    # Jobs

    async def add_job(self, job: ScheduleJob) -> None:
        await self._insert(
            "jobs",
            job.name,
            "INSERT INTO jobs (name, cron, addresses, temperature, one_time) VALUES (?, ?, ?, ?, ?)",
            (
                job.name,
                job.cron_expression,
                json.dumps(list(job.target_addresses)),
                job.target_temperature,
                job.one_time,
            ),
        )

    async def remove_job(self, name: str) -> None:
        await self._db.execute("DELETE FROM jobs WHERE name = ?", (name,))
        await self._db.commit()

    async def list_jobs(self) -> list[ScheduleJob]:
        async with self._db.execute(
            "SELECT name, cron, addresses, temperature, one_time FROM jobs ORDER BY rowid"
        ) as cursor:
            rows = await cursor.fetchall()
        return [
            ScheduleJob(
                name=name,
                cron_expression=cron,
                target_addresses=json.loads(addresses),
                target_temperature=temperature,
                one_time=bool(one_time),
            )
            for name, cron, addresses, temperature, one_time in rows
        ]
