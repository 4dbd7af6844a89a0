"""Unit tests for SQLiteStore against an in-memory database."""

from __future__ import annotations

import pytest

from max_cube.storage import SQLiteStore
from max_cube.storage.exceptions import DuplicateRecordError, StoreNotOpenError
from max_cube.structs import ScheduleJob, StoredDevice


def _job(name: str, one_time: bool = False) -> ScheduleJob:
    return ScheduleJob(
        name=name,
        cron_expression="30 7 * * 1-5",
        target_addresses=("0a0a0a", "0b0b0b"),
        target_temperature=19.5,
        one_time=one_time,
    )


class TestJobs:
    """Tests for the jobs table."""

    @pytest.mark.asyncio
    async def test_jobs_round_trip_in_insertion_order(self):
        async with SQLiteStore(":memory:") as store:
            await store.add_job(_job("weekday"))
            await store.add_job(_job("holiday", one_time=True))

            jobs = await store.list_jobs()

        assert [job.name for job in jobs] == ["weekday", "holiday"]
        assert jobs[0] == _job("weekday")
        assert jobs[0].target_addresses == ("0a0a0a", "0b0b0b")
        assert jobs[1].one_time is True

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self):
        async with SQLiteStore(":memory:") as store:
            await store.add_job(_job("weekday"))

            with pytest.raises(DuplicateRecordError) as exc_info:
                await store.add_job(_job("weekday"))

            assert exc_info.value.table == "jobs"
            assert exc_info.value.key == "weekday"
            assert len(await store.list_jobs()) == 1

    @pytest.mark.asyncio
    async def test_remove_job(self):
        async with SQLiteStore(":memory:") as store:
            await store.add_job(_job("weekday"))

            await store.remove_job("weekday")
            await store.remove_job("never-existed")

            assert await store.list_jobs() == []


class TestDevices:
    """Tests for the devices table."""

    @pytest.mark.asyncio
    async def test_device_round_trip(self):
        async with SQLiteStore(":memory:") as store:
            await store.add_device(StoredDevice(rf_address="0A1B2C", name="Living room"))

            devices = await store.list_devices()

        assert devices == [StoredDevice(rf_address="0a1b2c", name="Living room")]

    @pytest.mark.asyncio
    async def test_duplicate_address_rejected(self):
        async with SQLiteStore(":memory:") as store:
            await store.add_device(StoredDevice(rf_address="0a1b2c", name="Living room"))

            with pytest.raises(DuplicateRecordError):
                await store.add_device(StoredDevice(rf_address="0a1b2c", name="Kitchen"))

    @pytest.mark.asyncio
    async def test_remove_device(self):
        async with SQLiteStore(":memory:") as store:
            await store.add_device(StoredDevice(rf_address="0a1b2c", name="Living room"))

            await store.remove_device("0a1b2c")

            assert await store.list_devices() == []


class TestLifecycle:
    """Tests for open/close."""

    @pytest.mark.asyncio
    async def test_use_before_open_raises(self):
        store = SQLiteStore(":memory:")

        with pytest.raises(StoreNotOpenError):
            _ = await store.list_jobs()

    @pytest.mark.asyncio
    async def test_use_after_close_raises(self):
        store = SQLiteStore(":memory:")
        await store.open()
        await store.close()

        with pytest.raises(StoreNotOpenError):
            await store.add_job(_job("weekday"))

    @pytest.mark.asyncio
    async def test_file_database_persists_across_instances(self, tmp_path):
        db_path = tmp_path / "nested" / "max_cube.sqlite3"

        async with SQLiteStore(db_path) as store:
            await store.add_job(_job("weekday"))
        async with SQLiteStore(db_path) as store:
            jobs = await store.list_jobs()

        assert [job.name for job in jobs] == ["weekday"]
