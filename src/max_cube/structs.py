"""Persistent records and the store protocols the scheduler depends on."""

from __future__ import annotations

from typing import Protocol

from croniter import croniter
from pydantic import BaseModel, ConfigDict, Field, field_validator

from max_cube.protocol.codec import CubeCodec
from max_cube.protocol.exceptions import PacketEncodeError


def _normalize_address(value: str) -> str:
    # Round-trip through the codec: rejects non-hex, pads to 6 lowercase chars
    try:
        return CubeCodec.decode_address(CubeCodec.encode_address(value.strip()))
    except PacketEncodeError as e:
        raise ValueError(str(e)) from e


class StoredDevice(BaseModel):
    """A named device known to the installation."""

    model_config = ConfigDict(frozen=True)

    rf_address: str
    name: str = Field(min_length=1)

    @field_validator("rf_address")
    @classmethod
    def _check_address(cls, value: str) -> str:
        return _normalize_address(value)


class ScheduleJob(BaseModel):
    """A named, cron-triggered set-temperature over a list of devices.

    Records are immutable; changing a job means removing it and adding the
    replacement.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    cron_expression: str
    target_addresses: tuple[str, ...] = Field(min_length=1)
    target_temperature: float
    # Caller removes one-time jobs after they ran; the scheduler never does
    one_time: bool = False

    @field_validator("cron_expression")
    @classmethod
    def _check_cron(cls, value: str) -> str:
        value = " ".join(value.split())
        if len(value.split(" ")) not in (5, 6) or not croniter.is_valid(value):
            msg = f"invalid cron expression: {value!r}"
            raise ValueError(msg)
        return value

    @field_validator("target_addresses")
    @classmethod
    def _check_addresses(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        # Ordered set: keep first occurrence
        return tuple(dict.fromkeys(_normalize_address(address) for address in value))


class DeviceStore(Protocol):
    """Persistence of named devices."""

    async def add_device(self, device: StoredDevice) -> None: ...

    async def remove_device(self, rf_address: str) -> None: ...

    async def list_devices(self) -> list[StoredDevice]: ...


class ScheduleStore(Protocol):
    """Persistence of schedule jobs. Names are unique; duplicates are rejected."""

    async def add_job(self, job: ScheduleJob) -> None: ...

    async def remove_job(self, name: str) -> None: ...

    async def list_jobs(self) -> list[ScheduleJob]: ...
