"""Value types decoded from, or encoded into, cube protocol lines."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class Mode(StrEnum):
    """Thermostat mode; the member order is the 2-bit wire value."""

    AUTO = "auto"
    MANUAL = "manual"
    VACATION = "vacation"
    BOOST = "boost"

    @property
    def bits(self) -> int:
        return _MODE_ORDER.index(self)

    @classmethod
    def from_bits(cls, bits: int) -> Mode:
        return _MODE_ORDER[bits & 0b11]


_MODE_ORDER: tuple[Mode, ...] = tuple(Mode)


@dataclass(frozen=True, slots=True)
class DeviceRecord:
    """One entry of an L: device list.

    The optional fields are only populated when the payload carries
    extended records (first byte > 6).

    Attributes:
        rf_address: 6 lowercase hex chars
        target_temperature: Setpoint in half degrees
        measured_temperature: Room temperature in tenth degrees
        valve_position: Valve opening, 0-100 percent
    """

    rf_address: str
    target_temperature: float | None = None
    measured_temperature: float | None = None
    valve_position: int | None = None


@dataclass(frozen=True, slots=True)
class CubeInfo:
    """Gateway identity decoded from the H: handshake line."""

    serial_number: str
    rf_address: str
    firmware_version: str
    duty_cycle: str
    free_memory_slots: str


@dataclass(frozen=True, slots=True)
class CubeConfiguration:
    """Raw C: reply: the addressed entity and its base64 configuration blob."""

    address: str
    config_data: str
