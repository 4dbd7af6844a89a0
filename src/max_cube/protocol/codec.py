"""Cube protocol encoder/decoder implementation.

Converts between the binary structures the cube speaks (radio addresses,
temperature commands, device lists) and the base64/hex text carried on the
CRLF-terminated wire lines.
"""

from __future__ import annotations

import base64
import binascii
import logging
import math
import string
from collections.abc import Sequence

from max_cube.metrics import registry
from max_cube.protocol.exceptions import PacketDecodeError, PacketEncodeError
from max_cube.protocol.types import CubeConfiguration, CubeInfo, DeviceRecord, Mode

# Protocol constants
RF_ADDRESS_LENGTH_BYTES = 3
LINE_PREFIX_LENGTH = 2  # e.g. "L:"
DEVICE_RECORD_STRIDE = 12
EXTENDED_RECORD_THRESHOLD = 6  # first byte above this -> records carry temperatures
SET_TEMPERATURE_COMMAND = 0x40
CUBE_INFO_MIN_FIELDS = 7

logger = logging.getLogger(__name__)


class CubeCodec:
    """Cube protocol encoder/decoder.

    Provides static methods for encoding commands and decoding reply lines.
    All methods are stateless - no instance state maintained.
    """

    # ------------------------------------------------------------------
    # Framing helpers
    # ------------------------------------------------------------------

    @staticmethod
    def reply_prefix(command: str) -> str:
        """Return the reply prefix a command is answered with.

        Example:
            >>> CubeCodec.reply_prefix("s:AARAAAAAEjRWAAA=")
            'S'

        """
        return command.split(":", 1)[0].upper()

    @staticmethod
    def line_prefix(line: str) -> str:
        """Return the text before the first colon of a reply line."""
        return line.split(":", 1)[0]

    @staticmethod
    def line_payload(line: str) -> str:
        """Strip the 2-char prefix and surrounding whitespace from a reply line."""
        return line[LINE_PREFIX_LENGTH:].strip()

    @staticmethod
    def _b64decode(data: str) -> bytes:
        try:
            return base64.b64decode(data, validate=True)
        except (binascii.Error, ValueError) as e:
            registry.record_decode_error("invalid_base64")
            error_reason = "invalid_base64"
            raise PacketDecodeError(error_reason, data) from e

    # ------------------------------------------------------------------
    # Addresses
    # ------------------------------------------------------------------

    @staticmethod
    def encode_address(rf_address: str) -> bytes:
        """Encode a hex radio address as 3 big-endian bytes.

        Raises:
            PacketEncodeError: If the address is not 1-6 hex digits

        """
        # int(x, 16) alone would also take "0x", signs, underscores and spaces
        if not 0 < len(rf_address) <= RF_ADDRESS_LENGTH_BYTES * 2 or not all(
            c in string.hexdigits for c in rf_address
        ):
            error_reason = "invalid_address"
            raise PacketEncodeError(error_reason, rf_address)
        return int(rf_address, 16).to_bytes(RF_ADDRESS_LENGTH_BYTES, "big")

    @staticmethod
    def decode_address(data: bytes) -> str:
        """Render 3 address bytes as 6 lowercase hex chars."""
        return data[:RF_ADDRESS_LENGTH_BYTES].hex()

    # ------------------------------------------------------------------
    # Temperature
    # ------------------------------------------------------------------

    @staticmethod
    def encode_temperature_byte(temperature: float, mode: Mode = Mode.MANUAL) -> int:
        """Pack mode (2 high bits) and doubled temperature (6 low bits).

        The doubled temperature is rounded half up. Range checking is the
        caller's job; overflowing values spill into the mode bits exactly as
        the cube firmware would see them.
        """
        half_degrees = math.floor(temperature * 2 + 0.5)
        return ((mode.bits << 6) | half_degrees) & 0xFF

    @staticmethod
    def decode_temperature_byte(value: int) -> tuple[float, Mode]:
        """Inverse of encode_temperature_byte."""
        return (value & 0x3F) / 2, Mode.from_bits(value >> 6)

    @staticmethod
    def encode_set_temperature(rf_address: str, temperature: float, mode: Mode = Mode.MANUAL) -> str:
        """Build the s: command line (without CRLF).

        Payload: [0x00, rf_flags, 0x40, from(3 zero bytes), to(3), room_id, temp_byte]
        """
        payload = bytes(
            [
                0x00,
                0x00,  # rf flags
                SET_TEMPERATURE_COMMAND,
                0x00,
                0x00,
                0x00,  # from address
                *CubeCodec.encode_address(rf_address),
                0x00,  # room id
                CubeCodec.encode_temperature_byte(temperature, mode),
            ]
        )
        command = f"s:{base64.b64encode(payload).decode('ascii')}"
        logger.debug(
            "Encoded set temperature: address=%s temperature=%.1f mode=%s",
            rf_address,
            temperature,
            mode.value,
        )
        return command

    # ------------------------------------------------------------------
    # Device list / discovery
    # ------------------------------------------------------------------

    @staticmethod
    def decode_device_list(payload: str) -> list[DeviceRecord]:
        """Decode the base64 payload of an L: line into device records.

        Records are fixed 12-byte strides. A first byte above 6 means every
        record carries valve/target/measured fields; otherwise only addresses
        are present. A trailing fragment shorter than a stride is ignored.

        Example:
            >>> raw = bytes([0x07, 0x12, 0x34, 0x56, 0, 0, 0, 0x32, 0x28, 0x00, 0xC8, 0])
            >>> CubeCodec.decode_device_list(base64.b64encode(raw).decode())
            [DeviceRecord(rf_address='123456', target_temperature=20.0, measured_temperature=20.0, valve_position=50)]

        """
        data = CubeCodec._b64decode(payload)
        if not data:
            return []

        extended = data[0] > EXTENDED_RECORD_THRESHOLD
        devices: list[DeviceRecord] = []
        offset = 0
        while len(data) - offset >= DEVICE_RECORD_STRIDE:
            record = data[offset : offset + DEVICE_RECORD_STRIDE]
            rf_address = CubeCodec.decode_address(record[1:4])
            if extended:
                devices.append(
                    DeviceRecord(
                        rf_address=rf_address,
                        target_temperature=record[8] / 2,
                        measured_temperature=(record[9] * 256 + record[10]) / 10,
                        valve_position=record[7],
                    )
                )
            else:
                devices.append(DeviceRecord(rf_address=rf_address))
            offset += DEVICE_RECORD_STRIDE

        logger.debug("Decoded %d device record(s), extended=%s", len(devices), extended)
        return devices

    @staticmethod
    def decode_new_device(payload: str) -> str:
        """Return the radio address announced in an N: discovery reply."""
        data = CubeCodec._b64decode(payload)
        if len(data) < 1 + RF_ADDRESS_LENGTH_BYTES:
            registry.record_decode_error("too_short")
            error_reason = "too_short"
            raise PacketDecodeError(error_reason, payload)
        return CubeCodec.decode_address(data[1:4])

    # ------------------------------------------------------------------
    # Delete / wake-up
    # ------------------------------------------------------------------

    @staticmethod
    def encode_delete_devices(rf_addresses: Sequence[str], force: bool = False) -> str:
        """Build the t: command line removing devices from the cube.

        ``force`` also removes devices that still have pending associations.
        """
        addresses = b"".join(CubeCodec.encode_address(address) for address in rf_addresses)
        return f"t:{len(rf_addresses):02x},{'1' if force else '0'},{base64.b64encode(addresses).decode('ascii')}"

    @staticmethod
    def encode_wake_up(rf_address: str, duration: int) -> str:
        """Build the z: command line keeping a device awake for ``duration`` seconds."""
        return f"z:{duration:02x},D,{CubeCodec.encode_address(rf_address).hex()}"

    # ------------------------------------------------------------------
    # Cube info / configuration
    # ------------------------------------------------------------------

    @staticmethod
    def decode_cube_info(line: str) -> CubeInfo:
        """Decode an H: line.

        Fields: serial, rf address, firmware (hex), ..., duty cycle (5),
        free memory slots (6).

        Raises:
            PacketDecodeError: If the line has fewer than 7 fields or a bad firmware field

        """
        parts = line[LINE_PREFIX_LENGTH:].strip().split(",")
        if len(parts) < CUBE_INFO_MIN_FIELDS:
            registry.record_decode_error("too_few_fields")
            error_reason = "too_few_fields"
            raise PacketDecodeError(error_reason, line)
        try:
            firmware_version = str(int(parts[2], 16))
        except ValueError as e:
            registry.record_decode_error("invalid_firmware")
            error_reason = "invalid_firmware"
            raise PacketDecodeError(error_reason, line) from e
        return CubeInfo(
            serial_number=parts[0],
            rf_address=parts[1],
            firmware_version=firmware_version,
            duty_cycle=parts[5],
            free_memory_slots=parts[6],
        )

    @staticmethod
    def decode_configuration(line: str) -> CubeConfiguration:
        """Decode a C: line into its address and base64 configuration blob."""
        parts = line[LINE_PREFIX_LENGTH:].strip().split(",")
        if len(parts) < 2:
            registry.record_decode_error("too_few_fields")
            error_reason = "too_few_fields"
            raise PacketDecodeError(error_reason, line)
        return CubeConfiguration(address=parts[0], config_data=parts[1])
