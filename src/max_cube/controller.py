"""Public actuation and query API for a MAX! Cube.

Every operation is encode (CubeCodec) → CubeTransport call → decode
(CubeCodec). The controller holds no state beyond its transport.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

from max_cube.const import (
    CUBE_CONNECT_TIMEOUT,
    CUBE_HOST,
    CUBE_IO_TIMEOUT,
    CUBE_PORT,
    DISCOVERY_COMMAND,
    DISCOVERY_TIMEOUT_SECONDS,
    WAKE_UP_DEFAULT_DURATION,
)
from max_cube.logging_abstraction import get_logger
from max_cube.protocol.codec import CubeCodec
from max_cube.protocol.types import CubeConfiguration, CubeInfo, DeviceRecord, Mode
from max_cube.transport.exceptions import DiscoveryTimeoutError
from max_cube.transport.line_transport import CubeTransport
from max_cube.transport.socket_abstraction import TCPConnection

logger = get_logger(__name__)


class HeatingController:
    """High-level cube operations.

    Usage:
        >>> controller = HeatingController.for_host("192.168.0.153")
        >>> await controller.connect()
        >>> devices = await controller.get_device_list()
        >>> await controller.set_temperature(devices[0].rf_address, 21.5)

    Failures surface as NotConnectedError, IOFailureError (ProtocolMismatchError
    included) or, for new_device(), DiscoveryTimeoutError.
    """

    def __init__(self, transport: CubeTransport) -> None:
        self.transport: CubeTransport = transport

    @classmethod
    def for_host(cls, host: str = CUBE_HOST, port: int = CUBE_PORT) -> HeatingController:
        """Build a controller with a default transport for ``host:port``."""
        connection = TCPConnection(host, port, connect_timeout=CUBE_CONNECT_TIMEOUT, io_timeout=CUBE_IO_TIMEOUT)
        return cls(CubeTransport(connection))

    @property
    def cube_info(self) -> CubeInfo | None:
        """Cube identity from the most recent handshake, if any."""
        line = self.transport.cube_info_line
        return CubeCodec.decode_cube_info(line) if line else None

    async def connect(self) -> str:
        """Establish the session (no-op when already connected).

        Returns:
            The raw H: line, for logging/inspection only
        """
        info = await self.transport.connect()
        logger.info("Connected to cube", extra={"cube_info": info})
        return info

    async def reconnect(self) -> str:
        """Force a fresh session even if the current one looks healthy."""
        info = await self.transport.reconnect("controller_request")
        logger.info("Reconnected to cube", extra={"cube_info": info})
        return info

    async def disconnect(self) -> None:
        """Close the session."""
        await self.transport.disconnect()

    async def get_configuration(self) -> CubeConfiguration:
        response = await self.transport.send_with_response("c:")
        return CubeCodec.decode_configuration(response)

    async def get_device_list(self) -> list[DeviceRecord]:
        """Query the device list; order is wire order and may change between calls."""
        response = await self.transport.send_with_response("l:")
        return CubeCodec.decode_device_list(CubeCodec.line_payload(response))

    async def new_device(self) -> str:
        """Put the cube in pairing mode and wait for a device to announce itself.

        Returns:
            Radio address of the paired device

        Raises:
            DiscoveryTimeoutError: No device within 59 seconds, resends included

        """
        logger.info("Waiting up to %.0fs for a device to pair", DISCOVERY_TIMEOUT_SECONDS)
        try:
            response = await asyncio.wait_for(
                self.transport.send_with_response(DISCOVERY_COMMAND, reply_timeout=DISCOVERY_TIMEOUT_SECONDS),
                timeout=DISCOVERY_TIMEOUT_SECONDS,
            )
        except TimeoutError as e:
            raise DiscoveryTimeoutError(DISCOVERY_TIMEOUT_SECONDS, state=self.transport.state.value) from e
        rf_address = CubeCodec.decode_new_device(CubeCodec.line_payload(response))
        logger.info("Discovered device %s", rf_address)
        return rf_address

    async def delete_devices(self, rf_addresses: Sequence[str], force: bool = False) -> None:
        """Remove devices from the cube; ``force`` also drops devices with pending associations."""
        command = CubeCodec.encode_delete_devices(rf_addresses, force)
        await self.transport.send_no_response(command)
        logger.info("Deleted %d device(s)", len(rf_addresses), extra={"force": force})

    async def set_temperature(self, rf_address: str, temperature: float, mode: Mode = Mode.MANUAL) -> None:
        """Set a device's target temperature; the S: reply is only an acknowledgement."""
        command = CubeCodec.encode_set_temperature(rf_address, temperature, mode)
        await self.transport.send_with_response(command)
        logger.info(
            "Set %s to %.1f°C (%s)",
            rf_address,
            temperature,
            mode.value,
        )

    async def wake_up(self, rf_address: str, duration: int = WAKE_UP_DEFAULT_DURATION) -> str:
        """Wake a device for ``duration`` seconds and return the raw Z: reply."""
        return await self.transport.send_with_response(CubeCodec.encode_wake_up(rf_address, duration))

    @staticmethod
    def get_cube_info(line: str) -> CubeInfo:
        """Decode a previously captured H: line (no I/O)."""
        return CubeCodec.decode_cube_info(line)
