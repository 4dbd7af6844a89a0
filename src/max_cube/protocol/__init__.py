"""Cube wire protocol: value types, codec and protocol errors."""

from max_cube.protocol.exceptions import CubeProtocolError, PacketDecodeError, PacketEncodeError
from max_cube.protocol.types import CubeConfiguration, CubeInfo, DeviceRecord, Mode

# Reply prefixes the cube emits without being asked
CUBE_INFO_PREFIX = "H:"
DEVICE_LIST_PREFIX = "L:"

__all__ = [
    "CUBE_INFO_PREFIX",
    "DEVICE_LIST_PREFIX",
    "CubeConfiguration",
    "CubeInfo",
    "CubeProtocolError",
    "DeviceRecord",
    "Mode",
    "PacketDecodeError",
    "PacketEncodeError",
]
