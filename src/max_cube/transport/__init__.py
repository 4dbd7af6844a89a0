"""Transport layer: one gated, self-healing line connection to the cube."""

from max_cube.transport.exceptions import (
    DiscoveryTimeoutError,
    IOFailureError,
    NotConnectedError,
    ProtocolMismatchError,
    TransportError,
)
from max_cube.transport.line_transport import ConnectionState, CubeTransport
from max_cube.transport.socket_abstraction import TCPConnection

__all__ = [
    "ConnectionState",
    "CubeTransport",
    "DiscoveryTimeoutError",
    "IOFailureError",
    "NotConnectedError",
    "ProtocolMismatchError",
    "TCPConnection",
    "TransportError",
]
