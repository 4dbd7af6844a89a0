"""Custom exception types for transport layer errors.

This module defines the exception hierarchy for transport-related errors,
extending the protocol exceptions. Callers of the controller only ever see
these types (or codec errors) on failure paths.
"""

from __future__ import annotations

from max_cube.protocol.exceptions import CubeProtocolError


class TransportError(CubeProtocolError):
    """Base class for failures talking to the cube.

    Attributes:
        reason: Specific failure reason
        state: Connection state when error occurred

    """

    def __init__(self, message: str, reason: str, state: str = "unknown") -> None:
        """Initialize transport error with message, reason and state."""
        self.reason: str = reason
        self.state: str = state
        super().__init__(f"{message}: {reason} (state: {state})")


class NotConnectedError(TransportError):
    """No session could be established.

    Raised when:
    - The TCP connection cannot be opened
    - The handshake (H: then L:) does not complete
    """

    def __init__(self, reason: str, state: str = "unknown") -> None:
        """Initialize not-connected error."""
        super().__init__("Not connected", reason, state)


class IOFailureError(TransportError):
    """Write or read failed in the middle of a command.

    Raised when:
    - The socket write fails or times out
    - The cube closes the connection while a reply is awaited
    """

    def __init__(self, reason: str, state: str = "unknown") -> None:
        """Initialize I/O failure error."""
        super().__init__("I/O failure", reason, state)


class ProtocolMismatchError(IOFailureError):
    """No reply line matching the command prefix arrived in time.

    Treated like any other I/O failure for retry purposes.

    Attributes:
        expected_prefix: Reply prefix that was awaited
        timeout_seconds: Reply window that elapsed

    """

    def __init__(self, expected_prefix: str, timeout_seconds: float, state: str = "unknown") -> None:
        """Initialize protocol mismatch error."""
        self.expected_prefix: str = expected_prefix
        self.timeout_seconds: float = timeout_seconds
        super().__init__(f"no {expected_prefix}: reply within {timeout_seconds}s", state)


class DiscoveryTimeoutError(TransportError):
    """Pairing window elapsed without a new device announcing itself.

    Attributes:
        timeout_seconds: Discovery ceiling that was exceeded

    """

    def __init__(self, timeout_seconds: float, state: str = "unknown") -> None:
        """Initialize discovery timeout error."""
        self.timeout_seconds: float = timeout_seconds
        super().__init__("Discovery timed out", f"no device after {timeout_seconds}s", state)
