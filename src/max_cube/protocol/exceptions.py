"""Custom exception types for cube protocol errors.

This module defines the root of the exception hierarchy. Codec failures raise
instead of returning None so that no partial domain value ever reaches a
caller.
"""

from __future__ import annotations


class CubeProtocolError(Exception):
    """Base exception for all cube protocol errors.

    Transport and codec exceptions inherit from this base class, enabling
    catch-all error handling where needed (the scheduler does this per
    address) while keeping specific types for detailed handling.
    """


class PacketDecodeError(CubeProtocolError):
    """Reply payload cannot be decoded.

    Raised when a reply line carries invalid base64, too few bytes, or too
    few comma-separated fields.

    Attributes:
        reason: Specific failure reason (e.g., "invalid_base64", "too_short")
        data_preview: First 32 characters of the offending payload

    """

    def __init__(self, reason: str, data: str = "") -> None:
        """Initialize decode error with reason and payload preview."""
        self.reason: str = reason
        self.data_preview: str = data[:32] if data else ""
        super().__init__(f"Packet decode failed: {reason}")


class PacketEncodeError(CubeProtocolError):
    """Command arguments cannot be encoded.

    Attributes:
        reason: Specific failure reason (e.g., "invalid_address")
        value: The rejected value, rendered with repr()

    """

    def __init__(self, reason: str, value: object = None) -> None:
        """Initialize encode error with reason and rejected value."""
        self.reason: str = reason
        self.value: str = repr(value)
        super().__init__(f"Packet encode failed: {reason} ({self.value})")
