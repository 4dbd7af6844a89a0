"""Metrics module."""

from . import registry
from .registry import (
    record_command,
    record_command_latency,
    record_connection_state,
    record_decode_error,
    record_handshake,
    record_reconnection,
    record_retry_attempt,
    start_metrics_server,
)

__all__ = [
    "record_command",
    "record_command_latency",
    "record_connection_state",
    "record_decode_error",
    "record_handshake",
    "record_reconnection",
    "record_retry_attempt",
    "registry",
    "start_metrics_server",
]
