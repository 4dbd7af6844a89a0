"""Prometheus metrics registry for the cube link and the scheduler."""

import threading
from typing import Final

from prometheus_client import (  # type: ignore[import-untyped]
    Counter,
    Gauge,
    Histogram,
    start_http_server,
)

# Transport metrics
cube_command_total: Final = Counter(  # type: ignore[assignment]
    "cube_command_total",
    "Total commands written to the cube",
    ["command", "outcome"],
)

cube_command_latency_seconds: Final = Histogram(  # type: ignore[assignment]
    "cube_command_latency_seconds",
    "Command round-trip latency in seconds (write to matching reply line)",
    ["command"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1.0, 2.0, 5.0, 10.0, 30.0, 60.0),
)

cube_retry_attempts_total: Final = Counter(  # type: ignore[assignment]
    "cube_retry_attempts_total",
    "Total commands resent after a reconnect",
    ["command"],
)

cube_connection_state: Final = Gauge(  # type: ignore[assignment]
    "cube_connection_state",
    "Current connection state",
    ["state"],
)

cube_handshake_total: Final = Counter(  # type: ignore[assignment]
    "cube_handshake_total",
    "Total handshake attempts",
    ["outcome"],
)

cube_reconnection_total: Final = Counter(  # type: ignore[assignment]
    "cube_reconnection_total",
    "Total reconnection attempts",
    ["reason"],
)

cube_decode_errors_total: Final = Counter(  # type: ignore[assignment]
    "cube_decode_errors_total",
    "Total payload decode errors",
    ["reason"],
)

# Scheduler metrics
cube_schedule_firings_total: Final = Counter(  # type: ignore[assignment]
    "cube_schedule_firings_total",
    "Total scheduled job firings",
    ["job"],
)

cube_schedule_set_temperature_total: Final = Counter(  # type: ignore[assignment]
    "cube_schedule_set_temperature_total",
    "Scheduled set-temperature outcomes per address",
    ["outcome"],
)

cube_scheduled_jobs: Final = Gauge(  # type: ignore[assignment]
    "cube_scheduled_jobs",
    "Number of armed schedule jobs",
)

_server_state = {"started": False}
_server_lock = threading.Lock()

_CONNECTION_STATES = ("disconnected", "connecting", "ready")


def start_metrics_server(port: int = 9400) -> None:
    """Start Prometheus HTTP metrics server (idempotent)."""
    with _server_lock:
        if not _server_state["started"]:
            start_http_server(port)  # type: ignore[no-untyped-call]
            _server_state["started"] = True


def record_command(command: str, outcome: str) -> None:
    """Record a command write and its outcome."""
    cube_command_total.labels(command=command, outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_command_latency(command: str, latency_seconds: float) -> None:
    """Record command round-trip latency."""
    cube_command_latency_seconds.labels(command=command).observe(latency_seconds)  # type: ignore[no-untyped-call]


def record_retry_attempt(command: str) -> None:
    """Record a resend after reconnect."""
    cube_retry_attempts_total.labels(command=command).inc()  # type: ignore[no-untyped-call]


def record_connection_state(state: str) -> None:
    """Record connection state change."""
    # Set gauge to 1 for current state, 0 for all others
    for s in _CONNECTION_STATES:
        cube_connection_state.labels(state=s).set(1 if s == state else 0)  # type: ignore[no-untyped-call]


def record_handshake(outcome: str) -> None:
    """Record a handshake attempt."""
    cube_handshake_total.labels(outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_reconnection(reason: str) -> None:
    """Record a reconnection attempt."""
    cube_reconnection_total.labels(reason=reason).inc()  # type: ignore[no-untyped-call]


def record_decode_error(reason: str) -> None:
    """Record a payload decode error."""
    cube_decode_errors_total.labels(reason=reason).inc()  # type: ignore[no-untyped-call]


def record_schedule_firing(job: str) -> None:
    """Record a scheduled job firing."""
    cube_schedule_firings_total.labels(job=job).inc()  # type: ignore[no-untyped-call]


def record_schedule_set_temperature(outcome: str) -> None:
    """Record a scheduled set-temperature outcome ("success", "recovered", "failed")."""
    cube_schedule_set_temperature_total.labels(outcome=outcome).inc()  # type: ignore[no-untyped-call]


def record_scheduled_jobs(count: int) -> None:
    """Record number of armed jobs."""
    cube_scheduled_jobs.set(count)  # type: ignore[no-untyped-call]
