"""Shared fixtures for unit tests.

This module provides the fake cube link and in-memory store used across the
transport, controller and scheduler tests.
"""

import pytest

from max_cube.transport.line_transport import CubeTransport
from tests.helpers.cube_fakes import FakeCubeConnection, InMemoryScheduleStore


@pytest.fixture
def fake_connection() -> FakeCubeConnection:
    """Connection double with the default H:/L: greeting."""
    return FakeCubeConnection()


@pytest.fixture
def transport(fake_connection: FakeCubeConnection) -> CubeTransport:
    """CubeTransport over the fake connection with short timeouts."""
    return CubeTransport(
        fake_connection,  # type: ignore[arg-type]
        handshake_timeout=0.2,
        reply_timeout=0.05,
        reconnect_interval=0.01,
    )


@pytest.fixture
def schedule_store() -> InMemoryScheduleStore:
    return InMemoryScheduleStore()
