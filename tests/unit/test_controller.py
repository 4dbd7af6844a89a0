"""Unit tests for HeatingController.

Most tests mock CubeTransport to pin down the exact command lines; the
end-to-end class drives a real transport over the fake connection.
"""

from __future__ import annotations

import asyncio
import base64
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from max_cube.controller import HeatingController
from max_cube.protocol.types import CubeConfiguration, DeviceRecord, Mode
from max_cube.transport.exceptions import DiscoveryTimeoutError, IOFailureError
from max_cube.transport.line_transport import ConnectionState, CubeTransport
from tests.helpers.cube_fakes import CUBE_INFO_LINE, DEVICE_LIST_LINE, DROP


@pytest.fixture
def mock_transport() -> MagicMock:
    """Mock CubeTransport; async methods become AsyncMocks via spec."""
    transport = MagicMock(spec=CubeTransport)
    transport.state = ConnectionState.READY
    transport.cube_info_line = None
    transport.connect = AsyncMock(return_value=CUBE_INFO_LINE)
    transport.reconnect = AsyncMock(return_value=CUBE_INFO_LINE)
    transport.send_with_response = AsyncMock()
    transport.send_no_response = AsyncMock()
    return transport


@pytest.fixture
def controller(mock_transport) -> HeatingController:
    return HeatingController(mock_transport)


class TestSession:
    """Tests for connect/reconnect/disconnect and cube info."""

    @pytest.mark.asyncio
    async def test_connect_returns_info_line(self, controller, mock_transport):
        assert await controller.connect() == CUBE_INFO_LINE
        mock_transport.connect.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_reconnect_delegates_to_transport(self, controller, mock_transport):
        _ = await controller.reconnect()
        mock_transport.reconnect.assert_awaited_once_with("controller_request")

    @pytest.mark.asyncio
    async def test_disconnect(self, controller, mock_transport):
        await controller.disconnect()
        mock_transport.disconnect.assert_awaited_once()

    def test_cube_info_none_before_handshake(self, controller):
        assert controller.cube_info is None

    def test_cube_info_decoded_from_last_handshake(self, controller, mock_transport):
        mock_transport.cube_info_line = CUBE_INFO_LINE

        info = controller.cube_info

        assert info is not None
        assert info.serial_number == "KEQ0523864"
        assert info.firmware_version == "275"

    def test_get_cube_info_is_pure(self):
        assert HeatingController.get_cube_info(CUBE_INFO_LINE).rf_address == "0b1a2c"

    def test_for_host_builds_transport(self):
        controller = HeatingController.for_host("10.0.0.7", 62910)

        assert controller.transport.conn.host == "10.0.0.7"
        assert controller.transport.conn.port == 62910
        assert controller.transport.state is ConnectionState.DISCONNECTED


class TestQueries:
    """Tests for c: and l:."""

    @pytest.mark.asyncio
    async def test_get_configuration(self, controller, mock_transport):
        mock_transport.send_with_response.return_value = "C:03f25d,7QPyXQATAQ=="

        config = await controller.get_configuration()

        mock_transport.send_with_response.assert_awaited_once_with("c:")
        assert config == CubeConfiguration(address="03f25d", config_data="7QPyXQATAQ==")

    @pytest.mark.asyncio
    async def test_get_device_list(self, controller, mock_transport):
        mock_transport.send_with_response.return_value = DEVICE_LIST_LINE

        devices = await controller.get_device_list()

        mock_transport.send_with_response.assert_awaited_once_with("l:")
        assert devices == [DeviceRecord("123456", 20.0, 20.0, 50)]


class TestActuation:
    """Tests for s:, t: and z:."""

    @pytest.mark.asyncio
    async def test_set_temperature_sends_encoded_command(self, controller, mock_transport):
        mock_transport.send_with_response.return_value = "S:00,0,31"

        await controller.set_temperature("123456", 20.0)

        mock_transport.send_with_response.assert_awaited_once_with("s:AABAAAAAEjRWAGg=")

    @pytest.mark.asyncio
    async def test_set_temperature_with_mode(self, controller, mock_transport):
        await controller.set_temperature("123456", 21.5, Mode.AUTO)

        command = mock_transport.send_with_response.await_args.args[0]
        assert base64.b64decode(command[2:])[-1] == 0x2B

    @pytest.mark.asyncio
    async def test_set_temperature_failure_propagates(self, controller, mock_transport):
        mock_transport.send_with_response.side_effect = IOFailureError("connection_closed")

        with pytest.raises(IOFailureError):
            await controller.set_temperature("123456", 20.0)

    @pytest.mark.asyncio
    async def test_delete_devices_is_fire_and_forget(self, controller, mock_transport):
        await controller.delete_devices(["123456", "abcdef"], force=True)

        mock_transport.send_no_response.assert_awaited_once_with("t:02,1,EjRWq83v")
        mock_transport.send_with_response.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_wake_up_returns_raw_reply(self, controller, mock_transport):
        mock_transport.send_with_response.return_value = "Z:ok"

        reply = await controller.wake_up("123456")

        mock_transport.send_with_response.assert_awaited_once_with("z:1e,D,123456")
        assert reply == "Z:ok"


class TestDiscovery:
    """Tests for new_device()."""

    @pytest.mark.asyncio
    async def test_new_device_returns_address(self, controller, mock_transport):
        payload = base64.b64encode(bytes([0x01, 0x0A, 0x1B, 0x2C, 0x4B, 0x45, 0x51])).decode()
        mock_transport.send_with_response.return_value = f"N:{payload}"

        assert await controller.new_device() == "0a1b2c"
        mock_transport.send_with_response.assert_awaited_once_with("n:003c", reply_timeout=59.0)

    @pytest.mark.asyncio
    async def test_new_device_times_out(self, controller, mock_transport):
        async def never(*_args, **_kwargs):
            await asyncio.sleep(1.0)

        mock_transport.send_with_response.side_effect = never

        with (
            patch("max_cube.controller.DISCOVERY_TIMEOUT_SECONDS", 0.01),
            pytest.raises(DiscoveryTimeoutError) as exc_info,
        ):
            _ = await controller.new_device()

        assert exc_info.value.timeout_seconds == 0.01


class TestEndToEnd:
    """Controller over a real CubeTransport and the fake connection."""

    @pytest.mark.asyncio
    async def test_device_list_after_handshake(self, transport, fake_connection):
        controller = HeatingController(transport)
        fake_connection.script("l", DEVICE_LIST_LINE)

        info = await controller.connect()
        devices = await controller.get_device_list()

        assert info == CUBE_INFO_LINE
        assert devices[0].valve_position == 50
        assert devices[0].measured_temperature == 20.0

    @pytest.mark.asyncio
    async def test_set_temperature_survives_one_drop(self, transport, fake_connection):
        controller = HeatingController(transport)
        fake_connection.script("s", DROP, "S:00,0,31")

        await controller.set_temperature("123456", 20.0)

        assert fake_connection.sent == ["s:AABAAAAAEjRWAGg=", "s:AABAAAAAEjRWAGg="]
