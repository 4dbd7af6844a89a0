"""Connection management with state machine, handshake and reply correlation.

This module implements CubeTransport, the single owner of the TCP link to a
cube. All commands are serialized through one asyncio lock (the gate), replies
are matched to the command that caused them by line prefix, and a dropped link
is re-established by re-running the full handshake.
"""

from __future__ import annotations

import asyncio
import contextlib
import time
from enum import Enum

from max_cube.const import (
    CUBE_HANDSHAKE_TIMEOUT,
    CUBE_LINE_TERMINATOR,
    CUBE_RECONNECT_INTERVAL,
    CUBE_REPLY_TIMEOUT,
)
from max_cube.correlation import correlation_context, get_correlation_id
from max_cube.logging_abstraction import get_logger
from max_cube.metrics import registry
from max_cube.protocol import CUBE_INFO_PREFIX, DEVICE_LIST_PREFIX
from max_cube.protocol.codec import CubeCodec
from max_cube.transport.exceptions import (
    IOFailureError,
    NotConnectedError,
    ProtocolMismatchError,
    TransportError,
)
from max_cube.transport.socket_abstraction import TCPConnection

logger = get_logger(__name__)

# First attempt plus exactly one resend after reconnecting
_MAX_SEND_ATTEMPTS = 2
_DISCONNECT_COMMAND = "q:"


class ConnectionState(Enum):
    """Connection state enumeration."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    READY = "ready"


class CubeTransport:
    """Owns the one TCP connection to a cube and serializes commands over it.

    **Gate**: ``send_with_response``, ``send_no_response``, ``reconnect`` and
    ``disconnect`` hold ``_gate`` for their whole exchange, so at most one
    command is ever in flight. Waiters are not served in FIFO order.

    **Handshake**: ``connect()`` is guarded by a separate ``_connect_lock``.
    The deferred reconnect scheduled after a failed no-response send takes
    only this lock, never the gate; whichever of it and a gated caller enters
    second re-validates READY and returns without reopening the socket.

    **Correlation**: a reply matches when the text before its first colon
    equals the upper-cased prefix of the command. Anything else read while
    waiting (unsolicited lines, stale replies from before a reconnect) is
    discarded.
    """

    def __init__(
        self,
        connection: TCPConnection,
        handshake_timeout: float = CUBE_HANDSHAKE_TIMEOUT,
        reply_timeout: float = CUBE_REPLY_TIMEOUT,
        reconnect_interval: float = CUBE_RECONNECT_INTERVAL,
    ) -> None:
        """Initialize transport.

        Args:
            connection: TCP line connection abstraction
            handshake_timeout: Deadline for the H:/L: greeting after connecting
            reply_timeout: Default window for a matching reply line
            reconnect_interval: Backoff before the deferred reconnect

        """
        self.conn: TCPConnection = connection
        self.handshake_timeout: float = handshake_timeout
        self.reply_timeout: float = reply_timeout
        self.reconnect_interval: float = reconnect_interval
        self.state: ConnectionState = ConnectionState.DISCONNECTED
        self.cube_info_line: str | None = None
        self.reconnect_task: asyncio.Task[None] | None = None
        self._gate: asyncio.Lock = asyncio.Lock()
        self._connect_lock: asyncio.Lock = asyncio.Lock()

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_ready(self) -> bool:
        """True when the handshake completed and the socket is still open."""
        return self.state is ConnectionState.READY and self.conn.is_connected

    def _set_state(self, state: ConnectionState) -> None:
        if state is not self.state:
            logger.debug("Connection state %s → %s", self.state.value, state.value)
        self.state = state
        registry.record_connection_state(state.value)

    async def _mark_disconnected(self) -> None:
        self._set_state(ConnectionState.DISCONNECTED)
        await self.conn.close()

    # ------------------------------------------------------------------
    # Handshake
    # ------------------------------------------------------------------

    async def connect(self) -> str:
        """Open the socket and run the handshake unless already READY.

        Returns:
            The H: cube-info line of the current session

        Raises:
            NotConnectedError: If the socket cannot be opened or the handshake fails

        """
        async with self._connect_lock:
            if self.is_ready and self.cube_info_line is not None:
                logger.debug("connect() on a ready transport, nothing to do")
                return self.cube_info_line
            return await self._open_and_handshake()

    async def _open_and_handshake(self) -> str:
        self._set_state(ConnectionState.CONNECTING)
        logger.info("→ Starting connection handshake", extra={"host": self.conn.host, "port": self.conn.port})

        if not await self.conn.connect():
            self._set_state(ConnectionState.DISCONNECTED)
            registry.record_handshake("failed")
            raise NotConnectedError("connect_failed", state=self.state.value)

        try:
            async with asyncio.timeout(self.handshake_timeout):
                info_line = await self._read_greeting()
        except TimeoutError as e:
            await self._mark_disconnected()
            registry.record_handshake("timeout")
            logger.warning("✗ Handshake timed out after %.1fs", self.handshake_timeout)
            raise NotConnectedError("handshake_timeout", state=self.state.value) from e
        except NotConnectedError:
            await self._mark_disconnected()
            registry.record_handshake("failed")
            raise

        self.cube_info_line = info_line
        self._set_state(ConnectionState.READY)
        registry.record_handshake("success")
        logger.info("✓ Handshake complete", extra={"cube_info": info_line})
        return info_line

    async def _read_greeting(self) -> str:
        """Read lines until an H: line followed by an L: line."""
        info_line: str | None = None
        while True:
            line = await self.conn.recv_line()
            if line is None:
                raise NotConnectedError("closed_during_handshake", state=self.state.value)
            if line.startswith(CUBE_INFO_PREFIX):
                info_line = line
            elif line.startswith(DEVICE_LIST_PREFIX) and info_line is not None:
                return info_line
            else:
                logger.debug("Ignoring handshake line %.20s", line)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def _ensure_ready(self) -> None:
        if not self.is_ready:
            await self.connect()

    async def _write(self, command: str) -> None:
        if not await self.conn.send(command.encode("ascii") + CUBE_LINE_TERMINATOR):
            raise IOFailureError("write_failed", state=self.state.value)

    async def _await_reply(self, expected_prefix: str, timeout: float | None) -> str:
        loop = asyncio.get_running_loop()
        deadline = None if timeout is None else loop.time() + timeout
        while True:
            remaining = None if deadline is None else deadline - loop.time()
            if remaining is not None and remaining <= 0:
                raise ProtocolMismatchError(expected_prefix, timeout or 0.0, state=self.state.value)

            line = await self.conn.recv_line(remaining)
            if line is None:
                if not self.conn.is_connected:
                    raise IOFailureError("connection_closed", state=self.state.value)
                raise ProtocolMismatchError(expected_prefix, timeout or 0.0, state=self.state.value)

            if CubeCodec.line_prefix(line).upper() == expected_prefix:
                return line
            logger.debug("Skipping %.20s while awaiting %s:", line, expected_prefix)

    async def _exchange(self, command: str, expected_prefix: str, timeout: float | None) -> str:
        start_time = time.perf_counter()
        await self._write(command)
        line = await self._await_reply(expected_prefix, timeout)
        registry.record_command_latency(expected_prefix, time.perf_counter() - start_time)
        return line

    async def send_with_response(self, command: str, reply_timeout: float | None = None) -> str:
        """Send a command and return the first reply line with the matching prefix.

        Any transport failure drops the connection; the first one is followed
        by a reconnect and exactly one resend, the second propagates. The
        resend is unconditional, so a command whose reply was merely late may
        reach the cube twice.

        Args:
            command: Command line without CRLF, e.g. "l:"
            reply_timeout: Reply window per attempt (None uses the transport default)

        Raises:
            NotConnectedError: If the session could not be (re)established
            IOFailureError: If the exchange failed twice (ProtocolMismatchError
                when no matching reply arrived)

        """
        expected_prefix = CubeCodec.reply_prefix(command)
        timeout = self.reply_timeout if reply_timeout is None else reply_timeout

        with correlation_context(get_correlation_id()):
            async with self._gate:
                attempt = 0
                while True:
                    attempt += 1
                    try:
                        await self._ensure_ready()
                        line = await self._exchange(command, expected_prefix, timeout)
                    except TransportError as e:
                        await self._mark_disconnected()
                        if attempt >= _MAX_SEND_ATTEMPTS:
                            registry.record_command(expected_prefix, "failed")
                            logger.error("✗ Command %s: failed after resend: %s", expected_prefix.lower(), e)
                            raise
                        registry.record_retry_attempt(expected_prefix)
                        registry.record_reconnection(e.reason)
                        logger.warning(
                            "Command %s: failed (%s), reconnecting and resending once",
                            expected_prefix.lower(),
                            e.reason,
                        )
                        continue

                    registry.record_command(expected_prefix, "success" if attempt == 1 else "retried")
                    return line

    async def send_no_response(self, command: str) -> None:
        """Send a command without waiting for a reply.

        On failure the connection is dropped, a reconnect is scheduled after
        ``reconnect_interval``, and the error is re-raised without a resend.

        Raises:
            NotConnectedError: If no session could be established
            IOFailureError: If the write failed

        """
        prefix = CubeCodec.reply_prefix(command)
        with correlation_context(get_correlation_id()):
            async with self._gate:
                try:
                    await self._ensure_ready()
                    await self._write(command)
                except TransportError as e:
                    registry.record_command(prefix, "failed")
                    await self._mark_disconnected()
                    self._trigger_reconnect(e.reason)
                    raise
                registry.record_command(prefix, "success")

    # ------------------------------------------------------------------
    # Reconnect / disconnect
    # ------------------------------------------------------------------

    def _trigger_reconnect(self, reason: str) -> None:
        """Schedule a deferred reconnect unless one is already pending."""
        if self.reconnect_task is None or self.reconnect_task.done():
            logger.info("Scheduling reconnect in %.1fs", self.reconnect_interval, extra={"reason": reason})
            self.reconnect_task = asyncio.create_task(self._reconnect_later(reason))
        else:
            logger.debug("Reconnect already pending", extra={"reason": reason})

    async def _reconnect_later(self, reason: str) -> None:
        await asyncio.sleep(self.reconnect_interval)
        registry.record_reconnection(reason)
        try:
            await self.connect()
        except NotConnectedError as e:
            # Next command retries the handshake itself
            logger.warning("Deferred reconnect failed: %s", e, extra={"reason": reason})

    async def reconnect(self, reason: str = "requested") -> str:
        """Tear the session down and run the handshake again.

        Returns:
            The H: line of the new session

        Raises:
            NotConnectedError: If the new session cannot be established

        """
        async with self._gate:
            logger.info("→ Forced reconnection", extra={"reason": reason})
            registry.record_reconnection(reason)
            await self._mark_disconnected()
            return await self.connect()

    async def disconnect(self) -> None:
        """Say goodbye (q:) if possible and close the socket.

        A pending deferred reconnect is cancelled first.
        """
        if self.reconnect_task and not self.reconnect_task.done():
            _ = self.reconnect_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self.reconnect_task
        self.reconnect_task = None

        async with self._gate:
            if self.is_ready:
                _ = await self.conn.send(_DISCONNECT_COMMAND.encode("ascii") + CUBE_LINE_TERMINATOR)
            await self._mark_disconnected()
        logger.info("Disconnect complete")

    def __repr__(self) -> str:
        """String representation."""
        return f"CubeTransport({self.conn!r}, state={self.state.value})"
