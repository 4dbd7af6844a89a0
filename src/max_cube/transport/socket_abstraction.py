"""Asyncio TCP line socket abstraction with deadlines and instrumentation."""

import asyncio
import logging
import time

logger = logging.getLogger(__name__)


class TCPConnection:
    """Async TCP connection speaking CRLF-terminated text lines.

    Failures are reported through return values (False / None) and logged
    here; the transport decides what they mean.
    """

    def __init__(
        self,
        host: str,
        port: int,
        connect_timeout: float = 5.0,
        io_timeout: float = 5.0,
        max_line_size: int = 65536,
    ):
        """
        Initialize TCP connection parameters.

        Args:
            host: Cube host
            port: Cube port
            connect_timeout: Connection timeout in seconds
            io_timeout: Write (drain) timeout in seconds
            max_line_size: Stream buffer limit; device lists of a full cube are long lines
        """
        self.host = host
        self.port = port
        self.connect_timeout = connect_timeout
        self.io_timeout = io_timeout
        self.max_line_size = max_line_size
        self.reader: asyncio.StreamReader | None = None
        self.writer: asyncio.StreamWriter | None = None
        self._connected = False

    async def connect(self) -> bool:
        """
        Establish TCP connection with timeout, dropping any previous one.

        Returns:
            True if connected successfully, False otherwise
        """
        if self.writer is not None:
            await self.close()

        start_time = time.perf_counter()
        try:
            logger.info(
                "Connecting to %s:%d (timeout: %.1fs)",
                self.host,
                self.port,
                self.connect_timeout,
            )
            self.reader, self.writer = await asyncio.wait_for(
                asyncio.open_connection(self.host, self.port, limit=self.max_line_size),
                timeout=self.connect_timeout,
            )
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            self._connected = True
            logger.info("Connected to %s:%d in %.1fms", self.host, self.port, elapsed_ms)
        except TimeoutError:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "Connection to %s:%d timed out after %.1fms",
                self.host,
                self.port,
                elapsed_ms,
            )
            return False
        except OSError as e:
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.warning(
                "Connection to %s:%d failed after %.1fms: %s",
                self.host,
                self.port,
                elapsed_ms,
                e,
            )
            return False
        else:
            return True

    async def send(self, data: bytes) -> bool:
        """
        Send data with timeout.

        Returns:
            True if sent successfully, False otherwise
        """
        if not self._connected or not self.writer:
            logger.error("Cannot send: not connected to %s:%d", self.host, self.port)
            return False

        start_time = time.perf_counter()
        try:
            self.writer.write(data)
            await asyncio.wait_for(self.writer.drain(), timeout=self.io_timeout)
            elapsed_ms = (time.perf_counter() - start_time) * 1000
            logger.debug(
                "Sent %d bytes to %s:%d in %.1fms",
                len(data),
                self.host,
                self.port,
                elapsed_ms,
            )
        except TimeoutError:
            logger.warning("Send to %s:%d timed out after %.1fs", self.host, self.port, self.io_timeout)
            return False
        except OSError as e:
            logger.warning("Send to %s:%d failed: %s", self.host, self.port, e)
            self._connected = False
            return False
        else:
            return True

    async def recv_line(self, timeout: float | None = None) -> str | None:
        """
        Receive one line, CRLF stripped.

        A timeout leaves the connection usable; EOF or a socket error marks it
        disconnected, so callers can tell the two apart via ``is_connected``.

        Args:
            timeout: Seconds to wait for a full line (None waits indefinitely)

        Returns:
            Decoded line, or None on timeout/EOF/error
        """
        if not self._connected or not self.reader:
            logger.error("Cannot receive: not connected to %s:%d", self.host, self.port)
            return None

        try:
            raw = await asyncio.wait_for(self.reader.readline(), timeout=timeout)
        except TimeoutError:
            logger.debug("No line from %s:%d within %.1fs", self.host, self.port, timeout)
            return None
        except (OSError, ValueError, asyncio.IncompleteReadError) as e:
            # ValueError: line exceeded max_line_size
            logger.warning("Receive from %s:%d failed: %s", self.host, self.port, e)
            self._connected = False
            return None

        if not raw:
            logger.warning("Connection closed by %s:%d", self.host, self.port)
            self._connected = False
            return None

        line = raw.decode("ascii", errors="replace").rstrip("\r\n")
        logger.debug("Received %d chars from %s:%d: %.40s", len(line), self.host, self.port, line)
        return line

    async def close(self) -> None:
        """Close the connection."""
        if self.writer:
            logger.info("Closing connection to %s:%d", self.host, self.port)
            try:
                self.writer.close()
                await self.writer.wait_closed()
            except OSError as e:
                logger.warning("Error closing connection: %s", e)
            finally:
                self._connected = False
                self.writer = None
                self.reader = None

    @property
    def is_connected(self) -> bool:
        """Check if connection is active."""
        return self._connected

    def __repr__(self) -> str:
        """String representation."""
        status = "connected" if self._connected else "disconnected"
        return f"TCPConnection({self.host}:{self.port}, {status})"
