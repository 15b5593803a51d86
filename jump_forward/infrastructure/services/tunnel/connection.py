"""
Stream connection wrapper with read/write deadlines.

Wraps either an asyncio stream pair (local side) or an asyncssh stream
pair (end-host channel); both expose the same reader/writer surface.
"""

import asyncio
from typing import Any, Optional

from loguru import logger

from ....core.domain.errors import DeadlineSetFailed

# Bound on waiting for a close when no write deadline is set
CLOSE_TIMEOUT = 5.0


class StreamConnection:
    """One side of a connection pair."""

    def __init__(self, reader: Any, writer: Any, name: str):
        self._reader = reader
        self._writer = writer
        self._name = name
        self._read_timeout: Optional[float] = None
        self._write_timeout: Optional[float] = None
        self._closed = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def read_timeout(self) -> Optional[float]:
        return self._read_timeout

    @property
    def write_timeout(self) -> Optional[float]:
        return self._write_timeout

    def set_deadlines(self, read_timeout: float, write_timeout: float) -> None:
        """
        Bound every subsequent read and write.

        Raises:
            DeadlineSetFailed: If the connection is closed or a timeout
                is not a positive number
        """
        if self._closed:
            raise DeadlineSetFailed(self._name, "connection is closed")

        for label, value in (("read", read_timeout), ("write", write_timeout)):
            if value is None or value <= 0:
                raise DeadlineSetFailed(
                    self._name, f"{label} timeout must be positive, got {value}")

        self._read_timeout = read_timeout
        self._write_timeout = write_timeout

    async def read(self, size: int) -> bytes:
        """Read up to ``size`` bytes; ``b''`` means end of stream."""
        if self._read_timeout is None:
            return await self._reader.read(size)
        return await asyncio.wait_for(self._reader.read(size), self._read_timeout)

    async def write(self, data: bytes) -> None:
        self._writer.write(data)
        if self._write_timeout is None:
            await self._writer.drain()
        else:
            await asyncio.wait_for(self._writer.drain(), self._write_timeout)

    def write_eof(self) -> None:
        """Half-close the write side when the transport supports it."""
        if self._closed:
            return
        try:
            if self._writer.can_write_eof():
                self._writer.write_eof()
        except (OSError, RuntimeError) as e:
            logger.debug(f"write_eof on {self._name} failed: {e}")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        try:
            self._writer.close()
        except Exception as e:
            logger.debug(f"Error closing {self._name}: {e}")

    async def aclose(self) -> None:
        """Close and wait until the transport is gone, at most the write timeout."""
        self.close()

        timeout = self._write_timeout or CLOSE_TIMEOUT
        try:
            await asyncio.wait_for(self._writer.wait_closed(), timeout)
        except asyncio.TimeoutError:
            logger.debug(f"{self._name} not closed after {timeout:g}s")
        except Exception as e:
            logger.debug(f"Error closing {self._name}: {e}")

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"<StreamConnection {self._name} ({state})>"
