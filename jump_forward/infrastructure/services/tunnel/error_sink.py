"""
Error sink for asynchronous tunnel failures.
"""

import asyncio
from typing import AsyncIterator, Optional

from loguru import logger

from ....core.interfaces.tunnel import IErrorSink

_CLOSED = object()


class ErrorSink(IErrorSink):
    """
    Queue of failures produced by the accept loop and the relays.

    With ``maxsize`` > 0 producers wait in ``report`` until the consumer
    drains the sink. ``maxsize`` of 0 makes the sink unbounded.
    """

    def __init__(self, maxsize: int = 0):
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=maxsize)
        self._closed = False
        self._reported = 0
        self._dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def reported(self) -> int:
        """Number of errors accepted by the sink."""
        return self._reported

    @property
    def dropped(self) -> int:
        """Number of errors reported after close."""
        return self._dropped

    async def report(self, error: Exception) -> None:
        if self._closed:
            self._dropped += 1
            logger.debug(f"Error sink closed, dropping: {error}")
            return

        logger.debug(f"Reporting tunnel error: {error}")
        await self._queue.put(error)
        self._reported += 1

    async def get(self) -> Optional[Exception]:
        if self._closed and self._queue.empty():
            return None

        item = await self._queue.get()
        if item is _CLOSED:
            # Keep the marker for any other waiter
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def get_nowait(self) -> Optional[Exception]:
        """Return a pending error, or None if nothing is queued."""
        try:
            item = self._queue.get_nowait()
        except asyncio.QueueEmpty:
            return None
        if item is _CLOSED:
            self._queue.put_nowait(_CLOSED)
            return None
        return item

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        try:
            self._queue.put_nowait(_CLOSED)
        except asyncio.QueueFull:
            # Readers find the sink closed once they drain it
            pass

    def __aiter__(self) -> AsyncIterator[Exception]:
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[Exception]:
        while True:
            error = await self.get()
            if error is None:
                return
            yield error
