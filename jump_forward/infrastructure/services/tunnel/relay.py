"""
Bidirectional relay between a local connection and an end-host channel.

Each direction runs in its own task. Failures are reported on the error
sink and close the pair; they never propagate further.
"""

import asyncio
from typing import Dict, List, Optional, Tuple

from loguru import logger

from ....core.domain.errors import DeadlineExceeded, RelayCopyFailed
from ....core.interfaces.tunnel import IErrorSink
from .connection import StreamConnection

LOCAL_TO_REMOTE = "local -> remote"
REMOTE_TO_LOCAL = "remote -> local"


class Relay:
    """Copies bytes both ways between ``local`` and ``remote``."""

    def __init__(
        self,
        local: StreamConnection,
        remote: StreamConnection,
        errors: IErrorSink,
        buffer_size: int = 32768,
        name: str = "relay"
    ):
        self._local = local
        self._remote = remote
        self._errors = errors
        self._buffer_size = buffer_size
        self._name = name
        self._tasks: List["asyncio.Task[Optional[Exception]]"] = []
        self._finished = 0
        self._closing = False
        self.bytes_copied: Dict[str, int] = {LOCAL_TO_REMOTE: 0, REMOTE_TO_LOCAL: 0}

    @property
    def name(self) -> str:
        return self._name

    @property
    def done(self) -> bool:
        return bool(self._tasks) and all(task.done() for task in self._tasks)

    def start(self) -> Tuple["asyncio.Task[Optional[Exception]]", ...]:
        """Spawn the two copy tasks and return them."""
        if self._tasks:
            raise RuntimeError(f"{self._name} already started")

        self._tasks = [
            asyncio.create_task(
                self._copy(self._local, self._remote, LOCAL_TO_REMOTE),
                name=f"{self._name} {LOCAL_TO_REMOTE}"
            ),
            asyncio.create_task(
                self._copy(self._remote, self._local, REMOTE_TO_LOCAL),
                name=f"{self._name} {REMOTE_TO_LOCAL}"
            ),
        ]
        logger.debug(f"{self._name}: relaying {self._local.name} <-> {self._remote.name}")
        return tuple(self._tasks)

    async def wait(self) -> List[Optional[Exception]]:
        """
        Wait for both directions.

        Returns:
            One entry per direction: None on clean end of stream, else
            the error that was reported for it
        """
        results = await asyncio.gather(*self._tasks, return_exceptions=True)
        return [None if isinstance(r, asyncio.CancelledError) else r for r in results]

    async def cancel(self) -> None:
        """Stop both directions and close the pair."""
        self._closing = True
        for task in self._tasks:
            if not task.done():
                task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.aclose()

    def close(self) -> None:
        self._closing = True
        self._local.close()
        self._remote.close()

    async def aclose(self) -> None:
        """Close the pair and wait for both transports to go away."""
        self._closing = True
        await asyncio.gather(self._local.aclose(), self._remote.aclose())

    async def _copy(
        self,
        source: StreamConnection,
        destination: StreamConnection,
        direction: str
    ) -> Optional[Exception]:
        operation = "read"
        error: Optional[Exception] = None

        try:
            while True:
                operation = "read"
                data = await source.read(self._buffer_size)
                if not data:
                    break

                operation = "write"
                await destination.write(data)
                self.bytes_copied[direction] += len(data)

            destination.write_eof()
        except asyncio.TimeoutError:
            timeout = source.read_timeout if operation == "read" else destination.write_timeout
            error = DeadlineExceeded(direction, operation, timeout or 0.0)
        except Exception as e:
            error = RelayCopyFailed(direction, str(e) or e.__class__.__name__)
        finally:
            self._finished += 1

        if error is not None:
            if self._closing:
                # Fallout from the pair being torn down
                logger.debug(f"{self._name}: {error} (pair already closing)")
                error = None
            else:
                logger.warning(f"{self._name}: {error}")
                self.close()
                await self._errors.report(error)

        if self._finished == 2:
            await self.aclose()
            logger.debug(
                f"{self._name}: closed after {self.bytes_copied[LOCAL_TO_REMOTE]} bytes up, "
                f"{self.bytes_copied[REMOTE_TO_LOCAL]} bytes down"
            )

        return error
