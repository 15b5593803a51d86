"""
Tunnel forwarder.

Owns the local listener and the SSH session of one tunnel and runs the
accept loop: for every local client a fresh channel is opened on the end
host, both sides get their deadlines and the pair is handed to a relay.
Pairs are set up strictly one after another.
"""

import asyncio
import time
from typing import Any, Callable, Dict, Optional, Set, Tuple

from loguru import logger

from ....core.domain.errors import (
    AcceptFailed, ChannelOpenFailed, DeadlineSetFailed, ListenFailed
)
from ....core.domain.models import TunnelSpec
from ....core.interfaces.tunnel import ITunnelForwarder, TunnelStatus
from ....core.services.validator import validate
from ...clients.ssh.session import SessionBuilder, TunnelSession
from .connection import StreamConnection
from .error_sink import ErrorSink
from .listener import Listener
from .relay import Relay


class TunnelForwarder(ITunnelForwarder):
    """
    Local-to-remote TCP tunnel over SSH.

    Usage:
        forwarder = TunnelForwarder(spec)
        await forwarder.start()
        async for error in forwarder.errors:
            ...
        await forwarder.stop()
    """

    def __init__(
        self,
        spec: Optional[TunnelSpec],
        session_builder: Callable[[TunnelSpec], Any] = SessionBuilder
    ):
        """
        Initialize the forwarder.

        Args:
            spec: Tunnel definition, validated on ``start``
            session_builder: Factory returning an object whose ``build``
                coroutine yields a ``TunnelSession``
        """
        self._spec = spec
        self._session_builder = session_builder
        self._errors = ErrorSink(spec.error_queue_size if spec else 0)

        self._status = TunnelStatus.STOPPED
        self._session: Optional[TunnelSession] = None
        self._listener: Optional[Listener] = None
        self._accept_task: Optional["asyncio.Task[None]"] = None
        self._pending_channel: Optional[StreamConnection] = None
        self._relays: Set[Relay] = set()

        self._started = False
        self._stop_requested = False
        self._released = False
        self._pairs_served = 0
        self._started_at: Optional[float] = None
        self._last_error: Optional[str] = None

    @property
    def errors(self) -> ErrorSink:
        return self._errors

    @property
    def status(self) -> TunnelStatus:
        return self._status

    @property
    def local_address(self) -> Optional[str]:
        return self._listener.address if self._listener else None

    @property
    def pairs_served(self) -> int:
        return self._pairs_served

    @property
    def active_relays(self) -> int:
        return sum(1 for relay in self._relays if not relay.done)

    async def start(self) -> None:
        """
        Validate the tunnel definition, connect, bind the listener and start forwarding.

        Raises:
            ConfigError: The tunnel definition is structurally invalid
            BootstrapError: A network leg or the listener could not be set up
        """
        if self._started:
            raise RuntimeError("tunnel forwarder can only be started once")
        self._started = True

        validate(self._spec)
        spec = self._spec

        self._status = TunnelStatus.STARTING
        try:
            self._session = await self._session_builder(spec).build()
        except Exception as e:
            self._fail(e)
            raise

        try:
            self._listener = await Listener.bind(spec.local_address)
        except (OSError, ValueError) as e:
            await self._session.close()
            error = ListenFailed(spec.local_address, str(e))
            self._fail(error)
            raise error from e

        self._status = TunnelStatus.RUNNING
        self._started_at = time.time()
        self._accept_task = asyncio.create_task(self._run(), name="tunnel-accept-loop")

        logger.info(
            f"Tunnel running: {self._listener.address} -> "
            f"{spec.end_host.address} -> {spec.remote_address}"
        )

    async def stop(self) -> None:
        """Stop accepting, tear down active pairs and release all resources."""
        if self._stop_requested:
            return
        self._stop_requested = True

        if self._accept_task and not self._accept_task.done():
            self._accept_task.cancel()
            try:
                await self._accept_task
            except asyncio.CancelledError:
                pass

        for relay in list(self._relays):
            await relay.cancel()
        self._relays.clear()

        await self._release()
        self._errors.close()

        if self._status is not TunnelStatus.FAILED:
            self._status = TunnelStatus.STOPPED
        logger.info("Tunnel stopped")

    async def check_health(self) -> Dict[str, Any]:
        running = self._status is TunnelStatus.RUNNING
        uptime = time.time() - self._started_at if running and self._started_at else 0.0

        return {
            'healthy': running,
            'status': self._status.value,
            'details': {
                'local_address': self.local_address,
                'remote_address': self._spec.remote_address if self._spec else None,
                'uptime': uptime,
                'pairs_served': self._pairs_served,
                'active_relays': self.active_relays,
                'errors_reported': self._errors.reported,
                'last_error': self._last_error,
            }
        }

    async def __aenter__(self) -> "TunnelForwarder":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.stop()

    async def _run(self) -> None:
        spec = self._spec
        assert self._session is not None and self._listener is not None

        try:
            while not self._stop_requested:
                try:
                    reader, writer = await self._session.open_channel(spec.remote_address)
                except Exception as e:
                    await self._fatal(ChannelOpenFailed(spec.remote_address, str(e) or repr(e)))
                    return

                channel = StreamConnection(reader, writer, f"channel to {spec.remote_address}")
                self._pending_channel = channel
                await self._apply_deadlines(channel)

                try:
                    local = await self._listener.accept()
                except Exception as e:
                    if not self._stop_requested:
                        await self._fatal(AcceptFailed(spec.local_address, str(e) or repr(e)))
                    return

                self._pending_channel = None
                await self._apply_deadlines(local)

                self._pairs_served += 1
                self._prune_relays()
                relay = Relay(
                    local, channel, self._errors,
                    buffer_size=spec.buffer_size,
                    name=f"pair-{self._pairs_served}"
                )
                self._relays.add(relay)
                relay.start()
        finally:
            if self._pending_channel is not None:
                await self._pending_channel.aclose()
                self._pending_channel = None
            await self._release()

    async def _apply_deadlines(self, connection: StreamConnection) -> None:
        try:
            connection.set_deadlines(self._spec.read_timeout, self._spec.write_timeout)
        except DeadlineSetFailed as e:
            logger.warning(str(e))
            await self._report(e)

    async def _fatal(self, error: Exception) -> None:
        logger.error(f"Tunnel stopped accepting: {error}")
        self._fail(error)
        await self._report(error)

    async def _report(self, error: Exception) -> None:
        self._last_error = str(error)
        await self._errors.report(error)

    def _fail(self, error: Exception) -> None:
        self._status = TunnelStatus.FAILED
        self._last_error = str(error)

    def _prune_relays(self) -> None:
        self._relays = {relay for relay in self._relays if not relay.done}

    async def _release(self) -> None:
        if self._released:
            return
        self._released = True

        if self._listener is not None:
            self._listener.close()
        if self._session is not None:
            await self._session.close()


async def start_tunnel(spec: Optional[TunnelSpec]) -> Tuple[TunnelForwarder, ErrorSink]:
    """
    Start a tunnel for ``spec``.

    Returns:
        The running forwarder and its error sink

    Raises:
        ConfigError: The tunnel definition is structurally invalid
        BootstrapError: A network leg or the listener could not be set up
    """
    forwarder = TunnelForwarder(spec)
    await forwarder.start()
    return forwarder, forwarder.errors
