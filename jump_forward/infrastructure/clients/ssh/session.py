"""
SSH session assembly for the tunnel.

Connects to the end host either directly or through one jump host. The
hop from the jump host to the end host is dialed with an explicit timeout
and is cancelled, not abandoned, when the timeout fires.
"""

import asyncio
from typing import Any, Dict, Optional, Tuple

import asyncssh
from loguru import logger

from ....core.domain.errors import (
    CredentialLoadError, EndHostDialFailed, EndHostUpgradeFailed, JumpHostDialFailed,
    JumpToEndDialFailed, JumpToEndDialTimeout
)
from ....core.domain.models import HostCredential, TunnelSpec, join_address, split_address
from .config import SSHHopConfig


def _describe(error: BaseException) -> str:
    return str(error) or error.__class__.__name__


async def _close_connection(connection: Any) -> None:
    try:
        connection.close()
        await connection.wait_closed()
    except Exception as e:
        logger.debug(f"Error closing SSH connection: {e}")


class JumpHostDialer:
    """
    Opens the raw channel from the jump host to the end host.

    Passed to ``asyncssh.connect`` as its ``tunnel``: asyncssh calls
    ``create_connection`` and runs the end host handshake over the
    returned channel.
    """

    def __init__(self, jump_connection: Any, timeout: float):
        self._connection = jump_connection
        self._timeout = timeout
        self.dialed = False
        self.error: Optional[Exception] = None

    async def create_connection(self, session_factory: Any, host: str, port: int) -> Tuple[Any, Any]:
        address = join_address(host, port)
        logger.debug(f"Dialing {address} from jump host (timeout {self._timeout:g}s)")

        try:
            result = await asyncio.wait_for(
                self._connection.create_connection(session_factory, host, port),
                self._timeout
            )
        except asyncio.TimeoutError as e:
            self.error = JumpToEndDialTimeout(address, self._timeout)
            raise self.error from e
        except Exception as e:
            self.error = JumpToEndDialFailed(address, _describe(e))
            raise self.error from e

        self.dialed = True
        return result


class TunnelSession:
    """Live SSH session to the end host, plus the jump session it rides on."""

    def __init__(self, connection: Any, jump_connection: Optional[Any] = None):
        self._connection = connection
        self._jump_connection = jump_connection
        self._closed = False

    @property
    def connection(self) -> Any:
        return self._connection

    @property
    def via_jump_host(self) -> bool:
        return self._jump_connection is not None

    @property
    def closed(self) -> bool:
        return self._closed

    async def open_channel(self, address: str) -> Tuple[asyncssh.SSHReader, asyncssh.SSHWriter]:
        """Open a direct-tcpip channel from the end host to ``address``."""
        if self._closed:
            raise ConnectionError("session is closed")

        host, port = split_address(address)
        return await self._connection.open_connection(host, port)

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True

        await _close_connection(self._connection)
        if self._jump_connection is not None:
            await _close_connection(self._jump_connection)


class SessionBuilder:
    """Builds the ``TunnelSession`` described by a ``TunnelSpec``."""

    def __init__(self, spec: TunnelSpec):
        self._spec = spec

    async def build(self) -> TunnelSession:
        """
        Connect to the end host.

        Key files of every hop are loaded before anything is dialed.

        Raises:
            CredentialLoadError: A key file of a hop could not be loaded
                (jump host path; the direct path reports it as a dial failure)
            EndHostDialFailed: Direct connection to the end host failed
            JumpHostDialFailed: Connection to the jump host failed
            JumpToEndDialTimeout: The jump host did not reach the end host in time
            JumpToEndDialFailed: The jump host could not reach the end host
            EndHostUpgradeFailed: The handshake with the end host failed
        """
        if self._spec.jump_host is None:
            return await self._build_direct()
        return await self._build_via_jump()

    def _options(self, credential: HostCredential) -> Dict[str, Any]:
        config = SSHHopConfig.from_credential(credential, self._spec.connect_timeout)
        return config.to_asyncssh_kwargs()

    def _hop_options(self, credential: HostCredential, hop: str) -> Dict[str, Any]:
        try:
            return self._options(credential)
        except CredentialLoadError as e:
            raise CredentialLoadError(
                f"failed to load {hop} credentials for '{credential.address}': {e}",
                e.key_file
            ) from e

    async def _build_direct(self) -> TunnelSession:
        end_host = self._spec.end_host

        try:
            options = self._options(end_host)
            connection = await asyncssh.connect(**options)
        except Exception as e:
            raise EndHostDialFailed(end_host.address, _describe(e)) from e

        logger.info(f"Connected to end host {end_host.user}@{end_host.address}")
        return TunnelSession(connection)

    async def _build_via_jump(self) -> TunnelSession:
        jump_host = self._spec.jump_host
        end_host = self._spec.end_host

        jump_options = self._hop_options(jump_host, "jump host")
        end_options = self._hop_options(end_host, "end host")

        try:
            jump_connection = await asyncssh.connect(**jump_options)
        except Exception as e:
            raise JumpHostDialFailed(jump_host.address, _describe(e)) from e

        logger.info(f"Connected to jump host {jump_host.user}@{jump_host.address}")

        dialer = JumpHostDialer(jump_connection, self._spec.connect_timeout)
        try:
            connection = await asyncssh.connect(**end_options, tunnel=dialer)
        except (JumpToEndDialTimeout, JumpToEndDialFailed):
            await _close_connection(jump_connection)
            raise
        except asyncio.TimeoutError as e:
            await _close_connection(jump_connection)
            if not dialer.dialed:
                # asyncssh's own connect timeout fired during the raw dial
                raise JumpToEndDialTimeout(end_host.address, self._spec.connect_timeout) from e
            raise EndHostUpgradeFailed(end_host.address, _describe(e)) from e
        except Exception as e:
            await _close_connection(jump_connection)
            raise EndHostUpgradeFailed(end_host.address, _describe(e)) from e

        logger.info(
            f"Connected to end host {end_host.user}@{end_host.address} "
            f"via jump host {jump_host.address}"
        )
        return TunnelSession(connection, jump_connection)
