"""
Local TCP listener.

Accepts one connection per ``accept`` call so the forwarder controls
exactly when the next client is taken.
"""

import asyncio
import socket
from typing import Optional

from loguru import logger

from ....core.domain.models import join_address, split_address
from .connection import StreamConnection


class Listener:
    """Bound, non-blocking listening socket."""

    def __init__(self, sock: socket.socket):
        self._sock = sock
        self._closed = False
        self._accepted = 0

    @classmethod
    async def bind(cls, address: str, backlog: int = 100) -> "Listener":
        """
        Bind and listen on ``address`` (``host:port``, port 0 picks one).

        Raises:
            OSError: If the address cannot be resolved or bound
            ValueError: If the address is malformed
        """
        host, port = split_address(address)
        loop = asyncio.get_running_loop()

        infos = await loop.getaddrinfo(
            host or None, port,
            type=socket.SOCK_STREAM,
            flags=socket.AI_PASSIVE
        )
        if not infos:
            raise OSError(f"could not resolve '{address}'")

        # Prefer IPv4 when the name resolves to both families
        family, sock_type, proto, _, sockaddr = next(
            (info for info in infos if info[0] == socket.AF_INET), infos[0]
        )
        sock = socket.socket(family, sock_type, proto)
        try:
            sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            sock.bind(sockaddr)
            sock.listen(backlog)
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise

        listener = cls(sock)
        logger.debug(f"Listening on {listener.address}")
        return listener

    @property
    def address(self) -> Optional[str]:
        if self._closed:
            return None
        host, port = self._sock.getsockname()[:2]
        return join_address(host, port)

    @property
    def accepted(self) -> int:
        return self._accepted

    @property
    def closed(self) -> bool:
        return self._closed

    async def accept(self) -> StreamConnection:
        """Wait for the next inbound connection."""
        if self._closed:
            raise OSError("listener is closed")

        loop = asyncio.get_running_loop()
        conn, peer = await loop.sock_accept(self._sock)
        try:
            reader, writer = await asyncio.open_connection(sock=conn)
        except Exception:
            conn.close()
            raise

        self._accepted += 1
        peer_address = join_address(*peer[:2])
        logger.debug(f"Accepted local connection from {peer_address}")
        return StreamConnection(reader, writer, f"local {peer_address}")

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._sock.close()
