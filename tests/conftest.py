"""
Shared fixtures for the tunnel tests.
"""

import asyncio
import socket
from typing import Any, Awaitable, Callable, Tuple

import pytest

from jump_forward.core.domain.models import HostCredential, TunnelSpec
from jump_forward.infrastructure.services.tunnel.error_sink import ErrorSink

StreamPair = Tuple[asyncio.StreamReader, asyncio.StreamWriter]


async def _open_socket_pair() -> Tuple[StreamPair, StreamPair]:
    left, right = socket.socketpair()
    left_streams = await asyncio.open_connection(sock=left)
    right_streams = await asyncio.open_connection(sock=right)
    return left_streams, right_streams


@pytest.fixture
def socket_pair() -> Callable[[], Awaitable[Tuple[StreamPair, StreamPair]]]:
    """Factory for two connected asyncio stream pairs."""
    return _open_socket_pair


@pytest.fixture
def end_host() -> HostCredential:
    return HostCredential(address="20.0.0.1:22", user="endhostuser", password="endhostpass")


@pytest.fixture
def jump_host() -> HostCredential:
    return HostCredential(address="10.0.0.1:22", user="jumpuser", password="jumppass")


@pytest.fixture
def make_spec(end_host: HostCredential) -> Callable[..., TunnelSpec]:
    """Factory for a valid spec; keyword arguments override fields."""
    def _make(**overrides: Any) -> TunnelSpec:
        fields = {
            "end_host": end_host,
            "local_address": "127.0.0.1:0",
            "remote_address": "localhost:2376",
        }
        fields.update(overrides)
        return TunnelSpec(**fields)

    return _make


@pytest.fixture
def sink() -> ErrorSink:
    return ErrorSink()


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def until() -> Callable[..., Awaitable[None]]:
    return wait_until
