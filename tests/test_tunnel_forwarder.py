"""
Tests for the tunnel forwarder.

The SSH session is replaced by a fake whose channels are local socket
pairs; the listener is a real loopback listener.
"""

import asyncio
import socket
from unittest.mock import AsyncMock, Mock

import pytest

from jump_forward.core.domain.errors import (
    AcceptFailed, ChannelOpenFailed, ConfigMissing, DeadlineExceeded,
    DeadlineSetFailed, EndHostDialFailed, ListenFailed, TooManyJumpHosts
)
from jump_forward.core.domain.models import HostCredential, TunnelSpec
from jump_forward.core.interfaces.tunnel import TunnelStatus
from jump_forward.infrastructure.services.tunnel.forwarder import TunnelForwarder, start_tunnel


class FakeSession:
    """Session whose channels end in a queue of far-side stream pairs."""

    def __init__(self, socket_pair):
        self._socket_pair = socket_pair
        self.far_ends: asyncio.Queue = asyncio.Queue()
        self.opened = []
        self.open_error = None
        self.closed = False

    async def open_channel(self, address):
        if self.open_error:
            raise self.open_error
        relay_side, far_side = await self._socket_pair()
        self.opened.append(address)
        await self.far_ends.put(far_side)
        return relay_side

    async def close(self):
        self.closed = True


class FakeBuilder:
    def __init__(self, session):
        self.session = session
        self.specs = []

    def __call__(self, spec):
        self.specs.append(spec)
        return self

    async def build(self):
        return self.session


def address_of(forwarder):
    host, port = forwarder.local_address.rsplit(":", 1)
    return host, int(port)


@pytest.fixture
def session(socket_pair):
    return FakeSession(socket_pair)


@pytest.fixture
def builder(session):
    return FakeBuilder(session)


class TestForwarderStartup:
    """Test synchronous startup failures."""

    async def test_none_spec(self, builder):
        forwarder = TunnelForwarder(None, session_builder=builder)

        with pytest.raises(ConfigMissing):
            await forwarder.start()
        assert builder.specs == []

    async def test_invalid_spec_does_no_io(self, make_spec, jump_host, builder):
        spec = make_spec(jump_hosts=[jump_host, jump_host])
        forwarder = TunnelForwarder(spec, session_builder=builder)

        with pytest.raises(TooManyJumpHosts):
            await forwarder.start()
        assert builder.specs == []
        assert forwarder.local_address is None

    async def test_session_failure_is_raised(self, make_spec):
        failing = Mock()
        failing.return_value.build = AsyncMock(side_effect=EndHostDialFailed("20.0.0.1:22", "refused"))
        forwarder = TunnelForwarder(make_spec(), session_builder=failing)

        with pytest.raises(EndHostDialFailed):
            await forwarder.start()
        assert forwarder.status is TunnelStatus.FAILED

    async def test_listen_failure_closes_session(self, make_spec, session, builder):
        blocker = socket.socket()
        blocker.bind(("127.0.0.1", 0))
        blocker.listen(1)
        taken = "127.0.0.1:%d" % blocker.getsockname()[1]
        try:
            forwarder = TunnelForwarder(make_spec(local_address=taken), session_builder=builder)
            with pytest.raises(ListenFailed) as exc_info:
                await forwarder.start()
        finally:
            blocker.close()

        assert taken in str(exc_info.value)
        assert session.closed
        assert forwarder.status is TunnelStatus.FAILED

    async def test_start_only_once(self, make_spec, builder):
        forwarder = TunnelForwarder(make_spec(), session_builder=builder)
        await forwarder.start()
        try:
            with pytest.raises(RuntimeError):
                await forwarder.start()
        finally:
            await forwarder.stop()

    async def test_unreachable_end_host_with_missing_key(self):
        spec = TunnelSpec(
            jump_hosts=[],
            end_host=HostCredential(
                address="20.0.0.1:22", user="endhostuser", private_key_file="./nonexistent"),
            local_address="localhost:2376",
            remote_address="localhost:2376",
        )

        with pytest.raises(EndHostDialFailed) as exc_info:
            await start_tunnel(spec)

        message = str(exc_info.value)
        assert "end host" in message
        assert "20.0.0.1:22" in message
        assert "dial" in message

    async def test_refused_end_host(self, make_spec):
        probe = socket.socket()
        probe.bind(("127.0.0.1", 0))
        closed_port = probe.getsockname()[1]
        probe.close()
        end_host = HostCredential(
            address=f"127.0.0.1:{closed_port}", user="endhostuser", password="pw")

        with pytest.raises(EndHostDialFailed):
            await start_tunnel(make_spec(end_host=end_host, connect_timeout=2.0))


class TestForwarding:
    """Test the accept loop and relaying."""

    async def test_forwards_bytes_both_ways(self, make_spec, session, builder):
        forwarder = TunnelForwarder(make_spec(), session_builder=builder)
        await forwarder.start()
        try:
            assert forwarder.status is TunnelStatus.RUNNING
            reader, writer = await asyncio.open_connection(*address_of(forwarder))
            far_reader, far_writer = await asyncio.wait_for(session.far_ends.get(), 2.0)

            request = b"GET /_ping HTTP/1.1\r\n\r\n"
            writer.write(request)
            await writer.drain()
            assert await asyncio.wait_for(far_reader.readexactly(len(request)), 2.0) == request

            response = b"HTTP/1.1 200 OK\r\n\r\n"
            far_writer.write(response)
            await far_writer.drain()
            assert await asyncio.wait_for(reader.readexactly(len(response)), 2.0) == response

            assert session.opened[0] == "localhost:2376"
            assert forwarder.pairs_served == 1
            writer.close()
        finally:
            await forwarder.stop()

    async def test_serves_clients_sequentially(self, make_spec, session, builder, until):
        forwarder = TunnelForwarder(make_spec(), session_builder=builder)
        await forwarder.start()
        try:
            for i in range(3):
                reader, writer = await asyncio.open_connection(*address_of(forwarder))
                far_reader, far_writer = await asyncio.wait_for(session.far_ends.get(), 2.0)

                writer.write(b"%d" % i)
                await writer.drain()
                assert await asyncio.wait_for(far_reader.readexactly(1), 2.0) == b"%d" % i
                writer.close()

            await until(lambda: forwarder.pairs_served == 3)
            # One channel is always opened ahead for the next client
            await until(lambda: len(session.opened) == 4)
        finally:
            await forwarder.stop()

    async def test_idle_pair_reported_and_loop_continues(self, make_spec, session, builder):
        spec = make_spec(read_timeout=0.2, write_timeout=0.2)
        forwarder = TunnelForwarder(spec, session_builder=builder)
        await forwarder.start()
        try:
            reader, writer = await asyncio.open_connection(*address_of(forwarder))
            await asyncio.wait_for(session.far_ends.get(), 2.0)

            error = await asyncio.wait_for(forwarder.errors.get(), 2.0)
            assert isinstance(error, DeadlineExceeded)
            assert await asyncio.wait_for(reader.read(), 2.0) == b""
            assert forwarder.status is TunnelStatus.RUNNING

            # A new client is still served
            reader2, writer2 = await asyncio.open_connection(*address_of(forwarder))
            far_reader, _ = await asyncio.wait_for(session.far_ends.get(), 2.0)
            writer2.write(b"x")
            await writer2.drain()
            assert await asyncio.wait_for(far_reader.readexactly(1), 2.0) == b"x"
            writer.close()
            writer2.close()
        finally:
            await forwarder.stop()

    async def test_deadline_set_failure_is_not_fatal(self, make_spec, session, builder):
        forwarder = TunnelForwarder(make_spec(read_timeout=0), session_builder=builder)
        await forwarder.start()
        try:
            error = await asyncio.wait_for(forwarder.errors.get(), 2.0)
            assert isinstance(error, DeadlineSetFailed)

            reader, writer = await asyncio.open_connection(*address_of(forwarder))
            far_reader, _ = await asyncio.wait_for(session.far_ends.get(), 2.0)
            writer.write(b"still works")
            await writer.drain()
            assert await asyncio.wait_for(far_reader.readexactly(11), 2.0) == b"still works"
            assert forwarder.status is TunnelStatus.RUNNING
            writer.close()
        finally:
            await forwarder.stop()


class TestSessionFatalErrors:
    """Test failures that end the accept loop."""

    async def test_channel_open_failure_stops_tunnel(self, make_spec, session, builder, until):
        session.open_error = ConnectionError("session lost")
        forwarder = TunnelForwarder(make_spec(), session_builder=builder)
        await forwarder.start()
        address = address_of(forwarder)

        error = await asyncio.wait_for(forwarder.errors.get(), 2.0)

        assert isinstance(error, ChannelOpenFailed)
        assert "session lost" in str(error)
        await until(lambda: session.closed)
        assert forwarder.status is TunnelStatus.FAILED
        with pytest.raises(OSError):
            await asyncio.open_connection(*address)

        await forwarder.stop()
        assert forwarder.status is TunnelStatus.FAILED

    async def test_accept_failure_stops_tunnel(self, make_spec, session, builder, until):
        forwarder = TunnelForwarder(make_spec(), session_builder=builder)
        await forwarder.start()
        forwarder._listener.accept = AsyncMock(side_effect=OSError("too many open files"))

        error = await asyncio.wait_for(forwarder.errors.get(), 2.0)

        assert isinstance(error, AcceptFailed)
        await until(lambda: session.closed)
        assert forwarder.status is TunnelStatus.FAILED

        health = await forwarder.check_health()
        assert health["healthy"] is False
        assert "too many open files" in health["details"]["last_error"]

        await forwarder.stop()


class TestStop:
    """Test shutdown semantics."""

    async def test_stop_releases_everything(self, make_spec, session, builder):
        forwarder = TunnelForwarder(make_spec(), session_builder=builder)
        await forwarder.start()
        address = address_of(forwarder)

        await forwarder.stop()

        assert session.closed
        assert forwarder.status is TunnelStatus.STOPPED
        assert forwarder.errors.closed
        with pytest.raises(OSError):
            await asyncio.open_connection(*address)

    async def test_stop_is_idempotent(self, make_spec, builder):
        forwarder = TunnelForwarder(make_spec(), session_builder=builder)
        await forwarder.start()

        await forwarder.stop()
        await forwarder.stop()

        assert forwarder.status is TunnelStatus.STOPPED

    async def test_stop_tears_down_active_pairs(self, make_spec, session, builder, until):
        forwarder = TunnelForwarder(make_spec(), session_builder=builder)
        await forwarder.start()
        reader, writer = await asyncio.open_connection(*address_of(forwarder))
        far_reader, _ = await asyncio.wait_for(session.far_ends.get(), 2.0)
        await until(lambda: forwarder.active_relays == 1)

        await forwarder.stop()

        assert await asyncio.wait_for(reader.read(), 2.0) == b""
        assert await asyncio.wait_for(far_reader.read(), 2.0) == b""
        assert forwarder.errors.reported == 0
        writer.close()

    async def test_stop_before_start(self, make_spec, builder):
        forwarder = TunnelForwarder(make_spec(), session_builder=builder)

        await forwarder.stop()

        assert forwarder.errors.closed
        assert forwarder.status is TunnelStatus.STOPPED

    async def test_context_manager(self, make_spec, session, builder):
        async with TunnelForwarder(make_spec(), session_builder=builder) as forwarder:
            assert forwarder.status is TunnelStatus.RUNNING

        assert session.closed
        assert forwarder.status is TunnelStatus.STOPPED


class TestHealth:
    """Test health reporting."""

    async def test_running_health(self, make_spec, builder):
        forwarder = TunnelForwarder(make_spec(), session_builder=builder)
        await forwarder.start()
        try:
            health = await forwarder.check_health()
        finally:
            await forwarder.stop()

        assert health["healthy"] is True
        assert health["status"] == "running"
        assert health["details"]["remote_address"] == "localhost:2376"
        assert health["details"]["pairs_served"] == 0
