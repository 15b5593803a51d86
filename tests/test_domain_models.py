"""
Tests for the tunnel definition models.
"""

import dataclasses

import pytest

from jump_forward.core.domain.errors import (
    EndHostDialFailed, JumpToEndDialTimeout, TooManyJumpHosts, UserEmpty
)
from jump_forward.core.domain.models import (
    HostCredential, TunnelSpec, join_address, split_address
)


class TestSplitAddress:
    """Test host:port parsing."""

    @pytest.mark.parametrize("address,expected", [
        ("20.0.0.1:22", ("20.0.0.1", 22)),
        ("localhost:2376", ("localhost", 2376)),
        ("[::1]:2222", ("::1", 2222)),
        ("example.com:0", ("example.com", 0)),
    ])
    def test_split_with_port(self, address, expected):
        assert split_address(address) == expected

    @pytest.mark.parametrize("address,expected", [
        ("jump.example.com", ("jump.example.com", 22)),
        ("::1", ("::1", 22)),
        ("[fe80::1]", ("fe80::1", 22)),
    ])
    def test_split_uses_default_port(self, address, expected):
        assert split_address(address, default_port=22) == expected

    def test_missing_port_without_default(self):
        with pytest.raises(ValueError, match="has no port"):
            split_address("localhost")

    @pytest.mark.parametrize("address", ["host:ssh", "host:70000", "host:-1"])
    def test_invalid_port(self, address):
        with pytest.raises(ValueError, match="invalid port"):
            split_address(address)

    def test_join_address(self):
        assert join_address("127.0.0.1", 80) == "127.0.0.1:80"
        assert join_address("::1", 80) == "[::1]:80"


class TestTunnelSpec:
    """Test TunnelSpec behaviour."""

    def test_defaults(self, end_host):
        spec = TunnelSpec(end_host=end_host, local_address="a:1", remote_address="b:2")

        assert spec.jump_hosts == ()
        assert spec.jump_host is None
        assert spec.read_timeout == 30.0
        assert spec.write_timeout == 30.0
        assert spec.connect_timeout == 8.0

    def test_jump_hosts_stored_as_tuple(self, end_host, jump_host):
        spec = TunnelSpec(
            end_host=end_host, local_address="a:1", remote_address="b:2",
            jump_hosts=[jump_host]
        )

        assert spec.jump_hosts == (jump_host,)
        assert spec.jump_host is jump_host

    def test_spec_is_immutable(self, make_spec):
        spec = make_spec()
        with pytest.raises(dataclasses.FrozenInstanceError):
            spec.local_address = "other:1"

    def test_hops_lists_jump_hosts_first(self, make_spec, jump_host, end_host):
        spec = make_spec(jump_hosts=[jump_host])

        assert spec.hops() == (("jump host 1", jump_host), ("end host", end_host))

    def test_credential_host_port_defaults_to_ssh_port(self):
        credential = HostCredential(address="bastion", user="u", password="p")
        assert credential.host_port() == ("bastion", 22)

    def test_password_hidden_from_repr(self):
        credential = HostCredential(address="h:22", user="u", password="secret")
        assert "secret" not in repr(credential)


class TestErrors:
    """Test error messages."""

    def test_config_error_names_hop(self):
        error = UserEmpty("jump host 1")
        assert str(error) == "jump host 1: user cannot be empty"
        assert error.hop == "jump host 1"

    def test_config_error_without_hop(self):
        assert "only 1 jump host" in str(TooManyJumpHosts())

    def test_leg_error_names_address(self):
        error = EndHostDialFailed("20.0.0.1:22", "connection refused")
        assert "end host" in str(error)
        assert "20.0.0.1:22" in str(error)
        assert "connection refused" in str(error)
        assert error.details == {"address": "20.0.0.1:22"}

    def test_timeout_error_carries_timeout(self):
        error = JumpToEndDialTimeout("20.0.0.1:22", 8.0)
        assert error.timeout == 8.0
        assert "timed out after 8s" in str(error)
