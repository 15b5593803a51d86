"""
Tunnel definition models.

A ``TunnelSpec`` is built once by the caller and never mutated. It is
consumed by the session builder and the forwarder.
"""

from dataclasses import dataclass, field
from typing import Optional, Sequence, Tuple

DEFAULT_SSH_PORT = 22


def split_address(address: str, default_port: Optional[int] = None) -> Tuple[str, int]:
    """
    Split a ``host:port`` address.

    IPv6 hosts must be bracketed (``[::1]:22``). When the port is missing
    ``default_port`` is used, or ``ValueError`` is raised if there is none.
    """
    host, sep, port = address.rpartition(":")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    elif not sep or ":" in host or address.endswith("]"):
        # No port given (plain host or bare IPv6 literal)
        host, port = address.strip("[]"), ""

    if not port:
        if default_port is None:
            raise ValueError(f"address '{address}' has no port")
        return host, default_port

    if not port.isdigit() or not 0 <= int(port) <= 65535:
        raise ValueError(f"invalid port in address '{address}'")

    return host, int(port)


def join_address(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"


@dataclass(frozen=True)
class HostCredential:
    """Connection identity of one SSH endpoint."""
    address: str
    user: str
    private_key_file: str = ""
    password: str = field(default="", repr=False)
    key_passphrase: Optional[str] = field(default=None, repr=False)
    known_hosts: Optional[str] = None

    def host_port(self) -> Tuple[str, int]:
        return split_address(self.address, DEFAULT_SSH_PORT)

    @property
    def uses_key_file(self) -> bool:
        return bool(self.private_key_file)


@dataclass(frozen=True)
class TunnelSpec:
    """
    Full tunnel definition.

    Attributes:
        jump_hosts: Zero or one jump host, in dial order
        end_host: Host running the target service
        local_address: Address the local listener binds to
        remote_address: Target address as seen from the end host
        read_timeout: Idle read deadline per connection, in seconds
        write_timeout: Write deadline per connection, in seconds
        connect_timeout: Bound on each SSH dial, in seconds
        buffer_size: Maximum bytes per relay read
        error_queue_size: Error sink capacity, 0 for unbounded
    """
    end_host: Optional[HostCredential]
    local_address: str
    remote_address: str
    jump_hosts: Sequence[Optional[HostCredential]] = ()
    read_timeout: float = 30.0
    write_timeout: float = 30.0
    connect_timeout: float = 8.0
    buffer_size: int = 32768
    error_queue_size: int = 0

    def __post_init__(self) -> None:
        object.__setattr__(self, "jump_hosts", tuple(self.jump_hosts or ()))

    @property
    def jump_host(self) -> Optional[HostCredential]:
        return self.jump_hosts[0] if self.jump_hosts else None

    def hops(self) -> Tuple[Tuple[str, Optional[HostCredential]], ...]:
        """Return ``(name, credential)`` for jump hosts then the end host."""
        named = [(f"jump host {i}", hop) for i, hop in enumerate(self.jump_hosts, 1)]
        named.append(("end host", self.end_host))
        return tuple(named)
