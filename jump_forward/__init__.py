"""
Jump Forward - persistent TCP tunnel over SSH with an optional jump host.

Exposes a service that is only reachable from a remote machine as if it
were local: a local listener accepts clients, and every client is relayed
over a fresh channel of one SSH session to the end host.
"""

__version__ = "0.1.0"

# Public API exports
from .core.domain.errors import (
    TunnelError, ConfigError, BootstrapError, SessionFatalError, PairError
)
from .core.domain.models import HostCredential, TunnelSpec
from .core.interfaces.tunnel import ITunnelForwarder, TunnelStatus
from .core.services.validator import validate
from .infrastructure.services.tunnel.error_sink import ErrorSink
from .infrastructure.services.tunnel.forwarder import TunnelForwarder, start_tunnel

__all__ = [
    "HostCredential",
    "TunnelSpec",
    "TunnelError",
    "ConfigError",
    "BootstrapError",
    "SessionFatalError",
    "PairError",
    "ITunnelForwarder",
    "TunnelStatus",
    "ErrorSink",
    "TunnelForwarder",
    "start_tunnel",
    "validate",
]
