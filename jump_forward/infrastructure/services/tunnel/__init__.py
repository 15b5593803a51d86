"""
Tunnel forwarding service: listener, relay, error sink and the forwarder
that ties them to an SSH session.
"""

from .connection import StreamConnection
from .error_sink import ErrorSink
from .forwarder import TunnelForwarder, start_tunnel
from .listener import Listener
from .relay import Relay, LOCAL_TO_REMOTE, REMOTE_TO_LOCAL

__all__ = [
    "StreamConnection",
    "ErrorSink",
    "TunnelForwarder",
    "start_tunnel",
    "Listener",
    "Relay",
    "LOCAL_TO_REMOTE",
    "REMOTE_TO_LOCAL",
]
