"""
SSH session assembly on top of asyncssh.
"""

from .config import SSHHopConfig, load_client_key
from .session import JumpHostDialer, SessionBuilder, TunnelSession

__all__ = [
    "SSHHopConfig",
    "load_client_key",
    "JumpHostDialer",
    "SessionBuilder",
    "TunnelSession",
]
