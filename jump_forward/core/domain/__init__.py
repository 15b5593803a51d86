"""
Domain models and errors of the tunnel engine.
"""

from .errors import (
    TunnelError, ConfigError, ConfigMissing, TooManyJumpHosts, CredentialMissing,
    UserEmpty, AddressEmpty, NoAuthMethod, AddressesUnset,
    BootstrapError, CredentialLoadError, JumpHostDialFailed, JumpToEndDialFailed,
    JumpToEndDialTimeout, EndHostUpgradeFailed, EndHostDialFailed, ListenFailed,
    SessionFatalError, ChannelOpenFailed, AcceptFailed,
    PairError, DeadlineSetFailed, DeadlineExceeded, RelayCopyFailed
)
from .models import HostCredential, TunnelSpec, split_address, join_address

__all__ = [
    "HostCredential",
    "TunnelSpec",
    "split_address",
    "join_address",
    "TunnelError",
    "ConfigError",
    "ConfigMissing",
    "TooManyJumpHosts",
    "CredentialMissing",
    "UserEmpty",
    "AddressEmpty",
    "NoAuthMethod",
    "AddressesUnset",
    "BootstrapError",
    "CredentialLoadError",
    "JumpHostDialFailed",
    "JumpToEndDialFailed",
    "JumpToEndDialTimeout",
    "EndHostUpgradeFailed",
    "EndHostDialFailed",
    "ListenFailed",
    "SessionFatalError",
    "ChannelOpenFailed",
    "AcceptFailed",
    "PairError",
    "DeadlineSetFailed",
    "DeadlineExceeded",
    "RelayCopyFailed",
]
