"""
Error taxonomy for the tunnel engine.

Configuration and bootstrap errors are raised synchronously from
``TunnelForwarder.start``. Session-fatal and per-connection errors are
never raised; they are delivered on the forwarder's error sink.
"""

from typing import Any, Optional


class TunnelError(Exception):
    """Base class for every error produced by the tunnel engine."""

    def __init__(self, message: str, details: Optional[Any] = None):
        self.message = message
        self.details = details
        super().__init__(message)


# Configuration errors

class ConfigError(TunnelError):
    """The tunnel definition is structurally invalid."""

    default_message = "invalid tunnel configuration"

    def __init__(self, hop: Optional[str] = None, details: Optional[Any] = None):
        self.hop = hop
        message = self.default_message
        if hop:
            message = f"{hop}: {message}"
        super().__init__(message, details)


class ConfigMissing(ConfigError):
    default_message = "config cannot be None"


class TooManyJumpHosts(ConfigError):
    default_message = "only 1 jump host is supported"


class CredentialMissing(ConfigError):
    default_message = "SSH host config cannot be None"


class UserEmpty(ConfigError):
    default_message = "user cannot be empty"


class AddressEmpty(ConfigError):
    default_message = "address cannot be empty"


class NoAuthMethod(ConfigError):
    default_message = "either private_key_file or password has to be set"


class AddressesUnset(ConfigError):
    default_message = "local_address and remote_address have to be set"


# Bootstrap errors

class BootstrapError(TunnelError):
    """The tunnel could not be brought up."""


class CredentialLoadError(BootstrapError):
    """A private key file could not be read or parsed."""

    def __init__(self, message: str, key_file: str):
        self.key_file = key_file
        super().__init__(message, {"key_file": key_file})


class _LegError(BootstrapError):
    """Failure on one named network leg."""

    leg = ""

    def __init__(self, address: str, reason: str = ""):
        self.address = address
        message = f"{self.leg} '{address}' failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, {"address": address})


class JumpHostDialFailed(_LegError):
    leg = "ssh dial to jump host"


class JumpToEndDialFailed(_LegError):
    leg = "ssh dial from jump host to end host"


class JumpToEndDialTimeout(_LegError):
    leg = "ssh dial from jump host to end host"

    def __init__(self, address: str, timeout: float):
        self.timeout = timeout
        super().__init__(address, f"timed out after {timeout:g}s")


class EndHostUpgradeFailed(_LegError):
    leg = "ssh handshake with end host via jump host"


class EndHostDialFailed(_LegError):
    leg = "ssh dial directly to end host"


class ListenFailed(_LegError):
    leg = "listen on local address"


# Session-fatal errors, reported on the error sink

class SessionFatalError(TunnelError):
    """The accept loop cannot continue; the tunnel stops."""


class ChannelOpenFailed(SessionFatalError):
    def __init__(self, address: str, reason: str = ""):
        self.address = address
        super().__init__(
            f"failed to open channel on end host to '{address}': {reason}",
            {"address": address},
        )


class AcceptFailed(SessionFatalError):
    def __init__(self, address: str, reason: str = ""):
        self.address = address
        super().__init__(
            f"failed to accept local connection on '{address}': {reason}",
            {"address": address},
        )


# Per-connection errors, reported on the error sink

class PairError(TunnelError):
    """One connection pair failed; the accept loop keeps running."""


class DeadlineSetFailed(PairError):
    def __init__(self, side: str, reason: str):
        self.side = side
        super().__init__(f"failed to set deadlines on {side} connection: {reason}")


class DeadlineExceeded(PairError):
    def __init__(self, direction: str, operation: str, timeout: float):
        self.direction = direction
        self.operation = operation
        self.timeout = timeout
        super().__init__(
            f"{operation} deadline of {timeout:g}s exceeded on {direction}",
            {"direction": direction, "operation": operation},
        )


class RelayCopyFailed(PairError):
    def __init__(self, direction: str, reason: str):
        self.direction = direction
        super().__init__(f"copy {direction} failed: {reason}", {"direction": direction})
