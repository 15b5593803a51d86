"""
Structural validation of a tunnel definition.

Runs before any network or filesystem access; the first violation wins.
"""

from typing import Optional

from loguru import logger

from ..domain.errors import (
    AddressEmpty, AddressesUnset, ConfigMissing, CredentialMissing,
    NoAuthMethod, TooManyJumpHosts, UserEmpty
)
from ..domain.models import HostCredential, TunnelSpec

MAX_JUMP_HOSTS = 1


def validate(spec: Optional[TunnelSpec]) -> None:
    """
    Validate ``spec``.

    Raises:
        ConfigError: The matching subclass for the first violation found
    """
    if spec is None:
        raise ConfigMissing()

    if len(spec.jump_hosts) > MAX_JUMP_HOSTS:
        raise TooManyJumpHosts(details={"jump_hosts": len(spec.jump_hosts)})

    for hop, credential in spec.hops():
        validate_credential(credential, hop)

    if not spec.local_address or not spec.remote_address:
        raise AddressesUnset(details={
            "local_address": spec.local_address,
            "remote_address": spec.remote_address,
        })


def validate_credential(credential: Optional[HostCredential], hop: str = "") -> None:
    """Validate one hop's credential."""
    if credential is None:
        raise CredentialMissing(hop)

    if not credential.user:
        raise UserEmpty(hop)

    if not credential.address:
        raise AddressEmpty(hop)

    if not credential.private_key_file and not credential.password:
        raise NoAuthMethod(hop)

    if credential.private_key_file and credential.password:
        # Accepted; the key file wins when connecting
        logger.debug(f"{hop}: both private key file and password set, using key file")
