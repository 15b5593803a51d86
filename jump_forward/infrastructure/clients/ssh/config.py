"""
Conversion of a host credential into asyncssh connection options.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import asyncssh
from loguru import logger

from ....core.domain.errors import CredentialLoadError
from ....core.domain.models import HostCredential


def load_client_key(key_file: str, passphrase: Optional[str] = None) -> asyncssh.SSHKey:
    """
    Read and parse a private key file.

    Raises:
        CredentialLoadError: If the file cannot be read or parsed
    """
    try:
        return asyncssh.read_private_key(key_file, passphrase)
    except OSError as e:
        raise CredentialLoadError(
            f"failed to read private key file '{key_file}': {e}", key_file) from e
    except (asyncssh.KeyImportError, asyncssh.KeyEncryptionError) as e:
        raise CredentialLoadError(
            f"failed to parse private key from file '{key_file}': {e}", key_file) from e


@dataclass
class SSHHopConfig:
    """asyncssh settings for one hop of the tunnel."""

    host: str
    port: int
    username: str
    password: Optional[str] = field(default=None, repr=False)
    key_file: Optional[str] = None
    key_passphrase: Optional[str] = field(default=None, repr=False)
    known_hosts_file: Optional[str] = None
    connect_timeout: float = 8.0
    client_version: str = "JumpForward_1.0"

    @classmethod
    def from_credential(cls, credential: HostCredential, connect_timeout: float) -> "SSHHopConfig":
        host, port = credential.host_port()
        return cls(
            host=host,
            port=port,
            username=credential.user,
            password=credential.password or None,
            key_file=credential.private_key_file or None,
            key_passphrase=credential.key_passphrase,
            known_hosts_file=credential.known_hosts,
            connect_timeout=connect_timeout,
        )

    def to_asyncssh_kwargs(self) -> Dict[str, Any]:
        """
        Convert to ``asyncssh.connect`` kwargs.

        A key file takes precedence over a password. Without a known hosts
        file the server host key is not verified.
        """
        kwargs: Dict[str, Any] = {
            'host': self.host,
            'port': self.port,
            'username': self.username,
            'client_version': self.client_version,
            'connect_timeout': self.connect_timeout,
            'agent_path': None,
        }

        # Authentication
        if self.key_file:
            kwargs['client_keys'] = [load_client_key(self.key_file, self.key_passphrase)]
        else:
            kwargs['client_keys'] = None
            kwargs['password'] = self.password

        # Known hosts
        if self.known_hosts_file:
            kwargs['known_hosts'] = self.known_hosts_file
        else:
            logger.warning(
                f"Host key verification disabled for {self.host}:{self.port}; "
                "set known_hosts to verify the server"
            )
            kwargs['known_hosts'] = None

        return kwargs
