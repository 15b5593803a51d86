"""
Configuration models and data structures.

Plain dataclasses mirroring the configuration file. Structural checks of
the tunnel itself (users, addresses, auth methods) are left to the
validator so that they are reported with the same errors as for specs
built in code.
"""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional

from ...core.domain.models import HostCredential, TunnelSpec


@dataclass
class HostConfig:
    """One SSH hop as written in the configuration file."""
    address: str = ""
    user: str = ""
    private_key_file: str = ""
    password: str = ""
    key_passphrase: Optional[str] = None
    known_hosts: Optional[str] = None

    def to_credential(self) -> HostCredential:
        return HostCredential(
            address=self.address,
            user=self.user,
            private_key_file=self.private_key_file,
            password=self.password,
            key_passphrase=self.key_passphrase,
            known_hosts=self.known_hosts,
        )


@dataclass
class TunnelConfig:
    """Tunnel configuration."""
    jump_hosts: List[HostConfig] = field(default_factory=list)
    end_host: Optional[HostConfig] = None
    local_address: str = "localhost:2376"
    remote_address: str = "localhost:2376"
    read_timeout: float = 30.0
    write_timeout: float = 30.0
    connect_timeout: float = 8.0
    buffer_size: int = 32768
    error_queue_size: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TunnelConfig':
        data = dict(data)
        jump_hosts = [HostConfig(**hop) for hop in data.pop('jump_hosts', None) or []]
        end_host = data.pop('end_host', None)
        return cls(
            jump_hosts=jump_hosts,
            end_host=HostConfig(**end_host) if end_host is not None else None,
            **data
        )

    def to_spec(self) -> TunnelSpec:
        return TunnelSpec(
            jump_hosts=[hop.to_credential() for hop in self.jump_hosts],
            end_host=self.end_host.to_credential() if self.end_host else None,
            local_address=self.local_address,
            remote_address=self.remote_address,
            read_timeout=self.read_timeout,
            write_timeout=self.write_timeout,
            connect_timeout=self.connect_timeout,
            buffer_size=self.buffer_size,
            error_queue_size=self.error_queue_size,
        )


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    log_directory: str = "logs"
    max_file_size: str = "10 MB"
    backup_count: int = 5
    console_enabled: bool = True
    file_enabled: bool = False
    asyncssh_level: str = "WARNING"


@dataclass
class ApplicationConfig:
    """Main application configuration."""

    name: str = "Jump Forward"
    version: str = "0.1.0"
    debug: bool = False

    tunnel: TunnelConfig = field(default_factory=TunnelConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    config_file_path: Optional[str] = None

    def __post_init__(self) -> None:
        """Validate configuration after initialization."""
        self._validate_timeouts()
        self._validate_sizes()

    def _validate_timeouts(self) -> None:
        timeouts = [
            ("Read timeout", self.tunnel.read_timeout),
            ("Write timeout", self.tunnel.write_timeout),
            ("Connect timeout", self.tunnel.connect_timeout),
        ]

        for name, timeout in timeouts:
            if timeout <= 0:
                raise ValueError(f"{name} must be positive, got {timeout}")

    def _validate_sizes(self) -> None:
        if self.tunnel.buffer_size < 1:
            raise ValueError(f"Buffer size must be at least 1, got {self.tunnel.buffer_size}")
        if self.tunnel.error_queue_size < 0:
            raise ValueError(
                f"Error queue size cannot be negative, got {self.tunnel.error_queue_size}")

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ApplicationConfig':
        """Create configuration from dictionary."""
        return cls(
            name=data.get('name', 'Jump Forward'),
            version=data.get('version', '0.1.0'),
            debug=data.get('debug', False),
            tunnel=TunnelConfig.from_dict(data.get('tunnel') or {}),
            logging=LoggingConfig(**(data.get('logging') or {})),
            config_file_path=data.get('config_file_path'),
        )
