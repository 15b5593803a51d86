"""
Main entry point for Jump Forward.

This module provides the command-line interface: running a tunnel from a
configuration file, generating a configuration template and validating a
configuration without touching the network.
"""

import asyncio
import signal
import sys
from typing import Optional

import typer
from loguru import logger

from .core.domain.errors import ConfigError, SessionFatalError, TunnelError
from .core.domain.models import TunnelSpec
from .core.services.validator import validate
from .infrastructure.config.loader import ConfigLoader
from .infrastructure.config.models import ApplicationConfig, HostConfig
from .infrastructure.logging.setup import setup_logging
from .infrastructure.services.tunnel.forwarder import start_tunnel

# Create CLI application
cli = typer.Typer(
    name="jump-forward",
    help="Persistent TCP tunnel to a remote service over SSH, optionally through one jump host"
)


@cli.command()
def run(
    config_file: str = typer.Option(
        ..., "--config", "-c", help="Configuration file path"
    ),
    local: Optional[str] = typer.Option(
        None, "--local", "-L", help="Local address to listen on (host:port)"
    ),
    remote: Optional[str] = typer.Option(
        None, "--remote", "-R", help="Target address as seen from the end host (host:port)"
    ),
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="Logging level"
    ),
    debug: bool = typer.Option(
        False, "--debug", help="Enable debug logging"
    )
) -> None:
    """Run a tunnel until interrupted or until the SSH session fails."""

    try:
        config = ConfigLoader().load_config(config_file)
    except (OSError, ValueError) as e:
        typer.echo(f"Error loading configuration: {e}", err=True)
        sys.exit(1)

    # Override with command line arguments
    if local:
        config.tunnel.local_address = local
    if remote:
        config.tunnel.remote_address = remote
    if log_level:
        config.logging.level = log_level.upper()
    if debug:
        config.debug = True
        config.logging.level = "DEBUG"

    setup_logging(config.logging)
    logger.info(f"Starting {config.name} v{config.version}")

    try:
        clean = asyncio.run(run_tunnel(config.tunnel.to_spec()))
    except KeyboardInterrupt:
        logger.info("Tunnel interrupted by user")
        return
    except TunnelError as e:
        logger.error(f"Tunnel failed to start: {e}")
        sys.exit(1)

    if not clean:
        sys.exit(1)


@cli.command()
def init_config(
    output: str = typer.Option(
        "tunnel.yaml", "--output", "-o", help="Output configuration file"
    ),
    format: str = typer.Option(
        "yaml", "--format", "-f", help="Configuration format (yaml/json)"
    )
) -> None:
    """Generate a configuration template."""

    config = ApplicationConfig()
    config.tunnel.jump_hosts = [
        HostConfig(address="jump.example.com:22", user="jumpuser",
                   private_key_file="~/.ssh/id_ed25519")
    ]
    config.tunnel.end_host = HostConfig(
        address="10.0.0.10:22", user="enduser", private_key_file="~/.ssh/id_ed25519"
    )

    try:
        ConfigLoader().save_config(config, output, format)
        typer.echo(f"Configuration template saved to {output}")
    except ValueError as e:
        typer.echo(f"Error saving configuration: {e}", err=True)
        sys.exit(1)


@cli.command()
def validate_config(
    config_file: str = typer.Argument(..., help="Configuration file to validate")
) -> None:
    """Validate a configuration file without connecting anywhere."""

    try:
        config = ConfigLoader().load_config(config_file)
        spec = config.tunnel.to_spec()
        validate(spec)
    except (OSError, ValueError, ConfigError) as e:
        typer.echo(f"Configuration validation failed: {e}", err=True)
        sys.exit(1)

    hops = " -> ".join(hop.address for _, hop in spec.hops())
    typer.echo(f"Configuration file {config_file} is valid")
    typer.echo(f"Tunnel: {spec.local_address} -> {hops} -> {spec.remote_address}")


async def run_tunnel(spec: TunnelSpec) -> bool:
    """
    Run a tunnel and log everything reported on its error sink.

    Returns:
        False if the tunnel stopped on a session-fatal error, True if it
        was shut down on request
    """
    forwarder, errors = await start_tunnel(spec)

    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, errors.close)
        handles_sigterm = True
    except (NotImplementedError, RuntimeError):
        # Not on the main thread, or no signal support on this platform
        handles_sigterm = False

    try:
        async for error in errors:
            if isinstance(error, SessionFatalError):
                logger.error(f"Tunnel stopped: {error}")
                return False
            logger.warning(f"Connection error: {error}")
        return True
    finally:
        if handles_sigterm:
            loop.remove_signal_handler(signal.SIGTERM)
        await forwarder.stop()


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
