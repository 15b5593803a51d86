"""
Tunnel service interfaces.

Defines the contract of a running tunnel and of the channel through which
it reports failures after startup.
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import AsyncIterator, Optional

from .lifecycle import IStartable, IStoppable, IHealthCheckable


class TunnelStatus(Enum):
    """Tunnel lifecycle status."""
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    FAILED = "failed"


class IErrorSink(ABC):
    """Multi-producer, single-consumer channel of tunnel failures."""

    @abstractmethod
    async def report(self, error: Exception) -> None:
        """Deliver ``error`` to the consumer, waiting while the sink is full."""
        pass

    @abstractmethod
    async def get(self) -> Optional[Exception]:
        """Return the next error, or None once the sink is closed and drained."""
        pass

    @abstractmethod
    def close(self) -> None:
        """Close the sink. Idempotent."""
        pass

    @abstractmethod
    def __aiter__(self) -> AsyncIterator[Exception]:
        pass


class ITunnelForwarder(IStartable, IStoppable, IHealthCheckable):
    """
    A local-to-remote TCP tunnel over SSH.

    ``start`` raises for configuration and bootstrap failures. Everything
    that goes wrong afterwards is delivered on ``errors``.
    """

    @property
    @abstractmethod
    def errors(self) -> IErrorSink:
        """Error sink of this tunnel."""
        pass

    @property
    @abstractmethod
    def status(self) -> TunnelStatus:
        """Current tunnel status."""
        pass

    @property
    @abstractmethod
    def local_address(self) -> Optional[str]:
        """Bound local address, once started."""
        pass
