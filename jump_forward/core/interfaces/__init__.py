"""
Interfaces of the tunnel engine components.
"""

from .lifecycle import IStartable, IStoppable, IHealthCheckable
from .tunnel import IErrorSink, ITunnelForwarder, TunnelStatus

__all__ = [
    "IStartable",
    "IStoppable",
    "IHealthCheckable",
    "IErrorSink",
    "ITunnelForwarder",
    "TunnelStatus",
]
