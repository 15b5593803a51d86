"""
Configuration loading and models.
"""

from .loader import ConfigLoader
from .models import ApplicationConfig, HostConfig, LoggingConfig, TunnelConfig

__all__ = [
    "ConfigLoader",
    "ApplicationConfig",
    "HostConfig",
    "LoggingConfig",
    "TunnelConfig",
]
