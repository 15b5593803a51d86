"""
Pure core services.
"""

from .validator import validate, validate_credential

__all__ = [
    "validate",
    "validate_credential",
]
