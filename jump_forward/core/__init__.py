"""
Core layer: domain models, errors, interfaces and validation.

Nothing in this package performs network I/O.
"""
