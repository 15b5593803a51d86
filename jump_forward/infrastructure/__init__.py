"""
Infrastructure layer: SSH clients, the tunnel services, configuration
and logging.
"""
