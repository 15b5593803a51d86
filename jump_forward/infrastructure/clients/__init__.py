"""
Protocol clients used by the tunnel.
"""
