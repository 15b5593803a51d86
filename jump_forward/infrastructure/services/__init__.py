"""
Long-running infrastructure services.
"""
