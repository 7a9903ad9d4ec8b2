"""
equislot - booking scheduling engine for horse-service providers.
"""

__version__ = "0.1.0"
