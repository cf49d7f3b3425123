"""Linkup: real-time relationship and messaging synchronization service."""

__version__ = "0.1.0"
