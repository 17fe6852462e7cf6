"""Sonare marketing-site backend."""

__version__ = "1.0.0"
