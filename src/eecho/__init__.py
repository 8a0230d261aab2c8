"""Offline Japanese-to-English translation CLI with a warm background worker."""

__version__ = "0.3.0"
