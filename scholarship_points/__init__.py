"""Scholarship points configuration and leveling engine."""

__version__ = "1.0.0"
