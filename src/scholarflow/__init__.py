"""Scholarship application lifecycle and interview scheduling core."""

__version__ = "0.1.0"
