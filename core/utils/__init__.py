"""
Core Utilities Package

This package contains utility functions and helpers used throughout the application.

Modules:
    - time: Batch timestamp generation and ISO-8601 formatting
"""

from core.utils.time import batch_timestamp, to_iso_timestamp

__all__ = ["batch_timestamp", "to_iso_timestamp"]
