"""
Core Utilities Package

This package contains utility functions and helpers used throughout the application.

Modules:
    - time: Timestamp conversion and normalization utilities
    - decimals: Decimal-string validation that never changes precision
"""

from core.utils.time import current_utc_timestamp, rfc3339_to_millis, epoch_seconds_to_millis, millis_to_rfc3339
from core.utils.decimals import canonical_decimal, optional_decimal

__all__ = [
    "current_utc_timestamp",
    "rfc3339_to_millis",
    "epoch_seconds_to_millis",
    "millis_to_rfc3339",
    "canonical_decimal",
    "optional_decimal",
]
