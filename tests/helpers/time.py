"""Shared, deterministic timestamps for tests."""

from datetime import UTC, datetime


# Fixed clock so signed URL expiries are reproducible.
FIXED_NOW = datetime(2024, 3, 1, 12, 0, 0, tzinfo=UTC)


def fixed_clock() -> datetime:
    """Clock returning FIXED_NOW."""
    return FIXED_NOW
